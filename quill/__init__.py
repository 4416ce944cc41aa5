"""Quill - post revision history and restore for async content sites."""
