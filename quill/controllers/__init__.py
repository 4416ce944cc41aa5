"""HTTP controllers."""

from quill.controllers.revisions import RevisionController

__all__ = ["RevisionController"]
