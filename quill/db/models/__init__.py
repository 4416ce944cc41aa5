from quill.db.models.post import Post
from quill.db.models.post_revision import PostRevision
from quill.db.models.user import User

__all__ = ["Post", "PostRevision", "User"]
