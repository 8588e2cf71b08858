"""ORM models. Importing this package registers every table on Base.metadata."""

from inkpost.models.post import Post

__all__ = ["Post"]
