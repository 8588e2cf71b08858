"""
Inkpost: Post SQLAlchemy Model
==============================

What:  ORM model for the `posts` table.
How:   Inherits from the shared DeclarativeBase; Alembic reads its metadata.

Placeholder entity: only field storage, no lifecycle logic. `id` is None
until the row is flushed; title and body default to empty strings.
"""

from typing import Any, Dict, Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inkpost.database import Base


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def as_context(self) -> Dict[str, Any]:
        """Plain mapping for template rendering."""
        post_id: Optional[int] = self.id
        return {"id": post_id, "title": self.title, "body": self.body}

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, title='{self.title}')>"
