"""
Folder model for the namespace tree.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String

from .base import Base, generate_id, utcnow


class Folder(Base):
    """
    A node of the namespace tree.

    ``parent_id`` is ``None`` for folders that live directly under the virtual
    root; the root itself is never stored as a row.
    """

    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    parent_id = Column(String(36), ForeignKey("folders.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Folder id={self.id!r} name={self.name!r} parent_id={self.parent_id!r}>"
