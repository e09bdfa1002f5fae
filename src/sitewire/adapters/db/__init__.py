"""SQLAlchemy-backed database collaborator."""

from .connect import SqlAlchemyCollections, connect

__all__ = ["connect", "SqlAlchemyCollections"]
