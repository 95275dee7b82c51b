"""Storage backends implementing the storage port."""

from repositories.memory import InMemoryStorage
from repositories.sqlalchemy_store import SqlAlchemyStorage

__all__ = ["InMemoryStorage", "SqlAlchemyStorage"]
