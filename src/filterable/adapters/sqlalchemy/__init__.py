from .query import SqlAlchemyQuery

__all__ = ["SqlAlchemyQuery"]
