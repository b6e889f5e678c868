"""
Base repository class for data access layer.

Repositories own every query; services never touch ``db.query`` directly.
Repositories add and flush but never commit: the calling service decides the
transaction boundary so that a balance change and its ledger rows land
together.

Example:
    class AccountRepository(BaseRepository[Account]):
        def find_by_email(self, email: str) -> Optional[Account]:
            return self.where_first(Account.email == email)
"""
from typing import TypeVar, Generic, Type, Optional, List
from sqlalchemy import desc, func
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id: str) -> Optional[T]:
        """Find a single record by ID."""
        return self.db.query(self.model_type).filter(self.model_type.id == id).first()

    def find_all(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: Optional[str] = None
    ) -> List[T]:
        """
        Find all records with optional pagination.

        Args:
            limit: Maximum number of records to return
            offset: Number of records to skip
            order_by: Column name to order by (prefix with '-' for descending)
        """
        query = self._ordered(self.db.query(self.model_type), order_by)

        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        return query.all()

    def create(self, **kwargs) -> T:
        """Create a new record and flush it so generated defaults are populated."""
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    # ========================================================================
    # Query Builders
    # ========================================================================

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion, order_by: Optional[str] = None, limit: Optional[int] = None) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        query = self._ordered(self.db.query(self.model_type).filter(*criterion), order_by)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    def sum(self, column, *criterion) -> float:
        """Sum a numeric column over records matching optional criterion (0 when none)."""
        query = self.db.query(func.coalesce(func.sum(column), 0.0))
        if criterion:
            query = query.filter(*criterion)
        return float(query.scalar() or 0.0)

    def _ordered(self, query: Query, order_by: Optional[str]) -> Query:
        if not order_by:
            return query
        if order_by.startswith('-'):
            return query.order_by(desc(getattr(self.model_type, order_by[1:])))
        return query.order_by(getattr(self.model_type, order_by))
