"""
Base repository class for database access.

Provides a common abstraction layer for all repositories, encapsulating
SQLAlchemy session access and providing shared utilities for data operations.
"""

from typing import TypeVar, Generic

from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    Provides common functionality for database operations:
    - SQLAlchemy session access via self._session
    - Generic type parameter for model type hints

    Repositories never open or commit transactions. The service that owns
    the unit of work does, so several repositories can write inside one
    atomic block.

    Example:
        class ProductRepository(BaseRepository[Product]):
            async def get_by_id(self, product_id: str) -> Optional[Product]:
                record = await self._session.get(ProductRecord, product_id)
                return self._map_to_product(record) if record else None
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the repository with a database session.

        Args:
            session: Async SQLAlchemy session bound to the current unit of work.
        """
        self._session = session
