"""
Product and purchase repositories for database access.

Note: These repositories do NOT perform authorization checks and never
commit. The store service owns the transaction.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import func, select

from shared.models import ProductType
from shared.repository import BaseRepository
from shared.tables import ProductRecord, PurchaseRecord

from .models import Product, Purchase, PurchaseDetail

CENTS = Decimal("0.01")


class ProductRepository(BaseRepository[Product]):
    """Data access for the products table."""

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        record = await self._session.get(ProductRecord, product_id)
        return self._map_to_product(record) if record else None

    async def lock(self, product_id: str, shared: bool = False) -> Optional[Product]:
        """
        Load a product with a row lock.

        Purchases take a shared lock so an archive (exclusive lock) cannot
        count subscribers while a new purchase of the same product is in
        flight.
        """
        record = await self._session.get(
            ProductRecord,
            product_id,
            with_for_update={"read": True} if shared else True,
            populate_existing=True,
        )
        return self._map_to_product(record) if record else None

    async def create(
        self,
        name: str,
        product_type: ProductType,
        price: Decimal,
        created_by: str,
        now: datetime,
    ) -> Product:
        record = ProductRecord(
            name=name,
            type=product_type,
            price=price.quantize(CENTS, rounding=ROUND_HALF_UP),
            created_by=created_by,
            created_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return self._map_to_product(record)

    async def list_products(
        self,
        include_archived: bool = False,
        types: Optional[list[ProductType]] = None,
    ) -> list[Product]:
        stmt = select(ProductRecord).order_by(ProductRecord.created_at.desc())
        if not include_archived:
            stmt = stmt.where(ProductRecord.deleted_at.is_(None))
        if types is not None:
            stmt = stmt.where(ProductRecord.type.in_(types))
        records = (await self._session.execute(stmt)).scalars().all()
        return [self._map_to_product(r) for r in records]

    async def archive(self, product_id: str, now: datetime) -> Optional[Product]:
        record = await self._session.get(ProductRecord, product_id)
        if record is None:
            return None
        record.deleted_at = now
        await self._session.flush()
        return self._map_to_product(record)

    @staticmethod
    def _map_to_product(record: ProductRecord) -> Product:
        return Product(
            id=record.id,
            name=record.name,
            type=record.type,
            price=record.price,
            created_by=record.created_by,
            created_at=record.created_at,
            deleted_at=record.deleted_at,
        )


class PurchaseRepository(BaseRepository[Purchase]):
    """Data access for the purchases table."""

    async def get_by_id(self, purchase_id: str) -> Optional[Purchase]:
        record = await self._session.get(PurchaseRecord, purchase_id)
        return self._map_to_purchase(record) if record else None

    async def lock(self, purchase_id: str) -> Optional[Purchase]:
        record = await self._session.get(
            PurchaseRecord, purchase_id, with_for_update=True, populate_existing=True
        )
        return self._map_to_purchase(record) if record else None

    async def create(
        self,
        profile_id: str,
        product: Product,
        quantity: int,
        now: datetime,
    ) -> Purchase:
        """Record a purchase, snapshotting the product's current price."""
        total = (product.price * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)
        record = PurchaseRecord(
            profile_id=profile_id,
            product_id=product.id,
            quantity=quantity,
            total=total,
            created_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return self._map_to_purchase(record)

    async def cancel(self, purchase_id: str, now: datetime) -> Optional[Purchase]:
        record = await self._session.get(PurchaseRecord, purchase_id)
        if record is None:
            return None
        record.deleted_at = now
        await self._session.flush()
        return self._map_to_purchase(record)

    async def count_active_for_product(self, product_id: str) -> int:
        stmt = select(func.count(PurchaseRecord.id)).where(
            PurchaseRecord.product_id == product_id,
            PurchaseRecord.deleted_at.is_(None),
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_subscriber_ids(self, product_id: str, limit: int) -> list[str]:
        """Distinct profiles holding an active purchase of the product."""
        stmt = (
            select(PurchaseRecord.profile_id)
            .where(
                PurchaseRecord.product_id == product_id,
                PurchaseRecord.deleted_at.is_(None),
            )
            .distinct()
            .order_by(PurchaseRecord.profile_id)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def count_subscribers(self, product_id: str) -> int:
        stmt = select(func.count(func.distinct(PurchaseRecord.profile_id))).where(
            PurchaseRecord.product_id == product_id,
            PurchaseRecord.deleted_at.is_(None),
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_active_ids(self, product_id: str, profile_id: str) -> list[str]:
        stmt = select(PurchaseRecord.id).where(
            PurchaseRecord.product_id == product_id,
            PurchaseRecord.profile_id == profile_id,
            PurchaseRecord.deleted_at.is_(None),
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_for_profile(self, profile_id: str) -> list[PurchaseDetail]:
        """Purchase history including cancelled rows, newest first."""
        stmt = (
            select(PurchaseRecord, ProductRecord)
            .join(ProductRecord, ProductRecord.id == PurchaseRecord.product_id)
            .where(PurchaseRecord.profile_id == profile_id)
            .order_by(PurchaseRecord.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).all()
        return [
            PurchaseDetail(
                **self._map_to_purchase(purchase).model_dump(),
                product=ProductRepository._map_to_product(product),
            )
            for purchase, product in rows
        ]

    @staticmethod
    def _map_to_purchase(record: PurchaseRecord) -> Purchase:
        return Purchase(
            id=record.id,
            profile_id=record.profile_id,
            product_id=record.product_id,
            quantity=record.quantity,
            total=record.total,
            created_at=record.created_at,
            deleted_at=record.deleted_at,
        )
