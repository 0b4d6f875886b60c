"""
Membership repository for database access.

Encapsulates queries on the memberships table and the purchase queries
that decide whether a membership is backed (active purchases of
non-archived MEMBERSHIP products).

Note: This repository does NOT perform authorization checks and never
commits. The lifecycle runs inside the caller's transaction.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select, update

from shared.models import AppRole, ProductType
from shared.repository import BaseRepository
from shared.tables import MembershipRecord, ProductRecord, ProfileRecord, PurchaseRecord

from .models import Membership


class MembershipRepository(BaseRepository[Membership]):
    """Data access for memberships and their backing purchases."""

    # -------------------------------------------------------------------------
    # Membership rows
    # -------------------------------------------------------------------------

    async def get_for_profile(self, profile_id: str) -> Optional[Membership]:
        record = await self._get_record(profile_id)
        return self._map_to_membership(record) if record else None

    async def create(
        self,
        profile_id: str,
        start_date: datetime,
        end_date: Optional[datetime],
    ) -> Membership:
        record = MembershipRecord(
            profile_id=profile_id,
            start_date=start_date,
            end_date=end_date,
            created_at=start_date,
            updated_at=start_date,
        )
        self._session.add(record)
        await self._session.flush()
        return self._map_to_membership(record)

    async def set_term(
        self,
        profile_id: str,
        start_date: datetime,
        end_date: Optional[datetime],
        now: datetime,
    ) -> Optional[Membership]:
        """Overwrite the term of an existing membership (renewal)."""
        record = await self._get_record(profile_id)
        if record is None:
            return None
        record.start_date = start_date
        record.end_date = end_date
        record.updated_at = now
        await self._session.flush()
        return self._map_to_membership(record)

    async def set_end_date(
        self,
        profile_id: str,
        end_date: datetime,
        now: datetime,
    ) -> Optional[Membership]:
        record = await self._get_record(profile_id)
        if record is None:
            return None
        record.end_date = end_date
        record.updated_at = now
        await self._session.flush()
        return self._map_to_membership(record)

    async def find_lapsed(self, now: datetime, limit: int) -> list[Membership]:
        """
        Memberships whose term has ended but that still look active.

        A lapsed membership has ``end_date <= now`` and either a MEMBER
        profile or a still-open MEMBERSHIP purchase. Already-processed
        memberships match neither, which keeps the sweep idempotent.
        """
        stmt = (
            select(MembershipRecord)
            .join(ProfileRecord, ProfileRecord.id == MembershipRecord.profile_id)
            .where(
                MembershipRecord.end_date.is_not(None),
                MembershipRecord.end_date <= now,
                or_(
                    ProfileRecord.app_role == AppRole.MEMBER,
                    self._open_membership_purchases(MembershipRecord.profile_id).exists(),
                ),
            )
            .order_by(MembershipRecord.end_date)
            .limit(limit)
        )
        records = (await self._session.execute(stmt)).scalars().all()
        return [self._map_to_membership(r) for r in records]

    # -------------------------------------------------------------------------
    # Backing purchases
    # -------------------------------------------------------------------------

    async def count_active_membership_purchases(
        self,
        profile_id: str,
        exclude_purchase_ids: Optional[set[str]] = None,
        exclude_product_id: Optional[str] = None,
    ) -> int:
        """
        Count the profile's active purchases of non-archived MEMBERSHIP products.

        Args:
            profile_id: The profile to check
            exclude_purchase_ids: Purchases being cancelled in this transaction
            exclude_product_id: A MEMBERSHIP product being archived in this
                transaction
        """
        inner = self._open_membership_purchases(profile_id)
        if exclude_purchase_ids:
            inner = inner.where(PurchaseRecord.id.not_in(list(exclude_purchase_ids)))
        if exclude_product_id:
            inner = inner.where(PurchaseRecord.product_id != exclude_product_id)
        stmt = select(func.count()).select_from(inner.subquery())
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_active_membership_purchase_ids(self, profile_id: str) -> list[str]:
        """IDs of the profile's open purchases of any MEMBERSHIP product."""
        stmt = (
            select(PurchaseRecord.id)
            .join(ProductRecord, ProductRecord.id == PurchaseRecord.product_id)
            .where(
                PurchaseRecord.profile_id == profile_id,
                PurchaseRecord.deleted_at.is_(None),
                ProductRecord.type == ProductType.MEMBERSHIP,
            )
            .order_by(PurchaseRecord.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def close_purchases(self, purchase_ids: list[str], closed_at: datetime) -> int:
        """Soft-delete purchases that are still open. Returns rows closed."""
        if not purchase_ids:
            return 0
        stmt = (
            update(PurchaseRecord)
            .where(
                PurchaseRecord.id.in_(purchase_ids),
                PurchaseRecord.deleted_at.is_(None),
            )
            .values(deleted_at=closed_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _open_membership_purchases(profile_id):
        """Open purchases of non-archived MEMBERSHIP products for a profile."""
        return (
            select(PurchaseRecord.id)
            .join(ProductRecord, ProductRecord.id == PurchaseRecord.product_id)
            .where(
                and_(
                    PurchaseRecord.profile_id == profile_id,
                    PurchaseRecord.deleted_at.is_(None),
                    ProductRecord.type == ProductType.MEMBERSHIP,
                    ProductRecord.deleted_at.is_(None),
                )
            )
        )

    async def _get_record(self, profile_id: str) -> Optional[MembershipRecord]:
        stmt = select(MembershipRecord).where(MembershipRecord.profile_id == profile_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    def _map_to_membership(record: MembershipRecord) -> Membership:
        return Membership(
            id=record.id,
            profile_id=record.profile_id,
            start_date=record.start_date,
            end_date=record.end_date,
        )
