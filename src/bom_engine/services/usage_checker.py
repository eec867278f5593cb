"""
Usage checker - is a BOM item referenced outside its BOM?

Update and delete consult a UsageChecker before touching an item. The
recorded implementation reads BOMItemUsage rows registered by production
plans, work orders and other consumers, and counts the item's children.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import BOMItem, BOMItemUsage
from .database import session_scope
from .dto import ItemUsage, UsageReport
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)


class UsageChecker(ABC):
    """Reports external references and children of a BOM item."""

    @abstractmethod
    def check_item_usage(self, item_id: str) -> UsageReport:
        pass


class RecordedUsageChecker(UsageChecker):
    """UsageChecker backed by the bom_item_usages table."""

    def check_item_usage(self, item_id: str, session: Optional[Session] = None) -> UsageReport:
        """
        Collect usages and child count for an item.

        Args:
            item_id: BOM item to check
            session: Optional database session (uses session_scope if not provided)

        Returns:
            UsageReport for the item

        Raises:
            DatabaseError: If the lookup fails
        """
        try:
            if session is not None:
                return self._check_item_usage_impl(item_id, session)
            with session_scope() as session:
                return self._check_item_usage_impl(item_id, session)
        except SQLAlchemyError as e:
            logger.error(f"Database error checking usage of BOM item {item_id}: {e}")
            raise DatabaseError(f"Failed to check usage of BOM item {item_id}", original_error=e) from e

    @staticmethod
    def _check_item_usage_impl(item_id: str, session: Session) -> UsageReport:
        rows = (
            session.query(BOMItemUsage)
            .filter(BOMItemUsage.bom_item_id == item_id)
            .order_by(BOMItemUsage.created_at)
            .all()
        )
        children_count = (
            session.query(BOMItem)
            .filter(BOMItem.parent_item_id == item_id, BOMItem.is_deleted.is_(False))
            .count()
        )
        usages = [
            ItemUsage(
                usage_type=row.usage_type,
                reference_id=row.reference_id,
                reference_name=row.reference_name,
                status=row.status,
                importance=row.importance,
            )
            for row in rows
        ]
        return UsageReport(
            item_id=item_id,
            usages=usages,
            has_children=children_count > 0,
            children_count=children_count,
        )
