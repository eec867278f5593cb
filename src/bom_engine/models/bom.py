"""
BOM model - one versioned composition for a product.

A BOM's item collection is not an ORM relationship: stores populate
`items` explicitly when a caller asks for them, so a BOM loaded without
items simply carries an empty list.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import reconstructor

from .base import BaseModel
from bom_engine.utils.datetime_utils import is_within_window


class BOM(BaseModel):
    """
    Bill of Materials header.

    Invariants:
    - version is unique per product
    - deletion is logical (is_active=False), never physical

    Attributes:
        product_id: Owning product
        version: Version label (e.g., "v1.0")
        is_active: Active flag
        effective_date: Date the BOM takes effect
        expiry_date: Optional date the BOM stops being effective
        description: Free text
        created_by / updated_by: Actor identities
    """

    __tablename__ = "boms"

    product_id = Column(String(64), ForeignKey("products.id"), nullable=False, index=True)
    version = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    effective_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    description = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=False)
    updated_by = Column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("product_id", "version", name="uq_bom_product_version"),
        Index("idx_bom_product_active", "product_id", "is_active"),
    )

    def __init__(self, **kwargs):
        items = kwargs.pop("items", None)
        super().__init__(**kwargs)
        self.items = list(items) if items else []

    @reconstructor
    def _init_on_load(self):
        self.items = []

    def is_currently_active(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the BOM is usable right now.

        Returns:
            True if active AND effective_date <= now AND (no expiry OR expiry >= now)
        """
        return bool(self.is_active) and is_within_window(
            self.effective_date, self.expiry_date, now, inclusive_expiry=True
        )

    def calculate_total_cost(self) -> float:
        """Sum of scrap-adjusted item costs over the loaded items."""
        return sum(item.total_cost for item in self.items)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def max_level(self) -> int:
        return max((item.level for item in self.items), default=0)

    def expand_to_level(self, max_level: int) -> List["BOMItem"]:  # noqa: F821
        """
        Items down to and including the given level.

        Args:
            max_level: Deepest level to include (root = 0)

        Returns:
            Loaded items whose level is <= max_level
        """
        return [item for item in self.items if item.level <= max_level]

    def root_items(self) -> List["BOMItem"]:  # noqa: F821
        return [item for item in self.items if item.parent_item_id is None]
