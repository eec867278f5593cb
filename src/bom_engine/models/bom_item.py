"""
BOMItem model - one node in a BOM's component tree.

Items reference their parent by id (parent_item_id) rather than through an
ORM relationship, so trees are walked through identifier indexes and stay
serializable. Deletion is logical (is_deleted).

Derived values:
- actual_quantity = quantity * (1 + scrap_rate / 100)
- total_cost = actual_quantity * unit_cost
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from .base import BaseModel
from .enums import ComponentType
from bom_engine.utils.constants import (
    CRITICAL_COST_THRESHOLD,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_PERCENTAGE,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    MAX_SCRAP_RATE,
    MIN_SCRAP_RATE,
    MIN_UNIT_COST,
)
from bom_engine.utils.datetime_utils import ensure_utc, is_within_window

# Fields an update request may change
MUTABLE_FIELDS = (
    "quantity",
    "unit_cost",
    "scrap_rate",
    "is_optional",
    "position",
    "process_step",
    "remarks",
    "effective_date",
    "expiry_date",
)


class BOMItem(BaseModel):
    """
    BOM component node.

    Invariants (enforced by the item services):
    - parent, if present, exists in the same BOM and level == parent.level + 1
    - root items have level 0
    - sibling sequence numbers are unique
    - quantity > 0, 0 <= scrap_rate <= 100, unit_cost >= 0

    Attributes:
        bom_id: Owning BOM
        component_id: Product consumed by this node
        parent_item_id: Parent node (None for roots)
        level: Depth in the tree (root = 0)
        sequence: Order among siblings
        quantity / unit / unit_cost / scrap_rate: Consumption data
        is_optional: Optional component flag
        component_type: ComponentType of the node
        effective_date / expiry_date: Validity window
        position / process_step / remarks: Free text
        is_deleted / deleted_at: Logical delete markers
    """

    __tablename__ = "bom_items"

    bom_id = Column(String(64), ForeignKey("boms.id"), nullable=False, index=True)
    component_id = Column(String(64), ForeignKey("products.id"), nullable=False, index=True)
    parent_item_id = Column(String(64), ForeignKey("bom_items.id"), nullable=True, index=True)

    level = Column(Integer, nullable=False, default=0)
    sequence = Column(Integer, nullable=False, default=1)

    quantity = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False, default="EA")
    unit_cost = Column(Float, nullable=False, default=0.0)
    scrap_rate = Column(Float, nullable=False, default=0.0)
    is_optional = Column(Boolean, nullable=False, default=False)
    component_type = Column(
        Enum(ComponentType, native_enum=False, length=30),
        nullable=False,
        default=ComponentType.RAW_MATERIAL,
    )

    effective_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=True)

    position = Column(String(100), nullable=True)
    process_step = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(String(64), nullable=False)
    updated_by = Column(String(64), nullable=False)

    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_bom_item_siblings", "bom_id", "parent_item_id", "sequence"),
        Index("idx_bom_item_component", "bom_id", "component_id"),
    )

    # Derived values

    @property
    def actual_quantity(self) -> float:
        """Quantity inflated by the scrap rate."""
        return self.quantity * (1 + (self.scrap_rate or 0.0) / 100)

    @property
    def total_cost(self) -> float:
        """Scrap-adjusted quantity times unit cost."""
        return self.actual_quantity * (self.unit_cost or 0.0)

    def is_top_level(self) -> bool:
        return self.level == 0 and self.parent_item_id is None

    def is_sub_component(self) -> bool:
        return self.level > 0 and self.parent_item_id is not None

    def is_critical_component(self) -> bool:
        """Critical when expensive or required (not optional)."""
        return self.total_cost > CRITICAL_COST_THRESHOLD or not self.is_optional

    def is_used_in_process(self, process_step: str) -> bool:
        return self.process_step == process_step

    def is_currently_active(self, now: Optional[datetime] = None) -> bool:
        """Not deleted and effective_date <= now < expiry_date."""
        if self.is_deleted:
            return False
        return is_within_window(self.effective_date, self.expiry_date, now, inclusive_expiry=False)

    def validation_errors(self) -> List[str]:
        """
        Field-level invariant violations for this item.

        Returns:
            List of field-named error messages (empty when valid)
        """
        errors = []
        if not self.component_id:
            errors.append(f"component_id: {ERROR_REQUIRED_FIELD}")
        if self.level is None or self.level < 0:
            errors.append(f"level: {ERROR_INVALID_NON_NEGATIVE}")
        if self.quantity is None or self.quantity <= 0:
            errors.append(f"quantity: {ERROR_INVALID_POSITIVE}")
        if self.scrap_rate is None or not (MIN_SCRAP_RATE <= self.scrap_rate <= MAX_SCRAP_RATE):
            errors.append(f"scrap_rate: {ERROR_INVALID_PERCENTAGE}")
        if self.unit_cost is None or self.unit_cost < MIN_UNIT_COST:
            errors.append(f"unit_cost: {ERROR_INVALID_NON_NEGATIVE}")
        if self.expiry_date is not None and self.effective_date is not None:
            if ensure_utc(self.expiry_date) <= ensure_utc(self.effective_date):
                errors.append("expiry_date: Must be after effective_date")
        return errors

    def with_changes(self, **changes: Any) -> "BOMItem":
        """
        Build a new item value with the given fields replaced.

        The stored item is never mutated; identity and creation fields are
        carried over unless explicitly overridden.

        Args:
            **changes: Column names and their new values

        Returns:
            New transient BOMItem

        Raises:
            AttributeError: If a change names an unknown column
        """
        values = self.column_values()
        unknown = set(changes) - set(values)
        if unknown:
            raise AttributeError(f"Unknown BOMItem fields: {sorted(unknown)}")
        values.update(changes)
        return BOMItem(**values)
