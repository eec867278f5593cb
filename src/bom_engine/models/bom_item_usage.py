"""
BOMItemUsage model - references to a BOM item held by external consumers.

Production plans, work orders and other systems register a row here while
they depend on a BOM item; the usage checker counts them.
"""

from sqlalchemy import Column, Enum, ForeignKey, String

from .base import BaseModel
from .enums import ImpactLevel, UsageType


class BOMItemUsage(BaseModel):
    """
    External reference to a BOM item.

    Attributes:
        bom_item_id: Referenced item
        usage_type: Kind of consumer (production plan, work order, ...)
        reference_id: Consumer's own identifier
        reference_name: Display name of the consumer
        status: Consumer status (free text)
        importance: Coarse importance tier
    """

    __tablename__ = "bom_item_usages"

    bom_item_id = Column(String(64), ForeignKey("bom_items.id"), nullable=False, index=True)
    usage_type = Column(Enum(UsageType, native_enum=False, length=30), nullable=False)
    reference_id = Column(String(64), nullable=False)
    reference_name = Column(String(200), nullable=True)
    status = Column(String(50), nullable=True)
    importance = Column(
        Enum(ImpactLevel, native_enum=False, length=10),
        nullable=False,
        default=ImpactLevel.MEDIUM,
    )
