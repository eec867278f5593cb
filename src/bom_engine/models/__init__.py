"""
Database models package.

This package contains all SQLAlchemy ORM models for the BOM engine.
"""

from .base import Base, BaseModel
from .enums import (
    ChangeDirection,
    ChildrenHandling,
    ComponentType,
    DifferenceType,
    HistoryAction,
    HistoryTargetType,
    ImpactLevel,
    ProductType,
    RecoveryComplexity,
    StructuralChangeType,
    UsageType,
)
from .product import Product
from .bom import BOM
from .bom_item import BOMItem, MUTABLE_FIELDS
from .bom_history import BOMHistory, ChangedField
from .bom_item_usage import BOMItemUsage

__all__ = [
    "Base",
    "BaseModel",
    # Core Models
    "Product",
    "BOM",
    "BOMItem",
    "BOMHistory",
    "BOMItemUsage",
    # Value objects
    "ChangedField",
    "MUTABLE_FIELDS",
    # Enums
    "ChangeDirection",
    "ChildrenHandling",
    "ComponentType",
    "DifferenceType",
    "HistoryAction",
    "HistoryTargetType",
    "ImpactLevel",
    "ProductType",
    "RecoveryComplexity",
    "StructuralChangeType",
    "UsageType",
]
