"""
Enumerations for the BOM domain.

This module contains enums used across BOM models and services:
- ProductType: Classification of catalog products
- ComponentType: Role a component plays inside a BOM
- HistoryAction: Kind of change captured by an audit record
- HistoryTargetType: Entity an audit record refers to
- ImpactLevel: Coarse low/medium/high tier used by analyses
- UsageType: External consumers that can reference a BOM item
- ChangeDirection: Direction of a field-level change
- DifferenceType: Classification of a comparison difference
- StructuralChangeType: Kind of structural change between BOM versions
"""

from enum import Enum


class ProductType(str, Enum):
    """
    Catalog product classification.

    Values:
        FINISHED_PRODUCT: Shippable end product (may own a BOM)
        SEMI_FINISHED: Intermediate product (may own a BOM)
        RAW_MATERIAL: Basic input material (cannot own a BOM)
    """

    FINISHED_PRODUCT = "finished_product"
    SEMI_FINISHED = "semi_finished"
    RAW_MATERIAL = "raw_material"


class ComponentType(str, Enum):
    """
    Role of a component within a BOM.

    Values:
        RAW_MATERIAL: Raw material consumed in production
        SEMI_FINISHED: Semi-finished good produced in-house
        PURCHASED_PART: Part bought from a supplier
        SUB_ASSEMBLY: Assembly of other components
        CONSUMABLE: Consumable used up during production
    """

    RAW_MATERIAL = "raw_material"
    SEMI_FINISHED = "semi_finished"
    PURCHASED_PART = "purchased_part"
    SUB_ASSEMBLY = "sub_assembly"
    CONSUMABLE = "consumable"


class HistoryAction(str, Enum):
    """Kind of change captured by a BOM audit record."""

    ADD_ITEM = "add_item"
    UPDATE_ITEM = "update_item"
    DELETE_ITEM = "delete_item"
    COPY_BOM = "copy_bom"
    COMPARE_BOM = "compare_bom"


class HistoryTargetType(str, Enum):
    """Entity an audit record refers to."""

    BOM = "bom"
    BOM_ITEM = "bom_item"
    BOM_COMPARISON = "bom_comparison"


class ImpactLevel(str, Enum):
    """Coarse impact / significance / complexity tier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecoveryComplexity(str, Enum):
    """How hard it is to undo a deletion."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class UsageType(str, Enum):
    """External consumers that can reference a BOM item."""

    PRODUCTION_PLAN = "production_plan"
    WORK_ORDER = "work_order"
    INVENTORY = "inventory"
    OTHER_BOM = "other_bom"
    MANUFACTURING = "manufacturing"
    QUALITY_CONTROL = "quality_control"
    COSTING = "costing"


class ChangeDirection(str, Enum):
    """Direction of a field-level change."""

    INCREASE = "increase"
    DECREASE = "decrease"
    CHANGE = "change"


class ChildrenHandling(str, Enum):
    """How the children of a deleted item were handled."""

    DELETED = "deleted"
    BLOCKED = "blocked"
    NONE = "none"


class DifferenceType(str, Enum):
    """Classification of one entry in a flat comparison difference list."""

    ADDED = "added"
    REMOVED = "removed"
    QUANTITY_CHANGED = "quantity_changed"
    COST_CHANGED = "cost_changed"
    PROPERTIES_CHANGED = "properties_changed"


class StructuralChangeType(str, Enum):
    """Kind of structural change between two BOM versions."""

    LEVEL_CHANGE = "level_change"
    PARENT_CHANGE = "parent_change"
    SEQUENCE_CHANGE = "sequence_change"
