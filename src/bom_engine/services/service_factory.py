"""
Service wiring for the BOM engine.

Builds every service with the SQLAlchemy-backed collaborators and one shared
CycleCheckCache, and exposes module-level convenience functions for the
common operations.

Usage:
    from bom_engine.services import service_factory

    result = service_factory.add_bom_item(AddBOMItemRequest(...))
"""

from dataclasses import dataclass
from typing import List, Optional

from .bom_compare_service import BOMCompareService
from .bom_copy_service import BOMCopyService
from .bom_item_service import BOMItemService
from .bom_repositories import (
    SQLBOMHistoryStore,
    SQLBOMItemStore,
    SQLBOMStore,
    SQLProductLookup,
)
from .bom_tree_service import BOMTreeService
from .cycle_check_service import BOMCycleChecker, CycleCheckCache
from .dto import (
    AddBOMItemRequest,
    AddBOMItemResult,
    BOMTreeNode,
    CompareBOMRequest,
    CompareBOMResult,
    CopyBOMRequest,
    CopyBOMResult,
    CycleCheckResult,
    DeleteBOMItemRequest,
    DeleteBOMItemResult,
    UpdateBOMItemRequest,
    UpdateBOMItemResult,
)
from .presenter import BOMPresenter, DefaultBOMPresenter
from .usage_checker import RecordedUsageChecker, UsageChecker


@dataclass
class BOMEngine:
    """The wired set of BOM engine services."""

    cycle_checker: BOMCycleChecker
    items: BOMItemService
    copier: BOMCopyService
    comparer: BOMCompareService
    trees: BOMTreeService


def create_bom_engine(
    cache: Optional[CycleCheckCache] = None,
    usage_checker: Optional[UsageChecker] = None,
    presenter: Optional[BOMPresenter] = None,
    max_depth: Optional[int] = None,
) -> BOMEngine:
    """
    Wire the services with SQLAlchemy-backed stores.

    Args:
        cache: Cycle-check cache (a new one when omitted)
        usage_checker: Usage checker (RecordedUsageChecker when omitted)
        presenter: Label presenter (DefaultBOMPresenter when omitted)
        max_depth: Cycle search bound (config default when omitted)

    Returns:
        BOMEngine
    """
    bom_store = SQLBOMStore()
    item_store = SQLBOMItemStore()
    history_store = SQLBOMHistoryStore()
    product_lookup = SQLProductLookup()
    presenter = presenter or DefaultBOMPresenter()
    usage_checker = usage_checker or RecordedUsageChecker()

    cycle_checker = BOMCycleChecker(bom_store, cache if cache is not None else CycleCheckCache(), max_depth)
    trees = BOMTreeService(bom_store, product_lookup, presenter)

    return BOMEngine(
        cycle_checker=cycle_checker,
        items=BOMItemService(
            bom_store,
            item_store,
            history_store,
            product_lookup,
            cycle_checker,
            usage_checker,
            presenter,
            trees,
        ),
        copier=BOMCopyService(bom_store, item_store, history_store, product_lookup, cycle_checker),
        comparer=BOMCompareService(bom_store, history_store, product_lookup, presenter),
        trees=trees,
    )


_engine: Optional[BOMEngine] = None


def get_bom_engine() -> BOMEngine:
    """Get the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = create_bom_engine()
    return _engine


def reset_bom_engine() -> None:
    """Drop the process-wide engine (and its cycle-check cache)."""
    global _engine
    _engine = None


# Module-level convenience functions


def add_bom_item(request: AddBOMItemRequest) -> AddBOMItemResult:
    """Add a component to a BOM."""
    return get_bom_engine().items.add_item(request)


def update_bom_item(request: UpdateBOMItemRequest) -> UpdateBOMItemResult:
    """Update mutable fields of a BOM item."""
    return get_bom_engine().items.update_item(request)


def delete_bom_item(request: DeleteBOMItemRequest) -> DeleteBOMItemResult:
    """Logically delete a BOM item (and optionally its descendants)."""
    return get_bom_engine().items.delete_item(request)


def copy_bom(request: CopyBOMRequest) -> CopyBOMResult:
    """Copy a BOM into a new version for a target product."""
    return get_bom_engine().copier.copy_bom(request)


def compare_boms(request: CompareBOMRequest) -> CompareBOMResult:
    """Compare two BOMs."""
    return get_bom_engine().comparer.compare_boms(request)


def check_component_addition(owner_product_id: str, component_id: str) -> CycleCheckResult:
    """Check whether adding a component to a product's BOM would create a cycle."""
    return get_bom_engine().cycle_checker.has_circular_reference(owner_product_id, component_id)


def get_bom_tree(bom_id: str, max_level: Optional[int] = None) -> List[BOMTreeNode]:
    """Nested tree of a BOM."""
    return get_bom_engine().trees.get_tree(bom_id, max_level)


def clear_cycle_cache() -> None:
    """Clear the shared cycle-check cache after external structural changes."""
    get_bom_engine().cycle_checker.clear_cache()
