"""
Services package - BOM engine operations.

This package contains the engine's services:
- cycle_check_service: Circular reference detection
- bom_item_service: Add / update / delete BOM items
- bom_copy_service: Copy a BOM into a new version
- bom_compare_service: Structural and cost diff of two BOMs
- bom_tree_service: Tree projection and totals
- service_factory: SQLAlchemy wiring and convenience functions
"""

from .database import (
    close_connections,
    get_engine,
    get_session,
    init_database,
    initialize_app_database,
    reset_database,
    session_scope,
)
from .exceptions import (
    BOMItemNotFound,
    BOMNotFound,
    BusinessRuleError,
    ChildrenExistError,
    CircularReferenceError,
    CriticalComponentError,
    DatabaseError,
    DuplicateComponentError,
    DuplicateVersionError,
    EmptyCopySelectionError,
    InactiveBOMError,
    InactiveComponentError,
    InvalidProductError,
    NotFoundError,
    NothingToUpdateError,
    OversizedChangeError,
    ParentItemNotFound,
    ProductNotFound,
    SameBOMComparisonError,
    SelfReferenceError,
    ServiceError,
    ValidationError,
)
from .service_factory import (
    BOMEngine,
    add_bom_item,
    check_component_addition,
    clear_cycle_cache,
    compare_boms,
    copy_bom,
    create_bom_engine,
    delete_bom_item,
    get_bom_engine,
    get_bom_tree,
    reset_bom_engine,
    update_bom_item,
)

__all__ = [
    # Database
    "close_connections",
    "get_engine",
    "get_session",
    "init_database",
    "initialize_app_database",
    "reset_database",
    "session_scope",
    # Exceptions
    "BOMItemNotFound",
    "BOMNotFound",
    "BusinessRuleError",
    "ChildrenExistError",
    "CircularReferenceError",
    "CriticalComponentError",
    "DatabaseError",
    "DuplicateComponentError",
    "DuplicateVersionError",
    "EmptyCopySelectionError",
    "InactiveBOMError",
    "InactiveComponentError",
    "InvalidProductError",
    "NotFoundError",
    "NothingToUpdateError",
    "OversizedChangeError",
    "ParentItemNotFound",
    "ProductNotFound",
    "SameBOMComparisonError",
    "SelfReferenceError",
    "ServiceError",
    "ValidationError",
    # Engine
    "BOMEngine",
    "add_bom_item",
    "check_component_addition",
    "clear_cycle_cache",
    "compare_boms",
    "copy_bom",
    "create_bom_engine",
    "delete_bom_item",
    "get_bom_engine",
    "get_bom_tree",
    "reset_bom_engine",
    "update_bom_item",
]
