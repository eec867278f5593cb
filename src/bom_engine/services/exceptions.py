"""Service layer exception classes for the BOM engine.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the engine. Every rejection carries a
specific, field- or rule-named message.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── NotFoundError
    │   ├── BOMNotFound
    │   ├── BOMItemNotFound
    │   ├── ProductNotFound
    │   └── ParentItemNotFound
    ├── BusinessRuleError
    │   ├── InactiveBOMError
    │   ├── InactiveComponentError
    │   ├── SelfReferenceError
    │   ├── CircularReferenceError
    │   ├── DuplicateComponentError
    │   ├── DuplicateVersionError
    │   ├── CriticalComponentError
    │   ├── OversizedChangeError
    │   ├── NothingToUpdateError
    │   ├── ChildrenExistError
    │   ├── EmptyCopySelectionError
    │   ├── InvalidProductError
    │   └── SameBOMComparisonError
    └── DatabaseError

Usage conflicts (an item referenced by external consumers) are not
exceptions: update and delete return blocked results carrying warnings.
"""

from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when input validation fails.

    Args:
        errors: List of field-named error messages

    Example:
        >>> raise ValidationError(["quantity: Value must be greater than zero"])
        ValidationError: Validation failed: quantity: Value must be greater than zero
    """

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a store operation fails after validation passed."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


# Not-found errors


class NotFoundError(ServiceError):
    """Base class for missing referenced entities."""

    pass


class BOMNotFound(NotFoundError):
    """Raised when a BOM cannot be found by ID."""

    def __init__(self, bom_id: str):
        self.bom_id = bom_id
        super().__init__(f"BOM '{bom_id}' not found")


class BOMItemNotFound(NotFoundError):
    """Raised when a BOM item cannot be found by ID."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"BOM item '{item_id}' not found")


class ProductNotFound(NotFoundError):
    """Raised when a product (component or BOM owner) cannot be found."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' not found")


class ParentItemNotFound(NotFoundError):
    """Raised when a parent item does not exist within the target BOM.

    The lookup is scoped: a parent that exists in another BOM is reported
    the same way as a missing one.
    """

    def __init__(self, parent_item_id: str, bom_id: str):
        self.parent_item_id = parent_item_id
        self.bom_id = bom_id
        super().__init__(f"Parent item '{parent_item_id}' not found in BOM '{bom_id}'")


# Business-rule violations


class BusinessRuleError(ServiceError):
    """Base class for business-rule violations."""

    pass


class InactiveBOMError(BusinessRuleError):
    """Raised when mutating a BOM that is not currently active."""

    def __init__(self, bom_id: str):
        self.bom_id = bom_id
        super().__init__(f"BOM '{bom_id}' is not currently active and cannot be modified")


class InactiveComponentError(BusinessRuleError):
    """Raised when the component product is inactive."""

    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(f"Component '{component_id}' is inactive")


class SelfReferenceError(BusinessRuleError):
    """Raised when a product is added to its own BOM."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' cannot be a component of its own BOM")


class CircularReferenceError(BusinessRuleError):
    """Raised when adding a component would create a circular reference.

    Attributes:
        path: Component ids along the detected cycle
        depth: Depth at which the cycle was found
    """

    def __init__(self, component_id: str, path: Optional[List[str]] = None, depth: int = 0):
        self.component_id = component_id
        self.path = list(path or [])
        self.depth = depth
        detail = f" (path: {' -> '.join(self.path)})" if self.path else ""
        super().__init__(
            f"Adding component '{component_id}' would create a circular reference{detail}"
        )


class DuplicateComponentError(BusinessRuleError):
    """Raised when a sibling already holds the same component."""

    def __init__(self, component_id: str, parent_item_id: Optional[str] = None):
        self.component_id = component_id
        self.parent_item_id = parent_item_id
        where = f"parent item '{parent_item_id}'" if parent_item_id else "the top level"
        super().__init__(f"Component '{component_id}' already exists under {where}")


class DuplicateVersionError(BusinessRuleError):
    """Raised when a (product, version) pair is already used."""

    def __init__(self, product_id: str, version: str):
        self.product_id = product_id
        self.version = version
        super().__init__(f"Version '{version}' already exists for product '{product_id}'")


class CriticalComponentError(BusinessRuleError):
    """Raised when a critical component would be made optional."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Critical component '{item_id}' cannot be changed to optional")


class OversizedChangeError(BusinessRuleError):
    """Raised when a quantity change exceeds the allowed ratio without force."""

    def __init__(self, field_name: str, old_value: float, new_value: float, ratio: float):
        self.field_name = field_name
        self.old_value = old_value
        self.new_value = new_value
        self.ratio = ratio
        super().__init__(
            f"{field_name} change from {old_value} to {new_value} "
            f"({ratio:.0%}) requires force_update"
        )


class NothingToUpdateError(BusinessRuleError):
    """Raised when an update request changes no field."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Nothing to update for BOM item '{item_id}'")


class ChildrenExistError(BusinessRuleError):
    """Raised when an item with children is deleted without delete_children."""

    def __init__(self, item_id: str, child_count: int):
        self.item_id = item_id
        self.child_count = child_count
        super().__init__(
            f"BOM item '{item_id}' has {child_count} child item(s); "
            "delete the children first or set delete_children"
        )


class EmptyCopySelectionError(BusinessRuleError):
    """Raised when copy filters exclude every source item."""

    def __init__(self, source_bom_id: str):
        self.source_bom_id = source_bom_id
        super().__init__(f"No items of BOM '{source_bom_id}' match the copy options")


class InvalidProductError(BusinessRuleError):
    """Raised when a product cannot own a BOM."""

    def __init__(self, product_id: str, reason: str = "cannot own a BOM"):
        self.product_id = product_id
        super().__init__(f"Product '{product_id}' {reason}")


class SameBOMComparisonError(BusinessRuleError):
    """Raised when a BOM is compared with itself by id."""

    def __init__(self, bom_id: str):
        self.bom_id = bom_id
        super().__init__(f"Source and target BOM must differ (both '{bom_id}')")
