"""
BOM Item Service - add, update and delete BOM items.

Each operation validates its input and the business rules before any write,
then performs one item write (one per item for cascading deletes), touches
the owning BOM and appends audit records. The writes are separate store
calls; a failure between them is not rolled back.

Rejections raise ServiceError subclasses. Usage conflicts (an item referenced
by production plans, work orders, ...) are returned as blocked results with
warnings unless the caller forces the operation.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import (
    BOM,
    BOMHistory,
    BOMItem,
    ChangeDirection,
    ChangedField,
    ChildrenHandling,
    HistoryAction,
    HistoryTargetType,
    ImpactLevel,
    MUTABLE_FIELDS,
    RecoveryComplexity,
)
from ..utils.constants import (
    CRITICAL_COST_THRESHOLD,
    CRITICAL_UPDATE_FIELDS,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_PERCENTAGE,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    IMPACT_HIGH_COST,
    IMPACT_HIGH_ITEM_COUNT,
    IMPACT_MEDIUM_COST,
    IMPACT_MEDIUM_ITEM_COUNT,
    MAX_SCRAP_RATE,
    MAX_TEXT_LENGTH,
    MIN_SCRAP_RATE,
    MIN_UNIT_COST,
    QUANTITY_CHANGE_FORCE_RATIO,
    USAGE_SENSITIVE_FIELDS,
)
from ..utils.datetime_utils import ensure_utc, utc_now
from ..utils.id_utils import generate_id
from .bom_repositories import BOMHistoryStore, BOMItemStore, BOMStore, ProductLookup
from .bom_tree_service import BOMTreeService
from .cycle_check_service import BOMCycleChecker
from .dto import (
    AddBOMItemRequest,
    AddBOMItemResult,
    ChangesSummary,
    DeleteBOMItemRequest,
    DeleteBOMItemResult,
    DeletionImpact,
    DeletionSummary,
    FieldChange,
    UpdateBOMItemRequest,
    UpdateBOMItemResult,
    UpdateImpactAnalysis,
)
from .exceptions import (
    BOMItemNotFound,
    BOMNotFound,
    ChildrenExistError,
    CircularReferenceError,
    CriticalComponentError,
    DatabaseError,
    DuplicateComponentError,
    InactiveBOMError,
    InactiveComponentError,
    NothingToUpdateError,
    OversizedChangeError,
    ParentItemNotFound,
    ProductNotFound,
    SelfReferenceError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .presenter import BOMPresenter
from .usage_checker import UsageChecker

logger = get_service_logger(__name__)

NUMERIC_FIELDS = ("quantity", "unit_cost", "scrap_rate")
DATE_FIELDS = ("effective_date", "expiry_date")
MAX_ALTERNATIVE_SUGGESTIONS = 3


def _log_rejection(operation: str, error: ServiceError, **context: Any) -> None:
    level = logging.ERROR if isinstance(error, DatabaseError) else logging.WARNING
    log_operation(logger, operation=operation, outcome=type(error).__name__, level=level, error=str(error), **context)


def _validate_ranges(values: Dict[str, Any]) -> List[str]:
    """Range checks shared by add and update; only keys present are checked."""
    errors = []
    if "quantity" in values and (values["quantity"] is None or values["quantity"] <= 0):
        errors.append(f"quantity: {ERROR_INVALID_POSITIVE}")
    if "scrap_rate" in values and (
        values["scrap_rate"] is None or not (MIN_SCRAP_RATE <= values["scrap_rate"] <= MAX_SCRAP_RATE)
    ):
        errors.append(f"scrap_rate: {ERROR_INVALID_PERCENTAGE}")
    if "unit_cost" in values and (values["unit_cost"] is None or values["unit_cost"] < MIN_UNIT_COST):
        errors.append(f"unit_cost: {ERROR_INVALID_NON_NEGATIVE}")
    if "is_optional" in values and not isinstance(values["is_optional"], bool):
        errors.append("is_optional: Must be true or false")
    for text_field in ("position", "process_step"):
        text = values.get(text_field)
        if text is not None and len(text) > MAX_TEXT_LENGTH:
            errors.append(f"{text_field}: Must be at most {MAX_TEXT_LENGTH} characters")

    effective = ensure_utc(values.get("effective_date"))
    expiry = ensure_utc(values.get("expiry_date"))
    if "effective_date" in values:
        if effective is None:
            errors.append(f"effective_date: {ERROR_REQUIRED_FIELD}")
        elif effective > utc_now():
            errors.append("effective_date: Cannot be in the future")
    if effective is not None and expiry is not None and expiry <= effective:
        errors.append("expiry_date: Must be after effective_date")
    return errors


def _values_differ(field_name: str, old: Any, new: Any) -> bool:
    if field_name in DATE_FIELDS:
        return ensure_utc(old) != ensure_utc(new)
    return old != new


def _direction(field_name: str, old: Any, new: Any) -> ChangeDirection:
    if field_name in NUMERIC_FIELDS and old is not None and new is not None:
        return ChangeDirection.INCREASE if new > old else ChangeDirection.DECREASE
    return ChangeDirection.CHANGE


def _impact_tier(cost: float, item_count: int) -> ImpactLevel:
    if abs(cost) > IMPACT_HIGH_COST or item_count > IMPACT_HIGH_ITEM_COUNT:
        return ImpactLevel.HIGH
    if abs(cost) > IMPACT_MEDIUM_COST or item_count > IMPACT_MEDIUM_ITEM_COUNT:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


class BOMItemService:
    """
    Add, update and delete operations on BOM items.

    Collaborators are injected; see service_factory for the SQL wiring.
    """

    def __init__(
        self,
        bom_store: BOMStore,
        item_store: BOMItemStore,
        history_store: BOMHistoryStore,
        product_lookup: ProductLookup,
        cycle_checker: BOMCycleChecker,
        usage_checker: UsageChecker,
        presenter: BOMPresenter,
        tree_service: Optional[BOMTreeService] = None,
    ):
        self.bom_store = bom_store
        self.item_store = item_store
        self.history_store = history_store
        self.product_lookup = product_lookup
        self.cycle_checker = cycle_checker
        self.usage_checker = usage_checker
        self.presenter = presenter
        self.tree_service = tree_service or BOMTreeService(bom_store, product_lookup, presenter)

    # ==================================================================
    # Add
    # ==================================================================

    def add_item(self, request: AddBOMItemRequest) -> AddBOMItemResult:
        """
        Add a component to a BOM.

        Validation runs in order and the first failure aborts with no writes:
        request fields, BOM exists and is currently active, component exists
        and is active, no self reference, parent exists in the same BOM, no
        duplicate sibling, indirect-cycle pre-check, then the full cycle check.

        Args:
            request: AddBOMItemRequest

        Returns:
            AddBOMItemResult with the new item, its tree node and BOM totals

        Raises:
            ValidationError: If request fields are missing or out of range
            BOMNotFound / ProductNotFound / ParentItemNotFound: Missing references
            InactiveBOMError / InactiveComponentError: Inactive references
            SelfReferenceError / CircularReferenceError: Cyclic composition
            DuplicateComponentError: Sibling already holds the component
            DatabaseError: If a store write fails
        """
        try:
            return self._add_item(request)
        except ServiceError as e:
            _log_rejection(
                "add_bom_item", e, bom_id=request.bom_id, component_id=request.component_id
            )
            raise

    def _add_item(self, request: AddBOMItemRequest) -> AddBOMItemResult:
        now = utc_now()
        effective_date = request.effective_date or now
        self._validate_add_request(request, effective_date)

        bom = self.bom_store.find_by_id(request.bom_id, include_items=False)
        if bom is None:
            raise BOMNotFound(request.bom_id)
        if not bom.is_currently_active(now):
            raise InactiveBOMError(bom.id)

        component = self.product_lookup.find_by_id(request.component_id)
        if component is None:
            raise ProductNotFound(request.component_id)
        if not component.is_active:
            raise InactiveComponentError(request.component_id)

        if request.component_id == bom.product_id:
            raise SelfReferenceError(bom.product_id)

        parent = None
        if request.parent_item_id:
            parent = self.item_store.find_by_id(request.parent_item_id)
            if parent is None or parent.bom_id != bom.id:
                raise ParentItemNotFound(request.parent_item_id, bom.id)

        if self.item_store.is_duplicate(bom.id, request.component_id, request.parent_item_id):
            raise DuplicateComponentError(request.component_id, request.parent_item_id)

        if parent is not None:
            self._precheck_indirect_reference(bom, request.component_id)

        level = 0 if parent is None else parent.level + 1
        sequence = self.item_store.get_next_sequence(bom.id, request.parent_item_id, level)

        item = BOMItem(
            id=generate_id("BOMITEM"),
            bom_id=bom.id,
            component_id=request.component_id,
            parent_item_id=request.parent_item_id,
            level=level,
            sequence=sequence,
            quantity=request.quantity,
            unit=request.unit,
            unit_cost=request.unit_cost,
            scrap_rate=request.scrap_rate,
            is_optional=request.is_optional,
            component_type=request.component_type,
            effective_date=effective_date,
            expiry_date=request.expiry_date,
            position=request.position,
            process_step=request.process_step,
            remarks=request.remarks,
            is_deleted=False,
            created_by=request.created_by,
            updated_by=request.created_by,
            created_at=now,
            updated_at=now,
        )
        errors = item.validation_errors()
        if errors:
            raise ValidationError(errors)

        cycle = self.cycle_checker.check_item_addition(bom, item)
        if cycle.has_cycle:
            raise CircularReferenceError(request.component_id, cycle.path, cycle.depth or 0)

        self.item_store.save(item)
        self._touch_bom(bom, request.created_by, now)
        history = self._record(
            bom_id=bom.id,
            action=HistoryAction.ADD_ITEM,
            target_id=item.id,
            changes=[],
            user_id=request.created_by,
            timestamp=now,
            reason=request.reason or f"Added component {component.code}",
        )
        self.cycle_checker.clear_cache()

        log_operation(
            logger,
            operation="add_bom_item",
            outcome="success",
            bom_id=bom.id,
            item_id=item.id,
            component_id=item.component_id,
            item_level=level,
            sequence=sequence,
        )

        return AddBOMItemResult(
            item=item,
            tree_node=self.tree_service.to_node(item, component, has_children=False),
            totals=self.tree_service.get_totals(bom.id),
            history_id=history.id,
            message=f"Component '{component.name}' added to BOM {bom.version}",
        )

    @staticmethod
    def _validate_add_request(request: AddBOMItemRequest, effective_date: datetime) -> None:
        errors = []
        for field_name in ("bom_id", "component_id", "unit", "created_by"):
            if not getattr(request, field_name):
                errors.append(f"{field_name}: {ERROR_REQUIRED_FIELD}")
        errors.extend(
            _validate_ranges(
                {
                    "quantity": request.quantity,
                    "scrap_rate": request.scrap_rate,
                    "unit_cost": request.unit_cost,
                    "is_optional": request.is_optional,
                    "effective_date": effective_date,
                    "expiry_date": request.expiry_date,
                    "position": request.position,
                    "process_step": request.process_step,
                }
            )
        )
        if errors:
            raise ValidationError(errors)

    def _precheck_indirect_reference(self, bom: BOM, component_id: str) -> None:
        """Reject if the owner product appears anywhere below the component's active BOM."""
        component_bom = self.bom_store.find_active_by_product_id(component_id)
        if component_bom is None:
            return
        if self._bom_contains_product(component_bom, bom.product_id, {component_id}):
            raise CircularReferenceError(component_id, [bom.product_id, component_id, bom.product_id], 1)

    def _bom_contains_product(self, bom: BOM, product_id: str, visited: set) -> bool:
        for item in bom.items:
            if item.component_id == product_id:
                return True
            if item.component_id in visited:
                continue
            visited.add(item.component_id)
            sub_bom = self.bom_store.find_active_by_product_id(item.component_id)
            if sub_bom is not None and self._bom_contains_product(sub_bom, product_id, visited):
                return True
        return False

    # ==================================================================
    # Update
    # ==================================================================

    def update_item(self, request: UpdateBOMItemRequest) -> UpdateBOMItemResult:
        """
        Update mutable fields of a BOM item.

        Only fields present in request.changes and different from the stored
        value count as changed. A quantity change above 50% needs
        force_update. If the item is used elsewhere and quantity, unit cost or
        the optional flag change, a blocked result is returned unless forced.

        Args:
            request: UpdateBOMItemRequest

        Returns:
            UpdateBOMItemResult (success, or blocked with warnings)

        Raises:
            ValidationError: Unknown fields or out-of-range values
            BOMItemNotFound / BOMNotFound: Missing references
            InactiveBOMError: The owning BOM is not currently active
            NothingToUpdateError: No field actually changes
            CriticalComponentError: Critical component made optional
            OversizedChangeError: Unforced quantity change above 50%
            DatabaseError: If a store write fails
        """
        try:
            return self._update_item(request)
        except ServiceError as e:
            _log_rejection("update_bom_item", e, item_id=request.item_id)
            raise

    def _update_item(self, request: UpdateBOMItemRequest) -> UpdateBOMItemResult:
        now = utc_now()
        self._validate_update_request(request)

        item = self.item_store.find_by_id(request.item_id)
        if item is None:
            raise BOMItemNotFound(request.item_id)
        bom = self.bom_store.find_by_id(item.bom_id, include_items=False)
        if bom is None:
            raise BOMNotFound(item.bom_id)
        if not bom.is_currently_active(now):
            raise InactiveBOMError(bom.id)

        changed = {
            name: value
            for name, value in request.changes.items()
            if _values_differ(name, getattr(item, name), value)
        }
        if not changed:
            raise NothingToUpdateError(item.id)

        self._check_update_rules(item, changed, request.force_update)
        summary = self._summarize_changes(item, changed)

        usage = self.usage_checker.check_item_usage(item.id)
        warnings = []
        if usage.is_used and set(changed) & set(USAGE_SENSITIVE_FIELDS):
            warnings = [
                "This component is used by other systems",
                f"Affected references: {usage.usage_count}",
            ]
            if not request.force_update:
                log_operation(
                    logger,
                    operation="update_bom_item",
                    outcome="blocked_in_use",
                    level=logging.WARNING,
                    item_id=item.id,
                    usage_count=usage.usage_count,
                )
                return UpdateBOMItemResult(
                    success=False,
                    blocked=True,
                    message="Component is in use elsewhere; review the warnings or retry with force_update",
                    changes_summary=summary,
                    warnings=warnings,
                )
            log_operation(
                logger,
                operation="update_bom_item",
                outcome="forced_in_use",
                level=logging.WARNING,
                item_id=item.id,
                warnings=warnings,
            )

        updated = item.with_changes(**changed, updated_by=request.updated_by, updated_at=now)
        errors = updated.validation_errors()
        if errors:
            raise ValidationError(errors)

        self.item_store.save(updated)
        self._touch_bom(bom, request.updated_by, now)
        history = self._record(
            bom_id=bom.id,
            action=HistoryAction.UPDATE_ITEM,
            target_id=item.id,
            changes=[ChangedField(name, getattr(item, name), value) for name, value in changed.items()],
            user_id=request.updated_by,
            timestamp=now,
            reason=request.reason or "BOM item updated",
        )

        impact = self._analyze_update_impact(updated, summary) if summary.is_critical else None

        log_operation(
            logger,
            operation="update_bom_item",
            outcome="success",
            item_id=item.id,
            bom_id=bom.id,
            changed_fields=list(changed),
            critical=summary.is_critical,
        )

        return UpdateBOMItemResult(
            success=True,
            message=f"BOM item updated ({len(changed)} field(s) changed)",
            item=updated,
            changes_summary=summary,
            impact_analysis=impact,
            tree_node=self.tree_service.build_node(updated, self.item_store.has_children(updated.id)),
            totals=self.tree_service.get_totals(bom.id),
            history_id=history.id,
            warnings=warnings,
        )

    @staticmethod
    def _validate_update_request(request: UpdateBOMItemRequest) -> None:
        errors = []
        if not request.item_id:
            errors.append(f"item_id: {ERROR_REQUIRED_FIELD}")
        if not request.updated_by:
            errors.append(f"updated_by: {ERROR_REQUIRED_FIELD}")
        unknown = sorted(set(request.changes) - set(MUTABLE_FIELDS))
        if unknown:
            errors.append(f"changes: Fields cannot be updated: {', '.join(unknown)}")
        errors.extend(_validate_ranges(request.changes))
        if errors:
            raise ValidationError(errors)

    @staticmethod
    def _check_update_rules(item: BOMItem, changed: Dict[str, Any], force: bool) -> None:
        if changed.get("is_optional") is True and item.is_critical_component():
            raise CriticalComponentError(item.id)

        if "quantity" in changed:
            ratio = abs(changed["quantity"] - item.quantity) / item.quantity
            if ratio > QUANTITY_CHANGE_FORCE_RATIO and not force:
                raise OversizedChangeError("quantity", item.quantity, changed["quantity"], ratio)

    def _summarize_changes(self, item: BOMItem, changed: Dict[str, Any]) -> ChangesSummary:
        field_changes = []
        for name, new_value in changed.items():
            old_value = getattr(item, name)
            percentage = None
            if name in NUMERIC_FIELDS and old_value:
                percentage = (new_value - old_value) / old_value * 100
            field_changes.append(
                FieldChange(
                    field_name=name,
                    display_name=self.presenter.field_label(name),
                    old_value=old_value,
                    new_value=new_value,
                    direction=_direction(name, old_value, new_value),
                    percentage_change=percentage,
                )
            )

        cost_impact = 0.0
        quantity_impact = 0.0
        if "unit_cost" in changed:
            cost_impact += (changed["unit_cost"] - item.unit_cost) * item.quantity
        if "quantity" in changed:
            quantity_impact = changed["quantity"] - item.quantity
            cost_impact += quantity_impact * item.unit_cost

        is_critical = bool(set(changed) & set(CRITICAL_UPDATE_FIELDS)) or abs(cost_impact) > CRITICAL_COST_THRESHOLD
        return ChangesSummary(
            changed_fields=field_changes,
            cost_impact=cost_impact,
            quantity_impact=quantity_impact,
            is_critical=is_critical,
        )

    def _analyze_update_impact(self, item: BOMItem, summary: ChangesSummary) -> UpdateImpactAnalysis:
        affected = [descendant.id for descendant in self.item_store.find_all_descendants(item.id)]
        recommendations = []
        if summary.cost_impact > IMPACT_MEDIUM_COST:
            recommendations.append("Cost increase: review the product price")
        if affected:
            recommendations.append("Review the quantities of the child components as well")
        return UpdateImpactAnalysis(
            affected_item_ids=affected,
            total_cost_impact=summary.cost_impact,
            impact_level=_impact_tier(summary.cost_impact, len(affected)),
            recommendations=recommendations,
        )

    # ==================================================================
    # Delete
    # ==================================================================

    def delete_item(self, request: DeleteBOMItemRequest) -> DeleteBOMItemResult:
        """
        Logically delete a BOM item, optionally with all its descendants.

        Args:
            request: DeleteBOMItemRequest

        Returns:
            DeleteBOMItemResult; blocked (success=False) when the item is in
            use without force_delete, or has children without delete_children

        Raises:
            ValidationError: Missing request fields
            BOMItemNotFound / BOMNotFound: Missing references
            InactiveBOMError: The owning BOM is not currently active
            ChildrenExistError: Children found while deleting without delete_children
            DatabaseError: If a store write fails
        """
        try:
            return self._delete_item(request)
        except ServiceError as e:
            _log_rejection("delete_bom_item", e, item_id=request.item_id)
            raise

    def _delete_item(self, request: DeleteBOMItemRequest) -> DeleteBOMItemResult:
        now = utc_now()
        errors = []
        if not request.item_id:
            errors.append(f"item_id: {ERROR_REQUIRED_FIELD}")
        if not request.deleted_by:
            errors.append(f"deleted_by: {ERROR_REQUIRED_FIELD}")
        if errors:
            raise ValidationError(errors)

        item = self.item_store.find_by_id(request.item_id)
        if item is None:
            raise BOMItemNotFound(request.item_id)
        bom = self.bom_store.find_by_id(item.bom_id, include_items=False)
        if bom is None:
            raise BOMNotFound(item.bom_id)
        if not bom.is_currently_active(now):
            raise InactiveBOMError(bom.id)

        usage = self.usage_checker.check_item_usage(item.id)
        blocking_reasons = []
        warnings = []
        if usage.is_used and not request.force_delete:
            blocking_reasons.append(f"Component is in use by {usage.usage_count} external reference(s)")
        elif usage.is_used:
            warnings.append(f"Forced delete: component is in use by {usage.usage_count} external reference(s)")

        children_blocked = usage.has_children and not request.delete_children
        if children_blocked:
            blocking_reasons.append(
                f"Item has {usage.children_count} child item(s); "
                "delete them first or set delete_children"
            )

        items = [item]
        if request.delete_children:
            items.extend(self.item_store.find_all_descendants(item.id))

        if item.is_critical_component():
            warnings.append("This is a critical component; deleting it may affect production")
        cost_total = sum(candidate.total_cost for candidate in items)
        if cost_total > IMPACT_MEDIUM_COST:
            warnings.append(f"Expected cost savings: {cost_total:,.2f}")

        impact = self._analyze_deletion_impact(items)

        if blocking_reasons:
            log_operation(
                logger,
                operation="delete_bom_item",
                outcome="blocked",
                level=logging.WARNING,
                item_id=item.id,
                blocking_reasons=blocking_reasons,
            )
            return DeleteBOMItemResult(
                success=False,
                blocked=True,
                message="Cannot delete: " + "; ".join(blocking_reasons),
                summary=DeletionSummary(
                    children_handled=ChildrenHandling.BLOCKED if children_blocked else ChildrenHandling.NONE
                ),
                impact=impact,
                blocking_reasons=blocking_reasons,
                warnings=warnings,
                recommendations=self._blocked_recommendations(impact),
            )

        if not request.delete_children and self.item_store.has_children(item.id):
            raise ChildrenExistError(item.id, len(self.item_store.find_by_parent_id(item.id)))

        if warnings:
            log_operation(
                logger,
                operation="delete_bom_item",
                outcome="proceeding_with_warnings",
                level=logging.WARNING,
                item_id=item.id,
                warnings=warnings,
            )

        deleted_ids = []
        for target in items:
            self.item_store.delete(target.id, request.deleted_by, now)
            deleted_ids.append(target.id)
            self._record(
                bom_id=bom.id,
                action=HistoryAction.DELETE_ITEM,
                target_id=target.id,
                changes=[ChangedField("deleted", False, True)],
                user_id=request.deleted_by,
                timestamp=now,
                reason=request.reason or "BOM item deleted",
            )

        self._touch_bom(bom, request.deleted_by, now)
        self.cycle_checker.clear_cache()

        summary = self._summarize_deletion(items, request.delete_children)
        log_operation(
            logger,
            operation="delete_bom_item",
            outcome="success",
            item_id=item.id,
            bom_id=bom.id,
            total_deleted=summary.total_deleted,
            cost_savings=summary.cost_savings,
        )

        return DeleteBOMItemResult(
            success=True,
            message=f"{summary.total_deleted} BOM item(s) deleted",
            deleted_item_ids=deleted_ids,
            summary=summary,
            impact=impact,
            warnings=warnings,
            recommendations=self._post_deletion_recommendations(items),
            totals=self.tree_service.get_totals(bom.id),
        )

    def _analyze_deletion_impact(self, items: List[BOMItem]) -> DeletionImpact:
        total_cost = sum(item.total_cost for item in items)
        has_critical = any(item.is_critical_component() for item in items)

        if has_critical or total_cost > IMPACT_HIGH_COST:
            production_impact = ImpactLevel.HIGH
        elif total_cost > IMPACT_MEDIUM_COST or len(items) > IMPACT_MEDIUM_ITEM_COUNT:
            production_impact = ImpactLevel.MEDIUM
        else:
            production_impact = ImpactLevel.LOW

        if len(items) > IMPACT_HIGH_ITEM_COUNT or has_critical:
            recovery = RecoveryComplexity.HARD
        elif len(items) > IMPACT_MEDIUM_ITEM_COUNT:
            recovery = RecoveryComplexity.MEDIUM
        else:
            recovery = RecoveryComplexity.EASY

        processes = []
        for item in items:
            if item.process_step and item.process_step not in processes:
                processes.append(item.process_step)

        products = self.product_lookup.find_by_ids(
            item.component_id for item in items[:MAX_ALTERNATIVE_SUGGESTIONS]
        )
        alternatives = [
            f"Review products similar to {products[item.component_id].code}"
            for item in items[:MAX_ALTERNATIVE_SUGGESTIONS]
            if item.component_id in products
        ]

        return DeletionImpact(
            total_cost_impact=total_cost,
            production_impact=production_impact,
            affected_processes=processes,
            alternative_components=alternatives,
            recovery_complexity=recovery,
        )

    @staticmethod
    def _summarize_deletion(items: List[BOMItem], delete_children: bool) -> DeletionSummary:
        by_level: Dict[int, int] = {}
        for item in items:
            by_level[item.level] = by_level.get(item.level, 0) + 1

        handled = ChildrenHandling.NONE
        if delete_children and len(items) > 1:
            handled = ChildrenHandling.DELETED

        return DeletionSummary(
            total_deleted=len(items),
            deleted_by_level=by_level,
            cost_savings=sum(item.total_cost for item in items),
            affected_components=[item.component_id for item in items],
            children_handled=handled,
        )

    @staticmethod
    def _blocked_recommendations(impact: DeletionImpact) -> List[str]:
        recommendations = ["Resolve the blocking reasons and retry, or use force_delete for usage conflicts"]
        if impact.production_impact == ImpactLevel.HIGH:
            recommendations.append("Consult production planning before deleting")
        if impact.alternative_components:
            recommendations.append("Review alternative components first")
        return recommendations

    @staticmethod
    def _post_deletion_recommendations(items: List[BOMItem]) -> List[str]:
        recommendations = ["BOM total cost has been recalculated"]
        if len(items) > 1:
            recommendations.append("Review the related production plans")
        if any(item.process_step for item in items):
            recommendations.append("Check the work instructions of the affected process steps")
        recommendations.append("Deleted items can be restored from the BOM history if needed")
        return recommendations

    # ==================================================================
    # Shared
    # ==================================================================

    def _touch_bom(self, bom: BOM, user_id: str, timestamp: datetime) -> None:
        bom.updated_at = timestamp
        bom.updated_by = user_id
        self.bom_store.save(bom)

    def _record(
        self,
        bom_id: str,
        action: HistoryAction,
        target_id: str,
        changes: List[ChangedField],
        user_id: str,
        timestamp: datetime,
        reason: Optional[str],
    ) -> BOMHistory:
        record = BOMHistory.record(
            record_id=generate_id("BOMHIST"),
            bom_id=bom_id,
            action=action,
            target_type=HistoryTargetType.BOM_ITEM,
            target_id=target_id,
            changes=changes,
            user_id=user_id,
            timestamp=timestamp,
            reason=reason,
        )
        return self.history_store.save(record)
