"""
BOM Copy Service - clone a filtered subset of a BOM into a new version.

The copy creates a new active BOM for the target product, then clones the
selected source items parents-first, remapping parent ids through an
old-id -> new-id map. Items whose parent was filtered out are re-attached
to their nearest copied ancestor (or become roots); with
preserve_structure=False every copied item becomes a root.
"""

import logging
from typing import Dict, List, Optional

from ..models import (
    BOM,
    BOMHistory,
    BOMItem,
    ChangedField,
    HistoryAction,
    HistoryTargetType,
)
from ..utils.constants import (
    ERROR_REQUIRED_FIELD,
    MAX_COST_ADJUSTMENT_RATE,
    MAX_VERSION_LENGTH,
    MIN_COST_ADJUSTMENT_RATE,
    UNASSIGNED_PROCESS_STEP,
)
from ..utils.datetime_utils import ensure_utc, utc_now
from ..utils.id_utils import generate_id
from .bom_repositories import BOMHistoryStore, BOMItemStore, BOMStore, ProductLookup
from .cycle_check_service import BOMCycleChecker
from .dto import CopyBOMRequest, CopyBOMResult, CopyOptions, CopyStatistics
from .exceptions import (
    BOMNotFound,
    CircularReferenceError,
    DatabaseError,
    DuplicateVersionError,
    EmptyCopySelectionError,
    InvalidProductError,
    ProductNotFound,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

# Target products with more versions than this get a warning in the log
MANY_VERSIONS_WARNING = 10


class BOMCopyService:
    """Copies BOMs between products and versions."""

    def __init__(
        self,
        bom_store: BOMStore,
        item_store: BOMItemStore,
        history_store: BOMHistoryStore,
        product_lookup: ProductLookup,
        cycle_checker: BOMCycleChecker,
    ):
        self.bom_store = bom_store
        self.item_store = item_store
        self.history_store = history_store
        self.product_lookup = product_lookup
        self.cycle_checker = cycle_checker

    def copy_bom(self, request: CopyBOMRequest) -> CopyBOMResult:
        """
        Copy a BOM into a new version for a target product.

        Args:
            request: CopyBOMRequest with source, target, version and options

        Returns:
            CopyBOMResult with the new BOM, copied items, id mapping,
            skipped source ids, statistics and warnings

        Raises:
            ValidationError: Missing fields, bad rate or dates
            BOMNotFound: Source BOM doesn't exist
            ProductNotFound: Target product doesn't exist
            InvalidProductError: Target product cannot own a BOM
            DuplicateVersionError: Version already used for the target product
            EmptyCopySelectionError: Filters exclude every source item
            CircularReferenceError: A copied component would contain the target product
            DatabaseError: If a store write fails
        """
        try:
            return self._copy_bom(request)
        except ServiceError as e:
            level = logging.ERROR if isinstance(e, DatabaseError) else logging.WARNING
            log_operation(
                logger,
                operation="copy_bom",
                outcome=type(e).__name__,
                level=level,
                error=str(e),
                source_bom_id=request.source_bom_id,
                target_product_id=request.target_product_id,
            )
            raise

    def _copy_bom(self, request: CopyBOMRequest) -> CopyBOMResult:
        now = utc_now()
        effective_date = request.effective_date or now
        options = request.options
        self._validate_request(request, effective_date)

        source = self.bom_store.find_by_id(request.source_bom_id)
        if source is None:
            raise BOMNotFound(request.source_bom_id)
        if not source.is_currently_active(now):
            log_operation(
                logger,
                operation="copy_bom",
                outcome="inactive_source",
                level=logging.WARNING,
                source_bom_id=source.id,
            )

        target_product = self.product_lookup.find_by_id(request.target_product_id)
        if target_product is None:
            raise ProductNotFound(request.target_product_id)
        if not target_product.can_have_bom():
            raise InvalidProductError(target_product.id)
        if self.bom_store.find_by_product_id_and_version(target_product.id, request.new_version):
            raise DuplicateVersionError(target_product.id, request.new_version)

        existing_versions = len(self.bom_store.find_by_product_id(target_product.id))
        if existing_versions > MANY_VERSIONS_WARNING:
            log_operation(
                logger,
                operation="copy_bom",
                outcome="many_versions",
                level=logging.WARNING,
                target_product_id=target_product.id,
                version_count=existing_versions,
            )

        selected = self.filter_items(source.items, options, now)
        if not selected:
            raise EmptyCopySelectionError(source.id)
        selected_ids = {item.id for item in selected}
        skipped = [item for item in source.items if item.id not in selected_ids]

        for component_id in sorted({item.component_id for item in selected}):
            cycle = self.cycle_checker.check_component_addition(target_product.id, component_id)
            if cycle.has_cycle:
                raise CircularReferenceError(component_id, cycle.path, cycle.depth or 0)

        new_bom = BOM(
            id=generate_id("BOM"),
            product_id=target_product.id,
            version=request.new_version,
            is_active=True,
            effective_date=effective_date,
            expiry_date=request.expiry_date,
            description=request.description or f"Copied from {source.version}",
            created_by=request.created_by,
            updated_by=request.created_by,
            created_at=now,
            updated_at=now,
        )
        self.bom_store.save(new_bom)

        copied, mapping = self._copy_items(source.items, selected, new_bom, request, effective_date, now)
        new_bom.items = copied
        statistics = self.calculate_statistics(source, copied, len(skipped), options)

        warnings = []
        if skipped:
            warnings.append(f"{len(skipped)} item(s) excluded by the copy filters")
        if options.adjust_costs:
            warnings.append(f"All unit costs adjusted by {options.cost_adjustment_rate}%")

        history = self.history_store.save(
            BOMHistory.record(
                record_id=generate_id("BOMHIST"),
                bom_id=new_bom.id,
                action=HistoryAction.COPY_BOM,
                target_type=HistoryTargetType.BOM,
                target_id=new_bom.id,
                changes=[
                    ChangedField("source_bom_id", None, source.id),
                    ChangedField("source_version", None, source.version),
                    ChangedField("target_product_id", None, target_product.id),
                    ChangedField("copied_item_count", None, len(copied)),
                    ChangedField(
                        "cost_adjustment_rate",
                        None,
                        options.cost_adjustment_rate if options.adjust_costs else 0,
                    ),
                ],
                user_id=request.created_by,
                timestamp=now,
                reason=f"Copied from {source.version}",
            )
        )
        self.cycle_checker.clear_cache()

        log_operation(
            logger,
            operation="copy_bom",
            outcome="success",
            source_bom_id=source.id,
            new_bom_id=new_bom.id,
            copied_items=len(copied),
            skipped_items=len(skipped),
        )

        return CopyBOMResult(
            new_bom=new_bom,
            copied_items=copied,
            id_mapping=mapping,
            skipped_item_ids=[item.id for item in skipped],
            statistics=statistics,
            warnings=warnings,
            history_id=history.id,
            message=f"BOM copied ({len(copied)} item(s), version {request.new_version})",
        )

    @staticmethod
    def _validate_request(request: CopyBOMRequest, effective_date) -> None:
        errors = []
        for field_name in ("source_bom_id", "target_product_id", "created_by"):
            if not getattr(request, field_name):
                errors.append(f"{field_name}: {ERROR_REQUIRED_FIELD}")
        if not request.new_version or not request.new_version.strip():
            errors.append(f"new_version: {ERROR_REQUIRED_FIELD}")
        elif len(request.new_version) > MAX_VERSION_LENGTH:
            errors.append(f"new_version: Must be at most {MAX_VERSION_LENGTH} characters")

        options = request.options
        rate = options.cost_adjustment_rate
        if options.adjust_costs and rate is None:
            errors.append("cost_adjustment_rate: Required when adjust_costs is set")
        if rate is not None and not (MIN_COST_ADJUSTMENT_RATE <= rate <= MAX_COST_ADJUSTMENT_RATE):
            errors.append(
                f"cost_adjustment_rate: Must be between {MIN_COST_ADJUSTMENT_RATE:g}% "
                f"and {MAX_COST_ADJUSTMENT_RATE:g}%"
            )
        if options.copy_to_level is not None and options.copy_to_level < 0:
            errors.append("copy_to_level: Must be zero or greater")

        effective = ensure_utc(effective_date)
        if effective > utc_now():
            errors.append("effective_date: Cannot be in the future")
        if request.expiry_date is not None and ensure_utc(request.expiry_date) <= effective:
            errors.append("expiry_date: Must be after effective_date")

        if errors:
            raise ValidationError(errors)

    @staticmethod
    def filter_items(items: List[BOMItem], options: CopyOptions, now=None) -> List[BOMItem]:
        """
        Apply the copy filters (all ANDed).

        Args:
            items: Source items
            options: CopyOptions
            now: Reference time for the activity filter

        Returns:
            Items that pass every filter, in source order
        """
        selected = []
        for item in items:
            if not options.include_inactive_items and not item.is_currently_active(now):
                continue
            if not options.include_optional_items and item.is_optional:
                continue
            if options.copy_to_level is not None and item.level > options.copy_to_level:
                continue
            if options.component_types and item.component_type not in options.component_types:
                continue
            if options.process_steps and item.process_step not in options.process_steps:
                continue
            selected.append(item)
        return selected

    @staticmethod
    def adjusted_cost(unit_cost: float, options: CopyOptions) -> float:
        if not options.adjust_costs or not options.cost_adjustment_rate:
            return unit_cost
        return unit_cost * (1 + options.cost_adjustment_rate / 100)

    def _copy_items(
        self,
        source_items: List[BOMItem],
        selected: List[BOMItem],
        new_bom: BOM,
        request: CopyBOMRequest,
        effective_date,
        now,
    ):
        options = request.options
        source_index = {item.id: item for item in source_items}
        mapping: Dict[str, str] = {}
        new_levels: Dict[str, int] = {}
        sibling_sequences: Dict[Optional[str], set] = {}
        copied = []

        for source_item in sorted(selected, key=lambda i: (i.level, i.sequence)):
            new_parent_id = None
            if options.preserve_structure:
                new_parent_id = self._nearest_copied_ancestor(source_item, source_index, mapping)
            level = 0 if new_parent_id is None else new_levels[new_parent_id] + 1

            used = sibling_sequences.setdefault(new_parent_id, set())
            sequence = source_item.sequence
            if sequence in used:
                sequence = max(used) + 1
            used.add(sequence)

            item_effective = effective_date if options.update_effective_dates else source_item.effective_date
            expiry = source_item.expiry_date
            if expiry is not None and ensure_utc(expiry) <= ensure_utc(item_effective):
                expiry = request.expiry_date

            new_item = BOMItem(
                id=generate_id("BOMITEM"),
                bom_id=new_bom.id,
                component_id=source_item.component_id,
                parent_item_id=new_parent_id,
                level=level,
                sequence=sequence,
                quantity=source_item.quantity,
                unit=source_item.unit,
                unit_cost=self.adjusted_cost(source_item.unit_cost, options),
                scrap_rate=source_item.scrap_rate,
                is_optional=source_item.is_optional,
                component_type=source_item.component_type,
                effective_date=item_effective,
                expiry_date=expiry,
                position=source_item.position,
                process_step=source_item.process_step,
                remarks=source_item.remarks,
                is_deleted=False,
                created_by=request.created_by,
                updated_by=request.created_by,
                created_at=now,
                updated_at=now,
            )
            self.item_store.save(new_item)
            mapping[source_item.id] = new_item.id
            new_levels[new_item.id] = level
            copied.append(new_item)

        return copied, mapping

    @staticmethod
    def _nearest_copied_ancestor(
        item: BOMItem, source_index: Dict[str, BOMItem], mapping: Dict[str, str]
    ) -> Optional[str]:
        visited = set()
        parent_id = item.parent_item_id
        while parent_id and parent_id not in visited:
            if parent_id in mapping:
                return mapping[parent_id]
            visited.add(parent_id)
            parent = source_index.get(parent_id)
            parent_id = parent.parent_item_id if parent else None
        return None

    @staticmethod
    def calculate_statistics(
        source: BOM, copied: List[BOMItem], skipped_count: int, options: CopyOptions
    ) -> CopyStatistics:
        statistics = CopyStatistics(
            total_source_items=len(source.items),
            copied_items=len(copied),
            skipped_items=skipped_count,
        )
        for item in copied:
            statistics.copied_by_level[item.level] = statistics.copied_by_level.get(item.level, 0) + 1
            type_key = getattr(item.component_type, "value", item.component_type)
            statistics.component_type_breakdown[type_key] = statistics.component_type_breakdown.get(type_key, 0) + 1
            step = item.process_step or UNASSIGNED_PROCESS_STEP
            statistics.process_step_breakdown[step] = statistics.process_step_breakdown.get(step, 0) + 1

        statistics.original_total_cost = source.calculate_total_cost()
        statistics.new_total_cost = sum(item.total_cost for item in copied)
        statistics.cost_difference = statistics.new_total_cost - statistics.original_total_cost
        if statistics.original_total_cost > 0:
            statistics.cost_change_percentage = statistics.cost_difference / statistics.original_total_cost * 100
        if options.adjust_costs and options.cost_adjustment_rate:
            statistics.adjusted_items_count = len(copied)
        return statistics
