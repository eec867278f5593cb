"""
BOM Compare Service - structural and cost diff between two BOM trees.

Items are matched across BOMs by component code plus ancestor path (the
chain of ancestor component codes from the root), because item ids differ
between versions. A key present only in the target is added, only in the
source is removed; keys present in both are compared field by field.
"""

import logging
from typing import Dict, List, Optional

from ..models import (
    BOM,
    BOMHistory,
    ChangeDirection,
    ChangedField,
    DifferenceType,
    HistoryAction,
    HistoryTargetType,
    ImpactLevel,
    Product,
    StructuralChangeType,
)
from ..utils.constants import (
    ANCESTOR_PATH_SEPARATOR,
    COMPLEXITY_HIGH_CHANGES,
    COMPLEXITY_HIGH_STRUCTURAL,
    COMPLEXITY_MEDIUM_CHANGES,
    COMPLEXITY_MEDIUM_STRUCTURAL,
    CONFIDENCE_FULL,
    CONFIDENCE_LARGE_COST_SWING,
    CONFIDENCE_REVIEW_BELOW,
    CONFIDENCE_STRUCTURAL_DOMINANT,
    ERROR_REQUIRED_FIELD,
    LARGE_COST_SWING_PERCENT,
    RECOMMEND_COST_REVIEW_PERCENT,
    RECOMMEND_REVIEW_MAJOR_CHANGES,
    RECOMMEND_STRUCTURE_REVIEW_COUNT,
    SIGNIFICANCE_HIGH_COST,
    SIGNIFICANCE_HIGH_DELETE_COST,
    SIGNIFICANCE_MEDIUM_COST,
    STRUCTURAL_DOMINANCE_RATIO,
)
from ..utils.datetime_utils import utc_now
from ..utils.id_utils import generate_id
from .bom_repositories import BOMHistoryStore, BOMStore, ProductLookup
from .dto import (
    BOMComparisonInfo,
    BOMDifferences,
    BOMItemSnapshot,
    CompareBOMRequest,
    CompareBOMResult,
    CompareOptions,
    ComparisonDifference,
    ComparisonSummary,
    CostChange,
    FieldChange,
    ItemComparison,
    StructuralChange,
)
from .exceptions import (
    BOMNotFound,
    DatabaseError,
    SameBOMComparisonError,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .presenter import BOMPresenter

logger = get_service_logger(__name__)

# Fields compared on matched items, in report order
COMPARED_FIELDS = ("quantity", "unit_cost", "scrap_rate", "is_optional", "position", "process_step")
NUMERIC_FIELDS = ("quantity", "unit_cost", "scrap_rate")


def significance(cost_impact: float, change_type: DifferenceType) -> ImpactLevel:
    """Significance tier of an item change; removals weigh more."""
    magnitude = abs(cost_impact)
    if change_type == DifferenceType.REMOVED and magnitude > SIGNIFICANCE_HIGH_DELETE_COST:
        return ImpactLevel.HIGH
    if magnitude > SIGNIFICANCE_HIGH_COST:
        return ImpactLevel.HIGH
    if magnitude > SIGNIFICANCE_MEDIUM_COST:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


class BOMCompareService:
    """Compares two BOMs."""

    def __init__(
        self,
        bom_store: BOMStore,
        history_store: BOMHistoryStore,
        product_lookup: ProductLookup,
        presenter: BOMPresenter,
    ):
        self.bom_store = bom_store
        self.history_store = history_store
        self.product_lookup = product_lookup
        self.presenter = presenter

    def compare_boms(self, request: CompareBOMRequest) -> CompareBOMResult:
        """
        Compare a source BOM with a target BOM.

        Args:
            request: CompareBOMRequest

        Returns:
            CompareBOMResult with per-item differences, summary,
            recommendations and a flat difference list

        Raises:
            ValidationError: Missing ids or negative threshold/level
            SameBOMComparisonError: Source and target ids are equal
            BOMNotFound: Either BOM doesn't exist
            DatabaseError: If a store call fails
        """
        try:
            return self._compare_boms(request)
        except ServiceError as e:
            level = logging.ERROR if isinstance(e, DatabaseError) else logging.WARNING
            log_operation(
                logger,
                operation="compare_boms",
                outcome=type(e).__name__,
                level=level,
                error=str(e),
                source_bom_id=request.source_bom_id,
                target_bom_id=request.target_bom_id,
            )
            raise

    def _compare_boms(self, request: CompareBOMRequest) -> CompareBOMResult:
        self._validate_request(request)
        options = request.options

        source = self.bom_store.find_by_id(request.source_bom_id)
        if source is None:
            raise BOMNotFound(request.source_bom_id)
        target = self.bom_store.find_by_id(request.target_bom_id)
        if target is None:
            raise BOMNotFound(request.target_bom_id)

        products = self.product_lookup.find_by_ids(
            [source.product_id, target.product_id]
            + [item.component_id for item in source.items + target.items]
        )

        source_info = self.comparison_info(source, products)
        target_info = self.comparison_info(target, products)
        source_snapshots = self.build_snapshots(source, options, products)
        target_snapshots = self.build_snapshots(target, options, products)

        differences = self.diff_snapshots(source_snapshots, target_snapshots, options)
        summary = self.summarize(differences, source_info, target_info)
        recommendations = self.recommend(differences, summary)

        history_id = None
        if request.requested_by:
            history_id = self._record_comparison(request, summary).id

        log_operation(
            logger,
            operation="compare_boms",
            outcome="success",
            source_bom_id=source.id,
            target_bom_id=target.id,
            total_changes=summary.total_changes,
            confidence_level=summary.confidence_level,
        )

        return CompareBOMResult(
            comparison_id=generate_id("BOMCOMP"),
            source_info=source_info,
            target_info=target_info,
            differences=differences,
            summary=summary,
            recommendations=recommendations,
            difference_list=self.difference_list(differences),
            source_snapshots=source_snapshots,
            target_snapshots=target_snapshots,
            compared_at=utc_now(),
            history_id=history_id,
        )

    @staticmethod
    def _validate_request(request: CompareBOMRequest) -> None:
        errors = []
        if not request.source_bom_id:
            errors.append(f"source_bom_id: {ERROR_REQUIRED_FIELD}")
        if not request.target_bom_id:
            errors.append(f"target_bom_id: {ERROR_REQUIRED_FIELD}")
        if request.options.minor_cost_threshold < 0:
            errors.append("minor_cost_threshold: Value must be zero or greater")
        if request.options.compare_to_level is not None and request.options.compare_to_level < 0:
            errors.append("compare_to_level: Value must be zero or greater")
        if errors:
            raise ValidationError(errors)
        if request.source_bom_id == request.target_bom_id:
            raise SameBOMComparisonError(request.source_bom_id)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @staticmethod
    def comparison_info(bom: BOM, products: Dict[str, Product]) -> BOMComparisonInfo:
        product = products.get(bom.product_id)
        return BOMComparisonInfo(
            bom_id=bom.id,
            product_code=product.code if product else "Unknown",
            product_name=product.name if product else "Unknown Product",
            version=bom.version,
            total_items=bom.item_count,
            total_cost=bom.calculate_total_cost(),
            max_level=bom.max_level,
            last_updated=bom.updated_at,
        )

    def build_snapshots(
        self, bom: BOM, options: CompareOptions, products: Optional[Dict[str, Product]] = None
    ) -> List[BOMItemSnapshot]:
        """
        Flatten a BOM into snapshots after applying the comparison filters.

        Items whose component is unknown to the product lookup are skipped.
        """
        if products is None:
            products = self.product_lookup.find_by_ids(item.component_id for item in bom.items)
        index = {item.id: item for item in bom.items}

        snapshots = []
        for item in bom.items:
            if options.ignore_inactive_items and not item.is_currently_active():
                continue
            if options.ignore_optional_items and item.is_optional:
                continue
            if options.compare_to_level is not None and item.level > options.compare_to_level:
                continue
            product = products.get(item.component_id)
            if product is None:
                continue

            snapshots.append(
                BOMItemSnapshot(
                    item_id=item.id,
                    component_id=item.component_id,
                    component_code=product.code,
                    component_name=product.name,
                    component_type=item.component_type,
                    level=item.level,
                    sequence=item.sequence,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                    total_cost=item.total_cost,
                    scrap_rate=item.scrap_rate,
                    is_optional=bool(item.is_optional),
                    position=item.position,
                    process_step=item.process_step,
                    remarks=item.remarks,
                    parent_path=self._ancestor_path(item, index, products),
                )
            )
        return snapshots

    @staticmethod
    def _ancestor_path(item, index, products: Dict[str, Product]) -> str:
        codes = []
        visited = set()
        parent_id = item.parent_item_id
        while parent_id and parent_id not in visited:
            visited.add(parent_id)
            parent = index.get(parent_id)
            if parent is None:
                break
            product = products.get(parent.component_id)
            if product is not None:
                codes.append(product.code)
            parent_id = parent.parent_item_id
        return ANCESTOR_PATH_SEPARATOR.join(reversed(codes))

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def diff_snapshots(
        self,
        source_snapshots: List[BOMItemSnapshot],
        target_snapshots: List[BOMItemSnapshot],
        options: CompareOptions,
    ) -> BOMDifferences:
        """Classify matched keys as added, removed or modified."""
        source_map = {snapshot.match_key: snapshot for snapshot in source_snapshots}
        target_map = {snapshot.match_key: snapshot for snapshot in target_snapshots}
        differences = BOMDifferences()

        for key, target_item in target_map.items():
            if key not in source_map:
                differences.added_items.append(
                    ItemComparison(
                        change_type=DifferenceType.ADDED,
                        cost_impact=target_item.total_cost,
                        significance=significance(target_item.total_cost, DifferenceType.ADDED),
                        target_item=target_item,
                    )
                )

        for key, source_item in source_map.items():
            target_item = target_map.get(key)
            if target_item is None:
                differences.removed_items.append(
                    ItemComparison(
                        change_type=DifferenceType.REMOVED,
                        cost_impact=-source_item.total_cost,
                        significance=significance(source_item.total_cost, DifferenceType.REMOVED),
                        source_item=source_item,
                    )
                )
                continue

            changed_fields = self.compare_fields(source_item, target_item, options)
            if not changed_fields:
                continue

            cost_impact = target_item.total_cost - source_item.total_cost
            names = {change.field_name for change in changed_fields}
            if "quantity" in names:
                change_type = DifferenceType.QUANTITY_CHANGED
            elif "unit_cost" in names:
                change_type = DifferenceType.COST_CHANGED
            else:
                change_type = DifferenceType.PROPERTIES_CHANGED

            differences.modified_items.append(
                ItemComparison(
                    change_type=change_type,
                    cost_impact=cost_impact,
                    significance=significance(cost_impact, change_type),
                    source_item=source_item,
                    target_item=target_item,
                    changed_fields=changed_fields,
                )
            )
            if options.include_cost_impact_analysis and cost_impact != 0:
                differences.cost_changes.append(
                    CostChange(
                        component_code=source_item.component_code,
                        old_value=source_item.total_cost,
                        new_value=target_item.total_cost,
                        difference=cost_impact,
                        percentage_change=(
                            cost_impact / source_item.total_cost * 100 if source_item.total_cost > 0 else 0.0
                        ),
                    )
                )
            if options.include_structural_analysis:
                differences.structural_changes.extend(self.structural_changes(source_item, target_item))

        return differences

    def compare_fields(
        self, source_item: BOMItemSnapshot, target_item: BOMItemSnapshot, options: CompareOptions
    ) -> List[FieldChange]:
        ignored = set(options.ignore_fields)
        changes = []
        for name in COMPARED_FIELDS:
            if name in ignored:
                continue
            old_value = getattr(source_item, name)
            new_value = getattr(target_item, name)
            if old_value == new_value:
                continue
            if (
                name == "unit_cost"
                and options.ignore_minor_cost_changes
                and abs(new_value - old_value) <= options.minor_cost_threshold
            ):
                continue

            if name in NUMERIC_FIELDS:
                direction = ChangeDirection.INCREASE if new_value > old_value else ChangeDirection.DECREASE
                percentage = (new_value - old_value) / old_value * 100 if old_value else 0.0
            else:
                direction = ChangeDirection.CHANGE
                percentage = None
            changes.append(
                FieldChange(
                    field_name=name,
                    display_name=self.presenter.field_label(name),
                    old_value=old_value,
                    new_value=new_value,
                    direction=direction,
                    percentage_change=percentage,
                )
            )
        return changes

    @staticmethod
    def structural_changes(source_item: BOMItemSnapshot, target_item: BOMItemSnapshot) -> List[StructuralChange]:
        changes = []
        if source_item.level != target_item.level:
            step = abs(target_item.level - source_item.level)
            changes.append(
                StructuralChange(
                    change_type=StructuralChangeType.LEVEL_CHANGE,
                    component_code=source_item.component_code,
                    description=f"Level changed from {source_item.level} to {target_item.level}",
                    impact=ImpactLevel.HIGH if step > 1 else ImpactLevel.MEDIUM,
                )
            )
        if source_item.parent_path != target_item.parent_path:
            changes.append(
                StructuralChange(
                    change_type=StructuralChangeType.PARENT_CHANGE,
                    component_code=source_item.component_code,
                    description=f"Parent changed: {source_item.parent_path} -> {target_item.parent_path}",
                    impact=ImpactLevel.HIGH,
                )
            )
        if source_item.sequence != target_item.sequence:
            changes.append(
                StructuralChange(
                    change_type=StructuralChangeType.SEQUENCE_CHANGE,
                    component_code=source_item.component_code,
                    description=f"Sequence changed from {source_item.sequence} to {target_item.sequence}",
                    impact=ImpactLevel.LOW,
                )
            )
        return changes

    # ------------------------------------------------------------------
    # Summary and recommendations
    # ------------------------------------------------------------------

    @staticmethod
    def summarize(
        differences: BOMDifferences, source_info: BOMComparisonInfo, target_info: BOMComparisonInfo
    ) -> ComparisonSummary:
        all_changes = differences.added_items + differences.removed_items + differences.modified_items
        total_changes = len(all_changes)
        structural = len(differences.structural_changes)

        cost_difference = target_info.total_cost - source_info.total_cost
        percentage = cost_difference / source_info.total_cost * 100 if source_info.total_cost > 0 else 0.0

        if total_changes > COMPLEXITY_HIGH_CHANGES or structural > COMPLEXITY_HIGH_STRUCTURAL:
            complexity = ImpactLevel.HIGH
        elif total_changes > COMPLEXITY_MEDIUM_CHANGES or structural > COMPLEXITY_MEDIUM_STRUCTURAL:
            complexity = ImpactLevel.MEDIUM
        else:
            complexity = ImpactLevel.LOW

        confidence = CONFIDENCE_FULL
        if structural > total_changes * STRUCTURAL_DOMINANCE_RATIO:
            confidence = CONFIDENCE_STRUCTURAL_DOMINANT
        if abs(percentage) > LARGE_COST_SWING_PERCENT:
            confidence = min(confidence, CONFIDENCE_LARGE_COST_SWING)

        return ComparisonSummary(
            total_changes=total_changes,
            added_count=len(differences.added_items),
            removed_count=len(differences.removed_items),
            modified_count=len(differences.modified_items),
            total_cost_difference=cost_difference,
            cost_change_percentage=percentage,
            major_changes=sum(1 for change in all_changes if change.significance == ImpactLevel.HIGH),
            structural_changes=structural,
            complexity=complexity,
            confidence_level=confidence,
        )

    @staticmethod
    def recommend(differences: BOMDifferences, summary: ComparisonSummary) -> List[str]:
        recommendations = []
        if summary.major_changes > RECOMMEND_REVIEW_MAJOR_CHANGES:
            recommendations.append(
                "Many major changes: review with the quality and production planning teams"
            )
        if abs(summary.cost_change_percentage) > RECOMMEND_COST_REVIEW_PERCENT:
            recommendations.append(
                f"Total cost changed by {summary.cost_change_percentage:.1f}%: a cost review is needed"
            )
        if summary.structural_changes > RECOMMEND_STRUCTURE_REVIEW_COUNT:
            recommendations.append("Many structural changes: re-check the BOM tree structure")

        high_impact_removals = sum(
            1 for removed in differences.removed_items if removed.significance == ImpactLevel.HIGH
        )
        if high_impact_removals:
            recommendations.append(
                f"{high_impact_removals} significant component(s) removed: confirm production feasibility"
            )
        if len(differences.added_items) > len(differences.removed_items) * 2:
            recommendations.append("Many components added: update inventory and procurement plans")
        if summary.confidence_level < CONFIDENCE_REVIEW_BELOW:
            recommendations.append("Low comparison confidence: review the major changes manually")

        if not recommendations:
            recommendations.append("Comparison completed with no issues to review")
        return recommendations

    @staticmethod
    def difference_list(differences: BOMDifferences) -> List[ComparisonDifference]:
        """Flatten the differences for side-by-side display."""
        entries = []
        for added in differences.added_items:
            entries.append(
                ComparisonDifference(
                    difference_type=DifferenceType.ADDED,
                    description=f"Component added: {added.target_item.component_name}",
                    target_item=added.target_item,
                )
            )
        for removed in differences.removed_items:
            entries.append(
                ComparisonDifference(
                    difference_type=DifferenceType.REMOVED,
                    description=f"Component removed: {removed.source_item.component_name}",
                    source_item=removed.source_item,
                )
            )
        for modified in differences.modified_items:
            labels = ", ".join(change.display_name for change in modified.changed_fields)
            entries.append(
                ComparisonDifference(
                    difference_type=modified.change_type,
                    description=f"{modified.source_item.component_name} - changed: {labels}",
                    source_item=modified.source_item,
                    target_item=modified.target_item,
                )
            )
        return entries

    def _record_comparison(self, request: CompareBOMRequest, summary: ComparisonSummary) -> BOMHistory:
        record = BOMHistory.record(
            record_id=generate_id("BOMHIST"),
            bom_id=request.source_bom_id,
            action=HistoryAction.COMPARE_BOM,
            target_type=HistoryTargetType.BOM_COMPARISON,
            target_id=f"{request.source_bom_id}_vs_{request.target_bom_id}",
            changes=[
                ChangedField("target_bom_id", None, request.target_bom_id),
                ChangedField("total_changes", None, summary.total_changes),
                ChangedField("cost_difference", None, summary.total_cost_difference),
                ChangedField("confidence_level", None, summary.confidence_level),
            ],
            user_id=request.requested_by,
            timestamp=utc_now(),
            reason=f"BOM comparison: {summary.total_changes} change(s) found",
        )
        return self.history_store.save(record)
