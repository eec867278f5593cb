"""Data Transfer Objects for the BOM engine service layer.

Requests carry caller input into the item, copy and comparison services;
results carry everything a caller needs to present the outcome. Results
reference ORM entities (BOM, BOMItem) only where the caller is expected to
keep working with them; everything else is plain data.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.enums import (
    ChangeDirection,
    ChildrenHandling,
    ComponentType,
    DifferenceType,
    ImpactLevel,
    RecoveryComplexity,
    StructuralChangeType,
    UsageType,
)


# ============================================================================
# Collaborator results
# ============================================================================


@dataclass
class CycleCheckOptions:
    """Options for a cycle check.

    Attributes:
        max_depth: Deepest level the search descends to (default 50)
        include_self_reference: Report owner == candidate as a cycle
        use_cache: Read and write the injected result cache
    """

    max_depth: int = 50
    include_self_reference: bool = True
    use_cache: bool = True

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError("max_depth must be >= 1")


@dataclass(frozen=True)
class CycleCheckResult:
    """Outcome of a cycle check.

    Attributes:
        has_cycle: True if the candidate edge closes a cycle
        path: Product ids along the cycle, starting at the owner
        depth: Depth at which the cycle was found
        depth_limit_reached: True if part of the graph was not searched
    """

    has_cycle: bool
    path: List[str] = field(default_factory=list)
    depth: Optional[int] = None
    depth_limit_reached: bool = False


@dataclass(frozen=True)
class ItemUsage:
    """One external reference to a BOM item."""

    usage_type: UsageType
    reference_id: str
    reference_name: Optional[str] = None
    status: Optional[str] = None
    importance: ImpactLevel = ImpactLevel.MEDIUM


@dataclass
class UsageReport:
    """Usage-checker answer for one BOM item."""

    item_id: str
    usages: List[ItemUsage] = field(default_factory=list)
    has_children: bool = False
    children_count: int = 0

    @property
    def is_used(self) -> bool:
        return len(self.usages) > 0

    @property
    def usage_count(self) -> int:
        return len(self.usages)


# ============================================================================
# Tree projection
# ============================================================================


@dataclass
class BOMTreeNode:
    """Display-ready projection of a BOM item and its children."""

    id: str
    bom_id: str
    component_id: str
    component_code: str
    component_name: str
    component_type: ComponentType
    component_type_label: str
    parent_item_id: Optional[str]
    level: int
    sequence: int
    quantity: float
    unit: str
    unit_cost: float
    scrap_rate: float
    actual_quantity: float
    total_cost: float
    is_optional: bool
    is_active: bool
    position: Optional[str] = None
    process_step: Optional[str] = None
    remarks: Optional[str] = None
    has_children: bool = False
    children: List["BOMTreeNode"] = field(default_factory=list)

    def flatten(self) -> List["BOMTreeNode"]:
        """Depth-first list of this node and all descendants."""
        nodes = [self]
        for child in self.children:
            nodes.extend(child.flatten())
        return nodes


@dataclass(frozen=True)
class BOMTotals:
    """Refreshed BOM totals returned after a mutation."""

    bom_id: str
    item_count: int
    total_cost: float
    max_level: int


# ============================================================================
# Add item
# ============================================================================


@dataclass
class AddBOMItemRequest:
    """Input for adding a component to a BOM."""

    bom_id: str
    component_id: str
    quantity: float
    unit: str
    unit_cost: float
    created_by: str
    effective_date: Optional[datetime] = None
    parent_item_id: Optional[str] = None
    scrap_rate: float = 0.0
    is_optional: bool = False
    component_type: ComponentType = ComponentType.RAW_MATERIAL
    expiry_date: Optional[datetime] = None
    position: Optional[str] = None
    process_step: Optional[str] = None
    remarks: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class AddBOMItemResult:
    item: Any
    tree_node: BOMTreeNode
    totals: BOMTotals
    history_id: str
    message: str


# ============================================================================
# Update item
# ============================================================================


@dataclass
class UpdateBOMItemRequest:
    """Input for updating a BOM item.

    Only keys present in `changes` are considered; a key whose value equals
    the stored value is not a change.
    """

    item_id: str
    updated_by: str
    changes: Dict[str, Any] = field(default_factory=dict)
    force_update: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class FieldChange:
    """One changed field with display metadata."""

    field_name: str
    display_name: str
    old_value: Any
    new_value: Any
    direction: ChangeDirection
    percentage_change: Optional[float] = None


@dataclass
class ChangesSummary:
    changed_fields: List[FieldChange] = field(default_factory=list)
    cost_impact: float = 0.0
    quantity_impact: float = 0.0
    is_critical: bool = False

    @property
    def field_names(self) -> List[str]:
        return [change.field_name for change in self.changed_fields]


@dataclass
class UpdateImpactAnalysis:
    """Impact of a critical update on the item's descendants."""

    affected_item_ids: List[str] = field(default_factory=list)
    total_cost_impact: float = 0.0
    impact_level: ImpactLevel = ImpactLevel.LOW
    recommendations: List[str] = field(default_factory=list)


@dataclass
class UpdateBOMItemResult:
    success: bool
    message: str
    item: Any = None
    changes_summary: Optional[ChangesSummary] = None
    impact_analysis: Optional[UpdateImpactAnalysis] = None
    tree_node: Optional[BOMTreeNode] = None
    totals: Optional[BOMTotals] = None
    history_id: Optional[str] = None
    blocked: bool = False
    warnings: List[str] = field(default_factory=list)


# ============================================================================
# Delete item
# ============================================================================


@dataclass
class DeleteBOMItemRequest:
    item_id: str
    deleted_by: str
    delete_children: bool = False
    force_delete: bool = False
    reason: Optional[str] = None


@dataclass
class DeletionSummary:
    total_deleted: int = 0
    deleted_by_level: Dict[int, int] = field(default_factory=dict)
    cost_savings: float = 0.0
    affected_components: List[str] = field(default_factory=list)
    children_handled: ChildrenHandling = ChildrenHandling.NONE


@dataclass
class DeletionImpact:
    total_cost_impact: float = 0.0
    production_impact: ImpactLevel = ImpactLevel.LOW
    affected_processes: List[str] = field(default_factory=list)
    alternative_components: List[str] = field(default_factory=list)
    recovery_complexity: RecoveryComplexity = RecoveryComplexity.EASY


@dataclass
class DeleteBOMItemResult:
    success: bool
    message: str
    deleted_item_ids: List[str] = field(default_factory=list)
    summary: DeletionSummary = field(default_factory=DeletionSummary)
    impact: Optional[DeletionImpact] = None
    blocked: bool = False
    blocking_reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    totals: Optional[BOMTotals] = None


# ============================================================================
# Copy
# ============================================================================


@dataclass
class CopyOptions:
    """Filters and adjustments applied while copying a BOM.

    All filters are ANDed. Empty type/step lists mean "no filter".
    """

    include_inactive_items: bool = False
    include_optional_items: bool = True
    adjust_costs: bool = False
    cost_adjustment_rate: Optional[float] = None
    copy_to_level: Optional[int] = None
    component_types: List[ComponentType] = field(default_factory=list)
    process_steps: List[str] = field(default_factory=list)
    preserve_structure: bool = True
    update_effective_dates: bool = False


@dataclass
class CopyBOMRequest:
    source_bom_id: str
    target_product_id: str
    new_version: str
    created_by: str
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    description: Optional[str] = None
    options: CopyOptions = field(default_factory=CopyOptions)


@dataclass
class CopyStatistics:
    total_source_items: int = 0
    copied_items: int = 0
    skipped_items: int = 0
    copied_by_level: Dict[int, int] = field(default_factory=dict)
    component_type_breakdown: Dict[str, int] = field(default_factory=dict)
    process_step_breakdown: Dict[str, int] = field(default_factory=dict)
    original_total_cost: float = 0.0
    new_total_cost: float = 0.0
    cost_difference: float = 0.0
    cost_change_percentage: float = 0.0
    adjusted_items_count: int = 0


@dataclass
class CopyBOMResult:
    new_bom: Any
    copied_items: List[Any]
    id_mapping: Dict[str, str]
    skipped_item_ids: List[str]
    statistics: CopyStatistics
    warnings: List[str]
    history_id: str
    message: str


# ============================================================================
# Compare
# ============================================================================


@dataclass
class CompareOptions:
    ignore_inactive_items: bool = False
    ignore_optional_items: bool = False
    ignore_minor_cost_changes: bool = False
    minor_cost_threshold: float = 0.0
    compare_to_level: Optional[int] = None
    ignore_fields: List[str] = field(default_factory=list)
    include_cost_impact_analysis: bool = True
    include_structural_analysis: bool = True


@dataclass
class CompareBOMRequest:
    source_bom_id: str
    target_bom_id: str
    options: CompareOptions = field(default_factory=CompareOptions)
    requested_by: Optional[str] = None


@dataclass(frozen=True)
class BOMComparisonInfo:
    bom_id: str
    product_code: str
    product_name: str
    version: str
    total_items: int
    total_cost: float
    max_level: int
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class BOMItemSnapshot:
    """Flat, version-independent view of one BOM item.

    `parent_path` is the chain of ancestor component codes from the root;
    together with `component_code` it matches items across BOM versions.
    """

    item_id: str
    component_id: str
    component_code: str
    component_name: str
    component_type: ComponentType
    level: int
    sequence: int
    quantity: float
    unit_cost: float
    total_cost: float
    scrap_rate: float
    is_optional: bool
    position: Optional[str]
    process_step: Optional[str]
    remarks: Optional[str]
    parent_path: str

    @property
    def match_key(self) -> str:
        return f"{self.component_code}|{self.parent_path}"


@dataclass
class ItemComparison:
    """An added, removed or modified item."""

    change_type: DifferenceType
    cost_impact: float
    significance: ImpactLevel
    source_item: Optional[BOMItemSnapshot] = None
    target_item: Optional[BOMItemSnapshot] = None
    changed_fields: List[FieldChange] = field(default_factory=list)

    @property
    def match_key(self) -> str:
        snapshot = self.source_item or self.target_item
        return snapshot.match_key


@dataclass(frozen=True)
class StructuralChange:
    change_type: StructuralChangeType
    component_code: str
    description: str
    impact: ImpactLevel


@dataclass(frozen=True)
class CostChange:
    component_code: str
    old_value: float
    new_value: float
    difference: float
    percentage_change: float


@dataclass
class BOMDifferences:
    added_items: List[ItemComparison] = field(default_factory=list)
    removed_items: List[ItemComparison] = field(default_factory=list)
    modified_items: List[ItemComparison] = field(default_factory=list)
    structural_changes: List[StructuralChange] = field(default_factory=list)
    cost_changes: List[CostChange] = field(default_factory=list)


@dataclass
class ComparisonSummary:
    total_changes: int = 0
    added_count: int = 0
    removed_count: int = 0
    modified_count: int = 0
    total_cost_difference: float = 0.0
    cost_change_percentage: float = 0.0
    major_changes: int = 0
    structural_changes: int = 0
    complexity: ImpactLevel = ImpactLevel.LOW
    confidence_level: int = 100


@dataclass(frozen=True)
class ComparisonDifference:
    """Flat difference entry for side-by-side display."""

    difference_type: DifferenceType
    description: str
    source_item: Optional[BOMItemSnapshot] = None
    target_item: Optional[BOMItemSnapshot] = None


@dataclass
class CompareBOMResult:
    comparison_id: str
    source_info: BOMComparisonInfo
    target_info: BOMComparisonInfo
    differences: BOMDifferences
    summary: ComparisonSummary
    recommendations: List[str]
    difference_list: List[ComparisonDifference]
    source_snapshots: List[BOMItemSnapshot]
    target_snapshots: List[BOMItemSnapshot]
    compared_at: datetime
    history_id: Optional[str] = None
