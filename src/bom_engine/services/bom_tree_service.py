"""
BOM Tree Service - display-ready projections of BOM trees.

Builds nested BOMTreeNode structures from a BOM's loaded items, resolving
component code/name through the ProductLookup and labels through the
BOMPresenter, and computes BOM totals for mutation responses.
"""

from typing import List, Optional

from ..models import BOM, BOMItem, Product
from .bom_repositories import BOMStore, ProductLookup
from .dto import BOMTotals, BOMTreeNode
from .exceptions import BOMNotFound
from .presenter import BOMPresenter


class BOMTreeService:
    """Tree projection and totals for BOMs."""

    def __init__(self, bom_store: BOMStore, product_lookup: ProductLookup, presenter: BOMPresenter):
        self.bom_store = bom_store
        self.product_lookup = product_lookup
        self.presenter = presenter

    def get_tree(self, bom_id: str, max_level: Optional[int] = None) -> List[BOMTreeNode]:
        """
        Build the nested tree of a BOM.

        Args:
            bom_id: BOM to project
            max_level: Deepest level to include (all levels when None)

        Returns:
            Root nodes ordered by sequence, children nested

        Raises:
            BOMNotFound: If the BOM doesn't exist
        """
        bom = self.bom_store.find_by_id(bom_id)
        if bom is None:
            raise BOMNotFound(bom_id)
        return self.build_tree(bom, max_level)

    def build_tree(self, bom: BOM, max_level: Optional[int] = None) -> List[BOMTreeNode]:
        items = bom.items if max_level is None else bom.expand_to_level(max_level)
        products = self.product_lookup.find_by_ids(item.component_id for item in items)
        child_ids = {item.parent_item_id for item in bom.items if item.parent_item_id}

        nodes = {item.id: self.to_node(item, products.get(item.component_id), item.id in child_ids) for item in items}
        roots = []
        for item in sorted(items, key=lambda i: (i.level, i.sequence)):
            node = nodes[item.id]
            parent = nodes.get(item.parent_item_id) if item.parent_item_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    def build_node(self, item: BOMItem, has_children: bool = False) -> BOMTreeNode:
        """Project a single item (no children attached)."""
        return self.to_node(item, self.product_lookup.find_by_id(item.component_id), has_children)

    def to_node(self, item: BOMItem, product: Optional[Product], has_children: bool) -> BOMTreeNode:
        return BOMTreeNode(
            id=item.id,
            bom_id=item.bom_id,
            component_id=item.component_id,
            component_code=product.code if product else item.component_id,
            component_name=product.name if product else item.component_id,
            component_type=item.component_type,
            component_type_label=self.presenter.component_type_label(item.component_type),
            parent_item_id=item.parent_item_id,
            level=item.level,
            sequence=item.sequence,
            quantity=item.quantity,
            unit=item.unit,
            unit_cost=item.unit_cost,
            scrap_rate=item.scrap_rate,
            actual_quantity=item.actual_quantity,
            total_cost=item.total_cost,
            is_optional=bool(item.is_optional),
            is_active=item.is_currently_active(),
            position=item.position,
            process_step=item.process_step,
            remarks=item.remarks,
            has_children=has_children,
        )

    def get_totals(self, bom_id: str) -> BOMTotals:
        """
        Reload a BOM and compute its totals.

        Raises:
            BOMNotFound: If the BOM doesn't exist
        """
        bom = self.bom_store.find_by_id(bom_id)
        if bom is None:
            raise BOMNotFound(bom_id)
        return self.totals_for(bom)

    @staticmethod
    def totals_for(bom: BOM) -> BOMTotals:
        return BOMTotals(
            bom_id=bom.id,
            item_count=bom.item_count,
            total_cost=bom.calculate_total_cost(),
            max_level=bom.max_level,
        )

