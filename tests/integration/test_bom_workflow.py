"""End-to-end BOM maintenance through the module-level service functions.

Walks one bicycle BOM through add, update, copy, compare and delete, then
checks the cycle guard and the audit trail against the stored result.
"""

from collections import Counter

import pytest

from bom_engine.models import ComponentType, HistoryAction
from bom_engine.services import service_factory
from bom_engine.services.bom_repositories import SQLBOMHistoryStore
from bom_engine.services.dto import (
    AddBOMItemRequest,
    CompareBOMRequest,
    CopyBOMRequest,
    DeleteBOMItemRequest,
    UpdateBOMItemRequest,
)


class TestBOMWorkflow:
    """Test: a BOM revision from first edit to audit."""

    def test_complete_revision(self, bicycle):
        # Add a frame sub-assembly with rubber below it
        frame = service_factory.add_bom_item(
            AddBOMItemRequest(
                bom_id=bicycle.bike_bom.id,
                component_id=bicycle.frame.id,
                quantity=1.0,
                unit="EA",
                unit_cost=40.0,
                created_by="engineer",
                component_type=ComponentType.SUB_ASSEMBLY,
            )
        )
        assert frame.item.level == 0
        assert frame.item.sequence == 3
        assert frame.totals.total_cost == pytest.approx(178.0)

        grip = service_factory.add_bom_item(
            AddBOMItemRequest(
                bom_id=bicycle.bike_bom.id,
                component_id=bicycle.rubber.id,
                quantity=1.0,
                unit="EA",
                unit_cost=8.0,
                created_by="engineer",
                parent_item_id=frame.item.id,
            )
        )
        assert grip.item.level == 1
        assert grip.item.parent_item_id == frame.item.id

        update = service_factory.update_bom_item(
            UpdateBOMItemRequest(item_id=grip.item.id, updated_by="engineer", changes={"quantity": 1.2})
        )
        assert update.success
        assert update.item.quantity == pytest.approx(1.2)

        # Copy into a new product and confirm nothing drifted
        copy = service_factory.copy_bom(
            CopyBOMRequest(
                source_bom_id=bicycle.bike_bom.id,
                target_product_id=bicycle.tandem.id,
                new_version="v1.0",
                created_by="engineer",
            )
        )
        assert len(copy.copied_items) == 5
        assert copy.new_bom.product_id == bicycle.tandem.id

        comparison = service_factory.compare_boms(
            CompareBOMRequest(
                source_bom_id=bicycle.bike_bom.id,
                target_bom_id=copy.new_bom.id,
                requested_by="engineer",
            )
        )
        assert comparison.summary.total_changes == 0
        assert comparison.history_id is not None

        # Remove the frame again
        deletion = service_factory.delete_bom_item(
            DeleteBOMItemRequest(item_id=frame.item.id, deleted_by="engineer", delete_children=True)
        )
        assert deletion.success
        assert sorted(deletion.deleted_item_ids) == sorted([frame.item.id, grip.item.id])

        tree = service_factory.get_bom_tree(bicycle.bike_bom.id)
        assert [node.component_code for node in tree] == ["RM-TUBE", "SF-WHEEL"]
        assert [child.component_code for child in tree[1].children] == ["RM-SPOKE"]

        # Both bicycles contain the wheel, so neither may go inside it
        assert service_factory.check_component_addition(bicycle.wheel.id, bicycle.bike.id).has_cycle
        assert service_factory.check_component_addition(bicycle.wheel.id, bicycle.tandem.id).has_cycle
        service_factory.clear_cycle_cache()
        assert not service_factory.check_component_addition(bicycle.tandem.id, bicycle.frame.id).has_cycle

        history = SQLBOMHistoryStore()
        assert Counter(record.action for record in history.find_by_bom_id(bicycle.bike_bom.id)) == Counter(
            {
                HistoryAction.ADD_ITEM: 2,
                HistoryAction.UPDATE_ITEM: 1,
                HistoryAction.COMPARE_BOM: 1,
                HistoryAction.DELETE_ITEM: 2,
            }
        )
        assert [record.action for record in history.find_by_bom_id(copy.new_bom.id)] == [HistoryAction.COPY_BOM]
