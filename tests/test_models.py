"""Tests for the BOM domain models and their derived values.

Tests cover:
- Scrap-adjusted quantity and cost on BOM items
- Item validity windows (exclusive expiry) vs BOM windows (inclusive expiry)
- Field-level validation messages
- with_changes() producing a new value without mutating the stored item
- Audit record helpers (ChangedField, BOMHistory)
- BOM aggregate helpers
"""

from datetime import datetime, timedelta, timezone

import pytest

from bom_engine.models import (
    BOM,
    BOMHistory,
    BOMItem,
    ChangedField,
    ComponentType,
    HistoryAction,
    HistoryTargetType,
    Product,
    ProductType,
)
from bom_engine.models.bom_history import ACTION_LABELS
from bom_engine.utils.datetime_utils import utc_now

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_item(**overrides):
    values = dict(
        id="BOMITEM-1",
        bom_id="BOM-1",
        component_id="PRD-RM1",
        parent_item_id=None,
        level=0,
        sequence=1,
        quantity=10.0,
        unit="EA",
        unit_cost=2.0,
        scrap_rate=0.0,
        is_optional=False,
        component_type=ComponentType.RAW_MATERIAL,
        effective_date=NOW - timedelta(days=10),
        expiry_date=None,
        is_deleted=False,
        created_by="tester",
        updated_by="tester",
    )
    values.update(overrides)
    return BOMItem(**values)


class TestBOMItemDerivedValues:
    """Tests for actual_quantity, total_cost and classification helpers."""

    def test_total_cost_without_scrap(self):
        """Test: 10 units at 2.0 with no scrap cost 20.0."""
        item = make_item()
        assert item.actual_quantity == 10.0
        assert item.total_cost == 20.0

    def test_scrap_rate_inflates_quantity_and_cost(self):
        """Test: a 5% scrap rate inflates both quantity and cost."""
        item = make_item(quantity=100.0, unit_cost=1.5, scrap_rate=5.0)
        assert item.actual_quantity == pytest.approx(105.0)
        assert item.total_cost == pytest.approx(157.5)

    def test_top_level_and_sub_component(self):
        """Test: level/parent decide top-level vs sub-component."""
        root = make_item()
        child = make_item(id="BOMITEM-2", parent_item_id="BOMITEM-1", level=1)
        assert root.is_top_level() and not root.is_sub_component()
        assert child.is_sub_component() and not child.is_top_level()

    def test_critical_component(self):
        """Test: required items and expensive optional items are critical."""
        assert make_item(is_optional=False).is_critical_component()
        assert not make_item(is_optional=True).is_critical_component()
        assert make_item(is_optional=True, quantity=1000.0, unit_cost=20.0).is_critical_component()

    def test_is_used_in_process(self):
        item = make_item(process_step="welding")
        assert item.is_used_in_process("welding")
        assert not item.is_used_in_process("painting")


class TestBOMItemActivity:
    """Tests for the item validity window."""

    def test_active_inside_window(self):
        item = make_item(expiry_date=NOW + timedelta(days=1))
        assert item.is_currently_active(NOW)

    def test_expiry_is_exclusive(self):
        """Test: an item expiring exactly now is no longer active."""
        item = make_item(expiry_date=NOW)
        assert not item.is_currently_active(NOW)

    def test_future_effective_date_is_inactive(self):
        item = make_item(effective_date=NOW + timedelta(days=1))
        assert not item.is_currently_active(NOW)

    def test_deleted_item_is_inactive(self):
        item = make_item(is_deleted=True)
        assert not item.is_currently_active(NOW)

    def test_naive_database_values_are_treated_as_utc(self):
        """Test: naive datetimes (as read back from SQLite) compare correctly."""
        item = make_item(effective_date=datetime(2025, 5, 1), expiry_date=datetime(2025, 7, 1))
        assert item.is_currently_active(NOW)


class TestBOMItemValidation:
    """Tests for validation_errors()."""

    def test_valid_item_has_no_errors(self):
        assert make_item().validation_errors() == []

    def test_each_violation_names_its_field(self):
        item = make_item(quantity=0, scrap_rate=120.0, unit_cost=-1.0, level=-1)
        errors = item.validation_errors()
        assert any(error.startswith("quantity:") for error in errors)
        assert any(error.startswith("scrap_rate:") for error in errors)
        assert any(error.startswith("unit_cost:") for error in errors)
        assert any(error.startswith("level:") for error in errors)

    def test_expiry_must_follow_effective_date(self):
        item = make_item(effective_date=NOW, expiry_date=NOW)
        assert item.validation_errors() == ["expiry_date: Must be after effective_date"]


class TestBOMItemWithChanges:
    """Tests for with_changes()."""

    def test_returns_new_value_and_keeps_original(self):
        item = make_item()
        updated = item.with_changes(quantity=12.0, remarks="revised")

        assert updated is not item
        assert updated.id == item.id
        assert updated.quantity == 12.0
        assert updated.remarks == "revised"
        assert item.quantity == 10.0
        assert item.remarks is None

    def test_unknown_field_is_rejected(self):
        with pytest.raises(AttributeError):
            make_item().with_changes(colour="red")


class TestChangedField:
    """Tests for the audit change value object."""

    def test_requires_field_name(self):
        with pytest.raises(ValueError):
            ChangedField("  ", 1, 2)

    def test_critical_fields(self):
        assert ChangedField("quantity", 1, 2).is_critical
        assert not ChangedField("remarks", "a", "b").is_critical

    def test_describe(self):
        assert ChangedField("quantity", 100, 160).describe() == "quantity: 100 -> 160"
        assert ChangedField("position", None, "A1").describe() == "position set: A1"
        assert ChangedField("position", "A1", None).describe() == "position cleared: A1"

    def test_dict_conversion_serializes_dates_and_enums(self):
        change = ChangedField("component_type", ComponentType.RAW_MATERIAL, ComponentType.CONSUMABLE)
        assert change.to_dict() == {
            "field_name": "component_type",
            "old_value": "raw_material",
            "new_value": "consumable",
        }
        stamp = ChangedField("effective_date", None, NOW).to_dict()
        assert stamp["new_value"] == NOW.isoformat()


class TestBOMHistory:
    """Tests for audit record helpers."""

    def _record(self, action, changes):
        return BOMHistory.record(
            record_id="BOMHIST-1",
            bom_id="BOM-1",
            action=action,
            target_type=HistoryTargetType.BOM_ITEM,
            target_id="BOMITEM-1",
            changes=changes,
            user_id="tester",
            timestamp=NOW,
        )

    def test_record_stores_changes_as_dicts(self):
        record = self._record(HistoryAction.UPDATE_ITEM, [ChangedField("quantity", 100, 160)])
        assert record.changed_fields == [{"field_name": "quantity", "old_value": 100, "new_value": 160}]
        assert record.changes == [ChangedField("quantity", 100, 160)]
        assert record.user_name == "tester"

    def test_field_change_lookup(self):
        record = self._record(
            HistoryAction.UPDATE_ITEM,
            [ChangedField("quantity", 1, 2), ChangedField("remarks", None, "x")],
        )
        assert record.field_change("remarks") == ChangedField("remarks", None, "x")
        assert record.field_change("unit_cost") is None

    def test_critical_change(self):
        assert self._record(HistoryAction.DELETE_ITEM, []).is_critical_change()
        assert self._record(HistoryAction.UPDATE_ITEM, [ChangedField("unit_cost", 1, 2)]).is_critical_change()
        assert not self._record(HistoryAction.UPDATE_ITEM, [ChangedField("remarks", "a", "b")]).is_critical_change()
        assert self._record(HistoryAction.COPY_BOM, []).is_critical_change()
        assert not self._record(HistoryAction.COMPARE_BOM, []).is_critical_change()

    def test_every_action_has_a_label(self):
        assert set(ACTION_LABELS) == set(HistoryAction)

    def test_change_summary(self):
        record = self._record(HistoryAction.UPDATE_ITEM, [ChangedField("quantity", 100, 160)])
        assert record.change_summary() == "Component updated (quantity: 100 -> 160)"


class TestBOMAndProduct:
    """Tests for BOM aggregates and product ownership."""

    def _bom(self, **overrides):
        values = dict(
            id="BOM-1",
            product_id="PRD-FP1",
            version="v1.0",
            is_active=True,
            effective_date=NOW - timedelta(days=30),
            expiry_date=None,
            items=[
                make_item(),
                make_item(id="BOMITEM-2", component_id="PRD-SF1", quantity=2.0, unit_cost=50.0, sequence=2),
                make_item(
                    id="BOMITEM-3",
                    component_id="PRD-RM2",
                    parent_item_id="BOMITEM-2",
                    level=1,
                    quantity=36.0,
                    unit_cost=0.5,
                ),
            ],
        )
        values.update(overrides)
        return BOM(**values)

    def test_totals(self):
        bom = self._bom()
        assert bom.item_count == 3
        assert bom.max_level == 1
        assert bom.calculate_total_cost() == pytest.approx(138.0)

    def test_expand_to_level_and_roots(self):
        bom = self._bom()
        assert [item.id for item in bom.expand_to_level(0)] == ["BOMITEM-1", "BOMITEM-2"]
        assert [item.id for item in bom.root_items()] == ["BOMITEM-1", "BOMITEM-2"]

    def test_bom_without_items_is_empty(self):
        bom = self._bom(items=None)
        assert bom.items == []
        assert bom.max_level == 0
        assert bom.calculate_total_cost() == 0

    def test_bom_expiry_is_inclusive(self):
        """Test: a BOM expiring exactly now is still active."""
        assert self._bom(expiry_date=NOW).is_currently_active(NOW)
        assert not self._bom(expiry_date=NOW - timedelta(seconds=1)).is_currently_active(NOW)
        assert not self._bom(is_active=False).is_currently_active(NOW)

    def test_bom_active_by_default_clock(self):
        bom = self._bom(effective_date=utc_now() - timedelta(minutes=1))
        assert bom.is_currently_active()

    def test_only_finished_and_semi_finished_products_own_boms(self):
        assert Product(product_type=ProductType.FINISHED_PRODUCT).can_have_bom()
        assert Product(product_type=ProductType.SEMI_FINISHED).can_have_bom()
        assert not Product(product_type=ProductType.RAW_MATERIAL).can_have_bom()
