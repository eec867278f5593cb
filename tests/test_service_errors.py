"""Tests for error propagation and operation logging in the item service.

Collaborators are replaced with mocks so that store failures and usage
reports can be simulated without a database.
"""

import logging
from datetime import timedelta
from unittest.mock import Mock

import pytest

from bom_engine.models import BOM, BOMItem, ComponentType, Product, ProductType
from bom_engine.services.bom_item_service import BOMItemService
from bom_engine.services.bom_repositories import (
    BOMHistoryStore,
    BOMItemStore,
    BOMStore,
    ProductLookup,
)
from bom_engine.services.bom_tree_service import BOMTreeService
from bom_engine.services.cycle_check_service import BOMCycleChecker
from bom_engine.services.dto import (
    AddBOMItemRequest,
    BOMTotals,
    CycleCheckResult,
    DeleteBOMItemRequest,
    UpdateBOMItemRequest,
    UsageReport,
)
from bom_engine.services.exceptions import (
    ChildrenExistError,
    CircularReferenceError,
    DatabaseError,
    DuplicateComponentError,
)
from bom_engine.services.presenter import DefaultBOMPresenter
from bom_engine.services.service_factory import create_bom_engine
from bom_engine.services.usage_checker import UsageChecker
from bom_engine.utils.datetime_utils import utc_now

SERVICE_LOGGER = "bom_engine.services.bom_item_service"


@pytest.fixture
def collaborators():
    """Mocked collaborators around an active BOM owned by PRD-A."""
    bom = BOM(
        id="BOM-A",
        product_id="PRD-A",
        version="v1.0",
        is_active=True,
        effective_date=utc_now() - timedelta(days=1),
    )
    component = Product(
        id="PRD-C",
        code="RM-C",
        name="Component C",
        product_type=ProductType.RAW_MATERIAL,
        is_active=True,
    )
    item = BOMItem(
        id="BOMITEM-1",
        bom_id="BOM-A",
        component_id="PRD-C",
        level=0,
        sequence=1,
        quantity=4.0,
        unit="EA",
        unit_cost=3.0,
        scrap_rate=0.0,
        is_optional=False,
        component_type=ComponentType.RAW_MATERIAL,
        effective_date=utc_now() - timedelta(days=1),
        is_deleted=False,
        created_by="seed",
        updated_by="seed",
    )

    bom_store = Mock(spec=BOMStore)
    bom_store.find_by_id.return_value = bom
    item_store = Mock(spec=BOMItemStore)
    item_store.find_by_id.return_value = item
    item_store.is_duplicate.return_value = False
    item_store.get_next_sequence.return_value = 1
    item_store.has_children.return_value = False
    item_store.find_all_descendants.return_value = []
    history_store = Mock(spec=BOMHistoryStore)
    history_store.save.side_effect = lambda record: record
    product_lookup = Mock(spec=ProductLookup)
    product_lookup.find_by_id.return_value = component
    product_lookup.find_by_ids.return_value = {"PRD-C": component}
    cycle_checker = Mock(spec=BOMCycleChecker)
    cycle_checker.check_item_addition.return_value = CycleCheckResult(has_cycle=False)
    usage_checker = Mock(spec=UsageChecker)
    usage_checker.check_item_usage.return_value = UsageReport(item_id="BOMITEM-1")
    tree_service = Mock(spec=BOMTreeService)
    tree_service.get_totals.return_value = BOMTotals("BOM-A", 1, 12.0, 0)

    service = BOMItemService(
        bom_store,
        item_store,
        history_store,
        product_lookup,
        cycle_checker,
        usage_checker,
        DefaultBOMPresenter(),
        tree_service,
    )
    return Mock(
        service=service,
        bom_store=bom_store,
        item_store=item_store,
        history_store=history_store,
        cycle_checker=cycle_checker,
        usage_checker=usage_checker,
    )


def add_request():
    return AddBOMItemRequest(
        bom_id="BOM-A",
        component_id="PRD-C",
        quantity=1.0,
        unit="EA",
        unit_cost=3.0,
        created_by="engineer",
    )


class TestStoreFailures:
    """Tests for downstream failures after validation passed."""

    def test_failed_item_write_is_surfaced(self, collaborators, caplog):
        collaborators.item_store.save.side_effect = DatabaseError("Failed to save BOM item")

        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            with pytest.raises(DatabaseError):
                collaborators.service.add_item(add_request())

        collaborators.history_store.save.assert_not_called()
        collaborators.cycle_checker.clear_cache.assert_not_called()
        errors = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert [record.outcome for record in errors] == ["DatabaseError"]

    def test_cycle_check_runs_before_any_write(self, collaborators):
        collaborators.cycle_checker.check_item_addition.return_value = CycleCheckResult(
            has_cycle=True, path=["PRD-A", "PRD-C", "PRD-A"], depth=1
        )

        with pytest.raises(CircularReferenceError):
            collaborators.service.add_item(add_request())

        collaborators.item_store.save.assert_not_called()
        collaborators.bom_store.save.assert_not_called()


class TestOperationLogging:
    """Tests for log levels of operation outcomes."""

    def test_success_is_logged_at_info(self, collaborators, caplog):
        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            collaborators.service.add_item(add_request())

        outcomes = [(record.levelno, record.operation, record.outcome) for record in caplog.records]
        assert (logging.INFO, "add_bom_item", "success") in outcomes
        collaborators.cycle_checker.clear_cache.assert_called_once()

    def test_child_item_success_is_logged_at_info(self, bicycle, engine, caplog):
        request = AddBOMItemRequest(
            bom_id=bicycle.bike_bom.id,
            component_id=bicycle.rubber.id,
            quantity=1.0,
            unit="EA",
            unit_cost=8.0,
            created_by="engineer",
            parent_item_id=bicycle.wheel_item.id,
        )

        with caplog.at_level(logging.DEBUG, logger="bom_engine.services"):
            engine.items.add_item(request)

        found = [record for record in caplog.records if getattr(record, "operation", None) == "add_bom_item"]
        assert [(record.levelno, record.outcome) for record in found] == [(logging.INFO, "success")]
        assert found[0].item_level == 1

    def test_rule_violation_is_logged_at_warning(self, collaborators, caplog):
        collaborators.item_store.is_duplicate.return_value = True

        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            with pytest.raises(DuplicateComponentError):
                collaborators.service.add_item(add_request())

        warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
        assert [record.outcome for record in warnings] == ["DuplicateComponentError"]

    def test_forced_update_logs_overridden_warnings(self, collaborators, caplog):
        collaborators.usage_checker.check_item_usage.return_value = UsageReport(
            item_id="BOMITEM-1", usages=[Mock()]
        )
        request = UpdateBOMItemRequest(
            item_id="BOMITEM-1", updated_by="engineer", changes={"unit_cost": 3.5}, force_update=True
        )

        with caplog.at_level(logging.INFO, logger=SERVICE_LOGGER):
            result = collaborators.service.update_item(request)

        assert result.success
        outcomes = [(record.levelno, record.outcome) for record in caplog.records]
        assert (logging.WARNING, "forced_in_use") in outcomes


class TestUsageCheckerDisagreement:
    """Tests for children reported by the store but not the usage checker."""

    def test_children_exist_error(self, collaborators):
        collaborators.item_store.has_children.return_value = True
        collaborators.item_store.find_by_parent_id.return_value = [Mock(), Mock()]

        with pytest.raises(ChildrenExistError) as exc_info:
            collaborators.service.delete_item(DeleteBOMItemRequest(item_id="BOMITEM-1", deleted_by="engineer"))

        assert exc_info.value.child_count == 2
        collaborators.item_store.delete.assert_not_called()

    def test_injected_usage_checker_blocks_delete(self, bicycle):
        usage_checker = Mock(spec=UsageChecker)
        usage_checker.check_item_usage.return_value = UsageReport(
            item_id=bicycle.tube_item.id, usages=[Mock(), Mock(), Mock()]
        )
        engine = create_bom_engine(usage_checker=usage_checker)

        result = engine.items.delete_item(
            DeleteBOMItemRequest(item_id=bicycle.tube_item.id, deleted_by="engineer")
        )

        assert result.blocked
        assert result.blocking_reasons == ["Component is in use by 3 external reference(s)"]
        usage_checker.check_item_usage.assert_called_once_with(bicycle.tube_item.id)
