"""Pytest configuration and fixtures for the BOM engine tests."""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from bom_engine.models import (
    BOM,
    BOMItem,
    BOMItemUsage,
    ComponentType,
    ImpactLevel,
    Product,
    ProductType,
    UsageType,
)
from bom_engine.models.base import Base
from bom_engine.services import service_factory
from bom_engine.utils import config as config_module
from bom_engine.utils.datetime_utils import utc_now
from bom_engine.utils.id_utils import generate_id


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Points the services' session factory at it
    4. Drops all tables after the test completes
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import bom_engine.services.database as db_module

    original_get_session_factory = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session
    service_factory.reset_bom_engine()

    yield Session

    # Cleanup
    service_factory.reset_bom_engine()
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session_factory


@pytest.fixture
def clean_config():
    """Reset the configuration singleton around a test."""
    config_module.reset_config()
    yield
    config_module.reset_config()


class BOMBuilder:
    """Inserts reference data straight through the test session."""

    def __init__(self, Session):
        self.Session = Session
        self._sequences = {}

    def _save(self, obj):
        session = self.Session()
        session.add(obj)
        session.commit()
        return obj

    def product(self, code, product_type=ProductType.RAW_MATERIAL, name=None, is_active=True):
        return self._save(
            Product(
                id=generate_id("PRD"),
                code=code,
                name=name or code.title(),
                product_type=product_type,
                is_active=is_active,
            )
        )

    def bom(self, product, version="v1.0", is_active=True, effective_date=None, expiry_date=None):
        return self._save(
            BOM(
                id=generate_id("BOM"),
                product_id=product.id,
                version=version,
                is_active=is_active,
                effective_date=effective_date or utc_now() - timedelta(days=30),
                expiry_date=expiry_date,
                created_by="seed",
                updated_by="seed",
            )
        )

    def item(
        self,
        bom,
        component,
        quantity=1.0,
        unit_cost=0.0,
        parent=None,
        sequence=None,
        scrap_rate=0.0,
        is_optional=False,
        component_type=ComponentType.RAW_MATERIAL,
        process_step=None,
        effective_date=None,
        expiry_date=None,
    ):
        parent_id = parent.id if parent is not None else None
        key = (bom.id, parent_id)
        if sequence is None:
            sequence = self._sequences.get(key, 0) + 1
        self._sequences[key] = max(self._sequences.get(key, 0), sequence)

        return self._save(
            BOMItem(
                id=generate_id("BOMITEM"),
                bom_id=bom.id,
                component_id=component.id,
                parent_item_id=parent_id,
                level=0 if parent is None else parent.level + 1,
                sequence=sequence,
                quantity=quantity,
                unit="EA",
                unit_cost=unit_cost,
                scrap_rate=scrap_rate,
                is_optional=is_optional,
                component_type=component_type,
                effective_date=effective_date or utc_now() - timedelta(days=30),
                expiry_date=expiry_date,
                process_step=process_step,
                is_deleted=False,
                created_by="seed",
                updated_by="seed",
            )
        )

    def usage(self, item, usage_type=UsageType.WORK_ORDER, reference_id="WO-1"):
        return self._save(
            BOMItemUsage(
                id=generate_id("USAGE"),
                bom_item_id=item.id,
                usage_type=usage_type,
                reference_id=reference_id,
                reference_name=f"Reference {reference_id}",
                status="released",
                importance=ImpactLevel.MEDIUM,
            )
        )


@pytest.fixture
def builder(test_db):
    return BOMBuilder(test_db)


@pytest.fixture
def bicycle(builder):
    """Provide a small bicycle catalog with two BOMs.

    Creates:
    - FP-BIKE (v1.0, total cost 138.0)
      - RM-TUBE   qty 10 @ 2.0   (level 0, seq 1, process "cutting")
      - SF-WHEEL  qty 2  @ 50.0  (level 0, seq 2, sub-assembly, process "assembly")
        - RM-SPOKE qty 36 @ 0.5  (level 1, seq 1)
    - SF-WHEEL (v1.0)
      - RM-SPOKE  qty 36 @ 0.5
      - RM-RUBBER qty 1  @ 8.0
    - FP-TANDEM, SF-FRAME: no BOM
    - RM-RETIRED: inactive raw material
    """
    bike = builder.product("FP-BIKE", ProductType.FINISHED_PRODUCT, name="Bicycle")
    tandem = builder.product("FP-TANDEM", ProductType.FINISHED_PRODUCT, name="Tandem")
    wheel = builder.product("SF-WHEEL", ProductType.SEMI_FINISHED, name="Wheel")
    frame = builder.product("SF-FRAME", ProductType.SEMI_FINISHED, name="Frame")
    tube = builder.product("RM-TUBE", name="Steel Tube")
    spoke = builder.product("RM-SPOKE", name="Spoke")
    rubber = builder.product("RM-RUBBER", name="Rubber")
    retired = builder.product("RM-RETIRED", name="Retired Alloy", is_active=False)

    bike_bom = builder.bom(bike)
    tube_item = builder.item(bike_bom, tube, quantity=10, unit_cost=2.0, process_step="cutting")
    wheel_item = builder.item(
        bike_bom,
        wheel,
        quantity=2,
        unit_cost=50.0,
        component_type=ComponentType.SUB_ASSEMBLY,
        process_step="assembly",
    )
    spoke_item = builder.item(bike_bom, spoke, quantity=36, unit_cost=0.5, parent=wheel_item)

    wheel_bom = builder.bom(wheel)
    wheel_spoke_item = builder.item(wheel_bom, spoke, quantity=36, unit_cost=0.5)
    wheel_rubber_item = builder.item(wheel_bom, rubber, quantity=1, unit_cost=8.0)

    return SimpleNamespace(
        bike=bike,
        tandem=tandem,
        wheel=wheel,
        frame=frame,
        tube=tube,
        spoke=spoke,
        rubber=rubber,
        retired=retired,
        bike_bom=bike_bom,
        tube_item=tube_item,
        wheel_item=wheel_item,
        spoke_item=spoke_item,
        wheel_bom=wheel_bom,
        wheel_spoke_item=wheel_spoke_item,
        wheel_rubber_item=wheel_rubber_item,
    )


@pytest.fixture
def engine(test_db):
    """Services wired against the test database."""
    return service_factory.create_bom_engine()
