"""
Pytest configuration and fixtures for stock kernel tests.

Every test gets its own database.  By default that is a SQLite file under
``tmp_path``; set DATABASE_URL to run the same suite against PostgreSQL.

Two ways to touch the database:

  - ``session``: one open transaction for the whole test.  Kernel services
    are driven directly and only flush.  Use the ``branch_factory`` /
    ``product_factory`` / ``seed_stock`` helpers with it.
  - ``operations``: StockOperations over the session factory, one
    transaction per call.  Do not combine it with ``session`` in one test:
    on SQLite an open ``session`` transaction holds the database write lock.
"""

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_config import StockSettings
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.dtos import MovementType
from stock_kernel.domain.units import ProductUnit
from stock_kernel.logging_config import LogContext, configure_logging, reset_logging
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.stock_ledger import StockLedger
from stock_services.authority import RolePermissionAuthority
from stock_services.operations import Actor, StockOperations

TEST_ACTOR_ID = uuid4()

FIXED_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

ROLE_PERMISSIONS = {
    "tenant_admin": ["view_inventory", "add_stock", "transfer_stock", "stock_opname"],
    "store_manager": ["view_inventory", "add_stock", "transfer_stock"],
    "cashier": [],
}


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session", autouse=True)
def _configure_test_logging():
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """Collect records emitted under the stock_kernel logger."""

    class _Collector(logging.Handler):
        def __init__(self):
            super().__init__(level=logging.DEBUG)
            self.records: list[logging.LogRecord] = []

        def emit(self, record):
            self.records.append(record)

        def messages(self) -> list[str]:
            return [r.getMessage() for r in self.records]

    handler = _Collector()
    logger = logging.getLogger("stock_kernel")
    previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def database_url(tmp_path):
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'stock.db'}"


@pytest.fixture
def is_postgres(database_url):
    return database_url.startswith("postgresql")


@pytest.fixture
def db_engine(database_url):
    engine = init_engine_from_url(database_url, pool_size=5, max_overflow=10)
    create_tables()
    register_immutability_listeners()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """One transaction for the whole test, rolled back at the end."""
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


# ---------------------------------------------------------------------------
# Operations layer
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(database_url):
    return StockSettings(
        database_url=database_url,
        max_retry_attempts=5,
        retry_backoff_seconds=0,
        role_permissions=ROLE_PERMISSIONS,
    )


@pytest.fixture
def operations(settings, session_factory, clock):
    return StockOperations(
        settings,
        session_factory,
        clock=clock,
        authority=RolePermissionAuthority.from_settings(settings),
    )


@pytest.fixture
def admin():
    return Actor(id=TEST_ACTOR_ID, role="tenant_admin")


# ---------------------------------------------------------------------------
# Catalog and stock helpers (bound to ``session``)
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog_service(session, clock):
    return CatalogService(session, clock)


@pytest.fixture
def ledger(session, clock):
    return StockLedger(session, clock)


@pytest.fixture
def branch_factory(catalog_service, actor_id):
    counter = {"n": 0}

    def _create(code: str | None = None, name: str | None = None, is_active: bool = True):
        counter["n"] += 1
        code = code or f"BR{counter['n']:03d}"
        return catalog_service.register_branch(
            code, name or f"Branch {code}", actor_id, is_active=is_active,
        )

    return _create


@pytest.fixture
def product_factory(catalog_service, actor_id):
    counter = {"n": 0}

    def _create(
        name: str | None = None,
        base_unit: str = "Pcs",
        units=(),
        min_stock_alert: Decimal | str = "0",
        unit_cost: Decimal | str = "0",
        supplier: str | None = None,
        category: str | None = None,
        sku: str | None = None,
    ):
        counter["n"] += 1
        return catalog_service.register_product(
            name or f"Product {counter['n']:03d}",
            base_unit,
            actor_id,
            sku=sku or f"TST-{counter['n']:05d}",
            category=category,
            units=tuple(units),
            min_stock_alert=Decimal(str(min_stock_alert)),
            unit_cost=Decimal(str(unit_cost)),
            supplier=supplier,
        )

    return _create


@pytest.fixture
def box_of_twelve():
    return (ProductUnit(name="Box", conversion_factor=Decimal("12")),)


@pytest.fixture
def seed_stock(ledger, actor_id):
    """Put ``quantity`` base units on hand as a receipt."""

    def _seed(product_id, branch_id, quantity):
        return ledger.apply_delta(
            product_id,
            branch_id,
            Decimal(str(quantity)),
            actor_id=actor_id,
            movement_type=MovementType.RECEIPT,
        )

    return _seed
