"""
Shared pytest fixtures for the Foam Ops test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - default_tenant: Pre-created Tenant entity
    - other_tenant: Second tenant for isolation checks
    - stock_pool: Default tenant pool stocked with 10 open / 5 closed sets
    - make_job / make_item / make_equipment: seed factories

Seed helpers COMMIT. Service calls run in their own unit of work and roll
back on failure, so flushed-but-uncommitted fixtures would vanish with them.
"""

from decimal import Decimal

import pytest

from foamops import create_app
from foamops.models import db as _db


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Seed helpers ─────────────────────────────────────────────────────────


def seed_tenant(name="Test Insulation", slug="test-default"):
    from foamops.models.tenant import Tenant
    t = Tenant(name=name, slug=slug, is_active=True)
    _db.session.add(t)
    _db.session.commit()
    return t


def seed_pool(tenant_id, open_cell="0", closed_cell="0"):
    from foamops.models.inventory import ChemicalStock
    pool = ChemicalStock(
        tenant_id=tenant_id,
        open_cell_sets=Decimal(str(open_cell)),
        closed_cell_sets=Decimal(str(closed_cell)),
        lifetime_open_cell_used=Decimal("0"),
        lifetime_closed_cell_used=Decimal("0"),
    )
    _db.session.add(pool)
    _db.session.commit()
    return pool


def seed_job(tenant_id, **kwargs):
    from foamops.models.job import STATUS_WORK_ORDER, Job
    defaults = {
        "customer_name": "Jane Homeowner",
        "estimate_number": "EST-1001",
        "status": STATUS_WORK_ORDER,
        "materials": {},
        "expenses": {},
        "total_value": Decimal("10000"),
    }
    defaults.update(kwargs)
    job = Job(tenant_id=tenant_id, **defaults)
    _db.session.add(job)
    _db.session.commit()
    return job


def seed_item(tenant_id, name="Poly Sheeting", quantity="10", unit="roll", unit_cost="0"):
    from foamops.models.inventory import InventoryItem
    item = InventoryItem(
        tenant_id=tenant_id,
        name=name,
        quantity=Decimal(str(quantity)),
        unit=unit,
        unit_cost=Decimal(str(unit_cost)),
    )
    _db.session.add(item)
    _db.session.commit()
    return item


def seed_equipment(tenant_id, name="Graco Reactor", status="In Use"):
    from foamops.models.inventory import Equipment
    eq = Equipment(tenant_id=tenant_id, name=name, status=status)
    _db.session.add(eq)
    _db.session.commit()
    return eq


@pytest.fixture()
def default_tenant():
    """Default tenant with an empty chemical pool."""
    t = seed_tenant()
    seed_pool(t.id)
    return t


@pytest.fixture()
def other_tenant():
    """Second tenant, for isolation checks."""
    t = seed_tenant(name="Other Insulation", slug="other")
    seed_pool(t.id, open_cell="50", closed_cell="50")
    return t


@pytest.fixture()
def stock_pool(default_tenant):
    """Default tenant's pool stocked with 10 open / 5 closed cell sets."""
    from foamops.models.inventory import ChemicalStock
    pool = ChemicalStock.query.filter_by(tenant_id=default_tenant.id).one()
    pool.open_cell_sets = Decimal("10")
    pool.closed_cell_sets = Decimal("5")
    _db.session.commit()
    return pool


@pytest.fixture()
def make_job():
    """Factory: make_job(tenant_id, **columns) -> committed Job."""
    return seed_job


@pytest.fixture()
def make_item():
    """Factory: make_item(tenant_id, name=..., quantity=..., unit=..., unit_cost=...)."""
    return seed_item


@pytest.fixture()
def make_equipment():
    """Factory: make_equipment(tenant_id, name=..., status=...)."""
    return seed_equipment


@pytest.fixture()
def make_tenant():
    """Factory: make_tenant(name=..., slug=...) -> committed Tenant without a pool."""
    return seed_tenant
