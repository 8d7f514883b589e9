"""
Shared fixtures: an in-memory SQLite database and helpers to seed an agency
with carriers, products, positions, agents and commission structures.
"""
import os

# Never touch a real database from the test suite
os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import build_engine, init_db  # noqa: E402
from app.models.db_models import (  # noqa: E402
    AgencyDB, AgentCarrierNumberDB, AgentDB, CarrierDB, CommissionStructureDB, PositionDB, ProductDB,
)
from app.services.carriers import CarrierFormatRegistry  # noqa: E402
from app.services.ingestion import ReportStorage  # noqa: E402


AFLAC_HEADER = "AGENT_NUMBER,AGENT_NAME,POLICY_HOLDER,POLICY_NUM,PREMIUM_AMOUNT,COMMISSION_AMT,EFFECTIVE_DT,PAID_DATE,PRODUCT_NAME"


def aflac_csv(*rows: str) -> bytes:
    """Aflac report with the given data lines."""
    return "\n".join((AFLAC_HEADER,) + rows).encode("utf-8") + b"\n"


class Seed:
    """Creates reference data on a session and flushes after each call."""

    def __init__(self, db):
        self.db = db

    def _add(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def agency(self, name="Summit Benefits"):
        return self._add(AgencyDB(name=name))

    def carrier(self, name="Aflac"):
        return self._add(CarrierDB(name=name, display_name=name))

    def product(self, carrier, name, agency=None, is_active=True):
        return self._add(ProductDB(
            carrier_id=carrier.id,
            agency_id=agency.id if agency else None,
            name=name,
            is_active=is_active,
        ))

    def position(self, name, level=0, agency=None):
        return self._add(PositionDB(name=name, level=level, agency_id=agency.id if agency else None))

    def agent(self, first_name, last_name="Agent", upline=None, position=None, agency=None,
              carrier=None, agent_number=None):
        agent = self._add(AgentDB(
            first_name=first_name,
            last_name=last_name,
            upline_id=upline.id if upline else None,
            position_id=position.id if position else None,
            agency_id=agency.id if agency else None,
        ))
        if carrier is not None and agent_number:
            self._add(AgentCarrierNumberDB(agent_id=agent.id, carrier_id=carrier.id, agent_number=agent_number))
        return agent

    def structure(self, carrier, position, product, percentage, level=0, commission_type="advance", is_active=True):
        return self._add(CommissionStructureDB(
            carrier_id=carrier.id,
            position_id=position.id,
            product_id=product.id,
            percentage=Decimal(str(percentage)),
            level=level,
            commission_type=commission_type,
            is_active=is_active,
        ))

    def aflac_agency(self):
        """
        Two-level Aflac agency: writing agent A123 (Agent, 40%) reporting
        to A999 (Manager, 60%), both on 'Accident Advantage'.
        """
        agency = self.agency()
        carrier = self.carrier("Aflac")
        product = self.product(carrier, "Accident Advantage", agency=agency)
        agent_position = self.position("Agent", level=1, agency=agency)
        manager_position = self.position("Manager", level=2, agency=agency)
        self.structure(carrier, agent_position, product, 40)
        self.structure(carrier, manager_position, product, 60)
        manager = self.agent("Maria", "Manager", position=manager_position, agency=agency,
                             carrier=carrier, agent_number="A999")
        writer = self.agent("Wes", "Writer", upline=manager, position=agent_position, agency=agency,
                            carrier=carrier, agent_number="A123")
        return {
            "agency": agency,
            "carrier": carrier,
            "product": product,
            "agent_position": agent_position,
            "manager_position": manager_position,
            "manager": manager,
            "writer": writer,
        }


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    return Seed(db)


@pytest.fixture
def registry():
    return CarrierFormatRegistry.load()


@pytest.fixture
def storage(tmp_path):
    return ReportStorage(str(tmp_path / "storage"))


@pytest.fixture
def aflac_report():
    """Builder for Aflac CSV bytes from data lines."""
    return aflac_csv
