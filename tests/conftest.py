"""Shared fixtures for ispbill tests.

Provides an in-memory database, plain and guarded sessions, test settings,
record factories and a FastAPI TestClient with dependency overrides.
"""

import os
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Point the application engine at memory BEFORE importing application modules
os.environ.setdefault("DATABASE_URL", "sqlite://")

from ispbill import models  # noqa: E402,F401
from ispbill.core.config import Settings, get_settings  # noqa: E402
from ispbill.core.constants import InvoiceStatus, ServiceStatus  # noqa: E402
from ispbill.core.tenancy import Principal, get_current_principal  # noqa: E402
from ispbill.db.engine import get_session  # noqa: E402
from ispbill.main import app  # noqa: E402
from ispbill.models import Customer, Invoice, Package, Service, Ticket  # noqa: E402
from ispbill.services.tenant_scope import guard_session  # noqa: E402


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()

    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def guarded_session(engine):
    with Session(engine) as session:
        yield guard_session(session)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        payment_gateway_default="midtrans",
        gateway_timeout_seconds=5.0,
        midtrans_server_key="SB-Mid-server-test",
        midtrans_client_key="SB-Mid-client-test",
        xendit_secret_key="xnd_development_test",
        xendit_webhook_token="xendit-callback-token",
        tripay_api_key="DEV-tripay-api-key",
        tripay_private_key="tripay-private-key",
        tripay_merchant_code="T12345",
        billing_cycle_days=30,
        billing_grace_period_days=3,
    )


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


class Factory:
    """Creates records directly, bypassing the service layer."""

    def __init__(self, session: Session):
        self.session = session

    def _save(self, record):
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def package(self, name="Home 20", speed="20 Mbps", price="150000.00"):
        return self._save(Package(name=name, speed=speed, price=Decimal(price)))

    def customer(self, tenant_id=1, name="Budi Santoso", email="budi@example.com", phone="08123456789"):
        return self._save(Customer(tenant_id=tenant_id, name=name, email=email, phone=phone))

    def service(self, customer, package=None, status=ServiceStatus.ACTIVE.value, expiry_date=None, **kwargs):
        package = package or self.package()
        return self._save(
            Service(
                customer_id=customer.id,
                package_id=package.id,
                tenant_id=customer.tenant_id,
                status=status,
                expiry_date=expiry_date,
                **kwargs,
            )
        )

    def invoice(self, service, amount="150000.00", status=InvoiceStatus.UNPAID.value,
                invoice_date=None, due_date=None, **kwargs):
        invoice_date = invoice_date or date.today()
        return self._save(
            Invoice(
                service_id=service.id,
                tenant_id=service.tenant_id,
                amount=Decimal(amount),
                status=status,
                invoice_date=invoice_date,
                due_date=due_date or invoice_date,
                **kwargs,
            )
        )

    def ticket(self, customer, subject="No connection", description="Link down since morning"):
        return self._save(
            Ticket(
                customer_id=customer.id,
                tenant_id=customer.tenant_id,
                subject=subject,
                description=description,
            )
        )

    def billing_chain(self, tenant_id=1, invoice_id=None, **invoice_kwargs):
        """Customer -> service -> unpaid invoice, all owned by ``tenant_id``."""
        customer = self.customer(tenant_id=tenant_id)
        service = self.service(customer)
        if invoice_id is not None:
            invoice_kwargs["id"] = invoice_id
        invoice = self.invoice(service, **invoice_kwargs)
        return customer, service, invoice


@pytest.fixture
def factory(session):
    return Factory(session)


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@pytest.fixture
def super_admin():
    return Principal(user_id=1, role="super_admin")


@pytest.fixture
def reseller_1():
    return Principal(user_id=10, role="reseller", tenant_id=1)


@pytest.fixture
def reseller_2():
    return Principal(user_id=20, role="reseller", tenant_id=2)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@pytest.fixture
def principal_state():
    return {"principal": Principal.anonymous()}


@pytest.fixture
def act_as(principal_state):
    """Switches the principal seen by the API for the following requests."""

    def _act_as(principal: Principal):
        principal_state["principal"] = principal

    return _act_as


@pytest.fixture
def client(engine, settings, principal_state):
    def override_session():
        with Session(engine) as session:
            guard_session(session)
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_current_principal] = lambda: principal_state["principal"]

    # Not used as a context manager: startup would create tables on the app engine
    yield TestClient(app)

    app.dependency_overrides.clear()
