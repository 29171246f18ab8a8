"""Tests for invoice generation, overdue marking, isolation eligibility and cancellation."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlmodel import select

from ispbill.core.constants import InvoiceStatus, ServiceStatus
from ispbill.core.errors import GatewayError, InvalidInvoiceTransitionError, TenancyViolation
from ispbill.core.tenancy import Principal
from ispbill.models import Invoice
from ispbill.services.invoice_service import InvoiceLifecycleManager

TODAY = date(2024, 3, 10)


@pytest.fixture
def manager_for(settings):
    def _build(session, principal=None, **kwargs):
        return InvoiceLifecycleManager(session, principal or Principal.system(), settings, **kwargs)

    return _build


def all_invoices(session):
    session.expire_all()
    return session.exec(select(Invoice).order_by(Invoice.id)).all()


class TestGenerateDueInvoices:
    def test_invoice_for_service_without_expiry(self, session, factory, manager_for):
        customer = factory.customer(tenant_id=3)
        package = factory.package(price="250000.00")
        service = factory.service(customer, package=package)

        created = manager_for(session).generate_due_invoices(TODAY)

        assert len(created) == 1
        invoice = created[0]
        assert invoice.service_id == service.id
        assert invoice.amount == Decimal("250000.00")
        assert invoice.status == InvoiceStatus.UNPAID.value
        assert invoice.invoice_date == TODAY
        assert invoice.due_date == TODAY + timedelta(days=30)
        assert invoice.tenant_id == 3

    def test_service_reaching_expiry_is_billed(self, session, factory, manager_for):
        customer = factory.customer()
        factory.service(customer, expiry_date=TODAY)
        assert len(manager_for(session).generate_due_invoices(TODAY)) == 1

    def test_service_paid_ahead_is_skipped(self, session, factory, manager_for):
        customer = factory.customer()
        factory.service(customer, expiry_date=TODAY + timedelta(days=1))
        assert manager_for(session).generate_due_invoices(TODAY) == []

    def test_inactive_services_are_skipped(self, session, factory, manager_for):
        customer = factory.customer()
        factory.service(customer, status=ServiceStatus.ISOLATED.value)
        factory.service(customer, status=ServiceStatus.TERMINATED.value)
        assert manager_for(session).generate_due_invoices(TODAY) == []

    def test_service_with_open_invoice_is_skipped(self, session, factory, manager_for):
        _, service, _ = factory.billing_chain(status=InvoiceStatus.OVERDUE.value,
                                             invoice_date=TODAY - timedelta(days=40),
                                             due_date=TODAY - timedelta(days=10))
        assert manager_for(session).generate_due_invoices(TODAY) == []

    def test_generation_is_repeatable(self, session, factory, manager_for):
        customer = factory.customer()
        factory.service(customer)
        manager = manager_for(session)
        manager.generate_due_invoices(TODAY)
        assert manager.generate_due_invoices(TODAY) == []
        assert len(all_invoices(session)) == 1

    def test_runs_on_a_guarded_session(self, guarded_session, factory, manager_for):
        customer = factory.customer()
        factory.service(customer)
        assert len(manager_for(guarded_session).generate_due_invoices(TODAY)) == 1


class TestOverdueAndIsolation:
    def test_unpaid_past_due_becomes_overdue(self, session, factory, manager_for):
        customer = factory.customer()
        service = factory.service(customer)
        past = factory.invoice(service, invoice_date=TODAY - timedelta(days=31), due_date=TODAY - timedelta(days=1))
        due_today = factory.invoice(service, invoice_date=TODAY - timedelta(days=30), due_date=TODAY)

        assert manager_for(session).mark_overdue(TODAY) == 1

        statuses = {i.id: i.status for i in all_invoices(session)}
        assert statuses[past.id] == InvoiceStatus.OVERDUE.value
        assert statuses[due_today.id] == InvoiceStatus.UNPAID.value

    def test_paid_and_cancelled_are_not_marked_overdue(self, session, factory, manager_for):
        customer = factory.customer()
        service = factory.service(customer)
        old = TODAY - timedelta(days=60)
        factory.invoice(service, status=InvoiceStatus.PAID.value, invoice_date=old, due_date=old,
                        paid_at=datetime(2024, 1, 1))
        factory.invoice(service, status=InvoiceStatus.CANCELLED.value, invoice_date=old, due_date=old)

        assert manager_for(session).mark_overdue(TODAY) == 0

    def test_isolation_waits_for_grace_period(self, session, factory, manager_for, settings):
        customer = factory.customer()
        within_grace = factory.service(customer)
        past_grace = factory.service(customer)
        grace = settings.billing_grace_period_days
        factory.invoice(within_grace, status=InvoiceStatus.OVERDUE.value,
                        invoice_date=TODAY - timedelta(days=40), due_date=TODAY - timedelta(days=grace))
        factory.invoice(past_grace, status=InvoiceStatus.OVERDUE.value,
                        invoice_date=TODAY - timedelta(days=40), due_date=TODAY - timedelta(days=grace + 1))

        candidates = manager_for(session).isolation_candidates(TODAY)

        assert [s.id for s in candidates] == [past_grace.id]

    def test_already_isolated_and_paid_services_are_not_candidates(self, session, factory, manager_for):
        customer = factory.customer()
        isolated = factory.service(customer, status=ServiceStatus.ISOLATED.value)
        paid = factory.service(customer)
        old = TODAY - timedelta(days=30)
        factory.invoice(isolated, status=InvoiceStatus.OVERDUE.value, invoice_date=old, due_date=old)
        factory.invoice(paid, status=InvoiceStatus.PAID.value, invoice_date=old, due_date=old,
                        paid_at=datetime(2024, 2, 1))

        assert manager_for(session).isolation_candidates(TODAY) == []


class TestCancel:
    @pytest.mark.parametrize("status", [InvoiceStatus.UNPAID.value, InvoiceStatus.OVERDUE.value])
    def test_open_invoice_can_be_cancelled(self, session, factory, manager_for, status):
        _, _, invoice = factory.billing_chain(status=status)
        cancelled = manager_for(session).cancel(invoice.id)
        assert cancelled.status == InvoiceStatus.CANCELLED.value

    def test_paid_invoice_cannot_be_cancelled(self, session, factory, manager_for):
        _, _, invoice = factory.billing_chain(status=InvoiceStatus.PAID.value, paid_at=datetime(2024, 1, 1))
        with pytest.raises(InvalidInvoiceTransitionError):
            manager_for(session).cancel(invoice.id)
        assert all_invoices(session)[0].status == InvoiceStatus.PAID.value

    def test_cancelled_invoice_cannot_be_cancelled_again(self, session, factory, manager_for):
        _, _, invoice = factory.billing_chain(status=InvoiceStatus.CANCELLED.value)
        with pytest.raises(InvalidInvoiceTransitionError):
            manager_for(session).cancel(invoice.id)

    def test_other_tenant_cannot_cancel(self, guarded_session, factory, manager_for, reseller_2):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        with pytest.raises(TenancyViolation):
            manager_for(guarded_session, reseller_2).cancel(invoice.id)


class TestPaymentLink:
    def test_link_is_saved_on_invoice(self, session, factory, manager_for, settings):
        _, _, invoice = factory.billing_chain()
        adapter = MagicMock()
        adapter.name = "xendit"
        adapter.create_payment_link.return_value = "https://checkout.xendit.co/web/inv_1"
        gateway_factory = MagicMock(return_value=adapter)

        url = manager_for(session, gateway_factory=gateway_factory).create_payment_link(invoice.id, "xendit")

        assert url == "https://checkout.xendit.co/web/inv_1"
        gateway_factory.assert_called_once_with("xendit", settings)
        assert all_invoices(session)[0].payment_link == url

    def test_default_gateway_is_used(self, session, factory, manager_for):
        _, _, invoice = factory.billing_chain()
        adapter = MagicMock()
        adapter.create_payment_link.return_value = "https://app.sandbox.midtrans.com/snap/v2/vtweb/t"
        gateway_factory = MagicMock(return_value=adapter)

        manager_for(session, gateway_factory=gateway_factory).create_payment_link(invoice.id)

        assert gateway_factory.call_args.args[0] == "midtrans"

    def test_gateway_error_propagates(self, session, factory, manager_for):
        _, _, invoice = factory.billing_chain()
        adapter = MagicMock()
        adapter.create_payment_link.side_effect = GatewayError("timed out", gateway="midtrans")

        with pytest.raises(GatewayError):
            manager_for(session, gateway_factory=MagicMock(return_value=adapter)).create_payment_link(invoice.id)
        assert all_invoices(session)[0].payment_link is None

    def test_no_link_for_paid_invoice(self, session, factory, manager_for):
        _, _, invoice = factory.billing_chain(status=InvoiceStatus.PAID.value, paid_at=datetime(2024, 1, 1))
        with pytest.raises(InvalidInvoiceTransitionError):
            manager_for(session, gateway_factory=MagicMock()).create_payment_link(invoice.id)


class TestScopedListing:
    def test_reseller_lists_only_own_invoices(self, guarded_session, factory, manager_for, reseller_1):
        factory.billing_chain(tenant_id=1)
        factory.billing_chain(tenant_id=2)
        invoices = manager_for(guarded_session, reseller_1).list_invoices()
        assert [i.tenant_id for i in invoices] == [1]

    def test_status_filter(self, session, factory, manager_for):
        factory.billing_chain(status=InvoiceStatus.OVERDUE.value)
        factory.billing_chain()
        invoices = manager_for(session).list_invoices(status=InvoiceStatus.OVERDUE.value)
        assert [i.status for i in invoices] == [InvoiceStatus.OVERDUE.value]
