"""API tests: role checks, tenant isolation and error translation."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

from sqlmodel import Session

from ispbill.core.constants import InvoiceStatus
from ispbill.core.errors import GatewayError
from ispbill.core.tenancy import Principal
from ispbill.models import Ticket
from ispbill.services.payment_gateways.midtrans import MidtransGateway


class TestAuthorization:
    def test_anonymous_is_unauthorized(self, client):
        assert client.get("/api/invoices").status_code == 401

    def test_wrong_role_is_forbidden(self, client, act_as):
        act_as(Principal(user_id=5, role="technician", tenant_id=1))
        assert client.get("/api/invoices").status_code == 403

    def test_health_is_public(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "ok"
        assert body["gateways"] == ["midtrans", "xendit", "tripay"]


class TestTenantIsolation:
    def test_reseller_ticket_inherits_tenant(self, client, act_as, factory, engine, reseller_1):
        customer = factory.customer(tenant_id=1)
        act_as(reseller_1)

        response = client.post(
            "/api/tickets",
            json={"customer_id": customer.id, "subject": "No internet", "description": "ONT red light"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["tenant_id"] == 1
        with Session(engine) as session:
            assert session.get(Ticket, body["id"]).tenant_id == 1

    def test_other_tenant_ticket_is_not_found(self, client, act_as, factory, reseller_2):
        customer = factory.customer(tenant_id=1)
        ticket = factory.ticket(customer)
        act_as(reseller_2)

        assert client.get(f"/api/tickets/{ticket.id}").status_code == 404

    def test_ticket_for_other_tenant_customer_is_not_found(self, client, act_as, factory, reseller_2):
        customer = factory.customer(tenant_id=1)
        act_as(reseller_2)
        response = client.post(
            "/api/tickets", json={"customer_id": customer.id, "subject": "s", "description": "d"}
        )
        assert response.status_code == 404

    def test_customer_listing_is_scoped(self, client, act_as, factory, reseller_1, super_admin):
        factory.customer(tenant_id=1, name="Mine")
        factory.customer(tenant_id=2, name="Theirs")

        act_as(reseller_1)
        assert [c["name"] for c in client.get("/api/customers").json()] == ["Mine"]

        act_as(super_admin)
        assert len(client.get("/api/customers").json()) == 2

    def test_other_tenant_invoice_is_not_found(self, client, act_as, factory, reseller_2):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        act_as(reseller_2)
        assert client.get(f"/api/invoices/{invoice.id}").status_code == 404
        assert client.post(f"/api/invoices/{invoice.id}/cancel").status_code == 404

    def test_created_customer_belongs_to_reseller(self, client, act_as, reseller_1):
        act_as(reseller_1)
        response = client.post("/api/customers", json={"name": "Dewi", "tenant_id": 2})
        assert response.status_code == 201
        assert response.json()["tenant_id"] == 1

    def test_service_created_under_customer(self, client, act_as, factory, reseller_1):
        customer = factory.customer(tenant_id=1)
        package = factory.package()
        act_as(reseller_1)

        response = client.post(
            f"/api/customers/{customer.id}/services",
            json={"package_id": package.id, "username_pppoe": "dewi@net"},
        )

        assert response.status_code == 201
        assert response.json()["tenant_id"] == 1
        listed = client.get(f"/api/customers/{customer.id}/services").json()
        assert [s["username_pppoe"] for s in listed] == ["dewi@net"]


class TestInvoiceEndpoints:
    def test_cancel_paid_invoice_conflicts(self, client, act_as, factory, reseller_1):
        _, _, invoice = factory.billing_chain(
            tenant_id=1, status=InvoiceStatus.PAID.value, paid_at=datetime(2024, 1, 1)
        )
        act_as(reseller_1)
        assert client.post(f"/api/invoices/{invoice.id}/cancel").status_code == 409

    def test_cancel_unpaid_invoice(self, client, act_as, factory, reseller_1):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        act_as(reseller_1)
        response = client.post(f"/api/invoices/{invoice.id}/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == InvoiceStatus.CANCELLED.value

    def test_payment_link(self, client, act_as, factory, reseller_1):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        act_as(reseller_1)
        with patch.object(MidtransGateway, "create_payment_link", return_value="https://pay.example/abc"):
            response = client.post(f"/api/invoices/{invoice.id}/payment-link")

        assert response.status_code == 200
        assert response.json() == {"invoice_id": invoice.id, "payment_link": "https://pay.example/abc"}
        assert client.get(f"/api/invoices/{invoice.id}").json()["payment_link"] == "https://pay.example/abc"

    def test_payment_link_gateway_failure(self, client, act_as, factory, reseller_1):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        act_as(reseller_1)
        with patch.object(MidtransGateway, "create_payment_link", side_effect=GatewayError("timed out")):
            response = client.post(f"/api/invoices/{invoice.id}/payment-link")
        assert response.status_code == 502

    def test_payment_link_unknown_gateway(self, client, act_as, factory, reseller_1):
        _, _, invoice = factory.billing_chain(tenant_id=1)
        act_as(reseller_1)
        response = client.post(f"/api/invoices/{invoice.id}/payment-link", json={"gateway": "paypal"})
        assert response.status_code == 400

    def test_sync_unknown_payment(self, client, act_as, super_admin):
        act_as(super_admin)
        assert client.post("/api/payments/nope/sync").status_code == 404


class TestStatusValidation:
    def test_customer_status_outside_vocabulary_is_rejected(self, client, act_as, reseller_1):
        act_as(reseller_1)
        response = client.post("/api/customers", json={"name": "x", "status": "hacked"})
        assert response.status_code == 422

    def test_customer_default_status(self, client, act_as, reseller_1):
        act_as(reseller_1)
        response = client.post("/api/customers", json={"name": "Dewi"})
        assert response.status_code == 201
        assert response.json()["status"] == "pending_survey"

    def test_customer_update_status_is_validated(self, client, act_as, factory, reseller_1):
        customer = factory.customer(tenant_id=1)
        act_as(reseller_1)
        assert client.put(f"/api/customers/{customer.id}", json={"status": "gone"}).status_code == 422
        response = client.put(f"/api/customers/{customer.id}", json={"status": "active"})
        assert response.status_code == 200
        assert response.json()["status"] == "active"

    def test_service_status_outside_vocabulary_is_rejected(self, client, act_as, factory, reseller_1):
        customer = factory.customer(tenant_id=1)
        package = factory.package()
        act_as(reseller_1)
        response = client.post(
            f"/api/customers/{customer.id}/services",
            json={"package_id": package.id, "status": "free_forever"},
        )
        assert response.status_code == 422

    def test_ticket_priority_and_status_are_validated(self, client, act_as, factory, reseller_1):
        customer = factory.customer(tenant_id=1)
        ticket = factory.ticket(customer)
        act_as(reseller_1)

        response = client.post(
            "/api/tickets",
            json={"customer_id": customer.id, "subject": "s", "description": "d", "priority": "urgent"},
        )
        assert response.status_code == 422
        assert client.patch(f"/api/tickets/{ticket.id}", json={"status": "ignored"}).status_code == 422

        response = client.patch(f"/api/tickets/{ticket.id}", json={"status": "in_progress", "priority": "high"})
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"
        assert response.json()["priority"] == "high"


class TestPackageEndpoints:
    def test_super_admin_creates_package(self, client, act_as, super_admin):
        act_as(super_admin)
        response = client.post("/api/packages", json={"name": "Home 50", "speed": "50 Mbps", "price": "300000.00"})

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Home 50"
        assert body["is_active"] is True
        assert client.get(f"/api/packages/{body['id']}").json()["speed"] == "50 Mbps"

    def test_reseller_cannot_create_package(self, client, act_as, reseller_1):
        act_as(reseller_1)
        response = client.post("/api/packages", json={"name": "Cheap", "speed": "1 Mbps", "price": "1"})
        assert response.status_code == 403

    def test_reseller_lists_shared_catalog(self, client, act_as, factory, reseller_2):
        factory.package(name="Home 20", price="150000.00")
        factory.package(name="Home 10", price="100000.00")
        act_as(reseller_2)

        response = client.get("/api/packages")

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Home 10", "Home 20"]

    def test_active_only_and_search(self, client, act_as, factory, super_admin):
        factory.package(name="Home 20")
        factory.package(name="Business 100", speed="100 Mbps")
        act_as(super_admin)
        retired = client.post(
            "/api/packages", json={"name": "Legacy", "speed": "5 Mbps", "price": "50000", "is_active": False}
        ).json()

        active = client.get("/api/packages", params={"active_only": True}).json()
        assert retired["id"] not in [p["id"] for p in active]
        assert [p["name"] for p in client.get("/api/packages", params={"search": "100"}).json()] == ["Business 100"]

    def test_duplicate_name_and_negative_price(self, client, act_as, factory, super_admin):
        factory.package(name="Home 20")
        act_as(super_admin)
        assert client.post("/api/packages", json={"name": "Home 20", "speed": "20 Mbps", "price": "1"}).status_code == 400
        assert client.post("/api/packages", json={"name": "Neg", "speed": "1 Mbps", "price": "-5"}).status_code == 422

    def test_update_package(self, client, act_as, factory, super_admin):
        package = factory.package()
        act_as(super_admin)
        response = client.put(f"/api/packages/{package.id}", json={"price": "175000.00"})
        assert response.status_code == 200
        assert Decimal(response.json()["price"]) == Decimal("175000.00")

    def test_unknown_package_is_not_found(self, client, act_as, super_admin):
        act_as(super_admin)
        assert client.get("/api/packages/999").status_code == 404
        assert client.put("/api/packages/999", json={"price": "1"}).status_code == 404
