"""Tests for FastAPI endpoints."""

from decimal import Decimal
from typing import Any

import pytest
from starlette.testclient import TestClient

from tenant_books.api.app import create_app
from tenant_books.api.routes import get_app_container
from tenant_books.container import Container


@pytest.fixture
def client(container: Container) -> TestClient:
    """Test client bound to the in-memory container."""
    app = create_app()
    app.dependency_overrides[get_app_container] = lambda: container
    return TestClient(app)


@pytest.fixture
def owner_headers(client: TestClient) -> dict[str, str]:
    response = client.post(
        "/tenants", json={"name": "Acme Books", "owner_email": "owner@acme.test"}
    )
    data = response.json()
    return {"X-Tenant-ID": data["id"], "X-User-ID": data["owner_id"]}


@pytest.fixture
def entity_id(client: TestClient, owner_headers: dict[str, str]) -> str:
    response = client.post("/entities", json={"name": "Acme Operating Co"}, headers=owner_headers)
    entity_id = response.json()["id"]
    client.post(f"/gl-accounts/seed/{entity_id}", headers=owner_headers)
    return entity_id


@pytest.fixture
def accounts(
    client: TestClient, owner_headers: dict[str, str], entity_id: str
) -> dict[str, str]:
    """Account ids of the seeded chart, keyed by code."""
    response = client.get(f"/gl-accounts/{entity_id}", headers=owner_headers)
    return {account["code"]: account["id"] for account in response.json()}


def _entry_payload(entity_id: str, debit_id: str, credit_id: str, amount: str) -> dict[str, Any]:
    return {
        "entity_id": entity_id,
        "entry_date": "2025-01-15",
        "memo": "Office rent",
        "lines": [
            {"gl_account_id": debit_id, "debit": amount},
            {"gl_account_id": credit_id, "credit": amount},
        ],
    }


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers


class TestTenantEndpoints:
    """Tests for tenant and member endpoints."""

    def test_create_tenant_returns_201(self, client: TestClient) -> None:
        response = client.post(
            "/tenants", json={"name": "Acme Books", "owner_email": "owner@acme.test"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Acme Books"
        assert "owner_id" in data

    def test_missing_headers_returns_422(self, client: TestClient) -> None:
        response = client.get("/entities")
        assert response.status_code == 422

    def test_unknown_user_is_denied(
        self, client: TestClient, owner_headers: dict[str, str]
    ) -> None:
        headers = {**owner_headers, "X-User-ID": "00000000-0000-0000-0000-000000000001"}
        response = client.get("/entities", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"] == "TENANT_ACCESS_DENIED"

    def test_viewer_cannot_write(
        self, client: TestClient, owner_headers: dict[str, str]
    ) -> None:
        member = client.post(
            "/tenants/members",
            json={"email": "viewer@acme.test", "role": "viewer"},
            headers=owner_headers,
        ).json()
        viewer_headers = {**owner_headers, "X-User-ID": member["user_id"]}

        response = client.post("/entities", json={"name": "Nope"}, headers=viewer_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "PERMISSION_DENIED"


class TestEntityEndpoints:
    """Tests for /entities endpoints."""

    def test_create_entity_returns_201(
        self, client: TestClient, owner_headers: dict[str, str]
    ) -> None:
        response = client.post(
            "/entities",
            json={"name": "Test LLC", "entity_type": "llc", "fiscal_year_start": 7},
            headers=owner_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["entity_type"] == "llc"
        assert data["functional_currency"] == "USD"
        assert data["fiscal_year_start"] == 7

    def test_invalid_type_returns_422(
        self, client: TestClient, owner_headers: dict[str, str]
    ) -> None:
        response = client.post(
            "/entities", json={"name": "Bad", "entity_type": "trust"}, headers=owner_headers
        )
        assert response.status_code == 422

    def test_other_tenant_entity_is_not_found(
        self, client: TestClient, entity_id: str
    ) -> None:
        rival = client.post(
            "/tenants", json={"name": "Rival", "owner_email": "boss@rival.test"}
        ).json()
        headers = {"X-Tenant-ID": rival["id"], "X-User-ID": rival["owner_id"]}

        response = client.get(f"/entities/{entity_id}", headers=headers)

        assert response.status_code == 404
        assert response.json()["error"] == "ENTITY_NOT_FOUND"


class TestGLAccountEndpoints:
    def test_seed_is_idempotent(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        response = client.post(f"/gl-accounts/seed/{entity_id}", headers=owner_headers)
        assert response.status_code == 201
        assert response.json()["seeded"] is False

    def test_duplicate_code_returns_409(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        response = client.post(
            f"/gl-accounts/{entity_id}",
            json={"code": "1100", "name": "Another bank", "account_type": "asset"},
            headers=owner_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "DUPLICATE_GL_CODE"


class TestJournalEndpoints:
    """Tests for /journal-entries endpoints."""

    def test_create_and_approve(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        created = client.post(
            "/journal-entries",
            json=_entry_payload(entity_id, accounts["5600"], accounts["1100"], "1200.00"),
            headers=owner_headers,
        )
        assert created.status_code == 201
        assert created.json()["status"] == "draft"

        approved = client.post(
            f"/journal-entries/{created.json()['id']}/approve", headers=owner_headers
        )

        assert approved.status_code == 200
        data = approved.json()
        assert data["status"] == "posted"
        assert data["entry_number"] == "JE-001"
        assert Decimal(data["total_debits"]) == Decimal("1200.00")

    def test_unbalanced_entry_returns_400(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        payload = _entry_payload(entity_id, accounts["5600"], accounts["1100"], "10.00")
        payload["lines"][1]["credit"] = "9.99"

        response = client.post("/journal-entries", json=payload, headers=owner_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "UNBALANCED_ENTRY"
        assert set(body) == {"error", "message", "context"}

    def test_void(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        entry_id = client.post(
            "/journal-entries",
            json=_entry_payload(entity_id, accounts["5600"], accounts["1100"], "50.00"),
            headers=owner_headers,
        ).json()["id"]
        client.post(f"/journal-entries/{entry_id}/approve", headers=owner_headers)

        response = client.post(
            f"/journal-entries/{entry_id}/void",
            json={"reversal_date": "2025-01-31"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["voided_entry"]["status"] == "voided"
        assert data["reversal_entry"]["linked_entry_id"] == entry_id

    def test_list_filters_by_status(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        client.post(
            "/journal-entries",
            json=_entry_payload(entity_id, accounts["5600"], accounts["1100"], "5.00"),
            headers=owner_headers,
        )

        drafts = client.get(
            "/journal-entries",
            params={"entity_id": entity_id, "status": "draft"},
            headers=owner_headers,
        )
        posted = client.get(
            "/journal-entries",
            params={"entity_id": entity_id, "status": "posted"},
            headers=owner_headers,
        )

        assert len(drafts.json()["entries"]) == 1
        assert posted.json()["entries"] == []


class TestBankingEndpoints:
    def test_record_and_post_transaction(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        bank = client.post(
            "/bank-accounts",
            json={"entity_id": entity_id, "name": "Checking", "gl_account_id": accounts["1100"]},
            headers=owner_headers,
        ).json()
        txn = client.post(
            f"/bank-accounts/{bank['id']}/transactions",
            json={"transaction_date": "2025-01-05", "description": "STRIPE", "amount": "250.00"},
            headers=owner_headers,
        ).json()

        response = client.post(
            f"/bank-transactions/{txn['id']}/post",
            json={"gl_account_id": accounts["4000"]},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json()["entry"]["source_type"] == "bank_feed"

        again = client.post(
            f"/bank-transactions/{txn['id']}/post",
            json={"gl_account_id": accounts["4000"]},
            headers=owner_headers,
        )
        assert again.status_code == 409

    def test_transfer_and_void(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        banks = [
            client.post(
                "/bank-accounts",
                json={"entity_id": entity_id, "name": name, "gl_account_id": accounts[code]},
                headers=owner_headers,
            ).json()
            for name, code in (("Checking", "1100"), ("Savings", "1000"))
        ]
        payload = {
            "from_account_id": banks[0]["id"],
            "to_account_id": banks[1]["id"],
            "amount": "40.00",
            "transfer_date": "2025-01-10",
        }

        short = client.post("/transfers", json=payload, headers=owner_headers)
        assert short.status_code == 400
        assert short.json()["error"] == "INSUFFICIENT_BALANCE"

        created = client.post(
            "/transfers", json={**payload, "check_balance": False}, headers=owner_headers
        )
        assert created.status_code == 201
        transfer = created.json()
        assert transfer["outgoing_entry"]["source_type"] == "transfer"
        assert transfer["incoming_entry"]["status"] == "posted"

        listed = client.get("/transfers", params={"entity_id": entity_id}, headers=owner_headers)
        assert [t["id"] for t in listed.json()] == [transfer["id"]]

        voided = client.post(
            f"/transfers/{transfer['id']}/void",
            json={"reversal_date": "2025-01-11"},
            headers=owner_headers,
        )
        assert voided.status_code == 200
        assert voided.json()["is_voided"] is True


class TestInvoicingEndpoints:
    """Tests for invoices, payments and aging."""

    def test_invoice_lifecycle(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        customer = client.post(
            "/clients", json={"entity_id": entity_id, "name": "Globex"}, headers=owner_headers
        ).json()
        invoice = client.post(
            "/invoices",
            json={
                "entity_id": entity_id,
                "client_id": customer["id"],
                "invoice_number": "INV-1",
                "issue_date": "2025-01-01",
                "due_date": "2025-01-31",
                "lines": [{"description": "Work", "quantity": "2", "unit_price": "50"}],
            },
            headers=owner_headers,
        )
        assert invoice.status_code == 201
        invoice_id = invoice.json()["id"]
        assert Decimal(invoice.json()["total"]) == Decimal("100")

        sent = client.post(f"/invoices/{invoice_id}/send", headers=owner_headers)
        assert sent.json()["status"] == "sent"

        posted = client.post(f"/invoices/{invoice_id}/post", headers=owner_headers)
        assert posted.status_code == 200
        assert posted.json()["source_type"] == "invoice"

        payment = client.post(
            "/payments",
            json={
                "entity_id": entity_id,
                "payment_date": "2025-01-20",
                "amount": "100",
                "client_id": customer["id"],
            },
            headers=owner_headers,
        ).json()
        allocation = client.post(
            f"/payments/{payment['id']}/allocations",
            json={"document_id": invoice_id, "amount": "100"},
            headers=owner_headers,
        )
        assert allocation.status_code == 201

        paid = client.get(f"/invoices/{invoice_id}", headers=owner_headers).json()
        assert paid["status"] == "paid"

        posted_payment = client.post(
            f"/allocations/{allocation.json()['id']}/post",
            json={"bank_gl_account_id": accounts["1100"]},
            headers=owner_headers,
        )
        assert posted_payment.status_code == 200
        assert posted_payment.json()["source_type"] == "payment"

    def test_duplicate_invoice_number_returns_409(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        customer = client.post(
            "/clients", json={"entity_id": entity_id, "name": "Globex"}, headers=owner_headers
        ).json()
        payload = {
            "entity_id": entity_id,
            "client_id": customer["id"],
            "invoice_number": "INV-1",
            "issue_date": "2025-01-01",
            "due_date": "2025-01-31",
            "lines": [{"description": "Work", "quantity": "1", "unit_price": "50"}],
        }
        client.post("/invoices", json=payload, headers=owner_headers)

        response = client.post("/invoices", json=payload, headers=owner_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "DUPLICATE_DOCUMENT_NUMBER"

    def test_credit_note_lifecycle(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        customer = client.post(
            "/clients", json={"entity_id": entity_id, "name": "Globex"}, headers=owner_headers
        ).json()
        invoice_id = client.post(
            "/invoices",
            json={
                "entity_id": entity_id,
                "client_id": customer["id"],
                "invoice_number": "INV-7",
                "issue_date": "2025-01-01",
                "due_date": "2025-01-31",
                "lines": [{"description": "Work", "quantity": "1", "unit_price": "300"}],
            },
            headers=owner_headers,
        ).json()["id"]
        client.post(f"/invoices/{invoice_id}/send", headers=owner_headers)

        created = client.post(
            "/credit-notes",
            json={
                "entity_id": entity_id,
                "note_date": "2025-01-10",
                "amount": "100",
                "invoice_id": invoice_id,
                "reason": "Scope reduced",
            },
            headers=owner_headers,
        )
        assert created.status_code == 201
        note = created.json()
        assert note["credit_note_number"] == "CN-001"
        assert note["status"] == "draft"

        early = client.post(
            f"/credit-notes/{note['id']}/apply", json={"amount": "40"}, headers=owner_headers
        )
        assert early.status_code == 400
        assert early.json()["error"] == "INVALID_STATUS_TRANSITION"

        client.post(f"/credit-notes/{note['id']}/approve", headers=owner_headers)
        applied = client.post(
            f"/credit-notes/{note['id']}/apply", json={"amount": "40"}, headers=owner_headers
        ).json()
        assert applied["status"] == "approved"
        assert Decimal(applied["remaining"]) == Decimal("60")
        invoice = client.get(f"/invoices/{invoice_id}", headers=owner_headers).json()
        assert Decimal(invoice["outstanding"]) == Decimal("260")

        voided = client.post(
            f"/credit-notes/{note['id']}/void",
            json={"reversal_date": "2025-01-15"},
            headers=owner_headers,
        )
        assert voided.json()["status"] == "voided"
        invoice = client.get(f"/invoices/{invoice_id}", headers=owner_headers).json()
        assert Decimal(invoice["outstanding"]) == Decimal("300")
        assert invoice["status"] == "sent"

    def test_tax_rate_update_and_deactivate(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        rate = client.post(
            "/tax-rates",
            json={"entity_id": entity_id, "code": "VAT", "name": "VAT", "rate": "0.2"},
            headers=owner_headers,
        ).json()
        assert rate["is_active"] is True

        updated = client.patch(
            f"/tax-rates/{rate['id']}", json={"rate": "0.21"}, headers=owner_headers
        )
        assert updated.status_code == 200
        assert Decimal(updated.json()["rate"]) == Decimal("0.21")

        too_high = client.patch(
            f"/tax-rates/{rate['id']}", json={"rate": "2"}, headers=owner_headers
        )
        assert too_high.status_code == 422

        deactivated = client.post(f"/tax-rates/{rate['id']}/deactivate", headers=owner_headers)
        assert deactivated.json()["is_active"] is False
        listed = client.get(
            "/tax-rates", params={"entity_id": entity_id}, headers=owner_headers
        ).json()
        assert [(r["code"], r["is_active"]) for r in listed] == [("VAT", False)]

    def test_aging(
        self, client: TestClient, owner_headers: dict[str, str], entity_id: str
    ) -> None:
        response = client.get(
            "/aging",
            params={"entity_id": entity_id, "direction": "payable", "as_of": "2025-03-01"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert [b["label"] for b in data["buckets"]] == ["current", "1-30", "31-60", "60+"]
        assert Decimal(data["total_outstanding"]) == 0


class TestReportEndpoints:
    """Tests for /reports endpoints."""

    @pytest.fixture
    def posted(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        entry_id = client.post(
            "/journal-entries",
            json=_entry_payload(entity_id, accounts["1100"], accounts["4000"], "900.00"),
            headers=owner_headers,
        ).json()["id"]
        client.post(f"/journal-entries/{entry_id}/approve", headers=owner_headers)

    def test_trial_balance(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        posted: None,
    ) -> None:
        response = client.get(
            f"/reports/trial-balance/{entity_id}",
            params={"as_of": "2025-12-31"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_balanced"] is True
        assert data["severity"] == "ok"
        assert Decimal(data["total_debits"]) == Decimal("900.00")

    def test_trial_balance_csv(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        posted: None,
    ) -> None:
        response = client.get(
            f"/reports/trial-balance/{entity_id}/csv",
            params={"as_of": "2025-12-31"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines()[0] == "Account Code,Account Name,Debit,Credit"

    def test_profit_and_loss(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        posted: None,
    ) -> None:
        response = client.get(
            "/reports/profit-and-loss",
            params={
                "entity_ids": [entity_id],
                "start_date": "2025-01-01",
                "end_date": "2025-01-31",
            },
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert Decimal(response.json()["net_income"]) == Decimal("900.00")

    def test_cash_flow_and_csv(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        posted: None,
    ) -> None:
        params = {
            "entity_ids": [entity_id],
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
        }

        response = client.get("/reports/cash-flow", params=params, headers=owner_headers)
        exported = client.get("/reports/cash-flow/csv", params=params, headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["opening_cash"]) == 0
        assert Decimal(data["net_cash_change"]) == Decimal("900.00")
        assert Decimal(data["closing_cash"]) == Decimal("900.00")
        assert exported.status_code == 200
        assert exported.text.splitlines()[0] == "Category,Item,Amount"


class TestBudgetEndpoints:
    def test_variance(
        self,
        client: TestClient,
        owner_headers: dict[str, str],
        entity_id: str,
        accounts: dict[str, str],
    ) -> None:
        budget = client.post(
            "/budgets",
            json={
                "entity_id": entity_id,
                "name": "Rent",
                "amount": "1000",
                "start_date": "2025-01-01",
                "end_date": "2025-01-31",
                "gl_account_id": accounts["5600"],
            },
            headers=owner_headers,
        )
        assert budget.status_code == 201

        response = client.get(f"/budgets/{budget.json()['id']}/variance", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["alert_level"] == "ok"
