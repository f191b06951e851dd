"""Tests for budget API endpoints."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from budget_engine.services.budget_service import BudgetService

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def limits(*pairs):
    """Request body lines for ``(category, limit)`` pairs."""
    return [{"category_id": str(c.id), "monthly_limit": str(amount)} for c, amount in pairs]


@pytest.fixture
async def template(async_client: AsyncClient, categories, family_headers):
    """Monthly template created through the API."""
    response = await async_client.post(
        "/api/budgets/templates",
        headers=family_headers("admin"),
        json={
            "name": "Groceries",
            "categories": limits((categories["food"], 500), (categories["dining"], 300)),
            "alert_threshold": 75,
        },
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def february(async_client: AsyncClient, categories, family_headers):
    """Hand-made February budget created through the API."""
    response = await async_client.post(
        "/api/budgets",
        headers=family_headers("member"),
        json={
            "name": "Household",
            "categories": limits((categories["food"], 500), (categories["dining"], 300)),
            "start_date": "2025-02-01",
        },
    )
    assert response.status_code == 201
    return response.json()


class TestFamilyContext:
    """Tests for header-based role gating."""

    async def test_missing_family_header(self, async_client: AsyncClient):
        response = await async_client.get("/api/budgets")

        assert response.status_code == 422

    async def test_unknown_role_is_forbidden(self, async_client: AsyncClient, family_headers):
        response = await async_client.get("/api/budgets", headers=family_headers("owner"))

        assert response.status_code == 403

    async def test_viewer_cannot_create_budget(
        self, async_client: AsyncClient, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets",
            headers=family_headers("viewer"),
            json={"name": "Nope", "categories": limits((categories["food"], 100))},
        )

        assert response.status_code == 403

    async def test_member_cannot_manage_templates(
        self, async_client: AsyncClient, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/templates",
            headers=family_headers("member"),
            json={"name": "Nope", "categories": limits((categories["food"], 100))},
        )

        assert response.status_code == 403


class TestTemplateRoutes:
    """Tests for template endpoints."""

    async def test_create_template(self, template):
        assert template["name"] == "Groceries"
        assert Decimal(template["total_budget"]) == Decimal("800")
        assert template["period"] == "MONTHLY"
        assert template["auto_generate"] is True
        assert len(template["categories"]) == 2

    async def test_duplicate_name_conflicts(
        self, async_client: AsyncClient, template, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/templates",
            headers=family_headers(),
            json={"name": "Groceries", "categories": limits((categories["fun"], 10))},
        )

        assert response.status_code == 409

    async def test_duplicate_category_in_request(
        self, async_client: AsyncClient, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/templates",
            headers=family_headers(),
            json={
                "name": "Twice",
                "categories": limits((categories["food"], 10), (categories["food"], 20)),
            },
        )

        assert response.status_code == 422

    async def test_unknown_category_is_not_found(self, async_client: AsyncClient, family_headers):
        response = await async_client.post(
            "/api/budgets/templates",
            headers=family_headers(),
            json={
                "name": "Ghost",
                "categories": [{"category_id": str(uuid4()), "monthly_limit": "10"}],
            },
        )

        assert response.status_code == 404

    async def test_list_get_update_delete(
        self, async_client: AsyncClient, template, categories, family_headers
    ):
        url = f"/api/budgets/templates/{template['id']}"

        listed = await async_client.get("/api/budgets/templates", headers=family_headers("viewer"))
        assert [t["id"] for t in listed.json()] == [template["id"]]

        fetched = await async_client.get(url, headers=family_headers("viewer"))
        assert fetched.status_code == 200

        updated = await async_client.put(
            url,
            headers=family_headers(),
            json={"name": "Food only", "categories": limits((categories["food"], 650))},
        )
        assert updated.status_code == 200
        assert updated.json()["name"] == "Food only"
        assert Decimal(updated.json()["total_budget"]) == Decimal("650")

        deleted = await async_client.delete(url, headers=family_headers())
        assert deleted.status_code == 204

        gone = await async_client.get(url, headers=family_headers())
        assert gone.status_code == 404


class TestBudgetRoutes:
    """Tests for budget CRUD endpoints."""

    async def test_create_budget(self, february):
        assert february["name"] == "Household"
        assert february["start_date"] == "2025-02-01"
        assert february["end_date"] == "2025-03-01"
        assert february["period"] == "MONTHLY"
        assert Decimal(february["total_budget"]) == Decimal("800")

    async def test_invalid_period_unit(self, async_client: AsyncClient, categories, family_headers):
        response = await async_client.post(
            "/api/budgets",
            headers=family_headers(),
            json={
                "name": "Odd",
                "categories": limits((categories["food"], 10)),
                "period": "FORTNIGHTLY",
            },
        )

        assert response.status_code == 422

    async def test_get_budget_details(
        self, async_client: AsyncClient, february, categories, family_headers, add_expense
    ):
        await add_expense(categories["food"], "450", date(2025, 2, 4))

        response = await async_client.get(
            f"/api/budgets/{february['id']}", headers=family_headers("viewer")
        )

        assert response.status_code == 200
        data = response.json()
        assert data["budget"]["id"] == february["id"]
        food = data["categories"][0]
        assert food["category"]["name"] == "Food"
        assert Decimal(food["current_spent"]) == Decimal("450")
        assert Decimal(food["remaining"]) == Decimal("50")
        assert food["is_near_limit"] is True
        assert Decimal(data["total_spent"]) == Decimal("450")

    async def test_get_other_family_budget(self, async_client: AsyncClient, february):
        response = await async_client.get(
            f"/api/budgets/{february['id']}",
            headers={"X-Family-ID": str(uuid4()), "X-Family-Role": "admin"},
        )

        assert response.status_code == 404

    async def test_list_budgets(self, async_client: AsyncClient, february, family_headers):
        response = await async_client.get(
            "/api/budgets", params={"active_on": "2025-02-14"}, headers=family_headers("viewer")
        )

        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [february["id"]]

    async def test_storage_error_is_retryable(self, async_client: AsyncClient, family_headers):
        error = OperationalError("SELECT budgets", {}, Exception("connection reset"))

        with patch.object(BudgetService, "list_budgets", side_effect=error):
            response = await async_client.get("/api/budgets", headers=family_headers("viewer"))

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"

    async def test_update_budget(
        self, async_client: AsyncClient, february, categories, family_headers
    ):
        response = await async_client.put(
            f"/api/budgets/{february['id']}",
            headers=family_headers("member"),
            json={
                "name": "Household v2",
                "categories": limits((categories["food"], 450)),
                "alert_threshold": 90,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Household v2"
        assert data["alert_threshold"] == 90
        assert len(data["categories"]) == 1

    async def test_delete_budget_requires_admin(
        self, async_client: AsyncClient, february, family_headers
    ):
        url = f"/api/budgets/{february['id']}"

        forbidden = await async_client.delete(url, headers=family_headers("member"))
        deleted = await async_client.delete(url, headers=family_headers("admin"))
        gone = await async_client.get(url, headers=family_headers())

        assert forbidden.status_code == 403
        assert deleted.status_code == 204
        assert gone.status_code == 404


class TestGenerationRoutes:
    """Tests for generation and missing-budget endpoints."""

    async def test_generate_then_conflict(self, async_client: AsyncClient, template, family_headers):
        body = {"template_id": template["id"], "start_date": "2025-01-15"}

        first = await async_client.post(
            "/api/budgets/generate", headers=family_headers("member"), json=body
        )
        second = await async_client.post(
            "/api/budgets/generate", headers=family_headers("member"), json=body
        )

        assert first.status_code == 201
        data = first.json()
        assert data["name"] == "Groceries"
        assert data["period"]["start"] == "2025-01-01"
        assert data["period"]["end"] == "2025-02-01"
        assert data["period"]["label"] == "2025-01"
        assert data["previous_budget_id"] is None
        assert second.status_code == 409
        assert "2025-01" in second.json()["detail"]

    async def test_generate_unknown_template(self, async_client: AsyncClient, family_headers):
        response = await async_client.post(
            "/api/budgets/generate", headers=family_headers(), json={"template_id": str(uuid4())}
        )

        assert response.status_code == 404

    async def test_missing_and_generate_missing(
        self, async_client: AsyncClient, template, family_headers
    ):
        missing = await async_client.get(
            "/api/budgets/missing",
            params={"reference_date": "2025-02-10"},
            headers=family_headers("viewer"),
        )
        assert missing.status_code == 200
        assert missing.json()["count"] == 1
        entry = missing.json()["missing"][0]
        assert entry["template_id"] == template["id"]
        assert entry["period"]["start"] == "2025-02-01"

        summary = await async_client.post(
            "/api/budgets/generate-missing",
            headers=family_headers("member"),
            json={"reference_date": "2025-02-10"},
        )
        assert summary.status_code == 200
        data = summary.json()
        assert data["run_month"] == "2025-02"
        assert data["generated_count"] == 1
        assert data["results"][0]["status"] == "generated"
        assert data["results"][0]["period_label"] == "2025-02"

        after = await async_client.get(
            "/api/budgets/missing",
            params={"reference_date": "2025-02-10"},
            headers=family_headers("viewer"),
        )
        assert after.json()["count"] == 0

    async def test_generate_missing_without_body(
        self, async_client: AsyncClient, template, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/generate-missing", headers=family_headers("member")
        )

        assert response.status_code == 200
        assert response.json()["generated_count"] == 1


class TestRolloverRoutes:
    """Tests for rollover preview and apply endpoints."""

    async def test_preview(
        self, async_client: AsyncClient, february, categories, family_headers, add_expense
    ):
        await add_expense(categories["food"], "450", date(2025, 2, 4))

        response = await async_client.post(
            "/api/budgets/rollover/preview",
            headers=family_headers("viewer"),
            json={"budget_id": february["id"]},
        )

        assert response.status_code == 200
        data = response.json()
        by_name = {c["category_name"]: c for c in data["categories"]}
        assert Decimal(by_name["Food"]["rollover_amount"]) == Decimal("50")
        assert Decimal(by_name["Dining"]["rollover_amount"]) == Decimal("300")
        assert Decimal(data["total_rollover"]) == Decimal("350")

    async def test_apply_same_budget_is_rejected(
        self, async_client: AsyncClient, february, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/rollover/apply",
            headers=family_headers("admin"),
            json={"budget_id": february["id"], "next_budget_id": february["id"]},
        )

        assert response.status_code == 422

    async def test_apply_into_following_budget(
        self, async_client: AsyncClient, february, categories, family_headers, add_expense
    ):
        march = await async_client.post(
            "/api/budgets",
            headers=family_headers("member"),
            json={
                "name": "Household",
                "categories": limits((categories["food"], 500), (categories["dining"], 300)),
                "start_date": "2025-03-01",
            },
        )
        await add_expense(categories["dining"], "280", date(2025, 2, 20))

        response = await async_client.post(
            "/api/budgets/rollover/apply",
            headers=family_headers("admin"),
            json={"budget_id": february["id"], "next_budget_id": march.json()["id"]},
        )
        details = await async_client.get(
            f"/api/budgets/{march.json()['id']}", headers=family_headers()
        )

        assert response.status_code == 200
        dining = details.json()["categories"][1]
        assert Decimal(dining["rollover_amount"]) == Decimal("20")
        assert Decimal(dining["effective_limit"]) == Decimal("320")


class TestTransferRoutes:
    """Tests for transfer endpoints."""

    async def test_transfer(self, async_client: AsyncClient, february, categories, family_headers):
        response = await async_client.post(
            "/api/budgets/transfer",
            headers=family_headers("member"),
            json={
                "budget_id": february["id"],
                "from_category_id": str(categories["food"].id),
                "to_category_id": str(categories["dining"].id),
                "amount": "75",
                "reason": "Birthday dinner",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["source"]["new_rollover_amount"]) == Decimal("-75")
        assert Decimal(data["destination"]["new_rollover_amount"]) == Decimal("75")
        assert data["reason"] == "Birthday dinner"

    async def test_insufficient_funds(
        self, async_client: AsyncClient, february, categories, family_headers, add_expense
    ):
        await add_expense(categories["food"], "450", date(2025, 2, 4))

        response = await async_client.post(
            "/api/budgets/transfer",
            headers=family_headers("member"),
            json={
                "budget_id": february["id"],
                "from_category_id": str(categories["food"].id),
                "to_category_id": str(categories["dining"].id),
                "amount": "100",
            },
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert Decimal(detail["available"]) == Decimal("50")
        assert Decimal(detail["requested"]) == Decimal("100")

    async def test_non_positive_amount(
        self, async_client: AsyncClient, february, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/transfer",
            headers=family_headers("member"),
            json={
                "budget_id": february["id"],
                "from_category_id": str(categories["food"].id),
                "to_category_id": str(categories["dining"].id),
                "amount": "0",
            },
        )

        assert response.status_code == 422

    async def test_same_category(
        self, async_client: AsyncClient, february, categories, family_headers
    ):
        response = await async_client.post(
            "/api/budgets/transfer",
            headers=family_headers("member"),
            json={
                "budget_id": february["id"],
                "from_category_id": str(categories["food"].id),
                "to_category_id": str(categories["food"].id),
                "amount": "10",
            },
        )

        assert response.status_code == 400

    async def test_transfer_options(
        self, async_client: AsyncClient, february, categories, family_headers
    ):
        response = await async_client.get(
            "/api/budgets/transfer/options",
            params={
                "budget_id": february["id"],
                "needing_category_id": str(categories["dining"].id),
            },
            headers=family_headers("viewer"),
        )

        assert response.status_code == 200
        data = response.json()
        assert [c["category_name"] for c in data["categories"]] == ["Food"]
        assert Decimal(data["total_available"]) == Decimal("500")


class TestCronRoutes:
    """Tests for the scheduler endpoint."""

    async def test_requires_bearer(self, async_client: AsyncClient):
        response = await async_client.post("/api/cron/generate-budgets")

        assert response.status_code == 401

    async def test_rejects_wrong_secret(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/cron/generate-budgets", headers={"Authorization": "Bearer guess"}
        )

        assert response.status_code == 401

    async def test_runs_sweep(self, async_client: AsyncClient, db_session, template):
        # The sweep opens its own sessions, so the template must be committed
        await db_session.commit()

        response = await async_client.post(
            "/api/cron/generate-budgets",
            params={"reference_date": "2025-02-10"},
            headers=CRON_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["run_month"] == "2025-02"
        assert data["total_templates"] == 1
        assert data["generated_count"] == 1


class TestHealth:
    """Tests for health endpoints."""

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_liveness(self, async_client: AsyncClient):
        response = await async_client.get("/health/live")

        assert response.status_code == 200
