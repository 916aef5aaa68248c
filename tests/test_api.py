"""
HTTP API tests.
"""

import logging
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient


FLAGS = "/api/v1/flags"
EVALUATIONS = "/api/v1/evaluations"


async def create_flag(client: AsyncClient, code: str = "checkout", **overrides) -> dict:
    payload = {
        "code": code,
        "name": "New checkout",
        "value_type": "BOOLEAN",
        "value": False,
        "enabled": True,
        **overrides,
    }
    response = await client.post(FLAGS, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def create_rule(client: AsyncClient, code: str = "checkout", **payload) -> dict:
    response = await client.post(f"{FLAGS}/{code}/rules", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


# ============ Health ============


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_request_id_is_generated_when_missing(client: AsyncClient):
    response = await client.get("/health")

    assert UUID(response.headers["X-Request-ID"])


@pytest.mark.asyncio
async def test_requests_are_logged_with_request_id(client: AsyncClient, caplog):
    caplog.set_level(logging.INFO, logger="groundcontrol.api.middleware.logging")

    await client.get("/health", headers={"X-Request-ID": "req-456"})

    completed = [r for r in caplog.records if r.getMessage().startswith("Request completed")]
    assert len(completed) == 1
    assert completed[0].request_id == "req-456"
    assert completed[0].status_code == 200


# ============ Flags ============


class TestFlagRoutes:
    """Flag CRUD over HTTP."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient):
        created = await create_flag(client, description="Rewrite")

        response = await client.get(f"{FLAGS}/checkout")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == created["id"]
        assert data["value_type"] == "BOOLEAN"
        assert data["description"] == "Rewrite"
        assert data["rollout_rules"] == []

    @pytest.mark.asyncio
    async def test_duplicate_returns_409(self, client: AsyncClient):
        await create_flag(client)

        response = await client.post(FLAGS, json={
            "code": "checkout", "name": "Again", "value_type": "BOOLEAN",
        })

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    @pytest.mark.asyncio
    async def test_invalid_code_returns_422(self, client: AsyncClient):
        response = await client.post(FLAGS, json={
            "code": "has space", "name": "Bad", "value_type": "BOOLEAN",
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_found_error_body(self, client: AsyncClient):
        response = await client.get(f"{FLAGS}/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == 404
        assert body["error"] == "Not Found"
        assert body["message"] == "Feature flag with code 'missing' not found"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_update_and_change_state(self, client: AsyncClient):
        await create_flag(client)

        response = await client.put(f"{FLAGS}/checkout", json={"name": "Checkout v2"})
        assert response.status_code == 204

        response = await client.patch(f"{FLAGS}/checkout/change-state", json={"enabled": False})
        assert response.status_code == 204

        data = (await client.get(f"{FLAGS}/checkout")).json()
        assert data["name"] == "Checkout v2"
        assert data["enabled"] is False

    @pytest.mark.asyncio
    async def test_update_rejects_null_name(self, client: AsyncClient):
        await create_flag(client)

        response = await client.put(f"{FLAGS}/checkout", json={"name": None})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_and_by_codes(self, client: AsyncClient):
        await create_flag(client, code="a")
        await create_flag(client, code="b")

        listing = (await client.get(FLAGS, params={"per_page": 1})).json()
        assert listing["total"] == 2
        assert len(listing["flags"]) == 1

        by_codes = (await client.get(f"{FLAGS}/by-codes", params=[("codes", "a"), ("codes", "x")])).json()
        assert [f["code"] for f in by_codes["flags"]] == ["a"]
        assert by_codes["not_found"] == ["x"]

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient):
        await create_flag(client)

        assert (await client.delete(f"{FLAGS}/checkout")).status_code == 204
        assert (await client.get(f"{FLAGS}/checkout")).status_code == 404


# ============ Rules ============


class TestRuleRoutes:
    """Rule CRUD over HTTP."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient):
        await create_flag(client)
        rule = await create_rule(
            client,
            priority=2,
            value_bool=True,
            conditions=[{"attribute": "plan", "operator": "EQUALS", "value": "pro", "data_type": "STRING"}],
        )

        rules = (await client.get(f"{FLAGS}/checkout/rules")).json()

        assert [r["id"] for r in rules] == [rule["id"]]
        assert rules[0]["conditions"][0]["operator"] == "EQUALS"

    @pytest.mark.asyncio
    async def test_more_than_one_value_returns_422(self, client: AsyncClient):
        await create_flag(client)

        response = await client.post(f"{FLAGS}/checkout/rules", json={
            "value_bool": True, "value_string": "x",
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_percentage_out_of_range_returns_422(self, client: AsyncClient):
        await create_flag(client)

        response = await client.post(f"{FLAGS}/checkout/rules", json={"percentage": 101})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_partial_update(self, client: AsyncClient):
        await create_flag(client)
        rule = await create_rule(client, percentage=10, variant_name="a")

        response = await client.put(f"{FLAGS}/checkout/rules/{rule['id']}", json={"percentage": 50})

        assert response.status_code == 200
        assert response.json()["percentage"] == 50
        assert response.json()["variant_name"] == "a"

    @pytest.mark.asyncio
    async def test_unknown_rule_returns_404(self, client: AsyncClient):
        await create_flag(client)

        response = await client.get(f"{FLAGS}/checkout/rules/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reorder(self, client: AsyncClient):
        await create_flag(client)
        first = await create_rule(client, priority=0)
        second = await create_rule(client, priority=1)

        response = await client.post(
            f"{FLAGS}/checkout/rules/reorder",
            json={"rule_ids": [second["id"], first["id"]]},
        )
        assert response.status_code == 204

        rules = (await client.get(f"{FLAGS}/checkout/rules")).json()
        assert [r["id"] for r in rules] == [second["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_reorder_with_missing_ids_returns_400(self, client: AsyncClient):
        await create_flag(client)
        first = await create_rule(client, priority=0)
        await create_rule(client, priority=1)

        response = await client.post(
            f"{FLAGS}/checkout/rules/reorder",
            json={"rule_ids": [first["id"]]},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"

    @pytest.mark.asyncio
    async def test_delete_rule(self, client: AsyncClient):
        await create_flag(client)
        rule = await create_rule(client)

        assert (await client.delete(f"{FLAGS}/checkout/rules/{rule['id']}")).status_code == 204
        assert (await client.get(f"{FLAGS}/checkout/rules")).json() == []


# ============ Evaluations ============


class TestEvaluationRoutes:
    """Evaluation over HTTP."""

    @pytest.mark.asyncio
    async def test_evaluate_rule_match(self, client: AsyncClient):
        await create_flag(client, value=True)
        await create_rule(client, priority=1, percentage=100, value_bool=False, variant_name="v1")

        response = await client.post(f"{EVALUATIONS}/checkout", json={"subject_id": "u1"})

        assert response.status_code == 200
        assert response.json() == {
            "flag_code": "checkout",
            "enabled": True,
            "value": False,
            "value_type": "BOOLEAN",
            "variant": "v1",
            "reason": "RULE_MATCH",
        }

    @pytest.mark.asyncio
    async def test_evaluate_disabled(self, client: AsyncClient):
        await create_flag(client, enabled=False)

        data = (await client.post(f"{EVALUATIONS}/checkout", json={"subject_id": "u1"})).json()

        assert data["enabled"] is False
        assert data["value"] is None
        assert data["reason"] == "FLAG_DISABLED"

    @pytest.mark.asyncio
    async def test_evaluate_missing_flag_returns_404(self, client: AsyncClient):
        response = await client.post(f"{EVALUATIONS}/missing", json={})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_evaluator_returns_500(self, client: AsyncClient):
        await create_flag(client)
        await create_rule(client, conditions=[
            {"attribute": "age", "operator": "CONTAINS", "value": "1", "data_type": "NUMBER"},
        ])

        response = await client.post(
            f"{EVALUATIONS}/checkout",
            json={"subject_id": "u1", "attributes": {"age": 10}},
        )

        assert response.status_code == 500
        assert "No evaluator found" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_bulk(self, client: AsyncClient):
        await create_flag(client, code="a")
        await create_flag(client, code="b", enabled=False)

        response = await client.post(f"{EVALUATIONS}/bulk", json={
            "flag_codes": ["a", "b", "missing"],
            "subject_id": "u1",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["results"]["a"]["reason"] == "DEFAULT"
        assert data["results"]["b"]["reason"] == "FLAG_DISABLED"
        assert data["errors"] == {"missing": "Flag not found"}
        assert data["summary"] == {"requested": 3, "successful": 2, "failed": 1}

    @pytest.mark.asyncio
    async def test_bulk_requires_codes(self, client: AsyncClient):
        response = await client.post(f"{EVALUATIONS}/bulk", json={"flag_codes": []})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_bulk_limit(self, client: AsyncClient):
        codes = [f"flag_{i}" for i in range(101)]

        response = await client.post(f"{EVALUATIONS}/bulk", json={"flag_codes": codes})

        assert response.status_code == 400
