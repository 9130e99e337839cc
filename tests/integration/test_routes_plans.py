import pytest


@pytest.mark.integration
class TestPlanRoutes:
    async def test_list_plans(self, client) -> None:
        resp = await client.get("/api/plans")
        assert resp.status_code == 200
        plans = resp.json()
        assert [p["code"] for p in plans] == ["free", "pro", "premium"]
        assert plans[1]["price_monthly"] == "4.99"
        assert plans[0]["is_default"] is True

    async def test_get_plan_includes_features(self, client) -> None:
        resp = await client.get("/api/plans/pro")
        assert resp.status_code == 200
        features = {f["feature_code"]: f for f in resp.json()["features"]}
        assert features["accounts"]["limit_value"] == 10
        assert features["advanced_reports"]["limit_type"] == "BOOLEAN"
        assert features["transactions_per_month"]["feature_type"] == "CONSUMABLE"

    async def test_unknown_plan(self, client) -> None:
        resp = await client.get("/api/plans/gold")
        assert resp.status_code == 404
        assert resp.json()["code"] == "PLAN_NOT_FOUND"

    async def test_plans_are_public(self, client) -> None:
        resp = await client.get("/api/plans", headers={})
        assert resp.status_code == 200
