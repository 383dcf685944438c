import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from talent_finance.main import app


WORKED_CONFIG = {
    "id": "cfg_2025",
    "platform": "douyin",
    "discountRate": 0.7,
    "platformFeeRate": 0.05,
    "serviceFeeRate": 0.03,
    "includesPlatformFee": True,
    "serviceFeeBase": "afterDiscount",
    "includesTax": False,
    "taxCalculationBase": "includeServiceFee",
    "validFrom": "2025-01-01",
    "validTo": "2025-12-31",
}

IDENTITY_CONFIG = {"id": "cfg_dy_identity", "platform": "douyin", "isPermanent": True}


@pytest.fixture
def client():
    return TestClient(app)


def _collaboration(id, amount, platform="douyin", **extra):
    body = {"id": id, "talentPlatform": platform, "amount": amount, "status": "scheduled",
            "priceLockedDate": "2025-06-01"}
    body.update(extra)
    return body


class TestFinanceApi:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_coefficient(self, client):
        response = client.post("/finance/coefficient", json={"baseAmount": 100000, "config": WORKED_CONFIG})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["request_id"]
        assert body["data"]["final_amount"] == pytest.approx(80247.3)
        assert body["data"]["display_coefficient"] == 0.8025
        assert body["data"]["breakdown"]["tax_amount"] == pytest.approx(4542.3)

    def test_coefficient_negative_rate_is_bad_request(self, client):
        config = dict(WORKED_CONFIG, discountRate=-0.1)

        response = client.post("/finance/coefficient", json={"baseAmount": 100000, "config": config})

        assert response.status_code == 400
        assert "discount_rate" in response.json()["detail"]["message"]

    def test_resolve(self, client):
        response = client.post("/finance/resolve", json={
            "platform": "douyin", "asOf": "2025-06-01", "configs": [WORKED_CONFIG]
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["config"]["id"] == "cfg_2025"
        assert data["config"]["discountRate"] == 0.7
        assert data["status"] == "active"

    def test_resolve_not_found(self, client):
        response = client.post("/finance/resolve", json={
            "platform": "douyin", "asOf": "2026-06-01", "configs": [WORKED_CONFIG]
        })

        assert response.status_code == 404
        assert response.json()["detail"]["request_id"]

    def test_evaluate_reports_failures(self, client):
        response = client.post("/finance/evaluate", json={
            "configs": [WORKED_CONFIG],
            "collaborations": [
                _collaboration("ok", 100000),
                _collaboration("no_config", 100000, platform="kuaishou"),
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"]["results"]["ok"]["revenue"] == 80247
        assert body["data"]["failures"][0]["collaboration_id"] == "no_config"
        assert body["data"]["failures"][0]["error_type"] == "ConfigNotFoundError"

    def test_tracking_stats(self, client):
        response = client.post("/finance/tracking-stats", json={
            "configs": [IDENTITY_CONFIG],
            "collaborations": [
                _collaboration("a", 100000, dailyStats=[{"date": "2025-06-01", "totalViews": 100000}]),
                _collaboration("b", 50000, status="pending"),
            ],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_amount"] == 100000
        assert data["avg_cpm"] == 10.0
        assert data["latest_data_date"] == "2025-06-01"

    def test_project_stats_requires_as_of_for_funds(self, client):
        response = client.post("/finance/project-stats", json={
            "configs": [IDENTITY_CONFIG],
            "collaborations": [_collaboration("a", 100000, orderDate="2025-06-01")],
            "fundsOccupationEnabled": True,
            "monthlyRate": 1.5,
        })

        assert response.status_code == 400

    def test_project_stats_with_funds_occupation(self, client):
        response = client.post("/finance/project-stats", json={
            "configs": [IDENTITY_CONFIG],
            "collaborations": [_collaboration("a", 100000, orderDate="2025-06-01")],
            "fundsOccupationEnabled": True,
            "monthlyRate": 1.5,
            "asOf": "2025-07-01",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["funds_occupation"] == 1500
        assert data["platform_stats"][0]["platform"] == "douyin"

    def test_daily_report_lists_failures(self, client):
        response = client.post("/finance/daily-report", json={
            "reportDate": "2025-06-02",
            "configs": [IDENTITY_CONFIG],
            "collaborations": [
                {"id": "a", "platform": "douyin", "quotedAmount": 100000, "status": "scheduled",
                 "priceLockedDate": "2025-06-01",
                 "dailyStats": [{"date": "2025-06-01", "totalViews": 50000},
                                {"date": "2025-06-02", "totalViews": 100000}]},
                _collaboration("e", 70000, platform="kuaishou",
                               dailyStats=[{"date": "2025-06-02", "totalViews": 500}]),
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"]["details"][0]["cpm"] == 10.0
        assert body["data"]["details"][0]["cpm_change"] == -10.0
        assert body["data"]["failures"][0]["collaboration_id"] == "e"

    def test_effective_coefficients(self, client):
        response = client.post("/finance/effective-coefficients", json={
            "asOf": "2025-07-15",
            "strategies": {
                "douyin": {"enabled": True, "pricingModel": "framework", "configs": [WORKED_CONFIG]},
                "xiaohongshu": {"enabled": True, "pricingModel": "project"},
            },
        })

        assert response.status_code == 200
        assert response.json()["data"] == {"douyin": 0.8025}

    @patch("talent_finance.main.calculate_effective_coefficients")
    def test_unexpected_error_is_server_error(self, mock_calculate, client):
        mock_calculate.side_effect = Exception("boom")

        response = client.post("/finance/effective-coefficients", json={"asOf": "2025-07-15", "strategies": {}})

        assert response.status_code == 500
        assert "boom" in response.json()["detail"]["message"]
