"""
API Auth Tests — read endpoints require an authenticated user.
"""

from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from api.deps import get_current_user
from api.main import app

FAKE_ID = "00000000-0000-0000-0000-000000000099"

READ_PATHS = [
    "/api/v1/payouts/pending",
    f"/api/v1/payouts/user/{FAKE_ID}",
    f"/api/v1/payouts/{FAKE_ID}",
    f"/api/v1/payouts/{FAKE_ID}/items",
    "/api/v1/payouts/reports/revenue?start=2026-01-01&end=2026-01-31",
    f"/api/v1/ledger/?user_id={FAKE_ID}",
    f"/api/v1/couriers/{FAKE_ID}/location",
    "/api/v1/shipments/",
    "/api/v1/statuses/",
]


@pytest.fixture
def anonymous_client(client: AsyncClient, monkeypatch):
    """Test client without the auth override, outside debug mode."""
    app.dependency_overrides.pop(get_current_user, None)
    monkeypatch.setattr("api.deps.settings", SimpleNamespace(debug=False))
    return client


@pytest.mark.asyncio
class TestReadEndpointsRequireAuth:
    @pytest.mark.parametrize("path", READ_PATHS)
    async def test_anonymous_read_is_rejected(self, anonymous_client: AsyncClient, path):
        response = await anonymous_client.get(path)
        assert response.status_code in (401, 403)

    async def test_bearer_token_is_accepted(self, anonymous_client: AsyncClient, catalog_db):
        from core.security import create_access_token

        token = create_access_token({"sub": FAKE_ID, "role": "OWNER"})
        response = await anonymous_client.get("/api/v1/payouts/pending", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == []
