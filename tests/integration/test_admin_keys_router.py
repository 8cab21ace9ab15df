"""
Integration tests for admin API keys router.

Tests API key CRUD operations at /api/v1/admin/api-keys.
"""

from portal.models import APIKey

KEYS_URL = "/api/v1/admin/api-keys"


class TestListAPIKeys:
    """Test GET /api/v1/admin/api-keys endpoint."""

    def test_requires_admin_permission(self, client, auth_headers):
        """Regular API key should be denied."""
        response = client.get(KEYS_URL, headers=auth_headers)
        assert response.status_code == 403

    def test_returns_keys(self, client, admin_headers, test_api_key):
        response = client.get(KEYS_URL, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["data"]) == 2
        assert data["pagination"]["total_items"] == 2

    def test_keys_have_prefix_not_hash(self, client, admin_headers, test_api_key):
        """Returned keys should have prefix, not full hash."""
        response = client.get(KEYS_URL, headers=admin_headers)

        for key in response.json()["data"]:
            assert key["key_prefix"].startswith("ptl_")
            assert "key_hash" not in key
            assert "key" not in key

    def test_active_only(self, client, admin_headers, test_db, test_api_key):
        api_key, _ = test_api_key
        api_key.is_active = False
        test_db.commit()

        response = client.get(f"{KEYS_URL}?active_only=true", headers=admin_headers)

        assert api_key.id not in [k["id"] for k in response.json()["data"]]


class TestCreateAPIKey:
    """Test POST /api/v1/admin/api-keys endpoint."""

    def test_requires_admin_permission(self, client, auth_headers):
        response = client.post(KEYS_URL, headers=auth_headers, json={"name": "New Key"})
        assert response.status_code == 403

    def test_creates_key(self, client, admin_headers):
        response = client.post(
            KEYS_URL,
            headers=admin_headers,
            json={"name": "Web portal", "permissions": ["documents:read", "workflows:write"]},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["data"]["name"] == "Web portal"
        assert data["data"]["key"].startswith("ptl_")
        assert data["data"]["key_prefix"] == data["data"]["key"][:12]

    def test_created_key_authenticates(self, client, admin_headers):
        """The returned key should work for the permissions it was given."""
        created = client.post(
            KEYS_URL,
            headers=admin_headers,
            json={"name": "Reader", "permissions": ["workflows:read"]},
        ).json()["data"]

        headers = {"X-API-Key": created["key"]}
        assert client.get("/api/v1/workflows", headers=headers).status_code == 200
        assert client.get(KEYS_URL, headers=headers).status_code == 403

    def test_default_permissions(self, client, admin_headers):
        response = client.post(KEYS_URL, headers=admin_headers, json={"name": "Defaults"})

        assert response.json()["data"]["permissions"] == ["documents:read", "workflows:read"]

    def test_key_only_shown_once(self, client, admin_headers):
        """Plaintext key should only be shown on creation."""
        create_response = client.post(KEYS_URL, headers=admin_headers, json={"name": "Show Once Key"})
        key_id = create_response.json()["data"]["id"]

        get_response = client.get(f"{KEYS_URL}/{key_id}", headers=admin_headers)

        assert "key" not in get_response.json()["data"]

    def test_unknown_permission(self, client, admin_headers):
        response = client.post(
            KEYS_URL,
            headers=admin_headers,
            json={"name": "Bad", "permissions": ["customers:read"]},
        )

        assert response.status_code == 400
        assert "customers:read" in response.json()["detail"]

    def test_requires_name(self, client, admin_headers):
        response = client.post(KEYS_URL, headers=admin_headers, json={})

        assert response.status_code == 422


class TestGetAPIKey:
    """Test GET /api/v1/admin/api-keys/{key_id} endpoint."""

    def test_returns_key(self, client, admin_headers, test_api_key):
        api_key, _ = test_api_key
        response = client.get(f"{KEYS_URL}/{api_key.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["id"] == api_key.id
        assert response.json()["data"]["name"] == api_key.name

    def test_returns_404_for_missing(self, client, admin_headers):
        response = client.get(f"{KEYS_URL}/99999", headers=admin_headers)

        assert response.status_code == 404


class TestUpdateAPIKey:
    """Test PATCH /api/v1/admin/api-keys/{key_id} endpoint."""

    def test_updates_key(self, client, admin_headers, test_api_key):
        api_key, _ = test_api_key
        response = client.patch(
            f"{KEYS_URL}/{api_key.id}",
            headers=admin_headers,
            json={"name": "Updated Key Name", "description": "Updated description"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["data"]["name"] == "Updated Key Name"
        assert data["data"]["description"] == "Updated description"

    def test_can_update_permissions(self, client, admin_headers, test_api_key):
        api_key, _ = test_api_key
        response = client.patch(
            f"{KEYS_URL}/{api_key.id}",
            headers=admin_headers,
            json={"permissions": ["documents:read"]},
        )

        assert response.status_code == 200
        assert response.json()["data"]["permissions"] == ["documents:read"]

    def test_rejects_unknown_permission(self, client, admin_headers, test_api_key):
        api_key, _ = test_api_key
        response = client.patch(
            f"{KEYS_URL}/{api_key.id}",
            headers=admin_headers,
            json={"permissions": ["orders:write"]},
        )

        assert response.status_code == 400

    def test_deactivated_key_is_rejected(self, client, admin_headers, auth_headers, test_api_key):
        api_key, _ = test_api_key
        client.patch(f"{KEYS_URL}/{api_key.id}", headers=admin_headers, json={"is_active": False})

        response = client.get("/api/v1/workflows", headers=auth_headers)

        assert response.status_code == 401


class TestRevokeAPIKey:
    """Test DELETE /api/v1/admin/api-keys/{key_id} endpoint."""

    def test_revokes_key(self, client, admin_headers, test_db, test_api_key):
        api_key, _ = test_api_key
        key_id = api_key.id

        response = client.delete(f"{KEYS_URL}/{key_id}", headers=admin_headers)

        assert response.status_code == 204
        test_db.expire_all()
        assert test_db.get(APIKey, key_id) is None

    def test_cannot_revoke_own_key(self, client, admin_headers, admin_api_key):
        api_key, _ = admin_api_key

        response = client.delete(f"{KEYS_URL}/{api_key.id}", headers=admin_headers)

        assert response.status_code == 400
        assert "Cannot revoke" in response.json()["detail"]

    def test_returns_404_for_missing(self, client, admin_headers):
        response = client.delete(f"{KEYS_URL}/99999", headers=admin_headers)

        assert response.status_code == 404
