import asyncio
import os
import tempfile
import unittest
from datetime import timedelta

from tests.base import *  # noqa: F401,F403

from fastapi.testclient import TestClient

from menuadmin.core.security import create_access_token
from menuadmin.database import get_session_factory
from menuadmin.main import app


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = make_engine(os.path.join(self._tmp.name, "api.db"))
        self.session_factory = make_session_factory(self.engine)
        self.seed = asyncio.run(self._prepare())
        app.dependency_overrides[get_session_factory] = lambda: self.session_factory
        self.client = TestClient(app)

    async def _prepare(self):
        await create_schema(self.engine)
        return await seed_menu(self.session_factory)

    def tearDown(self):
        app.dependency_overrides.clear()
        asyncio.run(self.engine.dispose())
        self._tmp.cleanup()

    def _auth_headers(self, user: dict) -> dict:
        token = create_access_token(user["id"], user["role"])
        return {"Authorization": f"Bearer {token}"}


class AuthTests(ApiTestCase):
    def test_missing_token(self):
        response = self.client.post("/api/v1/stores/list", json={})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {
            "success": False,
            "error": {"code": "HTTP_401", "message": "Authentication required."},
        })

    def test_expired_token(self):
        token = create_access_token(ADMIN_USER["id"], "ADMIN", expires_delta=timedelta(seconds=-5))
        response = self.client.post(
            "/api/v1/stores/list", json={}, headers={"Authorization": f"Bearer {token}"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertIn("expired", response.json()["error"]["message"])

    def test_garbage_token(self):
        response = self.client.post(
            "/api/v1/stores/list", json={}, headers={"Authorization": "Bearer not-a-token"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "Invalid authentication token.")

    def test_wrong_role_is_forbidden(self):
        response = self.client.post(
            "/api/v1/stores/list", json={}, headers=self._auth_headers(STORE_ADMIN_USER),
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_request_id_is_echoed(self):
        response = self.client.post(
            "/api/v1/stores/list", json={},
            headers={**self._auth_headers(ADMIN_USER), "X-Request-ID": "req-42"},
        )
        self.assertEqual(response.headers["X-Request-ID"], "req-42")


class ListApiTests(ApiTestCase):
    def test_store_list_envelope(self):
        response = self.client.post(
            "/api/v1/stores/list", json={"limit": 2}, headers=self._auth_headers(ADMIN_USER),
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        data = body["data"]
        self.assertEqual(
            {k: data[k] for k in ("totalCount", "hasMore", "currentPage", "totalPages")},
            {"totalCount": 3, "hasMore": True, "currentPage": 1, "totalPages": 2},
        )
        self.assertEqual([row["title"] for row in data["data"]], ["Bistro", "CAFE House"])

    def test_advanced_search(self):
        response = self.client.post(
            "/api/v1/stores/list",
            json={"advancedSearch": [
                {"field": "title", "value": "cafe", "operation": "startsWith"},
            ]},
            headers=self._auth_headers(ADMIN_USER),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["title"] for row in response.json()["data"]["data"]], ["CAFE House", "Cafe Corner"])

    def test_relation_search(self):
        response = self.client.post(
            "/api/v1/stores/list",
            json={"advancedSearch": [
                {"field": "username", "value": "admin", "operation": "eq", "relation": "user"},
            ]},
            headers=self._auth_headers(ADMIN_USER),
        )
        self.assertEqual([row["title"] for row in response.json()["data"]["data"]], ["Bistro"])

    def test_malformed_between_is_rejected(self):
        response = self.client.post(
            "/api/v1/stores/list",
            json={"advancedSearch": [{"field": "created_at", "value": ["2024-01-01"], "operation": "between"}]},
            headers=self._auth_headers(ADMIN_USER),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_unknown_field_is_bad_request(self):
        response = self.client.post(
            "/api/v1/users/list",
            json={"advancedSearch": [{"field": "secret", "value": "x", "operation": "eq"}]},
            headers=self._auth_headers(ADMIN_USER),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], {"code": "BAD_REQUEST", "message": "Unknown field: secret"})

    def test_wrong_shaped_comparison_is_validation_error(self):
        for value in (["a", "b"], {"equals": "a"}):
            with self.subTest(value=value):
                response = self.client.post(
                    "/api/v1/stores/list",
                    json={"advancedSearch": [{"field": "title", "value": value, "operation": "eq"}]},
                    headers=self._auth_headers(ADMIN_USER),
                )
                self.assertEqual(response.status_code, 422)
                self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_user_list_hides_passwords(self):
        response = self.client.post(
            "/api/v1/users/list", json={"orderBy": {"username": "asc"}},
            headers=self._auth_headers(ADMIN_USER),
        )
        rows = response.json()["data"]["data"]
        self.assertEqual([row["username"] for row in rows], ["admin", "owner"])
        self.assertTrue(all("password" not in row for row in rows))

    def test_file_list_for_store_admin(self):
        response = self.client.post(
            "/api/v1/files/list", json={"published": True},
            headers=self._auth_headers(STORE_ADMIN_USER),
        )
        self.assertEqual([row["name"] for row in response.json()["data"]["data"]], ["menu.pdf"])

    def test_my_stores_and_files(self):
        headers = self._auth_headers(STORE_ADMIN_USER)
        stores = self.client.get("/api/v1/stores/mine", headers=headers).json()["data"]
        self.assertEqual(sorted(row["title"] for row in stores["data"]), ["CAFE House", "Cafe Corner"])

        active = self.client.get("/api/v1/stores/mine?active=true&search=corner", headers=headers)
        (store,) = active.json()["data"]["data"]
        self.assertEqual([b["title"] for b in store["branches"]], ["Main"])

        files = self.client.get("/api/v1/files/mine?mime_type=image/png", headers=headers)
        self.assertEqual([row["name"] for row in files.json()["data"]["data"]], ["logo.png"])

    def test_menu_browsing(self):
        headers = self._auth_headers(STORE_ADMIN_USER)
        corner_id = self.seed["corner"].id
        response = self.client.get(f"/api/v1/menu/stores/{corner_id}/categories", headers=headers)
        self.assertEqual([row["title"] for row in response.json()["data"]["data"]], ["Food", "Drinks"])

        response = self.client.get("/api/v1/menu/items?min_price=2&max_price=3", headers=headers)
        titles = sorted(row["title"] for row in response.json()["data"]["data"])
        self.assertEqual(titles, ["Croissant", "Espresso"])

    def test_menu_item_filters_combine(self):
        headers = self._auth_headers(STORE_ADMIN_USER)

        def titles(query):
            response = self.client.get(f"/api/v1/menu/items?{query}", headers=headers)
            self.assertEqual(response.status_code, 200)
            return sorted(row["title"] for row in response.json()["data"]["data"])

        self.assertEqual(titles("store_title=Bistro"), ["Steak"])
        self.assertEqual(titles("store_title=Bistro&min_price=0&max_price=5"), [])
        self.assertEqual(titles("store_title=Corner&max_price=3"), ["Croissant", "Espresso"])
        self.assertEqual(titles("min_price=20"), ["Steak"])


class GeneratedCrudApiTests(ApiTestCase):
    def test_store_crud_round(self):
        headers = self._auth_headers(ADMIN_USER)
        created = self.client.post("/api/v1/admin/stores/create", headers=headers, json={
            "title": "Noodle Bar",
            "userId": str(self.seed["owner"].id),
            "storeTypeId": str(self.seed["bistro"].id),
        })
        self.assertEqual(created.status_code, 201)
        store_id = created.json()["data"]["id"]

        updated = self.client.post(
            "/api/v1/admin/stores/update", headers=headers, json={"id": store_id, "active": True},
        )
        self.assertTrue(updated.json()["data"]["active"])

        listed = self.client.post(
            "/api/v1/admin/stores/list", headers=headers, json={"search": "noodle"},
        )
        self.assertEqual([row["id"] for row in listed.json()["data"]["data"]], [store_id])

        deleted = self.client.post("/api/v1/admin/stores/delete", headers=headers, json={"id": store_id})
        self.assertEqual(deleted.json(), {"success": True, "message": "Store deleted successfully"})

        missing = self.client.post("/api/v1/admin/stores/get", headers=headers, json={"id": store_id})
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"], {"code": "NOT_FOUND", "message": "Store not found"})

    def test_store_admin_cannot_create_stores(self):
        response = self.client.post(
            "/api/v1/admin/stores/create",
            headers=self._auth_headers(STORE_ADMIN_USER),
            json={
                "title": "Mine",
                "userId": str(STORE_ADMIN_USER["id"]),
                "storeTypeId": str(self.seed["cafe"].id),
            },
        )
        self.assertEqual(response.status_code, 403)

    def test_hidden_fields_cannot_be_searched(self):
        response = self.client.post(
            "/api/v1/admin/items/list",
            headers=self._auth_headers(STORE_ADMIN_USER),
            json={"advancedSearch": [{
                "field": "password",
                "relation": "category.store.user",
                "operation": "startsWith",
                "value": "x",
                "caseSensitive": True,
            }]},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], {
            "code": "BAD_REQUEST",
            "message": "Field cannot be used in queries: password",
        })

    def test_null_for_required_field_is_validation_error(self):
        response = self.client.post(
            "/api/v1/admin/stores/update",
            headers=self._auth_headers(ADMIN_USER),
            json={"id": str(self.seed["corner"].id), "title": None},
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_item_create_validation(self):
        headers = self._auth_headers(STORE_ADMIN_USER)
        response = self.client.post("/api/v1/admin/items/create", headers=headers, json={
            "title": "Tea", "price": -1, "categoryId": str(self.seed["drinks"].id),
        })
        self.assertEqual(response.status_code, 422)

        response = self.client.post("/api/v1/admin/items/create", headers=headers, json={
            "title": "Tea", "price": 1.5, "categoryId": str(self.seed["drinks"].id),
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["category"]["title"], "Drinks")
