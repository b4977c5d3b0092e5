"""
Tests for category endpoints.
"""
from newsdesk.models.activity import Activity
from newsdesk.models.admin_post import AdminPost
from newsdesk.models.category import Category


class TestCategoryEndpoints:
    """Test category endpoints."""

    def test_list_requires_auth(self, client, category):
        assert client.get("/api/categories").status_code == 401

    def test_list_and_dropdown(self, client, db, reader_headers, category):
        db.add(Category(name="Archive", is_active=False))
        db.commit()

        listing = client.get("/api/categories", headers=reader_headers).json()
        assert listing["total"] == 2
        assert [c["name"] for c in listing["data"]] == ["Archive", "Markets"]

        dropdown = client.get("/api/categories/dropdown", headers=reader_headers).json()
        assert dropdown["data"] == [{"id": category.id, "name": "Markets"}]

    def test_create(self, client, db, admin_headers):
        response = client.post("/api/categories", headers=admin_headers, json={"name": "  Commodities "})
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Commodities"
        assert db.query(Activity).filter(Activity.activity_type == "category_created").count() == 1

    def test_reader_cannot_create(self, client, reader_headers):
        response = client.post("/api/categories", headers=reader_headers, json={"name": "Crypto"})
        assert response.status_code == 403

    def test_duplicate_name_is_case_insensitive(self, client, admin_headers, category):
        response = client.post("/api/categories", headers=admin_headers, json={"name": "MARKETS"})
        assert response.status_code == 400
        assert "already exists" in response.json()["message"]

    def test_rename_collision(self, client, db, admin_headers, category):
        other = Category(name="Economy")
        db.add(other)
        db.commit()
        response = client.put(f"/api/categories/{other.id}", headers=admin_headers, json={"name": "markets"})
        assert response.status_code == 400

        response = client.put(f"/api/categories/{other.id}", headers=admin_headers, json={"name": "Macro"})
        assert response.json()["data"]["name"] == "Macro"

    def test_delete_requires_superadmin(self, client, crud_headers, category):
        response = client.delete(f"/api/categories/{category.id}", headers=crud_headers)
        assert response.status_code == 403

    def test_delete_blocked_while_in_use(self, client, super_headers, post_payload, category):
        client.post("/api/posts", headers=super_headers, json=post_payload)
        response = client.delete(f"/api/categories/{category.id}", headers=super_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete category. It is being used in 1 post(s)."

    def test_delete_blocked_by_submission(self, client, db, admin_headers, super_headers, post_payload, category):
        client.post("/api/approval/posts", headers=admin_headers, json=post_payload)
        assert db.query(AdminPost).count() == 1
        response = client.delete(f"/api/categories/{category.id}", headers=super_headers)
        assert response.status_code == 400

    def test_delete(self, client, db, super_headers, category):
        category_id = category.id
        response = client.delete(f"/api/categories/{category_id}", headers=super_headers)
        assert response.status_code == 200
        assert db.query(Category).count() == 0
        assert client.get(f"/api/categories/{category_id}", headers=super_headers).status_code == 404
