"""
Tests for posts endpoints.
"""
from datetime import timedelta

from newsdesk.models.activity import Activity
from newsdesk.models.admin_post import AdminPost
from newsdesk.models.post import Post
from newsdesk.timeutils import utcnow


def future_iso(hours=2):
    return (utcnow() + timedelta(hours=hours)).isoformat()


class TestPostsEndpoints:
    """Test posts endpoints."""

    def test_create_post_unauthenticated(self, client, post_payload):
        response = client.post("/api/posts", json=post_payload)
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_reader_cannot_create(self, client, reader_headers, post_payload):
        response = client.post("/api/posts", headers=reader_headers, json=post_payload)
        assert response.status_code == 403

    def test_superadmin_publishes_directly(self, client, super_headers, post_payload, db):
        response = client.post("/api/posts", headers=super_headers, json=post_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["requires_approval"] is False
        assert body["data"]["status"] == "published"
        assert body["data"]["meta_title"] == post_payload["title"]
        assert db.query(AdminPost).count() == 0

    def test_crud_admin_schedules_directly(self, client, crud_headers, post_payload, db):
        post_payload["publish_date_time"] = future_iso()
        response = client.post("/api/posts", headers=crud_headers, json=post_payload)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "scheduled"
        assert data["is_scheduled"] is True
        assert data["schedule_approved"] is True

    def test_restricted_admin_is_staged(self, client, admin_headers, post_payload, db):
        response = client.post("/api/posts", headers=admin_headers, json=post_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["requires_approval"] is True
        assert body["data"]["status"] == "pending_approval"
        assert body["admin_post"]["approval_status"] == "pending_review"
        assert body["admin_post"]["post_id"] == body["data"]["id"]

        activities = db.query(Activity).filter(Activity.post_id == body["data"]["id"]).all()
        assert [a.activity_type for a in activities] == ["approval_request"]

    def test_restricted_admin_future_post_is_scheduled_pending(self, client, admin_headers, post_payload):
        post_payload["publish_date_time"] = future_iso()
        response = client.post("/api/posts", headers=admin_headers, json=post_payload)
        body = response.json()
        assert body["data"]["status"] == "pending_approval"
        assert body["admin_post"]["approval_status"] == "scheduled_pending"

    def test_category_by_name(self, client, super_headers, post_payload, category):
        post_payload["category"] = "markets"
        response = client.post("/api/posts", headers=super_headers, json=post_payload)
        assert response.status_code == 201
        assert response.json()["data"]["category_id"] == category.id

    def test_unknown_category_rejected(self, client, super_headers, post_payload, db):
        post_payload["category"] = "Crypto"
        response = client.post("/api/posts", headers=super_headers, json=post_payload)
        assert response.status_code == 400
        assert db.query(Post).count() == 0

    def test_missing_title_is_400(self, client, super_headers, post_payload):
        del post_payload["title"]
        response = client.post("/api/posts", headers=super_headers, json=post_payload)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_create_draft(self, client, admin_headers, post_payload):
        post_payload["tags"] = "markets, sensex, markets"
        response = client.post("/api/posts/draft", headers=admin_headers, json=post_payload)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "draft"
        assert data["tags"] == ["markets", "sensex"]

    def test_reader_sees_only_published(self, client, super_headers, admin_headers, post_payload):
        client.post("/api/posts", headers=super_headers, json=post_payload)
        client.post("/api/posts/draft", headers=admin_headers, json={**post_payload, "title": "Draft only"})

        response = client.get("/api/posts")
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["data"][0]["status"] == "published"
        assert body["current_page"] == 1

    def test_admin_sees_only_own(self, client, super_headers, admin_headers, post_payload):
        client.post("/api/posts", headers=super_headers, json=post_payload)
        client.post("/api/posts/draft", headers=admin_headers, json={**post_payload, "title": "Mine"})

        response = client.get("/api/posts", headers=admin_headers)
        titles = [p["title"] for p in response.json()["data"]]
        assert titles == ["Mine"]

    def test_get_post_not_found(self, client, super_headers):
        response = client.get("/api/posts/9999", headers=super_headers)
        assert response.status_code == 404


class TestPostWorkflow:
    """Publish, schedule and edit actions on existing posts."""

    def _draft(self, client, headers, payload):
        return client.post("/api/posts/draft", headers=headers, json=payload).json()["data"]

    def test_restricted_publish_is_staged(self, client, admin_headers, post_payload, db):
        draft = self._draft(client, admin_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}/publish", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["status"] == "pending_approval"
        assert body["admin_post"]["approval_status"] == "pending_review"

    def test_crud_publish_is_direct(self, client, crud_headers, post_payload):
        draft = self._draft(client, crud_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}/publish", headers=crud_headers)
        data = response.json()["data"]
        assert data["status"] == "published"
        assert data["last_approved_at"] is not None

    def test_second_outstanding_request_conflicts(self, client, admin_headers, post_payload, db):
        draft = self._draft(client, admin_headers, post_payload)
        client.put(f"/api/posts/{draft['id']}/submit-for-approval", headers=admin_headers)
        post = db.get(Post, draft["id"])
        # Simulate an approved-then-live post with a pending edit
        post.status = "published"
        db.commit()
        first = client.put(f"/api/posts/{draft['id']}/request-update", headers=admin_headers, json={"title": "v2"})
        assert first.status_code == 409

    def test_submit_for_approval_requires_draft(self, client, crud_headers, admin_headers, post_payload):
        published = client.post("/api/posts", headers=crud_headers, json=post_payload).json()["data"]
        response = client.put(f"/api/posts/{published['id']}/submit-for-approval", headers=admin_headers)
        assert response.status_code == 403

        draft = self._draft(client, admin_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}/submit-for-approval", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["admin_post"]["approval_status"] == "pending_review"

    def test_schedule_requires_future_time(self, client, crud_headers, post_payload):
        draft = self._draft(client, crud_headers, post_payload)
        past = (utcnow() - timedelta(minutes=5)).isoformat()
        response = client.put(
            f"/api/posts/{draft['id']}/schedule", headers=crud_headers, json={"publish_date_time": past},
        )
        assert response.status_code == 400

    def test_restricted_schedule_is_staged(self, client, admin_headers, post_payload):
        draft = self._draft(client, admin_headers, post_payload)
        response = client.put(
            f"/api/posts/{draft['id']}/schedule", headers=admin_headers, json={"publish_date_time": future_iso()},
        )
        body = response.json()
        assert body["data"]["status"] == "pending_approval"
        assert body["data"]["is_scheduled"] is True
        assert body["data"]["schedule_approved"] is False
        assert body["admin_post"]["approval_status"] == "scheduled_pending"

    def test_restricted_edit_of_live_post_becomes_update_request(
        self, client, admin_headers, post_payload, db
    ):
        draft = self._draft(client, admin_headers, post_payload)
        post = db.get(Post, draft["id"])
        post.status = "published"
        db.commit()

        response = client.put(f"/api/posts/{post.id}", headers=admin_headers, json={"title": "Corrected headline"})
        assert response.status_code == 200
        body = response.json()
        assert body["requires_approval"] is True
        assert body["data"]["title"] == post_payload["title"]
        staged = body["admin_post"]
        assert staged["is_update_request"] is True
        assert staged["title"] == "Corrected headline"
        assert staged["original_post_data"]["title"] == post_payload["title"]

    def test_restricted_edit_of_pending_post_conflicts(self, client, admin_headers, post_payload):
        created = client.post("/api/posts", headers=admin_headers, json=post_payload).json()["data"]
        response = client.put(f"/api/posts/{created['id']}", headers=admin_headers, json={"title": "x"})
        assert response.status_code == 409

    def test_restricted_draft_edit_is_direct(self, client, admin_headers, post_payload):
        draft = self._draft(client, admin_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}", headers=admin_headers, json={"title": "Better title"})
        body = response.json()
        assert body["requires_approval"] is False
        assert body["data"]["title"] == "Better title"

    def test_admin_cannot_publish_via_update(self, client, crud_headers, post_payload):
        draft = self._draft(client, crud_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}", headers=crud_headers, json={"status": "published"})
        assert response.status_code == 403

    def test_archiving_requires_crud_access(self, client, db, admin_headers, crud_headers, post_payload):
        draft = self._draft(client, admin_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}", headers=admin_headers, json={"status": "archived"})
        assert response.status_code == 403
        assert db.get(Post, draft["id"]).status == "draft"

        own = self._draft(client, crud_headers, post_payload)
        response = client.put(f"/api/posts/{own['id']}", headers=crud_headers, json={"status": "archived"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "archived"

    def test_admin_cannot_edit_someone_elses_post(self, client, crud_headers, admin_headers, post_payload):
        draft = self._draft(client, crud_headers, post_payload)
        response = client.put(f"/api/posts/{draft['id']}", headers=admin_headers, json={"title": "Mine now"})
        assert response.status_code == 403

    def test_cancel_schedule(self, client, crud_headers, post_payload):
        post_payload["publish_date_time"] = future_iso()
        created = client.post("/api/posts", headers=crud_headers, json=post_payload).json()["data"]
        response = client.put(f"/api/posts/{created['id']}/cancel-schedule", headers=crud_headers)
        data = response.json()["data"]
        assert data["status"] == "draft"
        assert data["is_scheduled"] is False
        assert data["schedule_approved"] is False

    def test_cancel_pending_schedule_closes_request(self, client, admin_headers, post_payload, db):
        post_payload["publish_date_time"] = future_iso()
        body = client.post("/api/posts", headers=admin_headers, json=post_payload).json()
        response = client.put(f"/api/posts/{body['data']['id']}/cancel-schedule", headers=admin_headers)
        assert response.status_code == 200
        staged = db.get(AdminPost, body["admin_post"]["id"])
        assert staged.approval_status == "rejected"
        assert staged.rejection_reason == "Schedule cancelled"

    def test_delete_rules(self, client, admin_headers, crud_headers, super_headers, post_payload, db):
        restricted = self._draft(client, admin_headers, post_payload)
        assert client.delete(f"/api/posts/{restricted['id']}", headers=admin_headers).status_code == 403

        own = self._draft(client, crud_headers, post_payload)
        assert client.delete(f"/api/posts/{own['id']}", headers=crud_headers).status_code == 200

        assert client.delete(f"/api/posts/{restricted['id']}", headers=super_headers).status_code == 200
        assert db.query(Post).count() == 0

    def test_delete_cascades_to_staging(self, client, admin_headers, super_headers, post_payload, db):
        created = client.post("/api/posts", headers=admin_headers, json=post_payload).json()["data"]
        assert db.query(AdminPost).count() == 1
        client.delete(f"/api/posts/{created['id']}", headers=super_headers)
        assert db.query(AdminPost).count() == 0
