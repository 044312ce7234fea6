"""Tests for bid API routes."""

from decimal import Decimal
from unittest.mock import patch

from route_helpers import CUSTOMER_ID, JOB_ID, PROVIDER_A, PROVIDER_B, headers_for

from bidyard.marketplace import Bid, Job


def place_bid(client, headers, amount, notes=None):
    return client.post(
        f"/api/v1/jobs/{JOB_ID}/bids",
        json={"amount": amount, "notes": notes},
        headers=headers,
    )


class TestHealthRoutes:
    """Tests for service status endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "bidyard-backend"

    def test_health_degraded_without_database(self, client):
        with patch("app.database.get_supabase_client", side_effect=RuntimeError("no db")):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"].startswith("error:")


class TestAuth:
    """Tests for token handling on bid routes."""

    def test_missing_token_rejected(self, client):
        response = client.get(f"/api/v1/jobs/{JOB_ID}/bids")

        assert response.status_code == 401

    def test_invalid_token_rejected(self, client):
        response = client.get(
            f"/api/v1/jobs/{JOB_ID}/bids",
            headers={"Authorization": "Bearer not-a-real-token"},
        )

        assert response.status_code == 401

    def test_role_from_user_metadata(self, client):
        from app.auth import actor_from_claims

        actor = actor_from_claims(
            {"sub": PROVIDER_A, "role": "authenticated", "user_metadata": {"role": "provider"}}
        )

        assert actor.user_id == PROVIDER_A
        assert actor.is_provider


class TestSubmitBid:
    """Tests for POST /jobs/{job_id}/bids."""

    def test_provider_places_bid(self, client, store, provider_a_headers):
        response = place_bid(client, provider_a_headers, 95000, notes="  Can start Monday ")

        assert response.status_code == 201
        data = response.json()
        assert Decimal(str(data["amount"])) == Decimal("95000")
        assert data["status"] == "pending"
        assert data["notes"] == "Can start Monday"
        assert data["provider"]["name"] == "Acme Fitters"
        assert len(store.bids_for(JOB_ID)) == 1

    def test_customer_cannot_bid(self, client, customer_headers):
        response = place_bid(client, customer_headers, 95000)

        assert response.status_code == 403

    def test_second_bid_from_same_provider_conflicts(self, client, store, provider_a_headers):
        assert place_bid(client, provider_a_headers, 95000).status_code == 201

        response = place_bid(client, provider_a_headers, 90000)

        assert response.status_code == 409
        assert "already" in response.json()["detail"].lower()
        assert len(store.bids_for(JOB_ID)) == 1

    def test_insufficient_balance(self, client, store, billing, provider_a_headers):
        billing.set_balance(PROVIDER_A, "10")

        response = place_bid(client, provider_a_headers, 100000)

        assert response.status_code == 402
        assert store.writes == []

    def test_non_positive_amount_rejected(self, client, provider_a_headers):
        response = place_bid(client, provider_a_headers, 0)

        assert response.status_code == 422

    def test_unknown_job(self, client, provider_a_headers):
        response = client.post(
            "/api/v1/jobs/no-such-job/bids",
            json={"amount": 100},
            headers=provider_a_headers,
        )

        assert response.status_code == 404

    def test_store_failure_maps_to_bad_gateway(self, client, store, provider_a_headers):
        store.inject_failure("insert_bid")

        response = place_bid(client, provider_a_headers, 95000)

        assert response.status_code == 502


class TestListBids:
    """Tests for GET /jobs/{job_id}/bids."""

    def test_author_sees_all_bids_lowest_first(
        self, client, customer_headers, provider_a_headers, provider_b_headers
    ):
        place_bid(client, provider_a_headers, 100000)
        place_bid(client, provider_b_headers, 90000)

        response = client.get(f"/api/v1/jobs/{JOB_ID}/bids", headers=customer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [b["provider_id"] for b in data["bids"]] == [PROVIDER_B, PROVIDER_A]

    def test_provider_sees_only_own_bid(self, client, provider_a_headers, provider_b_headers):
        place_bid(client, provider_a_headers, 100000)
        place_bid(client, provider_b_headers, 90000)

        response = client.get(f"/api/v1/jobs/{JOB_ID}/bids", headers=provider_a_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["bids"][0]["provider_id"] == PROVIDER_A


class TestAcceptBid:
    """Tests for POST /jobs/{job_id}/bids/{bid_id}/accept."""

    def _two_bids(self, client, provider_a_headers, provider_b_headers):
        bid_a = place_bid(client, provider_a_headers, 100000).json()
        bid_b = place_bid(client, provider_b_headers, 90000).json()
        return bid_a, bid_b

    def test_accept_awards_job(
        self, client, store, customer_headers, provider_a_headers, provider_b_headers
    ):
        bid_a, bid_b = self._two_bids(client, provider_a_headers, provider_b_headers)

        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/{bid_b['id']}/accept", headers=customer_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["job"]["status"] == "active"
        assert data["job"]["awarded_to"] == PROVIDER_B
        assert data["bid"]["status"] == "accepted"
        assert data["conversation_created"] is True
        assert data["rejected_count"] == 1

        statuses = {b.id: b.status for b in store.bids_for(JOB_ID)}
        assert statuses == {bid_a["id"]: "rejected", bid_b["id"]: "accepted"}
        conversations = store.conversations_for(JOB_ID)
        assert [c.id for c in conversations] == [data["conversation_id"]]
        assert conversations[0].customer_id == CUSTOMER_ID

    def test_only_author_can_accept(
        self, client, provider_a_headers, provider_b_headers
    ):
        _, bid_b = self._two_bids(client, provider_a_headers, provider_b_headers)

        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/{bid_b['id']}/accept", headers=provider_b_headers
        )

        assert response.status_code == 403

    def test_retry_is_idempotent(
        self, client, store, customer_headers, provider_a_headers, provider_b_headers
    ):
        _, bid_b = self._two_bids(client, provider_a_headers, provider_b_headers)
        url = f"/api/v1/jobs/{JOB_ID}/bids/{bid_b['id']}/accept"
        first = client.post(url, headers=customer_headers).json()
        writes_before = len(store.writes)

        response = client.post(url, headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["conversation_id"] == first["conversation_id"]
        assert response.json()["conversation_created"] is False
        assert len(store.writes) == writes_before

    def test_partial_failure_then_retry(
        self, client, store, customer_headers, provider_a_headers, provider_b_headers
    ):
        _, bid_b = self._two_bids(client, provider_a_headers, provider_b_headers)
        url = f"/api/v1/jobs/{JOB_ID}/bids/{bid_b['id']}/accept"
        store.inject_failure("reject_pending_bids")

        failed = client.post(url, headers=customer_headers)

        assert failed.status_code == 502
        assert "reject_siblings" in failed.json()["detail"]
        assert store.job(JOB_ID).status == "active"

        retried = client.post(url, headers=customer_headers)

        assert retried.status_code == 200
        assert not any(b.is_pending for b in store.bids_for(JOB_ID))
        assert len(store.conversations_for(JOB_ID)) == 1

    def test_job_awarded_to_someone_else_conflicts(self, client, store, customer_headers):
        store.save_job(
            Job(
                id="job-taken",
                author_id=CUSTOMER_ID,
                title="Paint the fence",
                status="active",
                awarded_to="usr_SOMEONE_ELSE",
            )
        )
        store._bids["bid-late"] = Bid(
            id="bid-late", job_id="job-taken", provider_id=PROVIDER_A, amount=Decimal("50")
        )

        response = client.post(
            "/api/v1/jobs/job-taken/bids/bid-late/accept", headers=customer_headers
        )

        assert response.status_code == 409

    def test_unknown_bid(self, client, customer_headers):
        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/no-such-bid/accept", headers=customer_headers
        )

        assert response.status_code == 404


class TestRejectBid:
    """Tests for POST /jobs/{job_id}/bids/{bid_id}/reject."""

    def test_reject_single_bid(self, client, store, customer_headers, provider_a_headers):
        bid = place_bid(client, provider_a_headers, 100000).json()

        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/{bid['id']}/reject", headers=customer_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert store.job(JOB_ID).status == "open"

    def test_cannot_reject_accepted_bid(self, client, customer_headers, provider_a_headers):
        bid = place_bid(client, provider_a_headers, 100000).json()
        client.post(f"/api/v1/jobs/{JOB_ID}/bids/{bid['id']}/accept", headers=customer_headers)

        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/{bid['id']}/reject", headers=customer_headers
        )

        assert response.status_code == 400

    def test_admin_token_cannot_reject_for_author(self, client, provider_a_headers):
        bid = place_bid(client, provider_a_headers, 100000).json()

        response = client.post(
            f"/api/v1/jobs/{JOB_ID}/bids/{bid['id']}/reject",
            headers=headers_for("usr_TEST_ADMIN", "admin"),
        )

        assert response.status_code == 403
