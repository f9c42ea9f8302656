"""
HTTP Tests for the Claims and Wallet Routes

Tests cover:
1. Actor headers and camelCase payloads
2. Error envelope and status codes
3. Full claim lifecycle over HTTP
4. Wallet reads and payment verification
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.index import create_app
from core.config import Settings
from core.storage import InMemoryStorage
from entitlements.models import Entitlement, ServiceCategory, Subscription
from wallet.payments import compute_signature

USER = {"X-User-Id": "user-001"}
ADMIN = {"X-Admin-Id": "admin-001"}
SECRET = "gateway-secret"


@pytest.fixture
def app():
    settings = Settings(PAYMENT_GATEWAY_SECRET=SECRET, LOG_LEVEL="WARNING")
    app = create_app(settings=settings, storage=InMemoryStorage())
    now = datetime.now(timezone.utc)
    app.state.claim_service.load_subscription(Subscription(
        id="sub-internal-1",
        subscription_id="AMC-2026-0001",
        user_id="user-001",
        plan_name="Gold Care",
        start_date=now - timedelta(days=10),
        end_date=now + timedelta(days=355),
        entitlements={
            ServiceCategory.WARRANTY_CLAIM: Entitlement(limit=3),
            ServiceCategory.HOME_VISIT: Entitlement(limit=4),
        },
    ))
    app.state.claim_service.register_vendor("vendor-001", "Ravi Electricals")
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def submit(client, issue="AC not cooling"):
    return client.post("/warranty-claims", headers=USER, json={
        "subscriptionId": "AMC-2026-0001",
        "serviceCategory": "home-visit",
        "issueDescription": issue,
    })


class TestClaimRoutes:
    """Tests for the warranty claim endpoints."""

    def test_submit_returns_camel_case_claim(self, client):
        """Test that submission answers 201 with a camelCase claim."""
        resp = submit(client)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["claim"]["status"] == "pending"
        assert body["claim"]["subscriptionId"] == "AMC-2026-0001"
        assert body["claim"]["earningPosted"] == "not_applicable"

    def test_missing_user_header_rejected(self, client):
        """Test that the caller identity header is required."""
        resp = client.post("/warranty-claims", json={
            "subscriptionId": "AMC-2026-0001",
            "serviceCategory": "home-visit",
            "issueDescription": "Broken",
        })

        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_usage_reflects_submission(self, client):
        """Test the usage view after one submission."""
        submit(client)

        resp = client.get("/subscriptions/AMC-2026-0001/usage", headers=USER)

        assert resp.status_code == 200
        usage = resp.json()["usage"]["warranty-claim"]
        assert usage["used"] == 1
        assert usage["remaining"] == 2

    def test_quota_exhausted_maps_to_conflict(self, client):
        """Test that an exhausted quota answers 409 with the error envelope."""
        for i in range(3):
            assert submit(client, issue=f"Issue {i}").status_code == 201

        resp = submit(client, issue="One too many")

        assert resp.status_code == 409
        body = resp.json()
        assert body["success"] is False
        assert body["error"] == "QuotaExhausted"
        assert "traceback" not in body

    def test_unknown_subscription_not_found(self, client):
        """Test that another user's subscription is invisible."""
        resp = client.post("/warranty-claims", headers={"X-User-Id": "intruder"}, json={
            "subscriptionId": "AMC-2026-0001",
            "serviceCategory": "home-visit",
            "issueDescription": "Not mine",
        })

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_user_cannot_read_foreign_claim(self, client):
        """Test ownership scoping on claim reads."""
        claim_id = submit(client).json()["claim"]["id"]

        assert client.get(f"/warranty-claims/{claim_id}", headers=USER).status_code == 200
        assert client.get(f"/warranty-claims/{claim_id}", headers={"X-User-Id": "other"}).status_code == 404

    def test_admin_lifecycle_with_online_earning(self, client):
        """Test approve, assign and complete over HTTP, ending in a wallet credit."""
        claim_id = submit(client).json()["claim"]["id"]
        base = f"/admin/warranty-claims/{claim_id}"

        assert client.put(f"{base}/approve", headers=ADMIN, json={"adminNotes": "covered"}).status_code == 200
        assigned = client.put(f"{base}/assign-vendor", headers=ADMIN, json={"vendorId": "vendor-001"})
        assert assigned.json()["claim"]["status"] == "in_progress"

        completed = client.put(f"{base}/complete", headers=ADMIN, json={
            "completionNotes": "Replaced capacitor",
            "billing": {
                "billingAmount": "1000",
                "spareAmount": "200",
                "paymentMethod": "online",
                "gstIncluded": True,
            },
        })

        assert completed.status_code == 200
        assert completed.json()["claim"]["earningPosted"] == "posted"
        wallet = client.get("/vendors/vendor-001/wallet").json()["wallet"]
        assert Decimal(wallet["currentBalance"]) == Decimal("523.73")
        assert wallet["totalTasksCompleted"] == 1

    def test_invalid_transition_maps_to_conflict(self, client):
        """Test that completing a pending claim answers 409."""
        claim_id = submit(client).json()["claim"]["id"]

        resp = client.put(f"/admin/warranty-claims/{claim_id}/complete", headers=ADMIN, json={})

        assert resp.status_code == 409
        assert resp.json()["error"] == "InvalidTransition"

    def test_reject_without_reason(self, client):
        """Test that rejection needs a reason."""
        claim_id = submit(client).json()["claim"]["id"]

        resp = client.put(f"/admin/warranty-claims/{claim_id}/reject", headers=ADMIN, json={})

        assert resp.status_code == 400
        assert resp.json()["message"] == "Rejection reason is required"

    def test_admin_listing_and_stats(self, client):
        """Test the admin list with pagination metadata and the stats view."""
        for i in range(3):
            submit(client, issue=f"Issue {i}")

        listing = client.get("/admin/warranty-claims?limit=2&sortBy=createdAt&sortOrder=asc", headers=ADMIN).json()
        stats = client.get("/admin/warranty-claims/stats", headers=ADMIN).json()

        assert len(listing["claims"]) == 2
        assert listing["pagination"]["totalCount"] == 3
        assert listing["pagination"]["hasNext"] is True
        assert stats["total"] == 3
        assert stats["byStatus"]["pending"] == 3

    def test_read_responses_carry_success_and_message(self, client):
        """Test that list, stats and usage reads answer with a success flag and message."""
        submit(client)

        for path, headers, message in [
            ("/warranty-claims", USER, "Warranty claims retrieved"),
            ("/admin/warranty-claims", ADMIN, "Warranty claims retrieved"),
            ("/admin/warranty-claims/stats", ADMIN, "Warranty claim statistics retrieved"),
            ("/subscriptions/AMC-2026-0001/usage", USER, "Subscription usage retrieved"),
        ]:
            body = client.get(path, headers=headers).json()
            assert body["success"] is True, path
            assert body["message"] == message, path

    def test_admin_routes_require_admin_header(self, client):
        """Test that admin routes need the admin identity header."""
        resp = client.get("/admin/warranty-claims/stats", headers=USER)

        assert resp.status_code == 400


class TestWalletRoutes:
    """Tests for wallet and payment endpoints."""

    def test_penalty_and_history(self, client):
        """Test applying a penalty and reading the ledger history."""
        resp = client.post("/admin/vendors/vendor-001/penalties", headers=ADMIN, json={
            "amount": "75",
            "penaltyType": "cancellation",
            "description": "Late cancellation",
        })

        assert resp.status_code == 201
        assert Decimal(resp.json()["entry"]["amount"]) == Decimal("-75")
        history = client.get("/vendors/vendor-001/wallet/transactions").json()
        assert history["totalCount"] == 1
        assert Decimal(history["currentBalance"]) == Decimal("-75")

    def test_wallet_reads_carry_success_and_message(self, client):
        """Test the success flag and message on wallet, transactions and monthly reads."""
        now = datetime.now(timezone.utc)

        for path, message in [
            ("/vendors/vendor-001/wallet", "Wallet retrieved"),
            ("/vendors/vendor-001/wallet/transactions", "Wallet transactions retrieved"),
            (f"/vendors/vendor-001/wallet/monthly/{now.year}/{now.month}", "Monthly wallet statistics retrieved"),
        ]:
            body = client.get(path).json()
            assert body["success"] is True, path
            assert body["message"] == message, path

    def test_cash_collection_route(self, client):
        """Test recording a cash-collected job deducts the platform share once."""
        payload = {"caseId": "BK-CASH", "billingAmount": "1000", "bookingAmount": "100"}

        first = client.post("/admin/vendors/vendor-001/cash-collections", headers=ADMIN, json=payload)
        second = client.post("/admin/vendors/vendor-001/cash-collections", headers=ADMIN, json=payload)

        assert first.status_code == 201
        assert first.json()["entry"]["entryType"] == "cash_collection"
        assert first.json()["entry"]["vendorId"] == "vendor-001"
        assert second.json()["entry"]["id"] == first.json()["entry"]["id"]
        wallet = client.get("/vendors/vendor-001/wallet").json()["wallet"]
        # (1000 - 100) * 0.5 + 100
        assert Decimal(wallet["currentBalance"]) == Decimal("-550.00")
        assert wallet["totalEntries"] == 1

    def test_single_transaction_route(self, client):
        """Test reading one wallet entry, scoped to its vendor."""
        entry = client.post("/admin/vendors/vendor-001/penalties", headers=ADMIN, json={
            "amount": "20",
            "description": "Late arrival",
        }).json()["entry"]

        own = client.get(f"/vendors/vendor-001/wallet/transactions/{entry['id']}")
        other = client.get(f"/vendors/vendor-002/wallet/transactions/{entry['id']}")

        assert own.status_code == 200
        assert own.json()["entry"]["id"] == entry["id"]
        assert other.status_code == 404
        assert other.json()["error"] == "NotFound"

    def test_wallet_admin_routes_require_admin_header(self, client):
        """Test that vendors cannot adjust their own wallet."""
        resp = client.post("/admin/vendors/vendor-001/adjustments", headers={"X-User-Id": "vendor-001"}, json={
            "amount": "1000",
            "description": "Self credit",
        })

        assert resp.status_code == 400
        assert client.get("/vendors/vendor-001/wallet").json()["wallet"]["totalEntries"] == 0

    def test_payment_verification_posts_earning(self, client):
        """Test that a signed online payment credits the vendor."""
        resp = client.post("/payments/verify", json={
            "orderId": "order_1",
            "paymentId": "pay_1",
            "signature": compute_signature("order_1", "pay_1", SECRET),
            "amount": "1000",
            "vendorId": "vendor-001",
            "caseId": "BK-1",
            "billing": {"billingAmount": "1000", "paymentMethod": "online"},
        })

        assert resp.status_code == 200
        assert resp.json()["earningPosted"] is True
        wallet = client.get("/vendors/vendor-001/wallet").json()["wallet"]
        assert Decimal(wallet["currentBalance"]) == Decimal("500.00")

    def test_forged_signature_rejected(self, client):
        """Test that a bad signature answers 400 and posts nothing."""
        resp = client.post("/payments/verify", json={
            "orderId": "order_1",
            "paymentId": "pay_1",
            "signature": "forged",
            "amount": "1000",
        })

        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_unknown_route_uses_envelope(self, client):
        """Test that routing errors also use the error envelope."""
        resp = client.get("/nowhere")

        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_health(self, client):
        """Test the health endpoint."""
        assert client.get("/health").json()["status"] == "healthy"
