"""
Share links: issuance, revocation, public view and reservations through a token.
"""
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4
import logging

from sqlalchemy import select, update

from app.core.shares import is_expired
from app.models.models import SharedWishlist, WishlistItem
from conftest import make_item, make_share, make_wishlist


def _reserve(client, token: str, actor, item_id: str, action: str = "reserve"):
    return client.patch(
        f"/shares/{token}",
        json={"itemId": item_id, "action": action},
        headers=actor.headers,
    )


def _owner_items(client, owner, wishlist_id: str) -> dict[str, dict]:
    res = client.get(f"/wishlists/{wishlist_id}/items", headers=owner.headers)
    assert res.status_code == 200, res.text
    return {item["id"]: item for item in res.json()}


class TestShareCreate:
    def test_create_share_returns_active_hex_token(self, client, owner):
        wl = make_wishlist(client, owner)
        share = make_share(client, owner, wl["id"])

        assert share["is_active"] is True
        assert share["wishlist_id"] == wl["id"]
        assert share["created_by"] == str(owner.id)
        assert len(share["share_token"]) == 32
        int(share["share_token"], 16)

    def test_tokens_are_not_reused(self, client, owner):
        wl = make_wishlist(client, owner)
        tokens = {make_share(client, owner, wl["id"])["share_token"] for _ in range(5)}
        assert len(tokens) == 5

    def test_only_one_active_share_per_wishlist(self, client, owner, sync_engine):
        wl = make_wishlist(client, owner)
        first = make_share(client, owner, wl["id"])
        second = make_share(client, owner, wl["id"])
        third = make_share(client, owner, wl["id"])

        with sync_engine.connect() as conn:
            rows = conn.execute(
                select(SharedWishlist.share_token, SharedWishlist.is_active)
                .where(SharedWishlist.wishlist_id == UUID(wl["id"]))
            ).all()
        active = [token for token, is_active in rows if is_active]
        assert active == [third["share_token"]]
        assert len(rows) == 3

        assert client.get(f"/shares/{first['share_token']}").status_code == 410
        assert client.get(f"/shares/{second['share_token']}").status_code == 410
        assert client.get(f"/shares/{third['share_token']}").status_code == 200

    def test_share_of_foreign_wishlist_is_not_found(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        res = client.post("/shares", json={"wishlist_id": wl["id"]}, headers=viewer.headers)
        assert res.status_code == 404

    def test_share_of_missing_wishlist_is_not_found(self, client, owner):
        res = client.post("/shares", json={"wishlist_id": str(uuid4())}, headers=owner.headers)
        assert res.status_code == 404

    def test_share_requires_authentication(self, client, owner):
        wl = make_wishlist(client, owner)
        res = client.post("/shares", json={"wishlist_id": wl["id"]})
        assert res.status_code == 401

    def test_share_rejects_malformed_wishlist_id(self, client, owner):
        res = client.post("/shares", json={"wishlist_id": "not-a-uuid"}, headers=owner.headers)
        assert res.status_code == 400
        assert res.json()["error_code"] == "VALIDATION_FAILED"

    def test_share_rejects_past_expiry(self, client, owner):
        wl = make_wishlist(client, owner)
        past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
        res = client.post(
            "/shares",
            json={"wishlist_id": wl["id"], "expires_at": past},
            headers=owner.headers,
        )
        assert res.status_code == 400


class TestShareRevoke:
    def test_revoke_deactivates_link(self, client, owner):
        wl = make_wishlist(client, owner)
        share = make_share(client, owner, wl["id"])

        res = client.delete(f"/shares?id={share['id']}", headers=owner.headers)
        assert res.status_code == 204

        res = client.get(f"/shares/{share['share_token']}")
        assert res.status_code == 410
        assert res.json()["error_code"] == "LINK_INACTIVE"

    def test_revoke_is_idempotent(self, client, owner, sync_engine):
        wl = make_wishlist(client, owner)
        share = make_share(client, owner, wl["id"])

        for _ in range(3):
            res = client.delete(f"/shares?id={share['id']}", headers=owner.headers)
            assert res.status_code == 204

        with sync_engine.connect() as conn:
            is_active = conn.execute(
                select(SharedWishlist.is_active).where(SharedWishlist.id == UUID(share["id"]))
            ).scalar_one()
        assert is_active is False

    def test_revoke_by_non_creator_changes_nothing(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        share = make_share(client, owner, wl["id"])

        res = client.delete(f"/shares?id={share['id']}", headers=viewer.headers)
        assert res.status_code == 204
        assert client.get(f"/shares/{share['share_token']}").status_code == 200

    def test_revoke_requires_id(self, client, owner):
        res = client.delete("/shares", headers=owner.headers)
        assert res.status_code == 400


class TestShareResolve:
    def test_unknown_token_is_invalid(self, client):
        res = client.get(f"/shares/{uuid4().hex}")
        assert res.status_code == 404
        assert res.json()["error_code"] == "LINK_INVALID"

    def test_expired_token(self, client, owner, sync_engine):
        wl = make_wishlist(client, owner)
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        share = make_share(client, owner, wl["id"], expires_at=future)
        assert client.get(f"/shares/{share['share_token']}").status_code == 200

        with sync_engine.begin() as conn:
            conn.execute(
                update(SharedWishlist)
                .where(SharedWishlist.id == UUID(share["id"]))
                .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
            )

        res = client.get(f"/shares/{share['share_token']}")
        assert res.status_code == 410
        assert res.json()["error_code"] == "LINK_EXPIRED"

    def test_deleted_wishlist_takes_link_down(self, client, owner):
        wl = make_wishlist(client, owner)
        share = make_share(client, owner, wl["id"])
        client.delete(f"/wishlists/{wl['id']}", headers=owner.headers)

        res = client.get(f"/shares/{share['share_token']}")
        assert res.status_code == 404

    def test_link_live_at_exact_expiry_instant(self):
        moment = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        share = SharedWishlist(expires_at=moment)
        assert is_expired(share, now=moment) is False
        assert is_expired(share, now=moment + timedelta(microseconds=1)) is True

    def test_link_without_expiry_never_expires(self):
        assert is_expired(SharedWishlist(expires_at=None)) is False


class TestTokenNotLogged:
    def test_missing_auth_log_hides_token(self, client, owner, caplog):
        caplog.set_level(logging.DEBUG, logger="giftlink")
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = client.patch(f"/shares/{token}", json={"itemId": item["id"], "action": "reserve"})
        assert res.status_code == 401
        assert "Auth token missing path=/shares/{token}" in caplog.text
        assert token not in caplog.text

    def test_invalid_auth_log_hides_token(self, client, owner, caplog):
        caplog.set_level(logging.DEBUG, logger="giftlink")
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = client.patch(
            f"/shares/{token}",
            json={"itemId": item["id"], "action": "reserve"},
            headers={"Authorization": "Bearer invalid.token.here"},
        )
        assert res.status_code == 401
        assert token not in caplog.text

    def test_rate_limit_log_hides_token(self, client, owner, viewer, caplog, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "rate_limit_reservation_requests", 1)
        caplog.set_level(logging.DEBUG, logger="giftlink")
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        _reserve(client, token, viewer, item["id"])
        res = _reserve(client, token, viewer, item["id"], action="unreserve")
        assert res.status_code == 429
        assert "Rate limit exceeded" in caplog.text
        assert token not in caplog.text


class TestPublicView:
    def test_public_view_shape(self, client, owner):
        wl = make_wishlist(client, owner, description="Turning 30")
        cat = client.post(
            "/categories",
            json={"name": "Tech", "icon": "T", "color": "#10b981"},
            headers=owner.headers,
        ).json()
        make_item(client, owner, wl["id"], name="Low", priority=0)
        make_item(client, owner, wl["id"], name="High", priority=2, category_id=cat["id"], price=99.5)
        share = make_share(client, owner, wl["id"])

        res = client.get(f"/shares/{share['share_token']}")
        assert res.status_code == 200
        data = res.json()
        assert data["name"] == "Birthday"
        assert data["description"] == "Turning 30"
        assert data["surprise_mode"] is False
        assert data["owner"]["username"].startswith("user_")
        assert data["owner"]["full_name"] == "Test User"
        assert [item["name"] for item in data["items"]] == ["High", "Low"]
        high = data["items"][0]
        assert high["category"] == {"name": "Tech", "icon": "T", "color": "#10b981"}
        assert high["price"] == 99.5
        assert high["currency"] == "EUR"
        assert "notes" not in high
        assert "reserved_by" not in high

    def test_public_view_never_exposes_reserver(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        share = make_share(client, owner, wl["id"])
        assert _reserve(client, share["share_token"], viewer, item["id"]).status_code == 200

        data = client.get(f"/shares/{share['share_token']}").json()
        assert data["items"][0]["status"] == "reserved"
        assert "reserved_by" not in data["items"][0]

    def test_public_view_in_surprise_mode(self, client, owner, viewer):
        wl = make_wishlist(client, owner, surprise_mode=True)
        item = make_item(client, owner, wl["id"])
        share = make_share(client, owner, wl["id"])
        _reserve(client, share["share_token"], viewer, item["id"])

        # The owner fetching their own public view learns nothing either.
        res = client.get(f"/shares/{share['share_token']}", headers=owner.headers)
        public_item = res.json()["items"][0]
        assert public_item["status"] == "reserved"
        assert "reserved_by" not in public_item


class TestReservationThroughShare:
    def test_reserve_and_unreserve(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = _reserve(client, token, viewer, item["id"])
        assert res.status_code == 200
        assert res.json()["status"] == "reserved"
        assert "reserved_by" not in res.json()

        res = _reserve(client, token, viewer, item["id"], action="unreserve")
        assert res.status_code == 200
        assert res.json()["status"] == "available"
        assert _owner_items(client, owner, wl["id"])[item["id"]]["reserved_by"] is None

    def test_reserve_requires_authentication(self, client, owner):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = client.patch(f"/shares/{token}", json={"itemId": item["id"], "action": "reserve"})
        assert res.status_code == 401

    def test_unknown_action_is_rejected(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = _reserve(client, token, viewer, item["id"], action="purchase")
        assert res.status_code == 400

    def test_item_from_another_wishlist_cannot_be_reserved(self, client, owner, viewer):
        shared = make_wishlist(client, owner, name="Shared")
        private = make_wishlist(client, owner, name="Private")
        hidden_item = make_item(client, owner, private["id"])
        token = make_share(client, owner, shared["id"])["share_token"]

        res = _reserve(client, token, viewer, hidden_item["id"])
        assert res.status_code == 400
        assert res.json()["error_code"] == "TRANSITION_REJECTED"
        assert _owner_items(client, owner, private["id"])[hidden_item["id"]]["status"] == "available"

    def test_purchased_item_cannot_be_reserved(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        client.patch(
            f"/wishlists/{wl['id']}/items",
            json={"itemId": item["id"], "status": "purchased"},
            headers=owner.headers,
        )
        token = make_share(client, owner, wl["id"])["share_token"]

        res = _reserve(client, token, viewer, item["id"])
        assert res.status_code == 400

    def test_unreserve_by_other_actor_fails(self, client, owner, viewer, other_viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]
        _reserve(client, token, viewer, item["id"])

        res = _reserve(client, token, other_viewer, item["id"], action="unreserve")
        assert res.status_code == 400

        owner_item = _owner_items(client, owner, wl["id"])[item["id"]]
        assert owner_item["status"] == "reserved"
        assert owner_item["reserved_by"] == str(viewer.id)

    def test_unreserve_available_item_fails(self, client, owner, viewer):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        res = _reserve(client, token, viewer, item["id"], action="unreserve")
        assert res.status_code == 400

    def test_reservation_rate_limited(self, client, owner, viewer, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "rate_limit_reservation_requests", 2)
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        _reserve(client, token, viewer, item["id"])
        _reserve(client, token, viewer, item["id"], action="unreserve")
        res = _reserve(client, token, viewer, item["id"])
        assert res.status_code == 429
        assert "Retry-After" in res.headers


class TestScenarios:
    def test_first_reserver_wins_and_owner_sees_them(self, client, owner, viewer, other_viewer):
        wl = make_wishlist(client, owner, surprise_mode=False)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]

        assert _reserve(client, token, viewer, item["id"]).status_code == 200
        res = _reserve(client, token, other_viewer, item["id"])
        assert res.status_code == 400
        assert res.json()["error_code"] == "TRANSITION_REJECTED"

        owner_item = _owner_items(client, owner, wl["id"])[item["id"]]
        assert owner_item["status"] == "reserved"
        assert owner_item["reserved_by"] == str(viewer.id)

        detail = client.get(f"/wishlists/{wl['id']}", headers=owner.headers).json()
        assert detail["items"][0]["reserved_by"] == str(viewer.id)

    def test_surprise_mode_hides_reserver_from_owner(self, client, owner, viewer):
        wl = make_wishlist(client, owner, surprise_mode=True)
        item = make_item(client, owner, wl["id"])
        token = make_share(client, owner, wl["id"])["share_token"]
        _reserve(client, token, viewer, item["id"])

        owner_item = _owner_items(client, owner, wl["id"])[item["id"]]
        assert owner_item["status"] == "reserved"
        assert "reserved_by" not in owner_item

        detail = client.get(f"/wishlists/{wl['id']}", headers=owner.headers).json()
        assert detail["items"][0]["status"] == "reserved"
        assert "reserved_by" not in detail["items"][0]

    def test_revoked_link_blocks_reads_and_reservations(self, client, owner, viewer, sync_engine):
        wl = make_wishlist(client, owner)
        item = make_item(client, owner, wl["id"])
        share = make_share(client, owner, wl["id"])
        client.delete(f"/shares?id={share['id']}", headers=owner.headers)

        res = client.get(f"/shares/{share['share_token']}")
        assert res.status_code == 410
        assert res.json()["error_code"] == "LINK_INACTIVE"

        res = _reserve(client, share["share_token"], viewer, item["id"])
        assert res.status_code == 410
        assert res.json()["error_code"] == "LINK_INACTIVE"

        with sync_engine.connect() as conn:
            status, reserved_by = conn.execute(
                select(WishlistItem.status, WishlistItem.reserved_by)
                .where(WishlistItem.id == UUID(item["id"]))
            ).one()
        assert status == "available"
        assert reserved_by is None
