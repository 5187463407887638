"""Watchers API tests.

Endpoints:
- GET /api/watchers - list_watchers
- GET /api/watchers/activities - list_activities
- POST /api/watchers/mark-read - mark_read
- GET /api/watchers/recent-activities - recent_activities
- GET /api/watchers/unread-counts - unread_counts
"""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.integration

from walletwatch.core.store import ItemStore
from walletwatch.core.store.keys import user_pk, watcher_sk
from walletwatch.core.utils.validation import StoreUnavailable
from walletwatch.domains.watchers import services
from walletwatch.domains.watchers.signature import build_signature

USER = "user-1"
WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
SIG = build_signature({"activityTypes": ["ACTIVITY_TOKEN_SWAP"]})


# ==================== Fixtures ====================


class FailingStore(ItemStore):
    def get_item(self, pk, sk):
        raise StoreUnavailable("connection reset by peer")

    def put_item(self, item):
        raise StoreUnavailable("connection reset by peer")

    def query_prefix(self, pk, sk_prefix, *, limit, descending=True, start_key=None):
        raise StoreUnavailable("connection reset by peer")


@pytest.fixture
def failing_store(app):
    app.extensions["watchers_store"] = FailingStore()


@pytest.fixture
def seeded(app, store):
    for ts in (100, 200, 300, 400, 500):
        services.record_activity(USER, WALLET, SIG, ts, {"signature": f"tx{ts}"}, event_id=f"ev{ts}")
    store.put_item(
        {
            "pk": user_pk(USER),
            "sk": watcher_sk(WALLET, SIG),
            "type": "watcher",
            "walletAddress": WALLET,
            "queryString": SIG,
        }
    )


# ==================== Recent activities ====================


def test_recent_activities_flags_unread(client, seeded):
    resp = client.get(
        "/api/watchers/recent-activities",
        query_string={"userId": USER, "walletAddress": WALLET, "queryString": SIG, "limit": 3},
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["lastReadTimestamp"] == 0
    assert [a["timestamp"] for a in body["activities"]] == [500, 400, 300]
    assert all(a["isUnread"] for a in body["activities"])


@pytest.mark.parametrize(
    "params",
    [
        {"walletAddress": WALLET, "queryString": SIG},
        {"userId": USER, "queryString": SIG},
        {"userId": USER, "walletAddress": WALLET},
        {"userId": USER, "walletAddress": WALLET, "queryString": SIG, "limit": "zero"},
    ],
)
def test_recent_activities_missing_params(client, failing_store, params):
    resp = client.get("/api/watchers/recent-activities", query_string=params)
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_recent_activities_rejects_legacy_signature(client, failing_store):
    resp = client.get(
        "/api/watchers/recent-activities",
        query_string={"userId": USER, "walletAddress": WALLET, "queryString": "activityTypes=A&minAmount=0"},
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Unsupported query signature"


def test_recent_activities_store_failure_is_generic(client, failing_store):
    resp = client.get(
        "/api/watchers/recent-activities",
        query_string={"userId": USER, "walletAddress": WALLET, "queryString": SIG},
    )
    assert resp.status_code == 500
    body = resp.get_json()
    assert body == {"ok": False, "error": "Failed to fetch recent activities"}
    assert "connection reset" not in resp.get_data(as_text=True)


# ==================== Mark read ====================


def test_mark_read_then_recent(client, seeded, frozen_clock):
    frozen_clock["now"] = 250
    resp = client.post(
        "/api/watchers/mark-read",
        json={"userId": USER, "walletAddress": WALLET, "queryString": SIG},
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "message": "Marked as read successfully", "timestamp": 250}

    body = client.get(
        "/api/watchers/recent-activities",
        query_string={"userId": USER, "walletAddress": WALLET, "queryString": SIG},
    ).get_json()
    assert body["lastReadTimestamp"] == 250
    assert {a["timestamp"]: a["isUnread"] for a in body["activities"]} == {
        500: True,
        400: True,
        300: True,
        200: False,
        100: False,
    }


def test_mark_read_requires_all_fields(client, failing_store):
    resp = client.post("/api/watchers/mark-read", json={"userId": USER, "walletAddress": WALLET})
    assert resp.status_code == 400
    assert "queryString" in resp.get_json()["error"]

    resp = client.post("/api/watchers/mark-read", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_mark_read_store_failure(client, failing_store):
    resp = client.post(
        "/api/watchers/mark-read",
        json={"userId": USER, "walletAddress": WALLET, "queryString": SIG},
    )
    assert resp.status_code == 500
    assert resp.get_json() == {"ok": False, "error": "Failed to mark activities as read"}


# ==================== Paginated activities ====================


def test_activities_pagination(client, seeded):
    params = {"userId": USER, "walletAddress": WALLET, "activityTypes": "ACTIVITY_TOKEN_SWAP", "pageSize": 2}

    first = client.get("/api/watchers/activities", query_string=params).get_json()
    assert first["ok"] is True
    assert [a["timestamp"] for a in first["activities"]] == [500, 400]
    assert first["querySignature"] == SIG
    assert first["pageSize"] == 2
    assert first["page"] == 1
    assert first["lastKey"]

    second = client.get(
        "/api/watchers/activities", query_string={**params, "page": 2, "lastKey": first["lastKey"]}
    ).get_json()
    assert [a["timestamp"] for a in second["activities"]] == [300, 200]
    assert second["lastKey"]

    third = client.get(
        "/api/watchers/activities", query_string={**params, "page": 3, "lastKey": second["lastKey"]}
    ).get_json()
    assert [a["timestamp"] for a in third["activities"]] == [100]
    assert third["lastKey"] is None


def test_activities_accepts_array_style_types_and_null_literals(client, seeded):
    resp = client.get(
        "/api/watchers/activities",
        query_string={
            "userId": USER,
            "walletAddress": WALLET,
            "activityTypes[]": ["ACTIVITY_TOKEN_SWAP"],
            "platform": "null",
            "specificToken": "undefined",
            "lastKey": "null",
        },
    )
    assert resp.status_code == 200
    assert len(resp.get_json()["activities"]) == 5


def test_activities_bad_token(client, seeded):
    resp = client.get(
        "/api/watchers/activities",
        query_string={"userId": USER, "walletAddress": WALLET, "lastKey": "bm9wZQ"},
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Malformed continuation token"


def test_activities_invalid_filters(client, failing_store):
    resp = client.get(
        "/api/watchers/activities",
        query_string={"userId": USER, "walletAddress": WALLET, "minAmount": "-5"},
    )
    assert resp.status_code == 400
    assert "minAmount" in resp.get_json()["error"]


def test_activities_missing_wallet(client, failing_store):
    resp = client.get("/api/watchers/activities", query_string={"userId": USER})
    assert resp.status_code == 400
    assert "walletAddress" in resp.get_json()["error"]


def test_activities_store_failure(client, failing_store):
    resp = client.get("/api/watchers/activities", query_string={"userId": USER, "walletAddress": WALLET})
    assert resp.status_code == 500
    assert resp.get_json() == {"ok": False, "error": "Failed to fetch activities"}


# ==================== Watchers / unread counts ====================


def test_unread_counts(client, seeded):
    body = client.get("/api/watchers/unread-counts", query_string={"userId": USER}).get_json()
    assert body["ok"] is True
    assert body["unreadCount"] == 1
    assert body["watcherDetails"] == [
        {"walletAddress": WALLET, "queryString": SIG, "hasUnread": True, "lastReadTimestamp": 0}
    ]


def test_list_watchers(client, seeded):
    body = client.get("/api/watchers", query_string={"userId": USER}).get_json()
    assert body["ok"] is True
    [watcher] = body["watchers"]
    assert watcher["walletAddress"] == WALLET
    assert len(watcher["lastActivity"]) == 5
    assert "lastDataPoint" not in watcher


@pytest.mark.parametrize("path", ["/api/watchers", "/api/watchers/unread-counts"])
def test_user_scoped_endpoints_require_user(client, failing_store, path):
    resp = client.get(path)
    assert resp.status_code == 400
    assert "userId" in resp.get_json()["error"]


@pytest.mark.parametrize(
    "path, message",
    [("/api/watchers", "Failed to fetch watchers"), ("/api/watchers/unread-counts", "Failed to get unread counts")],
)
def test_user_scoped_endpoints_store_failure(client, failing_store, path, message):
    resp = client.get(path, query_string={"userId": USER})
    assert resp.status_code == 500
    assert resp.get_json() == {"ok": False, "error": message}


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}
    assert client.get("/api/v1/ping").get_json() == {"pong": True}


def test_mark_read_with_alias_signature_applies_to_canonical_stream(client, seeded):
    alias = 'v1:{"activityTypes":["ACTIVITY_TOKEN_SWAP","ACTIVITY_TOKEN_SWAP"],"platform":""}'
    resp = client.post(
        "/api/watchers/mark-read",
        json={"userId": USER, "walletAddress": WALLET, "queryString": alias},
    )
    assert resp.status_code == 200

    body = client.get(
        "/api/watchers/recent-activities",
        query_string={"userId": USER, "walletAddress": WALLET, "queryString": SIG},
    ).get_json()
    assert body["lastReadTimestamp"] == resp.get_json()["timestamp"]
    assert not any(a["isUnread"] for a in body["activities"])
