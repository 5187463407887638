import json

import pytest

from walletwatch.domains.watchers import services
from walletwatch.domains.watchers.signature import build_signature

pytestmark = pytest.mark.integration

FILTERS = {"activityTypes": ["ACTIVITY_TOKEN_SWAP"]}


def _write_lines(path, rows):
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in rows) + "\n", encoding="utf-8")
    return path


def test_load_activities(app, tmp_path):
    source = _write_lines(
        tmp_path / "activities.jsonl",
        [
            {"userId": "u1", "walletAddress": "W", "timestamp": 100, "filters": FILTERS, "id": "tx1"},
            {"userId": "u1", "walletAddress": "W", "timestamp": 200, "queryString": build_signature(FILTERS)},
            "",
            {"userId": "u1", "walletAddress": "W", "timestamp": 0, "filters": FILTERS},
            "not json",
            "[1, 2]",
        ],
    )

    result = app.test_cli_runner().invoke(args=["watchers", "load-activities", str(source)])

    assert result.exit_code == 0, result.output
    assert "Loaded 2 activities, 3 failed" in result.output
    page = services.fetch_activities_page("W", "u1", FILTERS)
    assert [a["timestamp"] for a in page["activities"]] == [200, 100]
    assert page["activities"][1]["sk"].endswith("#tx1")


def test_load_activities_stop_on_error(app, tmp_path):
    source = _write_lines(
        tmp_path / "bad.jsonl",
        [
            {"userId": "", "walletAddress": "W", "timestamp": 100},
            {"userId": "u1", "walletAddress": "W", "timestamp": 200},
        ],
    )
    result = app.test_cli_runner().invoke(args=["watchers", "load-activities", "--stop-on-error", str(source)])
    assert result.exit_code != 0
    assert services.fetch_activities_page("W", "u1")["activities"] == []


def test_init_store(app):
    result = app.test_cli_runner().invoke(args=["watchers", "init-store"])
    assert result.exit_code == 0, result.output
    assert "Item store ready." in result.output


def test_load_activities_counts_out_of_range_timestamps(app, tmp_path):
    source = _write_lines(
        tmp_path / "ranges.jsonl",
        [
            '{"userId": "u1", "walletAddress": "W", "timestamp": Infinity}',
            '{"userId": "u1", "walletAddress": "W", "timestamp": NaN}',
            {"userId": "u1", "walletAddress": "W", "timestamp": 1_700_000_000_000_000},
            {"userId": "u1", "walletAddress": "W", "timestamp": 9_999_999_999_999},
        ],
    )

    result = app.test_cli_runner().invoke(args=["watchers", "load-activities", str(source)])

    assert result.exit_code == 0, result.output
    assert "Loaded 1 activities, 3 failed" in result.output
    [activity] = services.fetch_activities_page("W", "u1")["activities"]
    assert activity["timestamp"] == 9_999_999_999_999
