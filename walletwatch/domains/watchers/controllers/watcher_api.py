"""Watchers JSON API controllers (thin, schema-validated)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from walletwatch.core.utils.validation import InvalidInput, StoreUnavailable
from walletwatch.domains.watchers import services as watcher_services
from walletwatch.domains.watchers.schemas.watcher_schemas import (
    ActivitiesPageResponse,
    ActivitiesQuery,
    MarkReadRequest,
    MarkReadResponse,
    RecentActivitiesQuery,
    RecentActivitiesResponse,
    UnreadCountsResponse,
    UserQuery,
    WatchersResponse,
)
from walletwatch.extensions import limiter

watcher_api_bp = Blueprint("watcher_api", __name__)

# JS clients serialize missing optionals as these literals.
_NULL_LITERALS = {"", "null", "undefined"}


def _optional_arg(name: str) -> Optional[str]:
    value = request.args.get(name)
    if value is None or value.strip() in _NULL_LITERALS:
        return None
    return value


def _present(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _activity_types_arg() -> list[str]:
    types: list[str] = []
    for raw in request.args.getlist("activityTypes") + request.args.getlist("activityTypes[]"):
        types.extend(part for part in raw.split(",") if part.strip() not in _NULL_LITERALS)
    return types


def _validation_error(exc: ValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return (
        jsonify(
            {
                "ok": False,
                "error": f"Missing or invalid parameters: {', '.join(fields)}",
                "details": exc.errors(include_url=False),
            }
        ),
        400,
    )


def _invalid_input(exc: InvalidInput):
    return jsonify({"ok": False, "error": str(exc)}), 400


def _store_failure(message: str):
    # Called from an except block; the cause goes to the log, not the client.
    current_app.logger.exception(message)
    return jsonify({"ok": False, "error": message}), 500


@watcher_api_bp.get("")
def list_watchers():
    try:
        query = UserQuery.model_validate(_present({"userId": request.args.get("userId")}))
    except ValidationError as exc:
        return _validation_error(exc)
    try:
        watchers = watcher_services.list_watchers(query.user_id)
    except InvalidInput as exc:
        return _invalid_input(exc)
    except StoreUnavailable:
        return _store_failure("Failed to fetch watchers")
    payload = WatchersResponse(watchers=watchers).model_dump(by_alias=True)
    return jsonify({"ok": True, **payload})


@watcher_api_bp.get("/activities")
def list_activities():
    raw = _present(
        {
            "walletAddress": request.args.get("walletAddress"),
            "userId": request.args.get("userId"),
            "page": request.args.get("page"),
            "pageSize": request.args.get("pageSize"),
            "lastKey": _optional_arg("lastKey"),
            "filters": _present(
                {
                    "activityTypes": _activity_types_arg(),
                    "platform": _optional_arg("platform"),
                    "specificToken": _optional_arg("specificToken"),
                    "minAmount": _optional_arg("minAmount"),
                }
            ),
        }
    )
    try:
        query = ActivitiesQuery.model_validate(raw)
    except ValidationError as exc:
        return _validation_error(exc)
    try:
        result = watcher_services.fetch_activities_page(
            query.wallet_address,
            query.user_id,
            query.filters,
            page=query.page,
            page_size=query.page_size,
            last_key=query.last_key,
        )
    except InvalidInput as exc:
        return _invalid_input(exc)
    except StoreUnavailable:
        return _store_failure("Failed to fetch activities")
    payload = ActivitiesPageResponse(**result).model_dump(by_alias=True)
    return jsonify({"ok": True, **payload})


@watcher_api_bp.post("/mark-read")
@limiter.limit("120/minute")
def mark_read():
    payload = request.get_json(silent=True) or {}
    try:
        data = MarkReadRequest.model_validate(payload)
    except ValidationError as exc:
        return _validation_error(exc)
    try:
        timestamp = watcher_services.mark_read(data.user_id, data.wallet_address, data.query_string)
    except InvalidInput as exc:
        return _invalid_input(exc)
    except StoreUnavailable:
        return _store_failure("Failed to mark activities as read")
    resp = MarkReadResponse(message="Marked as read successfully", timestamp=timestamp)
    return jsonify({"ok": True, **resp.model_dump(by_alias=True)})


@watcher_api_bp.get("/recent-activities")
def recent_activities():
    raw = _present(
        {
            "userId": request.args.get("userId"),
            "walletAddress": request.args.get("walletAddress"),
            "queryString": request.args.get("queryString"),
            "limit": request.args.get("limit"),
        }
    )
    try:
        query = RecentActivitiesQuery.model_validate(raw)
    except ValidationError as exc:
        return _validation_error(exc)
    try:
        result = watcher_services.fetch_recent_activities(
            query.user_id, query.wallet_address, query.query_string, query.limit
        )
    except InvalidInput as exc:
        return _invalid_input(exc)
    except StoreUnavailable:
        return _store_failure("Failed to fetch recent activities")
    payload = RecentActivitiesResponse(**result).model_dump(by_alias=True)
    return jsonify({"ok": True, **payload})


@watcher_api_bp.get("/unread-counts")
def unread_counts():
    try:
        query = UserQuery.model_validate(_present({"userId": request.args.get("userId")}))
    except ValidationError as exc:
        return _validation_error(exc)
    try:
        result = watcher_services.unread_counts(query.user_id)
    except InvalidInput as exc:
        return _invalid_input(exc)
    except StoreUnavailable:
        return _store_failure("Failed to get unread counts")
    payload = UnreadCountsResponse(**result).model_dump(by_alias=True)
    return jsonify({"ok": True, **payload})
