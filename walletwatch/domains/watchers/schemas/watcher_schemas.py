"""Watcher DTOs and schemas.

Wire names are camelCase to match the web client; Python attributes stay snake_case.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ActivityFilters(_WireModel):
    """Filter set a watcher applies to a wallet's activity stream."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="forbid")

    activity_types: List[str] = Field(default_factory=list, alias="activityTypes")
    platform: Optional[str] = Field(default=None, max_length=128)
    specific_token: Optional[str] = Field(default=None, alias="specificToken", max_length=128)
    min_amount: float = Field(default=0.0, alias="minAmount", ge=0, allow_inf_nan=False)

    @field_validator("activity_types", mode="before")
    @classmethod
    def _normalize_types(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return sorted({str(v).strip() for v in value if v is not None and str(v).strip()})

    @field_validator("platform", "specific_token", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ActivitiesQuery(_WireModel):
    wallet_address: str = Field(alias="walletAddress", min_length=1, max_length=128)
    user_id: str = Field(alias="userId", min_length=1, max_length=128)
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(default=None, alias="pageSize", ge=1)
    last_key: Optional[str] = Field(default=None, alias="lastKey", max_length=4096)
    filters: ActivityFilters = Field(default_factory=ActivityFilters)


class MarkReadRequest(_WireModel):
    user_id: str = Field(alias="userId", min_length=1, max_length=128)
    wallet_address: str = Field(alias="walletAddress", min_length=1, max_length=128)
    query_string: str = Field(alias="queryString", min_length=1, max_length=2048)


class RecentActivitiesQuery(_WireModel):
    user_id: str = Field(alias="userId", min_length=1, max_length=128)
    wallet_address: str = Field(alias="walletAddress", min_length=1, max_length=128)
    query_string: str = Field(alias="queryString", min_length=1, max_length=2048)
    limit: Optional[int] = Field(default=None, ge=1)


class UserQuery(_WireModel):
    user_id: str = Field(alias="userId", min_length=1, max_length=128)


class ActivitiesPageResponse(_WireModel):
    activities: List[dict]
    last_key: Optional[str] = Field(alias="lastKey")
    page: int
    page_size: int = Field(alias="pageSize")
    query_signature: str = Field(alias="querySignature")


class MarkReadResponse(_WireModel):
    message: str
    timestamp: int


class RecentActivitiesResponse(_WireModel):
    activities: List[dict]
    last_read_timestamp: int = Field(alias="lastReadTimestamp")


class WatcherUnreadDetail(_WireModel):
    wallet_address: str = Field(alias="walletAddress")
    query_string: str = Field(alias="queryString")
    has_unread: bool = Field(alias="hasUnread")
    last_read_timestamp: int = Field(alias="lastReadTimestamp")


class UnreadCountsResponse(_WireModel):
    unread_count: int = Field(alias="unreadCount")
    watcher_details: List[WatcherUnreadDetail] = Field(alias="watcherDetails")


class WatchersResponse(_WireModel):
    watchers: List[dict[str, Any]]
