"""Query options for list, watch, log and patch requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ListOptions:
    """Filtering and pagination for list requests."""

    label_selector: str | None = None
    field_selector: str | None = None
    limit: int | None = None
    continue_token: str | None = None
    resource_version: str | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.label_selector is not None:
            params["labelSelector"] = self.label_selector
        if self.field_selector is not None:
            params["fieldSelector"] = self.field_selector
        if self.limit is not None:
            params["limit"] = str(self.limit)
        if self.continue_token is not None:
            params["continue"] = self.continue_token
        if self.resource_version is not None:
            params["resourceVersion"] = self.resource_version
        return params


@dataclass(frozen=True)
class WatchOptions:
    resource_version: str | None = None
    timeout_seconds: int | None = None
    allow_watch_bookmarks: bool = False
    label_selector: str | None = None
    field_selector: str | None = None

    def to_params(self) -> dict[str, str]:
        params = {"watch": "true"}
        if self.resource_version is not None:
            params["resourceVersion"] = self.resource_version
        if self.timeout_seconds is not None:
            params["timeoutSeconds"] = str(self.timeout_seconds)
        if self.allow_watch_bookmarks:
            params["allowWatchBookmarks"] = "true"
        if self.label_selector is not None:
            params["labelSelector"] = self.label_selector
        if self.field_selector is not None:
            params["fieldSelector"] = self.field_selector
        return params


@dataclass(frozen=True)
class LogOptions:
    """Options for the pod ``log`` subresource."""

    container: str | None = None
    follow: bool = False
    previous: bool = False
    timestamps: bool = False
    tail_lines: int | None = None
    since_seconds: int | None = None
    since_time: str | None = None
    limit_bytes: int | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.container is not None:
            params["container"] = self.container
        if self.follow:
            params["follow"] = "true"
        if self.previous:
            params["previous"] = "true"
        if self.timestamps:
            params["timestamps"] = "true"
        if self.tail_lines is not None:
            params["tailLines"] = str(self.tail_lines)
        if self.since_seconds is not None:
            params["sinceSeconds"] = str(self.since_seconds)
        if self.since_time is not None:
            params["sinceTime"] = self.since_time
        if self.limit_bytes is not None:
            params["limitBytes"] = str(self.limit_bytes)
        return params


class PatchType(Enum):
    """Patch strategies accepted by the API server, keyed to their content types."""

    JSON = "application/json-patch+json"
    MERGE = "application/merge-patch+json"
    STRATEGIC_MERGE = "application/strategic-merge-patch+json"
    APPLY = "application/apply-patch+yaml"

    @property
    def content_type(self) -> str:
        return self.value


@dataclass(frozen=True)
class PatchOptions:
    patch_type: PatchType = PatchType.STRATEGIC_MERGE
    dry_run: bool = False
    field_manager: str | None = None
    force: bool = False

    def __post_init__(self) -> None:
        # Server-side apply rejects requests without a field manager.
        if self.patch_type is PatchType.APPLY and not self.field_manager:
            msg = "Server-side apply requires a field_manager"
            raise ValueError(msg)

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.dry_run:
            params["dryRun"] = "All"
        if self.field_manager is not None:
            params["fieldManager"] = self.field_manager
        if self.force:
            params["force"] = "true"
        return params
