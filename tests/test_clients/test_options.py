"""Tests for request option query building."""

from __future__ import annotations

import pytest

from kubecloud.clients.options import ListOptions, LogOptions, PatchOptions, PatchType, WatchOptions


class TestListOptions:
    def test_empty(self) -> None:
        assert ListOptions().to_params() == {}

    def test_all_fields(self) -> None:
        options = ListOptions(
            label_selector="app=web",
            field_selector="status.phase=Running",
            limit=10,
            continue_token="tok",
            resource_version="7",
        )
        assert options.to_params() == {
            "labelSelector": "app=web",
            "fieldSelector": "status.phase=Running",
            "limit": "10",
            "continue": "tok",
            "resourceVersion": "7",
        }


class TestWatchOptions:
    def test_watch_flag_always_set(self) -> None:
        assert WatchOptions().to_params() == {"watch": "true"}

    def test_bookmarks(self) -> None:
        assert WatchOptions(allow_watch_bookmarks=True).to_params()["allowWatchBookmarks"] == "true"


class TestLogOptions:
    def test_flags_only_when_set(self) -> None:
        assert LogOptions().to_params() == {}
        params = LogOptions(previous=True, timestamps=True, since_seconds=60, limit_bytes=1024).to_params()
        assert params == {"previous": "true", "timestamps": "true", "sinceSeconds": "60", "limitBytes": "1024"}


class TestPatchOptions:
    def test_default_is_strategic_merge(self) -> None:
        options = PatchOptions()
        assert options.patch_type is PatchType.STRATEGIC_MERGE
        assert options.to_params() == {}

    def test_apply_requires_field_manager(self) -> None:
        with pytest.raises(ValueError, match="field_manager"):
            PatchOptions(patch_type=PatchType.APPLY)
