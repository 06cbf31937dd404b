"""Tests for sorting/hooks.py module."""

from __future__ import annotations

from pathlib import Path

import pytest

from tracesort.core.errors import ErrorCode, SortError
from tracesort.sorting.hooks import (
    MetadataHook,
    NullMetadataHook,
    SidecarCopyHook,
    describe_hook,
    load_hook,
)


class TestNullMetadataHook:
    def test_is_a_hook(self) -> None:
        assert isinstance(NullMetadataHook(), MetadataHook)

    def test_does_nothing(self, tmp_path: Path) -> None:
        NullMetadataHook().process(tmp_path / "t.log", tmp_path)
        assert list(tmp_path.iterdir()) == []


class TestSidecarCopyHook:
    """Tests for SidecarCopyHook."""

    def test_copies_existing_sidecars(self, tmp_path: Path) -> None:
        """Sidecars named after the source are copied to the destination dir."""
        source = tmp_path / "trace.json"
        source.write_text("[]")
        (tmp_path / "trace.json.meta").write_text("cpu=4")
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        SidecarCopyHook([".meta", ".symbols"]).process(source, out_dir)

        assert [p.name for p in out_dir.iterdir()] == ["trace.json.meta"]
        assert (out_dir / "trace.json.meta").read_text() == "cpu=4"

    def test_same_directory_is_noop(self, tmp_path: Path) -> None:
        """Copying a sidecar onto itself does nothing."""
        source = tmp_path / "trace.json"
        sidecar = tmp_path / "trace.json.meta"
        sidecar.write_text("x")

        SidecarCopyHook([".meta"]).process(source, tmp_path)

        assert sidecar.read_text() == "x"

    def test_repr(self) -> None:
        assert repr(SidecarCopyHook([".meta"])) == "SidecarCopyHook(suffixes=['.meta'])"


class TestLoadHook:
    """Tests for load_hook function."""

    def test_loads_class(self) -> None:
        """A class reference is instantiated."""
        hook = load_hook("tracesort.sorting.hooks:NullMetadataHook")
        assert isinstance(hook, NullMetadataHook)

    @pytest.mark.parametrize(
        "reference",
        ["no_colon", ":attr", "module:", "tracesort.no_such_module:x"],
    )
    def test_bad_reference(self, reference: str) -> None:
        with pytest.raises(SortError) as exc_info:
            load_hook(reference)
        assert exc_info.value.code == ErrorCode.SORT_INVALID_ARGUMENT
        assert exc_info.value.details["argument"] == "hook"

    def test_missing_attribute(self) -> None:
        with pytest.raises(SortError):
            load_hook("tracesort.sorting.hooks:NoSuchHook")

    def test_not_a_hook(self) -> None:
        """Non-callable objects without process() are rejected."""
        with pytest.raises(SortError) as exc_info:
            load_hook("tracesort.config.constants:SCRATCH_PREFIX")
        assert "process()" in exc_info.value.details["reason"]

    def test_factory_needing_arguments(self) -> None:
        """Classes that cannot be built without arguments are rejected."""
        with pytest.raises(SortError):
            load_hook("tracesort.sorting.hooks:SidecarCopyHook")


def test_describe_hook() -> None:
    assert describe_hook(SidecarCopyHook([])) == "SidecarCopyHook"
