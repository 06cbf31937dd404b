"""Metadata hooks run once after the ordered output is committed.

A hook is any object with a ``process(source, destination_dir)`` method.
It signals failure by raising; the job then ends as failed while the
committed destination stays in place. Artifacts a failing hook leaves
behind are the hook's own to clean up.
"""

from __future__ import annotations

import importlib
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from tracesort.core.errors import SortError

logger = structlog.get_logger()


@runtime_checkable
class MetadataHook(Protocol):
    """Post-sort step that attaches or transforms sidecar files."""

    def process(self, source: Path, destination_dir: Path) -> None: ...


class NullMetadataHook:
    """No metadata to process."""

    def process(self, source: Path, destination_dir: Path) -> None:  # noqa: ARG002
        return None


class SidecarCopyHook:
    """Copies sidecar files of the source next to the destination.

    A sidecar of ``trace.json`` with suffix ``.meta`` is ``trace.json.meta``.
    Missing sidecars are skipped. Copying onto the same file is a no-op.
    """

    def __init__(self, suffixes: Sequence[str]) -> None:
        self.suffixes = tuple(suffixes)

    def process(self, source: Path, destination_dir: Path) -> None:
        for suffix in self.suffixes:
            sidecar = source.with_name(source.name + suffix)
            if not sidecar.is_file():
                continue
            target = destination_dir / sidecar.name
            if target.exists() and target.samefile(sidecar):
                continue
            shutil.copy2(sidecar, target)
            logger.debug("sidecar_copied", sidecar=str(sidecar), target=str(target))

    def __repr__(self) -> str:
        return f"SidecarCopyHook(suffixes={list(self.suffixes)!r})"


def load_hook(reference: str) -> MetadataHook:
    """Resolve a ``package.module:attribute`` reference to a hook instance.

    The attribute may be a hook instance, or a class / zero-argument
    factory returning one.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise SortError.invalid_argument("hook", reference, "expected 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise SortError.invalid_argument("hook", reference, str(e)) from e

    if isinstance(target, MetadataHook) and not isinstance(target, type):
        return target
    if not callable(target):
        raise SortError.invalid_argument("hook", reference, "object has no process() method")
    try:
        hook = target()
    except TypeError as e:
        raise SortError.invalid_argument("hook", reference, str(e)) from e
    if not isinstance(hook, MetadataHook):
        raise SortError.invalid_argument("hook", reference, "object has no process() method")
    return hook


def describe_hook(hook: MetadataHook) -> str:
    """Name used for a hook in logs and error messages."""
    return type(hook).__qualname__
