"""A registry wrapper that refuses every change."""

from __future__ import annotations

from typing import Iterator

from ocireg.core import Descriptor, Registry


class _ReadOnlyRegistry(Registry):
    """Passes reading and listing through; everything else is unsupported."""

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def get_blob(self, repo: str, digest: str):
        return self._registry.get_blob(repo, digest)

    def get_blob_range(self, repo: str, digest: str, offset0: int, offset1: int):
        return self._registry.get_blob_range(repo, digest, offset0, offset1)

    def get_manifest(self, repo: str, digest: str):
        return self._registry.get_manifest(repo, digest)

    def get_tag(self, repo: str, tag: str):
        return self._registry.get_tag(repo, tag)

    def resolve_blob(self, repo: str, digest: str) -> Descriptor:
        return self._registry.resolve_blob(repo, digest)

    def resolve_manifest(self, repo: str, digest: str) -> Descriptor:
        return self._registry.resolve_manifest(repo, digest)

    def resolve_tag(self, repo: str, tag: str) -> Descriptor:
        return self._registry.resolve_tag(repo, tag)

    def repositories(self, start_after: str = "") -> Iterator[str]:
        return self._registry.repositories(start_after)

    def tags(self, repo: str, start_after: str = "") -> Iterator[str]:
        return self._registry.tags(repo, start_after)

    def referrers(
        self, repo: str, digest: str, artifact_type: str = ""
    ) -> Iterator[Descriptor]:
        return self._registry.referrers(repo, digest, artifact_type)


def read_only(registry: Registry) -> Registry:
    """Wrap ``registry`` so that every operation that changes it is unsupported."""
    return _ReadOnlyRegistry(registry)