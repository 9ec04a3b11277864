"""A registry wrapper that exposes only the repositories under a path prefix."""

from __future__ import annotations

import posixpath
from typing import Iterator

from ocireg.core import Content, Descriptor, Registry


def _join(prefix: str, name: str) -> str:
    """Join two slash-separated paths and clean the result."""
    joined = posixpath.normpath(f"{prefix}/{name}")
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return joined


class _SubRegistry(Registry):
    """Maps every repository name to one below ``prefix`` in the wrapped registry.

    Operations not overridden here fall back to the base class and are
    unsupported.
    """

    def __init__(self, registry: Registry, prefix: str) -> None:
        self._registry = registry
        self._prefix = prefix

    def _repo(self, name: str) -> str:
        # An empty name is kept empty so that the wrapped registry rejects it.
        if not name:
            return ""
        return _join(self._prefix, name)

    def get_blob(self, repo: str, digest: str):
        return self._registry.get_blob(self._repo(repo), digest)

    def get_blob_range(self, repo: str, digest: str, offset0: int, offset1: int):
        return self._registry.get_blob_range(self._repo(repo), digest, offset0, offset1)

    def get_manifest(self, repo: str, digest: str):
        return self._registry.get_manifest(self._repo(repo), digest)

    def get_tag(self, repo: str, tag: str):
        return self._registry.get_tag(self._repo(repo), tag)

    def resolve_blob(self, repo: str, digest: str) -> Descriptor:
        return self._registry.resolve_blob(self._repo(repo), digest)

    def resolve_manifest(self, repo: str, digest: str) -> Descriptor:
        return self._registry.resolve_manifest(self._repo(repo), digest)

    def resolve_tag(self, repo: str, tag: str) -> Descriptor:
        return self._registry.resolve_tag(self._repo(repo), tag)

    def push_blob(self, repo: str, desc: Descriptor, content: Content) -> Descriptor:
        return self._registry.push_blob(self._repo(repo), desc, content)

    def push_blob_chunked(self, repo: str, chunk_size: int = 0):
        return self._registry.push_blob_chunked(self._repo(repo), chunk_size)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int = 0
    ):
        return self._registry.push_blob_chunked_resume(
            self._repo(repo), upload_id, offset, chunk_size
        )

    def mount_blob(self, from_repo: str, to_repo: str, digest: str) -> Descriptor:
        return self._registry.mount_blob(
            self._repo(from_repo), self._repo(to_repo), digest
        )

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        return self._registry.push_manifest(self._repo(repo), tag, contents, media_type)

    def delete_blob(self, repo: str, digest: str) -> None:
        self._registry.delete_blob(self._repo(repo), digest)

    def delete_manifest(self, repo: str, digest: str) -> None:
        self._registry.delete_manifest(self._repo(repo), digest)

    def delete_tag(self, repo: str, tag: str) -> None:
        self._registry.delete_tag(self._repo(repo), tag)

    def repositories(self, start_after: str = "") -> Iterator[str]:
        return self._sub_repositories(start_after)

    def _sub_repositories(self, start_after: str) -> Iterator[str]:
        leading = self._prefix + "/"
        for name in self._registry.repositories(start_after):
            if name.startswith(leading):
                yield name[len(leading) :]

    def tags(self, repo: str, start_after: str = "") -> Iterator[str]:
        return self._registry.tags(self._repo(repo), start_after)

    def referrers(
        self, repo: str, digest: str, artifact_type: str = ""
    ) -> Iterator[Descriptor]:
        return self._registry.referrers(self._repo(repo), digest, artifact_type)


def sub(registry: Registry, path_prefix: str) -> Registry:
    """Wrap ``registry`` so that it addresses only repositories within ``path_prefix``.

    The prefix must match whole path elements: with prefix "foo", the
    repositories "foo/a" and "foo/b/c" appear as "a" and "b/c", while
    "foobie" is left out. An empty prefix returns ``registry`` itself.
    """
    if not path_prefix:
        return registry
    return _SubRegistry(registry, path_prefix)