"""A registry wrapper that allows content to be added but never changed."""

from __future__ import annotations

from typing import Iterator

from ocireg.core import (
    Content,
    DeniedError,
    Descriptor,
    Registry,
    RegistryError,
    digest_from_bytes,
)

_IMMUTABLE = "this store is immutable"


class _ImmutableRegistry(Registry):
    """Passes operations through, refusing deletions and tag changes."""

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

    def push_blob(self, repo: str, desc: Descriptor, content: Content) -> Descriptor:
        return self._registry.push_blob(repo, desc, content)

    def push_blob_chunked(self, repo: str, chunk_size: int = 0):
        return self._registry.push_blob_chunked(repo, chunk_size)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int = 0
    ):
        return self._registry.push_blob_chunked_resume(
            repo, upload_id, offset, chunk_size
        )

    def mount_blob(self, from_repo: str, to_repo: str, digest: str) -> Descriptor:
        return self._registry.mount_blob(from_repo, to_repo, digest)

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        if not tag:
            return self._registry.push_manifest(repo, tag, contents, media_type)
        digest = digest_from_bytes(contents)
        try:
            existing = self._registry.resolve_tag(repo, tag)
        except Exception:
            existing = None
        if existing is not None:
            if existing.digest == digest:
                # Pushing exactly the same content again is fine.
                return existing
            raise DeniedError(prefix=_IMMUTABLE)
        self._registry.push_manifest(repo, tag, contents, media_type)
        # Someone else may have pushed the same tag at the same time.
        try:
            desc = self._registry.resolve_tag(repo, tag)
        except Exception as exc:
            raise RegistryError(
                f"cannot resolve tag that's just been pushed: {exc}"
            ) from exc
        if desc.digest != digest:
            raise DeniedError(prefix=_IMMUTABLE)
        return desc

    def delete_blob(self, repo: str, digest: str) -> None:
        raise DeniedError()

    def delete_manifest(self, repo: str, digest: str) -> None:
        raise DeniedError()

    def delete_tag(self, repo: str, tag: str) -> None:
        raise DeniedError()

    def repositories(self, start_after: str = "") -> Iterator[str]:
        return self._registry.repositories(start_after)

    def tags(self, repo: str, start_after: str = "") -> Iterator[str]:
        return self._registry.tags(repo, start_after)

    def referrers(
        self, repo: str, digest: str, artifact_type: str = ""
    ) -> Iterator[Descriptor]:
        return self._registry.referrers(repo, digest, artifact_type)


def immutable(registry: Registry) -> Registry:
    """Wrap ``registry`` so content can be added but not changed once added.

    Nothing can be deleted and an existing tag cannot be moved to other content.
    """
    return _ImmutableRegistry(registry)