"""Errors, descriptors, digests and the base registry shared by all implementations."""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, Mapping, Union

EMPTY_DIGEST = "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

_ALGORITHM_HEX_LENGTHS = {"sha256": 64, "sha384": 96, "sha512": 128}
_DIGEST_SYNTAX = re.compile(r"[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+")
_HEX = re.compile(r"[a-f0-9]+")

_INVALID_FORMAT = "invalid checksum digest format"
_INVALID_LENGTH = "invalid checksum digest length"
_UNSUPPORTED_ALGORITHM = "unsupported digest algorithm"


class RegistryError(Exception):
    """An error reported by a registry.

    Subclasses carry a registry error code and summary. The optional
    ``detail`` is appended after the summary and ``prefix`` is put in front.
    """

    code = ""
    summary = ""

    def __init__(self, detail: str = "", *, prefix: str = "") -> None:
        super().__init__(detail)
        self.detail = detail
        self.prefix = prefix

    def __str__(self) -> str:
        parts = []
        if self.prefix:
            parts.append(self.prefix)
        if self.code:
            parts.append(f"{self.code}: {self.summary}")
        if self.detail:
            parts.append(self.detail)
        return ": ".join(parts)


class DeniedError(RegistryError):
    code = "denied"
    summary = "requested access to the resource is denied"


class NameUnknownError(RegistryError):
    code = "name unknown"
    summary = "repository name not known to registry"


class NameInvalidError(RegistryError):
    code = "name invalid"
    summary = "invalid repository name"


class BlobUnknownError(RegistryError):
    code = "blob unknown"
    summary = "blob unknown to registry"


class ManifestUnknownError(RegistryError):
    code = "manifest unknown"
    summary = "manifest unknown to registry"


class DigestInvalidError(RegistryError):
    code = "digest invalid"
    summary = "provided digest did not match uploaded content"


class RangeInvalidError(RegistryError):
    code = "range invalid"
    summary = "invalid content range"


class UnsupportedError(RegistryError):
    code = "unsupported"
    summary = "the operation is unsupported"


def digest_from_bytes(data: bytes) -> str:
    """Return the canonical sha256 digest of ``data``."""
    return "sha256:" + hashlib.sha256(bytes(data)).hexdigest()


def validate_digest(digest: str) -> str:
    """Check that ``digest`` is well formed, returning it; raise ValueError if not."""
    i = digest.find(":")
    if i <= 0 or i + 1 == len(digest):
        raise ValueError(_INVALID_FORMAT)
    algorithm, encoded = digest[:i], digest[i + 1 :]
    length = _ALGORITHM_HEX_LENGTHS.get(algorithm)
    if length is None:
        if not _DIGEST_SYNTAX.fullmatch(digest):
            raise ValueError(_INVALID_FORMAT)
        raise ValueError(_UNSUPPORTED_ALGORITHM)
    if len(encoded) != length:
        raise ValueError(_INVALID_LENGTH)
    if not _HEX.fullmatch(encoded):
        raise ValueError(_INVALID_FORMAT)
    return digest


@dataclass(frozen=True)
class Descriptor:
    """Describes a piece of registry content: its media type, digest and size."""

    media_type: str = ""
    digest: str = ""
    size: int = 0
    urls: tuple[str, ...] = ()
    annotations: Mapping[str, str] | None = None
    data: bytes | None = None
    platform: Mapping[str, Any] | None = None
    artifact_type: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Descriptor":
        """Build a descriptor from its JSON object form."""
        if not isinstance(data, Mapping):
            raise ValueError(f"descriptor must be an object, not {type(data).__name__}")
        raw = data.get("data")
        return cls(
            media_type=data.get("mediaType") or "",
            digest=data.get("digest") or "",
            size=int(data.get("size") or 0),
            urls=tuple(data.get("urls") or ()),
            annotations=dict(data["annotations"]) if data.get("annotations") else None,
            data=base64.b64decode(raw) if raw else None,
            platform=dict(data["platform"]) if data.get("platform") else None,
            artifact_type=data.get("artifactType") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the descriptor."""
        result: dict[str, Any] = {
            "mediaType": self.media_type,
            "digest": self.digest,
            "size": self.size,
        }
        if self.urls:
            result["urls"] = list(self.urls)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.data:
            result["data"] = base64.b64encode(self.data).decode("ascii")
        if self.platform:
            result["platform"] = dict(self.platform)
        if self.artifact_type:
            result["artifactType"] = self.artifact_type
        return result


def check_descriptor(desc: Descriptor, data: bytes | None = None) -> None:
    """Check that ``desc`` matches ``data`` or, if data is None, that it looks sane.

    Raises ValueError describing the first problem found.
    """
    try:
        validate_digest(desc.digest)
    except ValueError as exc:
        raise ValueError(f"invalid digest: {exc}") from None
    if data is not None:
        if digest_from_bytes(data) != desc.digest:
            raise ValueError("digest mismatch")
        if desc.size != len(data):
            raise ValueError("size mismatch")
    elif desc.size == 0 and desc.digest != EMPTY_DIGEST:
        raise ValueError("zero sized content with mismatching digest")
    if not desc.media_type:
        raise ValueError("no media type in descriptor")


Content = Union[bytes, bytearray, memoryview, BinaryIO]


class _ErrorIterator:
    """An iterator whose first step raises the error it was built with."""

    def __init__(self, err: Exception) -> None:
        self._err = err

    def __iter__(self) -> "_ErrorIterator":
        return self

    def __next__(self) -> Any:
        raise self._err


def _error_iter(err: Exception) -> Iterator[Any]:
    """Return an iterator that raises ``err`` when iterated."""
    return _ErrorIterator(err)


class Registry:
    """Base registry in which every operation is unsupported.

    Implementations and wrappers override the operations they provide;
    anything not overridden raises the error built by ``_unsupported``.
    Listing operations return iterators that raise when iterated.
    """

    def _unsupported(self, method: str, repo: str) -> Exception:
        return UnsupportedError(prefix=f"operation {method} not supported")

    def get_blob(self, repo: str, digest: str):
        raise self._unsupported("get_blob", repo)

    def get_blob_range(self, repo: str, digest: str, offset0: int, offset1: int):
        raise self._unsupported("get_blob_range", repo)

    def get_manifest(self, repo: str, digest: str):
        raise self._unsupported("get_manifest", repo)

    def get_tag(self, repo: str, tag: str):
        raise self._unsupported("get_tag", repo)

    def resolve_blob(self, repo: str, digest: str) -> Descriptor:
        raise self._unsupported("resolve_blob", repo)

    def resolve_manifest(self, repo: str, digest: str) -> Descriptor:
        raise self._unsupported("resolve_manifest", repo)

    def resolve_tag(self, repo: str, tag: str) -> Descriptor:
        raise self._unsupported("resolve_tag", repo)

    def push_blob(self, repo: str, desc: Descriptor, content: Content) -> Descriptor:
        raise self._unsupported("push_blob", repo)

    def push_blob_chunked(self, repo: str, chunk_size: int = 0):
        raise self._unsupported("push_blob_chunked", repo)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int = 0
    ):
        raise self._unsupported("push_blob_chunked_resume", repo)

    def mount_blob(self, from_repo: str, to_repo: str, digest: str) -> Descriptor:
        raise self._unsupported("mount_blob", to_repo)

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        raise self._unsupported("push_manifest", repo)

    def delete_blob(self, repo: str, digest: str) -> None:
        raise self._unsupported("delete_blob", repo)

    def delete_manifest(self, repo: str, digest: str) -> None:
        raise self._unsupported("delete_manifest", repo)

    def delete_tag(self, repo: str, tag: str) -> None:
        raise self._unsupported("delete_tag", repo)

    def repositories(self, start_after: str = "") -> Iterator[str]:
        return _error_iter(self._unsupported("repositories", ""))

    def tags(self, repo: str, start_after: str = "") -> Iterator[str]:
        return _error_iter(self._unsupported("tags", repo))

    def referrers(
        self, repo: str, digest: str, artifact_type: str = ""
    ) -> Iterator[Descriptor]:
        return _error_iter(self._unsupported("referrers", repo))