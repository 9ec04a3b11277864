"""A registry that keeps all of its content in memory."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from ocireg.blob import Buffer, BytesReader
from ocireg.core import (
    BlobUnknownError,
    Content,
    DeniedError,
    Descriptor,
    ManifestUnknownError,
    NameInvalidError,
    NameUnknownError,
    Registry,
    RegistryError,
    _error_iter,
    check_descriptor,
    digest_from_bytes,
)
from ocireg.manifest import DescInfo, RefKind, manifest_references
from ocireg.reference import is_valid_repository, is_valid_tag


@dataclass(frozen=True)
class Config:
    """Registry configuration.

    With ``immutable_tags`` set, tags cannot be removed or moved to other
    content, directly tagged manifests cannot be deleted, and neither can
    any blob or manifest that a tagged manifest refers to.
    """

    immutable_tags: bool = False


@dataclass
class _Blob:
    media_type: str
    data: bytes
    subject: str = ""

    def descriptor(self) -> Descriptor:
        return Descriptor(
            media_type=self.media_type,
            size=len(self.data),
            digest=digest_from_bytes(self.data),
        )


@dataclass
class _Repository:
    tags: dict[str, Descriptor] = field(default_factory=dict)
    manifests: dict[str, _Blob] = field(default_factory=dict)
    blobs: dict[str, _Blob] = field(default_factory=dict)
    uploads: dict[str, Buffer] = field(default_factory=dict)


def _read_content(content: Content) -> bytes:
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    try:
        return bytes(content.read())
    except (OSError, ValueError) as exc:
        raise RegistryError(f"cannot read content: {exc}") from exc


def _tag_refs(repo: _Repository) -> list[DescInfo]:
    return [DescInfo(tag, RefKind.MANIFEST, desc) for tag, desc in repo.tags.items()]


def _refers_to(repo: _Repository, refs: Iterable[DescInfo], digest: str) -> bool:
    """Report whether any of ``refs`` leads, directly or indirectly, to ``digest``."""
    for info in refs:
        if info.desc.digest == digest:
            return True
        if info.kind in (RefKind.MANIFEST, RefKind.SUBJECT_MANIFEST):
            blob = repo.manifests.get(info.desc.digest)
            if blob is None:
                continue
            nested = manifest_references(info.desc.media_type, blob.data)
            if _refers_to(repo, nested, digest):
                return True
    return False


class MemoryRegistry(Registry):
    """An in-memory registry. Safe to use from several threads."""

    def __init__(self, config: Config | None = None) -> None:
        self._config = config if config is not None else Config()
        self._lock = threading.Lock()
        self._repos: dict[str, _Repository] = {}

    # Lookup helpers; callers hold the lock.

    def _repo(self, name: str) -> _Repository:
        repo = self._repos.get(name)
        if repo is None:
            raise NameUnknownError()
        return repo

    def _manifest_for_digest(self, repo_name: str, digest: str) -> _Blob:
        blob = self._repo(repo_name).manifests.get(digest)
        if blob is None:
            raise ManifestUnknownError()
        return blob

    def _blob_for_digest(self, repo_name: str, digest: str) -> _Blob:
        blob = self._repo(repo_name).blobs.get(digest)
        if blob is None:
            raise BlobUnknownError()
        return blob

    def _make_repo(self, name: str) -> _Repository:
        if not is_valid_repository(name):
            raise NameInvalidError()
        return self._repos.setdefault(name, _Repository())

    # Reading.

    def get_blob(self, repo: str, digest: str) -> BytesReader:
        with self._lock:
            blob = self._blob_for_digest(repo, digest)
            return BytesReader(blob.data, blob.descriptor())

    def get_blob_range(
        self, repo: str, digest: str, offset0: int, offset1: int
    ) -> BytesReader:
        with self._lock:
            blob = self._blob_for_digest(repo, digest)
            size = len(blob.data)
            if offset1 < 0 or offset1 > size:
                offset1 = size
            if offset0 < 0 or offset0 > offset1:
                raise RegistryError(
                    f"invalid range [{offset0}, {offset1}]; have [0, {size}]"
                )
            return BytesReader(blob.data[offset0:offset1], blob.descriptor())

    def get_manifest(self, repo: str, digest: str) -> BytesReader:
        with self._lock:
            blob = self._manifest_for_digest(repo, digest)
            return BytesReader(blob.data, blob.descriptor())

    def get_tag(self, repo: str, tag: str) -> BytesReader:
        desc = self.resolve_tag(repo, tag)
        return self.get_manifest(repo, desc.digest)

    def resolve_tag(self, repo: str, tag: str) -> Descriptor:
        with self._lock:
            desc = self._repo(repo).tags.get(tag)
            if desc is None:
                raise ManifestUnknownError()
            return desc

    def resolve_blob(self, repo: str, digest: str) -> Descriptor:
        with self._lock:
            return self._blob_for_digest(repo, digest).descriptor()

    def resolve_manifest(self, repo: str, digest: str) -> Descriptor:
        with self._lock:
            return self._manifest_for_digest(repo, digest).descriptor()

    # Writing.

    def push_blob(self, repo: str, desc: Descriptor, content: Content) -> Descriptor:
        data = _read_content(content)
        try:
            check_descriptor(desc, data)
        except ValueError as exc:
            raise RegistryError(f"invalid descriptor: {exc}") from None
        with self._lock:
            r = self._make_repo(repo)
            r.blobs[desc.digest] = _Blob(media_type=desc.media_type, data=data)
        return desc

    def push_blob_chunked(self, repo: str, chunk_size: int = 0) -> Buffer:
        return self.push_blob_chunked_resume(repo, "", 0, chunk_size)

    def push_blob_chunked_resume(
        self, repo: str, upload_id: str, offset: int, chunk_size: int = 0
    ) -> Buffer:
        with self._lock:
            r = self._make_repo(repo)
            buf = r.uploads.get(upload_id)
            if buf is None:

                def commit(b: Buffer) -> None:
                    with self._lock:
                        desc, data = b.get_blob()
                        r.blobs[desc.digest] = _Blob(
                            media_type=desc.media_type, data=data
                        )

                buf = Buffer(commit, upload_id)
                r.uploads[buf.id()] = buf
            buf._resume_at(offset)
            return buf

    def mount_blob(self, from_repo: str, to_repo: str, digest: str) -> Descriptor:
        with self._lock:
            target = self._make_repo(to_repo)
            blob = self._blob_for_digest(from_repo, digest)
            target.blobs[digest] = blob
            return blob.descriptor()

    def push_manifest(
        self, repo: str, tag: str, contents: bytes, media_type: str
    ) -> Descriptor:
        with self._lock:
            r = self._make_repo(repo)
            data = bytes(contents)
            digest = digest_from_bytes(data)
            desc = Descriptor(digest=digest, media_type=media_type, size=len(data))
            if tag:
                if not is_valid_tag(tag):
                    raise RegistryError("invalid tag")
                if self._config.immutable_tags and tag in r.tags:
                    current = r.tags[tag]
                    if current.digest != digest:
                        raise DeniedError("cannot overwrite tag")
                    if current.media_type != media_type:
                        raise DeniedError("mismatched media type")
                    return current
            try:
                check_descriptor(desc, data)
            except ValueError as exc:
                raise RegistryError(f"invalid descriptor: {exc}") from None
            try:
                subject = self._check_manifest(r, media_type, data)
            except (ValueError, RegistryError) as exc:
                raise RegistryError(f"invalid manifest: {exc}") from None
            r.manifests[digest] = _Blob(
                media_type=media_type, data=data, subject=subject
            )
            if tag:
                r.tags[tag] = desc
            return desc

    @staticmethod
    def _check_manifest(repo: _Repository, media_type: str, data: bytes) -> str:
        """Check the references of a manifest, returning its subject digest."""
        subject = ""
        for info in manifest_references(media_type, data):
            try:
                check_descriptor(info.desc, None)
            except ValueError as exc:
                raise ValueError(f"bad descriptor in {info.name}: {exc}") from None
            if info.kind is RefKind.BLOB:
                if info.desc.digest not in repo.blobs:
                    raise ValueError(f"blob for {info.name} not found")
            elif info.kind is RefKind.MANIFEST:
                if info.desc.digest not in repo.manifests:
                    raise ValueError(f"manifest for {info.name} not found")
            else:
                # A dangling subject is explicitly allowed.
                subject = info.desc.digest
        return subject

    # Deleting.

    def delete_blob(self, repo: str, digest: str) -> None:
        with self._lock:
            self._blob_for_digest(repo, digest)
            r = self._repos[repo]
            if self._config.immutable_tags and _refers_to(r, _tag_refs(r), digest):
                raise DeniedError("deletion of tagged blob not permitted")
            del r.blobs[digest]

    def delete_manifest(self, repo: str, digest: str) -> None:
        with self._lock:
            self._manifest_for_digest(repo, digest)
            r = self._repos[repo]
            if self._config.immutable_tags and _refers_to(r, _tag_refs(r), digest):
                raise DeniedError("deletion of tagged manifest not permitted")
            del r.manifests[digest]

    def delete_tag(self, repo: str, tag: str) -> None:
        with self._lock:
            r = self._repo(repo)
            if tag not in r.tags:
                raise ManifestUnknownError("tag does not exist")
            if self._config.immutable_tags:
                raise DeniedError("tag deletion not permitted")
            del r.tags[tag]

    # Listing.

    def repositories(self, start_after: str = "") -> Iterator[str]:
        with self._lock:
            names = sorted(name for name in self._repos if name > start_after)
        return iter(names)

    def tags(self, repo: str, start_after: str = "") -> Iterator[str]:
        with self._lock:
            try:
                r = self._repo(repo)
            except NameUnknownError as exc:
                return _error_iter(exc)
            names = sorted(name for name in r.tags if name > start_after)
        return iter(names)

    def referrers(
        self, repo: str, digest: str, artifact_type: str = ""
    ) -> Iterator[Descriptor]:
        with self._lock:
            try:
                r = self._repo(repo)
            except NameUnknownError as exc:
                return _error_iter(exc)
            found = [b.descriptor() for b in r.manifests.values() if b.subject == digest]
        found.sort(key=lambda d: d.digest)
        return iter(found)