"""In-memory blob readers and upload buffers."""

from __future__ import annotations

import io
import json
import secrets
import threading
from typing import Callable, Optional

from ocireg.core import (
    Descriptor,
    DigestInvalidError,
    RangeInvalidError,
    RegistryError,
    digest_from_bytes,
)

OCTET_STREAM = "application/octet-stream"
_CHUNK_SIZE = 8 * 1024


def _new_upload_id() -> str:
    return secrets.token_hex(32)


def _quote_bytes(data: bytes) -> str:
    return json.dumps(data.decode("utf-8", "backslashreplace"), ensure_ascii=False)


class BytesReader(io.RawIOBase):
    """A readable blob over a fixed byte string, carrying its descriptor."""

    def __init__(self, data: bytes, desc: Descriptor) -> None:
        super().__init__()
        self._stream = io.BytesIO(bytes(data))
        self._desc = desc

    def descriptor(self) -> Descriptor:
        """Return the descriptor the reader was created with."""
        return self._desc

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything left if size is negative."""
        if size is None:
            size = -1
        return self._stream.read(size)

    def readinto(self, buffer) -> int:
        return self._stream.readinto(buffer)

    def close(self) -> None:
        super().close()


class Buffer:
    """An in-memory blob upload.

    ``commit`` is called with the buffer once :meth:`commit` has checked
    the digest. Methods may be called from several threads at once.
    """

    def __init__(
        self,
        commit: Callable[["Buffer"], None],
        upload_id: str = "",
    ) -> None:
        self._commit = commit
        self._lock = threading.Lock()
        self._buf = bytearray()
        self._check_start_offset = 0
        self._id = upload_id or _new_upload_id()
        self._committed = False
        self._closed = False
        self._desc: Optional[Descriptor] = None
        self._commit_err: Optional[Exception] = None

    def __enter__(self) -> "Buffer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _resume_at(self, offset: int) -> None:
        """Require the next write to start at ``offset``."""
        with self._lock:
            self._check_start_offset = offset

    @property
    def closed(self) -> bool:
        """Whether :meth:`close` has been called."""
        with self._lock:
            return self._closed

    def cancel(self) -> None:
        """Cancel the upload; a later commit fails."""
        with self._lock:
            self._commit_err = RegistryError("upload canceled")

    def close(self) -> None:
        """Mark the buffer closed; the data stays available and the upload can resume."""
        with self._lock:
            self._closed = True

    def size(self) -> int:
        """Return the number of bytes written so far."""
        with self._lock:
            return len(self._buf)

    def chunk_size(self) -> int:
        """Return the preferred write size."""
        return _CHUNK_SIZE

    def get_blob(self) -> tuple[Descriptor, bytes]:
        """Return the committed descriptor and data.

        Raises if the data has not been committed or committing failed.
        """
        with self._lock:
            if not self._committed:
                raise RegistryError("blob not committed")
            if self._commit_err is not None:
                raise self._commit_err
            assert self._desc is not None
            return self._desc, bytes(self._buf)

    def write(self, data: bytes) -> int:
        """Append ``data`` to the blob, returning the number of bytes written."""
        with self._lock:
            offset = self._check_start_offset
            if offset != -1:
                if len(self._buf) != offset:
                    raise RangeInvalidError(
                        prefix=(
                            f"invalid offset {offset} in resumed upload "
                            f"(actual offset {len(self._buf)})"
                        )
                    )
                self._check_start_offset = -1
            self._buf += data
            return len(data)

    def id(self) -> str:
        """Return the upload identifier."""
        return self._id

    def commit(self, digest: str) -> Descriptor:
        """Check the data against ``digest`` and hand the buffer to the commit function."""
        self._check_commit(digest)
        try:
            self._commit(self)
        except Exception as exc:
            with self._lock:
                self._commit_err = exc
            raise
        return Descriptor(media_type=OCTET_STREAM, size=len(self._buf), digest=digest)

    def _check_commit(self, digest: str) -> None:
        with self._lock:
            if self._commit_err is not None:
                raise self._commit_err
            data = bytes(self._buf)
            if digest_from_bytes(data) != digest:
                err = DigestInvalidError(
                    prefix=f"digest mismatch (sha256({_quote_bytes(data)}) != {digest})"
                )
                self._commit_err = err
                raise err
            self._desc = Descriptor(
                media_type=OCTET_STREAM, digest=digest, size=len(data)
            )
            self._committed = True