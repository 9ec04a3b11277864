"""Iteration over the descriptors a manifest refers to."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from ocireg.core import Descriptor

MEDIA_TYPE_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"


class RefKind(enum.Enum):
    """What a reference inside a manifest points at."""

    SUBJECT_MANIFEST = 0
    BLOB = 1
    MANIFEST = 2


@dataclass(frozen=True)
class DescInfo:
    """A named reference found inside a manifest."""

    name: str
    kind: RefKind
    desc: Descriptor


def _descriptors(value: Any) -> list[Descriptor]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a list of descriptors")
    return [Descriptor.from_dict(item) for item in value]


def _subject(obj: dict) -> Descriptor | None:
    raw = obj.get("subject")
    return None if raw is None else Descriptor.from_dict(raw)


def _image_refs(obj: dict) -> list[DescInfo]:
    layers = _descriptors(obj.get("layers"))
    raw_config = obj.get("config")
    config = Descriptor() if raw_config is None else Descriptor.from_dict(raw_config)
    subject = _subject(obj)
    refs = [
        DescInfo(f"layers[{i}]", RefKind.BLOB, layer) for i, layer in enumerate(layers)
    ]
    refs.append(DescInfo("config", RefKind.BLOB, config))
    if subject is not None:
        refs.append(DescInfo("subject", RefKind.SUBJECT_MANIFEST, subject))
    return refs


def _index_refs(obj: dict) -> list[DescInfo]:
    manifests = _descriptors(obj.get("manifests"))
    subject = _subject(obj)
    refs = [
        DescInfo(f"manifests[{i}]", RefKind.MANIFEST, m)
        for i, m in enumerate(manifests)
    ]
    if subject is not None:
        refs.append(DescInfo("subject", RefKind.SUBJECT_MANIFEST, subject))
    return refs


_PARSERS: dict[str, tuple[str, Callable[[dict], list[DescInfo]]]] = {
    MEDIA_TYPE_IMAGE_MANIFEST: ("image manifest", _image_refs),
    MEDIA_TYPE_IMAGE_INDEX: ("image index", _index_refs),
}


def manifest_references(media_type: str, data: bytes) -> Iterator[DescInfo]:
    """Return an iterator over the direct references in a manifest.

    Manifests of unknown media type have no references. Raises ValueError
    if the data cannot be decoded as the given kind of manifest.
    """
    entry = _PARSERS.get(media_type)
    if entry is None:
        return iter(())
    kind_name, parser = entry
    try:
        obj = json.loads(data)
        if obj is None:
            obj = {}
        if not isinstance(obj, dict):
            raise ValueError(f"expected an object, not {type(obj).__name__}")
        refs = parser(obj)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"cannot unmarshal into {kind_name}: {exc}") from None
    return iter(refs)