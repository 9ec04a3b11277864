# ocireg

A pure-Python library for working with OCI (container image) registry
content. It has no third-party dependencies.

## What is in it

- **`ocireg.core`** – the shared pieces:
  - `Descriptor`, a frozen dataclass with `media_type`, `digest`, `size`,
    `urls`, `annotations`, `data`, `platform` and `artifact_type`, plus
    `Descriptor.from_dict()` / `to_dict()` for the JSON object form;
  - `digest_from_bytes()` (sha256 digest of some bytes),
    `validate_digest()` and `check_descriptor()`, which raise `ValueError`
    on a malformed digest or a descriptor that does not match its data;
  - the error classes, all subclasses of `RegistryError`: `DeniedError`,
    `NameUnknownError`, `NameInvalidError`, `BlobUnknownError`,
    `ManifestUnknownError`, `DigestInvalidError`, `RangeInvalidError` and
    `UnsupportedError`;
  - `Registry`, a base class in which every operation raises
    `UnsupportedError` (listing operations return iterators that raise
    when iterated). Implementations and wrappers override what they provide.
- **`ocireg.memory`** – `MemoryRegistry`, a thread-safe registry holding
  blobs, manifests and tags per repository in memory. `Config(immutable_tags=True)`
  forbids moving or deleting tags and deleting any blob or manifest that a
  tag refers to, directly or through other manifests. Pushed image
  manifests and image indexes are checked: the blobs and manifests they
  refer to must already be in the repository (a missing subject is allowed).
- **`ocireg.blob`** – `BytesReader`, the readable object returned by the
  `get_*` operations (its `descriptor()` gives the content's descriptor),
  and `Buffer`, the chunked-upload object returned by `push_blob_chunked`
  and `push_blob_chunked_resume` (`write`, `commit`, `cancel`, `id`, `size`).
- **`ocireg.manifest`** – `manifest_references()`, which yields a
  `DescInfo` (name, `RefKind`, descriptor) for each reference in an OCI
  image manifest or image index.
- **`ocireg.reference`** – `parse()` and `parse_relative()` for references
  of the form `[HOST[:PORT]/]NAME[:TAG][@DIGEST]`, returning a `Reference`
  whose `str()` gives the reference back; and `is_valid_host`,
  `is_valid_repository`, `is_valid_tag`, `is_valid_digest`. Malformed
  references raise `ValueError`; `parse()` also requires a host.
- **Wrappers** around any `Registry`:
  - `ocireg.readonly.read_only` – reading and listing pass through, every
    change raises `UnsupportedError`;
  - `ocireg.sub.sub` – addresses only the repositories under a path prefix
    (with prefix `"foo"`, `"foo/a/b"` appears as `"a/b"` and `"foobie"` is
    left out);
  - `ocireg.immutable.immutable` – new content may be added, but deletions
    and pushing a tag to different content raise `DeniedError`.

## Installation

```
pip install .
```

## Example

```python
import json

from ocireg.core import Descriptor, digest_from_bytes
from ocireg.memory import Config, MemoryRegistry
from ocireg.reference import parse

registry = MemoryRegistry(Config())

data = b"hello"
desc = Descriptor(
    media_type="application/octet-stream",
    digest=digest_from_bytes(data),
    size=len(data),
)
registry.push_blob("foo/bar", desc, data)

reader = registry.get_blob("foo/bar", desc.digest)
assert reader.read(-1) == b"hello"

# A manifest referring to an already pushed config blob.
config = b"{}"
config_desc = Descriptor(
    media_type="application/vnd.oci.image.config.v1+json",
    digest=digest_from_bytes(config),
    size=len(config),
)
registry.push_blob("foo/bar", config_desc, config)
manifest = json.dumps({
    "schemaVersion": 2,
    "mediaType": "application/vnd.oci.image.manifest.v1+json",
    "config": config_desc.to_dict(),
    "layers": [desc.to_dict()],
}).encode()
registry.push_manifest(
    "foo/bar", "v1", manifest, "application/vnd.oci.image.manifest.v1+json"
)

print(list(registry.repositories("")))   # ['foo/bar']
print(list(registry.tags("foo/bar", "")))  # ['v1']

ref = parse("registry.example.com:5000/foo/bar:v1")
print(ref.host, ref.repository, ref.tag)
```

Chunked upload:

```python
upload = registry.push_blob_chunked("foo/bar", 0)
upload.write(b"some ")
upload.write(b"data")
upload.commit(digest_from_bytes(b"some data"))
```

Wrapping a registry:

```python
from ocireg.readonly import read_only
from ocireg.sub import sub

view = read_only(sub(registry, "foo"))
print(list(view.repositories("")))       # ['bar']
```

## What it does not do

- It has no network side: there is no HTTP server exposing a registry and
  no client for talking to a remote one.
- `MemoryRegistry` keeps everything in process memory; nothing is stored
  on disk.
- Only OCI image manifests and image indexes are inspected for references;
  manifests of other media types are stored without checks on what they
  refer to, and `referrers` does not filter by artifact type.
- There is no per-repository access-control wrapper.

## Running the tests

```
pip install .[test]
pytest
```