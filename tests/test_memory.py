import io
import json

import pytest

from ocireg.core import (
    BlobUnknownError,
    DeniedError,
    Descriptor,
    ManifestUnknownError,
    NameInvalidError,
    NameUnknownError,
    RangeInvalidError,
    RegistryError,
    digest_from_bytes,
)
from ocireg.manifest import MEDIA_TYPE_IMAGE_INDEX, MEDIA_TYPE_IMAGE_MANIFEST
from ocireg.memory import Config, MemoryRegistry

MT = MEDIA_TYPE_IMAGE_MANIFEST
DENIED = "denied: requested access to the resource is denied"


def push_blob(r, repo, content):
    data = content.encode()
    desc = Descriptor(
        media_type="application/octet-stream",
        digest=digest_from_bytes(data),
        size=len(data),
    )
    return r.push_blob(repo, desc, data)


def stray(content, media_type="application/something"):
    data = content.encode()
    return Descriptor(media_type=media_type, digest=digest_from_bytes(data), size=len(data))


def manifest_bytes(config, layers=(), subject=None, annotations=None):
    obj = {
        "schemaVersion": 2,
        "mediaType": MT,
        "config": config.to_dict(),
        "layers": [layer.to_dict() for layer in layers],
    }
    if subject is not None:
        obj["subject"] = subject.to_dict()
    if annotations:
        obj["annotations"] = annotations
    return json.dumps(obj).encode()


def index_bytes(manifests=(), subject=None):
    obj = {
        "schemaVersion": 2,
        "mediaType": MEDIA_TYPE_IMAGE_INDEX,
        "manifests": [m.to_dict() for m in manifests],
    }
    if subject is not None:
        obj["subject"] = subject.to_dict()
    return json.dumps(obj).encode()


def tagged_repo(config=None):
    r = MemoryRegistry(config)
    a = push_blob(r, "test", "{}")
    push_blob(r, "test", "other")
    data = manifest_bytes(a, [a])
    m = r.push_manifest("test", "sometag", data, MT)
    return r, a, m, data


def chained_repo(config=None):
    r = MemoryRegistry(config)
    a = push_blob(r, "test", "{}")
    b = push_blob(r, "test", "other")
    m0 = r.push_manifest("test", "", manifest_bytes(a), MT)
    m1 = r.push_manifest("test", "sometag", manifest_bytes(b, subject=m0), MT)
    return r, a, b, m0, m1


# push_manifest cases


def test_push_manifest_nonexistent_config_reference():
    r = MemoryRegistry()
    data = manifest_bytes(stray("a"))
    with pytest.raises(RegistryError) as exc:
        r.push_manifest("test", "", data, MT)
    assert str(exc.value) == "invalid manifest: blob for config not found"


def test_push_manifest_nonexistent_layer_reference():
    r = MemoryRegistry()
    a = push_blob(r, "test", "{}")
    data = manifest_bytes(a, [stray("b")])
    with pytest.raises(RegistryError) as exc:
        r.push_manifest("test", "", data, MT)
    assert str(exc.value) == "invalid manifest: blob for layers[0] not found"


def test_push_manifest_nonexistent_subject_reference_allowed():
    r = MemoryRegistry()
    a = push_blob(r, "test", "{}")
    data = manifest_bytes(a, subject=stray("b"))
    desc = r.push_manifest("test", "", data, MT)
    assert desc.digest == digest_from_bytes(data)
    assert r.resolve_manifest("test", desc.digest).size == len(data)


def test_push_index_nonexistent_manifest_reference():
    r = MemoryRegistry()
    data = index_bytes([stray("a", MT)])
    with pytest.raises(RegistryError) as exc:
        r.push_manifest("test", "", data, MEDIA_TYPE_IMAGE_INDEX)
    assert str(exc.value) == "invalid manifest: manifest for manifests[0] not found"


def test_push_index_nonexistent_subject_allowed():
    r = MemoryRegistry()
    data = index_bytes(subject=stray("b"))
    desc = r.push_manifest("test", "", data, MEDIA_TYPE_IMAGE_INDEX)
    assert desc.media_type == MEDIA_TYPE_IMAGE_INDEX
    assert desc.size == len(data)


def test_cannot_overwrite_tag_when_immutable():
    r, a, _, _ = tagged_repo(Config(immutable_tags=True))
    data = manifest_bytes(a, [a], annotations={"different": "thing"})
    with pytest.raises(DeniedError) as exc:
        r.push_manifest("test", "sometag", data, MT)
    assert str(exc.value) == f"{DENIED}: cannot overwrite tag"


def test_can_rewrite_tag_with_identical_contents_when_immutable():
    r, _, m, data = tagged_repo(Config(immutable_tags=True))
    assert r.push_manifest("test", "sometag", data, MT) == m


def test_cannot_rewrite_tag_with_different_media_type_when_immutable():
    r, _, _, data = tagged_repo(Config(immutable_tags=True))
    with pytest.raises(DeniedError) as exc:
        r.push_manifest(
            "test", "sometag", data, "application/vnd.docker.container.image.v1+json"
        )
    assert str(exc.value) == f"{DENIED}: mismatched media type"


def test_can_overwrite_tag_when_not_immutable():
    r, a, m, _ = tagged_repo()
    data = manifest_bytes(a, [a], annotations={"different": "thing"})
    desc = r.push_manifest("test", "sometag", data, MT)
    assert desc.digest != m.digest
    assert r.resolve_tag("test", "sometag") == desc


def test_push_manifest_invalid_tag():
    r, a, _, _ = tagged_repo()
    with pytest.raises(RegistryError, match="invalid tag"):
        r.push_manifest("test", "-bad", manifest_bytes(a), MT)


def test_push_manifest_invalid_repo_name():
    r = MemoryRegistry()
    with pytest.raises(NameInvalidError):
        r.push_manifest("Bad Name", "", b"{}", "application/json")


# delete_blob cases


def test_delete_blob_nonexistent_repo():
    r = MemoryRegistry()
    dig = digest_from_bytes(b"blshdfsvg")
    with pytest.raises(NameUnknownError) as exc:
        r.delete_blob("test", dig)
    assert str(exc.value) == "name unknown: repository name not known to registry"
    with pytest.raises(RegistryError):
        r.resolve_blob("test", dig)


def test_delete_blob_nonexistent_blob():
    r = MemoryRegistry()
    push_blob(r, "test", "{}")
    dig = digest_from_bytes(b"blshdfsvg")
    with pytest.raises(BlobUnknownError) as exc:
        r.delete_blob("test", dig)
    assert str(exc.value) == "blob unknown: blob unknown to registry"
    with pytest.raises(BlobUnknownError):
        r.resolve_blob("test", dig)


def test_delete_tagged_blob_with_immutable_tags():
    r, a, _, _ = tagged_repo(Config(immutable_tags=True))
    with pytest.raises(DeniedError) as exc:
        r.delete_blob("test", a.digest)
    assert str(exc.value) == f"{DENIED}: deletion of tagged blob not permitted"
    assert r.resolve_blob("test", a.digest).digest == a.digest


def test_delete_indirectly_tagged_blob_with_immutable_tags():
    r, a, _, _, _ = chained_repo(Config(immutable_tags=True))
    with pytest.raises(DeniedError) as exc:
        r.delete_blob("test", a.digest)
    assert str(exc.value) == f"{DENIED}: deletion of tagged blob not permitted"


def test_delete_blob_success():
    r, a, _, _ = tagged_repo()
    r.delete_blob("test", a.digest)
    with pytest.raises(BlobUnknownError):
        r.resolve_blob("test", a.digest)


# delete_manifest cases


def test_delete_manifest_nonexistent_repo():
    r = MemoryRegistry()
    dig = digest_from_bytes(b"blshdfsvg")
    with pytest.raises(NameUnknownError) as exc:
        r.delete_manifest("test", dig)
    assert str(exc.value) == "name unknown: repository name not known to registry"
    with pytest.raises(RegistryError):
        r.resolve_manifest("test", dig)


def test_delete_manifest_nonexistent_manifest():
    r = MemoryRegistry()
    push_blob(r, "test", "{}")
    dig = digest_from_bytes(b"blshdfsvg")
    with pytest.raises(ManifestUnknownError) as exc:
        r.delete_manifest("test", dig)
    assert str(exc.value) == "manifest unknown: manifest unknown to registry"


def test_delete_tagged_manifest_with_immutable_tags():
    r = MemoryRegistry(Config(immutable_tags=True))
    a = push_blob(r, "test", "{}")
    m = r.push_manifest("test", "sometag", manifest_bytes(a), MT)
    with pytest.raises(DeniedError) as exc:
        r.delete_manifest("test", m.digest)
    assert str(exc.value) == f"{DENIED}: deletion of tagged manifest not permitted"
    assert r.resolve_manifest("test", m.digest) == m


def test_delete_indirectly_tagged_manifest_with_immutable_tags():
    r, _, _, m0, _ = chained_repo(Config(immutable_tags=True))
    with pytest.raises(DeniedError) as exc:
        r.delete_manifest("test", m0.digest)
    assert str(exc.value) == f"{DENIED}: deletion of tagged manifest not permitted"


def test_delete_manifest_success():
    r, _, _, m0, _ = chained_repo()
    r.delete_manifest("test", m0.digest)
    with pytest.raises(ManifestUnknownError):
        r.resolve_manifest("test", m0.digest)


# delete_tag cases


def test_delete_tag_nonexistent_repo():
    r = MemoryRegistry()
    with pytest.raises(NameUnknownError) as exc:
        r.delete_tag("test", "foo")
    assert str(exc.value) == "name unknown: repository name not known to registry"


def test_delete_tag_nonexistent_tag():
    r = MemoryRegistry()
    push_blob(r, "test", "{}")
    with pytest.raises(ManifestUnknownError) as exc:
        r.delete_tag("test", "foo")
    assert str(exc.value) == (
        "manifest unknown: manifest unknown to registry: tag does not exist"
    )


def test_delete_tag_with_immutable_tags():
    r = MemoryRegistry(Config(immutable_tags=True))
    a = push_blob(r, "test", "{}")
    m = r.push_manifest("test", "sometag", manifest_bytes(a), MT)
    with pytest.raises(DeniedError) as exc:
        r.delete_tag("test", "sometag")
    assert str(exc.value) == f"{DENIED}: tag deletion not permitted"
    assert r.resolve_tag("test", "sometag") == m


def test_delete_tag_success_keeps_manifest():
    r, _, _, _, m1 = chained_repo()
    r.delete_tag("test", "sometag")
    with pytest.raises(ManifestUnknownError):
        r.resolve_tag("test", "sometag")
    assert r.resolve_manifest("test", m1.digest) == m1


# reading


def test_get_blob_returns_content_and_descriptor():
    r = MemoryRegistry()
    desc = push_blob(r, "repo", "hello")
    reader = r.get_blob("repo", desc.digest)
    assert reader.read() == b"hello"
    assert reader.descriptor() == desc


def test_get_blob_range():
    r = MemoryRegistry()
    desc = push_blob(r, "repo", "hello world")
    assert r.get_blob_range("repo", desc.digest, 0, 5).read() == b"hello"
    assert r.get_blob_range("repo", desc.digest, 6, -1).read() == b"world"
    assert r.get_blob_range("repo", desc.digest, 6, 1000).read() == b"world"


def test_get_blob_range_invalid():
    r = MemoryRegistry()
    desc = push_blob(r, "repo", "hello world")
    with pytest.raises(RegistryError, match=r"invalid range \[5, 2\]; have \[0, 11\]"):
        r.get_blob_range("repo", desc.digest, 5, 2)


def test_get_tag_and_manifest():
    r, _, m, data = tagged_repo()
    assert r.get_tag("test", "sometag").read() == data
    assert r.get_manifest("test", m.digest).read() == data
    with pytest.raises(ManifestUnknownError):
        r.get_tag("test", "missing")


def test_get_blob_unknown_repo():
    r = MemoryRegistry()
    with pytest.raises(NameUnknownError):
        r.get_blob("nope", digest_from_bytes(b"x"))


# writing


def test_push_blob_from_file_object():
    r = MemoryRegistry()
    data = b"file data"
    desc = Descriptor(media_type="text/plain", digest=digest_from_bytes(data), size=len(data))
    assert r.push_blob("repo", desc, io.BytesIO(data)) == desc
    assert r.resolve_blob("repo", desc.digest).media_type == "text/plain"


def test_push_blob_size_mismatch():
    r = MemoryRegistry()
    data = b"abc"
    desc = Descriptor(media_type="text/plain", digest=digest_from_bytes(data), size=4)
    with pytest.raises(RegistryError, match="invalid descriptor: size mismatch"):
        r.push_blob("repo", desc, data)


def test_chunked_upload_commit():
    r = MemoryRegistry()
    w = r.push_blob_chunked("repo", 0)
    w.write(b"hel")
    w.write(b"lo")
    dig = digest_from_bytes(b"hello")
    desc = w.commit(dig)
    assert desc.size == 5
    assert r.get_blob("repo", dig).read() == b"hello"


def test_chunked_upload_resume():
    r = MemoryRegistry()
    w = r.push_blob_chunked("repo", 0)
    w.write(b"abc")
    w2 = r.push_blob_chunked_resume("repo", w.id(), 3, 0)
    assert w2 is w
    w2.write(b"def")
    assert w2.size() == 6


def test_chunked_upload_resume_bad_offset():
    r = MemoryRegistry()
    w = r.push_blob_chunked("repo", 0)
    w.write(b"abc")
    w2 = r.push_blob_chunked_resume("repo", w.id(), 2, 0)
    with pytest.raises(RangeInvalidError):
        w2.write(b"x")


def test_mount_blob():
    r = MemoryRegistry()
    desc = push_blob(r, "src", "shared")
    assert r.mount_blob("src", "dst", desc.digest).digest == desc.digest
    assert r.get_blob("dst", desc.digest).read() == b"shared"
    with pytest.raises(BlobUnknownError):
        r.mount_blob("src", "dst", digest_from_bytes(b"missing"))


# listing


def test_repositories_sorted_and_start_after():
    r = MemoryRegistry()
    for name in ["c", "a/b", "b", "a"]:
        push_blob(r, name, "x")
    assert list(r.repositories("")) == ["a", "a/b", "b", "c"]
    assert list(r.repositories("a/b")) == ["b", "c"]


def test_tags_listing():
    r = MemoryRegistry()
    a = push_blob(r, "test", "{}")
    data = manifest_bytes(a)
    for tag in ["v2", "v1", "latest"]:
        r.push_manifest("test", tag, data, MT)
    assert list(r.tags("test")) == ["latest", "v1", "v2"]
    assert list(r.tags("test", "v1")) == ["v2"]


def test_tags_unknown_repo_raises_on_iteration():
    r = MemoryRegistry()
    it = r.tags("nope")
    assert iter(it) is it
    with pytest.raises(NameUnknownError) as exc:
        list(it)
    assert str(exc.value) == "name unknown: repository name not known to registry"


def test_referrers():
    r = MemoryRegistry()
    a = push_blob(r, "test", "{}")
    m0 = r.push_manifest("test", "", manifest_bytes(a), MT)
    refs = {
        r.push_manifest(
            "test", "", manifest_bytes(a, subject=m0, annotations={"n": str(i)}), MT
        )
        for i in range(2)
    }
    got = list(r.referrers("test", m0.digest))
    assert set(got) == refs
    assert [d.digest for d in got] == sorted(d.digest for d in got)
    assert list(r.referrers("test", a.digest)) == []
    with pytest.raises(NameUnknownError):
        list(r.referrers("nope", m0.digest))