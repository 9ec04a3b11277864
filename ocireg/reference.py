"""Parsing and validation of registry references such as host/repo:tag@digest."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from ocireg.core import validate_digest

_ALPHANUMERIC = r"[a-z0-9]+"
_SEPARATOR = r"(?:[._]|__|[-]+)"
_DOMAIN_NAME_COMPONENT = r"(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)"
_IPV6_ADDRESS = r"(?:\[[a-fA-F0-9:]+\])"
_PORT = r"[0-9]+"
# Domain names without dots are excluded unless they carry a port, so that
# a leading host can be told apart from a repository path component.
_DOMAIN_NAME = rf"(?:{_DOMAIN_NAME_COMPONENT}(?:\.{_DOMAIN_NAME_COMPONENT})+)"
_HOST = rf"(?:{_DOMAIN_NAME}|{_IPV6_ADDRESS})"
_DOMAIN_AND_PORT = rf"(?:{_HOST}(?::{_PORT})?|{_DOMAIN_NAME_COMPONENT}:{_PORT})"
_PATH_COMPONENT = rf"(?:{_ALPHANUMERIC}(?:{_SEPARATOR}{_ALPHANUMERIC})*)"
_REPO_NAME = rf"{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"

_REFERENCE_RE = re.compile(
    rf"(?:({_DOMAIN_AND_PORT})/)?({_REPO_NAME})(?::([^@]+))?(?:@(.+))?"
)
_HOST_RE = re.compile(_DOMAIN_AND_PORT)
_REPO_RE = re.compile(_REPO_NAME)

MAX_REPOSITORY_LENGTH = 255
MAX_TAG_LENGTH = 128


@dataclass(frozen=True)
class Reference:
    """A reference to an entry in a repository, optionally on a given host."""

    host: str = ""
    repository: str = ""
    tag: str = ""
    digest: str = ""

    def __str__(self) -> str:
        parts = []
        if self.host:
            parts.append(self.host + "/")
        parts.append(self.repository)
        if self.tag:
            parts.append(":" + self.tag)
        if self.digest:
            parts.append("@" + self.digest)
        return "".join(parts)


def _quote(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


def _quote_char(c: str) -> str:
    if c in ("'", "\\"):
        return f"'\\{c}'"
    return f"'{c}'"


def _is_word(c: str) -> bool:
    return c == "_" or "a" <= c <= "z" or "A" <= c <= "Z" or "0" <= c <= "9"


def _check_tag(s: str) -> None:
    if len(s.encode("utf-8")) > MAX_TAG_LENGTH:
        raise ValueError("tag too long")
    if not s:
        raise ValueError("tag is empty")
    if not _is_word(s[0]):
        raise ValueError(f"tag {_quote(s)} does not start with word character")
    for c in s[1:]:
        if not _is_word(c) and c not in ".-":
            raise ValueError(
                f"tag {_quote(s)} contains invalid invalid character {_quote_char(c)}"
            )


def is_valid_host(s: str) -> bool:
    """Report whether s is a valid host (or host:port) part of a reference."""
    return _HOST_RE.fullmatch(s) is not None


def is_valid_repository(s: str) -> bool:
    """Report whether s is a valid repository part of a reference."""
    return _REPO_RE.fullmatch(s) is not None


def is_valid_tag(s: str) -> bool:
    """Report whether s is a valid tag."""
    try:
        _check_tag(s)
    except ValueError:
        return False
    return True


def is_valid_digest(d: str) -> bool:
    """Report whether the digest d is well formed."""
    try:
        validate_digest(d)
    except ValueError:
        return False
    return True


def parse_relative(ref_str: str) -> Reference:
    """Parse [HOST[:PORT]/]NAME[:TAG][@DIGEST]; the host may be absent.

    Raises ValueError for a malformed reference.
    """
    m = _REFERENCE_RE.fullmatch(ref_str)
    if m is None:
        raise ValueError(f"invalid reference syntax ({_quote(ref_str)})")
    host, repository, tag, digest = (g or "" for g in m.groups())
    if digest:
        try:
            validate_digest(digest)
        except ValueError as exc:
            raise ValueError(f"invalid digest {_quote(digest)}: {exc}") from None
    if tag:
        _check_tag(tag)
    if len(repository) > MAX_REPOSITORY_LENGTH:
        raise ValueError("repository name too long")
    return Reference(host=host, repository=repository, tag=tag, digest=digest)


def parse(ref_str: str) -> Reference:
    """Parse a reference that must include a host component.

    There is no default registry: a bare repository name is an error.
    """
    ref = parse_relative(ref_str)
    if not ref.host:
        raise ValueError("reference does not contain host name")
    return ref