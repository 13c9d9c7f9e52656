"""
Module path and version validation.

Mirrors the Go module path grammar so that nothing read out of a binary
reaches the go command line unless it is a well-formed module reference.
"""

from __future__ import annotations

import re

from .errors import InvalidModuleReference


LATEST = "latest"

_PATH_ELEMENT_CHARS = re.compile(r"^[A-Za-z0-9\-._~]+$")
_FIRST_ELEMENT_CHARS = re.compile(r"^[a-z0-9\-.]+$")
_MAJOR_SUFFIX = re.compile(r"^v(\d+)$")
_SEMVER = re.compile(
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+([0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)

_WINDOWS_RESERVED = {"CON", "PRN", "AUX", "NUL"} | {f"COM{i}" for i in range(1, 10)} | {f"LPT{i}" for i in range(1, 10)}


def _check_element(path: str, elem: str) -> None:
    if not elem:
        raise InvalidModuleReference(path, "empty path element")
    if elem.strip(".") == "":
        raise InvalidModuleReference(path, f"invalid path element {elem!r}")
    if elem.startswith("."):
        raise InvalidModuleReference(path, "leading dot in path element")
    if elem.endswith("."):
        raise InvalidModuleReference(path, "trailing dot in path element")
    if not _PATH_ELEMENT_CHARS.match(elem):
        bad = next(c for c in elem if not _PATH_ELEMENT_CHARS.match(c))
        raise InvalidModuleReference(path, f"invalid char {bad!r}")
    if elem.split(".", 1)[0].upper() in _WINDOWS_RESERVED:
        raise InvalidModuleReference(path, f"{elem!r} disallowed as path element component on Windows")


def check_path(path: str) -> None:
    """
    Check that path is a valid module (or package) path.

    Raises:
        InvalidModuleReference: Describing the first violation found
    """
    if not path:
        raise InvalidModuleReference(path, "empty string")
    if path.startswith("-"):
        raise InvalidModuleReference(path, "leading dash")
    if path.startswith("/"):
        raise InvalidModuleReference(path, "leading slash")
    if "//" in path:
        raise InvalidModuleReference(path, "double slash")
    if path.endswith("/"):
        raise InvalidModuleReference(path, "trailing slash")
    if not path.isascii():
        raise InvalidModuleReference(path, "non-ASCII character")

    elements = path.split("/")
    for elem in elements:
        _check_element(path, elem)

    first = elements[0]
    if "." not in first:
        raise InvalidModuleReference(path, "missing dot in first path element")
    if not _FIRST_ELEMENT_CHARS.match(first):
        raise InvalidModuleReference(path, "invalid char in first path element")

    match = _MAJOR_SUFFIX.match(elements[-1]) if len(elements) > 1 else None
    if match:
        major = match.group(1)
        if major in ("0", "1") or major.startswith("0"):
            raise InvalidModuleReference(path, f"invalid major version suffix /v{major}")


def check_version(version: str) -> None:
    """
    Check that version is "latest" or a canonical semantic version.

    Raises:
        InvalidModuleReference: If the version cannot be passed to go install
    """
    if version == LATEST:
        return
    if not version:
        raise InvalidModuleReference(version, "empty version")
    if version == "(devel)":
        raise InvalidModuleReference(version, "binary was not built from a versioned module")
    if not _SEMVER.match(version):
        raise InvalidModuleReference(version, "not a semantic version")


def _escape(value: str) -> str:
    escaped = []
    for c in value:
        if c == "!":
            raise InvalidModuleReference(value, "disallowed character '!'")
        if "A" <= c <= "Z":
            escaped.append("!" + c.lower())
        else:
            escaped.append(c)
    return "".join(escaped)


def escape_path(path: str) -> str:
    """Validate path and return its case-encoded form (upper -> !lower)."""
    check_path(path)
    return _escape(path)


def escape_version(version: str) -> str:
    """Validate version and return its case-encoded form."""
    check_version(version)
    return _escape(version)
