"""
Version policy deciding whether a binary is rebuilt or updated.

Compiler versions are Go toolchain releases ("1.21", "1.22rc1"). They are
rewritten into semantic versions ("1.21.0", "1.22.0-rc1") and compared
with semver, the same way module versions (including pseudo-versions)
are. Build metadata never affects the order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import semver


# Go release labels carry the pre-release tag without a separator: go1.22rc1
GO_PRERELEASE_PATTERN = re.compile(r"^(\d+(?:\.\d+){0,2})(alpha|beta|rc)(\d+)$")


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a version policy check.

    Attributes:
        act: Whether the binary should be rebuilt/updated
        reason: Human-readable explanation
        version: Version to install when acting
    """
    act: bool
    reason: str
    version: str = ""


def parse_go_version(value: str) -> semver.Version:
    """Parse a Go toolchain version ("go1.21", "1.22rc1", "1.22.0+build.5").

    Raises:
        ValueError: If the version is not recognizable
    """
    value = value.strip()
    if value.startswith("go"):
        value = value[2:]
    elif value.startswith("v"):
        value = value[1:]
    normalized = GO_PRERELEASE_PATTERN.sub(r"\1-\2\3", value)
    try:
        return semver.Version.parse(normalized, optional_minor_and_patch=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"invalid Go version: {value!r}") from e


def compare_go_versions(v1: str, v2: str) -> int:
    """
    Compare two Go toolchain versions by semantic version precedence.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2

    Raises:
        ValueError: If either version cannot be parsed
    """
    return parse_go_version(v1).compare(parse_go_version(v2))


def parse_module_version(value: str) -> semver.Version:
    """Parse a module version ("v1.2.3", "v0.0.0-2023...-abcdef", "v2.0.0+incompatible").

    Raises:
        ValueError: If the version is not a semantic version
    """
    value = value.strip()
    if value.startswith("v"):
        value = value[1:]
    return semver.Version.parse(value, optional_minor_and_patch=True)


def compare_module_versions(v1: str, v2: str) -> int:
    """
    Compare two module versions by semantic version precedence.

    Build metadata is ignored, so v2.0.0+incompatible == v2.0.0.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2

    Raises:
        ValueError: If either version cannot be parsed
    """
    return parse_module_version(v1).compare(parse_module_version(v2))


def decide_reinstall(
    build_compiler_version: str,
    reference_compiler_version: str,
    force: bool = False,
) -> Decision:
    """
    Decide whether a binary must be rebuilt with the reference compiler.

    Args:
        build_compiler_version: Compiler version the binary was built with
        reference_compiler_version: Currently installed compiler version
        force: Rebuild regardless of versions

    Returns:
        Decision to act when the binary is older than the reference or forced

    Raises:
        ValueError: If a version cannot be parsed and force is not set
    """
    if force:
        return Decision(True, "forced reinstall")

    if compare_go_versions(build_compiler_version, reference_compiler_version) < 0:
        return Decision(
            True,
            f"built with Go {build_compiler_version}, older than Go {reference_compiler_version}",
        )
    return Decision(
        False,
        f"built with Go {build_compiler_version}, equal to or newer than "
        f"Go {reference_compiler_version} and not forced",
    )


def decide_update(current_module_version: str, latest_module_version: str) -> Decision:
    """
    Decide whether a binary's module has a newer published version.

    Args:
        current_module_version: Module version the binary was built from
        latest_module_version: Newest published module version

    Returns:
        Decision to act only when current < latest

    Raises:
        ValueError: If a version cannot be parsed
    """
    if compare_module_versions(current_module_version, latest_module_version) < 0:
        return Decision(
            True,
            f"{current_module_version} -> {latest_module_version}",
            latest_module_version,
        )
    return Decision(
        False,
        f"version {current_module_version} is up to date (latest {latest_module_version})",
    )
