"""
Build information extraction from Go binaries.

Reads the build-info blob the Go linker embeds in every executable and
returns the compiler version, main package path and module versions the
binary was built from. The artifact is only ever opened for reading.

ELF binaries are parsed with pyelftools; Mach-O, PE and XCOFF binaries
are recognized by their magic number and scanned for the blob.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Iterator, Sequence

from elftools.common.exceptions import ELFError
from elftools.elf.constants import P_FLAGS
from elftools.elf.elffile import ELFFile

from .cancellation import CancellableReader, CancellationToken
from .common import vlog
from .errors import MalformedArtifact, NotReadable


BUILDINFO_MAGIC = b"\xff Go buildinf:"
BUILDINFO_ALIGN = 16
BUILDINFO_HEADER_SIZE = 32

FLAG_ENDIAN_BIG = 0x1
FLAG_VERSION_INLINE = 0x2

# Sentinels framing the module info string (cmd/go/internal/modload)
MODINFO_START = bytes.fromhex("3077af0c9274080241e1c107e6d618e6")
MODINFO_END = bytes.fromhex("f932433186182072008242104116d8f2")

# The linker places the blob at the start of the data segment
ELF_SEARCH_SIZE = 64 * 1024
SCAN_CHUNK_SIZE = 1 << 20

MACHO_MAGICS = (
    b"\xfe\xed\xfa\xce",
    b"\xfe\xed\xfa\xcf",
    b"\xce\xfa\xed\xfe",
    b"\xcf\xfa\xed\xfe",
)
XCOFF_MAGICS = (b"\x01\xdf", b"\x01\xf7")


@dataclass(frozen=True)
class ModuleRef:
    """
    A module recorded in the build info.

    Attributes:
        path: Module path
        version: Module version (may be empty for local replacements)
        sum: go.sum checksum, if recorded
        replace: Replacement module, if the module was replaced
    """
    path: str
    version: str = ""
    sum: str = ""
    replace: ModuleRef | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "version": self.version,
            "sum": self.sum,
            "replace": self.replace.to_dict() if self.replace else None,
        }


@dataclass(frozen=True)
class BuildRecord:
    """
    Build information of one binary.

    Attributes:
        artifact_path: File the record was read from
        compiler_version: Go version without the "go" prefix (e.g. "1.21.0")
        path: Import path of the main package (what go install receives)
        module_path: Path of the main module
        module_version: Version of the main module
        module_sum: go.sum checksum of the main module
        deps: Dependency modules
        settings: Build settings as (key, value) pairs
    """
    artifact_path: str
    compiler_version: str
    path: str
    module_path: str
    module_version: str
    module_sum: str = ""
    deps: tuple[ModuleRef, ...] = ()
    settings: tuple[tuple[str, str], ...] = ()

    def setting(self, key: str) -> str | None:
        """Look up a build setting by key."""
        for name, value in self.settings:
            if name == key:
                return value
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "artifact_path": self.artifact_path,
            "compiler_version": self.compiler_version,
            "path": self.path,
            "module_path": self.module_path,
            "module_version": self.module_version,
            "module_sum": self.module_sum,
            "deps": [d.to_dict() for d in self.deps],
            "settings": dict(self.settings),
        }


def normalize_go_version(raw: str) -> str:
    """Strip the toolchain prefix from a Go version string.

    Args:
        raw: Version as embedded by the toolchain (e.g. "go1.21.0",
            "go1.21.0 X:boringcrypto", "devel go1.22-abcdef")

    Returns:
        Bare version (e.g. "1.21.0")
    """
    version = raw.strip()
    if version.startswith("devel "):
        version = version[len("devel "):]
    version = version.split()[0] if version else ""
    if version.startswith("go"):
        version = version[2:]
    return version


class _Executable:
    """Address space of an executable, as far as build info needs it."""

    def __init__(self, reader: CancellableReader):
        self.reader = reader

    def search_windows(self) -> Iterator[tuple[int, bytes]]:
        """Yield (address, data) windows that may hold the header."""
        raise NotImplementedError

    def read_data(self, addr: int, size: int) -> bytes:
        """Read up to size bytes at virtual address addr."""
        raise NotImplementedError

    supports_pointers = False


class _ElfExecutable(_Executable):
    supports_pointers = True

    def __init__(self, reader: CancellableReader):
        super().__init__(reader)
        self.elf = ELFFile(reader)

    def _load_segments(self):
        return [s for s in self.elf.iter_segments() if s["p_type"] == "PT_LOAD"]

    def search_windows(self) -> Iterator[tuple[int, bytes]]:
        section = self.elf.get_section_by_name(".go.buildinfo")
        if section is not None:
            size = min(section["sh_size"], ELF_SEARCH_SIZE)
            yield section["sh_addr"], self.reader.read_at(section["sh_offset"], size)
            return

        for segment in self._load_segments():
            if segment["p_flags"] & P_FLAGS.PF_W:
                size = min(segment["p_filesz"], ELF_SEARCH_SIZE)
                yield segment["p_vaddr"], self.reader.read_at(segment["p_offset"], size)
                return

    def read_data(self, addr: int, size: int) -> bytes:
        for segment in self._load_segments():
            start = segment["p_vaddr"]
            end = start + segment["p_filesz"]
            if start <= addr < end:
                size = min(size, end - addr)
                return self.reader.read_at(segment["p_offset"] + addr - start, size)
        return b""


class _ScannedExecutable(_Executable):
    """Non-ELF executable searched by file offset; addresses are offsets."""

    def search_windows(self) -> Iterator[tuple[int, bytes]]:
        # Step keeps window starts aligned and overlaps by a header
        step = SCAN_CHUNK_SIZE - BUILDINFO_HEADER_SIZE
        offset = 0
        while True:
            data = self.reader.read_at(offset, SCAN_CHUNK_SIZE)
            if not data:
                return
            yield offset, data
            if len(data) < SCAN_CHUNK_SIZE:
                return
            offset += step

    def read_data(self, addr: int, size: int) -> bytes:
        return self.reader.read_at(addr, size)


def _open_executable(path: str, reader: CancellableReader) -> _Executable:
    magic = reader.read_at(0, 4)
    if magic.startswith(b"\x7fELF"):
        try:
            return _ElfExecutable(reader)
        except ELFError as e:
            raise MalformedArtifact(path, f"invalid ELF file: {e}") from e
    if magic in MACHO_MAGICS or magic.startswith(b"MZ") or magic[:2] in XCOFF_MAGICS:
        return _ScannedExecutable(reader)
    raise MalformedArtifact(path, "unrecognized executable format")


def _find_header(exe: _Executable) -> tuple[int, bytes] | None:
    for addr, data in exe.search_windows():
        start = 0
        while True:
            i = data.find(BUILDINFO_MAGIC, start)
            if i < 0 or len(data) - i < BUILDINFO_HEADER_SIZE:
                break
            if i % BUILDINFO_ALIGN == 0:
                return addr + i, data[i:i + BUILDINFO_HEADER_SIZE]
            start = (i + BUILDINFO_ALIGN - 1) & ~(BUILDINFO_ALIGN - 1)
    return None


def _decode_uvarint(data: bytes) -> tuple[int, int]:
    """Decode an unsigned LEB128 integer; returns (value, bytes consumed)."""
    value = 0
    shift = 0
    for i, byte in enumerate(data[:10]):
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value, i + 1
        shift += 7
    return 0, 0


def _read_inline_string(exe: _Executable, addr: int) -> tuple[bytes, int]:
    length, n = _decode_uvarint(exe.read_data(addr, 10))
    if n == 0:
        return b"", addr
    data = exe.read_data(addr + n, length)
    if len(data) != length:
        return b"", addr
    return data, addr + n + length


def _read_pointer_string(exe: _Executable, ptr_size: int, byteorder: str, addr: int) -> bytes:
    header = exe.read_data(addr, 2 * ptr_size)
    if len(header) != 2 * ptr_size:
        return b""
    data_addr = int.from_bytes(header[:ptr_size], byteorder)
    length = int.from_bytes(header[ptr_size:], byteorder)
    data = exe.read_data(data_addr, length)
    if len(data) != length:
        return b""
    return data


def _read_raw_build_info(path: str, exe: _Executable) -> tuple[str, str]:
    found = _find_header(exe)
    if found is None:
        raise MalformedArtifact(path, "not a Go executable")
    addr, header = found

    ptr_size = header[14]
    flags = header[15]
    if flags & FLAG_VERSION_INLINE:
        version, next_addr = _read_inline_string(exe, addr + BUILDINFO_HEADER_SIZE)
        mod, _ = _read_inline_string(exe, next_addr)
    else:
        if not exe.supports_pointers:
            raise MalformedArtifact(path, "pointer-encoded build info is only supported in ELF binaries")
        if ptr_size not in (4, 8):
            raise MalformedArtifact(path, f"invalid pointer size {ptr_size}")
        byteorder = "big" if flags & FLAG_ENDIAN_BIG else "little"
        version_ptr = int.from_bytes(header[16:16 + ptr_size], byteorder)
        mod_ptr = int.from_bytes(header[16 + ptr_size:16 + 2 * ptr_size], byteorder)
        version = _read_pointer_string(exe, ptr_size, byteorder, version_ptr)
        mod = _read_pointer_string(exe, ptr_size, byteorder, mod_ptr)

    if not version:
        raise MalformedArtifact(path, "not a Go executable")

    # Module info is framed by 16-byte sentinels
    if len(mod) >= 33 and mod[-17:-16] == b"\n":
        mod = mod[16:-16]
    else:
        mod = b""
    return version.decode("utf-8", errors="replace"), mod.decode("utf-8", errors="replace")


def _unquote(value: str) -> str:
    if value.startswith('"'):
        return json.loads(value)
    return value


def _parse_module_line(path: str, fields: Sequence[str]) -> ModuleRef:
    if len(fields) not in (2, 3):
        raise MalformedArtifact(path, f"malformed module line: {' '.join(fields)}")
    return ModuleRef(
        path=fields[0],
        version=fields[1],
        sum=fields[2] if len(fields) == 3 else "",
    )


def parse_mod_info(path: str, compiler_version: str, mod: str) -> BuildRecord:
    """
    Parse the module info text embedded in a binary.

    Args:
        path: Artifact path, for error messages and the record
        compiler_version: Raw toolchain version string
        mod: Module info text with the framing sentinels already removed

    Returns:
        BuildRecord for the binary

    Raises:
        MalformedArtifact: If a line is malformed or a required field is missing
    """
    package_path = ""
    main: ModuleRef | None = None
    deps: list[ModuleRef] = []
    settings: list[tuple[str, str]] = []
    last = "none"

    for line in mod.split("\n"):
        if not line:
            continue
        tag, _, rest = line.partition("\t")
        if tag == "path":
            package_path = rest
        elif tag == "mod":
            main = _parse_module_line(path, rest.split("\t"))
            last = "main"
        elif tag == "dep":
            deps.append(_parse_module_line(path, rest.split("\t")))
            last = "dep"
        elif tag == "=>":
            fields = rest.split("\t")
            replacement = ModuleRef(
                path=fields[0],
                version=fields[1] if len(fields) > 1 else "",
                sum=fields[2] if len(fields) > 2 else "",
            )
            if last == "main" and main is not None:
                main = ModuleRef(main.path, main.version, main.sum, replacement)
            elif last == "dep":
                dep = deps[-1]
                deps[-1] = ModuleRef(dep.path, dep.version, dep.sum, replacement)
            else:
                raise MalformedArtifact(path, "replacement with no module on previous line")
            last = "none"
        elif tag == "build":
            if rest.startswith('"'):
                end = rest.find('"=', 1)
                if end < 0:
                    key, value = "", ""
                else:
                    key, value = rest[:end + 1], rest[end + 2:]
            else:
                key, sep, value = rest.partition("=")
                if not sep:
                    key = ""
            if not key:
                raise MalformedArtifact(path, f"malformed build setting: {rest}")
            try:
                settings.append((_unquote(key), _unquote(value)))
            except ValueError as e:
                raise MalformedArtifact(path, f"malformed build setting: {rest}") from e

    record = BuildRecord(
        artifact_path=path,
        compiler_version=normalize_go_version(compiler_version),
        path=package_path or (main.path if main else ""),
        module_path=main.path if main else "",
        module_version=main.version if main else "",
        module_sum=main.sum if main else "",
        deps=tuple(deps),
        settings=tuple(settings),
    )
    if not record.module_path or not record.module_version:
        raise MalformedArtifact(path, "binary has no main module information")
    if not record.compiler_version:
        raise MalformedArtifact(path, "binary has no compiler version")
    return record


def read_build_info(
    path: str,
    token: CancellationToken | None = None,
    timeout: float | None = None,
    verbose: bool = False,
) -> BuildRecord:
    """
    Read the build information of a Go binary.

    Args:
        path: Path to the binary
        token: Cancellation token checked before every read
        timeout: Optional read deadline in seconds for this binary
        verbose: Enable verbose logging

    Returns:
        BuildRecord for the binary

    Raises:
        NotReadable: If the file cannot be opened or read
        MalformedArtifact: If the file is not a Go binary with module info
        Cancelled: If the token fires or the deadline passes mid-read
    """
    read_token = (token or CancellationToken()).with_timeout(timeout)
    read_token.check()

    try:
        f = open(os.path.normpath(path), "rb")
    except OSError as e:
        raise NotReadable(path, e.strerror or str(e)) from e

    vlog(f"reading build info of ({path})", verbose)
    with f:
        try:
            exe = _open_executable(path, CancellableReader(f, read_token))
            version, mod = _read_raw_build_info(path, exe)
        except ELFError as e:
            raise MalformedArtifact(path, f"invalid ELF file: {e}") from e
        except OSError as e:
            raise NotReadable(path, e.strerror or str(e)) from e

    return parse_mod_info(path, version, mod)


def list_build_info(
    paths: Sequence[str],
    token: CancellationToken | None = None,
    verbose: bool = False,
) -> list[BuildRecord]:
    """
    Read build information for every binary, in order.

    Stops at the first binary that cannot be read. Stops early, without
    error, when the token is cancelled.
    """
    records = []
    for path in paths:
        if token is not None and token.cancelled:
            vlog("listing cancelled", verbose)
            break
        records.append(read_build_info(path, token, verbose=verbose))
    return records
