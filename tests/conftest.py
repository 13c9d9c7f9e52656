"""
Shared fixtures: synthetic Go binaries.

The builders lay out a build-info blob the way the Go linker does
(16-byte aligned header, inline or pointer encoded strings) inside a
minimal ELF64 or a PE / Mach-O stub.
"""

from __future__ import annotations

import struct

import pytest

from goreinstall.buildinfo import BUILDINFO_MAGIC, MODINFO_END, MODINFO_START


ELF_BASE_ADDR = 0x400000
BLOB_OFFSET = 0x100


def uvarint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def mod_info(
    path: str = "example.com/tool/cmd/tool",
    module: str = "example.com/tool",
    version: str = "v1.2.3",
    extra: str = "",
) -> str:
    """Module info text as embedded by go build, sentinels included."""
    text = (
        f"path\t{path}\n"
        f"mod\t{module}\t{version}\th1:abcdef=\n"
        "dep\tgolang.org/x/mod\tv0.14.0\th1:xyz=\n"
        "build\t-compiler=gc\n"
        "build\tGOOS=linux\n"
        f"{extra}"
    )
    return MODINFO_START.decode("latin-1") + text + MODINFO_END.decode("latin-1")


def _encode_mod(mod: str) -> bytes:
    # Sentinel bytes are not valid UTF-8; keep them byte-for-byte
    return mod.encode("latin-1")


def inline_blob(version: str, mod: str) -> bytes:
    header = BUILDINFO_MAGIC + bytes([8, 0x2])
    header += b"\x00" * (32 - len(header))
    mod_bytes = _encode_mod(mod)
    return (
        header
        + uvarint(len(version)) + version.encode()
        + uvarint(len(mod_bytes)) + mod_bytes
    )


def pointer_blob(version: str, mod: str, blob_addr: int) -> bytes:
    """Pointer encoded blob (pre Go 1.18) placed at virtual address blob_addr."""
    version_bytes = version.encode()
    mod_bytes = _encode_mod(mod)
    version_hdr_addr = blob_addr + 32
    mod_hdr_addr = blob_addr + 48
    data_addr = blob_addr + 64

    header = BUILDINFO_MAGIC + bytes([8, 0x0])
    header += struct.pack("<QQ", version_hdr_addr, mod_hdr_addr)
    strings = struct.pack("<QQ", data_addr, len(version_bytes))
    strings += struct.pack("<QQ", data_addr + len(version_bytes), len(mod_bytes))
    return header + strings + version_bytes + mod_bytes


def build_elf(blob: bytes, with_buildinfo_section: bool = True) -> bytes:
    """Minimal little-endian ELF64 executable holding blob at BLOB_OFFSET."""
    names = b"\x00.go.buildinfo\x00.shstrtab\x00"
    buildinfo_name = 1
    shstrtab_name = names.index(b".shstrtab")

    body = bytearray(BLOB_OFFSET)
    body += blob
    shstrtab_offset = len(body)
    body += names
    while len(body) % 8:
        body.append(0)
    shoff = len(body)

    sections = [struct.pack("<IIQQQQIIQQ", 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)]
    if with_buildinfo_section:
        sections.append(struct.pack(
            "<IIQQQQIIQQ",
            buildinfo_name, 1, 0x3, ELF_BASE_ADDR + BLOB_OFFSET, BLOB_OFFSET, len(blob), 0, 0, 16, 0,
        ))
    sections.append(struct.pack(
        "<IIQQQQIIQQ",
        shstrtab_name, 3, 0, 0, shstrtab_offset, len(names), 0, 0, 1, 0,
    ))
    shstrndx = len(sections) - 1
    for section in sections:
        body += section

    phoff = 64
    file_size = len(body)
    # One RW PT_LOAD mapping the whole file
    phdr = struct.pack("<IIQQQQQQ", 1, 0x6, 0, ELF_BASE_ADDR, ELF_BASE_ADDR, file_size, file_size, 0x1000)

    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + b"\x00" * 8
    header = ident + struct.pack(
        "<HHIQQQIHHHHHH",
        2, 62, 1, ELF_BASE_ADDR, phoff, shoff, 0, 64, 56, 1, 64, len(sections), shstrndx,
    )
    body[0:64] = header
    body[phoff:phoff + 56] = phdr
    return bytes(body)


def build_pe(blob: bytes) -> bytes:
    """PE stub: "MZ" magic and the blob at an aligned offset."""
    body = bytearray(b"MZ")
    body += b"\x00" * (0x200 - len(body))
    body += blob
    body += b"\x00" * 64
    return bytes(body)


def build_macho(blob: bytes) -> bytes:
    body = bytearray(b"\xcf\xfa\xed\xfe")
    body += b"\x00" * (0x300 - len(body))
    body += blob
    return bytes(body)


@pytest.fixture
def write_binary(tmp_path):
    """Write bytes to a file under tmp_path and return its path."""
    def _write(name: str, data: bytes) -> str:
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return _write


@pytest.fixture
def go_binary(write_binary):
    """Write an inline-format ELF Go binary and return its path."""
    def _make(
        name: str = "tool",
        go_version: str = "go1.21.0",
        module_version: str = "v1.2.3",
        module: str = "example.com/tool",
        path: str | None = None,
    ) -> str:
        mod = mod_info(path=path or f"{module}/cmd/{name}", module=module, version=module_version)
        return write_binary(name, build_elf(inline_blob(go_version, mod)))
    return _make
