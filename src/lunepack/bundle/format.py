"""Binary layout of the module table appended to a runtime executable.

All integers are little-endian. The executable is::

    [runtime bytes][table][trailer]

Table::

    b"LPKB"  u16 format version
    u32 len + entry module id
    u32 record count
    per record:
        u32 len + module id
        u32 require count, then per require: u32 len + target, u32 len + module id
        u64 len + source bytes

Trailer (fixed size, last bytes of the file)::

    u64 table offset   u64 table length   32-byte SHA-256 of the table   b"LUNEPACK"

A runtime locates its table by reading the trailer, so the runtime bytes
are left untouched.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from lunepack.exceptions import BundleError, BundleFormatError

if TYPE_CHECKING:
    from lunepack.graph.graph import ModuleGraph

TABLE_MAGIC = b"LPKB"
TRAILER_MAGIC = b"LUNEPACK"
FORMAT_VERSION = 1

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
TRAILER = struct.Struct("<QQ32s8s")
TRAILER_SIZE = TRAILER.size


@dataclass
class BundleRecord:
    """One module in a bundle: its id, source, and resolved require map."""

    module_id: str
    source: bytes
    requires: dict[str, str] = field(default_factory=dict)


@dataclass
class Bundle:
    """An entry module id plus the ordered module records."""

    entry_id: str
    records: list[BundleRecord] = field(default_factory=list)

    @property
    def module_ids(self) -> list[str]:
        return [r.module_id for r in self.records]

    def record(self, module_id: str) -> BundleRecord:
        for rec in self.records:
            if rec.module_id == module_id:
                return rec
        raise KeyError(module_id)

    def validate(self) -> None:
        """Check that the bundle is closed.

        Raises:
            BundleError: On duplicate ids, a missing entry record, or a
                require that does not map to a record.
        """
        ids: set[str] = set()
        for rec in self.records:
            if rec.module_id in ids:
                raise BundleError(f"Duplicate module id in bundle: {rec.module_id}")
            ids.add(rec.module_id)
        if self.entry_id not in ids:
            raise BundleError(f"Entry module {self.entry_id} is not in the bundle")
        for rec in self.records:
            for target, module_id in rec.requires.items():
                if module_id not in ids:
                    raise BundleError(
                        f"{rec.module_id}: require({target!r}) maps to {module_id}, "
                        "which is not in the bundle"
                    )

    @classmethod
    def from_graph(cls, graph: ModuleGraph) -> Bundle:
        """Build a bundle from a module graph, in discovery order.

        Raises:
            BundleError: If a resolved require does not map to exactly one
                module in the graph.
        """
        records: list[BundleRecord] = []
        for node in graph:
            requires: dict[str, str] = {}
            for ref in node.requires:
                if ref.resolved_id is None:
                    continue
                if ref.resolved_id not in graph.nodes:
                    raise BundleError(
                        f"{node.module_id}: require({ref.target!r}) resolved to "
                        f"{ref.resolved_id}, which is not in the module graph"
                    )
                previous = requires.setdefault(ref.target, ref.resolved_id)
                if previous != ref.resolved_id:
                    raise BundleError(
                        f"{node.module_id}: require({ref.target!r}) is ambiguous "
                        f"({previous} vs {ref.resolved_id})"
                    )
            records.append(BundleRecord(node.module_id, node.source, requires))
        bundle = cls(entry_id=graph.entry_id, records=records)
        bundle.validate()
        return bundle


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _pack_str(value: str) -> bytes:
    data = value.encode("utf-8")
    return _U32.pack(len(data)) + data


def encode_table(bundle: Bundle) -> bytes:
    parts = [TABLE_MAGIC, _U16.pack(FORMAT_VERSION), _pack_str(bundle.entry_id)]
    parts.append(_U32.pack(len(bundle.records)))
    for rec in bundle.records:
        parts.append(_pack_str(rec.module_id))
        parts.append(_U32.pack(len(rec.requires)))
        for target in sorted(rec.requires):
            parts.append(_pack_str(target))
            parts.append(_pack_str(rec.requires[target]))
        parts.append(_U64.pack(len(rec.source)))
        parts.append(bytes(rec.source))
    return b"".join(parts)


def encode_trailer(offset: int, table: bytes) -> bytes:
    return TRAILER.pack(offset, len(table), hashlib.sha256(table).digest(), TRAILER_MAGIC)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.data):
            raise BundleFormatError(
                f"Truncated bundle table: need {n} bytes at offset {self.pos}, "
                f"have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, fmt: struct.Struct) -> int:
        return fmt.unpack(self.take(fmt.size))[0]

    def string(self) -> str:
        raw = self.take(self.unpack(_U32))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BundleFormatError(f"Invalid UTF-8 in bundle table: {exc}") from exc


def decode_table(data: bytes) -> Bundle:
    """Decode a module table.

    Raises:
        BundleFormatError: On bad magic, unknown version, truncation, or
            trailing bytes.
    """
    reader = _Reader(data)
    if reader.take(len(TABLE_MAGIC)) != TABLE_MAGIC:
        raise BundleFormatError("Bad bundle table magic")
    version = reader.unpack(_U16)
    if version != FORMAT_VERSION:
        raise BundleFormatError(f"Unsupported bundle format version {version}")
    entry_id = reader.string()
    count = reader.unpack(_U32)
    records: list[BundleRecord] = []
    for _ in range(count):
        module_id = reader.string()
        requires: dict[str, str] = {}
        for _ in range(reader.unpack(_U32)):
            target = reader.string()
            requires[target] = reader.string()
        source = reader.take(reader.unpack(_U64))
        records.append(BundleRecord(module_id, source, requires))
    if reader.pos != len(data):
        raise BundleFormatError(f"{len(data) - reader.pos} trailing bytes after bundle table")
    return Bundle(entry_id=entry_id, records=records)


def read_trailer(data: bytes) -> tuple[int, int, bytes]:
    """Return ``(table offset, table length, table sha256)`` from the file tail.

    Raises:
        BundleFormatError: If there is no valid trailer.
    """
    if len(data) < TRAILER_SIZE:
        raise BundleFormatError("File too small to contain a bundle trailer")
    offset, length, digest, magic = TRAILER.unpack(data[-TRAILER_SIZE:])
    if magic != TRAILER_MAGIC:
        raise BundleFormatError("No bundle trailer found (not a lunepack executable?)")
    if offset + length != len(data) - TRAILER_SIZE:
        raise BundleFormatError(
            f"Bundle trailer points outside the file (offset {offset}, length {length})"
        )
    return offset, length, digest


def split_executable(data: bytes) -> tuple[bytes, Bundle]:
    """Split a built executable into its runtime bytes and its bundle."""
    offset, length, digest = read_trailer(data)
    table = data[offset:offset + length]
    if hashlib.sha256(table).digest() != digest:
        raise BundleFormatError("Bundle table checksum mismatch")
    bundle = decode_table(table)
    bundle.validate()
    return data[:offset], bundle


def load_bundle(source: bytes | Path) -> Bundle:
    """Read the bundle embedded in an executable (bytes or path)."""
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        with Path(source).open("rb") as fh:
            data = fh.read()
    try:
        return split_executable(data)[1]
    except BundleError as exc:
        if isinstance(exc, BundleFormatError):
            raise
        raise BundleFormatError(str(exc)) from exc
