"""Bundle Builder --- standalone executables from a runtime and a module graph."""

from lunepack.bundle.builder import BuildResult, BundleBuilder
from lunepack.bundle.format import (
    FORMAT_VERSION,
    TRAILER_SIZE,
    Bundle,
    BundleRecord,
    decode_table,
    encode_table,
    encode_trailer,
    load_bundle,
    read_trailer,
    split_executable,
)
from lunepack.bundle.targets import RuntimeLocator, Target, native_target, resolve_target

__all__ = [
    "FORMAT_VERSION",
    "TRAILER_SIZE",
    "BuildResult",
    "Bundle",
    "BundleBuilder",
    "BundleRecord",
    "RuntimeLocator",
    "Target",
    "decode_table",
    "encode_table",
    "encode_trailer",
    "load_bundle",
    "native_target",
    "read_trailer",
    "split_executable",
    "resolve_target",
]
