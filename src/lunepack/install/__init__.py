"""Installer --- materializes locked packages in the content-addressed store."""

from lunepack.install.fingerprint import STORE_MARKER, fingerprint_tree
from lunepack.install.installer import InstallReport, Installer, verify_installed
from lunepack.install.luaurc import detect_entry_dir, read_luaurc, write_luaurc
from lunepack.install.singleflight import SingleFlight
from lunepack.install.store import PackageStore, StoreEntry

__all__ = [
    "InstallReport",
    "Installer",
    "PackageStore",
    "STORE_MARKER",
    "SingleFlight",
    "StoreEntry",
    "detect_entry_dir",
    "fingerprint_tree",
    "read_luaurc",
    "verify_installed",
    "write_luaurc",
]
