"""Reading and writing ``lunepack.yaml``.

The manifest is YAML with the fields ``name``, ``description``,
``version``, ``registry``, ``dependencies`` and ``aliases``. A dependency
value is either a constraint string or a mapping with a ``version`` key::

    name: my-game-server
    description: Backend for the lobby service
    dependencies:
      http: ^1.2.0
      owner/json: "~0.4"
    aliases:
      shared: src/shared
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from lunepack.core.manifest.models import Manifest, is_valid_package_name
from lunepack.core.versioning import VersionConstraint
from lunepack.exceptions import ManifestError
from lunepack.fsutil import atomic_write_text


def manifest_from_dict(data: Any, *, source: str = "<manifest>") -> Manifest:
    """Validate and convert parsed YAML into a :class:`Manifest`.

    Raises:
        ManifestError: On missing fields, unknown types, invalid package
            names, or unparseable constraints.
    """
    if not isinstance(data, dict):
        raise ManifestError(f"{source}: expected a mapping at the top level")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{source}: 'name' is required")

    raw_deps = data.get("dependencies") or {}
    if not isinstance(raw_deps, dict):
        raise ManifestError(f"{source}: 'dependencies' must be a mapping")

    dependencies: dict[str, str] = {}
    for dep_name, spec in raw_deps.items():
        dep_name = str(dep_name)
        if not is_valid_package_name(dep_name):
            raise ManifestError(f"{source}: invalid package name {dep_name!r}")
        if isinstance(spec, dict):
            spec = spec.get("version", "*")
        if spec is None:
            spec = "*"
        constraint = str(spec)
        try:
            VersionConstraint(constraint)
        except ValueError as exc:
            raise ManifestError(
                f"{source}: invalid constraint {constraint!r} for {dep_name!r}: {exc}"
            ) from exc
        dependencies[dep_name] = constraint

    raw_aliases = data.get("aliases") or {}
    if not isinstance(raw_aliases, dict):
        raise ManifestError(f"{source}: 'aliases' must be a mapping")
    aliases = {str(k).lstrip("@"): str(v) for k, v in raw_aliases.items()}

    registry = data.get("registry")
    return Manifest(
        name=name.strip(),
        description=str(data.get("description") or ""),
        version=str(data.get("version") or ""),
        dependencies=dependencies,
        aliases=aliases,
        registry=str(registry) if registry else None,
    )


def manifest_to_dict(manifest: Manifest) -> dict[str, Any]:
    data: dict[str, Any] = {"name": manifest.name}
    if manifest.description:
        data["description"] = manifest.description
    if manifest.version:
        data["version"] = manifest.version
    if manifest.registry:
        data["registry"] = manifest.registry
    data["dependencies"] = dict(sorted(manifest.dependencies.items()))
    if manifest.aliases:
        data["aliases"] = dict(sorted(manifest.aliases.items()))
    return data


def parse_manifest(text: str, *, source: str = "<manifest>") -> Manifest:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestError(f"{source}: invalid YAML: {exc}") from exc
    return manifest_from_dict(data, source=source)


def read_manifest(path: Path) -> Manifest:
    """Read and validate a manifest file.

    Raises:
        ManifestError: If the file is missing or invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(f"No manifest at {path}; run `lunepack init`") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Cannot read {path}: {exc}") from exc
    return parse_manifest(text, source=str(path))


def dump_manifest(manifest: Manifest) -> str:
    return yaml.safe_dump(
        manifest_to_dict(manifest),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def write_manifest(path: Path, manifest: Manifest) -> None:
    """Atomically write *manifest* to *path*."""
    atomic_write_text(path, dump_manifest(manifest))
