"""Configuration loading for repgen (.repgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .catalog import IgnoreList

CONFIG_FILE_NAME = ".repgen.yml"
DEFAULT_GENERATED_DIR = "ChanneldGenerated"
DEFAULT_INTERMEDIATE_DIR = "Intermediate/ReplicatorGenerator"
DEFAULT_MANIFEST_FILE = "GeneratedManifest.json"
DEFAULT_PROTO_PACKAGE_NAME = "channeldgenpb"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class IgnoreConfig:
    """Classes excluded from replicator generation."""

    classes: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)

    def to_ignore_list(self) -> IgnoreList:
        return IgnoreList(classes=list(self.classes), path_patterns=list(self.paths))


@dataclass
class GeneratorConfig:
    """Represents the settings defined in .repgen.yml."""

    root: Path
    module_dir: Optional[Path] = None
    generated_dir: str = DEFAULT_GENERATED_DIR
    intermediate_dir: Optional[Path] = None
    manifest_file: str = DEFAULT_MANIFEST_FILE
    proto_package_name: str = DEFAULT_PROTO_PACKAGE_NAME
    go_package_import_path_prefix: str = ""
    module_manifest: Optional[Path] = None
    class_catalog: Optional[Path] = None
    templates_dir: Optional[Path] = None
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)

    @property
    def resolved_module_dir(self) -> Path:
        return self.module_dir or self.root

    @property
    def replicator_storage_dir(self) -> Path:
        return self.resolved_module_dir / self.generated_dir

    @property
    def resolved_intermediate_dir(self) -> Path:
        return self.intermediate_dir or (self.root / DEFAULT_INTERMEDIATE_DIR)

    @property
    def manifest_path(self) -> Path:
        return self.resolved_intermediate_dir / self.manifest_file


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return GeneratorConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping at the root")

    config = GeneratorConfig(root=root)
    config.module_dir = _as_path(root, data.get("module_dir"))
    config.generated_dir = _as_str(data.get("generated_dir")) or DEFAULT_GENERATED_DIR
    config.intermediate_dir = _as_path(root, data.get("intermediate_dir"))
    config.manifest_file = _as_str(data.get("manifest_file")) or DEFAULT_MANIFEST_FILE
    config.proto_package_name = _as_str(data.get("proto_package_name")) or DEFAULT_PROTO_PACKAGE_NAME
    config.go_package_import_path_prefix = _as_str(data.get("go_package_import_path_prefix")) or ""
    config.module_manifest = _as_path(root, data.get("module_manifest"))
    config.class_catalog = _as_path(root, data.get("class_catalog"))
    config.templates_dir = _as_path(root, data.get("templates_dir"))

    ignore_data = _as_dict(data.get("ignore"))
    if ignore_data:
        config.ignore = IgnoreConfig(
            classes=_as_str_list(ignore_data.get("classes")),
            paths=_as_str_list(ignore_data.get("paths")),
        )
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else root / path


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILE_NAME",
    "ConfigError",
    "GeneratorConfig",
    "IgnoreConfig",
    "load_config",
]
