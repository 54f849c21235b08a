"""Helper utilities for constructing temporary game projects in tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import yaml

from repgen.catalog import ClassCatalog, class_from_dict
from repgen.config import CONFIG_FILE_NAME, GeneratorConfig, load_config
from repgen.models import ClassDescriptor

MODULE_NAME = "Game"
MODULE_BASE_DIR = Path("/work/Project/Source/Game")


def make_class(
    name: str,
    *,
    prefix: str = "A",
    properties: Sequence[Mapping[str, Any]] = (),
    rpcs: Sequence[Mapping[str, Any]] = (),
    components: Sequence[str] = (),
    ignored: bool = False,
    package_path: str | None = None,
) -> ClassDescriptor:
    """Build a ClassDescriptor through the same parser the catalog uses."""
    return class_from_dict(
        {
            "name": name,
            "prefix": prefix,
            "module": MODULE_NAME,
            "package_path": package_path or f"/Script/{MODULE_NAME}.{name}",
            "properties": list(properties),
            "rpcs": list(rpcs),
            "components": list(components),
            "ignored": ignored,
        }
    )


def module_manifest_for(base_dir: Path, classes: Sequence[ClassDescriptor]) -> Dict[str, Any]:
    """Module manifest data declaring each class in ``Public/{name}.h``."""
    return {
        "modules": [
            {
                "name": MODULE_NAME,
                "base_dir": str(base_dir),
                "headers": {f"Public/{cls.name}.h": [cls.cpp_name] for cls in classes},
            }
        ]
    }


class ProjectBuilder:
    """Writes headers, manifests, a class catalog and config into a throwaway project."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = (tmp_path / "project").resolve()
        self.root.mkdir()
        self.module_dir = self.root / "Source" / MODULE_NAME
        self.module_dir.mkdir(parents=True)
        self._entries: List[Dict[str, Any]] = []
        self._headerless: set[str] = set()

    def add_class(
        self,
        name: str,
        *,
        prefix: str = "A",
        properties: Sequence[Mapping[str, Any]] = (),
        rpcs: Sequence[Mapping[str, Any]] = (),
        components: Sequence[str] = (),
        ignored: bool = False,
        with_header: bool = True,
    ) -> None:
        self._entries.append(
            {
                "name": name,
                "prefix": prefix,
                "module": MODULE_NAME,
                "package_path": f"/Script/{MODULE_NAME}.{name}",
                "properties": [dict(item) for item in properties],
                "rpcs": [dict(item) for item in rpcs],
                "components": list(components),
                "ignored": ignored,
            }
        )
        if not with_header:
            self._headerless.add(name)

    def write_headers(self) -> None:
        for entry in self._entries:
            if entry["name"] in self._headerless:
                continue
            header = self.module_dir / "Public" / f"{entry['name']}.h"
            header.parent.mkdir(parents=True, exist_ok=True)
            header.write_text(f"class {entry['prefix']}{entry['name']};\n", encoding="utf-8")

    def write_module_manifest(self) -> Path:
        headers = {
            f"Public/{entry['name']}.h": [f"{entry['prefix']}{entry['name']}"]
            for entry in self._entries
            if entry["name"] not in self._headerless
        }
        data = {"modules": [{"name": MODULE_NAME, "base_dir": "Source/Game", "headers": headers}]}
        return self._dump("modules.yml", data)

    def write_catalog(self) -> Path:
        return self._dump("classes.yml", {"classes": self._entries})

    def write_config(self, **overrides: Any) -> Path:
        data: Dict[str, Any] = {
            "module_dir": "Source/Game",
            "module_manifest": "modules.yml",
            "class_catalog": "classes.yml",
        }
        data.update(overrides)
        return self._dump(CONFIG_FILE_NAME, data)

    def build(self, **overrides: Any) -> GeneratorConfig:
        """Write every project file and return the loaded configuration."""
        self.write_headers()
        self.write_module_manifest()
        self.write_catalog()
        return load_config(self.write_config(**overrides))

    def catalog(self) -> ClassCatalog:
        return ClassCatalog(class_from_dict(entry) for entry in self._entries)

    @property
    def storage_dir(self) -> Path:
        return self.module_dir / "ChanneldGenerated"

    def _dump(self, name: str, data: Mapping[str, Any]) -> Path:
        path = self.root / name
        path.write_text(yaml.safe_dump(dict(data), sort_keys=False), encoding="utf-8")
        return path


__all__ = ["MODULE_BASE_DIR", "MODULE_NAME", "ProjectBuilder", "make_class", "module_manifest_for"]
