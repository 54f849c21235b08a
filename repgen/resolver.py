"""Module manifest lookups for class declaring headers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Tuple, Union

from .catalog import read_document
from .errors import MalformedError, NotFoundError, NotPrimedError
from .logging import get_logger
from .models import ModuleInfo, ModuleManifest

ManifestSource = Union[ModuleManifest, Mapping[str, Any], Path, str]


class ModuleResolver:
    """Maps class names to the module and header file that declare them.

    ``load_manifest`` must be called before any lookup. It precomputes a
    class-name index so that ``resolve`` is a dictionary lookup.
    """

    def __init__(self) -> None:
        self.logger = get_logger("resolver")
        self._primed = False
        self._class_index: Dict[str, Tuple[ModuleInfo, Path]] = {}

    @property
    def primed(self) -> bool:
        return self._primed

    def load_manifest(self, source: ManifestSource) -> ModuleManifest:
        manifest = _coerce_manifest(source)
        index: Dict[str, Tuple[ModuleInfo, Path]] = {}
        for module in manifest.modules.values():
            for header, class_names in module.headers.items():
                header_path = Path(header)
                if not header_path.is_absolute():
                    header_path = module.base_dir / header_path
                for class_name in class_names:
                    if class_name in index:
                        self.logger.debug(
                            "Class %s is declared in both %s and %s; keeping the first",
                            class_name,
                            index[class_name][1],
                            header_path,
                        )
                        continue
                    index[class_name] = (module, header_path)
        self._class_index = index
        self._primed = True
        self.logger.debug(
            "Loaded module manifest with %d modules and %d classes",
            len(manifest.modules),
            len(index),
        )
        return manifest

    def resolve(self, class_name: str) -> Path:
        """Return the declaring header path for ``class_name``."""
        return self._lookup(class_name)[1]

    def module_for(self, class_name: str) -> ModuleInfo:
        return self._lookup(class_name)[0]

    def can_resolve(self, class_name: str) -> bool:
        if not self._primed:
            raise NotPrimedError("Module manifest has not been loaded")
        return class_name in self._class_index

    def _lookup(self, class_name: str) -> Tuple[ModuleInfo, Path]:
        if not self._primed:
            raise NotPrimedError("Module manifest has not been loaded")
        try:
            return self._class_index[class_name]
        except KeyError:
            raise NotFoundError(f"No module declares class {class_name}") from None


def _coerce_manifest(source: ManifestSource) -> ModuleManifest:
    if isinstance(source, ModuleManifest):
        return source
    if isinstance(source, (str, Path)):
        path = Path(source)
        data = read_document(path, kind="module manifest")
        return manifest_from_dict(data, default_base_dir=path.parent)
    return manifest_from_dict(source, default_base_dir=Path("."))


def manifest_from_dict(data: Any, *, default_base_dir: Path) -> ModuleManifest:
    """Build a ModuleManifest from ``{"modules": [...]}`` data."""
    if not isinstance(data, Mapping):
        raise MalformedError("Module manifest must contain a mapping at the root")
    raw_modules = data.get("modules") or []
    if not isinstance(raw_modules, list):
        raise MalformedError("'modules' must be a list")

    modules: Dict[str, ModuleInfo] = {}
    for raw in raw_modules:
        if not isinstance(raw, Mapping) or not isinstance(raw.get("name"), str):
            raise MalformedError("Module entries must be mappings with a 'name'")
        base_dir = raw.get("base_dir")
        module_dir = Path(base_dir) if isinstance(base_dir, str) else default_base_dir
        if not module_dir.is_absolute():
            module_dir = default_base_dir / module_dir
        raw_headers = raw.get("headers") or {}
        if not isinstance(raw_headers, Mapping):
            raise MalformedError(f"'headers' of module {raw['name']} must be a mapping")
        headers: Dict[str, Tuple[str, ...]] = {}
        for header, class_names in raw_headers.items():
            if class_names is None:
                class_names = []
            if not isinstance(class_names, list):
                raise MalformedError(f"Classes of header {header} must be a list")
            headers[str(header)] = tuple(str(name) for name in class_names)
        modules[raw["name"]] = ModuleInfo(name=raw["name"], base_dir=module_dir, headers=headers)
    return ModuleManifest(modules=modules)


__all__ = ["ManifestSource", "ModuleResolver", "manifest_from_dict"]
