"""Class catalog loading and ignore-list checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import yaml

from .errors import MalformedError, NotFoundError
from .models import ClassDescriptor, ParamDescriptor, PropertyDescriptor, RPCDescriptor


@dataclass
class IgnoreList:
    """Classes excluded from generation, by exact name or package-path glob."""

    classes: List[str] = field(default_factory=list)
    path_patterns: List[str] = field(default_factory=list)

    def matches(self, cls: ClassDescriptor) -> bool:
        if cls.ignored:
            return True
        if cls.name in self.classes or cls.cpp_name in self.classes:
            return True
        return any(fnmatchcase(cls.package_path, pattern) for pattern in self.path_patterns)


class ClassCatalog:
    """In-process reflection provider keyed by class name."""

    def __init__(self, classes: Iterable[ClassDescriptor] = ()) -> None:
        self._classes: Dict[str, ClassDescriptor] = {}
        for cls in classes:
            self.add(cls)

    def add(self, cls: ClassDescriptor) -> None:
        self._classes.setdefault(cls.name, cls)
        self._classes.setdefault(cls.cpp_name, cls)

    def get(self, name: str) -> ClassDescriptor:
        try:
            return self._classes[name]
        except KeyError:
            raise NotFoundError(f"Class not found in catalog: {name}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._classes

    def __iter__(self) -> Iterator[ClassDescriptor]:
        seen: set[int] = set()
        for cls in self._classes.values():
            if id(cls) in seen:
                continue
            seen.add(id(cls))
            yield cls

    def __len__(self) -> int:
        return sum(1 for _ in self)


def load_catalog(path: Path) -> ClassCatalog:
    """Load a class catalog from a YAML or JSON reflection dump."""
    data = read_document(path, kind="class catalog")
    if not isinstance(data, dict):
        raise MalformedError(f"Class catalog must contain a mapping at the root: {path}")
    raw_classes = data.get("classes")
    if raw_classes is None:
        return ClassCatalog()
    if not isinstance(raw_classes, list):
        raise MalformedError(f"'classes' must be a list in {path}")
    return ClassCatalog(class_from_dict(entry) for entry in raw_classes)


def read_document(path: Path, *, kind: str) -> Any:
    """Read a YAML (or JSON) document, mapping failures to repgen errors."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        raise NotFoundError(f"Unable to load {kind}: {path}") from None
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise MalformedError(f"{kind.capitalize()} is malformed: {path} ({exc})") from exc


def class_from_dict(payload: Any) -> ClassDescriptor:
    if not isinstance(payload, Mapping):
        raise MalformedError("Class entries must be mappings")
    name = _require_str(payload, "name", "class")
    return ClassDescriptor(
        name=name,
        module=_as_str(payload.get("module")) or "",
        package_path=_as_str(payload.get("package_path")) or f"/Script/{name}",
        prefix=_as_str(payload.get("prefix")) or "",
        parent=_as_str(payload.get("parent")),
        properties=[_property_from_dict(item) for item in _as_list(payload.get("properties"))],
        rpcs=[_rpc_from_dict(item) for item in _as_list(payload.get("rpcs"))],
        components=[str(item) for item in _as_list(payload.get("components"))],
        ignored=bool(payload.get("ignored", False)),
    )


def _property_from_dict(payload: Any) -> PropertyDescriptor:
    if not isinstance(payload, Mapping):
        raise MalformedError("Property entries must be mappings")
    replicated = payload.get("replicated", True)
    return PropertyDescriptor(
        name=_require_str(payload, "name", "property"),
        cpp_type=_require_str(payload, "type", "property"),
        replicated=bool(replicated),
        struct_fields=[_property_from_dict(item) for item in _as_list(payload.get("fields"))],
    )


def _param_from_dict(payload: Any) -> ParamDescriptor:
    if not isinstance(payload, Mapping):
        raise MalformedError("Parameter entries must be mappings")
    return ParamDescriptor(
        name=_require_str(payload, "name", "parameter"),
        cpp_type=_require_str(payload, "type", "parameter"),
        struct_fields=[_property_from_dict(item) for item in _as_list(payload.get("fields"))],
    )


def _rpc_from_dict(payload: Any) -> RPCDescriptor:
    if not isinstance(payload, Mapping):
        raise MalformedError("RPC entries must be mappings")
    return RPCDescriptor(
        name=_require_str(payload, "name", "rpc"),
        kind=_as_str(payload.get("kind")) or "Server",
        reliable=bool(payload.get("reliable", True)),
        params=[_param_from_dict(item) for item in _as_list(payload.get("params"))],
    )


def _require_str(payload: Mapping[str, Any], key: str, owner: str) -> str:
    value = _as_str(payload.get(key))
    if not value:
        raise MalformedError(f"Missing '{key}' in {owner} entry")
    return value


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_list(value: Any) -> Sequence[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    raise MalformedError(f"Expected a list, got {type(value).__name__}")


__all__ = ["ClassCatalog", "IgnoreList", "class_from_dict", "load_catalog", "read_document"]
