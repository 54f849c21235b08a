"""Core data models shared across repgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple


@dataclass
class PropertyDescriptor:
    """A reflected property of an actor class."""

    name: str
    cpp_type: str
    replicated: bool = True
    struct_fields: List["PropertyDescriptor"] = field(default_factory=list)


@dataclass
class ParamDescriptor:
    """A single parameter of a reflected RPC."""

    name: str
    cpp_type: str
    struct_fields: List[PropertyDescriptor] = field(default_factory=list)


@dataclass
class RPCDescriptor:
    """A reflected remote procedure call."""

    name: str
    kind: str = "Server"
    reliable: bool = True
    params: List[ParamDescriptor] = field(default_factory=list)


@dataclass
class ClassDescriptor:
    """Read-only class metadata supplied by the reflection provider."""

    name: str
    module: str
    package_path: str
    prefix: str = ""
    parent: Optional[str] = None
    properties: List[PropertyDescriptor] = field(default_factory=list)
    rpcs: List[RPCDescriptor] = field(default_factory=list)
    components: List[str] = field(default_factory=list)
    ignored: bool = False

    @property
    def cpp_name(self) -> str:
        return f"{self.prefix}{self.name}"


@dataclass
class ModuleInfo:
    """A module from the module manifest and the headers it declares."""

    name: str
    base_dir: Path
    headers: Dict[str, Tuple[str, ...]] = field(default_factory=dict)


@dataclass
class ModuleManifest:
    """Mapping of module name to module info, loaded once per run."""

    modules: Dict[str, ModuleInfo] = field(default_factory=dict)


@dataclass
class GeneratedManifest:
    """Record of the last successful generation run."""

    generated_time: datetime = field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=UTC)
    )
    proto_package_name: str = ""
