"""Normalized actor descriptors built from reflected class metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .catalog import IgnoreList
from .errors import HeaderNotFoundError, IgnoredError, NotFoundError
from .models import ClassDescriptor, ModuleInfo, PropertyDescriptor, RPCDescriptor
from .naming import (
    NameDeduplicator,
    proto_file_name,
    registration_symbol,
    replicator_class_name,
    replicator_cpp_file_name,
    replicator_head_file_name,
    sanitize_identifier,
    to_snake_case,
)
from .resolver import ModuleResolver

_SCALAR_TYPES: Dict[str, str] = {
    "bool": "bool",
    "int8": "int32",
    "int16": "int32",
    "int32": "int32",
    "int": "int32",
    "uint8": "uint32",
    "uint16": "uint32",
    "uint32": "uint32",
    "int64": "int64",
    "uint64": "uint64",
    "float": "float",
    "double": "double",
}

_STRING_TYPES = {"FString", "FName", "FText"}

_BUILTIN_STRUCTS: Dict[str, str] = {
    "FVector": "unrealpb.FVector",
    "FVector2D": "unrealpb.FVector2D",
    "FRotator": "unrealpb.FRotator",
    "FQuat": "unrealpb.FQuat",
    "FTransform": "unrealpb.FTransform",
}

_OBJECT_WRAPPERS = ("TObjectPtr", "TWeakObjectPtr", "TSubclassOf", "TSoftObjectPtr", "TSoftClassPtr")

OBJECT_REF_PROTO_TYPE = "unrealpb.UnrealObjectRef"

_TEMPLATE_PATTERN = re.compile(r"^(\w+)\s*<\s*(.+)\s*>$")
_ENUM_PATTERN = re.compile(r"^E[A-Z]\w*$")

_MODULE_INCLUDE_ROOTS = {"Public", "Classes", "Private"}


@dataclass(frozen=True)
class ProtoField:
    """A property or parameter normalized for code and schema templates."""

    name: str
    cpp_type: str
    proto_type: str
    proto_name: str
    number: int
    kind: str
    repeated: bool = False
    struct_name: Optional[str] = None

    @property
    def needs_custom_merge(self) -> bool:
        # Repeated fields are replaced, not appended, when channel data merges.
        return self.repeated

    @property
    def has_presence(self) -> bool:
        return not self.repeated and self.kind in {"scalar", "enum", "string", "bytes"}

    @property
    def declaration(self) -> str:
        if self.repeated:
            label = "repeated "
        elif self.has_presence:
            label = "optional "
        else:
            label = ""
        return f"{label}{self.proto_type} {self.proto_name} = {self.number};"


@dataclass(frozen=True)
class StructDefinition:
    """A custom struct shared through the global struct artifacts."""

    cpp_name: str
    message_name: str
    fields: Tuple[ProtoField, ...]


@dataclass(frozen=True)
class RPCField:
    """An RPC with its parameters in marshalling form."""

    name: str
    kind: str
    reliable: bool
    params: Tuple[ProtoField, ...]
    params_struct_name: str
    params_message_name: str

    @property
    def shape(self) -> Tuple[str, ...]:
        """Parameter types in order; RPCs with equal shapes marshal identically."""
        return tuple(normalize_cpp_type(param.cpp_type) for param in self.params)


@dataclass(frozen=True)
class ActorDescriptor:
    """Replication view of one class, owned by a single generation run."""

    source: ClassDescriptor
    identifier: str
    header_path: Path
    include_path: str
    module_name: str
    proto_package_name: str
    go_package_import_path: str
    properties: Tuple[ProtoField, ...] = ()
    rpcs: Tuple[RPCField, ...] = ()
    global_structs: Tuple[StructDefinition, ...] = ()
    head_file_name: str = ""
    cpp_file_name: str = ""
    proto_file_name: str = ""
    replicator_class_name: str = ""
    state_message_name: str = ""
    registration_symbol: str = ""

    @property
    def origin_name(self) -> str:
        return self.source.name

    @property
    def cpp_name(self) -> str:
        return self.source.cpp_name

    @property
    def package_path(self) -> str:
        return self.source.package_path

    @property
    def parent(self) -> Optional[str]:
        return self.source.parent

    @property
    def components(self) -> Tuple[str, ...]:
        return tuple(self.source.components)

    @property
    def channel_data_field_name(self) -> str:
        return f"{to_snake_case(self.identifier)}_states"

    @property
    def has_custom_merge(self) -> bool:
        return any(prop.needs_custom_merge for prop in self.properties)

    @property
    def uses_global_structs(self) -> bool:
        return bool(self.global_structs)


@dataclass
class GenerationRun:
    """Mutable state scoped to exactly one assembly call."""

    resolver: ModuleResolver
    ignore_list: IgnoreList = field(default_factory=IgnoreList)
    deduplicator: NameDeduplicator = field(default_factory=NameDeduplicator)


def describe(
    cls: ClassDescriptor,
    run: GenerationRun,
    proto_package_name: str,
    go_package_import_path: str,
    *,
    init_properties_and_rpcs: bool = True,
    dedupe: bool = True,
) -> ActorDescriptor:
    """Build the ActorDescriptor for ``cls``.

    Raises IgnoredError for classes on the ignore list and HeaderNotFoundError
    when the declaring header cannot be resolved.
    """
    if run.ignore_list.matches(cls):
        raise IgnoredError(f"Class {cls.cpp_name} is ignored")

    header_path, module = _resolve_header(cls, run.resolver)

    identifier = run.deduplicator.assign(cls.name) if dedupe else cls.name

    properties: Tuple[ProtoField, ...] = ()
    rpcs: Tuple[RPCField, ...] = ()
    structs: Dict[str, StructDefinition] = {}
    if init_properties_and_rpcs:
        properties = _normalize_properties(cls.properties, structs)
        rpcs = tuple(_normalize_rpc(identifier, rpc, structs) for rpc in cls.rpcs)

    return ActorDescriptor(
        source=cls,
        identifier=identifier,
        header_path=header_path,
        include_path=include_path_for(header_path, module.base_dir),
        module_name=module.name,
        proto_package_name=proto_package_name,
        go_package_import_path=go_package_import_path,
        properties=properties,
        rpcs=rpcs,
        global_structs=tuple(structs.values()),
        head_file_name=replicator_head_file_name(identifier),
        cpp_file_name=replicator_cpp_file_name(identifier),
        proto_file_name=proto_file_name(identifier),
        replicator_class_name=replicator_class_name(identifier),
        state_message_name=f"{identifier}State",
        registration_symbol=registration_symbol(identifier),
    )


def _resolve_header(cls: ClassDescriptor, resolver: ModuleResolver) -> Tuple[Path, ModuleInfo]:
    candidates = [cls.cpp_name]
    if cls.name != cls.cpp_name:
        candidates.append(cls.name)
    for candidate in candidates:
        try:
            header_path = resolver.resolve(candidate)
        except NotFoundError:
            continue
        return header_path, resolver.module_for(candidate)
    raise HeaderNotFoundError(
        f"Can not find the header file of class {cls.cpp_name}; "
        "the replicator could not include its definition"
    )


def include_path_for(header_path: Path, base_dir: Path) -> str:
    """Return the include path of a header as seen from its module."""
    try:
        relative = header_path.relative_to(base_dir)
    except ValueError:
        return header_path.name
    parts = relative.parts
    if len(parts) > 1 and parts[0] in _MODULE_INCLUDE_ROOTS:
        parts = parts[1:]
    return "/".join(parts)


def _normalize_properties(
    properties: Sequence[PropertyDescriptor],
    structs: Dict[str, StructDefinition],
) -> Tuple[ProtoField, ...]:
    fields: List[ProtoField] = []
    used: Set[str] = set()
    for prop in properties:
        if not prop.replicated:
            continue
        fields.append(
            _to_proto_field(prop.name, prop.cpp_type, prop.struct_fields, len(fields) + 1, structs, used)
        )
    return tuple(fields)


def _normalize_rpc(
    identifier: str,
    rpc: RPCDescriptor,
    structs: Dict[str, StructDefinition],
) -> RPCField:
    used: Set[str] = set()
    params = tuple(
        _to_proto_field(param.name, param.cpp_type, param.struct_fields, index, structs, used)
        for index, param in enumerate(rpc.params, start=1)
    )
    rpc_name = sanitize_identifier(rpc.name)
    return RPCField(
        name=rpc.name,
        kind=rpc.kind,
        reliable=rpc.reliable,
        params=params,
        params_struct_name=f"F{identifier}_{rpc_name}_Params",
        params_message_name=f"{identifier}_{rpc_name}Params",
    )


def _to_proto_field(
    name: str,
    cpp_type: str,
    struct_fields: Sequence[PropertyDescriptor],
    number: int,
    structs: Dict[str, StructDefinition],
    used: Set[str],
) -> ProtoField:
    normalized = normalize_cpp_type(cpp_type)
    repeated = False
    element = normalized
    match = _TEMPLATE_PATTERN.match(normalized)
    if match and match.group(1) == "TArray":
        repeated = True
        element = match.group(2).strip()

    proto_type, kind = map_proto_type(element)
    struct_name: Optional[str] = None
    if kind == "bytes" and struct_fields and not _TEMPLATE_PATTERN.match(element):
        definition = _register_struct(element, struct_fields, structs)
        proto_type, kind, struct_name = definition.message_name, "struct", definition.cpp_name

    return ProtoField(
        name=name,
        cpp_type=cpp_type.strip(),
        proto_type=proto_type,
        proto_name=_unique_proto_name(to_snake_case(name) or f"field_{number}", used),
        number=number,
        kind=kind,
        repeated=repeated,
        struct_name=struct_name,
    )


def _unique_proto_name(base: str, used: Set[str]) -> str:
    """Suffix ``base`` until it is unused within one message, then claim it."""
    name = base
    suffix = 1
    while name in used:
        name = f"{base}_{suffix}"
        suffix += 1
    used.add(name)
    return name


def _register_struct(
    cpp_name: str,
    struct_fields: Sequence[PropertyDescriptor],
    structs: Dict[str, StructDefinition],
) -> StructDefinition:
    existing = structs.get(cpp_name)
    if existing is not None:
        return existing
    fields: List[ProtoField] = []
    used: Set[str] = set()
    for prop in struct_fields:
        fields.append(
            _to_proto_field(prop.name, prop.cpp_type, prop.struct_fields, len(fields) + 1, structs, used)
        )
    definition = StructDefinition(
        cpp_name=cpp_name,
        message_name=struct_message_name(cpp_name),
        fields=tuple(fields),
    )
    structs[cpp_name] = definition
    return definition


def normalize_cpp_type(cpp_type: str) -> str:
    """Strip qualifiers that do not change the replicated representation."""
    text = cpp_type.strip()
    text = re.sub(r"^const\s+", "", text)
    text = text.rstrip("&").strip()
    return re.sub(r"\s+", " ", text)


def map_proto_type(cpp_type: str) -> Tuple[str, str]:
    """Return ``(proto_type, kind)`` for a single, non-container C++ type."""
    text = normalize_cpp_type(cpp_type)
    if text in _SCALAR_TYPES:
        return _SCALAR_TYPES[text], "scalar"
    if text in _STRING_TYPES:
        return "string", "string"
    if text in _BUILTIN_STRUCTS:
        return _BUILTIN_STRUCTS[text], "builtin_struct"
    if text.endswith("*"):
        return OBJECT_REF_PROTO_TYPE, "object_ref"
    match = _TEMPLATE_PATTERN.match(text)
    if match:
        wrapper = match.group(1)
        if wrapper in _OBJECT_WRAPPERS:
            return OBJECT_REF_PROTO_TYPE, "object_ref"
        if wrapper == "TEnumAsByte":
            return "uint32", "enum"
        return "bytes", "bytes"
    if _ENUM_PATTERN.match(text):
        return "uint32", "enum"
    return "bytes", "bytes"


def struct_message_name(cpp_name: str) -> str:
    name = sanitize_identifier(cpp_name)
    if len(name) > 1 and name[0] == "F" and name[1].isupper():
        name = name[1:]
    return name or "AnonymousStruct"


__all__ = [
    "ActorDescriptor",
    "GenerationRun",
    "OBJECT_REF_PROTO_TYPE",
    "ProtoField",
    "RPCField",
    "StructDefinition",
    "describe",
    "map_proto_type",
    "normalize_cpp_type",
    "struct_message_name",
]
