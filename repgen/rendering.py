"""Jinja-backed rendering of replicator code and protobuf schemas."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .descriptors import ActorDescriptor, ProtoField, StructDefinition
from .naming import GLOBAL_STRUCT_HEAD_FILE, GLOBAL_STRUCT_PROTO_FILE, TYPE_DEFINITIONS_HEAD_FILE

_DIRECT_KINDS = {"scalar", "enum", "string"}


@dataclass(frozen=True)
class SharedParams:
    """An RPC parameter shape declared once in the type definitions."""

    name: str
    shape: Tuple[str, ...]
    fields: Tuple[ProtoField, ...]
    include_paths: Tuple[str, ...]


@dataclass(frozen=True)
class ChannelDataEntry:
    """One actor's slot in the aggregated channel data message."""

    descriptor: ActorDescriptor
    field_name: str
    number: int


def _helper_namespace(field: ProtoField) -> str:
    return "ChanneldGlobalStruct" if field.kind == "struct" else "ChanneldUtils"


def changed_condition(field: ProtoField, value: str) -> str:
    """C++ condition that is true when ``value`` differs from the full state.

    For message and repeated fields the condition also writes the delta.
    """
    name = field.proto_name
    if field.repeated or field.kind not in _DIRECT_KINDS:
        return (
            f"{_helper_namespace(field)}::SetIfNotSame("
            f"DeltaState->mutable_{name}(), FullState->{name}(), {value})"
        )
    if field.kind == "enum":
        return f"static_cast<uint32>({value}) != FullState->{name}()"
    if field.kind == "string":
        return f"ChanneldUtils::ToStdString({value}) != FullState->{name}()"
    return f"{value} != FullState->{name}()"


def delta_assignment(field: ProtoField, value: str) -> str:
    name = field.proto_name
    if field.repeated or field.kind not in _DIRECT_KINDS:
        return ""
    if field.kind == "enum":
        return f"DeltaState->set_{name}(static_cast<uint32>({value}));"
    if field.kind == "string":
        return f"DeltaState->set_{name}(ChanneldUtils::ToStdString({value}));"
    return f"DeltaState->set_{name}({value});"


def to_proto(field: ProtoField, value: str, message: str) -> str:
    """Copy ``value`` into the field of the ``message`` pointer."""
    name = field.proto_name
    if field.repeated or field.kind not in _DIRECT_KINDS:
        return f"{_helper_namespace(field)}::ToProto({value}, {message}->mutable_{name}());"
    if field.kind == "enum":
        return f"{message}->set_{name}(static_cast<uint32>({value}));"
    if field.kind == "string":
        return f"{message}->set_{name}(ChanneldUtils::ToStdString({value}));"
    return f"{message}->set_{name}({value});"


def from_proto(field: ProtoField, access: str, target: str) -> str:
    """Copy the field read through ``access`` (``Msg.`` or ``State->``) into ``target``."""
    name = field.proto_name
    if field.repeated or field.kind not in _DIRECT_KINDS:
        return f"{_helper_namespace(field)}::FromProto({access}{name}(), {target});"
    if field.kind == "enum":
        return f"{target} = static_cast<decltype({target})>({access}{name}());"
    if field.kind == "string":
        return f"ChanneldUtils::FromStdString({access}{name}(), {target});"
    return f"{target} = {access}{name}();"


def presence_check(field: ProtoField, access: str) -> str:
    if field.repeated:
        return f"{access}{field.proto_name}_size() > 0"
    return f"{access}has_{field.proto_name}()"


def _indent(text: str, depth: int = 1) -> str:
    prefix = "\t" * depth
    return "\n".join(prefix + line if line.strip() else line for line in text.split("\n"))


class CodeRenderer:
    """Renders every generated artifact from normalized descriptor data.

    Each output format has exactly one method; whole files end with a single
    newline, fragments carry no trailing newline.
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir
        self._env = self._create_env(templates_dir)

    # ------------------------------------------------------------------
    # Per-class artifacts

    def replicator_head(
        self, descriptor: ActorDescriptor, shared_params: Mapping[Tuple[str, ...], SharedParams]
    ) -> str:
        return self._render_file(
            "replicator.h.j2",
            d=descriptor,
            shared=self._shared_for(descriptor, shared_params),
            include_actor_code=self.include_actor(descriptor),
            type_definitions_file=TYPE_DEFINITIONS_HEAD_FILE,
            global_struct_file=GLOBAL_STRUCT_HEAD_FILE,
        )

    def replicator_cpp(
        self, descriptor: ActorDescriptor, shared_params: Mapping[Tuple[str, ...], SharedParams]
    ) -> str:
        return self._render_file(
            "replicator.cpp.j2",
            d=descriptor,
            shared=self._shared_for(descriptor, shared_params),
        )

    def actor_proto(self, descriptor: ActorDescriptor) -> str:
        return self._render_file(
            "actor.proto.j2",
            d=descriptor,
            global_struct_proto=GLOBAL_STRUCT_PROTO_FILE,
        )

    def include_actor(self, descriptor: ActorDescriptor) -> str:
        return self._render_fragment("fragments/include_actor.j2", d=descriptor)

    def register_replicator(self, descriptor: ActorDescriptor) -> str:
        return self._render_fragment("fragments/register_replicator.j2", d=descriptor)

    def path_fname_decl(self, descriptor: ActorDescriptor) -> str:
        return self._render_fragment("fragments/path_fname_decl.j2", d=descriptor)

    def merge_code(self, entry: ChannelDataEntry, child_codes: Sequence[str] = ()) -> str:
        """Merge block for one actor, with its owned components' blocks nested inside."""
        return self._render_fragment("fragments/merge.j2", entry=entry, children=list(child_codes))

    def get_state_code(self, entry: ChannelDataEntry) -> str:
        return self._render_fragment("fragments/get_state.j2", entry=entry)

    def set_state_code(self, entry: ChannelDataEntry) -> str:
        return self._render_fragment("fragments/set_state.j2", entry=entry)

    # ------------------------------------------------------------------
    # Run-wide artifacts

    def type_definitions_head(self, shared_params: Sequence[SharedParams]) -> str:
        return self._render_file("type_definitions.h.j2", shared_params=shared_params)

    def type_definitions_cpp(self, shared_params: Sequence[SharedParams]) -> str:
        return self._render_file(
            "type_definitions.cpp.j2",
            shared_params=shared_params,
            type_definitions_file=TYPE_DEFINITIONS_HEAD_FILE,
        )

    def registration_head(self, descriptors: Sequence[ActorDescriptor], register_codes: Sequence[str]) -> str:
        return self._render_file(
            "registration.h.j2",
            descriptors=descriptors,
            register_codes=register_codes,
        )

    def global_struct_head(self, structs: Sequence[StructDefinition], proto_package_name: str) -> str:
        return self._render_file(
            "global_struct.h.j2",
            structs=structs,
            package=proto_package_name,
            global_struct_proto=GLOBAL_STRUCT_PROTO_FILE,
        )

    def global_struct_proto(
        self, structs: Sequence[StructDefinition], proto_package_name: str, go_package_import_path: str
    ) -> str:
        return self._render_file(
            "global_struct.proto.j2",
            structs=structs,
            package=proto_package_name,
            go_package=go_package_import_path,
        )

    def channel_data_processor_head(
        self,
        *,
        module_name: str,
        message_name: str,
        proto_head_file: str,
        proto_package_name: str,
        path_fname_decls: Sequence[str],
        merge_codes: Sequence[str],
        get_state_codes: Sequence[str],
        set_state_codes: Sequence[str],
    ) -> str:
        return self._render_file(
            "channel_data_processor.h.j2",
            module_name=module_name,
            message_name=message_name,
            proto_head_file=proto_head_file,
            package=proto_package_name,
            path_fname_decls=path_fname_decls,
            merge_codes=merge_codes,
            get_state_codes=get_state_codes,
            set_state_codes=set_state_codes,
        )

    def channel_data_proto(
        self,
        *,
        message_name: str,
        entries: Sequence[ChannelDataEntry],
        proto_package_name: str,
        go_package_import_path: str,
    ) -> str:
        imports: List[str] = []
        for entry in entries:
            if entry.descriptor.proto_file_name not in imports:
                imports.append(entry.descriptor.proto_file_name)
        return self._render_file(
            "channel_data.proto.j2",
            message_name=message_name,
            entries=entries,
            imports=imports,
            package=proto_package_name,
            go_package=go_package_import_path,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _shared_for(
        descriptor: ActorDescriptor, shared_params: Mapping[Tuple[str, ...], SharedParams]
    ) -> Dict[str, SharedParams]:
        result: Dict[str, SharedParams] = {}
        for rpc in descriptor.rpcs:
            shared = shared_params.get(rpc.shape)
            if shared is not None:
                result[rpc.name] = shared
        return result

    def _render_file(self, template_name: str, **context: object) -> str:
        template = self._env.get_template(template_name)
        return template.render(**context).strip() + "\n"

    def _render_fragment(self, template_name: str, **context: object) -> str:
        template = self._env.get_template(template_name)
        return template.render(**context).strip("\n")

    def _create_env(self, templates_dir: Path | None) -> Environment:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        default_dir = str(Path(__file__).with_name("templates"))
        if default_dir not in directories:
            directories.append(default_dir)
        env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        env.filters["tabindent"] = _indent
        env.globals.update(
            changed_condition=changed_condition,
            delta_assignment=delta_assignment,
            to_proto=to_proto,
            from_proto=from_proto,
            presence_check=presence_check,
            param_member=param_member,
        )
        return env


def param_member(field: ProtoField, shared: Optional[SharedParams]) -> str:
    """Member name of a parameter inside the marshalled params struct."""
    if shared is None:
        return field.name
    return f"Param{field.number - 1}"


__all__ = [
    "ChannelDataEntry",
    "CodeRenderer",
    "SharedParams",
    "changed_condition",
    "delta_assignment",
    "from_proto",
    "param_member",
    "presence_check",
    "to_proto",
]
