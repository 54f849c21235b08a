"""Assembly of per-class and run-wide generated code bundles."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .catalog import IgnoreList
from .descriptors import ActorDescriptor, GenerationRun, StructDefinition, describe
from .errors import IgnoredError
from .logging import get_logger
from .models import ClassDescriptor
from .naming import (
    GLOBAL_STRUCT_HEAD_FILE,
    GLOBAL_STRUCT_PROTO_FILE,
    PROTO_PB_HEAD_EXTENSION,
    REGISTRATION_HEAD_FILE,
    TYPE_DEFINITIONS_CPP_FILE,
    TYPE_DEFINITIONS_HEAD_FILE,
    channel_data_head_file_name,
    channel_data_proto_file_name,
    sanitize_identifier,
)
from .rendering import ChannelDataEntry, CodeRenderer, SharedParams
from .resolver import ModuleResolver

SHARED_PARAMS_PREFIX = "FChanneldSharedParams"


@dataclass
class ReplicatorCode:
    """Generated artifacts for a single actor class."""

    descriptor: ActorDescriptor
    head_file_name: str
    head_code: str
    cpp_file_name: str
    cpp_code: str
    proto_file_name: str
    proto_definitions: str
    include_actor_code: str
    register_replicator_code: str
    path_fname_var_decl: str = ""
    merge_code: str = ""
    get_state_code: str = ""
    set_state_code: str = ""


@dataclass
class CodeBundle:
    """Everything produced by one assembly, ready for the file writer."""

    module_name: str
    type_definitions_head_code: str = ""
    type_definitions_cpp_code: str = ""
    registration_head_code: str = ""
    replicator_codes: List[ReplicatorCode] = field(default_factory=list)
    global_struct_code: str = ""
    global_struct_proto_definitions: str = ""
    channel_data_processor_head_code: str = ""
    channel_data_proto_definitions: str = ""

    @property
    def channel_data_head_file_name(self) -> str:
        return channel_data_head_file_name(self.module_name)

    @property
    def channel_data_proto_file_name(self) -> str:
        return channel_data_proto_file_name(self.module_name)

    def artifacts(self) -> List[Tuple[str, str]]:
        """Return ``(file name, text)`` pairs in write order."""
        items: List[Tuple[str, str]] = [
            (TYPE_DEFINITIONS_HEAD_FILE, self.type_definitions_head_code),
            (TYPE_DEFINITIONS_CPP_FILE, self.type_definitions_cpp_code),
        ]
        for code in self.replicator_codes:
            items.append((code.head_file_name, code.head_code))
            items.append((code.cpp_file_name, code.cpp_code))
            items.append((code.proto_file_name, code.proto_definitions))
        items.append((REGISTRATION_HEAD_FILE, self.registration_head_code))
        items.append((GLOBAL_STRUCT_HEAD_FILE, self.global_struct_code))
        items.append((GLOBAL_STRUCT_PROTO_FILE, self.global_struct_proto_definitions))
        items.append((self.channel_data_head_file_name, self.channel_data_processor_head_code))
        items.append((self.channel_data_proto_file_name, self.channel_data_proto_definitions))
        return items


class BundleAssembler:
    """Builds a CodeBundle from target classes in caller-supplied order."""

    def __init__(
        self,
        resolver: ModuleResolver,
        *,
        ignore_list: IgnoreList | None = None,
        renderer: CodeRenderer | None = None,
    ) -> None:
        self.resolver = resolver
        self.ignore_list = ignore_list or IgnoreList()
        self.renderer = renderer or CodeRenderer()
        self.logger = get_logger("assembler")

    def new_run(self) -> GenerationRun:
        return GenerationRun(resolver=self.resolver, ignore_list=self.ignore_list)

    def describe_all(
        self,
        target_classes: Iterable[ClassDescriptor],
        proto_package_name: str,
        go_package_import_path: str,
    ) -> List[ActorDescriptor]:
        """Describe every class; ignored classes are skipped, other errors propagate."""
        run = self.new_run()
        descriptors: List[ActorDescriptor] = []
        for cls in target_classes:
            try:
                descriptor = describe(cls, run, proto_package_name, go_package_import_path)
            except IgnoredError:
                self.logger.debug("Skipping ignored class %s", cls.cpp_name)
                continue
            descriptors.append(descriptor)
        return descriptors

    def assemble(
        self,
        target_classes: Sequence[ClassDescriptor],
        module_dir: Path | str,
        proto_package_name: str,
        go_package_import_path: str,
    ) -> CodeBundle:
        descriptors = self.describe_all(target_classes, proto_package_name, go_package_import_path)
        module_name = sanitize_identifier(Path(module_dir).name) or "Default"
        renderer = self.renderer

        shared_params = self._collect_shared_params(descriptors)
        codes: List[ReplicatorCode] = []
        for descriptor in descriptors:
            codes.append(
                ReplicatorCode(
                    descriptor=descriptor,
                    head_file_name=descriptor.head_file_name,
                    head_code=renderer.replicator_head(descriptor, shared_params),
                    cpp_file_name=descriptor.cpp_file_name,
                    cpp_code=renderer.replicator_cpp(descriptor, shared_params),
                    proto_file_name=descriptor.proto_file_name,
                    proto_definitions=renderer.actor_proto(descriptor),
                    include_actor_code=renderer.include_actor(descriptor),
                    register_replicator_code=renderer.register_replicator(descriptor),
                )
            )

        bundle = CodeBundle(module_name=module_name, replicator_codes=codes)
        ordered_shared = list(shared_params.values())
        bundle.type_definitions_head_code = renderer.type_definitions_head(ordered_shared)
        bundle.type_definitions_cpp_code = renderer.type_definitions_cpp(ordered_shared)
        bundle.registration_head_code = renderer.registration_head(
            descriptors, [code.register_replicator_code for code in codes]
        )

        structs = self._collect_global_structs(descriptors)
        bundle.global_struct_code = renderer.global_struct_head(structs, proto_package_name)
        bundle.global_struct_proto_definitions = renderer.global_struct_proto(
            structs, proto_package_name, go_package_import_path
        )

        self._assemble_channel_data(bundle, proto_package_name, go_package_import_path)
        self.logger.debug(
            "Assembled %d replicators for module %s (%d shared parameter shapes, %d global structs)",
            len(codes),
            module_name,
            len(ordered_shared),
            len(structs),
        )
        return bundle

    # ------------------------------------------------------------------
    # Internal helpers

    def _assemble_channel_data(
        self,
        bundle: CodeBundle,
        proto_package_name: str,
        go_package_import_path: str,
    ) -> None:
        renderer = self.renderer
        codes = bundle.replicator_codes
        entries = self._channel_data_entries([code.descriptor for code in codes])

        by_name: Dict[str, int] = {}
        for index, code in enumerate(codes):
            source = code.descriptor.source
            by_name.setdefault(source.name, index)
            by_name.setdefault(source.cpp_name, index)

        children_of: Dict[int, List[int]] = {}
        nested: Set[int] = set()
        for index, code in enumerate(codes):
            for component in code.descriptor.components:
                child_index = by_name.get(component)
                if child_index is None:
                    self.logger.debug(
                        "Component %s of %s was not generated; omitting it from channel data",
                        component,
                        code.descriptor.cpp_name,
                    )
                    continue
                if child_index == index:
                    continue
                if child_index in nested:
                    # Merged once, under its first owner in input order.
                    self.logger.debug(
                        "Component %s of %s is already merged by another owner",
                        component,
                        code.descriptor.cpp_name,
                    )
                    continue
                children_of.setdefault(index, []).append(child_index)
                nested.add(child_index)

        def render_merge(index: int, visiting: Tuple[int, ...]) -> str:
            child_codes = [
                render_merge(child, visiting + (index,))
                for child in children_of.get(index, [])
                if child not in visiting
            ]
            return renderer.merge_code(entries[index], child_codes)

        for index, code in enumerate(codes):
            code.path_fname_var_decl = renderer.path_fname_decl(code.descriptor)
            code.merge_code = render_merge(index, ())
            code.get_state_code = renderer.get_state_code(entries[index])
            code.set_state_code = renderer.set_state_code(entries[index])

        # A class owned by another is merged inside its parent's block; a class
        # that is only owned through a cycle stays top-level.
        top_level = [
            code.merge_code
            for index, code in enumerate(codes)
            if index not in nested or self._in_cycle(index, children_of)
        ]

        message_name = f"{bundle.module_name}ChannelData"
        proto_file = bundle.channel_data_proto_file_name
        bundle.channel_data_processor_head_code = renderer.channel_data_processor_head(
            module_name=bundle.module_name,
            message_name=message_name,
            proto_head_file=proto_file[: -len(".proto")] + PROTO_PB_HEAD_EXTENSION,
            proto_package_name=proto_package_name,
            path_fname_decls=[code.path_fname_var_decl for code in codes],
            merge_codes=top_level,
            get_state_codes=[code.get_state_code for code in codes],
            set_state_codes=[code.set_state_code for code in codes],
        )
        bundle.channel_data_proto_definitions = renderer.channel_data_proto(
            message_name=message_name,
            entries=entries,
            proto_package_name=proto_package_name,
            go_package_import_path=go_package_import_path,
        )

    @staticmethod
    def _in_cycle(index: int, children_of: Dict[int, List[int]]) -> bool:
        stack = list(children_of.get(index, []))
        seen: Set[int] = set()
        while stack:
            current = stack.pop()
            if current == index:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(children_of.get(current, []))
        return False

    @staticmethod
    def _channel_data_entries(descriptors: Sequence[ActorDescriptor]) -> List[ChannelDataEntry]:
        entries: List[ChannelDataEntry] = []
        used: Set[str] = set()
        for number, descriptor in enumerate(descriptors, start=1):
            base = descriptor.channel_data_field_name
            field_name = base
            suffix = 1
            while field_name in used:
                field_name = f"{base}_{suffix}"
                suffix += 1
            used.add(field_name)
            entries.append(ChannelDataEntry(descriptor=descriptor, field_name=field_name, number=number))
        return entries

    @staticmethod
    def _collect_shared_params(descriptors: Sequence[ActorDescriptor]) -> Dict[Tuple[str, ...], SharedParams]:
        counts: Dict[Tuple[str, ...], int] = {}
        first_use: Dict[Tuple[str, ...], Tuple[ActorDescriptor, int]] = {}
        owners: Dict[Tuple[str, ...], List[str]] = {}
        for descriptor in descriptors:
            for rpc_index, rpc in enumerate(descriptor.rpcs):
                shape = rpc.shape
                if not shape:
                    continue
                counts[shape] = counts.get(shape, 0) + 1
                first_use.setdefault(shape, (descriptor, rpc_index))
                includes = owners.setdefault(shape, [])
                if descriptor.include_path not in includes:
                    includes.append(descriptor.include_path)

        shared: Dict[Tuple[str, ...], SharedParams] = {}
        for shape, count in counts.items():
            if count < 2:
                continue
            descriptor, rpc_index = first_use[shape]
            shared[shape] = SharedParams(
                name=f"{SHARED_PARAMS_PREFIX}{len(shared)}",
                shape=shape,
                fields=descriptor.rpcs[rpc_index].params,
                include_paths=tuple(owners[shape]),
            )
        return shared

    @staticmethod
    def _collect_global_structs(descriptors: Sequence[ActorDescriptor]) -> List[StructDefinition]:
        structs: Dict[str, StructDefinition] = {}
        for descriptor in descriptors:
            for definition in descriptor.global_structs:
                structs.setdefault(definition.cpp_name, definition)
        return list(structs.values())


__all__ = ["BundleAssembler", "CodeBundle", "ReplicatorCode"]
