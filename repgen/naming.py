"""Generated identifiers and the artifact naming convention."""

from __future__ import annotations

import re
from typing import Dict, List, Set

HEAD_FILE_EXTENSION = ".h"
CPP_FILE_EXTENSION = ".cpp"
PROTO_FILE_EXTENSION = ".proto"
PROTO_PB_HEAD_EXTENSION = ".pb.h"
PROTO_PB_CPP_EXTENSION = ".pb.cc"

TYPE_DEFINITIONS_HEAD_FILE = "ChanneldReplicatorTypeDefinitions.h"
TYPE_DEFINITIONS_CPP_FILE = "ChanneldReplicatorTypeDefinitions.cpp"
REGISTRATION_HEAD_FILE = "ChanneldReplicatorRegistration.h"
GLOBAL_STRUCT_HEAD_FILE = "ChanneldGlobalStruct.h"
GLOBAL_STRUCT_PROTO_FILE = "ChanneldGlobalStruct.proto"

ILLEGAL_CLASS_NAME_PREFIX = "IllegalClassName"

GENERATED_REPLICATOR_PATTERN = re.compile(r"^Channeld(\w+)Replicator\.h$")

_INVALID_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def sanitize_identifier(name: str) -> str:
    """Replace characters that cannot appear in a C++ identifier."""
    return _INVALID_IDENTIFIER_CHARS.sub("_", name or "").strip("_")


def is_legal_identifier(name: str) -> bool:
    return bool(name) and not name[0].isdigit() and name == sanitize_identifier(name)


def to_snake_case(name: str) -> str:
    snake = _CAMEL_BOUNDARY.sub("_", sanitize_identifier(name)).lower()
    return re.sub(r"_+", "_", snake)


def replicator_head_file_name(identifier: str) -> str:
    return f"Channeld{identifier}Replicator{HEAD_FILE_EXTENSION}"


def replicator_cpp_file_name(identifier: str) -> str:
    return f"Channeld{identifier}Replicator{CPP_FILE_EXTENSION}"


def proto_file_name(identifier: str) -> str:
    return f"{identifier}{PROTO_FILE_EXTENSION}"


def replicator_class_name(identifier: str) -> str:
    return f"FChanneld{identifier}Replicator"


def registration_symbol(identifier: str) -> str:
    return f"Register{identifier}Replicator"


def channel_data_head_file_name(module_name: str) -> str:
    return f"ChannelData_{module_name}{HEAD_FILE_EXTENSION}"


def channel_data_proto_file_name(module_name: str) -> str:
    return f"ChannelData_{module_name}{PROTO_FILE_EXTENSION}"


def generated_file_names(identifier: str) -> List[str]:
    """Return the five per-class files produced for ``identifier``.

    The list covers the replicator body and header plus the schema and the two
    files protoc emits from it, in that order.
    """
    return [
        replicator_cpp_file_name(identifier),
        replicator_head_file_name(identifier),
        proto_file_name(identifier),
        f"{identifier}{PROTO_PB_HEAD_EXTENSION}",
        f"{identifier}{PROTO_PB_CPP_EXTENSION}",
    ]


def match_generated_replicator(file_name: str) -> str | None:
    """Return the class identifier encoded in a replicator header name."""
    match = GENERATED_REPLICATOR_PATTERN.match(file_name)
    if match is None:
        return None
    return match.group(1)


class NameDeduplicator:
    """Assigns collision-free identifiers within a single generation run.

    The first occurrence of a base name is returned unchanged. Repeats receive a
    ``_{n}`` suffix counted per base name, starting at 1. Names that do not
    survive sanitization are replaced by ``IllegalClassName{n}`` using a
    separate counter. Results depend only on the order of calls.
    """

    def __init__(self) -> None:
        self._assigned: Set[str] = set()
        self._same_name_counter: Dict[str, int] = {}
        self._illegal_name_index = 0

    def assign(self, base_name: str) -> str:
        candidate = sanitize_identifier(base_name)
        if not is_legal_identifier(candidate):
            return self._assign_illegal()

        if candidate not in self._assigned:
            self._assigned.add(candidate)
            return candidate

        counter = self._same_name_counter.get(candidate, 0)
        while True:
            counter += 1
            composed = f"{candidate}_{counter}"
            if composed not in self._assigned:
                break
        self._same_name_counter[candidate] = counter
        self._assigned.add(composed)
        return composed

    def _assign_illegal(self) -> str:
        while True:
            composed = f"{ILLEGAL_CLASS_NAME_PREFIX}{self._illegal_name_index}"
            self._illegal_name_index += 1
            if composed not in self._assigned:
                self._assigned.add(composed)
                return composed

    @property
    def assigned(self) -> Set[str]:
        return set(self._assigned)


__all__ = [
    "CPP_FILE_EXTENSION",
    "GENERATED_REPLICATOR_PATTERN",
    "GLOBAL_STRUCT_HEAD_FILE",
    "GLOBAL_STRUCT_PROTO_FILE",
    "HEAD_FILE_EXTENSION",
    "NameDeduplicator",
    "PROTO_FILE_EXTENSION",
    "REGISTRATION_HEAD_FILE",
    "TYPE_DEFINITIONS_CPP_FILE",
    "TYPE_DEFINITIONS_HEAD_FILE",
    "channel_data_head_file_name",
    "channel_data_proto_file_name",
    "generated_file_names",
    "is_legal_identifier",
    "match_generated_replicator",
    "proto_file_name",
    "registration_symbol",
    "replicator_class_name",
    "replicator_cpp_file_name",
    "replicator_head_file_name",
    "sanitize_identifier",
    "to_snake_case",
]
