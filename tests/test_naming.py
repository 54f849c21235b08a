"""Tests for generated identifiers and file naming."""

from __future__ import annotations

from repgen.naming import (
    NameDeduplicator,
    generated_file_names,
    match_generated_replicator,
    sanitize_identifier,
    to_snake_case,
)


def test_repeated_names_receive_numbered_suffixes() -> None:
    dedup = NameDeduplicator()
    assert [dedup.assign(name) for name in ["A", "B", "A"]] == ["A", "B", "A_1"]


def test_suffix_skips_names_already_taken() -> None:
    dedup = NameDeduplicator()
    assigned = [dedup.assign(name) for name in ["Pawn", "Pawn_1", "Pawn", "Pawn"]]
    assert assigned == ["Pawn", "Pawn_1", "Pawn_2", "Pawn_3"]
    assert len(set(assigned)) == len(assigned)


def test_illegal_names_use_separate_counter() -> None:
    dedup = NameDeduplicator()
    assert dedup.assign("9Lives") == "IllegalClassName0"
    assert dedup.assign("Pawn") == "Pawn"
    assert dedup.assign("???") == "IllegalClassName1"
    assert dedup.assigned == {"IllegalClassName0", "Pawn", "IllegalClassName1"}


def test_deduplicators_are_independent() -> None:
    first = NameDeduplicator()
    second = NameDeduplicator()
    first.assign("Pawn")
    assert second.assign("Pawn") == "Pawn"


def test_sanitize_and_snake_case() -> None:
    assert sanitize_identifier("My Pawn-C") == "My_Pawn_C"
    assert to_snake_case("PlayerScore") == "player_score"
    assert to_snake_case("bReplicatedMovement") == "b_replicated_movement"
    assert to_snake_case("HTTPServer") == "http_server"


def test_generated_file_names_cover_five_files() -> None:
    assert generated_file_names("Foo") == [
        "ChanneldFooReplicator.cpp",
        "ChanneldFooReplicator.h",
        "Foo.proto",
        "Foo.pb.h",
        "Foo.pb.cc",
    ]


def test_match_generated_replicator_only_matches_headers() -> None:
    assert match_generated_replicator("ChanneldFooReplicator.h") == "Foo"
    assert match_generated_replicator("ChanneldFoo_1Replicator.h") == "Foo_1"
    assert match_generated_replicator("ChanneldFooReplicator.cpp") is None
    assert match_generated_replicator("Foo.proto") is None
