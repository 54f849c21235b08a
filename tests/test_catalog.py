"""Tests for the class catalog and ignore list."""

from __future__ import annotations

from pathlib import Path

import pytest

from repgen.catalog import ClassCatalog, IgnoreList, load_catalog
from repgen.errors import MalformedError, NotFoundError

from tests._fixtures.project_builder import make_class


def test_load_catalog_parses_classes(tmp_path: Path) -> None:
    path = tmp_path / "classes.yml"
    path.write_text(
        "classes:\n"
        "  - name: MyPawn\n"
        "    prefix: A\n"
        "    module: Game\n"
        "    properties:\n"
        "      - {name: Score, type: int32}\n"
        "      - {name: Secret, type: int32, replicated: false}\n"
        "    rpcs:\n"
        "      - name: ServerFire\n"
        "        reliable: false\n"
        "        params:\n"
        "          - {name: Power, type: float}\n"
        "    components: [HealthComponent]\n",
        encoding="utf-8",
    )

    catalog = load_catalog(path)
    pawn = catalog.get("MyPawn")

    assert catalog.get("AMyPawn") is pawn
    assert len(catalog) == 1
    assert pawn.package_path == "/Script/MyPawn"
    assert [prop.name for prop in pawn.properties] == ["Score", "Secret"]
    assert pawn.properties[1].replicated is False
    assert pawn.rpcs[0].kind == "Server"
    assert pawn.rpcs[0].reliable is False
    assert pawn.rpcs[0].params[0].cpp_type == "float"
    assert pawn.components == ["HealthComponent"]


def test_catalog_get_unknown_raises() -> None:
    catalog = ClassCatalog([make_class("Door")])
    assert "ADoor" in catalog
    with pytest.raises(NotFoundError, match="Window"):
        catalog.get("Window")


def test_load_catalog_errors(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError, match="classes.yml"):
        load_catalog(tmp_path / "classes.yml")

    broken = tmp_path / "broken.yml"
    broken.write_text("classes: [unclosed\n", encoding="utf-8")
    with pytest.raises(MalformedError):
        load_catalog(broken)

    nameless = tmp_path / "nameless.yml"
    nameless.write_text("classes:\n  - prefix: A\n", encoding="utf-8")
    with pytest.raises(MalformedError, match="name"):
        load_catalog(nameless)


def test_ignore_list_matches_names_flags_and_paths() -> None:
    ignore = IgnoreList(classes=["ADoor"], path_patterns=["/Script/Engine.*"])

    assert ignore.matches(make_class("Door")) is True
    assert ignore.matches(make_class("Light", package_path="/Script/Engine.Light")) is True
    assert ignore.matches(make_class("Ghost", ignored=True)) is True
    assert ignore.matches(make_class("MyPawn")) is False
