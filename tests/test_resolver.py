"""Tests for repgen.resolver."""

from __future__ import annotations

from pathlib import Path

import pytest

from repgen.errors import MalformedError, NotFoundError, NotPrimedError
from repgen.resolver import ModuleResolver

from tests._fixtures.project_builder import MODULE_BASE_DIR


def test_lookup_before_priming_raises() -> None:
    resolver = ModuleResolver()
    assert resolver.primed is False
    with pytest.raises(NotPrimedError):
        resolver.resolve("AMyPawn")
    with pytest.raises(NotPrimedError):
        resolver.can_resolve("AMyPawn")


def test_resolve_joins_relative_headers_to_base_dir(resolver: ModuleResolver) -> None:
    assert resolver.resolve("AMyPawn") == MODULE_BASE_DIR / "Public" / "MyPawn.h"
    assert resolver.module_for("ADoor").name == "Game"
    assert resolver.can_resolve("ADoor") is True
    assert resolver.can_resolve("AUnknown") is False


def test_resolve_unknown_class_raises_not_found(resolver: ModuleResolver) -> None:
    with pytest.raises(NotFoundError, match="AUnknown"):
        resolver.resolve("AUnknown")


def test_first_declaration_wins() -> None:
    resolver = ModuleResolver()
    resolver.load_manifest(
        {
            "modules": [
                {"name": "Core", "base_dir": "/src/Core", "headers": {"Thing.h": ["AThing"]}},
                {"name": "Game", "base_dir": "/src/Game", "headers": {"Other.h": ["AThing"]}},
            ]
        }
    )
    assert resolver.resolve("AThing") == Path("/src/Core/Thing.h")
    assert resolver.module_for("AThing").name == "Core"


def test_load_manifest_from_file(tmp_path: Path) -> None:
    manifest_path = tmp_path / "modules.yml"
    manifest_path.write_text(
        "modules:\n"
        "  - name: Game\n"
        "    base_dir: Source/Game\n"
        "    headers:\n"
        "      Public/MyPawn.h: [AMyPawn]\n",
        encoding="utf-8",
    )
    resolver = ModuleResolver()
    manifest = resolver.load_manifest(manifest_path)

    assert list(manifest.modules) == ["Game"]
    assert resolver.resolve("AMyPawn") == tmp_path / "Source" / "Game" / "Public" / "MyPawn.h"


def test_load_manifest_missing_file(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError, match="modules.yml"):
        ModuleResolver().load_manifest(tmp_path / "modules.yml")


def test_load_manifest_rejects_malformed_modules() -> None:
    with pytest.raises(MalformedError):
        ModuleResolver().load_manifest({"modules": {"name": "Game"}})
    with pytest.raises(MalformedError):
        ModuleResolver().load_manifest({"modules": [{"name": "Game", "headers": {"A.h": "AThing"}}]})
