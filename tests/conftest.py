from __future__ import annotations

import logging
from pathlib import Path

import pytest

from repgen.resolver import ModuleResolver
from tests._fixtures.project_builder import (
    MODULE_BASE_DIR,
    ProjectBuilder,
    make_class,
    module_manifest_for,
)


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture
def pawn_class():
    return make_class(
        "MyPawn",
        properties=[
            {"name": "Score", "type": "int32"},
            {"name": "PlayerName", "type": "FString"},
            {"name": "Inventory", "type": "TArray<int32>"},
            {"name": "LocalOnly", "type": "float", "replicated": False},
        ],
        rpcs=[
            {
                "name": "ServerFire",
                "kind": "Server",
                "params": [{"name": "Target", "type": "AActor*"}, {"name": "Power", "type": "float"}],
            }
        ],
    )


@pytest.fixture
def door_class():
    return make_class("Door", properties=[{"name": "bOpen", "type": "bool"}])


@pytest.fixture
def resolver(pawn_class, door_class) -> ModuleResolver:
    """A primed resolver declaring the pawn and door classes in Public/."""
    primed = ModuleResolver()
    primed.load_manifest(module_manifest_for(MODULE_BASE_DIR, [pawn_class, door_class]))
    return primed


@pytest.fixture(autouse=True)
def _reset_repgen_logger():
    """Drop handlers installed by CLI runs so they do not outlive captured streams."""
    yield
    logger = logging.getLogger("repgen")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
