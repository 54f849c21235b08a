"""Tests for repgen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from repgen.config import ConfigError, GeneratorConfig, load_config
from repgen.models import ClassDescriptor


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, GeneratorConfig)
    assert config.root == tmp_path.resolve()
    assert config.resolved_module_dir == tmp_path.resolve()
    assert config.replicator_storage_dir == tmp_path.resolve() / "ChanneldGenerated"
    assert config.manifest_path == (
        tmp_path.resolve() / "Intermediate" / "ReplicatorGenerator" / "GeneratedManifest.json"
    )
    assert config.proto_package_name == "channeldgenpb"
    assert config.go_package_import_path_prefix == ""
    assert config.module_manifest is None
    assert config.class_catalog is None
    assert config.ignore.classes == []


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".repgen.yml"
    config_file.write_text(
        """
module_dir: "Source/MyGame"
generated_dir: "Replicators"
intermediate_dir: "/var/tmp/repgen"
manifest_file: "Last.json"
proto_package_name: "mygamepb"
go_package_import_path_prefix: "github.com/acme/"
module_manifest: "modules.yml"
class_catalog: "reflection/classes.json"
templates_dir: "templates"
ignore:
  classes: [ADebugActor, UEditorOnlyComponent]
  paths:
    - "/Script/Engine.*"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)
    root = tmp_path.resolve()

    assert config.module_dir == root / "Source" / "MyGame"
    assert config.replicator_storage_dir == root / "Source" / "MyGame" / "Replicators"
    assert config.manifest_path == Path("/var/tmp/repgen/Last.json")
    assert config.proto_package_name == "mygamepb"
    assert config.go_package_import_path_prefix == "github.com/acme/"
    assert config.module_manifest == root / "modules.yml"
    assert config.class_catalog == root / "reflection" / "classes.json"
    assert config.templates_dir == root / "templates"

    ignore_list = config.ignore.to_ignore_list()
    assert ignore_list.classes == ["ADebugActor", "UEditorOnlyComponent"]
    assert ignore_list.matches(
        ClassDescriptor(name="Light", module="Engine", package_path="/Script/Engine.Light")
    )


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    config_file = tmp_path / ".repgen.yml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(config_file)


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    config_file = tmp_path / ".repgen.yml"
    config_file.write_text("module_dir: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match=".repgen.yml"):
        load_config(config_file)
