"""Tests for the generated manifest store."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from repgen.errors import DirMissingError, MalformedError, NotFoundError
from repgen.models import GeneratedManifest
from repgen.stores import ManifestStore


def test_manifest_round_trip(tmp_path: Path) -> None:
    store = ManifestStore()
    path = tmp_path / "GeneratedManifest.json"
    manifest = GeneratedManifest(
        generated_time=datetime(2024, 5, 1, 12, 30, 15, tzinfo=UTC),
        proto_package_name="mygamepb",
    )

    store.save(manifest, path)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "GeneratedTime": int(manifest.generated_time.timestamp()),
        "ProtoPackageName": "mygamepb",
    }
    assert store.load(path) == manifest
    assert [entry.name for entry in tmp_path.iterdir()] == ["GeneratedManifest.json"]


def test_load_missing_manifest_names_the_path(tmp_path: Path) -> None:
    path = tmp_path / "missing" / "GeneratedManifest.json"
    with pytest.raises(NotFoundError) as excinfo:
        ManifestStore().load(path)
    assert str(path) in str(excinfo.value)


def test_load_tolerates_missing_fields(
    tmp_path: Path, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(logging.getLogger("repgen"), "propagate", True)
    path = tmp_path / "GeneratedManifest.json"
    path.write_text(json.dumps({"ProtoPackageName": "mygamepb"}), encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="repgen.stores.manifest"):
        manifest = ManifestStore().load(path)

    assert manifest.proto_package_name == "mygamepb"
    assert manifest.generated_time == datetime.fromtimestamp(0, tz=UTC)
    assert "GeneratedTime" in caplog.text


def test_load_malformed_manifest(tmp_path: Path) -> None:
    path = tmp_path / "GeneratedManifest.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(MalformedError):
        ManifestStore().load(path)

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(MalformedError):
        ManifestStore().load(path)


def test_save_requires_existing_directory(tmp_path: Path) -> None:
    with pytest.raises(DirMissingError):
        ManifestStore().save(GeneratedManifest(), tmp_path / "absent" / "GeneratedManifest.json")


def test_is_stale(tmp_path: Path) -> None:
    source = tmp_path / "Pawn.h"
    source.write_text("class APawn;\n", encoding="utf-8")
    os.utime(source, (1_000, 1_000))
    manifest = GeneratedManifest(
        generated_time=datetime.fromtimestamp(2_000, tz=UTC), proto_package_name="pb"
    )

    assert ManifestStore.is_stale(manifest, proto_package_name="pb", sources=[source]) is False
    assert ManifestStore.is_stale(manifest, proto_package_name="otherpb", sources=[source]) is True
    os.utime(source, (3_000, 3_000))
    assert ManifestStore.is_stale(manifest, proto_package_name="pb", sources=[source]) is True
    assert ManifestStore.is_stale(manifest, proto_package_name="pb", sources=[tmp_path / "gone.h"]) is True


@pytest.mark.parametrize("generated_time", ["1e20", "NaN", "-1e20"])
def test_load_out_of_range_generated_time_keeps_default(
    tmp_path: Path,
    generated_time: str,
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(logging.getLogger("repgen"), "propagate", True)
    path = tmp_path / "GeneratedManifest.json"
    path.write_text(
        f'{{"GeneratedTime": {generated_time}, "ProtoPackageName": "mygamepb"}}', encoding="utf-8"
    )

    with caplog.at_level(logging.WARNING, logger="repgen.stores.manifest"):
        manifest = ManifestStore().load(path)

    assert manifest.proto_package_name == "mygamepb"
    assert manifest.generated_time == datetime.fromtimestamp(0, tz=UTC)
    assert "GeneratedTime" in caplog.text


def test_is_stale_ignores_fractions_within_the_recorded_second(tmp_path: Path) -> None:
    source = tmp_path / "Pawn.h"
    source.write_text("class APawn;\n", encoding="utf-8")
    os.utime(source, (2_000.25, 2_000.25))
    store = ManifestStore()
    path = tmp_path / "GeneratedManifest.json"
    store.save(
        GeneratedManifest(generated_time=datetime.fromtimestamp(2_000.75, tz=UTC), proto_package_name="pb"),
        path,
    )

    manifest = store.load(path)

    assert ManifestStore.is_stale(manifest, proto_package_name="pb", sources=[source]) is False
    os.utime(source, (2_001.0, 2_001.0))
    assert ManifestStore.is_stale(manifest, proto_package_name="pb", sources=[source]) is True
