"""Persistence of the generated manifest written after each successful run."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

from ..errors import DirMissingError, MalformedError, NotFoundError, WriteFailedError
from ..logging import get_logger
from ..models import GeneratedManifest

GENERATED_TIME_FIELD = "GeneratedTime"
PROTO_PACKAGE_NAME_FIELD = "ProtoPackageName"


class ManifestStore:
    """Loads and atomically saves the GeneratedManifest JSON document.

    The manifest is advisory: missing fields degrade to defaults with a
    warning, while unreadable or malformed files raise.
    """

    def __init__(self) -> None:
        self.logger = get_logger("stores.manifest")

    def load(self, path: Path) -> GeneratedManifest:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            raise NotFoundError(f"Unable to load GeneratedManifest: {path}") from None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedError(f"GeneratedManifest is malformed: {path}") from exc
        if not isinstance(data, dict):
            raise MalformedError(f"GeneratedManifest is malformed: {path}")

        manifest = GeneratedManifest()
        generated_time = data.get(GENERATED_TIME_FIELD)
        if isinstance(generated_time, (int, float)) and not isinstance(generated_time, bool):
            try:
                manifest.generated_time = datetime.fromtimestamp(generated_time, tz=UTC)
            except (OverflowError, ValueError, OSError):
                self.logger.warning(
                    "Invalid value of field '%s' in %s: %r", GENERATED_TIME_FIELD, path, generated_time
                )
        else:
            self.logger.warning("Unable to find field '%s' in %s", GENERATED_TIME_FIELD, path)

        proto_package_name = data.get(PROTO_PACKAGE_NAME_FIELD)
        if isinstance(proto_package_name, str):
            manifest.proto_package_name = proto_package_name
        else:
            self.logger.warning("Unable to find field '%s' in %s", PROTO_PACKAGE_NAME_FIELD, path)
        return manifest

    def save(self, manifest: GeneratedManifest, path: Path) -> None:
        path = Path(path)
        if not path.parent.is_dir():
            raise DirMissingError(f"Unable to find the directory of GeneratedManifest: {path}")
        payload = {
            GENERATED_TIME_FIELD: int(manifest.generated_time.timestamp()),
            PROTO_PACKAGE_NAME_FIELD: manifest.proto_package_name,
        }
        temp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                json.dump(payload, handle, indent=2)
            os.replace(temp_name, path)
        except OSError as exc:
            if temp_name is not None and os.path.exists(temp_name):
                os.unlink(temp_name)
            raise WriteFailedError(f"Unable to save GeneratedManifest: {path} ({exc})") from exc
        self.logger.debug("Saved GeneratedManifest to %s", path)

    @staticmethod
    def is_stale(
        manifest: GeneratedManifest,
        *,
        proto_package_name: str,
        sources: Iterable[Path] = (),
    ) -> bool:
        """Return True when outputs recorded by ``manifest`` need regenerating."""
        if manifest.proto_package_name != proto_package_name:
            return True
        # GeneratedTime is stored in whole seconds.
        generated_at = int(manifest.generated_time.timestamp())
        for source in sources:
            try:
                if int(Path(source).stat().st_mtime) > generated_at:
                    return True
            except OSError:
                return True
        return False


__all__ = ["GENERATED_TIME_FIELD", "PROTO_PACKAGE_NAME_FIELD", "ManifestStore"]
