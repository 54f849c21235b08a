"""Pipeline orchestration for replicator generation runs."""

from __future__ import annotations

import shutil
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from .assembler import BundleAssembler, CodeBundle
from .catalog import ClassCatalog, IgnoreList, load_catalog
from .config import GeneratorConfig
from .errors import GenerationError, NotFoundError
from .logging import get_logger
from .models import ClassDescriptor, GeneratedManifest
from .naming import (
    PROTO_FILE_EXTENSION,
    generated_file_names,
    match_generated_replicator,
    sanitize_identifier,
)
from .rendering import CodeRenderer
from .resolver import ManifestSource, ModuleResolver
from .stores import ManifestStore


class FileWriter(Protocol):
    """Collaborator that persists one generated artifact."""

    def write(self, path: Path, content: str) -> None:
        ...


class LocalFileWriter:
    """Writes artifacts to the local filesystem."""

    def write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@dataclass
class GenerationResult:
    """Outcome of a generation run."""

    success: bool
    message: str
    requested: int
    generated: int = 0
    written: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    error: Optional[Exception] = None


class Orchestrator:
    """Coordinates resolution, assembly, file writes and the manifest update.

    Instances are constructed by the caller; a single instance refuses to
    start a second run while one is in progress.
    """

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        *,
        module_manifest: ManifestSource | None = None,
        catalog: ClassCatalog | None = None,
        writer: FileWriter | None = None,
        store: ManifestStore | None = None,
        renderer: CodeRenderer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or GeneratorConfig(root=Path.cwd())
        self._module_manifest = module_manifest
        self._catalog = catalog
        self.writer = writer or LocalFileWriter()
        self.store = store or ManifestStore()
        self.renderer = renderer or CodeRenderer(self.config.templates_dir)
        self.ignore_list: IgnoreList = self.config.ignore.to_ignore_list()
        self.logger = get_logger("orchestrator")
        self._clock = clock or (lambda: datetime.now(UTC))
        self._run_lock = threading.Lock()
        self._resolver: Optional[ModuleResolver] = None

    # ------------------------------------------------------------------
    # Directories and defaults

    @property
    def default_module_dir(self) -> Path:
        return self.config.resolved_module_dir

    @property
    def replicator_storage_dir(self) -> Path:
        return self.config.replicator_storage_dir

    @property
    def default_module_name(self) -> str:
        return self.default_module_dir.name

    @property
    def default_proto_package_name(self) -> str:
        return self.config.proto_package_name

    @property
    def catalog(self) -> ClassCatalog:
        if self._catalog is None:
            if self.config.class_catalog is None:
                raise NotFoundError("No class catalog configured")
            self._catalog = load_catalog(self.config.class_catalog)
        return self._catalog

    # ------------------------------------------------------------------
    # Generation

    def run(
        self,
        target_classes: Sequence[ClassDescriptor],
        module_dir: Path | str | None = None,
        proto_package_name: str | None = None,
        go_package_import_path_prefix: str | None = None,
    ) -> GenerationResult:
        """Generate replicators for ``target_classes`` and record the manifest."""
        if not self._run_lock.acquire(blocking=False):
            raise GenerationError("A generation run is already in progress")
        try:
            return self._run(
                list(target_classes),
                Path(module_dir) if module_dir else self.default_module_dir,
                proto_package_name or self.default_proto_package_name,
                go_package_import_path_prefix
                if go_package_import_path_prefix is not None
                else self.config.go_package_import_path_prefix,
            )
        finally:
            self._run_lock.release()

    def generate_for_names(
        self,
        class_names: Iterable[str],
        **kwargs: object,
    ) -> GenerationResult:
        """Look up classes in the catalog by name and generate them in order."""
        targets = [self.catalog.get(name) for name in class_names]
        return self.run(targets, **kwargs)  # type: ignore[arg-type]

    def replicable_classes(self) -> List[ClassDescriptor]:
        """Catalog classes that are not on the ignore list, in catalog order."""
        return [cls for cls in self.catalog if not self.ignore_list.matches(cls)]

    def _run(
        self,
        targets: List[ClassDescriptor],
        module_dir: Path,
        proto_package_name: str,
        go_package_import_path_prefix: str,
    ) -> GenerationResult:
        self.logger.info("Start generating %d replicators", len(targets))
        go_package_import_path = go_package_import_path_prefix + proto_package_name

        try:
            resolver = self.start_generate_replicator()
            assembler = BundleAssembler(resolver, ignore_list=self.ignore_list, renderer=self.renderer)
            bundle = assembler.assemble(targets, module_dir, proto_package_name, go_package_import_path)
        except GenerationError as exc:
            self.logger.error("Failed to generate replicators: %s", exc)
            return GenerationResult(success=False, message=str(exc), requested=len(targets), error=exc)

        # Artifacts always land in replicator_storage_dir; module_dir only names the module.
        written, failed, first_error = self._write_bundle(bundle, self.replicator_storage_dir)
        for code in bundle.replicator_codes:
            self.logger.debug(
                "The replicator for [%s] was generated. Package path: %s, head file: %s, cpp file: %s, proto file: %s",
                code.descriptor.origin_name,
                code.descriptor.package_path,
                code.head_file_name,
                code.cpp_file_name,
                code.proto_file_name,
            )

        generated = len(bundle.replicator_codes)
        self.logger.info(
            "The generation of replicators is completed, %d replicators need to be generated, "
            "a total of %d replicators are generated",
            len(targets),
            generated,
        )

        manifest = GeneratedManifest(generated_time=self._clock(), proto_package_name=proto_package_name)
        try:
            self.save_generated_manifest(manifest)
        except GenerationError as exc:
            self.logger.error("Failed to save the generated manifest file, error message: %s", exc)
            return GenerationResult(
                success=False,
                message=str(exc),
                requested=len(targets),
                generated=generated,
                written=written,
                failed=failed,
                error=exc,
            )

        message = first_error or f"Generated {generated} of {len(targets)} replicators"
        return GenerationResult(
            success=True,
            message=message,
            requested=len(targets),
            generated=generated,
            written=written,
            failed=failed,
        )

    def start_generate_replicator(self) -> ModuleResolver:
        """Load the module manifest into a fresh resolver for this run."""
        source = self._module_manifest if self._module_manifest is not None else self.config.module_manifest
        if source is None:
            raise NotFoundError("No module manifest configured")
        resolver = ModuleResolver()
        resolver.load_manifest(source)
        self._resolver = resolver
        return resolver

    def _write_bundle(self, bundle: CodeBundle, storage_dir: Path) -> Tuple[List[Path], List[Path], Optional[str]]:
        written: List[Path] = []
        failed: List[Path] = []
        first_error: Optional[str] = None
        for file_name, content in bundle.artifacts():
            path = storage_dir / file_name
            try:
                self.writer.write(path, content)
            except (OSError, GenerationError) as exc:
                message = f"Failed to write {path}: {exc}"
                self.logger.warning(message)
                failed.append(path)
                if first_error is None:
                    first_error = message
                continue
            written.append(path)
        return written, failed, first_error

    # ------------------------------------------------------------------
    # Inspection

    def header_files_can_be_found(self, cls: ClassDescriptor) -> bool:
        resolver = self._resolver or self.start_generate_replicator()
        return resolver.can_resolve(cls.cpp_name) or resolver.can_resolve(cls.name)

    def is_ignored_actor(self, cls: ClassDescriptor) -> bool:
        return self.ignore_list.matches(cls)

    def get_generated_target_classes(self) -> List[str]:
        result: List[str] = []
        for path in self._storage_files():
            identifier = match_generated_replicator(path.name)
            if identifier is not None:
                result.append(identifier)
        return result

    def get_generated_proto_files(self) -> List[str]:
        return [path.name for path in self._storage_files() if path.name.endswith(PROTO_FILE_EXTENSION)]

    def needs_regeneration(
        self,
        target_classes: Sequence[ClassDescriptor],
        proto_package_name: str | None = None,
    ) -> bool:
        """Return True when the last recorded run is missing or older than its inputs."""
        try:
            manifest = self.load_latest_generated_manifest()
        except GenerationError as exc:
            self.logger.debug("Regeneration needed: %s", exc)
            return True

        resolver = self.start_generate_replicator()
        sources: List[Path] = []
        for cls in target_classes:
            if self.ignore_list.matches(cls):
                continue
            try:
                sources.append(resolver.resolve(cls.cpp_name))
            except NotFoundError:
                return True
        for extra in (self.config.module_manifest, self.config.class_catalog):
            if extra is not None:
                sources.append(extra)
        return ManifestStore.is_stale(
            manifest,
            proto_package_name=proto_package_name or self.default_proto_package_name,
            sources=sources,
        )

    # ------------------------------------------------------------------
    # Removal

    def remove_generated_replicator(self, class_name: str) -> List[Path]:
        """Delete the five conventional files for ``class_name``; missing files are fine."""
        targets = [self.replicator_storage_dir / name for name in generated_file_names(class_name)]
        for path in targets:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                self.logger.warning("Unable to delete %s: %s", path, exc)
        return targets

    def remove_generated_replicators(self, class_names: Iterable[str]) -> List[Path]:
        removed: List[Path] = []
        for class_name in class_names:
            removed.extend(self.remove_generated_replicator(class_name))
        return removed

    def remove_generated_code_files(self) -> int:
        """Wipe everything inside the storage directory, keeping the directory."""
        count = 0
        for path in self._storage_files(include_dirs=True):
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as exc:
                self.logger.warning("Unable to delete %s: %s", path, exc)
                continue
            count += 1
        return count

    def _storage_files(self, *, include_dirs: bool = False) -> List[Path]:
        storage_dir = self.replicator_storage_dir
        if not storage_dir.is_dir():
            return []
        return sorted(
            path for path in storage_dir.iterdir() if include_dirs or path.is_file()
        )

    # ------------------------------------------------------------------
    # Generated manifest

    def load_latest_generated_manifest(self, path: Path | None = None) -> GeneratedManifest:
        return self.store.load(path or self.config.manifest_path)

    def save_generated_manifest(self, manifest: GeneratedManifest, path: Path | None = None) -> None:
        if path is None:
            self._ensure_intermediate_dir()
            path = self.config.manifest_path
        self.store.save(manifest, path)

    def _ensure_intermediate_dir(self) -> None:
        self.config.resolved_intermediate_dir.mkdir(parents=True, exist_ok=True)


def normalize_class_names(names: Iterable[str]) -> List[str]:
    """Strip whitespace and drop names that cannot identify generated files."""
    result: List[str] = []
    for name in names:
        cleaned = name.strip()
        if cleaned and sanitize_identifier(cleaned) == cleaned:
            result.append(cleaned)
    return result


__all__ = [
    "FileWriter",
    "GenerationResult",
    "LocalFileWriter",
    "Orchestrator",
    "normalize_class_names",
]
