"""CLI entrypoints for repgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import CONFIG_FILE_NAME, ConfigError, load_config
from .errors import GenerationError, NotFoundError
from .logging import configure_logging
from .orchestrator import GenerationResult, Orchestrator, normalize_class_names


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repgen",
        description="Generate replicator code and protobuf schemas for replicated actor classes.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=CONFIG_FILE_NAME,
        help=f"Path to the {CONFIG_FILE_NAME} file or the directory holding it.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate replicators for the named classes.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument(
        "classes",
        nargs="*",
        help="Catalog class names to generate, in order.",
    )
    generate_parser.add_argument(
        "--all",
        action="store_true",
        help="Generate every catalog class that is not ignored.",
    )
    generate_parser.add_argument(
        "--proto-package",
        default=None,
        help="Protobuf package name for the generated schemas.",
    )
    generate_parser.add_argument(
        "--go-import-prefix",
        default=None,
        help="Prefix joined with the package name to form the go_package option.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List classes that currently have generated replicators.",
    )
    _add_verbose_option(list_parser, suppress_default=True)

    protos_parser = subparsers.add_parser(
        "protos",
        help="List generated protobuf schema files.",
    )
    _add_verbose_option(protos_parser, suppress_default=True)

    remove_parser = subparsers.add_parser(
        "remove",
        help="Delete the generated files of the named replicators.",
    )
    _add_verbose_option(remove_parser, suppress_default=True)
    remove_parser.add_argument("names", nargs="+", help="Generated identifiers to remove.")

    clean_parser = subparsers.add_parser(
        "clean",
        help="Delete everything in the generated code directory.",
    )
    _add_verbose_option(clean_parser, suppress_default=True)

    status_parser = subparsers.add_parser(
        "status",
        help="Show the last generation run and whether regeneration is needed.",
    )
    _add_verbose_option(status_parser, suppress_default=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    orchestrator = Orchestrator(config)

    if args.command == "generate":
        try:
            if args.all:
                targets = orchestrator.replicable_classes()
            elif args.classes:
                targets = [orchestrator.catalog.get(name) for name in args.classes]
            else:
                parser.exit(1, "Nothing to generate: name classes or pass --all.\n")
            result = orchestrator.run(
                targets,
                proto_package_name=args.proto_package,
                go_package_import_path_prefix=args.go_import_prefix,
            )
        except NotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except GenerationError as exc:
            parser.exit(1, f"repgen generate failed: {exc}\nRun with --verbose for more details.\n")
        _report(parser, result)
    elif args.command == "list":
        for identifier in orchestrator.get_generated_target_classes():
            print(identifier)
    elif args.command == "protos":
        for file_name in orchestrator.get_generated_proto_files():
            print(file_name)
    elif args.command == "remove":
        names = normalize_class_names(args.names)
        if not names:
            parser.exit(1, "No valid replicator names given.\n")
        orchestrator.remove_generated_replicators(names)
        print(f"Removed generated files for {len(names)} replicator(s)")
    elif args.command == "clean":
        count = orchestrator.remove_generated_code_files()
        print(f"Removed {count} entries from {_relativize(orchestrator.replicator_storage_dir)}")
    elif args.command == "status":
        _print_status(orchestrator)
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port, orchestrator_factory=lambda: Orchestrator(config))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _report(parser: argparse.ArgumentParser, result: GenerationResult) -> None:
    if not result.success:
        parser.exit(1, f"repgen generate failed: {result.message}\nRun with --verbose for more details.\n")
    print(f"Generated {result.generated} of {result.requested} replicator(s)")
    if result.failed:
        print(f"{len(result.failed)} file(s) could not be written: {result.message}")


def _print_status(orchestrator: Orchestrator) -> None:
    try:
        manifest = orchestrator.load_latest_generated_manifest()
    except GenerationError as exc:
        print(f"No generation recorded ({exc})")
        return
    print(f"Last generated: {manifest.generated_time.isoformat()}")
    print(f"Proto package: {manifest.proto_package_name or '(unknown)'}")
    if orchestrator.config.class_catalog is None or orchestrator.config.module_manifest is None:
        return
    try:
        stale = orchestrator.needs_regeneration(orchestrator.replicable_classes())
    except GenerationError as exc:
        print(f"Unable to check inputs: {exc}")
        return
    print("Regeneration needed" if stale else "Up to date")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
