"""CLI entrypoints for specbind commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, Mapping, TextIO

import yaml

from .config import CONFIG_FILE_NAME, resolve_config_path, load_config
from .errors import ConfigError, SpecbindError
from .events import DoneEvent, ProgressChannel, StatusEvent, SyncEvent
from .logging import configure_logging, event_log_sink
from .models import SourceConfig, is_rest_descriptor
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help=f"Project directory or {CONFIG_FILE_NAME} path (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="specbind",
        description="Generate framework bindings and documentation from OpenAPI specifications.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Fetch every source and regenerate bindings.")
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument("--source", help="Only synchronize the source with this id.")
    sync_parser.add_argument("--timeout", type=float, help="Abort the sync after this many seconds.")
    sync_parser.add_argument("--concurrency", type=int, help="Number of sources processed at once.")

    docs_parser = subparsers.add_parser("docs", help="Print documentation for a descriptor.")
    _add_verbose_option(docs_parser, suppress_default=True)
    _add_path_argument(docs_parser)
    docs_parser.add_argument("--source", required=True, help="Source id.")
    docs_parser.add_argument(
        "--descriptor",
        help="Descriptor id; lists the source's descriptors when omitted.",
    )

    sources_parser = subparsers.add_parser("sources", help="Manage configured sources.")
    _add_verbose_option(sources_parser, suppress_default=True)
    sources_sub = sources_parser.add_subparsers(dest="sources_command", required=True)

    add_parser = sources_sub.add_parser("add", help="Add an OpenAPI source.")
    add_parser.add_argument("id", help="Unique source id.")
    add_parser.add_argument("spec_url", help="URL or path of the OpenAPI document.")
    add_parser.add_argument("--name", help="Display name (defaults to the id).")
    add_parser.add_argument("--server-url", help="Upstream server URL used by server-side bindings.")
    add_parser.add_argument("--path", default=".", help="Project directory.")

    remove_parser = sources_sub.add_parser("remove", help="Remove a source.")
    remove_parser.add_argument("id", help="Source id.")
    remove_parser.add_argument("--path", default=".", help="Project directory.")

    list_parser = sources_sub.add_parser("list", help="List configured sources.")
    list_parser.add_argument("--path", default=".", help="Project directory.")

    init_parser = subparsers.add_parser("init", help="Create a starter configuration and run plugin setup.")
    _add_verbose_option(init_parser, suppress_default=True)
    _add_path_argument(init_parser)
    init_parser.add_argument("--generator", default="react", help="Generator to configure (default: react).")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service (requires the service extra).")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for specbind commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    orchestrator = Orchestrator()

    try:
        if args.command == "sync":
            _run_sync(parser, orchestrator, args)
        elif args.command == "docs":
            _run_docs(parser, orchestrator, args)
        elif args.command == "sources":
            _run_sources(parser, orchestrator, args)
        elif args.command == "init":
            _run_init(orchestrator, args)
        elif args.command == "serve":
            from .service import run_service

            run_service(host=args.host, port=args.port)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    except SpecbindError as exc:
        parser.exit(1, f"specbind {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _run_sync(parser: argparse.ArgumentParser, orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    config = load_config(Path(args.path))
    if args.concurrency is not None:
        if args.concurrency < 1:
            parser.exit(1, "--concurrency must be at least 1\n")
        config.concurrency = args.concurrency

    channel = ProgressChannel([_print_event, event_log_sink()])
    result = orchestrator.run_sync(config, channel, source_id=args.source, timeout=args.timeout)

    if result.stats:
        print(format_stats(result.stats))
    if not result.success:
        parser.exit(1, "specbind sync failed\n")
    orchestrator.post_build(config)


def _run_docs(parser: argparse.ArgumentParser, orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    config = load_config(Path(args.path))
    if not args.descriptor:
        for descriptor in orchestrator.descriptors(config, args.source):
            kind = "endpoint" if is_rest_descriptor(descriptor) else "schema"
            print(f"{descriptor.id}  {kind:<8}  {descriptor.name}")
        return
    try:
        tabs = orchestrator.documentation(config, args.source, args.descriptor)
    except KeyError as exc:
        parser.exit(1, f"{exc.args[0]}\n")
    for tab in tabs:
        print(f"=== {tab.name} ===")
        print(tab.content.rstrip("\n"))
        print()


def _run_sources(parser: argparse.ArgumentParser, orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    path = Path(args.path)
    if args.sources_command == "add":
        source = SourceConfig(id=args.id, name=args.name or args.id, spec_url=args.spec_url)
        orchestrator.add_source(path, source, server_url=args.server_url)
        print(f"Source '{source.id}' added")
    elif args.sources_command == "remove":
        if not load_config(path).has_source(args.id):
            print(f"Source '{args.id}' is not configured")
            return
        orchestrator.remove_source(path, args.id)
        print(f"Source '{args.id}' removed")
    elif args.sources_command == "list":
        config = load_config(path)
        if not config.sources:
            print("No sources configured")
        for source in config.sources:
            print(f"{source.id}\t{source.name}\t{source.spec_url}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown sources command\n")


def _run_init(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    target = Path(args.path)
    config_file = resolve_config_path(target)
    if config_file.exists():
        print(f"{_relativize(config_file)} already exists")
    else:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        starter = {"sources": [], "generator": args.generator}
        config_file.write_text(yaml.safe_dump(starter, sort_keys=False), encoding="utf-8")
        print(f"Configuration created at {_relativize(config_file)}")
    orchestrator.init_project(load_config(config_file))


def _print_event(event: SyncEvent, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    if isinstance(event, StatusEvent):
        label = event.source_id or "project"
        line = f"[{label}] {event.step.value} {event.status.value}"
        if event.error:
            line += f": {event.error}"
        elif event.info:
            line += f" ({event.info})"
        print(line, file=out)
    elif isinstance(event, DoneEvent):
        print(f"done: {'success' if event.success else 'failed'}", file=out)


def format_stats(stats: Mapping[str, Mapping[str, int]]) -> str:
    """Render per-source stats as a plain text table."""
    categories = sorted({name for counts in stats.values() for name in counts})
    header = ["source", *categories]
    rows = [[source_id, *(str(stats[source_id].get(name, 0)) for name in categories)] for source_id in sorted(stats)]
    widths: Dict[int, int] = {
        index: max(len(row[index]) for row in [header, *rows]) for index in range(len(header))
    }
    lines = ["  ".join(cell.ljust(widths[index]) for index, cell in enumerate(row)).rstrip() for row in [header, *rows]]
    return "\n".join(lines)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
