"""CLI behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from specbind.cli import _build_parser, format_stats, main
from tests._fixtures.project_builder import ProjectBuilder, petstore


def _petstore_project(project: ProjectBuilder) -> Path:
    project.write_spec("petstore.json", petstore())
    project.write_config([{"id": "petstore", "specUrl": "specs/petstore.json"}], generator="react")
    return project.path()


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "sync"])
    assert args.verbose is True
    assert args.command == "sync"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["sync", "--verbose", "--source", "petstore", "--timeout", "2.5"])
    assert args.verbose is True
    assert args.source == "petstore"
    assert args.timeout == 2.5


def test_cli_sources_subcommands_parse() -> None:
    parser = _build_parser()
    args = parser.parse_args(["sources", "add", "billing", "https://example.com/openapi.json", "--server-url", "https://api"])
    assert args.sources_command == "add"
    assert args.spec_url == "https://example.com/openapi.json"
    assert args.server_url == "https://api"


def test_sync_prints_progress_and_stats(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = _petstore_project(project)

    main(["sync", str(root)])

    out = capsys.readouterr().out
    assert "[petstore] GENERATING success" in out
    assert "done: success" in out
    assert "Endpoints" in out
    assert (root / ".specbind" / "generated" / "react" / "package.json").exists()


def test_sync_exits_non_zero_when_a_source_fails(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project.write_config([{"id": "ghost", "specUrl": "specs/ghost.json"}], generator="react")

    with pytest.raises(SystemExit) as excinfo:
        main(["sync", str(project.path())])

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert "[ghost] FETCHING_SPEC error: SpecFetchError" in captured.out
    assert "done: failed" in captured.out
    assert "specbind sync failed" in captured.err


def test_missing_config_exits_with_message(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["sync", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "No .specbind.yml found" in capsys.readouterr().err


def test_sources_add_list_remove(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project.write_config([], generator="react")
    root = str(project.path())

    main(["sources", "add", "petstore", "specs/petstore.json", "--name", "Pet Store", "--path", root])
    main(["sources", "list", "--path", root])
    out = capsys.readouterr().out
    assert "Source 'petstore' added" in out
    assert "petstore\tPet Store\tspecs/petstore.json" in out

    main(["sources", "remove", "petstore", "--path", root])
    main(["sources", "list", "--path", root])
    out = capsys.readouterr().out
    assert "Source 'petstore' removed" in out
    assert "No sources configured" in out


def test_sources_add_duplicate_fails(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project.write_config([{"id": "petstore", "specUrl": "specs/petstore.json"}], generator="react")

    with pytest.raises(SystemExit) as excinfo:
        main(["sources", "add", "petstore", "specs/other.json", "--path", str(project.path())])

    assert excinfo.value.code == 1
    assert "already exists" in capsys.readouterr().err


def test_sources_add_for_next_writes_env(project: ProjectBuilder) -> None:
    project.write_config([], generator="next")

    main(["sources", "add", "petstore", "specs/petstore.json", "--server-url", "https://pets.test", "--path", str(project.path())])

    assert (project.path() / ".env").read_text(encoding="utf-8") == "PETSTORE_API_URL=https://pets.test\n"


def test_init_creates_starter_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["init", str(tmp_path), "--generator", "nest"])

    config_file = tmp_path / ".specbind.yml"
    assert config_file.exists()
    assert "generator: nest" in config_file.read_text(encoding="utf-8")
    assert "Configuration created" in capsys.readouterr().out

    main(["init", str(tmp_path)])
    assert "already exists" in capsys.readouterr().out


def test_docs_lists_descriptors_and_prints_tabs(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(_petstore_project(project))

    main(["docs", root, "--source", "petstore"])
    listing = capsys.readouterr().out.splitlines()
    create_line = next(line for line in listing if line.endswith("createPet"))
    descriptor_id = create_line.split()[0]
    assert "endpoint" in create_line

    main(["docs", root, "--source", "petstore", "--descriptor", descriptor_id])
    out = capsys.readouterr().out
    assert "=== Stateful Hook ===" in out
    assert "useCreatePet" in out


def test_docs_unknown_descriptor_exits(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = str(_petstore_project(project))

    with pytest.raises(SystemExit) as excinfo:
        main(["docs", root, "--source", "petstore", "--descriptor", "nope"])

    assert excinfo.value.code == 1
    assert "Descriptor 'nope' not found" in capsys.readouterr().err


def test_format_stats_table() -> None:
    table = format_stats({"petstore": {"Endpoints": 5, "Data Types": 7}, "billing": {"Endpoints": 2}})

    lines = table.splitlines()
    assert lines[0].split() == ["source", "Data", "Types", "Endpoints"]
    assert lines[1].split() == ["billing", "0", "2"]
    assert lines[2].split() == ["petstore", "7", "5"]


def test_sources_remove_unknown_id_reports_it(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project.write_config([{"id": "petstore", "specUrl": "specs/petstore.json"}], generator="react")

    main(["sources", "remove", "ghost", "--path", str(project.path())])

    out = capsys.readouterr().out
    assert "Source 'ghost' is not configured" in out
    assert "removed" not in out
    assert [source.id for source in project.config().sources] == ["petstore"]
