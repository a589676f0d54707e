"""
tests/test_cli.py
Command-line front end: sub-commands, flag merging and exit codes.
"""

from __future__ import annotations

import argparse
import pathlib
from typing import List

import pytest

from tablegen import errors
from tablegen.cli import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERATION_ERROR,
    EXIT_HISTORY_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    _build_parser,
    build_request,
    cli_main,
    exit_code_for,
    run,
)
from tablegen.config import GeneratorSettings, save_settings
from tablegen.history import HistoryJournal


@pytest.fixture()
def config_path(settings: GeneratorSettings, tmp_path: pathlib.Path) -> pathlib.Path:
    return save_settings(settings, tmp_path / "tablegen.yaml")


@pytest.fixture()
def cli(config_path: pathlib.Path):
    def _run(*argv: str) -> int:
        return run(["-c", str(config_path), *argv])

    return _run


def parse(*argv: str) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv))


class TestExitCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (errors.ConfigError("x"), EXIT_INPUT_ERROR),
            (errors.UnknownFeatureError("explode", ["list"]), EXIT_INPUT_ERROR),
            (errors.ConnectionError("x"), EXIT_CONNECTION_ERROR),
            (errors.TableNotFoundError("t"), EXIT_CONNECTION_ERROR),
            (errors.RenderError("backend/api", "boom"), EXIT_GENERATION_ERROR),
            (errors.RecordNotFoundError("r"), EXIT_HISTORY_ERROR),
            (errors.TablegenError("x"), EXIT_GENERATION_ERROR),
        ],
    )
    def test_mapping(self, exc, code):
        assert exit_code_for(exc) == code


class TestBuildRequest:
    def test_settings_fill_unset_flags(self, settings: GeneratorSettings):
        args = parse("crud", "sys_user")
        request = build_request(args, settings, "sys_user")
        assert request.output == settings.generator.backend.output
        assert request.web_output == settings.generator.frontend.output
        assert request.features == settings.default_features
        assert request.with_test is True
        assert request.with_doc is True
        assert not request.only_backend and not request.only_frontend

    def test_flags_win(self, settings: GeneratorSettings):
        args = parse(
            "backend", "sys_user", "-m", "crm", "-o", "/out", "-f", "list, view",
            "--no-test", "--no-doc", "--layer-mode", "standard",
        )
        request = build_request(args, settings, "sys_user")
        assert request.module == "crm"
        assert request.output == "/out"
        assert request.features == ["list", "view"]
        assert request.with_test is False
        assert request.with_doc is False
        assert request.layer_mode == "standard"
        assert request.only_backend is True

    def test_disabled_frontend_means_backend_only(self, settings: GeneratorSettings):
        settings.generator.frontend.enabled = False
        request = build_request(parse("crud", "sys_user"), settings, "sys_user")
        assert request.only_backend is True

    def test_both_disabled(self, settings: GeneratorSettings):
        settings.generator.frontend.enabled = False
        settings.generator.backend.enabled = False
        with pytest.raises(errors.ConfigError):
            build_request(parse("crud", "sys_user"), settings, "sys_user")

    def test_overrides_file(self, settings: GeneratorSettings, tmp_path: pathlib.Path):
        path = tmp_path / "overrides.yaml"
        path.write_text("status:\n  list_field: false\n  form_type: radio\n", encoding="utf-8")
        args = parse("crud", "sys_user", "--overrides", str(path))
        request = build_request(args, settings, "sys_user")
        assert request.overrides["status"].list_field is False
        assert request.overrides["status"].form_type == "radio"

    def test_invalid_overrides_file(self, settings: GeneratorSettings, tmp_path: pathlib.Path):
        path = tmp_path / "overrides.yaml"
        path.write_text("status:\n  form_type: slider\n", encoding="utf-8")
        with pytest.raises(errors.ConfigError):
            build_request(parse("crud", "sys_user", "--overrides", str(path)), settings, "sys_user")


class TestGenerateCommands:
    def test_crud(self, cli, tmp_path, capsys):
        assert cli("crud", "sys_user", "-f", "list,add") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "SUCCESS" in out
        assert (tmp_path / "server" / "api" / "sys" / "user.py").is_file()
        assert (tmp_path / "web" / "views" / "sys" / "user" / "edit.vue").is_file()

    def test_backend_only(self, cli, tmp_path):
        assert cli("backend", "sys_user") == EXIT_SUCCESS
        assert (tmp_path / "server" / "api" / "sys" / "user.py").is_file()
        assert not (tmp_path / "web").exists()

    def test_frontend_only(self, cli, tmp_path):
        assert cli("frontend", "sys_dept", "-m", "org") == EXIT_SUCCESS
        assert (tmp_path / "web" / "api" / "org" / "dept" / "index.ts").is_file()
        assert not (tmp_path / "server").exists()

    def test_output_flags(self, cli, tmp_path):
        out = tmp_path / "elsewhere"
        assert cli("backend", "sys_user", "-o", str(out)) == EXIT_SUCCESS
        assert (out / "api" / "sys" / "user.py").is_file()

    def test_missing_table_exit_code(self, cli, tmp_path, capsys):
        assert cli("crud", "sys_user", "sys_missing") == EXIT_CONNECTION_ERROR
        out = capsys.readouterr().out
        assert "✗ sys_missing" in out
        assert (tmp_path / "server" / "api" / "sys" / "user.py").is_file()

    def test_overrides_across_two_tables(self, cli, tmp_path, capsys):
        path = tmp_path / "overrides.yaml"
        path.write_text(
            "user_name:\n  query_field: false\nparent_id:\n  list_field: false\n",
            encoding="utf-8",
        )
        assert cli("backend", "sys_user", "sys_dept", "--overrides", str(path)) == EXIT_SUCCESS
        assert "SUCCESS" in capsys.readouterr().out
        assert (tmp_path / "server" / "api" / "sys" / "user.py").is_file()
        assert (tmp_path / "server" / "api" / "sys" / "dept.py").is_file()
        assert len(HistoryJournal(tmp_path / "history")) == 2

    def test_unknown_override_column_single_table(self, cli, tmp_path):
        path = tmp_path / "overrides.yaml"
        path.write_text("parent_id:\n  list_field: false\n", encoding="utf-8")
        assert cli("backend", "sys_user", "--overrides", str(path)) == EXIT_INPUT_ERROR
        assert not (tmp_path / "server").exists()

    def test_unknown_feature(self, cli, capsys):
        assert cli("crud", "sys_user", "-f", "list,explode") == EXIT_INPUT_ERROR
        assert "explode" in capsys.readouterr().err

    def test_missing_config(self, tmp_path):
        assert run(["-c", str(tmp_path / "nope.yaml"), "tables"]) == EXIT_INPUT_ERROR

    def test_no_dsn(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert run(["tables"]) == EXIT_INPUT_ERROR

    def test_unreachable_database(self, cli, tmp_path):
        dsn = f"sqlite:{tmp_path / 'missing' / 'dir' / 'x.db'}"
        assert cli("--dsn", dsn, "tables") == EXIT_CONNECTION_ERROR


class TestPreviewCommand:
    def test_prints_without_writing(self, cli, tmp_path, capsys):
        assert cli("preview", "sys_user", "-f", "list") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "(backend/handler)" in out
        assert "(frontend/edit)" in out
        assert not (tmp_path / "server").exists()
        assert HistoryJournal(tmp_path / "history").list() == []

    def test_overrides_across_two_tables(self, cli, tmp_path, capsys):
        path = tmp_path / "overrides.yaml"
        path.write_text("parent_id:\n  list_field: false\n", encoding="utf-8")
        argv = ("preview", "sys_user", "sys_dept", "--template", "sql/menu")
        assert cli(*argv, "--overrides", str(path)) == EXIT_SUCCESS
        assert capsys.readouterr().out.count("────") == 2

    def test_single_template(self, cli, capsys):
        assert cli("preview", "sys_user", "--template", "sql/menu") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert out.count("────") == 1
        assert "INSERT INTO sys_menu" in out


class TestTablesCommand:
    def test_lists_tables(self, cli, capsys):
        assert cli("tables") == EXIT_SUCCESS
        lines: List[str] = capsys.readouterr().out.splitlines()
        assert [line.strip() for line in lines] == ["sys_dept", "sys_user", "t_order_item"]

    def test_dsn_flag(self, tmp_path, sqlite_dsn, capsys, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert run(["--dsn", sqlite_dsn, "tables"]) == EXIT_SUCCESS
        assert "sys_user" in capsys.readouterr().out


class TestHistoryCommands:
    @pytest.fixture()
    def generated(self, cli, tmp_path, capsys) -> HistoryJournal:
        assert cli("crud", "sys_user") == EXIT_SUCCESS
        assert cli("crud", "sys_dept") == EXIT_SUCCESS
        capsys.readouterr()
        return HistoryJournal(tmp_path / "history")

    def test_empty_history(self, cli, capsys):
        assert cli("history") == EXIT_SUCCESS
        assert "No generation records." in capsys.readouterr().out

    def test_list(self, cli, generated, capsys):
        assert cli("history") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "sys/sys_user" in out and "sys/sys_dept" in out

        assert cli("history", "--table", "sys_dept") == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "sys_user" not in out

    def test_rollback_yes(self, cli, generated, tmp_path, capsys):
        record = generated.records_for_table("sys_user")[0]
        target = pathlib.Path(record.files[0].path)
        target.write_text("edited", encoding="utf-8")

        assert cli("rollback", record.id, "--yes") == EXIT_SUCCESS
        assert f"Restored {record.file_count} file(s)" in capsys.readouterr().out
        assert target.read_text(encoding="utf-8") == record.files[0].content

    def test_rollback_declined(self, cli, generated, monkeypatch, capsys):
        record = generated.latest()
        target = pathlib.Path(record.files[0].path)
        target.write_text("edited", encoding="utf-8")
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        assert cli("rollback", record.id) == EXIT_SUCCESS
        assert "Aborted." in capsys.readouterr().out
        assert target.read_text(encoding="utf-8") == "edited"

    def test_rollback_check_drift(self, cli, generated):
        record = generated.latest()
        pathlib.Path(record.files[0].path).write_text("edited", encoding="utf-8")
        assert cli("rollback", record.id, "-y", "--check-drift") == EXIT_HISTORY_ERROR

    def test_rollback_unknown_id(self, cli, generated):
        assert cli("rollback", "gen_0", "-y") == EXIT_HISTORY_ERROR

    def test_delete_one(self, cli, generated):
        record = generated.latest()
        assert cli("delete-history", record.id) == EXIT_SUCCESS
        assert generated.find(record.id) is None
        assert len(generated) == 1

    def test_delete_requires_id_or_all(self, cli, generated):
        assert cli("delete-history") == EXIT_INPUT_ERROR

    def test_delete_all(self, cli, generated, capsys):
        assert cli("delete-history", "--all") == EXIT_SUCCESS
        assert "Cleared 2 record(s)" in capsys.readouterr().out
        assert generated.list() == []


class TestEntryPoint:
    def test_cli_main_exits_with_code(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            cli_main(["-c", str(tmp_path / "nope.yaml"), "tables"])
        assert excinfo.value.code == EXIT_INPUT_ERROR

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            run(["--version"])
        assert excinfo.value.code == 0
        assert "TableGen v" in capsys.readouterr().out
