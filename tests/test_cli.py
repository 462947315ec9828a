import json

import pytest

from easycite import __main__ as cli


@pytest.fixture
def library_env(monkeypatch, library_file):
    monkeypatch.setenv("EASYCITE_STORE", "json")
    monkeypatch.setenv("EASYCITE_LIBRARY_PATH", str(library_file))
    monkeypatch.setenv("EASYCITE_DEFAULT_STYLE", "chicago-note-bibliography")


def test_items_command(library_env, capsys):
    assert cli.main(["items", "--easykey", "DoeBook2005", "--format", "key"]) == 0
    assert json.loads(capsys.readouterr().out) == ["0_ZBZQ4KMP"]


def test_items_command_reports_errors(library_env, capsys):
    assert cli.main(["items", "--easykey", "XXX"]) == 1
    assert "XXX" in capsys.readouterr().err


def test_complete_and_cite_commands(library_env, capsys):
    cli.main(["complete", "Doe"])
    assert capsys.readouterr().out.splitlines() == ["doe:2005first", "doe:2006article"]

    cli.main(["cite", "DoeBook2005"])
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "(Doe 2005)"
    assert out[1] == "Doe, John. 2005. First Book. Cambridge: Cambridge University Press."


def test_serve_command_runs_uvicorn(library_env, monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, host, port: calls.append((host, port)))
    assert cli.main(["serve"]) == 0
    assert calls == [("127.0.0.1", 23120)]
