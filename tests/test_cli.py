"""Tests for the command line entry point."""

import json
import logging
import sys

import pytest

from memoria import cli


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("MEMORIA_DATA_DIR", str(tmp_path))
    yield tmp_path
    # Drop handlers pointing into tmp_path
    logger = logging.getLogger("memoria")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def run(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["memoria", *args])
    return cli.main()


def test_no_command_prints_usage(data_dir, monkeypatch, capsys):
    assert run(monkeypatch) == 1
    assert "Usage: memoria" in capsys.readouterr().out


def test_unknown_command(data_dir, monkeypatch, capsys):
    assert run(monkeypatch, "dance") == 1
    assert "Unknown command: dance" in capsys.readouterr().out


def test_missing_arguments(data_dir, monkeypatch, capsys):
    assert run(monkeypatch, "stats", "s1") == 1
    assert "stats <session_id> <user_id>" in capsys.readouterr().out


def test_init_creates_database(data_dir, monkeypatch):
    assert run(monkeypatch, "--debug", "init") == 0
    assert (data_dir / "memoria.db").exists()
    assert (data_dir / "memoria.log").exists()


def test_rebuild_unknown_session(data_dir, monkeypatch, capsys):
    assert run(monkeypatch, "rebuild", "ghost") == 1
    payload = json.loads(capsys.readouterr().out)
    assert "Unknown session" in payload["error"]


def test_prompt_and_stats(data_dir, monkeypatch, capsys):
    assert run(monkeypatch, "prompt", "s1", "u1") == 0
    assert "You are Zyra" in capsys.readouterr().out

    assert run(monkeypatch, "stats", "s1", "u1") == 0
    out = capsys.readouterr().out
    assert "STM turns:        0/10" in out
    assert "Prompt cache:     updated" in out
