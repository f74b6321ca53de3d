"""Tests for the command line entry points."""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from cadence.cli import build_parser, main, run
from cadence.core.logging import setup_logging


@pytest.fixture
def no_logging_setup():
    """Keep CLI runs from reconfiguring the root logger."""
    with patch("cadence.cli.setup_logging") as mock_setup:
        yield mock_setup


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestParser:
    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])

        assert args.command == "serve"
        assert args.config == Path("config.yaml")
        assert args.host is None
        assert args.port is None
        assert not args.verbose

    def test_serve_overrides(self):
        args = build_parser().parse_args(["serve", "-c", "other.yaml", "--port", "9000", "-v"])

        assert args.config == Path("other.yaml")
        assert args.port == 9000
        assert args.verbose

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    async def test_init_db_creates_database(self, tmp_path, no_logging_setup):
        db_path = tmp_path / "cadence.db"
        config = write_config(tmp_path, f"database:\n  path: {db_path}\n")

        await main(["init-db", "-c", str(config)])

        assert db_path.exists()
        no_logging_setup.assert_called_once()

    async def test_verbose_forces_debug(self, tmp_path, no_logging_setup):
        config = write_config(tmp_path, f"database:\n  path: {tmp_path / 'cadence.db'}\n")

        await main(["init-db", "-c", str(config), "-v"])

        assert no_logging_setup.call_args.kwargs["level"] == "DEBUG"

    async def test_loads_env_file_beside_config(self, tmp_path, monkeypatch, no_logging_setup):
        monkeypatch.delenv("CADENCE_TEST_DB", raising=False)
        (tmp_path / ".env").write_text(f"CADENCE_TEST_DB={tmp_path / 'from-env.db'}\n")
        config = write_config(tmp_path, "database:\n  path: ${CADENCE_TEST_DB}\n")

        try:
            await main(["init-db", "-c", str(config)])
        finally:
            os.environ.pop("CADENCE_TEST_DB", None)

        assert (tmp_path / "from-env.db").exists()

    async def test_missing_config(self, tmp_path, capsys, no_logging_setup):
        with pytest.raises(SystemExit) as exc_info:
            await main(["init-db", "-c", str(tmp_path / "missing.yaml")])

        assert exc_info.value.code == 1
        assert "Config file not found" in capsys.readouterr().err

    async def test_invalid_yaml(self, tmp_path, capsys, no_logging_setup):
        config = write_config(tmp_path, "database: [unclosed\n")

        with pytest.raises(SystemExit) as exc_info:
            await main(["init-db", "-c", str(config)])

        assert exc_info.value.code == 1
        assert "Invalid YAML" in capsys.readouterr().err

    async def test_unresolved_env_var(self, tmp_path, monkeypatch, capsys, no_logging_setup):
        monkeypatch.delenv("CADENCE_MISSING_KEY", raising=False)
        config = write_config(tmp_path, "agent:\n  api_key: ${CADENCE_MISSING_KEY}\n")

        with pytest.raises(SystemExit) as exc_info:
            await main(["init-db", "-c", str(config)])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Configuration error" in err
        assert "CADENCE_MISSING_KEY" in err


def test_run_exits_cleanly_on_interrupt():
    with patch("cadence.cli.asyncio.run", side_effect=KeyboardInterrupt):
        run()


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    setup_logging(level="warning", directory=tmp_path / "logs")

    logging.getLogger("cadence.test").warning("disk is full")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.WARNING
    assert "disk is full" in (tmp_path / "logs" / "cadence.log").read_text()
