"""Tests for the command-line interface in main.py."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import seed_contact
from identity_reconciliation.config import Config, set_config
from identity_reconciliation.database import DatabaseConnection
from main import main


@pytest.fixture
def cli(tmp_path: Path, restore_root_logger):
    """Run main() against a temporary database with logging kept quiet."""
    db_path = tmp_path / "cli" / "contacts.db"

    def run(*args: str) -> int:
        return main(["--db-path", str(db_path), "--log-level", "ERROR", *args])

    run.db_path = db_path
    yield run
    set_config(None)


class TestInitDb:
    def test_creates_database(self, cli, capsys):
        assert cli("init-db") == 0
        assert cli.db_path.exists()
        assert "Database ready" in capsys.readouterr().out


class TestIdentifyCommand:
    """Tests for the identify subcommand."""

    def test_prints_aggregate(self, cli, capsys):
        assert cli("identify", "--email", "a@x.com", "--phone", "555") == 0

        output = json.loads(capsys.readouterr().out)

        assert output == {
            "contact": {
                "primaryContactId": 1,
                "emails": ["a@x.com"],
                "phoneNumbers": ["555"],
                "secondaryContactIds": [],
            }
        }

    def test_state_persists_between_runs(self, cli, capsys):
        cli("identify", "--email", "a@x.com")
        cli("identify", "--phone", "555")
        capsys.readouterr()

        cli("identify", "--email", "a@x.com", "--phone", "555")

        output = json.loads(capsys.readouterr().out)
        assert output["contact"]["primaryContactId"] == 1
        assert output["contact"]["secondaryContactIds"] == [2]

    def test_missing_identifiers_exit_2(self, cli, capsys):
        assert cli("identify") == 2
        assert "At least one" in capsys.readouterr().err


class TestValidateCommand:
    """Tests for the validate subcommand."""

    def test_clean_database(self, cli, capsys):
        cli("identify", "--email", "a@x.com")
        capsys.readouterr()

        assert cli("validate") == 0
        assert "All checks passed" in capsys.readouterr().out

    def test_broken_database(self, cli, capsys):
        cli("init-db")
        with DatabaseConnection(Config(db_path=str(cli.db_path))) as db:
            seed_contact(db.connection, email="a@x.com", link_precedence="secondary")
        capsys.readouterr()

        assert cli("validate") == 1
        assert "Some checks failed" in capsys.readouterr().out


class TestStatsCommand:
    def test_prints_counts(self, cli, capsys):
        cli("identify", "--email", "a@x.com")
        cli("identify", "--email", "a@x.com", "--phone", "1")
        capsys.readouterr()

        assert cli("stats") == 0

        out = capsys.readouterr().out
        assert "Contact Statistics" in out
        assert "Primaries" in out
        assert "Secondaries" in out


class TestServeCommand:
    def test_runs_uvicorn_with_config(self, cli):
        with patch("uvicorn.run") as run:
            assert cli("serve", "--host", "0.0.0.0", "--port", "8123") == 0

        kwargs = run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 8123
        assert kwargs["log_config"]["version"] == 1


class TestArguments:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_storage_failure_exit_1(self, cli, capsys, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        code = main(["--db-path", str(blocker / "contacts.db"), "--log-level", "ERROR", "init-db"])

        assert code == 1
        assert "Error" in capsys.readouterr().err
