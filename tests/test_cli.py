"""Tests for CLI module."""

from pathlib import Path
from uuid import UUID

import pytest

from tenant_books.cli import cmd_init, cmd_version, main
from tenant_books.config import Settings
from tenant_books.container import Container


def _value(output: str, label: str) -> str:
    """Pull an ID printed as ``  <label>: <id>`` out of command output."""
    for line in output.splitlines():
        if line.strip().startswith(f"{label}:"):
            return line.split(":", 1)[1].strip()
    raise AssertionError(f"{label} not found in output: {output!r}")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "books.db"
    assert main(["-d", str(path), "init"]) == 0
    return path


@pytest.fixture
def tenant_args(db_path: Path, capsys: pytest.CaptureFixture[str]) -> list[str]:
    capsys.readouterr()
    main(["-d", str(db_path), "tenant", "create", "--name", "Acme", "--owner-email", "o@acme.test"])
    out = capsys.readouterr().out
    return ["--tenant-id", _value(out, "Tenant ID"), "--user-id", _value(out, "Owner ID")]


@pytest.fixture
def entity_id(
    db_path: Path, tenant_args: list[str], capsys: pytest.CaptureFixture[str]
) -> str:
    main(["-d", str(db_path), "entity", "create", *tenant_args, "--name", "Acme Operating"])
    return _value(capsys.readouterr().out, "Entity ID")


class TestCmdInit:
    def test_creates_new_database(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        db_path = tmp_path / "nested" / "books.db"

        result = main(["-d", str(db_path), "init"])

        assert result == 0
        assert db_path.exists()
        assert "Initialized database" in capsys.readouterr().out

    def test_refuses_to_overwrite_existing_without_force(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        db_path = tmp_path / "books.db"
        db_path.touch()

        class Args:
            database = str(db_path)
            force = False

        result = cmd_init(Args())

        assert result == 1
        assert "already exists" in capsys.readouterr().out

    def test_overwrites_existing_with_force(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        db_path = tmp_path / "books.db"
        db_path.write_text("old data")

        result = main(["-d", str(db_path), "init", "--force"])

        assert result == 0
        assert "Initialized database" in capsys.readouterr().out


class TestCmdVersion:
    def test_prints_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        class Args:
            pass

        assert cmd_version(Args()) == 0
        assert "Tenant Books v0.1.0" in capsys.readouterr().out


class TestCmdStatus:
    def test_missing_database(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        result = main(["-d", str(tmp_path / "missing.db"), "status"])

        assert result == 1
        assert "No database found" in capsys.readouterr().out

    def test_lists_tenants(
        self, db_path: Path, entity_id: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        result = main(["-d", str(db_path), "status"])

        out = capsys.readouterr().out
        assert result == 0
        assert "Tenants: 1" in out
        assert "Acme" in out


class TestBookkeepingCommands:
    """Tests for the tenant, chart of accounts and report commands."""

    def test_seed_and_tree(
        self,
        db_path: Path,
        tenant_args: list[str],
        entity_id: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        seed = ["-d", str(db_path), "coa", "seed", *tenant_args, "--entity-id", entity_id]

        assert main(seed) == 0
        assert "Seeded 34 accounts" in capsys.readouterr().out
        assert main(seed) == 0
        assert "already present" in capsys.readouterr().out

        main(["-d", str(db_path), "coa", "tree", *tenant_args, "--entity-id", entity_id])
        tree = capsys.readouterr().out
        assert "1500  Fixed Assets (asset)" in tree
        assert "  1510  Accumulated Depreciation (asset)" in tree

    def test_empty_trial_balance(
        self,
        db_path: Path,
        tenant_args: list[str],
        entity_id: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        result = main(
            [
                "-d",
                str(db_path),
                "report",
                "trial-balance",
                *tenant_args,
                "--entity-id",
                entity_id,
                "--as-of",
                "2025-12-31",
            ]
        )

        out = capsys.readouterr().out
        assert result == 0
        assert "Trial Balance as of 2025-12-31 (USD)" in out
        assert "WARNING" not in out

    def test_import_statement(
        self,
        tmp_path: Path,
        db_path: Path,
        tenant_args: list[str],
        entity_id: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with Container(settings=Settings(sqlite_path=db_path)) as container:
            context = container.tenancy_service.resolve_context(
                UUID(tenant_args[1]), UUID(tenant_args[3])
            )
            account = container.scope(context).bank_import.create_bank_account(
                UUID(entity_id), "Checking"
            )
        statement = tmp_path / "statement.csv"
        statement.write_text(
            "Date,Description,Amount\n2025-01-05,Coffee,-4.50\n2025-01-06,Refund,12.00\n"
        )

        result = main(
            [
                "-d",
                str(db_path),
                "feed",
                "import",
                str(statement),
                *tenant_args,
                "--account-id",
                str(account.id),
            ]
        )

        out = capsys.readouterr().out
        assert result == 0
        assert "Imported statement.csv" in out
        assert "Imported:   2" in out

    def test_unknown_tenant_reports_error(
        self, db_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        result = main(
            [
                "-d",
                str(db_path),
                "entity",
                "create",
                "--tenant-id",
                "00000000-0000-0000-0000-000000000001",
                "--user-id",
                "00000000-0000-0000-0000-000000000002",
                "--name",
                "Ghost",
            ]
        )

        assert result == 1
        assert capsys.readouterr().out.startswith("Error:")

    def test_missing_statement_file(
        self,
        tmp_path: Path,
        db_path: Path,
        tenant_args: list[str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        result = main(
            [
                "-d",
                str(db_path),
                "feed",
                "import",
                str(tmp_path / "nope.csv"),
                *tenant_args,
                "--account-id",
                "00000000-0000-0000-0000-000000000003",
            ]
        )

        assert result == 1
        assert "File not found" in capsys.readouterr().out


class TestMain:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "usage: tenant-books" in capsys.readouterr().out

    def test_group_without_subcommand_prints_help(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["coa"]) == 0
        assert "seed" in capsys.readouterr().out


class TestCmdServe:
    def test_runs_uvicorn_with_overrides(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        calls: list[tuple[str, dict[str, object]]] = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append((app, kwargs)))

        assert main(["serve", "--host", "0.0.0.0", "--port", "9001"]) == 0

        app, kwargs = calls[0]
        assert app == "tenant_books.api.app:app"
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9001
        assert "http://0.0.0.0:9001" in capsys.readouterr().out
