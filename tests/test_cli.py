"""Tests for the command-line interface."""

import sys
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest

from household_budget.cli import (
    EXIT_ABORTED,
    EXIT_OK,
    EXIT_PARTIAL,
    exit_code_for,
    get_log_level,
    main,
    set_limit_command,
)
from household_budget.config import load_limits
from household_budget.models import FlagMode, ImportReport
from household_budget.storage import TRANSACTIONS_TABLE, InMemoryRowStore

PNC_CSV = """Date,Description,Withdrawals,Deposits,Balance
01/05/2026,"COFFEE SHOP, DOWNTOWN",4.50,,995.50
01/06/2026,PAYROLL,,2000.00,2995.50
01/06/2026,PAYROLL,,2000.00,4995.50
"""


def run_main(monkeypatch: pytest.MonkeyPatch, *argv: str) -> int:
    """Run the CLI entry point with the given arguments."""
    monkeypatch.setattr(sys, "argv", ["household-budget", *argv])
    with patch("household_budget.cli.setup_logging"):
        return main()


class TestHelpers:
    """Tests for small CLI helpers."""

    def test_get_log_level(self) -> None:
        """Test verbosity mapping."""
        assert get_log_level(0) == "WARNING"
        assert get_log_level(1) == "INFO"
        assert get_log_level(3) == "DEBUG"

    def test_exit_code_for(self) -> None:
        """Test report to exit code mapping."""
        assert exit_code_for(ImportReport(tenant_id="t", format_tag="pnc", inserted=3)) == EXIT_OK
        assert exit_code_for(ImportReport(tenant_id="t", format_tag="pnc", aborted=True)) == EXIT_ABORTED
        assert (
            exit_code_for(ImportReport(tenant_id="t", format_tag="pnc", inserted=2, failed=1))
            == EXIT_PARTIAL
        )


class TestSetLimitCommand:
    """Tests for set_limit_command function."""

    def test_sets_limit(self, tmp_path: Path) -> None:
        """Test writing a new limit."""
        result = set_limit_command("Food", "800", "crossing", None, tmp_path)

        assert result == 0
        limits = load_limits(tmp_path / "limits.yaml")
        assert limits["Food"].limit == Decimal("800")
        assert limits["Food"].flag_mode is FlagMode.CROSSING

    def test_updates_existing_and_keeps_others(self, tmp_path: Path) -> None:
        """Test that other categories survive an update."""
        set_limit_command("Food", "800", "crossing", None, tmp_path)
        set_limit_command("Fun", "250", "all_after", None, tmp_path)
        set_limit_command("Food", "900.50", "off", None, tmp_path)

        limits = load_limits(tmp_path / "limits.yaml")
        assert limits["Food"].limit == Decimal("900.50")
        assert limits["Food"].flag_mode is FlagMode.OFF
        assert limits["Fun"].flag_mode is FlagMode.ALL_AFTER

    def test_zero_removes_limit(self, tmp_path: Path) -> None:
        """Test that a zero amount deletes the category."""
        set_limit_command("Food", "800", "crossing", None, tmp_path)
        assert set_limit_command("Food", "0", "off", None, tmp_path) == 0
        assert "Food" not in load_limits(tmp_path / "limits.yaml")

    @pytest.mark.parametrize("amount", ["abc", "-5", "NaN"])
    def test_invalid_amount(self, tmp_path: Path, amount: str) -> None:
        """Test that bad amounts are rejected without writing."""
        assert set_limit_command("Food", amount, "off", None, tmp_path) == 1
        assert not (tmp_path / "limits.yaml").exists()

    def test_invalid_mode(self, tmp_path: Path) -> None:
        """Test that an unknown flag mode is rejected."""
        assert set_limit_command("Food", "10", "sometimes", None, tmp_path) == 1

    def test_explicit_path(self, tmp_path: Path) -> None:
        """Test writing to an explicit limits file."""
        path = tmp_path / "custom" / "my_limits.yaml"
        assert set_limit_command("Food", "10", "off", path, tmp_path) == 0
        assert path.exists()


class TestMain:
    """Tests for commands run through main()."""

    @pytest.fixture
    def statement(self, tmp_path: Path) -> Path:
        """Write a PNC export."""
        path = tmp_path / "statement.csv"
        path.write_text(PNC_CSV, encoding="utf-8")
        return path

    def import_args(self, tmp_path: Path, statement: Path, *extra: str) -> list[str]:
        return [
            "--config-dir",
            str(tmp_path / "config"),
            "import",
            str(statement),
            "--format",
            "pnc",
            "--tenant",
            "home",
            "--store",
            str(tmp_path / "store.json"),
            *extra,
        ]

    def test_import_saves_store(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test that an import writes the store snapshot."""
        assert run_main(monkeypatch, *self.import_args(tmp_path, statement)) == EXIT_OK

        store = InMemoryRowStore.load(tmp_path / "store.json")
        assert store.count(TRANSACTIONS_TABLE) == 3

    def test_reimport_adds_nothing(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test that running the same import twice keeps three rows."""
        run_main(monkeypatch, *self.import_args(tmp_path, statement))
        assert run_main(monkeypatch, *self.import_args(tmp_path, statement)) == EXIT_OK

        store = InMemoryRowStore.load(tmp_path / "store.json")
        assert store.count(TRANSACTIONS_TABLE) == 3

    def test_dry_run_writes_nothing(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test that --dry-run does not create the store."""
        args = self.import_args(tmp_path, statement, "--dry-run")
        assert run_main(monkeypatch, *args) == EXIT_OK
        assert not (tmp_path / "store.json").exists()

    def test_json_output(
        self,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        statement: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test the machine-readable report."""
        run_main(monkeypatch, *self.import_args(tmp_path, statement, "--json"))
        out = capsys.readouterr().out
        assert '"inserted": 3' in out

    def test_format_mismatch_aborts(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test that a wrong format exits with the aborted code."""
        args = self.import_args(tmp_path, statement)
        args[args.index("pnc")] = "bcp"
        assert run_main(monkeypatch, *args) == EXIT_ABORTED
        assert not (tmp_path / "store.json").exists()

    def test_missing_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that a missing source file is reported."""
        args = self.import_args(tmp_path, tmp_path / "missing.csv")
        assert run_main(monkeypatch, *args) == EXIT_ABORTED

    def test_export_after_import(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test exporting an imported month."""
        run_main(monkeypatch, *self.import_args(tmp_path, statement))
        result = run_main(
            monkeypatch,
            "--config-dir",
            str(tmp_path / "config"),
            "export",
            "--tenant",
            "home",
            "--month",
            "2026-01",
            "--currency",
            "USD",
            "--store",
            str(tmp_path / "store.json"),
            "--output-dir",
            str(tmp_path / "out"),
        )

        assert result == EXIT_OK
        exported = tmp_path / "out" / "household-budget_2026-01_USD.csv"
        assert len(exported.read_text(encoding="utf-8").splitlines()) == 4

    def test_limits_report(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test the limits table over imported rows."""
        config_dir = tmp_path / "config"
        set_limit_command("Unexpected", "100", "crossing", None, config_dir)
        run_main(monkeypatch, *self.import_args(tmp_path, statement))

        result = run_main(
            monkeypatch,
            "--config-dir",
            str(config_dir),
            "limits",
            "--tenant",
            "home",
            "--month",
            "2026-01",
            "--store",
            str(tmp_path / "store.json"),
        )
        assert result == EXIT_OK

    def test_limits_bad_month(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that a malformed month is an error."""
        result = run_main(
            monkeypatch,
            "--config-dir",
            str(tmp_path),
            "limits",
            "--tenant",
            "home",
            "--month",
            "January",
            "--store",
            str(tmp_path / "store.json"),
        )
        assert result == 1

    def test_set_limit_through_main(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test the set-limit subcommand."""
        result = run_main(
            monkeypatch, "--config-dir", str(tmp_path), "set-limit", "Fun", "250", "--mode", "all_after"
        )
        assert result == EXIT_OK
        assert load_limits(tmp_path / "limits.yaml")["Fun"].flag_mode is FlagMode.ALL_AFTER

    def test_validate_only(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test configuration validation."""
        (tmp_path / "settings.yaml").write_text("import:\n  chunk_size: 50\n", encoding="utf-8")
        assert run_main(monkeypatch, "--config-dir", str(tmp_path), "--validate-only") == 0

        (tmp_path / "settings.yaml").write_text("import:\n  chunk_size: 0\n", encoding="utf-8")
        assert run_main(monkeypatch, "--config-dir", str(tmp_path), "--validate-only") == 1

    def test_malformed_settings_exit_cleanly(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, statement: Path
    ) -> None:
        """Test that a non-numeric chunk size is reported, not raised."""
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "settings.yaml").write_text("import:\n  chunk_size: many\n", encoding="utf-8")

        assert run_main(monkeypatch, *self.import_args(tmp_path, statement)) == 1
        assert not (tmp_path / "store.json").exists()

    def test_no_command(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that running without a subcommand prints usage."""
        assert run_main(monkeypatch) == 1
