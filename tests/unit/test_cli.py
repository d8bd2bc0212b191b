"""Unit tests for CLI argument parsing and commands."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

from moneymarket.cli import build_parser, main


class TestBuildParser:
    def test_rates_command(self) -> None:
        args = build_parser().parse_args(["rates", "--cash", "50", "--borrows", "50"])
        assert args.command == "rates"
        assert (args.cash, args.borrows, args.reserves) == (50, 50, 0)

    def test_accrue_command(self) -> None:
        args = build_parser().parse_args(
            [
                "accrue",
                "--rate", "10",
                "--principal", "5",
                "--from-block", "1",
                "--to-block", "3",
            ]
        )
        assert args.command == "accrue"
        assert args.from_block == 1
        assert args.to_block == 3
        assert args.accumulated == 0

    def test_config_flag(self) -> None:
        args = build_parser().parse_args(
            ["--config", "/tmp/c.yaml", "rates", "--cash", "1", "--borrows", "0"]
        )
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        args = build_parser().parse_args(
            ["--log-level", "DEBUG", "rates", "--cash", "1", "--borrows", "0"]
        )
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None


class TestMain:
    def test_no_command_exits_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["moneymarket"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_accrue_prints_checkpoint(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "moneymarket",
                "accrue",
                "--rate", str(10**22),
                "--principal", "1000",
                "--from-block", "0",
                "--to-block", "10",
                "--accumulated", "5",
            ],
        )
        main()
        out = capsys.readouterr().out
        assert "Accumulated interest: 105" in out
        assert "Last recalculation block: 10" in out

    def test_rates_uses_configured_model(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        sample_yaml_path: Path,
    ) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "moneymarket",
                "--config", str(sample_yaml_path),
                "rates",
                "--cash", "50",
                "--borrows", "50",
            ],
        )
        main()
        out = capsys.readouterr().out
        assert f"Utilization: {5 * 10**23} (50.000000%)" in out
        assert f"Borrow rate: {35 * 10**21} (3.500000%)" in out

    def test_missing_config_exits_2(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "moneymarket",
                "--config", str(tmp_path / "missing.yaml"),
                "rates",
                "--cash", "1",
                "--borrows", "1",
            ],
        )
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 2
