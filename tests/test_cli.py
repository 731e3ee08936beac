# SPDX-License-Identifier: MIT
"""Tests for the request-pool command line."""

import json

import pytest

from cli import main as cli_main
from runtime.settings import Settings


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    """Run every command from an empty directory with local telemetry."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_main, "init_logfire", lambda *a, **k: None)
    for name in ("RP_MAX_SIMULTANEOUS_REQUESTS", "RP_MAX_RETRIES", "RP_TICK_DELAY"):
        monkeypatch.delenv(name, raising=False)


def test_simulate_generated_workload(capsys):
    cli_main.main(
        [
            "simulate",
            "--interaction",
            "2",
            "--prefetch",
            "3",
            "--latency",
            "0",
            "--no-progress",
            "--seed",
            "1",
        ]
    )

    out = capsys.readouterr().out
    assert "Outcomes: ok=5 failed=0 loads=5" in out
    assert "interaction: dispatched=2" in out
    assert "prefetch: dispatched=3" in out


def test_simulate_workload_file_coalesces_and_fails(tmp_path, capsys):
    workload = tmp_path / "workload.yaml"
    workload.write_text(
        "latency: 0\n"
        "requests:\n"
        "  prefetch: [a, b]\n"
        "  interaction: [a]\n"
        "failures: [b]\n",
        encoding="utf-8",
    )

    cli_main.main(["simulate", "--workload", str(workload), "--no-progress"])

    out = capsys.readouterr().out
    assert "Outcomes: ok=2 failed=1 loads=2" in out


def test_classes_prints_resolved_limits(capsys):
    cli_main.main(["classes", "--ceiling", "2"])

    snapshot = json.loads(capsys.readouterr().out)
    limits = {entry["name"]: entry["limit"] for entry in snapshot["classes"]}
    assert snapshot["ceiling"] == 2
    assert limits == {
        "interaction": 2,
        "thumbnail": 1,
        "prefetch": 1,
        "auto_prefetch": 3,
    }


def test_version_flag(capsys):
    cli_main.main(["--version"])

    assert capsys.readouterr().out.startswith("image-request-pool ")


def test_missing_command_exits_with_help(capsys):
    with pytest.raises(SystemExit) as info:
        cli_main.main([])

    assert info.value.code == 1
    assert "simulate" in capsys.readouterr().out


def test_apply_args_overrides_settings():
    """Command line flags take precedence over loaded settings."""
    settings = Settings()
    args = cli_main._build_parser().parse_args(
        ["simulate", "--ceiling", "3", "--max-retries", "2"]
    )

    cli_main._apply_args_to_settings(args, settings)

    assert settings.max_simultaneous_requests == 3
    assert settings.max_retries == 2
