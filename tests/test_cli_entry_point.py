"""Tests for the CLI entry point."""

import subprocess
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CLI_PATH = PROJECT_ROOT / "cli" / "main.py"


def _run(*args, cwd=None):
    return subprocess.run(
        [sys.executable, str(CLI_PATH), *args],
        cwd=str(cwd or PROJECT_ROOT),
        capture_output=True,
        text=True,
    )


def test_help_shows_all_commands():
    result = _run("--help")
    assert result.returncode == 0
    assert "Prompt Optimizer CLI" in result.stdout

    for command in ["serve", "optimize", "evaluate", "providers"]:
        assert command in result.stdout


def test_module_invocation():
    result = subprocess.run(
        [sys.executable, "-m", "cli.main", "--help"], cwd=str(PROJECT_ROOT), capture_output=True, text=True
    )
    assert result.returncode == 0
    assert "Prompt Optimizer CLI" in result.stdout


def test_optimize_help():
    result = _run("optimize", "--help")
    assert result.returncode == 0
    assert "--goal" in result.stdout
    assert "--rubric" in result.stdout


def test_optimize_requires_a_prompt_source():
    result = _run("optimize", "--goal", "g", "--name", "n")
    assert result.returncode == 2


def test_no_command_prints_help():
    result = _run()
    assert result.returncode == 0
    assert "Available commands" in result.stdout


def test_missing_config_exit_code_2(tmp_path):
    result = _run("--config", "missing.yaml", "providers", cwd=tmp_path)
    assert result.returncode == 2
    assert "Config file not found" in result.stderr


def test_providers_lists_roles(tmp_path):
    (tmp_path / "optimizer.yaml").write_text("pipeline:\n  max_candidates: 2\n", encoding="utf-8")
    result = _run("providers", cwd=tmp_path)
    assert result.returncode == 0
    for role in ["generator", "executor", "judge", "optimizer"]:
        assert role in result.stdout


def test_unconfigured_provider_fails_pipeline_with_exit_code_2(tmp_path):
    (tmp_path / "optimizer.yaml").write_text(
        "providers:\n"
        "  gemini:\n    api_key_env: PROMPT_OPTIMIZER_TEST_UNSET_GEMINI\n"
        "  groq:\n    api_key_env: PROMPT_OPTIMIZER_TEST_UNSET_GROQ\n",
        encoding="utf-8",
    )
    result = _run("evaluate", "--prompt", "Q: {{input}}", cwd=tmp_path)
    assert result.returncode == 2
    assert "PROMPT_OPTIMIZER_TEST_UNSET_GEMINI" in result.stderr
