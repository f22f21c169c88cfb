"""Prompt Optimizer command-line interface."""

import argparse
import asyncio
import json
import logging
import subprocess
import sys
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.errors import ConfigError, PromptOptimizerError  # noqa: E402

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


# ── Commands ──────────────────────────────────────────────────────────

def cmd_serve(args):
    """Launch the HTTP API."""
    print(f"Starting Prompt Optimizer API on http://{args.host}:{args.port}")
    subprocess.run([
        sys.executable, "-m", "uvicorn",
        "dashboard.app:app",
        "--host", args.host,
        "--port", str(args.port),
        "--reload" if args.reload else "--no-access-log",
    ], cwd=str(PROJECT_ROOT))


def cmd_optimize(args):
    """Generate rubric tests, run them and optimize the prompt on failures."""
    from evals.models import PipelineRequest

    request = PipelineRequest(
        prompt=_read_prompt(args),
        goal=args.goal,
        prompt_name=args.name,
        rubric=args.rubric or [],
    )
    report = _run_pipeline(args, "optimize", request, "Failed to optimize prompt")

    metrics = report.metrics
    print(f"\n{'=' * 50}")
    print(f"Prompt: {report.prompt_name}")
    print(f"Original pass rate: {metrics.original_pass_rate:.1f}% ({metrics.failures}/{metrics.total_tests} failed)")
    if metrics.optimized_failures is not None:
        print(f"Optimized pass rate: {metrics.optimized_pass_rate:.1f}% ({metrics.optimized_failures}/{metrics.total_tests} failed)")
        print("\nOptimized prompt:")
        print(report.optimized_prompt)
        for change in report.optimization.changes:
            print(f"  - {change}")

    _save(report, args.output)


def cmd_evaluate(args):
    """Score the prompt on synthetic cases and suggest rewrites for failures."""
    from evals.models import PipelineRequest

    request = PipelineRequest(prompt=_read_prompt(args))
    report = _run_pipeline(args, "evaluate", request, "Failed to evaluate prompt")

    summary = report.summary
    print(f"\n{'=' * 50}")
    print(f"Passed: {summary.passed}/{summary.total} ({summary.pass_rate:.1f}%)")
    print(f"Average score: {summary.average_score:.2%}")
    for i, candidate in enumerate(report.improved_prompts, 1):
        print(f"\nCandidate {i}: {candidate.reasoning}")
        print(candidate.prompt)

    _save(report, args.output)


def cmd_providers(args):
    """Show provider credentials and role assignments."""
    from evals.service import OptimizerService

    service = OptimizerService(config_path=args.config)
    print(f"\n{'Provider':<12} {'Available':>10}  Model")
    print("-" * 50)
    for provider in service.list_providers():
        mark = "yes" if provider["available"] else "no"
        print(f"{provider['name']:<12} {mark:>10}  {provider['default_model'] or ''}")

    print(f"\n{'Role':<12} {'Provider':>10}  Fallback")
    print("-" * 50)
    for role, assignment in service.list_roles().items():
        print(f"{role:<12} {assignment['provider'] or '-':>10}  {assignment['fallback'] or '-'}")


# ── Helpers ───────────────────────────────────────────────────────────

def _read_prompt(args) -> str:
    if args.prompt_file:
        return Path(args.prompt_file).read_text(encoding="utf-8")
    return args.prompt


def _run_pipeline(args, operation: str, request, failure_message: str):
    from evals.reporter import ProgressReporter, drive
    from evals.service import OptimizerService

    async def stream():
        service = OptimizerService(config_path=args.config)
        reporter = ProgressReporter()
        task = asyncio.create_task(drive(reporter, lambda r: getattr(service, operation)(request, r), failure_message))
        try:
            async for message in reporter:
                if message["type"] == "log":
                    _print_event(message["log"])
                elif message["type"] == "error":
                    print(f"Error: {message['error']}", file=sys.stderr)
                    if message.get("details"):
                        print(f"  {message['details']}", file=sys.stderr)
            return await task, reporter.exception
        finally:
            await service.aclose()

    report, error = asyncio.run(stream())
    if error is not None:
        sys.exit(getattr(error, "exit_code", 1))
    return report


def _print_event(log: dict) -> None:
    line = f"[{log['status']:>9}] {log['phase']}"
    if log.get("details"):
        line += f" - {log['details']}"
    print(line)


def _save(report, output) -> None:
    if not output:
        return
    with open(output, "w", encoding="utf-8") as f:
        json.dump(report.to_wire(), f, indent=2)
    print(f"\nResults saved to {output}")


# ── Argument parser ───────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-optimizer",
        description="Prompt Optimizer CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", "-c", default=None, help="Path to optimizer.yaml")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    p_serve = sub.add_parser("serve", help="Launch the HTTP API")
    p_serve.add_argument("--port", type=int, default=8000, help="Port number")
    p_serve.add_argument("--host", default="127.0.0.1", help="Host address")
    p_serve.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # optimize
    p_opt = sub.add_parser("optimize", help="Test a prompt against a rubric and optimize failures")
    prompt_source = p_opt.add_mutually_exclusive_group(required=True)
    prompt_source.add_argument("--prompt", "-p", help="Prompt template containing {{input}}")
    prompt_source.add_argument("--prompt-file", "-f", help="File holding the prompt template")
    p_opt.add_argument("--goal", "-g", required=True, help="What the prompt should achieve")
    p_opt.add_argument("--name", "-n", required=True, help="Prompt name (a version suffix is added)")
    p_opt.add_argument("--rubric", "-r", action="append", help="Rubric criterion (repeatable)")
    p_opt.add_argument("--output", "-o", help="Write the final report as JSON")

    # evaluate
    p_eval = sub.add_parser("evaluate", help="Score a prompt on synthetic test cases")
    prompt_source = p_eval.add_mutually_exclusive_group(required=True)
    prompt_source.add_argument("--prompt", "-p", help="Prompt template containing {{input}}")
    prompt_source.add_argument("--prompt-file", "-f", help="File holding the prompt template")
    p_eval.add_argument("--output", "-o", help="Write the final report as JSON")

    # providers
    sub.add_parser("providers", help="Show provider credentials and role assignments")

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.verbose)

    commands = {
        "serve": cmd_serve,
        "optimize": cmd_optimize,
        "evaluate": cmd_evaluate,
        "providers": cmd_providers,
    }

    if not args.command:
        parser.print_help()
        sys.exit(0)

    handler = commands.get(args.command)
    try:
        handler(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)
    except PromptOptimizerError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
