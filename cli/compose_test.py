"""
Compose, validate and profile from the command line.

    python -m cli.compose_test compose --bank data/bank.json --seed 42 --out out/test.json
    python -m cli.compose_test compose --sample --attempts data/attempts.json
    python -m cli.compose_test validate out/test.json
    python -m cli.compose_test profile data/attempts.json
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from exam_core.adaptive_profile import build_profile, profile_summary
from exam_core.bank import generate_sample_records, load_attempts, load_records
from exam_core.composer import compose_adaptive_test, compose_test, validate
from exam_core.errors import CompositionError
from exam_core.pool import prepare_pool
from exam_core.schema import ComposedTest, make_prelims_config
from exam_core.settings import load_settings, trap_range_from_env

env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(dotenv_path=env_path)
logging.basicConfig(
    level=os.getenv("EXAM_CORE_LOG_LEVEL", "INFO"),
    format="[%(asctime)s] %(levelname)s - %(message)s",
)

console = Console()


# ============================
# Output helpers
# ============================

def print_breakdown(test: ComposedTest) -> None:
    subjects = Table(title="Subject distribution")
    subjects.add_column("Subject")
    subjects.add_column("Planned", justify="right")
    subjects.add_column("Actual", justify="right")
    subjects.add_column("Range", justify="right")
    actual = test.subject_breakdown()
    for key, planned in test.plan.subject_counts.items():
        c = test.plan.constraint_for(key)
        subjects.add_row(key, str(planned), str(actual.get(key, 0)), f"{c.min_count}-{c.max_count}" if c else "-")
    console.print(subjects)

    difficulty = Table(title="Difficulty distribution")
    difficulty.add_column("Label")
    difficulty.add_column("Planned", justify="right")
    difficulty.add_column("Actual", justify="right")
    for label, n in test.difficulty_breakdown().items():
        difficulty.add_row(label, str(test.plan.difficulty_counts.get(label, 0)), str(n))
    console.print(difficulty)


def print_report(test: ComposedTest, report) -> None:
    status = "[bold green]VALID[/bold green]" if report.valid else "[bold red]INVALID[/bold red]"
    console.print(f"\n🧾 Test [cyan]{test.test_id}[/cyan] (seed {test.seed}, {test.size} items): {status}")
    for v in report.violations:
        where = f" @ {v.position}" if v.position is not None else ""
        console.print(f"  [red]✗ {v.rule}{where}[/red]: expected {v.expected}, got {v.actual}")
    for v in report.relaxed:
        console.print(f"  [yellow]~ relaxed {v.rule} @ {v.position}[/yellow]")
    for note in report.advisories:
        console.print(f"  [dim]ℹ {note}[/dim]")
    if test.focus_areas:
        console.print("🎯 Focus areas: " + "; ".join(test.focus_areas))


# ============================
# Commands
# ============================

def cmd_compose(args) -> int:
    settings = load_settings(args.env)
    records = generate_sample_records(args.sample_seed) if args.sample else load_records(args.bank)

    with tqdm(total=len(records), desc="🔎 Quality gate", ncols=90) as bar:
        pool_report = prepare_pool(records, settings, workers=args.workers, on_done=bar.update)
    console.print(
        f"[green]✅ {len(pool_report.accepted)}[/green] of {len(records)} records passed the quality gate"
    )

    config = make_prelims_config(args.size)
    config = replace(config, trap_ratio_range=trap_range_from_env(config.trap_ratio_range))

    try:
        if args.attempts:
            learner_id, attempts = load_attempts(args.attempts)
            profile = build_profile(learner_id, attempts, settings.adaptive)
            test = compose_adaptive_test(
                pool_report.accepted, profile, config, args.seed, settings, best_effort=args.best_effort
            )
        else:
            test = compose_test(pool_report.accepted, config, args.seed, settings, best_effort=args.best_effort)
    except CompositionError as e:
        console.print(f"[bold red]🚨 Test could not be generated with the given constraints:[/bold red] {e}")
        logging.debug("Composition failed", exc_info=True)
        return 2

    print_breakdown(test)
    print_report(test, test.report)

    if args.out:
        folder = os.path.dirname(args.out)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(test.to_json())
        console.print(f"📁 Saved to [cyan]{args.out}[/cyan]")
    return 0 if test.report.valid else 1


def cmd_validate(args) -> int:
    settings = load_settings(args.env)
    with open(args.test, "r", encoding="utf-8") as f:
        test = ComposedTest.from_dict(json.load(f))
    report = validate(test, settings)
    print_report(test, report)
    return 0 if report.valid else 1


def cmd_profile(args) -> int:
    settings = load_settings(args.env)
    learner_id, attempts = load_attempts(args.attempts)
    profile = build_profile(learner_id, attempts, settings.adaptive)
    summary = profile_summary(profile)

    console.print(
        f"👤 [bold]{learner_id}[/bold]: accuracy {summary['overall_accuracy']}%, "
        f"{summary['average_time_per_item']}s per item, {len(attempts)} attempts"
    )
    table = Table(title="Areas")
    table.add_column("Kind")
    table.add_column("Subject")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Weakest topics")
    for kind, key in (("weak", "weak_areas"), ("strong", "strong_areas")):
        for area in summary[key]:
            table.add_row(kind, area["subject"], f"{area['average_score']}%", str(area["attempts"]),
                          ", ".join(area["topics"][:3]))
    console.print(table)
    for focus in summary["focus_areas"]:
        console.print(f"🎯 {focus}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="compose_test", description="Exam composition engine")
    parser.add_argument("--env", default=None, help="path to a .env file with EXAM_CORE_* overrides")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("compose", help="compose a test from a question bank")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--bank", help="JSON question bank")
    source.add_argument("--sample", action="store_true", help="use the built-in sample bank")
    p.add_argument("--sample-seed", type=int, default=7)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--size", type=int, default=100)
    p.add_argument("--attempts", help="attempt history JSON; enables the adaptive variant")
    p.add_argument("--workers", type=int, default=4)
    p.add_argument("--best-effort", action="store_true")
    p.add_argument("--out", help="write the composed test JSON here")
    p.set_defaults(func=cmd_compose)

    p = sub.add_parser("validate", help="re-validate a composed test JSON")
    p.add_argument("test")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("profile", help="show a learner profile from attempt history")
    p.add_argument("attempts")
    p.set_defaults(func=cmd_profile)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
