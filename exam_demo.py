import sys
import pathlib
import logging
from dotenv import load_dotenv

from exam_core import (
    AttemptRecord,
    Subject,
    build_profile,
    compose_adaptive_test,
    compose_test,
    make_prelims_config,
    prepare_pool,
)
from exam_core.adaptive_profile import focus_areas
from exam_core.bank import generate_sample_records
from exam_core.errors import CompositionError
from exam_core.settings import load_settings

ROOT = pathlib.Path(__file__).parent
ENV_FILE = ROOT / ".env"

load_dotenv(ENV_FILE)
logging.basicConfig(level=logging.WARNING, format="[%(asctime)s] %(levelname)s - %(message)s")

RESET = "\033[0m"
BOLD = "\033[1m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
RED = "\033[91m"


def sample_history():
    """A learner who struggles with History and does well in Polity."""
    attempts = []
    t = 1_700_000_000.0
    for i in range(10):
        attempts.append(AttemptRecord(f"history-{i:03d}", Subject.HISTORY, "Mughal Period", i < 4, 95.0, t))
        t += 60
    for i in range(10):
        attempts.append(AttemptRecord(f"polity-{i:03d}", Subject.POLITY, "Parliament", i < 9, 70.0, t))
        t += 60
    return attempts


def show(test):
    status = f"{GREEN}VALID{RESET}" if test.report.valid else f"{RED}INVALID{RESET}"
    print(f"\n{BOLD}{test.test_id}{RESET} ({test.size} items): {status}")
    for subject, n in test.subject_breakdown().items():
        print(f"  {subject:<22} {n}")
    print(f"  {CYAN}difficulty{RESET} {test.difficulty_breakdown()}")
    print(f"  {CYAN}traps{RESET} {sum(1 for it in test.items if it.is_trap)}, relaxations {len(test.relaxations)}")
    print("  first items: " + ", ".join(it.id for it in test.items[:8]) + ", ...")
    for note in test.report.advisories:
        print(f"  {YELLOW}{note}{RESET}")


def main():
    settings = load_settings(str(ENV_FILE))
    pool = prepare_pool(generate_sample_records(), settings, workers=4).accepted

    print(f"\n{BOLD}{CYAN}EXAM COMPOSITION ENGINE - DEMO{RESET}")
    print("-" * 40)
    print("1. Standard Prelims paper (100 items)")
    print("2. Adaptive paper for a sample learner")
    print("0. Exit")
    print("-" * 40)
    choice = input("Choose (0-2): ").strip()
    try:
        if choice == "1":
            show(compose_test(pool, make_prelims_config(), seed=42, settings=settings))
        elif choice == "2":
            profile = build_profile("demo-learner", sample_history(), settings.adaptive)
            print("Focus: " + "; ".join(focus_areas(profile)))
            show(compose_adaptive_test(pool, profile, make_prelims_config(), seed=42, settings=settings))
        elif choice == "0":
            print(f"{GREEN}Bye!{RESET}")
            sys.exit(0)
        else:
            print(f"{YELLOW}Invalid choice, enter 0-2.{RESET}")
    except CompositionError as e:
        print(f"{RED}Test could not be generated with the given constraints: {e}{RESET}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n{YELLOW}Interrupted.{RESET}")
