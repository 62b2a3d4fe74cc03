import argparse
import asyncio
import logging
import os
import sys
from typing import Callable, List, Optional, Sequence

from colorama import just_fix_windows_console

from cpjudge import report
from cpjudge.batch_runner import run_batch
from cpjudge.builder import build
from cpjudge.config import DEFAULT_CONFIG_FILE, load_config, save_config
from cpjudge.errors import BuildFailure, ConfigError, HarnessError
from cpjudge.fixtures import list_problems
from cpjudge.judge import run_single
from cpjudge.result_type import Verdict
from cpjudge.session import SelectionState, Session
from cpjudge.watch import TerminalKeySource, start_watch
from fetch_samples import (
    DEFAULT_SESSION_FILE,
    FetchError,
    SessionExpiredError,
    delete_contest,
    download_contest,
    forget_session_cookie,
    load_session_cookie,
    save_session_cookie,
)


LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

def prompt(message: str, reader: Callable[[str], str] = input) -> str:
    return reader(f"{message} ").strip()


def bootstrap_config(path: str, reader: Callable[[str], str] = input):
    """Ask for the three templates and write a new config file."""
    raw = {
        "main": prompt("Enter the path of mainfile:", reader),
        "build": prompt("Enter the build command:", reader),
        "run": prompt("Enter the run command (use {INPUT_FILE} and {MAIN_FILE}):", reader),
    }
    config = save_config(raw, path)
    report.success("Successfully initialized!")
    return config


def ensure_cookie(path: str, reader: Callable[[str], str] = input) -> str:
    cookie = load_session_cookie(path)
    if cookie:
        return cookie
    report.warning(f"! This is TOP SECRET. Please never share {path}")
    cookie = prompt("Enter the cookie value: Cookie[https://atcoder.jp]:REVEL_SESSION:", reader)
    if not cookie:
        raise ConfigError("A session cookie is required to download testcases")
    save_session_cookie(cookie, path)
    report.success("Successfully registered the session ID!")
    return cookie


def make_session(args: argparse.Namespace) -> Session:
    config = load_config(args.config)
    selection = SelectionState(contest_id=args.contest, problem_id=args.problem)
    return Session(config=config, selection=selection, fixture_root=args.root)


# ---------------------------------------------------------------------------
# Operations shared by subcommands and the menu
# ---------------------------------------------------------------------------

def do_build(session: Session) -> bool:
    result = asyncio.run(build(session.config.build_command))
    report.print_build_result(result)
    return result.success


def do_build_and_test(session: Session, verbose: bool = False) -> bool:
    """Build, then test; a failed build raises BuildFailure and no test runs."""
    result = asyncio.run(build(session.config.build_command)).raise_for_failure()
    report.print_build_result(result)
    return do_test(session, verbose=verbose)


def do_test(session: Session, verbose: bool = False) -> bool:
    lookup = session.lookup_problem()
    if lookup.directory is not None:
        print(lookup.directory)
    results = asyncio.run(run_batch(session, verbose=verbose))
    report.print_batch_results(results)
    return bool(results) and all(r.verdict is Verdict.AC for r in results)


def do_single(session: Session, input_text: str) -> bool:
    result = asyncio.run(run_single(input_text, session.config))
    report.print_single_result(input_text, result)
    return result.verdict not in (Verdict.RE, Verdict.TLE)


def do_watch(session: Session) -> None:
    print("Single key mode activated")
    print(f"{report.bold('B')}: Build")
    print(f"{report.bold('T')}: Test")
    print(f"{report.bold('Q')}: Quit")
    key_source = TerminalKeySource() if sys.stdin.isatty() else None
    asyncio.run(start_watch(session, key_source=key_source))


def do_fetch(session: Session, session_file: str, reader: Callable[[str], str] = input) -> bool:
    contest = session.selection.contest_id
    if not contest:
        report.error("Please set contest name before downloading cases")
        return False
    cookie = ensure_cookie(session_file, reader)
    try:
        download_contest(contest, cookie, root=session.fixture_root)
    except SessionExpiredError as exc:
        forget_session_cookie(session_file)
        report.error(f"{exc}; run again to enter a new session cookie")
        return False
    except FetchError as exc:
        report.error(str(exc))
        return False
    report.success(f"Downloaded testcases of {contest}")
    return True


def do_delete(session: Session, assume_yes: bool = False, reader: Callable[[str], str] = input) -> bool:
    contest = session.selection.contest_id
    if not contest:
        report.error("Contest is not set")
        return False
    if not assume_yes:
        answer = prompt(f"Are you sure to delete this contest's testcases: {contest}? (Y/n)", reader)
        if answer not in ("y", "Y"):
            return False
    if not delete_contest(contest, root=session.fixture_root):
        report.error(f"No such contest: {contest}")
        return False
    report.success("Successfully deleted!")
    return True


def do_select_problem(session: Session, reader: Callable[[str], str] = input) -> bool:
    contest = session.selection.contest_id
    if not contest:
        report.error("Please set contest name before selecting a problem")
        return False
    problems = list_problems(session.fixture_root, contest)
    if not problems:
        report.error(f"No problems downloaded for {contest}")
        return False
    for i, problem in enumerate(problems, start=1):
        print(f"{i}) {report.bold(problem.label)}: {problem.name}")
    answer = prompt("Select the problem you will solve:", reader)
    if not answer.isdigit() or not 1 <= int(answer) <= len(problems):
        report.error(f"Invalid choice: {answer}")
        return False
    chosen = problems[int(answer) - 1]
    session.selection.problem_id = chosen.directory.name
    report.success(f"Problem set to: {chosen.label}")
    return True


def read_input_text(input_file: Optional[str]) -> str:
    if input_file:
        with open(input_file, "r", encoding="utf-8") as handle:
            return handle.read()
    if sys.stdin.isatty():
        print("Enter the case, finish with Ctrl+D:")
    return sys.stdin.read()


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------

def run_init(args: argparse.Namespace) -> int:
    bootstrap_config(args.config)
    return 0


def run_build_command(args: argparse.Namespace) -> int:
    return 0 if do_build(make_session(args)) else 1


def run_test_command(args: argparse.Namespace) -> int:
    return 0 if do_test(make_session(args), verbose=args.verbose) else 1


def run_build_and_test(args: argparse.Namespace) -> int:
    return 0 if do_build_and_test(make_session(args), verbose=args.verbose) else 1


def run_any(args: argparse.Namespace) -> int:
    session = make_session(args)
    return 0 if do_single(session, read_input_text(args.input)) else 1


def run_watch(args: argparse.Namespace) -> int:
    do_watch(make_session(args))
    return 0


def run_fetch(args: argparse.Namespace) -> int:
    return 0 if do_fetch(make_session(args), args.session_file) else 1


def run_delete(args: argparse.Namespace) -> int:
    return 0 if do_delete(make_session(args), assume_yes=args.yes) else 1


def run_problems(args: argparse.Namespace) -> int:
    if not args.contest:
        report.error("--contest is required")
        return 1
    problems = list_problems(args.root, args.contest)
    for problem in problems:
        print(f"{report.bold(problem.label)}: {problem.name}")
    return 0 if problems else 1


MENU_CHOICES = [
    ("a", "Start auto building and test"),
    ("c", "Set contest"),
    ("d", "Download testcases"),
    ("de", "Delete testcases"),
    ("s", "Select problem"),
    ("bt", "Build & Test"),
    ("b", "Build"),
    ("t", "Test"),
    ("ta", "Test in any cases"),
    ("exit", "Exit"),
]


def run_menu(args: argparse.Namespace, reader: Callable[[str], str] = input) -> int:
    """Interactive menu loop; the session object is owned here."""
    if not os.path.exists(args.config):
        bootstrap_config(args.config, reader)
    session = make_session(args)
    print(report.bold("AtCoderTools Launched"))

    while True:
        print(report.HR)
        for i, (_, label) in enumerate(MENU_CHOICES, start=1):
            print(f"{i}) {label}")
        try:
            answer = prompt("Select an action:", reader)
        except (EOFError, KeyboardInterrupt):
            report.warning("\nExiting...")
            return 0

        command = answer
        if answer.isdigit() and 1 <= int(answer) <= len(MENU_CHOICES):
            command = MENU_CHOICES[int(answer) - 1][0]

        try:
            if command == "exit":
                return 0
            elif command == "a":
                do_watch(session)
            elif command == "c":
                session.selection = SelectionState(contest_id=prompt("Enter the contest name:", reader) or None)
                report.success(f"Contest set to: {session.selection.contest_id}")
            elif command == "d":
                do_fetch(session, args.session_file, reader)
            elif command == "de":
                do_delete(session, reader=reader)
            elif command == "s":
                do_select_problem(session, reader)
            elif command == "b":
                do_build(session)
            elif command == "bt":
                do_build_and_test(session, verbose=args.verbose)
            elif command == "t":
                do_test(session, verbose=args.verbose)
            elif command == "ta":
                do_single(session, read_input_text(None))
            else:
                report.error(f"Unknown command: {answer}")
        except BuildFailure as exc:
            report.print_build_result(exc.result)
        except HarnessError as exc:
            report.error(str(exc))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=str, default=DEFAULT_CONFIG_FILE, help="Path of the JSON config file")
    common.add_argument("--root", type=str, default=".", help="Fixture store root")
    common.add_argument("--session_file", type=str, default=DEFAULT_SESSION_FILE, help="File holding the AtCoder session cookie")
    common.add_argument("--contest", type=str, default=None, help="Contest id, e.g. abc300")
    common.add_argument("--problem", type=str, default=None, help="Problem directory name, e.g. A")
    common.add_argument("--verbose", action="store_true", help="Debug logging and progress bars")

    parser = argparse.ArgumentParser(description="Build and judge competitive programming solutions locally.")
    subparsers = parser.add_subparsers(dest="command")

    init_cmd = subparsers.add_parser("init", parents=[common], help="Create the config file interactively.")
    init_cmd.set_defaults(handler=run_init)

    build_cmd = subparsers.add_parser("build", parents=[common], help="Run the build command.")
    build_cmd.set_defaults(handler=run_build_command)

    test_cmd = subparsers.add_parser("test", parents=[common], help="Judge every testcase of the selected problem.")
    test_cmd.set_defaults(handler=run_test_command)

    bt_cmd = subparsers.add_parser("bt", parents=[common], help="Build, then test.")
    bt_cmd.set_defaults(handler=run_build_and_test)

    any_cmd = subparsers.add_parser("any", parents=[common], help="Run the solution on custom input.")
    any_cmd.add_argument("--input", type=str, default=None, help="Input file (defaults to stdin)")
    any_cmd.set_defaults(handler=run_any)

    watch_cmd = subparsers.add_parser("watch", parents=[common], help="Rebuild and retest on change or key press.")
    watch_cmd.set_defaults(handler=run_watch)

    fetch_cmd = subparsers.add_parser("fetch", parents=[common], help="Download sample testcases of a contest.")
    fetch_cmd.set_defaults(handler=run_fetch)

    delete_cmd = subparsers.add_parser("delete", parents=[common], help="Delete a contest's testcases.")
    delete_cmd.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    delete_cmd.set_defaults(handler=run_delete)

    problems_cmd = subparsers.add_parser("problems", parents=[common], help="List downloaded problems of a contest.")
    problems_cmd.set_defaults(handler=run_problems)

    menu_cmd = subparsers.add_parser("menu", parents=[common], help="Interactive menu (default).")
    menu_cmd.set_defaults(handler=run_menu)

    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["menu", *(argv or [])])
    return args


def main(argv: Optional[List[str]] = None) -> int:
    just_fix_windows_console()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s:%(message)s",
    )
    try:
        return args.handler(args)
    except ConfigError as exc:
        report.error(f"Config error: {exc}")
        return 1
    except BuildFailure as exc:
        report.print_build_result(exc.result)
        return 1
    except HarnessError as exc:
        report.error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
