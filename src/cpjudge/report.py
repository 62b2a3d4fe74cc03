"""
Console reporting for builds and judging results.
"""
import sys
from typing import Iterable, List

from colorama import Fore, Style

from .builder import BuildResult
from .judge import JudgeResult, SingleRunResult
from .result_type import Verdict

HR = "─" * 50


def bold(text: str) -> str:
    return f"{Style.BRIGHT}{text}{Style.RESET_ALL}"


def colored(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def error(message: str) -> None:
    print(colored(message, Fore.RED), file=sys.stderr)


def warning(message: str) -> None:
    print(colored(message, Fore.YELLOW), file=sys.stderr)


def success(message: str) -> None:
    print(colored(message, Fore.GREEN))


def verdict_label(verdict: Verdict) -> str:
    if verdict is Verdict.AC:
        return colored(verdict.value, Fore.GREEN)
    if verdict is Verdict.IE:
        return colored(verdict.value, Fore.RED)
    return colored(verdict.value, Fore.YELLOW)


def print_build_result(result: BuildResult) -> None:
    if not result.success:
        error(f"Build error: {result.error_message}")
        if result.stderr:
            print(result.stderr, file=sys.stderr)
        return
    if result.stderr:
        warning("Some warning has been detected:")
        print(result.stderr, file=sys.stderr)
    success("Successfully built :)")
    if result.stdout:
        print(result.stdout)


def _print_block(title: str, text: str) -> None:
    print(bold(title))
    print(text, end="" if text.endswith("\n") else "\n")


def print_result(result: JudgeResult) -> None:
    print(f"Testcase {result.number} [{verdict_label(result.verdict)}]")
    if result.verdict is Verdict.WA:
        print(HR)
        _print_block("Output:", result.actual_output)
        _print_block("Expected:", result.expected_output or "")
    elif result.verdict is Verdict.RE:
        error("Exception detected:")
        print(result.stderr_text, file=sys.stderr)
    elif result.verdict is Verdict.TLE:
        warning(result.message or "Time limit exceeded")
    elif result.verdict is Verdict.IE:
        error(f"Internal error: {result.message}")

    if result.verdict in (Verdict.AC, Verdict.WA) and result.stderr_text:
        warning("Warning:")
        print(result.stderr_text, file=sys.stderr)


def summarize(results: Iterable[JudgeResult]) -> str:
    results = list(results)
    accepted = sum(1 for r in results if r.verdict is Verdict.AC)
    return f"{accepted}/{len(results)} AC"


def print_batch_results(results: List[JudgeResult]) -> None:
    for result in results:
        print_result(result)
    if not results:
        warning("No testcases found")
        return
    line = summarize(results)
    if all(r.verdict is Verdict.AC for r in results):
        success(line)
    else:
        warning(line)


def print_single_result(input_text: str, result: SingleRunResult) -> None:
    if result.verdict is Verdict.TLE:
        error("Time Limit Exceeded")
        return
    if result.verdict is Verdict.RE:
        error("Runtime Error:")
        print(result.stderr, file=sys.stderr)
        return
    print(HR)
    _print_block("Input:", input_text)
    print(HR)
    _print_block("Output:", result.stdout)
    if result.stderr:
        warning("Warning:")
        print(result.stderr, file=sys.stderr)
