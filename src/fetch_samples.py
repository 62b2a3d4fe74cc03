import logging
import os
import re
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import backoff
import requests
from bs4 import BeautifulSoup

from cpjudge.fixtures import input_path, output_path


ATCODER_ROOT = "https://atcoder.jp"
SESSION_COOKIE_NAME = "REVEL_SESSION"
DEFAULT_SESSION_FILE = "session"
REQUEST_DELAY_SECONDS = 0.5
REQUEST_TIMEOUT_SECONDS = 30

SAMPLE_HEADING = re.compile(r"(入力例|出力例)\s*(\d+)")
SAMPLE_INPUT = "入力例"


LOGGER = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """Raised when contest pages cannot be downloaded."""


class SessionExpiredError(FetchError):
    """Raised when AtCoder redirects to the login page."""


class RetryableHTTPError(FetchError):
    """Transient HTTP status worth another attempt."""


@dataclass
class TaskEntry:
    label: str
    name: str
    url: str
    samples: Dict[int, Tuple[str, str]] = field(default_factory=dict)


def load_session_cookie(path: str = DEFAULT_SESSION_FILE) -> Optional[str]:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        value = handle.read().strip()
    return value or None


def save_session_cookie(value: str, path: str = DEFAULT_SESSION_FILE) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(value.strip())


def forget_session_cookie(path: str = DEFAULT_SESSION_FILE) -> None:
    if os.path.exists(path):
        os.remove(path)


def create_http_session(cookie: Optional[str]) -> requests.Session:
    http = requests.Session()
    if cookie:
        http.cookies.set(SESSION_COOKIE_NAME, cookie, domain="atcoder.jp")
    return http


@backoff.on_exception(
    backoff.expo,
    (requests.ConnectionError, requests.Timeout, RetryableHTTPError),
    max_tries=5,
    factor=2,
    max_value=30
)
def fetch_page(http: requests.Session, url: str) -> str:
    """
    Download one page.

    Raises:
        SessionExpiredError: when the request was redirected to the login page
        FetchError: on 403/404 (contest not started or missing)
    """
    LOGGER.debug("GET %s", url)
    response = http.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
    if response.status_code == 429 or response.status_code >= 500:
        raise RetryableHTTPError(f"{url} answered {response.status_code}")
    if response.history and "/login" in response.url:
        raise SessionExpiredError("Need logging in, but not logged in yet or session is expired")
    if response.status_code == 403:
        raise FetchError(f"{url}: contest has not started yet")
    if response.status_code == 404:
        raise FetchError(f"{url}: contest has not started yet or no such contest")
    response.raise_for_status()
    return response.text


def parse_task_list(html: str) -> List[TaskEntry]:
    """Extract label, name and URL of every task from a contest task list."""
    soup = BeautifulSoup(html, "html.parser")
    scope = soup.find(id="main-div") or soup
    tasks = []
    for row in scope.select("table tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        label_link = cells[0].find("a")
        name_link = cells[1].find("a")
        if label_link is None or name_link is None:
            continue
        tasks.append(TaskEntry(
            label=label_link.get_text(strip=True),
            name=name_link.get_text(strip=True),
            url=name_link.get("href", ""),
        ))
    return tasks


def parse_samples(html: str) -> Dict[int, Tuple[str, str]]:
    """
    Extract sample cases from a task page.

    Sample ``n`` ("入力例 n" / "出力例 n") is stored under index ``n - 1``.
    Only samples with both an input and an output are returned.
    """
    soup = BeautifulSoup(html, "html.parser")
    scope = soup.select_one(".lang-ja") or soup
    inputs: Dict[int, str] = {}
    outputs: Dict[int, str] = {}
    for part in scope.select(".part"):
        heading = part.find("h3")
        pre = part.find("pre")
        if heading is None or pre is None:
            continue
        match = SAMPLE_HEADING.search(heading.get_text())
        if not match:
            continue
        index = int(match.group(2)) - 1
        if match.group(1) == SAMPLE_INPUT:
            inputs[index] = pre.get_text()
        else:
            outputs[index] = pre.get_text()
    return {
        index: (inputs[index], outputs[index])
        for index in sorted(set(inputs) & set(outputs))
        if inputs[index] and outputs[index]
    }


def write_problem(contest_dir: Path, task: TaskEntry) -> Path:
    problem_dir = Path(contest_dir) / task.label
    problem_dir.mkdir(parents=True, exist_ok=True)
    (problem_dir / "label").write_text(task.label, encoding="utf-8")
    (problem_dir / "name").write_text(task.name, encoding="utf-8")
    for index, (case_input, case_output) in task.samples.items():
        input_path(problem_dir, index).write_text(case_input, encoding="utf-8")
        output_path(problem_dir, index).write_text(case_output, encoding="utf-8")
    return problem_dir


def download_contest(
    contest: str,
    cookie: Optional[str],
    root: str = ".",
    delay: float = REQUEST_DELAY_SECONDS,
    http: Optional[requests.Session] = None,
) -> List[TaskEntry]:
    """
    Download every task's samples and replace the contest's fixture directory.

    Nothing on disk is touched until all pages were downloaded.
    """
    http = http or create_http_session(cookie)
    tasks = parse_task_list(fetch_page(http, f"{ATCODER_ROOT}/contests/{contest}/tasks"))
    if not tasks:
        raise FetchError(f"No tasks found for contest {contest}")

    for i, task in enumerate(tasks):
        url = task.url if task.url.startswith("http") else f"{ATCODER_ROOT}{task.url}"
        LOGGER.info("Downloading %s", url)
        task.samples = parse_samples(fetch_page(http, url))
        print(f"Complete to download: {task.label}: {task.name} ({len(task.samples)} samples)")
        if i + 1 < len(tasks):
            time.sleep(delay)

    contest_dir = Path(root) / contest
    if contest_dir.is_dir():
        shutil.rmtree(contest_dir)
    contest_dir.mkdir(parents=True)
    for task in tasks:
        write_problem(contest_dir, task)
    LOGGER.info("Wrote %d problems into %s", len(tasks), contest_dir)
    return tasks


def delete_contest(contest: str, root: str = ".") -> bool:
    """Remove a contest's fixtures; returns False if there was nothing to delete."""
    contest_dir = Path(root) / contest
    if not contest_dir.is_dir():
        return False
    shutil.rmtree(contest_dir)
    return True
