# captcha_solver.py
import logging
import time
from typing import Callable, Optional

import requests
from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, stop_after_delay, wait_fixed

from config import SolverConfig
from datastructures import CaptchaChallenge, CaptchaTask, TaskStatus
from errors import ChallengeExtractionFailed, HttpError, SolverRejected, SolverTaskFailed, SolverTimeout
from fetcher import PageFetcher
from link_extractor import extract
from utils import parse_upload_date
from verification import normalize_set_cookie
import config

logger = logging.getLogger(__name__)

# Service statuses that mean "keep polling"
_PENDING_STATUSES = {"idle", "processing"}


def extract_challenge(fetcher: PageFetcher, page_url: str) -> CaptchaChallenge:
    """
    Fetches the hosting page once and pulls the CSRF token, file id and
    Turnstile site key out of it. All three are required together.
    """
    logger.info(f"Fetching challenge page: {page_url}")
    page = fetcher.fetch(page_url)
    fields = {name: extract(name, page.text) for name in ("csrf_token", "file_id", "site_key")}
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise ChallengeExtractionFailed(page_url, missing)

    raw_date = extract("upload_date", page.text)
    challenge = CaptchaChallenge(
        site_key=fields["site_key"],
        page_url=page_url,
        csrf_token=fields["csrf_token"],
        file_id=fields["file_id"],
        cookies=normalize_set_cookie(page.set_cookie) if page.set_cookie else "",
        upload_date=parse_upload_date(raw_date) if raw_date else None,
    )
    logger.debug(f"Challenge extracted: site key {challenge.site_key}, file id {challenge.file_id}")
    return challenge


class CapSolverClient:
    """Thin JSON client for the solving service's three endpoints."""

    def __init__(self, session: requests.Session, api_key: str):
        self.session = session
        self.api_key = api_key

    def _post(self, url: str, payload: dict) -> dict:
        body = {"clientKey": self.api_key, **payload}
        try:
            response = self.session.post(url, json=body, timeout=config.REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise HttpError(url, cause=e) from e
        try:
            data = response.json()
        except ValueError:
            raise HttpError(url, status=response.status_code)
        finally:
            response.close()
        return data

    def get_balance(self) -> Optional[float]:
        """Informational only; failures are logged, not raised."""
        try:
            data = self._post(config.CAPSOLVER_GET_BALANCE_URL, {})
        except HttpError as e:
            logger.warning(f"Failed to get solver balance: {e}")
            return None
        if data.get("errorId"):
            logger.warning(f"Failed to get solver balance: {data.get('errorDescription', 'unknown error')}")
            return None
        return data.get("balance")

    def create_task(self, site_key: str, page_url: str) -> str:
        data = self._post(config.CAPSOLVER_CREATE_TASK_URL, {
            "task": {
                "type": config.CAPSOLVER_TASK_TYPE,
                "websiteKey": site_key,
                "websiteURL": page_url,
            },
        })
        if data.get("errorId"):
            raise SolverRejected(data.get("errorDescription") or f"errorId {data['errorId']}")
        task_id = data.get("taskId")
        if not task_id:
            raise SolverRejected("no taskId returned")
        return task_id

    def get_task_result(self, task_id: str) -> CaptchaTask:
        data = self._post(config.CAPSOLVER_GET_TASK_RESULT_URL, {"taskId": task_id})
        if data.get("errorId"):
            raise SolverTaskFailed(data.get("errorDescription") or f"errorId {data['errorId']}")

        status = (data.get("status") or "").lower()
        if status in _PENDING_STATUSES or not status:
            return CaptchaTask(task_id=task_id, status=TaskStatus.PENDING)
        if status == "ready":
            token = (data.get("solution") or {}).get("token")
            if not token:
                raise SolverTaskFailed("ready response carried no solution token")
            return CaptchaTask(task_id=task_id, status=TaskStatus.READY, solution_token=token)
        if status == "failed":
            return CaptchaTask(task_id=task_id, status=TaskStatus.FAILED, detail=str(data))
        raise SolverTaskFailed(f"unknown task status {status!r}")


class CaptchaChallengeSolver:
    def __init__(self, fetcher: PageFetcher, client: CapSolverClient, solver_config: SolverConfig,
                 sleep: Callable[[float], None] = time.sleep):
        self.fetcher = fetcher
        self.client = client
        self.config = solver_config
        self._sleep = sleep

    @classmethod
    def from_config(cls, fetcher: PageFetcher, solver_config: SolverConfig) -> "CaptchaChallengeSolver":
        return cls(fetcher, CapSolverClient(fetcher.session, solver_config.api_key), solver_config)

    def extract_challenge(self, page_url: str) -> CaptchaChallenge:
        return extract_challenge(self.fetcher, page_url)

    def _poll(self, task_id: str) -> CaptchaTask:
        max_polls = max(1, int(self.config.timeout // self.config.poll_interval))
        retryer = Retrying(
            stop=stop_after_attempt(max_polls) | stop_after_delay(self.config.timeout),
            wait=wait_fixed(self.config.poll_interval),
            retry=retry_if_result(lambda task: task.status is TaskStatus.PENDING),
            sleep=self._sleep,
            before_sleep=lambda retry_state: logger.debug(f"Task {task_id} still processing..."),
        )
        try:
            return retryer(self.client.get_task_result, task_id)
        except RetryError:
            raise SolverTimeout(task_id, self.config.timeout)

    def solve_challenge(self, challenge: CaptchaChallenge) -> str:
        balance = self.client.get_balance()
        if balance is not None:
            logger.info(f"Solver balance: ${balance}")

        logger.info("Creating Turnstile task with the solving service...")
        task_id = self.client.create_task(challenge.site_key, challenge.page_url)
        logger.info(f"Task {task_id} created. Polling for solution...")

        started = time.monotonic()
        task = self._poll(task_id)
        if task.status is TaskStatus.FAILED:
            raise SolverTaskFailed(task.detail)
        logger.info(f"Obtained captcha solution in {time.monotonic() - started:.1f}s")
        return task.solution_token

    def solve(self, page_url: str) -> str:
        return self.solve_challenge(self.extract_challenge(page_url))
