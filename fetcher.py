# fetcher.py
import logging
import time
from typing import Callable, Optional

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from datastructures import FetchedPage
from errors import HttpError
import config

logger = logging.getLogger(__name__)


def _log_retry(retry_state):
    url = retry_state.args[0] if retry_state.args else "unknown url"
    logger.warning(
        f"Fetch failed for {url} (attempt {retry_state.attempt_number}). "
        f"Retrying in {retry_state.next_action.sleep:.0f}s... Error: {retry_state.outcome.exception()}"
    )


class PageFetcher:
    """
    Single-page GET with a bounded, fixed-delay retry on network errors and
    non-2xx statuses. Extraction failures never reach this layer, so they are
    never retried.
    """

    def __init__(self, session: requests.Session,
                 attempts: int = config.RETRY_ATTEMPTS,
                 delay: float = config.RETRY_WAIT_SECONDS,
                 sleep: Callable[[float], None] = time.sleep):
        self.session = session
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep

    def _get_once(self, url: str, referer: Optional[str]) -> FetchedPage:
        headers = {"Referer": referer} if referer else {}
        try:
            response = self.session.get(url, headers=headers, timeout=config.REQUEST_TIMEOUT, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise HttpError(url, cause=e) from e

        try:
            if not 200 <= response.status_code < 300:
                raise HttpError(url, status=response.status_code)
            return FetchedPage(
                url=response.url or url,
                status_code=response.status_code,
                text=response.text,
                set_cookie=response.headers.get("Set-Cookie"),
            )
        finally:
            response.close()

    def fetch(self, url: str, referer: Optional[str] = None) -> FetchedPage:
        logger.debug(f"GET {url} (referer: {referer or 'none'})")
        retryer = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception_type(HttpError),
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        page = retryer(self._get_once, url, referer)
        if page.url != url:
            logger.debug(f"{url} redirected to {page.url}")
        return page
