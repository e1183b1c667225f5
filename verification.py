# verification.py
import logging
import re

import requests

from datastructures import CaptchaChallenge
from errors import HttpError, VerificationCookieMissing, VerificationHttpError, VerificationRejected
import config

logger = logging.getLogger(__name__)

# A comma only separates two cookies when a new "name=" follows it;
# the comma inside "Expires=Wed, 21 Oct 2015 ..." does not qualify.
_COOKIE_SEPARATOR = re.compile(r",\s*(?=[^;,=\s]+=)")


def normalize_set_cookie(set_cookie) -> str:
    """
    Reduces Set-Cookie header value(s) to a Cookie header: 'a=1; b=2'.
    Accepts one comma-joined string (as requests merges them) or a list.
    Attributes such as Path and HttpOnly are dropped; order is preserved.
    """
    headers = [set_cookie] if isinstance(set_cookie, str) else list(set_cookie)
    pairs = []
    for header in headers:
        for cookie in _COOKIE_SEPARATOR.split(header):
            pair = cookie.split(";", 1)[0].strip()
            if "=" in pair:
                pairs.append(pair)
    return "; ".join(pairs)


class VerificationExchanger:
    def __init__(self, session: requests.Session, verify_url: str = config.VERIFY_URL):
        self.session = session
        self.verify_url = verify_url

    def verify(self, csrf_token: str, file_id: str, solution_token: str, cookies: str = "") -> str:
        """Trades a solved captcha token for the site's session cookie."""
        headers = {"X-CSRF-TOKEN": csrf_token}
        if cookies:
            headers["Cookie"] = cookies

        logger.info("Verifying captcha solution with the website...")
        try:
            response = self.session.post(
                self.verify_url,
                json={"token": solution_token, "file_id": file_id},
                headers=headers,
                timeout=config.REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise HttpError(self.verify_url, cause=e) from e

        try:
            if not 200 <= response.status_code < 300:
                raise VerificationHttpError(response.status_code)
            try:
                body = response.json()
            except ValueError:
                raise VerificationRejected(f"non-JSON response: {response.text[:200]}")

            if not isinstance(body, dict) or body.get("success") is not True:
                message = body.get("message") if isinstance(body, dict) else None
                raise VerificationRejected(message or str(body))

            set_cookie = response.headers.get("Set-Cookie")
            cookie = normalize_set_cookie(set_cookie) if set_cookie else ""
            if not cookie:
                raise VerificationCookieMissing()
        finally:
            response.close()

        logger.info("Successfully obtained verification cookie!")
        return cookie

    def verify_challenge(self, challenge: CaptchaChallenge, solution_token: str) -> str:
        return self.verify(challenge.csrf_token, challenge.file_id, solution_token, challenge.cookies)
