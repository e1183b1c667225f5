from typing import Optional


class DownloaderError(Exception):
    """Base class for every failure that ends a pipeline run."""


# --- Configuration ---

class ConfigurationError(DownloaderError):
    pass


class SolverConfigError(ConfigurationError):
    pass


class TelegramConfigError(ConfigurationError):
    pass


# --- Link resolution ---

class PatternNotFound(DownloaderError):
    def __init__(self, stage: str, url: Optional[str] = None):
        self.stage = stage
        self.url = url
        where = f" on {url}" if url else ""
        super().__init__(f"No match for extraction rule '{stage}'{where}")


class HttpError(DownloaderError):
    def __init__(self, url: str, status: Optional[int] = None, cause: Optional[BaseException] = None):
        self.url = url
        self.status = status
        self.cause = cause
        if status is not None:
            detail = f"server responded with {status}"
        else:
            detail = f"network error: {cause}"
        super().__init__(f"Request to {url} failed, {detail}")


class SourceMessageNotFound(DownloaderError):
    pass


# --- Captcha ---

class ChallengeExtractionFailed(DownloaderError):
    def __init__(self, page_url: str, missing: list):
        self.page_url = page_url
        self.missing = missing
        super().__init__(f"Could not extract captcha challenge from {page_url}, missing: {', '.join(missing)}")


class SolverRejected(DownloaderError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Captcha solver rejected the task: {reason}")


class SolverTaskFailed(DownloaderError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Captcha solve failed: {detail}")


class SolverTimeout(DownloaderError):
    def __init__(self, task_id: str, waited: float):
        self.task_id = task_id
        self.waited = waited
        super().__init__(f"Captcha task {task_id} still pending after {waited:.0f}s")


# --- Verification ---

class VerificationHttpError(DownloaderError):
    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Verification request failed with status {status}")


class VerificationRejected(DownloaderError):
    def __init__(self, server_message: str):
        self.server_message = server_message
        super().__init__(f"Website rejected the verification: {server_message}")


class VerificationCookieMissing(DownloaderError):
    def __init__(self):
        super().__init__("Verification succeeded but no Set-Cookie header was returned")


# --- Download ---

class MissingContentLength(DownloaderError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Content-Length header not found for {url}, response is probably not the artifact")


class DownloadStreamError(DownloaderError):
    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Download stream failed: {cause}")
