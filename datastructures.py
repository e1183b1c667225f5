from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DownloadTarget(Enum):
    MOD = "mod"
    PLUGIN = "plugin"

    @property
    def path(self) -> str:
        return f"tik-tok-{self.value}"


class TaskStatus(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchedPage:
    url: str  # effective URL after redirects
    status_code: int
    text: str
    set_cookie: Optional[str] = None  # raw (possibly comma-joined) Set-Cookie value


@dataclass(frozen=True)
class ResolvedLinks:
    direct_url: str
    authorizing_url: str


@dataclass(frozen=True)
class CaptchaChallenge:
    site_key: str
    page_url: str
    csrf_token: str
    file_id: str
    cookies: str = ""  # normalized cookies from the challenge page fetch
    upload_date: Optional[str] = None


@dataclass(frozen=True)
class CaptchaTask:
    task_id: str
    status: TaskStatus
    solution_token: Optional[str] = None
    detail: str = ""


@dataclass(frozen=True)
class DownloadResult:
    file_path: str
    bytes_written: int
    final_url: str
