# config.py
import logging
import os
from dataclasses import dataclass

from errors import SolverConfigError, TelegramConfigError

# --- Core Settings ---
DOWNLOAD_FOLDER = "./apks"

# --- Target Site ---
# Start page per download target, formatted with DownloadTarget.path
START_URL_TEMPLATE = "https://apkw.ru/en/download/{path}/"
VERIFY_URL = "https://modsfire.com/verify-cf-captcha"

# --- Captcha Solving Service ---
CAPSOLVER_CREATE_TASK_URL = "https://api.capsolver.com/createTask"
CAPSOLVER_GET_TASK_RESULT_URL = "https://api.capsolver.com/getTaskResult"
CAPSOLVER_GET_BALANCE_URL = "https://api.capsolver.com/getBalance"
CAPSOLVER_TASK_TYPE = "AntiTurnstileTaskProxyLess"
POLL_INTERVAL_SECONDS = 3
SOLVER_TIMEOUT_SECONDS = 300

# --- Telegram ---
DEFAULT_TELEGRAM_CHANNEL = "TikTokModCloud"
TELEGRAM_MESSAGE_LIMIT = 10
TELEGRAM_CONNECTION_RETRIES = 5

# --- Logging Configuration ---
LOG_LEVEL = logging.INFO
LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'

# --- Request Settings ---
REQUEST_TIMEOUT = 30
DOWNLOAD_TIMEOUT = 120
CHUNK_SIZE = 8192

# --- User Agent ---
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/117.0.0.0 Safari/537.36"

# --- Retry Settings (using tenacity) ---
RETRY_ATTEMPTS = 3  # Total attempts per page fetch, including the first
RETRY_WAIT_SECONDS = 2  # Fixed wait between attempts


@dataclass(frozen=True)
class SolverConfig:
    api_key: str
    poll_interval: float = POLL_INTERVAL_SECONDS
    timeout: float = SOLVER_TIMEOUT_SECONDS

    def __post_init__(self):
        if not self.api_key:
            raise SolverConfigError("CAPSOLVER_KEY is not set; the captcha solver needs an API key")
        if self.poll_interval <= 0 or self.timeout <= 0:
            raise SolverConfigError("poll_interval and timeout must be positive")

    @classmethod
    def from_env(cls) -> "SolverConfig":
        return cls(api_key=os.environ.get("CAPSOLVER_KEY", "").strip())


@dataclass(frozen=True)
class TelegramConfig:
    app_id: int
    api_hash: str
    session: str
    channel: str = DEFAULT_TELEGRAM_CHANNEL

    def __post_init__(self):
        missing = [name for name in ("app_id", "api_hash", "session") if not getattr(self, name)]
        if missing:
            raise TelegramConfigError(f"Telegram configuration incomplete, missing: {', '.join(missing)}")

    @classmethod
    def from_env(cls) -> "TelegramConfig":
        raw_app_id = os.environ.get("APP_ID", "").strip()
        try:
            app_id = int(raw_app_id) if raw_app_id else 0
        except ValueError:
            raise TelegramConfigError(f"APP_ID must be an integer, got {raw_app_id!r}")
        return cls(
            app_id=app_id,
            api_hash=os.environ.get("API_HASH", "").strip(),
            session=os.environ.get("SESSION", "").strip(),
            channel=os.environ.get("TELEGRAM_CHANNEL", "").strip() or DEFAULT_TELEGRAM_CHANNEL,
        )
