import re
import os
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

RELATIVE_DATE_UNITS = {
    "second": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}
UPLOAD_DATE_FORMAT = "%Y-%m-%d %H:%M"

def sanitize_filename(filename: Optional[str], default: str = "downloaded_file") -> str:
    """Strips directory parts and characters that are illegal on common filesystems."""
    if not filename:
        return default
    filename = os.path.basename(filename.replace("\\", "/"))
    filename = re.sub(r'[\\/*?:"<>|\x00-\x1f]', "", filename).strip(" .")
    if len(filename) > 240:
        stem, ext = os.path.splitext(filename)
        filename = stem[:240 - len(ext)] + ext
        logger.debug(f"Truncated filename to: {filename}")
    return filename or default

def get_filename_from_content_disposition(headers) -> Optional[str]:
    """Extracts filename from Content-Disposition header."""
    cd = headers.get("Content-Disposition")
    if not cd:
        return None

    # RFC 5987 form takes precedence: filename*=UTF-8''...
    match = re.search(r"filename\*=UTF-8''([^;]+)", cd, flags=re.IGNORECASE)
    if match:
        return sanitize_filename(unquote(match.group(1).strip().strip('"'), encoding="utf-8"))

    match = re.search(r'filename=(?:"([^"]+)"|([^;]+))', cd, flags=re.IGNORECASE)
    if match:
        return sanitize_filename(unquote((match.group(1) or match.group(2)).strip()))

    logger.debug(f"Could not parse filename from Content-Disposition: {cd}")
    return None

def filename_from_url(url: str) -> str:
    segment = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
    return sanitize_filename(unquote(segment))

def split_version(file_id: str) -> Tuple[str, Optional[str]]:
    """
    Splits a hosted file id such as '38.1.4_universal.apk' into its version
    and an optional build suffix. 'plugin' and 'universal' are not suffixes.
    """
    version = file_id.split("_", 1)[0]
    if "_" not in file_id:
        return version, None
    suffix = file_id.rsplit("_", 1)[-1]
    if suffix.endswith(".apk"):
        suffix = suffix[:-len(".apk")]
    if suffix in ("plugin", "universal") or not suffix:
        return version, None
    return version, suffix

def parse_upload_date(raw_text: str, now: Optional[datetime] = None) -> Optional[str]:
    """Normalizes '2024-05-01 10:30' or '3 hours ago' to '%Y-%m-%d %H:%M'."""
    text = raw_text.strip()
    try:
        datetime.strptime(text, UPLOAD_DATE_FORMAT)
        return text
    except ValueError:
        pass

    match = re.search(r"(\d+)\s+(second|minute|hour|day|week|month|year)s?\s+ago", text)
    if not match:
        logger.debug(f"Upload date format not recognized: {text!r}")
        return None
    now = now or datetime.now()
    uploaded = now - int(match.group(1)) * RELATIVE_DATE_UNITS[match.group(2)]
    return uploaded.strftime(UPLOAD_DATE_FORMAT)
