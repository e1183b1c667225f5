# downloader.py
import os
import sys
import logging
from typing import Callable, Iterable, Optional

import requests

from datastructures import DownloadResult
from errors import DownloadStreamError, HttpError, MissingContentLength
from utils import filename_from_url, get_filename_from_content_disposition
import config

logger = logging.getLogger(__name__)


def progress_percentage(bytes_so_far: int, total: int) -> int:
    """floor(bytes_so_far / total * 100) in integer arithmetic; 100 only when complete."""
    if total <= 0:
        raise ValueError("total must be positive")
    return bytes_so_far * 100 // total


def print_progress(percentage: int):
    sys.stdout.write(f"\rDownloading... {percentage}%")
    sys.stdout.flush()


class ProgressReporter:
    """Calls `callback` only when the whole-number percentage changes."""

    def __init__(self, total: int, callback: Callable[[int], None] = print_progress):
        self.total = total
        self.callback = callback
        self.last_reported: Optional[int] = None

    def update(self, bytes_so_far: int):
        percentage = progress_percentage(bytes_so_far, self.total)
        if percentage != self.last_reported:
            self.last_reported = percentage
            self.callback(percentage)


def write_chunks(chunks: Iterable[bytes], fileobj, reporter: ProgressReporter) -> int:
    """Single pass over `chunks`: writes each one and folds a running byte count."""
    written = 0
    for chunk in chunks:
        if not chunk:
            continue
        fileobj.write(chunk)
        written += len(chunk)
        reporter.update(written)
    return written


def _remove_quietly(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove partial file {path}: {e}")


class StreamingDownloader:
    def __init__(self, session: requests.Session, progress_callback: Callable[[int], None] = print_progress):
        self.session = session
        self.progress_callback = progress_callback

    def download(self, url: str, referer: str, cookie: Optional[str] = None,
                 output_dir: str = config.DOWNLOAD_FOLDER) -> DownloadResult:
        # Content-Length must count the bytes iter_content yields, so no transfer compression
        headers = {"Referer": referer, "Accept-Encoding": "identity"}
        if cookie:
            headers["Cookie"] = cookie

        logger.info(f"Starting download from {url}")
        try:
            response = self.session.get(url, headers=headers, stream=True, allow_redirects=True,
                                        timeout=config.DOWNLOAD_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise HttpError(url, cause=e) from e

        try:
            if not 200 <= response.status_code < 300:
                raise HttpError(url, status=response.status_code)

            final_url = response.url or url
            try:
                total_size = int(response.headers.get("Content-Length", ""))
            except ValueError:
                total_size = 0
            if total_size <= 0:
                raise MissingContentLength(final_url)

            filename = get_filename_from_content_disposition(response.headers) or filename_from_url(final_url)
            os.makedirs(output_dir, exist_ok=True)
            file_path = os.path.join(output_dir, filename)
            partial_path = file_path + ".part"

            logger.info(f"Downloading {filename} ({total_size} bytes) to {output_dir}")
            reporter = ProgressReporter(total_size, self.progress_callback)
            try:
                with open(partial_path, "wb") as f:
                    written = write_chunks(response.iter_content(chunk_size=config.CHUNK_SIZE), f, reporter)
                if written != total_size:
                    raise DownloadStreamError(f"stream ended after {written} of {total_size} bytes")
                os.replace(partial_path, file_path)
            except (requests.exceptions.RequestException, OSError) as e:
                _remove_quietly(partial_path)
                raise DownloadStreamError(e) from e
            except BaseException:
                # Short stream or Ctrl-C: never leave a partial artifact behind
                _remove_quietly(partial_path)
                raise
        finally:
            response.close()

        if self.progress_callback is print_progress:
            sys.stdout.write("\n")
        logger.info(f"File downloaded successfully: {file_path}")
        return DownloadResult(file_path=file_path, bytes_written=written, final_url=final_url)
