from datetime import datetime

import pytest
from requests.structures import CaseInsensitiveDict

from utils import filename_from_url, get_filename_from_content_disposition, parse_upload_date, sanitize_filename, split_version


@pytest.mark.parametrize("file_id, expected", [
    ("38.2.1_universal.apk", ("38.2.1", None)),
    ("38.2.1_plugin.apk", ("38.2.1", None)),
    ("38.2.1_arm64.apk", ("38.2.1", "arm64")),
    ("38.2.1", ("38.2.1", None)),
])
def test_split_version(file_id, expected):
    assert split_version(file_id) == expected


def test_parse_upload_date_absolute_passes_through():
    assert parse_upload_date(" 2024-05-01 10:30 ") == "2024-05-01 10:30"


def test_parse_upload_date_relative():
    now = datetime(2024, 5, 10, 12, 0)

    assert parse_upload_date("3 hours ago", now=now) == "2024-05-10 09:00"
    assert parse_upload_date("1 week ago", now=now) == "2024-05-03 12:00"


def test_parse_upload_date_unknown_format():
    assert parse_upload_date("yesterday-ish") is None


def test_filename_from_url_ignores_query():
    assert filename_from_url("https://cdn.example/files/My%20App.apk?sig=abc") == "My App.apk"
    assert filename_from_url("https://cdn.example/") == "downloaded_file"


def test_content_disposition_forms():
    utf8 = CaseInsensitiveDict({"content-disposition": "attachment; filename*=UTF-8''Tik%C3%9Cok.apk"})
    plain = CaseInsensitiveDict({"Content-Disposition": "attachment; filename=plain.apk"})

    assert get_filename_from_content_disposition(utf8) == "TikÜok.apk"
    assert get_filename_from_content_disposition(plain) == "plain.apk"
    assert get_filename_from_content_disposition(CaseInsensitiveDict()) is None


def test_sanitize_filename_strips_paths_and_illegal_chars():
    assert sanitize_filename("../../etc/pa:ss?wd") == "passwd"
    assert sanitize_filename("") == "downloaded_file"
