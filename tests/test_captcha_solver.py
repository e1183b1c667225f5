import pytest

import config
from captcha_solver import CapSolverClient, CaptchaChallengeSolver, extract_challenge
from config import SolverConfig
from datastructures import CaptchaChallenge, TaskStatus
from errors import ChallengeExtractionFailed, SolverRejected, SolverTaskFailed, SolverTimeout
from fetcher import PageFetcher
from fakes import FakeResponse, FakeSession, SleepRecorder

PAGE_URL = "https://modsfire.com/AbC"
CHALLENGE_HTML = """
<input type="hidden" name="_token" value="csrf-1">
<input type="hidden" id="file_id" value="38.2.1_universal.apk">
<div class="cf-turnstile" data-sitekey="0xSITE"></div>
<span data-bs-original-title="File upload date"></span><p>2024-05-01 10:30</p>
"""
CHALLENGE = CaptchaChallenge(site_key="0xSITE", page_url=PAGE_URL, csrf_token="csrf-1", file_id="f")


def _status(status, token=None):
    body = {"errorId": 0, "status": status}
    if token:
        body["solution"] = {"token": token}
    return FakeResponse(json=body)


def _solver(result_responses, create=None, balance=None, solver_config=None):
    session = FakeSession({
        config.CAPSOLVER_GET_BALANCE_URL: balance or FakeResponse(json={"errorId": 0, "balance": 1.5}),
        config.CAPSOLVER_CREATE_TASK_URL: create or FakeResponse(json={"errorId": 0, "taskId": "task-1"}),
        config.CAPSOLVER_GET_TASK_RESULT_URL: result_responses,
        PAGE_URL: FakeResponse(CHALLENGE_HTML, headers={"Set-Cookie": "XSRF-TOKEN=x; Path=/, sess=s; HttpOnly"}),
    })
    sleep = SleepRecorder()
    solver_config = solver_config or SolverConfig(api_key="key-1")
    fetcher = PageFetcher(session, sleep=SleepRecorder())
    solver = CaptchaChallengeSolver(fetcher, CapSolverClient(session, solver_config.api_key), solver_config, sleep=sleep)
    return solver, session, sleep


def test_pending_pending_ready_sleeps_twice_and_returns_token():
    solver, session, sleep = _solver([_status("idle"), _status("processing"), _status("ready", "tok-123")])

    assert solver.solve_challenge(CHALLENGE) == "tok-123"
    assert sleep.calls == [3, 3]
    assert session.urls("POST").count(config.CAPSOLVER_GET_TASK_RESULT_URL) == 3


def test_pending_failed_sleeps_once_and_raises():
    solver, _, sleep = _solver([_status("processing"), _status("failed")])

    with pytest.raises(SolverTaskFailed):
        solver.solve_challenge(CHALLENGE)

    assert len(sleep.calls) == 1


def test_create_task_payload_and_rejection():
    rejected = FakeResponse(json={"errorId": 1, "errorDescription": "ERROR_KEY_DOES_NOT_EXIST"})
    solver, session, _ = _solver([_status("ready", "t")], create=rejected)

    with pytest.raises(SolverRejected) as excinfo:
        solver.solve_challenge(CHALLENGE)

    assert excinfo.value.reason == "ERROR_KEY_DOES_NOT_EXIST"
    create_call = [c for c in session.calls if c[1] == config.CAPSOLVER_CREATE_TASK_URL][0]
    assert create_call[2]["json"] == {
        "clientKey": "key-1",
        "task": {"type": "AntiTurnstileTaskProxyLess", "websiteKey": "0xSITE", "websiteURL": PAGE_URL},
    }


def test_poll_error_response_fails_task():
    error = FakeResponse(json={"errorId": 12, "errorDescription": "ERROR_CAPTCHA_UNSOLVABLE"})
    solver, _, _ = _solver([error])

    with pytest.raises(SolverTaskFailed) as excinfo:
        solver.solve_challenge(CHALLENGE)

    assert "UNSOLVABLE" in excinfo.value.detail


def test_polling_is_bounded_by_deadline():
    solver, session, sleep = _solver([_status("processing")],
                                     solver_config=SolverConfig(api_key="k", poll_interval=3, timeout=9))

    with pytest.raises(SolverTimeout) as excinfo:
        solver.solve_challenge(CHALLENGE)

    assert excinfo.value.task_id == "task-1"
    assert session.urls("POST").count(config.CAPSOLVER_GET_TASK_RESULT_URL) == 3
    assert len(sleep.calls) == 2


def test_balance_error_is_not_fatal():
    balance = FakeResponse(json={"errorId": 1, "errorDescription": "ERROR_ZERO_BALANCE"})
    solver, _, _ = _solver([_status("ready", "tok")], balance=balance)

    assert solver.solve_challenge(CHALLENGE) == "tok"


def test_extract_challenge_collects_fields_and_cookies():
    solver, _, _ = _solver([_status("ready", "tok")])

    challenge = solver.extract_challenge(PAGE_URL)

    assert challenge.site_key == "0xSITE"
    assert challenge.csrf_token == "csrf-1"
    assert challenge.file_id == "38.2.1_universal.apk"
    assert challenge.page_url == PAGE_URL
    assert challenge.cookies == "XSRF-TOKEN=x; sess=s"
    assert challenge.upload_date == "2024-05-01 10:30"


def test_solve_runs_extraction_then_task():
    solver, session, _ = _solver([_status("ready", "tok-9")])

    assert solver.solve(PAGE_URL) == "tok-9"
    assert session.urls()[0] == PAGE_URL


def test_missing_challenge_field_is_reported():
    session = FakeSession({PAGE_URL: FakeResponse('<input name="_token" value="c">')})

    with pytest.raises(ChallengeExtractionFailed) as excinfo:
        extract_challenge(PageFetcher(session, sleep=SleepRecorder()), PAGE_URL)

    assert excinfo.value.missing == ["file_id", "site_key"]


def test_ready_status_maps_to_task():
    session = FakeSession({config.CAPSOLVER_GET_TASK_RESULT_URL: _status("ready", "abc")})

    task = CapSolverClient(session, "k").get_task_result("t-1")

    assert task.status is TaskStatus.READY
    assert task.solution_token == "abc"
    assert session.calls[0][2]["json"] == {"clientKey": "k", "taskId": "t-1"}
