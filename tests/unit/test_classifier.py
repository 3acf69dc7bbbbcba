"""실패 분류기 테스트"""

import pytest

from mediafetch.core.exceptions import (
    AcquisitionTimeoutException,
    AgeGateException,
    EmptyArtifactException,
    ErrorKind,
    ProcessSpawnException,
    ResourceUnavailableException,
)
from mediafetch.engine.classifier import (
    classify_http_status,
    classify_playability,
    classify_text,
    classify_tool_output,
    exception_for,
    summarize_output,
)


class TestToolOutput:
    @pytest.mark.parametrize(
        "stderr,expected",
        [
            ("ERROR: [youtube] abc: Sign in to confirm your age", ErrorKind.AGE_OR_CONSENT_GATE),
            ("ERROR: [youtube] abc: Sign in to confirm you're not a bot", ErrorKind.ACCESS_DENIED),
            ("ERROR: unable to download webpage: HTTP Error 403: Forbidden", ErrorKind.ACCESS_DENIED),
            ("ERROR: HTTP Error 429: Too Many Requests", ErrorKind.ACCESS_DENIED),
            ("ERROR: [youtube] abc: Video unavailable", ErrorKind.UNAVAILABLE),
            ("ERROR: [youtube] abc: Private video", ErrorKind.UNAVAILABLE),
            ("ERROR: HTTP Error 404: Not Found", ErrorKind.NOT_FOUND),
            ("ERROR: Read timed out.", ErrorKind.TIMEOUT),
            ("ERROR: Requested format is not available", ErrorKind.EXTRACTION_FAILED),
        ],
    )
    def test_markers(self, stderr: str, expected: ErrorKind) -> None:
        assert classify_tool_output(1, stderr) == expected

    def test_empty_output_defaults_to_extraction_failed(self) -> None:
        assert classify_tool_output(1, "", "") == ErrorKind.EXTRACTION_FAILED

    def test_stdout_is_inspected(self) -> None:
        assert classify_tool_output(1, "", "This video is private video") == ErrorKind.UNAVAILABLE

    def test_classify_text_no_match(self) -> None:
        assert classify_text("something odd happened") is None


class TestHttpStatus:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (200, None),
            (302, None),
            (403, ErrorKind.ACCESS_DENIED),
            (429, ErrorKind.ACCESS_DENIED),
            (404, ErrorKind.NOT_FOUND),
            (410, ErrorKind.NOT_FOUND),
            (451, ErrorKind.UNAVAILABLE),
            (500, ErrorKind.EXTRACTION_FAILED),
            (0, ErrorKind.EXTRACTION_FAILED),
        ],
    )
    def test_mapping(self, status: int, expected) -> None:
        assert classify_http_status(status) == expected

    def test_not_found_override(self) -> None:
        assert classify_http_status(404, not_found_kind=ErrorKind.UNAVAILABLE) == ErrorKind.UNAVAILABLE


class TestPlayability:
    def test_ok(self) -> None:
        assert classify_playability({"status": "OK"}) is None
        assert classify_playability(None) is None

    def test_age_check(self) -> None:
        assert classify_playability({"status": "AGE_CHECK_REQUIRED"}) == ErrorKind.AGE_OR_CONSENT_GATE

    def test_login_required_with_age_reason(self) -> None:
        playability = {"status": "LOGIN_REQUIRED", "reason": "Sign in to confirm your age"}
        assert classify_playability(playability) == ErrorKind.AGE_OR_CONSENT_GATE

    def test_login_required_bot_check(self) -> None:
        playability = {"status": "LOGIN_REQUIRED", "reason": "Sign in to confirm you're not a bot"}
        assert classify_playability(playability) == ErrorKind.ACCESS_DENIED

    def test_error_screen_subreason(self) -> None:
        playability = {
            "status": "UNPLAYABLE",
            "errorScreen": {
                "playerErrorMessageRenderer": {"subreason": {"runs": [{"text": "This video is private"}]}}
            },
        }
        assert classify_playability(playability) == ErrorKind.UNAVAILABLE


class TestHelpers:
    def test_summarize_picks_last_error_and_masks_proxy(self) -> None:
        text = "[youtube] abc: Downloading\nERROR: first\nERROR: via http://user:pw@1.2.3.4:80 failed\n[info] done"
        summary = summarize_output(text)
        assert summary.startswith("ERROR: via")
        assert "pw" not in summary

    def test_summarize_truncates(self) -> None:
        assert summarize_output("x" * 1000, max_length=10) == "x" * 10 + "..."

    def test_exception_for(self) -> None:
        assert isinstance(exception_for(ErrorKind.AGE_OR_CONSENT_GATE, "age"), AgeGateException)
        assert isinstance(exception_for(ErrorKind.UNAVAILABLE, "gone"), ResourceUnavailableException)

        timeout = exception_for(ErrorKind.TIMEOUT, "slow", {"operation": "ytdlp-ios", "timeout_s": 30})
        assert isinstance(timeout, AcquisitionTimeoutException)
        assert timeout.details["timeout_s"] == 30

        spawn = exception_for(ErrorKind.PROCESS_SPAWN_ERROR, "missing", {"binary": "yt-dlp"})
        assert isinstance(spawn, ProcessSpawnException)

        empty = exception_for(ErrorKind.EMPTY_ARTIFACT, "empty", {"path": "x", "size": 0, "min_bytes": 1024})
        assert isinstance(empty, EmptyArtifactException)
