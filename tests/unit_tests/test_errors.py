import asyncio
import json

import aiohttp
import pytest

from attachgate.errors import MissingRecordError, ServiceError, classify

CTX = 'Failed to upload "x"'


def body(message: str, detail: str | None = None) -> str:
    error = {"message": message}
    if detail is not None:
        error["detail"] = detail
    return json.dumps({"error": error})


class TestServerMessages:
    def test_size_exceeded(self):
        result = classify('400: {"error":{"message":"Maximum attachment size exceeded"}}', CTX)
        assert CTX in result
        assert "exceeds the maximum allowed size" in result
        assert result == f"{CTX}: The file exceeds the maximum allowed size."

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Invalid file type: application/x-msdownload", "not permitted by the server"),
            ("exe is not an authorized file extension", "extension is not authorized"),
            ("User Not Logged In", "session has expired"),
            ("Session timed out", "session has expired"),
            ("Forbidden", "do not have permission"),
            ("Unauthorized access", "do not have permission"),
        ],
    )
    def test_rules(self, message: str, expected: str):
        assert expected in classify(f"400: {body(message)}", CTX)

    def test_rules_are_ordered(self):
        # "session" wins over "unauthorized"
        result = classify(f"401: {body('Unauthorized session')}", CTX)
        assert "session has expired" in result

    def test_status_401_with_unknown_message_is_permission(self):
        result = classify(f"401: {body('Computer says no')}", CTX)
        assert result == f"{CTX}: You do not have permission to perform this action."

    def test_unknown_message_falls_back_to_server_text(self):
        assert classify(f"400: {body('Record is locked')}", CTX) == f"{CTX}: Record is locked"

    def test_detail_is_appended(self):
        result = classify(f"404: {body('No Record found', 'Record does not exist')}", CTX)
        assert result == f"{CTX}: No Record found (Record does not exist)"


class TestStatusOnly:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, "do not have permission"),
            (403, "do not have permission"),
            (404, "was not found"),
            (500, "server error occurred"),
        ],
    )
    def test_json_without_message(self, status: int, expected: str):
        assert expected in classify(f'{status}: {{"status":"failure"}}', CTX)

    @pytest.mark.parametrize(("status", "expected"), [(403, "permission"), (500, "server error")])
    def test_non_json_body(self, status: int, expected: str):
        assert expected in classify(f"{status}: <html>Oops</html>", CTX)

    def test_unmapped_status_is_generic(self):
        assert "Something went wrong" in classify("418: {}", CTX)


class TestNetworkFailures:
    @pytest.mark.parametrize(
        "raw",
        [
            "TypeError: Failed to fetch",
            "NetworkError when attempting to fetch resource.",
            "Network request failed",
            "Cannot connect to host example.com:443 ssl:default",
        ],
    )
    def test_message_patterns(self, raw: str):
        assert "network error occurred" in classify(raw, CTX)

    def test_aiohttp_connection_error(self):
        assert "network error occurred" in classify(aiohttp.ServerDisconnectedError(), CTX)

    def test_timeout(self):
        assert "network error occurred" in classify(asyncio.TimeoutError(), CTX)


class TestFallbacks:
    @pytest.mark.parametrize("raw", [None, "", "boom", ValueError("bad")])
    def test_generic(self, raw: object):
        assert classify(raw, CTX) == (
            f"{CTX}: Something went wrong. Please try again or contact your administrator."
        )

    def test_never_leaks_raw_json(self):
        result = classify('500: {"error":{}}', "Failed to load attachments")
        assert "{" not in result


def test_service_error_message_format():
    error = ServiceError(403, '{"error":{"message":"Forbidden"}}')
    assert str(error) == '403: {"error":{"message":"Forbidden"}}'
    assert error.status == 403
    assert "permission" in classify(error, CTX)


def test_download_failed_error():
    error = ServiceError.download_failed(404)
    assert str(error).startswith("404: ")
    assert classify(error, 'Failed to download "a"') == 'Failed to download "a": Download failed'


def test_missing_record_error():
    assert "table name and record id" in str(MissingRecordError.for_operation("upload"))
