"""
Tests for the error body and status-to-code mapping.
"""
import pytest

from core.errors import error_code


@pytest.mark.parametrize("status_code, code", [
    (400, "BAD_REQUEST"),
    (404, "NOT_FOUND"),
    (405, "METHOD_NOT_ALLOWED"),
    (413, "PAYLOAD_TOO_LARGE"),
    (410, "GONE"),
    (502, "BAD_GATEWAY"),
    (499, "BAD_REQUEST"),
    (599, "INTERNAL_SERVER_ERROR"),
])
def test_error_code(status_code, code):
    assert error_code(status_code) == code


def test_wrong_method_keeps_status_name(client):
    response = client.post("/health")
    assert response.status_code == 405
    assert response.json()["code"] == "METHOD_NOT_ALLOWED"
    assert "GET" in response.headers["allow"]
