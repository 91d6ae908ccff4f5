"""Tests for terminal output formatting."""

from tapi.output import format_output
from tests.conftest import make_request_result


class TestFormatOutput:
    def test_default_layout(self):
        result = make_request_result(body={"origin": "1.2.3.4"})
        out = format_output(result)
        lines = out.splitlines()
        assert lines[0] == "STATUS: 200 OK"
        assert lines[1] == "TIME: 42ms"
        assert lines[2].startswith("SIZE: ")
        assert lines[3] == "BODY:"
        assert '"origin": "1.2.3.4"' in out
        assert "HEADERS:" not in out

    def test_verbose_headers(self):
        result = make_request_result(body="ok", headers={"Server": "gunicorn"})
        out = format_output(result, verbose=True)
        assert "HEADERS:\n  Server: gunicorn" in out

    def test_raw_body_only(self):
        assert format_output(make_request_result(body="plain text"), raw=True) == "plain text"

    def test_error(self):
        assert format_output(make_request_result(error="boom")) == "ERROR: boom"

    def test_truncated_marker(self):
        result = make_request_result(body="x")
        result.truncated = True
        assert "(truncated)" in format_output(result)

    def test_empty_body_has_no_section(self):
        result = make_request_result(status_code=204, reason="No Content", body="")
        out = format_output(result)
        assert out.startswith("STATUS: 204 No Content")
        assert "BODY:" not in out
