import io

from rich.console import Console

from conftest import HOST, FakeSSH

from deploycheck.exceptions import ContentInvalid, ProtocolFailure, SSHError
from deploycheck.models.results import SSHResult, StageResult, StageStatus
from deploycheck.services.diagnostics import DiagnosticReporter


def make_reporter(responses):
    out = io.StringIO()
    reporter = DiagnosticReporter(
        FakeSSH(responses), "/opt/easyp/server.log", console=Console(file=out, width=120)
    )
    return reporter, out


def test_log_tail_is_returned():
    reporter, _ = make_reporter({"tail": SSHResult(returncode=0, stdout="bound :443\n")})

    assert reporter.capture_log_tail(HOST, 20) == "bound :443\n"
    assert reporter.ssh.commands == ["tail -n 20 /opt/easyp/server.log"]
    assert reporter.captures == 1


def test_missing_log_is_reported_not_raised():
    reporter, out = make_reporter({"tail": SSHResult(returncode=1, stderr="No such file")})

    assert reporter.capture_log_tail(HOST) is None
    assert "No server log found" in out.getvalue()


def test_ssh_failure_is_reported_not_raised():
    reporter, out = make_reporter({"tail": SSHError("SSH command timed out after 30s")})

    assert reporter.capture_log_tail(HOST) is None
    assert "timed out" in out.getvalue()


def test_report_shows_raw_fallback_output_and_log_tail():
    reporter, out = make_reporter({})
    error = ProtocolFailure("HTTPS failed", raw_output="* attempt 1/2\n[SSL] alert 40")
    result = StageResult(
        stage="https_check", status=StageStatus.FAILED, detail="HTTPS failed", error=error
    )

    reporter.report_failure(result, "panic at [main]\n")

    text = out.getvalue()
    assert "Stage https_check failed: HTTPS failed" in text
    assert "[SSL] alert 40" in text
    assert "panic at [main]" in text


def test_report_shows_content_preview():
    reporter, out = make_reporter({})
    error = ContentInvalid("Response is not HTML", preview="hello\nworld")
    result = StageResult(stage="content_check", status=StageStatus.FAILED, error=error)

    reporter.report_failure(result, None)

    assert "Response content" in out.getvalue()
    assert "Server log" not in out.getvalue()
