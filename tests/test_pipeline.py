"""End-to-end pipeline behaviour against fake probes and a fake host."""

from dataclasses import replace

from conftest import CERT_A, CERT_B, FakeBuild, FakeProbes

from deploycheck.exceptions import (
    BuildFailure,
    ContentInvalid,
    Drift,
    NoListener,
    ProbeTimeout,
    ProtocolFailure,
    TeardownError,
    Unreachable,
)
from deploycheck.models.results import ProbeResponse, StageStatus
from deploycheck.models.run import Mode, Stage


def statuses(run):
    return {result.stage: result.status for result in run.results}


def executed(run):
    return [r.stage for r in run.results if r.status is not StageStatus.SKIPPED]


def test_privileged_listener_with_stable_certificate_passes(harness):
    run = harness.run()

    assert run.is_success
    assert run.exit_code == 0
    assert (run.port, run.mode) == (443, Mode.PRIVILEGED)
    assert statuses(run)[Stage.RESTART_CERT_STABLE.value] is StageStatus.PASSED
    assert statuses(run)[Stage.CONTENT_CHECK.value] is StageStatus.PASSED
    assert statuses(run)[Stage.MODE_SWITCH_CERT_STABLE.value] is StageStatus.SKIPPED
    assert statuses(run)[Stage.TEARDOWN_DECISION.value] is StageStatus.PASSED
    # session check waits between its two fingerprint reads
    assert 3 in harness.sleeps
    assert harness.log_captures == 0
    assert harness.remote.running


def test_stages_run_in_declared_order(harness):
    run = harness.run()

    assert [r.stage for r in run.results] == [stage.value for stage in Stage]


def test_fingerprint_change_across_restart_fails_with_drift(harness):
    harness.probes.fingerprint_queue = [CERT_A, CERT_A, CERT_A, CERT_B]

    run = harness.run()

    assert run.exit_code == 1
    failed = run.failed
    assert failed.stage == Stage.RESTART_CERT_STABLE.value
    assert isinstance(failed.error, Drift)
    assert failed.error.first == CERT_A
    assert failed.error.second == CERT_B
    assert Stage.CONTENT_CHECK.value not in statuses(run)
    assert harness.log_captures == 1
    assert failed.diagnostics == {"log_tail": "error: boom\n"}


def test_fingerprint_change_within_session_fails_before_restart(harness):
    harness.probes.fingerprint_queue = [CERT_A, CERT_B]

    run = harness.run()

    assert run.failed.stage == Stage.SESSION_CERT_STABLE.value
    assert isinstance(run.failed.error, Drift)
    assert harness.remote.restarts == []


def test_unprivileged_listener_enters_mode_switch(make_harness, run_config):
    config = replace(run_config, launch_mode=Mode.UNPRIVILEGED)
    harness = make_harness(FakeProbes(open_ports=(80, 9443)), config=config)

    run = harness.run()

    assert run.is_success
    assert (run.port, run.mode) == (9443, Mode.UNPRIVILEGED)
    assert statuses(run)[Stage.MODE_SWITCH_CERT_STABLE.value] is StageStatus.PASSED
    # restart check, switch, restart check on the alternate port, restore
    assert harness.remote.restarts == [
        Mode.UNPRIVILEGED,
        Mode.PRIVILEGED,
        Mode.PRIVILEGED,
        Mode.UNPRIVILEGED,
    ]
    assert ("fetch_cert_fingerprint", 443) in harness.probes.calls
    assert harness.probes.open_ports == {80, 9443}


def test_https_urls_carry_the_fallback_port(make_harness, run_config):
    config = replace(run_config, launch_mode=Mode.UNPRIVILEGED)
    harness = make_harness(FakeProbes(open_ports=(80, 9443)), config=config)

    harness.run()

    urls = [call[1] for call in harness.probes.calls if call[0] == "https_get"]
    assert urls and all(url.endswith(":9443") for url in urls)


def test_empty_body_fails_content_check(harness):
    harness.probes.body = ""

    run = harness.run()

    assert run.exit_code == 1
    assert run.failed.stage == Stage.CONTENT_CHECK.value
    assert isinstance(run.failed.error, ContentInvalid)
    assert harness.log_captures == 1
    assert Stage.TEARDOWN_DECISION.value not in statuses(run)


def test_non_html_body_fails_content_check_with_preview(harness):
    harness.probes.body = "plain\ntext\n"

    run = harness.run()

    error = run.failed.error
    assert isinstance(error, ContentInvalid)
    assert error.preview == "plain\ntext"


def test_html_marker_match_is_case_insensitive(harness):
    harness.probes.body = "<HTML><BODY>ok</BODY></HTML>"

    assert harness.run().is_success


def test_quit_after_stops_the_server(make_harness, run_config):
    harness = make_harness(config=replace(run_config, keepalive=False))

    run = harness.run()

    assert run.exit_code == 0
    assert not harness.remote.running
    assert harness.remote.events[-1] == ("kill",)
    assert run.results[-1].detail == "easyp stopped"


def test_quit_after_fails_if_server_survives_kill(make_harness, run_config):
    harness = make_harness(config=replace(run_config, keepalive=False))
    harness.remote.kill = lambda: None

    run = harness.run()

    assert run.failed.stage == Stage.TEARDOWN_DECISION.value
    assert isinstance(run.failed.error, TeardownError)
    assert harness.log_captures == 1


def test_no_listener_short_circuits_every_network_stage(harness):
    harness.remote.follow_mode = False
    harness.probes.open_ports = {80}

    run = harness.run()

    assert run.exit_code == 1
    assert run.failed.stage == Stage.PORT_PROBE.value
    assert isinstance(run.failed.error, NoListener)
    assert executed(run) == [
        Stage.BUILD_CHECK.value,
        Stage.DEPLOY.value,
        Stage.PORT_PROBE.value,
    ]
    assert harness.probes.count("http_get") == 0
    assert harness.probes.count("https_get") == 0
    assert harness.probes.count("fetch_cert_fingerprint") == 0
    assert harness.log_captures == 1


def test_primary_https_failure_makes_exactly_one_fallback_attempt(harness):
    harness.probes.https_queue = [
        Unreachable("primary failed", transcript="* primary"),
        ProbeResponse(url="https://x", status_code=200, body="<html></html>"),
    ]

    run = harness.run()

    assert run.is_success
    https_calls = [c for c in harness.probes.calls if c[0] == "https_get"]
    primary, fallback = https_calls[0][2], https_calls[1][2]
    assert primary["cipher_list"] and primary["retry_count"] == 2
    assert primary.get("tls_max") is None and fallback["tls_max"] == "1.3"
    assert fallback["cipher_list"] is None and fallback["retry_count"] == 1
    assert primary["verify_peer"] is False and fallback["verify_peer"] is False
    assert run.results[4].detail.endswith("(fallback TLS options)")


def test_both_https_attempts_failing_reports_fallback_output(harness):
    harness.probes.https_queue = [
        Unreachable("primary failed", transcript="* primary"),
        ProbeTimeout("fallback timed out", transcript="* fallback raw output"),
    ]

    run = harness.run()

    assert run.failed.stage == Stage.HTTPS_CHECK.value
    error = run.failed.error
    assert isinstance(error, ProtocolFailure)
    assert error.raw_output == "* fallback raw output"
    assert harness.probes.count("https_get") == 2
    assert harness.probes.count("fetch_cert_fingerprint") == 0
    assert harness.log_captures == 1


def test_http_failure_stops_before_https(harness):
    harness.probes.http_result = Unreachable("connection refused")

    run = harness.run()

    assert run.failed.stage == Stage.HTTP_CHECK.value
    assert harness.probes.count("https_get") == 0


def test_build_failure_never_deploys_and_skips_log_capture(make_harness):
    harness = make_harness(build=FakeBuild(BuildFailure("cargo exploded")))

    run = harness.run()

    assert run.exit_code == 1
    assert run.failed.stage == Stage.BUILD_CHECK.value
    assert [r.stage for r in run.results] == [Stage.BUILD_CHECK.value]
    assert harness.remote.events == []
    assert harness.log_captures == 0


def test_dead_process_after_launch_fails_deploy_with_log_capture(harness):
    harness.remote.alive_after_launch = False

    run = harness.run()

    assert run.failed.stage == Stage.DEPLOY.value
    assert harness.log_captures == 1
    assert harness.probes.count("tcp_reachable") == 0


def test_deploy_kills_prepares_transfers_then_launches(harness):
    harness.run()

    names = [event[0] for event in harness.remote.events[:4]]
    assert names == ["kill", "prepare_directories", "transfer", "launch"]


def test_restart_timeout_fails_restart_stage(harness):
    def never_comes_back(mode):
        harness.remote.running = False

    harness.remote.on_restart = never_comes_back

    run = harness.run()

    assert run.failed.stage == Stage.RESTART_CERT_STABLE.value
    assert harness.log_captures == 1


def test_exactly_one_log_capture_per_failed_run(harness):
    harness.probes.fingerprint_queue = [CERT_A, CERT_B]

    harness.run()

    assert harness.reporter.captures == 1
