import pytest
from click.testing import CliRunner

from deploycheck.commands import verify
from deploycheck.commands.verify import VerifyCommand, parse_invocation
from deploycheck.exceptions import ConfigurationError
from deploycheck.models.results import StageResult, StageStatus
from deploycheck.models.run import PipelineRun


class StubPipeline:
    def __init__(self, config, status):
        self.config = config
        self.status = status

    def run(self):
        return PipelineRun(
            config=self.config,
            results=[StageResult(stage="build_check", status=self.status, detail="[x] ok")],
        )


@pytest.fixture
def captured(monkeypatch):
    seen = {"status": StageStatus.PASSED}

    def build_pipeline(self, config, logger):
        seen["config"] = config
        seen["logger"] = logger
        return StubPipeline(config, seen["status"])

    monkeypatch.setattr(VerifyCommand, "build_pipeline", build_pipeline)
    return seen


@pytest.mark.parametrize(
    "args, expected",
    [
        ((), (True, None)),
        (("web.example",), (True, "web.example")),
        (("quitafter",), (False, None)),
        (("quitafter", "web.example"), (False, "web.example")),
        (("web.example", "quitafter"), None),
    ],
)
def test_parse_invocation(args, expected):
    if expected is None:
        with pytest.raises(ConfigurationError):
            parse_invocation(args)
    else:
        assert parse_invocation(args) == expected


def test_successful_run_exits_zero(captured):
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(verify, ["web.example"])

    assert result.exit_code == 0, result.output
    assert captured["config"].host == "web.example"
    assert captured["config"].keepalive
    assert captured["logger"].log_path.name.endswith("_verify.log")


def test_failed_stage_exits_one(captured):
    captured["status"] = StageStatus.FAILED
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(verify, ["web.example"])

    assert result.exit_code == 1


def test_quitafter_with_default_host(captured):
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open(".remote", "w") as f:
            f.write("default.example\n")
        result = runner.invoke(verify, ["quitafter"])

    assert result.exit_code == 0, result.output
    assert captured["config"].host == "default.example"
    assert captured["config"].quit_after


def test_missing_host_exits_one_without_running(captured):
    runner = CliRunner()
    with runner.isolated_filesystem():
        result = runner.invoke(verify, [])

    assert result.exit_code == 1
    assert "config" not in captured
    assert "No target host" in result.output


def test_config_option_is_honoured(captured):
    runner = CliRunner()
    with runner.isolated_filesystem():
        with open("ci.yml", "w") as f:
            f.write("build:\n  profile: release\n")
        result = runner.invoke(verify, ["-c", "ci.yml", "web.example"])

    assert result.exit_code == 0, result.output
    assert captured["config"].profile == "release"
