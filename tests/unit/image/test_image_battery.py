"""Tests for probe evaluation and the image battery."""

import pytest
from pydantic import ValidationError

from fipscheck.core.result import ExecResult, OutcomeStatus, Polarity
from fipscheck.image.battery import ImageBattery, Probe, evaluate
from fipscheck.image.engine import ContainerEngine, ImageNotFoundError

PROVIDERS = """Providers:
  base
    name: OpenSSL Base Provider
    version: 3.0.9
    status: active
  fips
    name: OpenSSL FIPS Provider
    version: 3.0.9
    status: active
"""


def _engine(make_executor, returncode=0, stdout="", stderr=""):
    def handler(command):
        if command[1:3] == ["image", "inspect"] and "--format" not in command:
            return ExecResult(returncode=0)
        return ExecResult(returncode=returncode, stdout=stdout, stderr=stderr)
    return ContainerEngine(make_executor(handler))


def test_probe_needs_a_target():
    with pytest.raises(ValidationError, match="needs a command"):
        Probe(name="empty")


def test_probe_polarity_from_string():
    probe = Probe(name="md5", command=["openssl", "md5"],
                  polarity="expect_rejection")

    assert probe.polarity is Polarity.EXPECT_REJECTION


def test_expected_output_matches(make_executor):
    probe = Probe(
        name="version",
        command=["openssl", "list", "-providers"],
        expect=[r"OpenSSL FIPS Provider\s*\n\s*version: 3\.0\.9", "active"],
    )

    outcome = evaluate(probe, _engine(make_executor, stdout=PROVIDERS), "img")

    assert outcome.status is OutcomeStatus.SUCCEEDED
    assert outcome.detail == "output matched"


def test_missing_pattern_is_mismatch(make_executor):
    probe = Probe(name="v", command=["x"], expect=["version: 3\\.1\\.2"])

    outcome = evaluate(probe, _engine(make_executor, stdout=PROVIDERS), "img")

    assert outcome.status is OutcomeStatus.MISMATCHED
    assert "version: 3\\\\.1\\\\.2" in outcome.detail


def test_nonzero_exit_is_error(make_executor):
    probe = Probe(name="cat", command=["cat", "/etc/ssl/fipsmodule.cnf"])
    engine = _engine(
        make_executor, returncode=1,
        stderr="cat: /etc/ssl/fipsmodule.cnf: No such file or directory\n",
    )

    outcome = evaluate(probe, engine, "img")

    assert outcome.status is OutcomeStatus.ERRORED
    assert outcome.detail == (
        "exit code 1: cat: /etc/ssl/fipsmodule.cnf: No such file or directory"
    )


def test_exit_code_ignored_when_not_checked(make_executor):
    probe = Probe(
        name="tls", command=["sh"], expect=["cipher"], ignore_case=True,
        check_exit=False,
    )
    engine = _engine(make_executor, returncode=1, stdout="CIPHER is X\n")

    assert evaluate(probe, engine, "img").ok


def test_stderr_is_searched(make_executor):
    probe = Probe(name="p", command=["x"], expect=["warning"])
    engine = _engine(make_executor, stderr="a warning\n")

    assert evaluate(probe, engine, "img").ok


def test_inspect_probe(make_executor):
    labels = (
        '{"openssl.fips.certificate":"4282",'
        '"openssl.fips.version":"3.0.9"}'
    )
    probe = Probe(
        name="labels",
        inspect_format="{{json .Config.Labels}}",
        expect=[r'"openssl\.fips\.certificate":"4282"'],
    )
    executor = make_executor(
        lambda command: ExecResult(returncode=0, stdout=labels)
    )
    engine = ContainerEngine(executor)

    assert evaluate(probe, engine, "img").ok
    assert "--format" in executor.commands[0]


def test_preflight_abort_runs_no_probes(
    make_executor, summary, reporter, report_stream
):
    executor = make_executor(lambda command: ExecResult(returncode=1))
    probes = [Probe(name=f"p{i}", command=["true"]) for i in range(3)]
    battery = ImageBattery(ContainerEngine(executor), "missing", probes)

    with pytest.raises(ImageNotFoundError):
        battery.run(summary, reporter)

    assert executor.commands == [["docker", "image", "inspect", "missing"]]
    assert summary.total == 0
    assert report_stream.getvalue() == ""


def test_probes_run_in_order_with_polarity(
    make_executor, summary, reporter, report_stream, pass_lines, fail_lines
):
    def handler(command):
        if command[-1] == "md5":
            return ExecResult(returncode=1, stderr="unsupported\n")
        if command[-1] == "sdks":
            return ExecResult(
                returncode=0, stdout="8.0.100 [/usr/share/dotnet/sdk]\n"
            )
        return ExecResult(returncode=0, stdout="ok\n")

    probes = [
        Probe(name="sha", command=["sha"]),
        Probe(name="md5 rejected", command=["md5"],
              polarity=Polarity.EXPECT_REJECTION),
        Probe(name="no sdk", command=["sdks"],
              expect=[r"(?m)^\d+\.\d+\.\d+\s+\["],
              polarity=Polarity.EXPECT_REJECTION),
    ]
    executor = make_executor(handler)
    battery = ImageBattery(ContainerEngine(executor), "img", probes)

    battery.run(summary, reporter)

    assert [r.name for r in summary.results] == [
        "sha", "md5 rejected", "no sdk"
    ]
    text = report_stream.getvalue()
    assert len(pass_lines(text)) == 2
    assert fail_lines(text) == [
        "  FAIL no sdk - was NOT rejected (output matched)"
    ]
    assert all(cmd[:3] == ["docker", "run", "--rm"]
               for cmd in executor.commands[1:])


def test_sdk_probe_passes_on_runtime_image(make_executor, summary, reporter):
    """An empty SDK list, or one with only a dotnet error, is a pass."""
    probe = Probe(
        name="no sdk", command=["dotnet", "--list-sdks"],
        expect=[r"(?m)^\d+\.\d+\.\d+\s+\["],
        polarity=Polarity.EXPECT_REJECTION,
    )
    output = (
        "No .NET SDKs were found.\nDownload a .NET SDK:\n"
        "https://aka.ms/dotnet/download\n"
    )
    executor = make_executor(
        lambda command: ExecResult(returncode=0, stdout=output)
    )
    battery = ImageBattery(ContainerEngine(executor), "img", [probe])

    battery.run(summary, reporter)

    assert summary.exit_code == 0
