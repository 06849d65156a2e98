import sys
import time

import pytest

import gpu_samplers
from gpu_samplers import (
    GpuSampler,
    NvidiaSmiSampler,
    PowermetricsSampler,
    SamplerError,
    UnavailableSampler,
    WmicSampler,
    select_sampler,
)


class EchoSampler(GpuSampler):
    name = "echo"

    def __init__(self, script: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.script = script

    def command(self):
        return [sys.executable, "-c", self.script]


@pytest.mark.parametrize(
    ("platform", "expected"),
    [
        ("darwin", PowermetricsSampler),
        ("linux", NvidiaSmiSampler),
        ("win32", WmicSampler),
        ("sunos5", UnavailableSampler),
    ],
)
def test_select_sampler_by_platform(platform: str, expected: type) -> None:
    assert type(select_sampler(platform)) is expected


def test_powermetrics_command() -> None:
    sampler = select_sampler("darwin", interval_ms=500, count=4)
    assert sampler.command() == [
        "sudo", "powermetrics", "--samplers", "gpu_power", "-i", "500", "-n", "4",
    ]
    assert sampler.duration_s == 2.0
    assert sampler.capabilities.parsable


def test_powermetrics_without_sudo() -> None:
    sampler = select_sampler("darwin", use_sudo=False)
    assert sampler.command()[0] == "powermetrics"


def test_nvidia_smi_loops_in_whole_seconds() -> None:
    cmd = NvidiaSmiSampler(interval_ms=400).command()
    assert cmd[0] == "nvidia-smi"
    assert cmd[-2:] == ["-l", "1"]
    assert "--format=csv" in cmd
    assert not NvidiaSmiSampler.capabilities.parsable


def test_wmic_is_one_shot() -> None:
    sampler = WmicSampler()
    assert sampler.duration_s == 0.0
    assert sampler.command()[0] == "wmic"


def test_unavailable_sampler_writes_placeholder(tmp_path) -> None:
    output = tmp_path / "gpu-metrics.txt"
    handle = UnavailableSampler("sunos5").start(output)
    assert handle.wait() == "GPU monitoring not available for sunos5"
    assert handle.returncode is None


def test_handle_returns_streamed_output(tmp_path) -> None:
    output = tmp_path / "gpu-metrics.txt"
    sampler = EchoSampler("print('GPU Power: 12 mW')", interval_ms=10, count=1)
    handle = sampler.start(output)
    assert handle.wait().strip() == "GPU Power: 12 mW"
    assert handle.returncode == 0


def test_handle_reports_nonzero_exit(tmp_path, capsys) -> None:
    output = tmp_path / "gpu-metrics.txt"
    script = "import sys; print('partial'); sys.stderr.write('denied'); sys.exit(3)"
    handle = EchoSampler(script).start(output)
    assert handle.wait().strip() == "partial"
    assert handle.returncode == 3
    err = capsys.readouterr().err
    assert "denied" in err
    assert "exited with code 3" in err


def test_handle_terminates_after_duration(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(gpu_samplers, "GRACE_S", 2.0)
    output = tmp_path / "gpu-metrics.txt"
    script = "import time; print('started', flush=True); time.sleep(60)"
    handle = EchoSampler(script, interval_ms=100, count=1).start(output)
    assert handle.wait().strip() == "started"
    assert handle.returncode != 0


def test_deadline_counts_from_launch(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(gpu_samplers, "GRACE_S", 1.0)
    script = "import time; time.sleep(60)"
    handle = EchoSampler(script, interval_ms=100, count=10).start(tmp_path / "out.txt")
    time.sleep(2.5)

    started = time.monotonic()
    handle.wait()
    assert time.monotonic() - started < 1.0
    assert handle.returncode != 0


def test_stop_terminates_running_sampler(tmp_path) -> None:
    handle = EchoSampler("import time; time.sleep(60)").start(tmp_path / "out.txt")
    handle.stop()
    assert handle.process.poll() is not None
    handle.stop()


def test_launch_failure_raises_sampler_error(tmp_path) -> None:
    class Missing(GpuSampler):
        name = "missing"

        def command(self):
            return [str(tmp_path / "does-not-exist")]

    with pytest.raises(SamplerError):
        Missing().start(tmp_path / "out.txt")
