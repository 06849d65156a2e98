#!/usr/bin/env python3
"""Platform specific GPU samplers.

Each sampler wraps one OS tool that reports GPU activity on a fixed interval.
Its raw text output is streamed straight into a file so the tool can run for
as long as the browser session without filling a pipe.  Only the macOS
``powermetrics`` output is understood by :mod:`gpu_metrics_parser`; the other
tools are captured verbatim for inspection.

Usage::

    python gpu_samplers.py --count 15 --output gpu-metrics.txt
"""
from __future__ import annotations

import argparse
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Type

# Seconds allowed past the nominal duration before the tool is terminated
GRACE_S = 5.0


class SamplerError(RuntimeError):
    """Raised when a sampler process cannot be launched."""


@dataclass(frozen=True)
class SamplerCapabilities:
    frequency: bool = False
    residency: bool = False
    power: bool = False
    parsable: bool = False


class SamplerHandle:
    """A running sampler whose output goes to ``output``."""

    def __init__(
        self,
        name: str,
        output: Path,
        process: subprocess.Popen | None = None,
        deadline: float | None = None,
    ) -> None:
        self.name = name
        self.output = output
        self.process = process
        self.deadline = deadline
        self.returncode: int | None = None

    def wait(self) -> str:
        """Block until the sampler finishes and return its captured text.

        A sampler still running at its ``deadline`` (a ``time.monotonic()``
        value fixed at launch) is terminated.
        """
        if self.process is not None:
            timeout = None
            if self.deadline is not None:
                timeout = max(0.0, self.deadline - time.monotonic())
            try:
                _, stderr = self.process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                self.process.terminate()
                _, stderr = self.process.communicate()
            self.returncode = self.process.returncode
            if stderr:
                print(f"{self.name} stderr: {stderr.strip()}", file=sys.stderr)
            if self.returncode != 0:
                print(
                    f"{self.name} exited with code {self.returncode}",
                    file=sys.stderr,
                )
        return self.output.read_text(encoding="utf-8", errors="replace")

    def stop(self) -> None:
        """Terminate the sampler early, keeping whatever it wrote so far."""
        if self.process is None or self.process.poll() is not None:
            return
        self.process.terminate()
        try:
            self.process.communicate(timeout=GRACE_S)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.communicate()
        self.returncode = self.process.returncode


class GpuSampler:
    """Base class for a command line GPU sampler."""

    name = "sampler"
    capabilities = SamplerCapabilities()

    def __init__(self, interval_ms: int = 1000, count: int = 15) -> None:
        self.interval_ms = interval_ms
        self.count = count

    @property
    def duration_s(self) -> float:
        return self.interval_ms * self.count / 1000.0

    def command(self) -> List[str]:
        raise NotImplementedError

    def start(self, output: Path) -> SamplerHandle:
        cmd = self.command()
        print(f"Starting {self.name}: {' '.join(cmd)}")
        deadline = time.monotonic() + self.duration_s + GRACE_S
        with output.open("w", encoding="utf-8") as out:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=out,
                    stderr=subprocess.PIPE,
                    text=True,
                )
            except OSError as exc:
                raise SamplerError(f"Could not start {self.name}: {exc}") from exc
        return SamplerHandle(self.name, output, process, deadline)


class PowermetricsSampler(GpuSampler):
    """macOS ``powermetrics`` GPU power sampler (needs root)."""

    name = "powermetrics"
    capabilities = SamplerCapabilities(
        frequency=True, residency=True, power=True, parsable=True
    )

    def __init__(
        self, interval_ms: int = 1000, count: int = 15, use_sudo: bool = True
    ) -> None:
        super().__init__(interval_ms, count)
        self.use_sudo = use_sudo

    def command(self) -> List[str]:
        cmd = [
            "powermetrics",
            "--samplers", "gpu_power",
            "-i", str(self.interval_ms),
            "-n", str(self.count),
        ]
        return ["sudo"] + cmd if self.use_sudo else cmd


class NvidiaSmiSampler(GpuSampler):
    """Linux ``nvidia-smi`` utilisation and memory query in CSV form."""

    name = "nvidia-smi"
    capabilities = SamplerCapabilities(residency=True)

    def command(self) -> List[str]:
        # nvidia-smi loops in whole seconds and runs until terminated
        interval_s = max(1, round(self.interval_ms / 1000))
        return [
            "nvidia-smi",
            "--query-gpu=utilization.gpu,utilization.memory,"
            "memory.total,memory.free,memory.used",
            "--format=csv",
            "-l", str(interval_s),
        ]


class WmicSampler(GpuSampler):
    """Windows one-shot GPU performance counter snapshot."""

    name = "wmic"

    @property
    def duration_s(self) -> float:
        return 0.0

    def command(self) -> List[str]:
        return [
            "wmic", "path", "win32_PerfFormattedData_GPUPerformanceCounters",
            "get", "*", "/format:csv",
        ]


class UnavailableSampler(GpuSampler):
    """Placeholder for platforms without a known sampler."""

    name = "unavailable"

    def __init__(self, platform: str, interval_ms: int = 1000, count: int = 15) -> None:
        super().__init__(interval_ms, count)
        self.platform = platform

    def command(self) -> List[str]:
        return []

    def start(self, output: Path) -> SamplerHandle:
        print(
            f"GPU monitoring not implemented for platform: {self.platform}",
            file=sys.stderr,
        )
        output.write_text(
            f"GPU monitoring not available for {self.platform}", encoding="utf-8"
        )
        return SamplerHandle(self.name, output)


SAMPLERS: Dict[str, Type[GpuSampler]] = {
    "darwin": PowermetricsSampler,
    "linux": NvidiaSmiSampler,
    "win32": WmicSampler,
}


def select_sampler(
    platform: str = sys.platform,
    interval_ms: int = 1000,
    count: int = 15,
    use_sudo: bool = True,
) -> GpuSampler:
    """Return the sampler for ``platform`` (a ``sys.platform`` value)."""
    cls = SAMPLERS.get(platform)
    if cls is None:
        return UnavailableSampler(platform, interval_ms, count)
    if cls is PowermetricsSampler:
        return PowermetricsSampler(interval_ms, count, use_sudo=use_sudo)
    return cls(interval_ms, count)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Capture raw GPU sampler output for this platform"
    )
    parser.add_argument("--interval-ms", type=int, default=1000, help="Sampling interval")
    parser.add_argument("--count", type=int, default=15, help="Number of samples")
    parser.add_argument(
        "--no-sudo", action="store_true", help="Run powermetrics without sudo"
    )
    parser.add_argument(
        "--output", type=Path, default=Path("gpu-metrics.txt"),
        help="File receiving the raw sampler output",
    )
    args = parser.parse_args()

    sampler = select_sampler(
        interval_ms=args.interval_ms, count=args.count, use_sudo=not args.no_sudo
    )
    try:
        handle = sampler.start(args.output)
    except SamplerError as exc:
        raise SystemExit(str(exc))
    handle.wait()
    print(f"Wrote {args.output}")


if __name__ == "__main__":
    main()
