#!/usr/bin/env python3
"""Parse GPU hardware samples out of ``powermetrics`` text output.

``powermetrics --samplers gpu_power`` prints one block per sampling interval::

    *** Sampled system activity (Thu Mar  6 12:36:47 2025 -0500) (1003.25ms elapsed) ***

    **** GPU usage ****

    GPU HW active frequency: 1350 MHz
    GPU HW active residency:  42.50% (389 MHz:   0% ...)
    GPU Power: 2500 mW

The format is a human readable log with no schema guarantee between macOS
releases, so every field is extracted independently and a line that does not
match simply leaves its field unset.  Parsing never fails.

Usage::

    python gpu_metrics_parser.py gpu-metrics.txt --output gpu-samples.json
"""
from __future__ import annotations

import argparse
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List

BOUNDARY_PREFIX = "*** Sampled system activity"
FREQUENCY_PREFIX = "GPU HW active frequency:"
RESIDENCY_PREFIX = "GPU HW active residency:"
POWER_PREFIX = "GPU Power:"

_TIMESTAMP_RE = re.compile(r"\((.*?)\)")
_TIME_LABEL_RE = re.compile(r"(\d+:\d+:\d+)")
_FREQUENCY_RE = re.compile(r"GPU HW active frequency:\s*(\d+)\s*MHz")
_RESIDENCY_RE = re.compile(r"GPU HW active residency:\s*(\d+(?:\.\d+)?)%")
_POWER_RE = re.compile(r"GPU Power:\s*(\d+)\s*mW")

# Only the header at the top of the output carries machine details
_HEADER_LINES = 10


@dataclass
class GpuSample:
    """One sampling interval of GPU hardware state."""

    timestamp: str | None = None
    time_label: str | None = None
    frequency: int | None = None
    active_residency: float | None = None
    idle_residency: float | None = None
    power: int | None = None

    def has_measurements(self) -> bool:
        return (
            self.frequency is not None
            or self.active_residency is not None
            or self.power is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON form with absent fields omitted."""
        data = {
            "timestamp": self.timestamp,
            "timeLabel": self.time_label,
            "frequency": self.frequency,
            "activeResidency": self.active_residency,
            "idleResidency": self.idle_residency,
            "power": self.power,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass
class MachineInfo:
    model: str = "Unknown"
    os_version: str = "Unknown"


def _start_sample(line: str, emitted: int) -> GpuSample:
    sample = GpuSample()
    match = _TIMESTAMP_RE.search(line)
    if match and match.group(1):
        sample.timestamp = match.group(1)
        label = _TIME_LABEL_RE.search(sample.timestamp)
        if label:
            sample.time_label = label.group(1)
    if sample.time_label is None:
        sample.time_label = f"Sample {emitted + 1}"
    return sample


def iter_gpu_samples(lines: Iterable[str]) -> Iterator[GpuSample]:
    """Yield a :class:`GpuSample` for every populated interval in ``lines``.

    Lines seen before the first boundary marker have no interval to belong to
    and are dropped.  Intervals without any measurement are skipped.
    """
    current: GpuSample | None = None
    emitted = 0
    for raw in lines:
        line = raw.strip()

        if line.startswith(BOUNDARY_PREFIX):
            if current is not None and current.has_measurements():
                yield current
                emitted += 1
            current = _start_sample(line, emitted)

        if current is None:
            continue

        if line.startswith(FREQUENCY_PREFIX):
            match = _FREQUENCY_RE.search(line)
            if match:
                current.frequency = int(match.group(1))

        if line.startswith(RESIDENCY_PREFIX):
            match = _RESIDENCY_RE.search(line)
            if match:
                current.active_residency = float(match.group(1))
                current.idle_residency = 100 - current.active_residency

        if line.startswith(POWER_PREFIX):
            match = _POWER_RE.search(line)
            if match:
                current.power = int(match.group(1))

    if current is not None and current.has_measurements():
        yield current


def parse_gpu_metrics(text: str) -> List[GpuSample]:
    """Return all samples found in the sampler output ``text``."""
    return list(iter_gpu_samples(text.splitlines()))


def parse_machine_info(text: str) -> MachineInfo:
    """Read ``Machine model:`` and ``OS version:`` from the output header."""
    info = MachineInfo()
    for line in text.splitlines()[:_HEADER_LINES]:
        if line.startswith("Machine model:"):
            info.model = line[len("Machine model:"):].strip()
        if line.startswith("OS version:"):
            info.os_version = line[len("OS version:"):].strip()
    return info


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Convert powermetrics GPU output into JSON samples"
    )
    parser.add_argument("path", type=Path, help="Text file captured from powermetrics")
    parser.add_argument(
        "--output", type=Path, default=None,
        help="Write the samples to this JSON file instead of stdout",
    )
    args = parser.parse_args()

    if not args.path.is_file():
        raise SystemExit(f"No such file: {args.path}")

    with args.path.open("r", encoding="utf-8", errors="replace") as f:
        samples = [s.to_dict() for s in iter_gpu_samples(f)]

    if args.output is None:
        print(json.dumps(samples, indent=2))
        return
    args.output.write_text(json.dumps(samples, indent=2), encoding="utf-8")
    print(f"Wrote {args.output} ({len(samples)} samples)")


if __name__ == "__main__":
    main()
