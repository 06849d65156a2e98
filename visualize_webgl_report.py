#!/usr/bin/env python3
"""Render WebGL and GPU hardware metrics as a single HTML dashboard.

This script combines the JSON results written by ``webgl_profiler.py`` with
the raw ``powermetrics`` text captured by ``gpu_samplers.py``.  Browser-side
metrics (FPS, JS heap, draw calls, triangles) and GPU hardware metrics
(frequency, active/idle residency, power) are drawn as Plotly charts on
separate tabs together with a short summary and system information.
"""
from __future__ import annotations

import argparse
import html
import json
import math
import webbrowser
from datetime import datetime
from pathlib import Path
from statistics import mean
from typing import Any, Dict, List, Sequence, Union

import plotly.graph_objects as go

from gpu_metrics_parser import GpuSample, MachineInfo, parse_gpu_metrics, parse_machine_info

PLACEHOLDER = "N/A"

_FPS_COLOR = "rgba(75, 192, 192, 1)"
_USED_HEAP_COLOR = "rgba(255, 99, 132, 1)"
_TOTAL_HEAP_COLOR = "rgba(54, 162, 235, 1)"
_DRAW_CALLS_COLOR = "rgba(153, 102, 255, 1)"
_TRIANGLES_COLOR = "rgba(255, 159, 64, 1)"


def _load_results(path: Path) -> Dict[str, Any]:
    """Return the profiler results bundle stored at ``path``."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a results object")
    return data


def _values(samples: Sequence[GpuSample], field: str) -> List[Union[int, float]]:
    return [getattr(s, field) for s in samples if getattr(s, field) is not None]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def summarize_samples(samples: Sequence[GpuSample]) -> Dict[str, str]:
    """Return display strings for the GPU metrics summary box.

    Averages and peaks only consider samples where the field was reported.
    """
    freqs = _values(samples, "frequency")
    active = _values(samples, "active_residency")
    powers = _values(samples, "power")
    return {
        "avg_frequency": f"{_round_half_up(mean(freqs))} MHz" if freqs else PLACEHOLDER,
        "avg_active_residency": f"{mean(active):.2f}%" if active else PLACEHOLDER,
        "avg_power": f"{_round_half_up(mean(powers))} mW" if powers else PLACEHOLDER,
        "peak_power": f"{max(powers)} mW" if powers else PLACEHOLDER,
        "peak_frequency": f"{max(freqs)} MHz" if freqs else PLACEHOLDER,
    }


def _line(x: List[str], y: List[Any], name: str, color: str | None = None) -> go.Scatter:
    line = {"color": color, "width": 2} if color else {"width": 2}
    return go.Scatter(
        x=x, y=y, mode="lines+markers", name=name,
        line={**line, "shape": "spline"}, connectgaps=False,
    )


def _bar(x: List[str], y: List[Any], name: str, color: str | None = None) -> go.Bar:
    return go.Bar(x=x, y=y, name=name, marker_color=color)


def _figure(traces: List[Any], title: str, yaxis_title: str, **layout: Any) -> go.Figure:
    fig = go.Figure(data=traces)
    fig.update_layout(
        title=title,
        yaxis_title=yaxis_title,
        height=300,
        margin={"l": 50, "r": 20, "t": 50, "b": 40},
        **layout,
    )
    fig.update_yaxes(rangemode="tozero")
    return fig


def create_webgl_figures(results: Dict[str, Any]) -> Dict[str, go.Figure]:
    """Return the browser-side charts keyed by element id."""
    fps = results.get("fpsOverTime", [])
    memory = results.get("memoryOverTime", [])
    tasks = results.get("gpuTasksOverTime", [])

    def labels(entries: List[Any]) -> List[str]:
        return [f"Sample {i + 1}" for i in range(len(entries))]

    return {
        "fpsChart": _figure(
            [_line(labels(fps), [e.get("fps") for e in fps], "Frames Per Second", _FPS_COLOR)],
            "Frames Per Second (FPS)", "FPS",
        ),
        "memoryChart": _figure(
            [
                _line(labels(memory), [e.get("usedJSHeapSize") for e in memory],
                      "Used JS Heap (MB)", _USED_HEAP_COLOR),
                _line(labels(memory), [e.get("totalJSHeapSize") for e in memory],
                      "Total JS Heap (MB)", _TOTAL_HEAP_COLOR),
            ],
            "Memory Usage", "Memory (MB)",
        ),
        "drawCallsChart": _figure(
            [_bar(labels(tasks), [e.get("drawCalls") for e in tasks],
                  "WebGL Draw Calls", _DRAW_CALLS_COLOR)],
            "WebGL Draw Calls Per Frame", "Count",
        ),
        "triangleCountChart": _figure(
            [_bar(labels(tasks), [e.get("triangleCount") for e in tasks],
                  "Triangles", _TRIANGLES_COLOR)],
            "Triangle Count Per Frame", "Triangles",
        ),
    }


def create_gpu_figures(samples: Sequence[GpuSample]) -> Dict[str, go.Figure]:
    """Return the GPU hardware charts keyed by element id.

    Fields missing from a sample are left as gaps rather than zeros.
    """
    labels = [s.time_label or f"Sample {i + 1}" for i, s in enumerate(samples)]
    return {
        "gpuFrequencyChart": _figure(
            [_line(labels, [s.frequency for s in samples], "GPU Frequency (MHz)")],
            "GPU Active Frequency", "MHz",
        ),
        "gpuResidencyChart": _figure(
            [
                _bar(labels, [s.active_residency for s in samples], "Active (%)", "#f44336"),
                _bar(labels, [s.idle_residency for s in samples], "Idle (%)", "#4caf50"),
            ],
            "GPU Residency", "Percent", barmode="stack",
        ),
        "gpuPowerChart": _figure(
            [_line(labels, [s.power for s in samples], "GPU Power (mW)")],
            "GPU Power", "mW",
        ),
    }


def _chart_divs(figures: Dict[str, go.Figure], include_plotlyjs: Union[bool, str]) -> str:
    divs: List[str] = []
    for div_id, fig in figures.items():
        chart = fig.to_html(
            full_html=False,
            include_plotlyjs=include_plotlyjs,
            div_id=div_id,
            config={"responsive": True, "displaylogo": False},
        )
        # plotly.js only needs to be on the page once
        include_plotlyjs = False
        divs.append(f"<div class='chart-container'>{chart}</div>")
    return "\n".join(divs)


def _info_item(title: str, value: Any) -> str:
    if value is None or value == "":
        value = "Unknown"
    return (
        "<div class='info-item'>"
        f"<h3>{html.escape(title)}</h3><p>{html.escape(str(value))}</p>"
        "</div>"
    )


_STYLE = """
  body { font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }
  .container { max-width: 1200px; margin: 0 auto; background-color: white; padding: 20px;
               border-radius: 8px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
  h1, h2, h3 { color: #333; }
  .chart-container { position: relative; min-height: 300px; margin-bottom: 30px; }
  .info-box { background-color: #f9f9f9; border: 1px solid #ddd; padding: 15px;
              margin-bottom: 20px; border-radius: 4px; }
  .info-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(300px, 1fr)); gap: 15px; }
  .info-item { background-color: #fff; border: 1px solid #eee; padding: 10px; border-radius: 4px; }
  .info-item h3 { margin-top: 0; font-size: 16px; color: #555; }
  .dashboard { display: grid; grid-template-columns: 1fr 1fr; gap: 20px; }
  @media (max-width: 768px) { .dashboard { grid-template-columns: 1fr; } }
  .tabs { display: flex; margin-bottom: 20px; border-bottom: 1px solid #ddd; }
  .tab { padding: 10px 20px; cursor: pointer; border: 1px solid transparent;
         border-bottom: none; margin-right: 5px; }
  .tab.active { background-color: #fff; border-color: #ddd; border-radius: 4px 4px 0 0; }
  .tab-content { display: none; }
  .tab-content.active { display: block; }
"""

_SCRIPT = """
  function showTab(tabId) {
    document.querySelectorAll('.tab-content').forEach(c => c.classList.remove('active'));
    document.querySelectorAll('.tab').forEach(t => {
      t.classList.toggle('active', t.dataset.tab === tabId);
    });
    document.getElementById(tabId).classList.add('active');
    // Charts drawn while hidden need a resize to pick up their width
    window.dispatchEvent(new Event('resize'));
  }
"""


def build_report_html(
    results: Dict[str, Any],
    samples: Sequence[GpuSample],
    machine: MachineInfo,
    generated_at: str,
    include_plotlyjs: Union[bool, str] = "cdn",
) -> str:
    """Return the complete dashboard document."""
    gpu_info = results.get("gpuInfo") or {}
    summary = summarize_samples(samples)

    webgl_charts = _chart_divs(create_webgl_figures(results), include_plotlyjs)
    gpu_charts = _chart_divs(create_gpu_figures(samples), False)

    system_items = "\n".join([
        _info_item("Machine Model", machine.model),
        _info_item("OS Version", machine.os_version),
        _info_item("GPU Renderer", gpu_info.get("renderer")),
        _info_item("GPU Vendor", gpu_info.get("vendor")),
        _info_item("WebGL Version", gpu_info.get("version")),
        _info_item("Shading Language Version", gpu_info.get("shadingLanguageVersion")),
        _info_item("Max Texture Size", gpu_info.get("maxTextureSize")),
        _info_item("Supported Extensions", len(gpu_info.get("extensions") or [])),
    ])

    summary_items = "\n".join(
        f"<li><strong>{html.escape(label)}:</strong> {html.escape(summary[key])}</li>"
        for label, key in [
            ("Average Frequency", "avg_frequency"),
            ("Average GPU Active Time", "avg_active_residency"),
            ("Average Power Consumption", "avg_power"),
            ("Peak Power Usage", "peak_power"),
            ("Peak Frequency", "peak_frequency"),
        ]
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>WebGL and GPU Performance Visualization</title>
<style>{_STYLE}</style>
</head>
<body>
<div class="container">
  <h1>WebGL and GPU Performance Visualization</h1>
  <p>Data collected at {html.escape(generated_at)}</p>
  <div class="tabs">
    <div class="tab active" data-tab="webgl-tab" onclick="showTab('webgl-tab')">WebGL Performance</div>
    <div class="tab" data-tab="gpu-tab" onclick="showTab('gpu-tab')">GPU Metrics</div>
    <div class="tab" data-tab="system-tab" onclick="showTab('system-tab')">System Info</div>
  </div>
  <div id="system-tab" class="tab-content">
    <div class="info-box">
      <h2>System Information</h2>
      <div class="info-grid">
{system_items}
      </div>
    </div>
  </div>
  <div id="webgl-tab" class="tab-content active">
    <h2>WebGL Performance Metrics</h2>
    <div class="dashboard">
{webgl_charts}
    </div>
  </div>
  <div id="gpu-tab" class="tab-content">
    <h2>GPU Hardware Metrics</h2>
    <div class="dashboard">
{gpu_charts}
      <div class="info-box">
        <h3>GPU Metrics Summary</h3>
        <ul>
{summary_items}
        </ul>
      </div>
    </div>
  </div>
</div>
<script>{_SCRIPT}</script>
</body>
</html>
"""


def write_report(
    results: Dict[str, Any],
    gpu_text: str,
    output: Path,
    include_plotlyjs: Union[bool, str] = "cdn",
) -> str:
    """Parse ``gpu_text``, render the dashboard to ``output`` and return it."""
    document = build_report_html(
        results,
        parse_gpu_metrics(gpu_text),
        parse_machine_info(gpu_text),
        datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        include_plotlyjs=include_plotlyjs,
    )
    output.write_text(document, encoding="utf-8")
    return document


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Render WebGL and GPU metrics into an HTML dashboard"
    )
    parser.add_argument(
        "results", type=Path, help="JSON file written by webgl_profiler.py"
    )
    parser.add_argument(
        "--gpu-metrics",
        type=Path,
        default=Path("gpu-metrics.txt"),
        help="Raw sampler output (powermetrics text)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("webgl-visualization.html"),
        help="Output HTML file",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Embed plotly.js instead of loading it from the CDN",
    )
    parser.add_argument(
        "--no-open", action="store_true", help="Do not automatically open the browser"
    )
    args = parser.parse_args()

    if not args.results.is_file():
        raise SystemExit(f"No such file: {args.results}")
    try:
        results = _load_results(args.results)
    except (json.JSONDecodeError, ValueError) as exc:
        raise SystemExit(f"Could not read {args.results}: {exc}")

    gpu_text = ""
    if args.gpu_metrics.is_file():
        gpu_text = args.gpu_metrics.read_text(encoding="utf-8", errors="replace")
    else:
        print(f"No GPU metrics at {args.gpu_metrics}, rendering browser metrics only")

    write_report(results, gpu_text, args.output, include_plotlyjs=True if args.offline else "cdn")
    print(f"Wrote {args.output}")
    if not args.no_open:
        webbrowser.open(args.output.resolve().as_uri())


if __name__ == "__main__":
    main()
