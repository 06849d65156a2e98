import json

import pytest

from gpu_metrics_parser import GpuSample, MachineInfo, parse_gpu_metrics
from visualize_webgl_report import (
    PLACEHOLDER,
    _load_results,
    build_report_html,
    create_gpu_figures,
    create_webgl_figures,
    summarize_samples,
    write_report,
)

RESULTS = {
    "gpuInfo": {
        "renderer": "ANGLE <Metal>",
        "vendor": "Google Inc. (Apple)",
        "version": "WebGL 1.0",
        "shadingLanguageVersion": "WebGL GLSL ES 1.0",
        "maxTextureSize": 16384,
        "extensions": ["A", "B"],
    },
    "fpsOverTime": [{"timestamp": "t1", "fps": 60.0}, {"timestamp": "t2", "fps": 58.5}],
    "memoryOverTime": [
        {"timestamp": "t1", "usedJSHeapSize": 10.0, "totalJSHeapSize": 20.0},
        {"timestamp": "t2", "usedJSHeapSize": 11.0, "totalJSHeapSize": 20.0},
    ],
    "gpuTasksOverTime": [
        {"timestamp": "t1", "drawCalls": 12, "triangleCount": 2000},
        {"timestamp": "t2", "drawCalls": 15, "triangleCount": 3000},
    ],
}


def test_summary_averages_and_peaks(powermetrics_output: str) -> None:
    summary = summarize_samples(parse_gpu_metrics(powermetrics_output))
    assert summary == {
        "avg_frequency": "870 MHz",
        "avg_active_residency": "22.88%",
        "avg_power": "1266 mW",
        "peak_power": "2500 mW",
        "peak_frequency": "1350 MHz",
    }


def test_summary_ignores_missing_fields() -> None:
    samples = [GpuSample(power=100), GpuSample(frequency=400), GpuSample(power=300)]
    summary = summarize_samples(samples)
    assert summary["avg_power"] == "200 mW"
    assert summary["avg_frequency"] == "400 MHz"
    assert summary["avg_active_residency"] == PLACEHOLDER


def test_summary_rounds_half_up() -> None:
    samples = [GpuSample(frequency=1350, power=10), GpuSample(frequency=1351, power=13)]
    summary = summarize_samples(samples)
    assert summary["avg_frequency"] == "1351 MHz"
    assert summary["avg_power"] == "12 mW"


def test_summary_without_samples() -> None:
    assert set(summarize_samples([]).values()) == {PLACEHOLDER}


def test_webgl_figures_follow_results() -> None:
    figures = create_webgl_figures(RESULTS)
    assert list(figures) == ["fpsChart", "memoryChart", "drawCallsChart", "triangleCountChart"]
    fps_trace = figures["fpsChart"].data[0]
    assert list(fps_trace.x) == ["Sample 1", "Sample 2"]
    assert list(fps_trace.y) == [60.0, 58.5]
    assert len(figures["memoryChart"].data) == 2
    assert list(figures["drawCallsChart"].data[0].y) == [12, 15]


def test_gpu_figures_leave_gaps_for_missing_fields() -> None:
    samples = [
        GpuSample(time_label="12:00:01", frequency=400, power=50),
        GpuSample(time_label="12:00:02", power=60, active_residency=25.0, idle_residency=75.0),
    ]
    figures = create_gpu_figures(samples)
    freq = figures["gpuFrequencyChart"].data[0]
    assert list(freq.x) == ["12:00:01", "12:00:02"]
    assert list(freq.y) == [400, None]
    active, idle = figures["gpuResidencyChart"].data
    assert list(active.y) == [None, 25.0]
    assert list(idle.y) == [None, 75.0]
    assert figures["gpuResidencyChart"].layout.barmode == "stack"


def test_report_contains_tabs_charts_and_escaped_info(powermetrics_output: str) -> None:
    document = build_report_html(
        RESULTS,
        parse_gpu_metrics(powermetrics_output),
        MachineInfo(model="MacBookPro18,3", os_version="23D60"),
        "2025-03-06 12:37:00",
        include_plotlyjs=False,
    )
    assert document.startswith("<!DOCTYPE html>")
    for div_id in (
        "fpsChart", "memoryChart", "drawCallsChart", "triangleCountChart",
        "gpuFrequencyChart", "gpuResidencyChart", "gpuPowerChart",
    ):
        assert f'id="{div_id}"' in document
    for tab in ("webgl-tab", "gpu-tab", "system-tab"):
        assert f'id="{tab}"' in document
    assert "ANGLE &lt;Metal&gt;" in document
    assert "ANGLE <Metal>" not in document
    assert "MacBookPro18,3" in document
    assert "2500 mW" in document
    assert "2025-03-06 12:37:00" in document


def test_report_renders_placeholders_without_data() -> None:
    document = build_report_html({}, [], MachineInfo(), "now", include_plotlyjs=False)
    assert PLACEHOLDER in document
    assert "Unknown" in document


def test_plotlyjs_included_once() -> None:
    document = build_report_html(RESULTS, [], MachineInfo(), "now", include_plotlyjs="cdn")
    assert document.count("cdn.plot.ly") == 1


def test_write_report(tmp_path, powermetrics_output: str) -> None:
    output = tmp_path / "webgl-visualization.html"
    document = write_report(RESULTS, powermetrics_output, output, include_plotlyjs=False)
    assert output.read_text(encoding="utf-8") == document
    assert "MacBookPro18,3" in document


def test_load_results_rejects_non_objects(tmp_path) -> None:
    path = tmp_path / "results.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(ValueError):
        _load_results(path)
    path.write_text(json.dumps(RESULTS), encoding="utf-8")
    assert _load_results(path)["gpuInfo"]["vendor"] == "Google Inc. (Apple)"
