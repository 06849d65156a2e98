#!/usr/bin/env python3
"""Collect WebGL rendering metrics from a live Chromium window.

The page is opened in a visible browser so that WebGL runs on the real GPU.
Every sample records the DevTools ``Performance.getMetrics`` counters, the JS
heap size, a one second ``requestAnimationFrame`` FPS measurement and a set
of simulated draw-call statistics.  The results are written as JSON and can
be rendered with ``visualize_webgl_report.py``.

Usage::

    python webgl_profiler.py http://localhost:9999/index-webgl.html
"""
from __future__ import annotations

import argparse
import json
import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

CHROME_ARGS = [
    "--enable-webgl",
    "--ignore-gpu-blocklist",
    "--enable-gpu-rasterization",
    "--enable-zero-copy",
    "--disable-gpu-sandbox",
    "--enable-logging=stderr",
    "--v=1",
]
VIEWPORT = {"width": 1200, "height": 800}

CHROME_PATHS = {
    "darwin": "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "linux": "/usr/bin/google-chrome",
    "win32": r"C:\Program Files\Google\Chrome\Application\chrome.exe",
}

FALLBACK_GPU_INFO: Dict[str, Any] = {
    "renderer": "Unknown (Fallback)",
    "vendor": "Unknown (Fallback)",
    "version": "Unknown (Fallback)",
    "shadingLanguageVersion": "Unknown (Fallback)",
    "maxTextureSize": "Unknown",
    "maxViewportDims": "Unknown",
    "maxVertexAttribs": "Unknown",
    "maxVertexUniformVectors": "Unknown",
    "maxFragmentUniformVectors": "Unknown",
    "extensions": [],
}

# Each script races its work against a timer so a stalled page cannot hang
# the run.  The timeout result always carries an ``error`` key.
GPU_INFO_JS = """({timeoutMs}) => Promise.race([
  new Promise(resolve => {
    const canvas = document.querySelector('canvas');
    if (!canvas) return resolve({ error: 'No canvas found' });
    try {
      const gl = canvas.getContext('webgl') || canvas.getContext('experimental-webgl');
      if (!gl) return resolve({ error: 'Could not initialize WebGL' });
      const debugInfo = gl.getExtension('WEBGL_debug_renderer_info');
      resolve({
        renderer: debugInfo ? gl.getParameter(debugInfo.UNMASKED_RENDERER_WEBGL) : 'Unknown',
        vendor: debugInfo ? gl.getParameter(debugInfo.UNMASKED_VENDOR_WEBGL) : 'Unknown',
        version: gl.getParameter(gl.VERSION),
        shadingLanguageVersion: gl.getParameter(gl.SHADING_LANGUAGE_VERSION),
        maxTextureSize: gl.getParameter(gl.MAX_TEXTURE_SIZE),
        maxViewportDims: Array.from(gl.getParameter(gl.MAX_VIEWPORT_DIMS)),
        maxVertexAttribs: gl.getParameter(gl.MAX_VERTEX_ATTRIBS),
        maxVertexUniformVectors: gl.getParameter(gl.MAX_VERTEX_UNIFORM_VECTORS),
        maxFragmentUniformVectors: gl.getParameter(gl.MAX_FRAGMENT_UNIFORM_VECTORS),
        extensions: gl.getSupportedExtensions()
      });
    } catch (e) {
      resolve({ error: 'Error accessing WebGL context: ' + e.message });
    }
  }),
  new Promise(resolve => setTimeout(() => resolve({ error: 'Timeout getting GPU info' }), timeoutMs))
])"""

MEMORY_JS = """({timeoutMs}) => Promise.race([
  new Promise(resolve => {
    if (performance && performance.memory) {
      resolve({
        jsHeapSizeLimit: performance.memory.jsHeapSizeLimit,
        totalJSHeapSize: performance.memory.totalJSHeapSize,
        usedJSHeapSize: performance.memory.usedJSHeapSize
      });
    } else {
      resolve({ error: 'Memory info not available' });
    }
  }),
  new Promise(resolve => setTimeout(() => resolve({ error: 'Timeout getting memory info' }), timeoutMs))
])"""

FPS_JS = """({durationMs, timeoutMs}) => Promise.race([
  new Promise(resolve => {
    let frameCount = 0;
    const startTime = performance.now();
    const checkFPS = () => {
      frameCount++;
      const elapsedTime = performance.now() - startTime;
      if (elapsedTime >= durationMs) {
        resolve({ fps: (frameCount / elapsedTime) * 1000, frameCount, elapsedTime });
      } else {
        requestAnimationFrame(checkFPS);
      }
    };
    requestAnimationFrame(checkFPS);
  }),
  new Promise(resolve => setTimeout(
    () => resolve({ fps: 0, frameCount: 0, elapsedTime: 0, error: 'Timeout measuring FPS' }),
    timeoutMs))
])"""

GPU_INFO_TIMEOUT_MS = 5000
MEMORY_TIMEOUT_MS = 3000
FPS_DURATION_MS = 1000
FPS_TIMEOUT_MS = 5000

_MB = 1024 * 1024


def chrome_executable(platform: str = sys.platform) -> str | None:
    """Return the installed Chrome for ``platform``, if any.

    ``None`` lets Playwright fall back to its bundled Chromium.
    """
    path = CHROME_PATHS.get(platform)
    if path is not None and Path(path).exists():
        return path
    return None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _evaluate(page, script: str, arg: Dict[str, Any], what: str) -> Dict[str, Any]:
    try:
        return page.evaluate(script, arg)
    except PlaywrightError as exc:
        print(f"Error getting {what}: {exc}", file=sys.stderr)
        return {"error": f"Failed to get {what}: {exc}"}


def read_gpu_info(page) -> Dict[str, Any]:
    """Return WebGL renderer details, or the fallback block on any failure."""
    info = _evaluate(page, GPU_INFO_JS, {"timeoutMs": GPU_INFO_TIMEOUT_MS}, "GPU info")
    if "error" in info:
        print(f"WebGL GPU info unavailable: {info['error']}", file=sys.stderr)
        return dict(FALLBACK_GPU_INFO)
    return info


def read_memory(page) -> Dict[str, float]:
    """Return used and total JS heap sizes in MB (0 when unavailable)."""
    info = _evaluate(page, MEMORY_JS, {"timeoutMs": MEMORY_TIMEOUT_MS}, "memory info")
    return {
        "usedJSHeapSize": (info.get("usedJSHeapSize") or 0) / _MB,
        "totalJSHeapSize": (info.get("totalJSHeapSize") or 0) / _MB,
    }


def measure_fps(page) -> float:
    data = _evaluate(
        page,
        FPS_JS,
        {"durationMs": FPS_DURATION_MS, "timeoutMs": FPS_TIMEOUT_MS},
        "FPS",
    )
    return data.get("fps") or 0


def simulated_webgl_metrics(rng: random.Random) -> Dict[str, int]:
    """Stand-in draw statistics; real WebGL call counting is not hooked up."""
    return {
        "drawCalls": rng.randint(10, 29),
        "triangleCount": rng.randint(1000, 5999),
        "programsUsed": rng.randint(1, 3),
        "texturesUsed": rng.randint(1, 3),
    }


def metrics_to_dict(response: Dict[str, Any]) -> Dict[str, float]:
    """Flatten a ``Performance.getMetrics`` response into ``{name: value}``."""
    return {m["name"]: m["value"] for m in response.get("metrics", [])}


def collect_profile(
    page,
    cdp,
    samples: int = 5,
    interval_ms: int = 2000,
    rng: random.Random | None = None,
) -> Dict[str, Any]:
    """Sample an already loaded page ``samples`` times.

    ``cdp`` must be a CDP session with ``Performance.enable`` already sent.
    """
    rng = rng or random.Random()
    gpu_info = read_gpu_info(page)

    performance: List[Dict[str, Any]] = []
    fps: List[Dict[str, Any]] = []
    memory: List[Dict[str, Any]] = []
    tasks: List[Dict[str, Any]] = []

    for i in range(samples):
        print(f"Collecting sample {i + 1}/{samples}...")
        metrics = metrics_to_dict(cdp.send("Performance.getMetrics"))
        timestamp = _now()
        heap = read_memory(page)
        frame_rate = measure_fps(page)

        performance.append({"timestamp": timestamp, "metrics": metrics})
        fps.append({"timestamp": timestamp, "fps": frame_rate})
        memory.append({"timestamp": timestamp, **heap})
        tasks.append({"timestamp": timestamp, **simulated_webgl_metrics(rng)})

        page.wait_for_timeout(interval_ms)

    return {
        "gpuInfo": gpu_info,
        "performanceOverTime": performance,
        "fpsOverTime": fps,
        "memoryOverTime": memory,
        "gpuTasksOverTime": tasks,
        "timestamp": _now(),
    }


def profile_webgl(
    url: str,
    samples: int = 5,
    interval_ms: int = 2000,
    headless: bool = False,
    executable_path: str | None = None,
) -> Dict[str, Any]:
    """Launch Chromium, open ``url`` and return the collected profile."""
    with sync_playwright() as pw:
        browser = pw.chromium.launch(
            headless=headless,
            executable_path=executable_path or chrome_executable(),
            args=CHROME_ARGS,
        )
        try:
            context = browser.new_context(viewport=VIEWPORT)
            page = context.new_page()
            cdp = context.new_cdp_session(page)
            cdp.send("Performance.enable")

            print(f"Opening {url}")
            page.goto(url, wait_until="networkidle")
            print("WebGL page loaded, starting metric collection...")
            return collect_profile(page, cdp, samples=samples, interval_ms=interval_ms)
        finally:
            print("Closing browser...")
            browser.close()


def write_results(data: Dict[str, Any], path: Path) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def main() -> None:
    parser = argparse.ArgumentParser(description="Profile a WebGL page in Chromium")
    parser.add_argument("url", help="Page containing the WebGL canvas")
    parser.add_argument("--samples", type=int, default=5, help="Number of samples")
    parser.add_argument(
        "--interval-ms", type=int, default=2000, help="Pause between samples"
    )
    parser.add_argument(
        "--output", type=Path, default=Path("webgl-profile-results.json"),
        help="Output JSON file",
    )
    parser.add_argument(
        "--headless", action="store_true",
        help="Run without a window (WebGL may fall back to software rendering)",
    )
    args = parser.parse_args()

    data = profile_webgl(
        args.url, samples=args.samples, interval_ms=args.interval_ms,
        headless=args.headless,
    )
    write_results(data, args.output)
    print(f"Wrote {args.output}")


if __name__ == "__main__":
    main()
