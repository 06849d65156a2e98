#!/usr/bin/env python3
"""Profile a WebGL page while sampling GPU hardware metrics.

The platform GPU sampler is started first and keeps writing to
``gpu-metrics.txt`` while the browser profiler samples the page.  Once both
have finished the results are written to ``webgl-profile-results.json``, the
dashboard to ``webgl-visualization.html``, and the dashboard is served on a
local port until interrupted.

Usage::

    python run_profiling.py --url http://localhost:9999/index-webgl.html

On macOS ``powermetrics`` needs root, so expect a sudo prompt unless
``--no-sudo`` is given and the script itself runs as root.
"""
from __future__ import annotations

import argparse
import os
import sys
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Dict

from gpu_samplers import SamplerError, select_sampler
from webgl_profiler import profile_webgl, write_results
from visualize_webgl_report import write_report

DEFAULT_URL = "http://localhost:9999/index-webgl.html"
RESULTS_FILE = "webgl-profile-results.json"
GPU_METRICS_FILE = "gpu-metrics.txt"
REPORT_FILE = "webgl-visualization.html"


@dataclass
class ProfilingConfig:
    url: str = DEFAULT_URL
    samples: int = 5
    interval_ms: int = 2000
    gpu_samples: int = 15
    gpu_interval_ms: int = 1000
    use_sudo: bool = True
    headless: bool = False
    output_dir: Path = Path(".")
    platform: str = sys.platform
    include_plotlyjs: Any = "cdn"

    @property
    def results_path(self) -> Path:
        return self.output_dir / RESULTS_FILE

    @property
    def gpu_metrics_path(self) -> Path:
        return self.output_dir / GPU_METRICS_FILE

    @property
    def report_path(self) -> Path:
        return self.output_dir / REPORT_FILE


def run_profiling(config: ProfilingConfig) -> Dict[str, Any]:
    """Run the sampler and the browser profiler side by side, then report.

    If the browser side fails the sampler is stopped and the error is
    re-raised; nothing is rendered in that case.
    """
    config.output_dir.mkdir(parents=True, exist_ok=True)
    sampler = select_sampler(
        config.platform,
        interval_ms=config.gpu_interval_ms,
        count=config.gpu_samples,
        use_sudo=config.use_sudo,
    )

    print("=== STARTING GPU MONITORING ===")
    handle = sampler.start(config.gpu_metrics_path)

    print("=== STARTING WEBGL PROFILING ===")
    try:
        profile = profile_webgl(
            config.url,
            samples=config.samples,
            interval_ms=config.interval_ms,
            headless=config.headless,
        )
    except BaseException:
        handle.stop()
        raise

    gpu_text = handle.wait()
    print(f"GPU monitoring complete with code {handle.returncode}")
    print(f"Wrote {config.gpu_metrics_path}")

    write_results(profile, config.results_path)
    print(f"Wrote {config.results_path}")

    document = write_report(
        profile, gpu_text, config.report_path, include_plotlyjs=config.include_plotlyjs
    )
    print(f"Wrote {config.report_path}")
    if not sampler.capabilities.parsable:
        print(
            f"{sampler.name} output is kept raw; GPU charts will be empty",
            file=sys.stderr,
        )

    return {
        "profile": profile,
        "gpu_text": gpu_text,
        "html": document,
        "paths": {
            "results": config.results_path,
            "gpu_metrics": config.gpu_metrics_path,
            "report": config.report_path,
        },
    }


def make_report_server(document: str, host: str = "localhost", port: int = 1234) -> ThreadingHTTPServer:
    """Return an HTTP server answering ``/`` and ``/index.html`` with ``document``."""
    body = document.encode("utf-8")

    class ReportHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            if self.path.split("?", 1)[0] in ("/", "/index.html"):
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            else:
                self.send_error(404, "Not found")

        def log_message(self, format: str, *args: Any) -> None:
            pass

    return ThreadingHTTPServer((host, port), ReportHandler)


def serve_report(document: str, port: int = 1234, open_browser: bool = True) -> None:
    server = make_report_server(document, port=port)
    url = f"http://localhost:{server.server_address[1]}"
    print(f"Visualization server running at {url}")
    if open_browser and not webbrowser.open(url):
        print(f"Please manually navigate to {url} to view results")
    print("Press Ctrl+C to stop the server and exit")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Profile WebGL performance alongside GPU hardware metrics"
    )
    parser.add_argument(
        "--url",
        default=os.environ.get("WEBGL_PROFILE_URL", DEFAULT_URL),
        help="WebGL page to profile (default: $WEBGL_PROFILE_URL or %(default)s)",
    )
    parser.add_argument("--samples", type=int, default=5, help="Browser samples")
    parser.add_argument(
        "--interval-ms", type=int, default=2000, help="Pause between browser samples"
    )
    parser.add_argument("--gpu-samples", type=int, default=15, help="GPU sampler count")
    parser.add_argument(
        "--gpu-interval-ms", type=int, default=1000, help="GPU sampler interval"
    )
    parser.add_argument(
        "--no-sudo", action="store_true", help="Run powermetrics without sudo"
    )
    parser.add_argument(
        "--headless", action="store_true", help="Run the browser without a window"
    )
    parser.add_argument(
        "--output-dir", type=Path, default=Path("."), help="Directory for output files"
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Embed plotly.js in the report instead of loading it from the CDN",
    )
    parser.add_argument("--port", type=int, default=1234, help="Port for the report server")
    parser.add_argument(
        "--no-serve", action="store_true", help="Exit after writing the report"
    )
    parser.add_argument(
        "--no-open", action="store_true", help="Do not automatically open the browser"
    )
    return parser


def main(argv: list | None = None) -> None:
    args = _build_parser().parse_args(argv)
    config = ProfilingConfig(
        url=args.url,
        samples=args.samples,
        interval_ms=args.interval_ms,
        gpu_samples=args.gpu_samples,
        gpu_interval_ms=args.gpu_interval_ms,
        use_sudo=not args.no_sudo,
        headless=args.headless,
        output_dir=args.output_dir,
        include_plotlyjs=True if args.offline else "cdn",
    )

    print("STARTING WEBGL PERFORMANCE PROFILING")
    try:
        outcome = run_profiling(config)
    except SamplerError as exc:
        raise SystemExit(str(exc))

    print("PROFILING COMPLETED SUCCESSFULLY")
    print("Results available in:")
    for path in outcome["paths"].values():
        print(f"- {path}")

    if not args.no_serve:
        serve_report(outcome["html"], port=args.port, open_browser=not args.no_open)


if __name__ == "__main__":
    main()
