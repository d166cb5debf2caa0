"""Command-line interface for system-info-exporter."""

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from system_info_exporter import __version__
from system_info_exporter.collectors.cache import GpuCache
from system_info_exporter.collectors.gpu_collector import GpuCollector
from system_info_exporter.collectors.node import NodeCollector
from system_info_exporter.configs.config import DEFAULT_CONFIG_DIR, Settings
from system_info_exporter.hardware.executor import TimedExecutor
from system_info_exporter.hardware.host import HostProbe
from system_info_exporter.reporting.prometheus import render_prometheus
from system_info_exporter.server import serve
from system_info_exporter.utils.errors import ConfigError

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONFIG_ERROR_EXIT_CODE = 2


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        json_logs: Emit structured JSON lines instead of plain text

    Raises:
        ConfigError: If ``level`` is not a known level name
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigError(f"Invalid log level: {level}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_logs else logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)


def setup_parser() -> argparse.ArgumentParser:
    """Setup command-line argument parser.

    Returns:
        ArgumentParser configured for system-info-exporter
    """
    parser = argparse.ArgumentParser(
        prog="system-info-exporter",
        description="Per-node CPU, memory and NVIDIA GPU exporter for Prometheus",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve on the configured address (default 0.0.0.0:8080)
  system-info-exporter

  # Serve on another port with debug logs as JSON
  system-info-exporter --port 9100 --log-level DEBUG --json-logs

  # Print one sample and exit
  system-info-exporter --once
  system-info-exporter --once --format json

Environment Variables:
  APP__SERVER__PORT                  Override any setting (APP__<SECTION>__<KEY>)
  APP__METRICS__ENABLED__CPU_USAGE   Toggle a metric family
  NODE_NAME                          Node label (default: hostname)
  LOG_LEVEL                          Default log level
  LOG_FORMAT                         Set to "json" for structured logs
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        help="Extra YAML or JSON config file, layered after config/local.yaml",
    )
    parser.add_argument(
        "--config-dir",
        default=DEFAULT_CONFIG_DIR,
        help="Directory holding default.yaml and local.yaml (default: %(default)s)",
    )
    parser.add_argument("--host", help="Listen address (overrides config)")
    parser.add_argument("--port", type=int, help="Listen port (overrides config)")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines (also enabled by LOG_FORMAT=json)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect a single sample, print it and exit",
    )
    parser.add_argument(
        "--format",
        choices=["prometheus", "json"],
        default="prometheus",
        help="Output format for --once (default: %(default)s)",
    )
    return parser


def build_app(settings: Settings) -> NodeCollector:
    """Wire the collection pipeline; one cache and one probe per process."""
    cache = GpuCache(max_age_seconds=settings.gpu.cache_max_age_seconds)
    executor = TimedExecutor(
        timeout_seconds=settings.gpu.timeout_seconds,
        host_library_path=settings.gpu.host_library_path,
    )
    gpu_collector = GpuCollector(
        cache,
        executor=executor,
        nvidia_smi_paths=settings.gpu.nvidia_smi_paths,
        presence_paths=settings.gpu.presence_paths,
    )
    return NodeCollector(HostProbe(), gpu_collector)


def run_once(settings: Settings, node_collector: NodeCollector, output_format: str) -> int:
    metrics = node_collector.collect()
    if output_format == "json":
        print(json.dumps(metrics.to_dict(), indent=2))
    else:
        sys.stdout.write(render_prometheus(metrics, settings.enabled))
    return 0


def main(argv: Optional[Sequence[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    """Main CLI entry point."""
    args = setup_parser().parse_args(argv)
    env = os.environ if env is None else env

    try:
        configure_logging(
            args.log_level or env.get("LOG_LEVEL", "INFO"),
            json_logs=args.json_logs or env.get("LOG_FORMAT", "").lower() == "json",
        )
        settings = Settings.load(config_dir=args.config_dir, config_file=args.config, env=env)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return CONFIG_ERROR_EXIT_CODE

    if args.host:
        settings.server.host = args.host
    if args.port is not None:
        settings.server.port = args.port

    LOGGER.info("Starting system-info-exporter %s", __version__)
    node_collector = build_app(settings)

    if args.once:
        return run_once(settings, node_collector, args.format)

    try:
        serve(settings, node_collector)
    except OSError as e:
        LOGGER.error("Failed to start server: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
