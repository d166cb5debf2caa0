"""system-info-exporter: per-node CPU, memory and NVIDIA GPU telemetry for Prometheus."""

__version__ = "0.1.0"
