"""Reporting for system-info-exporter: Prometheus text exposition."""

from system_info_exporter.reporting.prometheus import (
    PrometheusFormatter,
    escape_label_value,
    render_prometheus,
)

__all__ = ["PrometheusFormatter", "escape_label_value", "render_prometheus"]
