"""Render node metrics in the Prometheus text exposition format.

Every family gets a ``# HELP`` and ``# TYPE`` line followed by its samples.
Families are emitted in a fixed order and samples follow device order, so
rendering the same metrics twice gives byte-identical text.
"""

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from system_info_exporter.configs.defaults import MetricsEnabled
from system_info_exporter.schema import DeviceRecord, NodeMetrics

GAUGE = "gauge"
COUNTER = "counter"

Sample = Tuple[Dict[str, str], str]

# (flag, metric name, help text, value getter)
GPU_DEVICE_FAMILIES: List[Tuple[str, str, str, Callable[[DeviceRecord], int]]] = [
    (
        "gpu_memory_total",
        "hw_gpu_memory_total_bytes",
        "GPU total memory in bytes",
        lambda gpu: gpu.memory_total_bytes,
    ),
    (
        "gpu_memory_used",
        "hw_gpu_memory_used_bytes",
        "GPU used memory in bytes",
        lambda gpu: gpu.memory_used_bytes,
    ),
    (
        "gpu_memory_free",
        "hw_gpu_memory_free_bytes",
        "GPU free memory in bytes",
        lambda gpu: gpu.memory_free_bytes,
    ),
    (
        "gpu_utilization",
        "hw_gpu_utilization_percent",
        "GPU utilization percentage",
        lambda gpu: gpu.utilization_percent,
    ),
    (
        "gpu_temperature",
        "hw_gpu_temperature_celsius",
        "GPU temperature in Celsius",
        lambda gpu: gpu.temperature_celsius,
    ),
    (
        "gpu_power_draw",
        "hw_gpu_power_draw_watts",
        "GPU power draw in watts",
        lambda gpu: gpu.power_draw_watts,
    ),
    (
        "gpu_power_limit",
        "hw_gpu_power_limit_watts",
        "GPU power limit in watts",
        lambda gpu: gpu.power_limit_watts,
    ),
]


def escape_label_value(value: str) -> str:
    """Escape backslash, double quote and newline for use inside a label value."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(labels: Dict[str, str]) -> str:
    if not labels:
        return ""
    inner = ",".join(
        f'{key}="{escape_label_value(str(value))}"' for key, value in labels.items()
    )
    return "{" + inner + "}"


def _format_family(
    name: str, help_text: str, metric_type: str, samples: Iterable[Sample]
) -> List[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} {metric_type}"]
    for labels, value in samples:
        lines.append(f"{name}{_format_labels(labels)} {value}")
    return lines


def _fixed(value: float) -> str:
    return f"{value:.2f}"


class PrometheusFormatter:
    """Turns a NodeMetrics into exposition text, honoring per-family switches."""

    def __init__(self, enabled: Optional[MetricsEnabled] = None):
        self.enabled = enabled or MetricsEnabled()

    def render(self, metrics: NodeMetrics) -> str:
        lines: List[str] = []
        node_labels = {"node": metrics.node}
        enabled = self.enabled

        def add(
            flag: bool,
            name: str,
            help_text: str,
            samples: Sequence[Sample],
            metric_type: str = GAUGE,
        ) -> None:
            if flag:
                lines.extend(_format_family(name, help_text, metric_type, samples))

        add(
            enabled.node_info,
            "hw_node_info",
            "Node hardware information",
            [
                (
                    {
                        "node": metrics.node,
                        "os": metrics.os_name,
                        "os_version": metrics.os_version,
                        "kernel": metrics.kernel_version,
                        "cpu_model": metrics.cpu_model,
                    },
                    "1",
                )
            ],
        )
        add(
            enabled.node_uptime,
            "hw_node_uptime_seconds",
            "Node uptime in seconds",
            [(node_labels, str(metrics.uptime_secs))],
            metric_type=COUNTER,
        )

        # CPU
        add(
            enabled.cpu_cores,
            "hw_cpu_cores",
            "Number of physical CPU cores",
            [(node_labels, str(metrics.cpu_cores))],
        )
        add(
            enabled.cpu_threads,
            "hw_cpu_threads",
            "Number of CPU threads",
            [(node_labels, str(metrics.cpu_threads))],
        )
        add(
            enabled.cpu_usage,
            "hw_cpu_usage_percent",
            "CPU usage percentage",
            [(node_labels, _fixed(metrics.cpu_usage_percent))],
        )
        add(
            enabled.cpu_used_cores,
            "hw_cpu_used_cores",
            "Number of CPU cores currently in use",
            [(node_labels, _fixed(metrics.cpu_used_cores))],
        )

        # Memory
        add(
            enabled.memory_total,
            "hw_memory_total_bytes",
            "Total memory in bytes",
            [(node_labels, str(metrics.memory_total_bytes))],
        )
        add(
            enabled.memory_used,
            "hw_memory_used_bytes",
            "Used memory in bytes",
            [(node_labels, str(metrics.memory_used_bytes))],
        )
        add(
            enabled.memory_available,
            "hw_memory_available_bytes",
            "Available memory in bytes",
            [(node_labels, str(metrics.memory_available_bytes))],
        )
        add(
            enabled.memory_usage,
            "hw_memory_usage_percent",
            "Memory usage percentage",
            [(node_labels, _fixed(metrics.memory_usage_percent))],
        )

        # GPU aggregates only for nodes with GPUs
        if metrics.gpu_count > 0:
            add(
                enabled.gpu_count,
                "hw_gpu_count",
                "Total number of GPUs per node",
                [(node_labels, str(metrics.gpu_count))],
            )
            add(
                enabled.gpu_used_count,
                "hw_gpu_used_count",
                "Number of GPUs currently in use per node",
                [(node_labels, str(metrics.gpu_used_count))],
            )
            add(
                enabled.gpu_type_count,
                "hw_gpu_type_count",
                "Number of GPUs by type per node",
                [
                    ({"node": metrics.node, "gpu_type": gpu_type}, str(count))
                    for gpu_type, count in metrics.gpu_type_counts.items()
                ],
            )

        if metrics.gpu_devices:
            for flag, name, help_text, getter in GPU_DEVICE_FAMILIES:
                add(
                    getattr(enabled, flag),
                    name,
                    help_text,
                    [
                        (self._device_labels(metrics.node, gpu), str(getter(gpu)))
                        for gpu in metrics.gpu_devices
                    ],
                )

        return "\n".join(lines) + "\n" if lines else ""

    @staticmethod
    def _device_labels(node: str, gpu: DeviceRecord) -> Dict[str, str]:
        return {
            "node": node,
            "gpu_index": str(gpu.index),
            "gpu_name": gpu.name,
            "gpu_uuid": gpu.uuid,
        }


def render_prometheus(
    metrics: NodeMetrics, enabled: Optional[MetricsEnabled] = None
) -> str:
    """Render ``metrics`` as Prometheus text exposition."""
    return PrometheusFormatter(enabled).render(metrics)
