"""Merge host facts and GPU snapshot into per-scrape node metrics."""

from system_info_exporter.collectors.gpu_collector import GpuCollector
from system_info_exporter.hardware.host import HostProbe
from system_info_exporter.schema import NodeMetrics, SystemMetrics


class NodeCollector:
    """Produces the merged snapshot served by every HTTP route."""

    def __init__(self, host_probe: HostProbe, gpu_collector: GpuCollector):
        self.host_probe = host_probe
        self.gpu_collector = gpu_collector

    def collect(self) -> NodeMetrics:
        host = self.host_probe.sample()
        gpu = self.gpu_collector.collect()
        return NodeMetrics.from_parts(host, gpu)

    def collect_summary(self) -> SystemMetrics:
        return SystemMetrics.from_node(self.collect())
