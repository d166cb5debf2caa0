"""Tests for GPU snapshot assembly with cache fallback."""

from system_info_exporter.collectors.cache import GpuCache
from system_info_exporter.collectors.gpu_collector import GpuCollector
from system_info_exporter.hardware.gpu import COMPUTE_APPS_QUERY_ARGS, DEVICE_QUERY_ARGS
from system_info_exporter.schema import DeviceSnapshot
from system_info_exporter.utils.errors import ToolExecutionError, ToolTimeoutError

DEVICE_QUERY = DEVICE_QUERY_ARGS[0]
COMPUTE_QUERY = COMPUTE_APPS_QUERY_ARGS[0]

TWO_GPUS = (
    "0, NVIDIA A100-SXM4-40GB, GPU-aaa, 40960, 20480, 20480, 87, 61, 250.31, 400.00\n"
    "1, NVIDIA A100-SXM4-40GB, GPU-bbb, 40960, 0, 40960, 0, 33, 55.12, 400.00\n"
)


def _collector(executor, gpu_files, clock=None):
    presence_paths, tool_paths = gpu_files
    cache = GpuCache(max_age_seconds=300, clock=clock) if clock else GpuCache()
    return GpuCollector(
        cache,
        executor=executor,
        nvidia_smi_paths=tool_paths,
        presence_paths=presence_paths,
    )


def test_no_driver_means_no_subprocess(executor_factory, no_gpu_files):
    executor = executor_factory({})
    collector = _collector(executor, no_gpu_files)
    assert collector.collect() == DeviceSnapshot.empty()
    assert executor.calls == []


def test_missing_tool_gives_empty_snapshot(executor_factory, gpu_files, tmp_path):
    presence_paths, _ = gpu_files
    executor = executor_factory({})
    collector = _collector(executor, (presence_paths, [str(tmp_path / "nowhere")]))
    assert collector.collect().device_count == 0
    assert executor.calls == []


def test_successful_cycle(executor_factory, gpu_files):
    executor = executor_factory({DEVICE_QUERY: TWO_GPUS, COMPUTE_QUERY: "GPU-aaa\nGPU-aaa\n"})
    collector = _collector(executor, gpu_files)

    snapshot = collector.collect()
    assert snapshot.device_count == 2
    assert snapshot.type_counts == {"NVIDIA A100-SXM4-40GB": 2}
    assert snapshot.used_count == 1
    assert snapshot.devices[0].power_draw_watts == 250
    assert collector.cache.read().snapshot is snapshot
    assert [call[0] for call in executor.calls] == [gpu_files[1][0]] * 2


def test_empty_workload_result(executor_factory, gpu_files):
    collector = _collector(executor_factory({DEVICE_QUERY: TWO_GPUS, COMPUTE_QUERY: ""}), gpu_files)
    snapshot = collector.collect()
    assert snapshot.device_count == 2
    assert snapshot.used_count == 0


def test_workload_query_failure_keeps_device_data(executor_factory, gpu_files):
    executor = executor_factory(
        {DEVICE_QUERY: TWO_GPUS, COMPUTE_QUERY: ToolExecutionError("boom", exit_code=1)}
    )
    collector = _collector(executor, gpu_files)
    snapshot = collector.collect()
    assert snapshot.device_count == 2
    assert snapshot.used_count == 0
    assert collector.cache.read().populated


def test_unknown_workload_uuids_are_ignored(executor_factory, gpu_files):
    executor = executor_factory({DEVICE_QUERY: TWO_GPUS, COMPUTE_QUERY: "GPU-zzz\nGPU-bbb\n"})
    snapshot = _collector(executor, gpu_files).collect()
    assert snapshot.used_count == 1


def test_failures_fall_back_to_last_good_snapshot(executor_factory, gpu_files, fake_clock):
    """Two failed cycles serve the same snapshot, aged from the first capture."""
    executor = executor_factory(
        {
            DEVICE_QUERY: [TWO_GPUS, ToolTimeoutError("hung", exit_code=124)],
            COMPUTE_QUERY: "GPU-aaa\n",
        }
    )
    collector = _collector(executor, gpu_files, clock=fake_clock)

    good = collector.collect()
    fake_clock.advance(10)
    first = collector.collect()
    fake_clock.advance(20)
    second = collector.collect()

    assert first is good
    assert second is good
    assert collector.cache.read().age_seconds == 30


def test_zero_parsed_devices_fall_back_to_cache(executor_factory, gpu_files):
    executor = executor_factory({DEVICE_QUERY: [TWO_GPUS, "garbage\n"], COMPUTE_QUERY: ""})
    collector = _collector(executor, gpu_files)
    good = collector.collect()
    assert collector.collect() is good


def test_failure_with_empty_cache_gives_empty_snapshot(executor_factory, gpu_files):
    executor = executor_factory({DEVICE_QUERY: ToolExecutionError("no driver", exit_code=9)})
    assert _collector(executor, gpu_files).collect() == DeviceSnapshot.empty()
