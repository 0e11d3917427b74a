# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Metrics configuration for vSphere Perf Analyzer.

One mapping table per entity type, keyed by the raw metric id:
  - vSphere counters use 'group.name.rollup' (cpu.ready.summation)
  - vSAN counters use '<vsan entity type>.<label>' (disk-group.latencyAvgRead)
  - vSAN space report values use 'vsan.capacity.<field>'

Metric ids not listed here are not emitted.
"""

import dataclasses
from typing import Dict, Iterable, List, Optional

from vpa.models import EntityType, InstancePolicy, MetricMappingEntry
from vpa.transforms import TRANSFORMS

AGG = InstancePolicy.AGGREGATE_ONLY
PER = InstancePolicy.PER_INSTANCE
SUM = InstancePolicy.SUM_ACROSS_INSTANCES

# Redundant HBA pair on the HP/HPE builds
DEFAULT_ADAPTER_SUM_INSTANCES = ('vmhba1', 'vmhba2')


def _entry(raw_id, measurement, unit, transform='identity', policy=AGG,
           instances=(), vdi_only=False):
    return MetricMappingEntry(
        raw_id=raw_id,
        measurement=measurement,
        unit=unit,
        transform=TRANSFORMS[transform],
        policy=policy,
        instance_allow_list=tuple(instances),
        vdi_only=vdi_only,
    )


HOST_METRICS = [
    _entry('cpu.usage.average', 'host_cpu_usage', 'perc'),
    _entry('cpu.usagemhz.average', 'host_cpu_usagemhz', 'MHz'),
    _entry('cpu.ready.summation', 'host_cpu_ready', 'perc', 'cpu_ready_host'),
    _entry('cpu.costop.summation', 'host_cpu_costop', 'perc', 'cpu_ready_host'),
    _entry('cpu.latency.average', 'host_cpu_latency', 'perc'),
    _entry('cpu.idle.summation', None, 'ms'),
    _entry('mem.usage.average', 'host_mem_usage', 'perc'),
    _entry('mem.consumed.average', 'host_mem_consumed', 'MB', 'kb_to_mb'),
    _entry('mem.vmmemctl.average', 'host_mem_balloon', 'MB', 'kb_to_mb'),
    _entry('mem.swapinRate.average', 'host_mem_swapin_rate', 'KBps'),
    _entry('net.usage.average', 'host_net_usage', 'KBps'),
    _entry('net.received.average', 'host_net_received', 'KBps'),
    _entry('net.transmitted.average', 'host_net_transmitted', 'KBps'),
    _entry('net.droppedRx.summation', 'host_net_dropped_rx', 'number'),
    _entry('disk.usage.average', 'host_disk_usage', 'KBps'),
    _entry('disk.maxTotalLatency.latest', 'host_disk_latency_max', 'ms', 'latency'),
    _entry('storageAdapter.read.average', 'host_adapter_read', 'KBps',
           policy=SUM, instances=DEFAULT_ADAPTER_SUM_INSTANCES),
    _entry('storageAdapter.write.average', 'host_adapter_write', 'KBps',
           policy=SUM, instances=DEFAULT_ADAPTER_SUM_INSTANCES),
    _entry('storageAdapter.numberReadAveraged.average', 'host_adapter_read_iops', 'iops',
           policy=SUM, instances=DEFAULT_ADAPTER_SUM_INSTANCES),
    _entry('storageAdapter.numberWriteAveraged.average', 'host_adapter_write_iops', 'iops',
           policy=SUM, instances=DEFAULT_ADAPTER_SUM_INSTANCES),
    _entry('datastore.totalReadLatency.average', 'host_datastore_read_latency', 'ms',
           'latency', policy=PER),
    _entry('datastore.totalWriteLatency.average', 'host_datastore_write_latency', 'ms',
           'latency', policy=PER),
    _entry('power.power.average', 'host_power', 'W'),
    _entry('sys.uptime.latest', 'host_uptime', 's'),
]

VM_METRICS = [
    _entry('cpu.usage.average', 'vm_cpu_usage', 'perc'),
    _entry('cpu.usagemhz.average', 'vm_cpu_usagemhz', 'MHz'),
    _entry('cpu.ready.summation', 'vm_cpu_ready', 'perc', 'cpu_ready_vm'),
    _entry('cpu.costop.summation', 'vm_cpu_costop', 'perc', 'cpu_ready_vm'),
    _entry('cpu.idle.summation', None, 'ms'),
    _entry('mem.usage.average', 'vm_mem_usage', 'perc'),
    _entry('mem.active.average', 'vm_mem_active', 'MB', 'kb_to_mb'),
    _entry('mem.vmmemctl.average', 'vm_mem_balloon', 'MB', 'kb_to_mb'),
    _entry('mem.swapped.average', 'vm_mem_swapped', 'MB', 'kb_to_mb'),
    _entry('net.usage.average', 'vm_net_usage', 'KBps'),
    _entry('disk.usage.average', 'vm_disk_usage', 'KBps'),
    _entry('disk.maxTotalLatency.latest', 'vm_disk_latency_max', 'ms', 'latency'),
    _entry('virtualDisk.totalReadLatency.average', 'vm_vdisk_read_latency', 'ms',
           'latency', policy=PER),
    _entry('virtualDisk.totalWriteLatency.average', 'vm_vdisk_write_latency', 'ms',
           'latency', policy=PER),
    _entry('sys.uptime.latest', 'vm_uptime', 's'),
    # VDI clusters only
    _entry('gpu.utilization.average', 'vm_gpu_utilization', 'perc', policy=PER, vdi_only=True),
    _entry('gpu.mem.usage.average', 'vm_gpu_mem_usage', 'perc', policy=PER, vdi_only=True),
    _entry('gpu.mem.used.average', 'vm_gpu_mem_used', 'MB', 'kb_to_mb', policy=PER, vdi_only=True),
]

VSAN_CLUSTER_METRICS = [
    _entry('cluster-domclient.iopsRead', 'vsan_cluster_iops_read', 'iops'),
    _entry('cluster-domclient.iopsWrite', 'vsan_cluster_iops_write', 'iops'),
    _entry('cluster-domclient.throughputRead', 'vsan_cluster_throughput_read', 'KBps', 'bytes_to_kb'),
    _entry('cluster-domclient.throughputWrite', 'vsan_cluster_throughput_write', 'KBps', 'bytes_to_kb'),
    _entry('cluster-domclient.latencyAvgRead', 'vsan_cluster_latency_read', 'ms', 'latency'),
    _entry('cluster-domclient.latencyAvgWrite', 'vsan_cluster_latency_write', 'ms', 'latency'),
    _entry('cluster-domclient.congestion', 'vsan_cluster_congestion', 'number'),
    _entry('cluster-domclient.oio', 'vsan_cluster_oio', 'number'),
    _entry('vsan.capacity.totalCapacityB', 'vsan_cluster_capacity_total', 'GiB', 'bytes_to_gib'),
    _entry('vsan.capacity.freeCapacityB', 'vsan_cluster_capacity_free', 'GiB', 'bytes_to_gib'),
    _entry('vsan.capacity.usedB', 'vsan_cluster_capacity_used', 'GiB', 'bytes_to_gib'),
]

VSAN_DISKGROUP_METRICS = [
    _entry('disk-group.iopsRead', 'vsan_diskgroup_iops_read', 'iops'),
    _entry('disk-group.iopsWrite', 'vsan_diskgroup_iops_write', 'iops'),
    _entry('disk-group.throughputRead', 'vsan_diskgroup_throughput_read', 'KBps', 'bytes_to_kb'),
    _entry('disk-group.throughputWrite', 'vsan_diskgroup_throughput_write', 'KBps', 'bytes_to_kb'),
    _entry('disk-group.latencyAvgRead', 'vsan_diskgroup_latency_read', 'ms', 'latency'),
    _entry('disk-group.latencyAvgWrite', 'vsan_diskgroup_latency_write', 'ms', 'latency'),
    _entry('disk-group.oio', 'vsan_diskgroup_oio', 'number'),
    _entry('disk-group.wbFreePct', 'vsan_diskgroup_wb_free', 'perc'),
    _entry('disk-group.rcHitRate', 'vsan_diskgroup_rc_hit_rate', 'perc'),
    _entry('disk-group.capacity', 'vsan_diskgroup_capacity', 'GiB', 'bytes_to_gib'),
    _entry('disk-group.capacityUsed', 'vsan_diskgroup_capacity_used', 'GiB', 'bytes_to_gib'),
    _entry('disk-group.capacityReserved', 'vsan_diskgroup_capacity_reserved', 'MB', 'bytes_to_mb'),
]

METRIC_TABLES = {
    EntityType.HOST: HOST_METRICS,
    EntityType.VM: VM_METRICS,
    EntityType.VSAN_CLUSTER: VSAN_CLUSTER_METRICS,
    EntityType.VSAN_DISKGROUP: VSAN_DISKGROUP_METRICS,
}


def build_metric_table(entity_type, adapter_instances: Optional[Iterable[str]] = None
                       ) -> Dict[str, MetricMappingEntry]:
    """
    Build the lookup dict for one entity type.

    Args:
        entity_type: EntityType to build the table for
        adapter_instances: Replaces the allow list of SUM_ACROSS_INSTANCES entries

    Returns:
        dict: raw metric id -> MetricMappingEntry
    """
    table = {}
    for entry in METRIC_TABLES.get(entity_type, []):
        if adapter_instances is not None and entry.policy is SUM:
            entry = dataclasses.replace(entry, instance_allow_list=tuple(adapter_instances))
        table[entry.raw_id] = entry
    return table


def requested_counters(entity_type, include_vdi: bool = False) -> List[str]:
    """
    Counter names to request from vCenter for an entity type.

    Entries mapped to None are not requested. GPU counters are only requested
    for VDI clusters.
    """
    return [entry.raw_id for entry in METRIC_TABLES.get(entity_type, [])
            if entry.measurement is not None and (include_vdi or not entry.vdi_only)]
