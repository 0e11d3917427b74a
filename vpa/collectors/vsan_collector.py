"""
vSAN performance and capacity collection.

The vSAN performance service returns each series as comma separated strings:
one string of sample times and, per metric label, one string of values in the
same order. Those are expanded into one RawSample per label and time.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Tuple

from pyVmomi import vim, vmodl

from vpa.exceptions import InvalidTimestamp
from vpa.metrics_config import requested_counters
from vpa.models import EntityContext, EntityType, RawSample

LOG = logging.getLogger(__name__)

VSAN_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
CLUSTER_ENTITY = 'cluster-domclient'
DISKGROUP_ENTITY = 'disk-group'
CAPACITY_PREFIX = 'vsan.capacity'

# Units of the vSAN labels; the performance service does not report them
VSAN_LABEL_UNITS = {
    'latencyAvgRead': 'microsecond',
    'latencyAvgWrite': 'microsecond',
    'throughputRead': 'bytesPerSecond',
    'throughputWrite': 'bytesPerSecond',
    'wbFreePct': 'percent',
    'rcHitRate': 'percent',
    'capacity': 'bytes',
    'capacityUsed': 'bytes',
    'capacityReserved': 'bytes',
}


def parse_vsan_time(value: str) -> datetime:
    try:
        return datetime.strptime(value.strip(), VSAN_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise InvalidTimestamp(value, f"expected layout {VSAN_TIME_FORMAT}") from e


def labels_for(entity_type: EntityType, prefix: str) -> List[str]:
    """Metric labels to request, taken from the mapping table."""
    head = prefix + '.'
    return [raw_id[len(head):] for raw_id in requested_counters(entity_type) if raw_id.startswith(head)]


def expand_entity_metric(entity_metric, entity: EntityContext, prefix: str) -> List[RawSample]:
    """
    Expand one VsanPerfEntityMetricCSV into RawSamples.

    Raises:
        InvalidTimestamp: If a sample time cannot be parsed
    """
    if not entity_metric.sampleInfo:
        return []
    timestamps = [parse_vsan_time(s) for s in entity_metric.sampleInfo.split(',') if s]

    samples = []
    for series in entity_metric.value or []:
        label = series.metricId.label
        values = series.values.split(',') if series.values else []
        for timestamp, raw in zip(timestamps, values):
            samples.append(RawSample(
                entity_id=entity.entity_id,
                entity_name=entity.entity_name,
                metric_id=f"{prefix}.{label}",
                instance='',
                value=raw,
                unit=VSAN_LABEL_UNITS.get(label, 'number'),
                timestamp=timestamp,
            ))
    return samples


class VsanCollector:
    """Collects vSAN cluster and disk group metrics for every vSAN enabled cluster."""

    def __init__(self, si, perf_manager, space_report_system, vcenter: str, window_minutes: int = 10):
        self.si = si
        self.perf_manager = perf_manager
        self.space_report_system = space_report_system
        self.vcenter = vcenter
        self.window = timedelta(minutes=window_minutes)
        self.content = si.RetrieveContent()

    def iter_clusters(self) -> Iterator[object]:
        view = self.content.viewManager.CreateContainerView(
            self.content.rootFolder, [vim.ClusterComputeResource], True)
        try:
            for cluster in view.view:
                vsan_config = cluster.configurationEx.vsanConfigInfo
                if vsan_config is None or not vsan_config.enabled:
                    continue
                yield cluster
        finally:
            view.Destroy()

    def cluster_context(self, cluster) -> EntityContext:
        return EntityContext(
            entity_type=EntityType.VSAN_CLUSTER,
            entity_id=cluster._moId,
            entity_name=cluster.name,
            tags={'vcenter': self.vcenter},
            cluster_name=cluster.name,
        )

    def diskgroup_context(self, cluster, diskgroup_uuid: str, host_name: Optional[str]) -> EntityContext:
        return EntityContext(
            entity_type=EntityType.VSAN_DISKGROUP,
            entity_id=diskgroup_uuid,
            entity_name=diskgroup_uuid,
            tags={'vcenter': self.vcenter, 'cluster': cluster.name, 'host': host_name},
            cluster_name=cluster.name,
        )

    @staticmethod
    def diskgroup_hosts(cluster) -> Dict[str, str]:
        """Map disk group uuid (the cache disk's vSAN uuid) to host name."""
        owners = {}
        for host in cluster.host:
            config = host.config
            if config is None or config.vsanHostConfig is None or config.vsanHostConfig.storageInfo is None:
                continue
            for mapping in config.vsanHostConfig.storageInfo.diskMapping or []:
                disk_info = mapping.ssd.vsanDiskInfo
                if disk_info is not None:
                    owners[disk_info.vsanUuid] = host.name
        return owners

    def query_performance(self, cluster) -> List[Tuple[EntityContext, List[RawSample]]]:
        end_time = datetime.now(timezone.utc)
        start_time = end_time - self.window
        specs = [
            vim.cluster.VsanPerfQuerySpec(entityRefId=f"{CLUSTER_ENTITY}:*",
                                          labels=labels_for(EntityType.VSAN_CLUSTER, CLUSTER_ENTITY),
                                          startTime=start_time, endTime=end_time),
            vim.cluster.VsanPerfQuerySpec(entityRefId=f"{DISKGROUP_ENTITY}:*",
                                          labels=labels_for(EntityType.VSAN_DISKGROUP, DISKGROUP_ENTITY),
                                          startTime=start_time, endTime=end_time),
        ]
        results = self.perf_manager.VsanPerfQueryPerf(querySpecs=specs, cluster=cluster) or []
        return self.expand_results(cluster, results)

    def expand_results(self, cluster, results) -> List[Tuple[EntityContext, List[RawSample]]]:
        cluster_entity = self.cluster_context(cluster)
        owners = None
        expanded = []
        for entity_metric in results:
            ref_type, _, ref_id = entity_metric.entityRefId.partition(':')
            if ref_type == CLUSTER_ENTITY:
                expanded.append((cluster_entity, expand_entity_metric(entity_metric, cluster_entity, CLUSTER_ENTITY)))
            elif ref_type == DISKGROUP_ENTITY:
                if owners is None:
                    owners = self.diskgroup_hosts(cluster)
                entity = self.diskgroup_context(cluster, ref_id, owners.get(ref_id))
                expanded.append((entity, expand_entity_metric(entity_metric, entity, DISKGROUP_ENTITY)))
            else:
                LOG.debug(f"Ignoring vSAN entity {entity_metric.entityRefId}")
        return expanded

    def query_capacity(self, cluster) -> List[RawSample]:
        entity = self.cluster_context(cluster)
        usage = self.space_report_system.VsanQuerySpaceUsage(cluster=cluster)
        timestamp = datetime.now(timezone.utc)
        values = {
            'totalCapacityB': usage.totalCapacityB,
            'freeCapacityB': usage.freeCapacityB,
            'usedB': usage.spaceOverview.usedB if usage.spaceOverview else None,
        }
        return [
            RawSample(entity.entity_id, entity.entity_name, f"{CAPACITY_PREFIX}.{key}", '', value, 'bytes', timestamp)
            for key, value in values.items() if value is not None
        ]

    def collect(self) -> Iterator[Tuple[EntityContext, List[RawSample]]]:
        """Yield (context, samples) per cluster and disk group."""
        for cluster in self.iter_clusters():
            try:
                results = self.query_performance(cluster)
            except vmodl.MethodFault as e:
                LOG.warning(f"vSAN performance query for cluster {cluster.name} failed: {e.msg}")
                results = []
            except OSError as e:
                LOG.warning(f"vSAN performance query for cluster {cluster.name} failed: {e}")
                results = []
            yield from results

            try:
                capacity = self.query_capacity(cluster)
            except vmodl.MethodFault as e:
                LOG.warning(f"vSAN space report for cluster {cluster.name} failed: {e.msg}")
                continue
            except OSError as e:
                LOG.warning(f"vSAN space report for cluster {cluster.name} failed: {e}")
                continue
            yield self.cluster_context(cluster), capacity
