"""
Host and virtual machine performance collection through the vSphere
PerformanceManager.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pyVmomi import vim, vmodl

from vpa.metrics_config import requested_counters
from vpa.models import EntityContext, EntityType, RawSample
from vpa.processing.instance_filter import InstanceFilter

LOG = logging.getLogger(__name__)

# Realtime statistics are kept at 20 second granularity
REALTIME_INTERVAL_ID = 20

# Percent counters are reported in hundredths of a percent
PERCENT_COUNTER_UNIT = 'percent'
PERCENT_SCALE = 100.0


class VSphereCollector:
    """Collects realtime counters for hosts and powered-on VMs"""

    def __init__(self, si, vcenter: str, sample_count: int = 15,
                 instance_filter: Optional[InstanceFilter] = None):
        self.si = si
        self.vcenter = vcenter
        self.sample_count = sample_count
        self.instance_filter = instance_filter or InstanceFilter()
        self.content = si.RetrieveContent()
        self.perf_manager = self.content.perfManager
        self._counter_keys = None
        self._counter_info = None

    def _load_counters(self) -> None:
        """Index the counter catalogue by 'group.name.rollup' and by key."""
        self._counter_keys = {}
        self._counter_info = {}
        for counter in self.perf_manager.perfCounter:
            name = f"{counter.groupInfo.key}.{counter.nameInfo.key}.{counter.rollupType}"
            self._counter_keys[name] = counter.key
            self._counter_info[counter.key] = (name, counter.unitInfo.key)
        LOG.debug(f"Loaded {len(self._counter_keys)} performance counters from {self.vcenter}")

    @property
    def counter_keys(self) -> Dict[str, int]:
        if self._counter_keys is None:
            self._load_counters()
        return self._counter_keys

    @property
    def counter_info(self) -> Dict[int, Tuple[str, str]]:
        if self._counter_info is None:
            self._load_counters()
        return self._counter_info

    def iter_hosts(self) -> Iterator[Tuple[object, Optional[object], object]]:
        """Walk datacenter -> cluster -> host, yielding (datacenter, cluster or None, host)."""
        view_manager = self.content.viewManager
        dc_view = view_manager.CreateContainerView(self.content.rootFolder, [vim.Datacenter], True)
        try:
            for datacenter in dc_view.view:
                host_view = view_manager.CreateContainerView(datacenter.hostFolder, [vim.HostSystem], True)
                try:
                    for host in host_view.view:
                        parent = host.parent
                        cluster = parent if isinstance(parent, vim.ClusterComputeResource) else None
                        yield datacenter, cluster, host
                finally:
                    host_view.Destroy()
        finally:
            dc_view.Destroy()

    def host_context(self, datacenter, cluster, host) -> EntityContext:
        hardware = host.summary.hardware
        return EntityContext(
            entity_type=EntityType.HOST,
            entity_id=host._moId,
            entity_name=host.name,
            tags={
                'vcenter': self.vcenter,
                'datacenter': datacenter.name,
                'cluster': cluster.name if cluster else None,
                'cluster_id': cluster._moId if cluster else None,
            },
            num_cpu=hardware.numCpuThreads if hardware else 1,
            vendor=hardware.vendor if hardware else None,
            cluster_name=cluster.name if cluster else None,
        )

    def vm_context(self, datacenter, cluster, host, vm) -> EntityContext:
        config = vm.summary.config
        return EntityContext(
            entity_type=EntityType.VM,
            entity_id=vm._moId,
            entity_name=vm.name,
            tags={
                'vcenter': self.vcenter,
                'datacenter': datacenter.name,
                'cluster': cluster.name if cluster else None,
                'host': host.name,
            },
            num_cpu=config.numCpu if config and config.numCpu else 1,
            cluster_name=cluster.name if cluster else None,
        )

    def query(self, obj, entity: EntityContext, counter_names: Iterable[str]) -> List[RawSample]:
        """
        Query the last `sample_count` realtime samples of the given counters,
        all instances included.

        Args:
            obj: Managed object to query
            entity: Context of that object
            counter_names: 'group.name.rollup' counter names

        Returns:
            list: RawSamples, one per series and timestamp
        """
        metric_ids = []
        for name in counter_names:
            key = self.counter_keys.get(name)
            if key is None:
                LOG.debug(f"Counter {name} not available on {self.vcenter}")
                continue
            metric_ids.append(vim.PerformanceManager.MetricId(counterId=key, instance='*'))
        if not metric_ids:
            return []

        spec = vim.PerformanceManager.QuerySpec(
            entity=obj,
            metricId=metric_ids,
            intervalId=REALTIME_INTERVAL_ID,
            maxSample=self.sample_count,
        )
        results = self.perf_manager.QueryPerf(querySpec=[spec])
        return self.expand_results(entity, results or [])

    def expand_results(self, entity: EntityContext, results) -> List[RawSample]:
        samples = []
        for entity_metric in results:
            timestamps = [info.timestamp for info in entity_metric.sampleInfo]
            for series in entity_metric.value:
                info = self.counter_info.get(series.id.counterId)
                if info is None:
                    continue
                name, unit = info
                for timestamp, raw in zip(timestamps, series.value):
                    # -1 marks a sample vCenter has no data for
                    if raw < 0:
                        continue
                    value = raw / PERCENT_SCALE if unit == PERCENT_COUNTER_UNIT else raw
                    samples.append(RawSample(
                        entity_id=entity.entity_id,
                        entity_name=entity.entity_name,
                        metric_id=name,
                        instance=series.id.instance or '',
                        value=value,
                        unit=unit,
                        timestamp=timestamp,
                    ))
        return samples

    def collect_hosts(self) -> Iterator[Tuple[EntityContext, List[RawSample]]]:
        """Yield (context, samples) per connected host."""
        counters = requested_counters(EntityType.HOST)
        for datacenter, cluster, host in self.iter_hosts():
            if host.runtime.connectionState != 'connected':
                LOG.info(f"Skipping host {host.name}: {host.runtime.connectionState}")
                continue
            entity = self.host_context(datacenter, cluster, host)
            try:
                samples = self.query(host, entity, counters)
            except vmodl.MethodFault as e:
                LOG.warning(f"Performance query for host {entity.entity_name} failed: {e.msg}")
                continue
            except OSError as e:
                LOG.warning(f"Performance query for host {entity.entity_name} failed: {e}")
                continue
            yield entity, samples

    def collect_vms(self) -> Iterator[Tuple[EntityContext, List[RawSample]]]:
        """Yield (context, samples) per powered-on VM, GPU counters only in VDI clusters."""
        for datacenter, cluster, host in self.iter_hosts():
            for vm in host.vm:
                if vm.runtime.powerState != 'poweredOn':
                    continue
                entity = self.vm_context(datacenter, cluster, host, vm)
                include_vdi = self.instance_filter.is_vdi_cluster(entity.cluster_name)
                try:
                    samples = self.query(vm, entity, requested_counters(EntityType.VM, include_vdi))
                except vmodl.MethodFault as e:
                    LOG.warning(f"Performance query for VM {entity.entity_name} failed: {e.msg}")
                    continue
                except OSError as e:
                    LOG.warning(f"Performance query for VM {entity.entity_name} failed: {e}")
                    continue
                yield entity, samples
