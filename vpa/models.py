# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Data model shared by the collectors, the mapping pipeline and the writers.

A RawSample is one observation returned by vCenter or vSAN. The mapping tables
in metrics_config are made of MetricMappingEntry records, and every accepted
sample (or group of summed samples) ends up as one OutputLine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

Timestamp = Union[datetime, str]


class InstancePolicy(Enum):
    """How samples with a non-empty instance are treated for a metric."""
    AGGREGATE_ONLY = "aggregate_only"
    PER_INSTANCE = "per_instance"
    SUM_ACROSS_INSTANCES = "sum_across_instances"


class EntityType(str, Enum):
    HOST = "host"
    VM = "vm"
    VSAN_CLUSTER = "vsan_cluster"
    VSAN_DISKGROUP = "vsan_diskgroup"
    APPLIANCE = "appliance"
    POLLER = "poller"


@dataclass
class RawSample:
    entity_id: str
    entity_name: str
    metric_id: str
    instance: str
    value: Any
    unit: str
    timestamp: Timestamp

    @property
    def is_aggregate(self) -> bool:
        return not self.instance


@dataclass
class EntityContext:
    """
    Attributes of the polled entity that transforms and tag building need.

    Args:
        entity_type: One of EntityType
        entity_id: Stable managed object id (host-42, vm-1001, domain-c7, ...)
        entity_name: Display name, may change over time
        tags: Extra identifying tag values (vcenter, cluster, host, ...)
        num_cpu: Virtual processor count, used to normalize VM CPU ready
        vendor: Hardware vendor of a host, used for adapter summing
        cluster_name: Display name of the owning cluster, used for VDI detection
    """
    entity_type: EntityType
    entity_id: str
    entity_name: str
    tags: Dict[str, str] = field(default_factory=dict)
    num_cpu: int = 1
    vendor: Optional[str] = None
    cluster_name: Optional[str] = None


@dataclass(frozen=True)
class MetricMappingEntry:
    """
    Static mapping of one raw vendor metric id.

    A measurement of None means the metric is recognized but intentionally
    not emitted.
    """
    raw_id: str
    measurement: Optional[str]
    unit: str
    transform: Callable[..., float]
    policy: InstancePolicy = InstancePolicy.AGGREGATE_ONLY
    instance_allow_list: Tuple[str, ...] = ()
    vdi_only: bool = False


@dataclass(frozen=True)
class MappedValue:
    measurement: str
    unit: str
    value: float


@dataclass(frozen=True)
class OutputLine:
    measurement: str
    tags: Dict[str, str]
    fields: Dict[str, Any]
    timestamp: int
