"""
Decides which raw samples are kept, based on their instance and the metric's
instance policy.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from vpa.models import EntityContext, InstancePolicy, MetricMappingEntry, RawSample

LOG = logging.getLogger(__name__)

DEFAULT_VDI_PATTERN = 'VDI'
DEFAULT_ADAPTER_SUM_VENDORS = ('HP', 'HPE')


class Decision(Enum):
    KEEP = "keep"
    DROP = "drop"


class InstanceFilter:
    """
    Keep/drop decision for raw samples.

    The aggregate sample (empty instance) is always kept. A sample with a
    non-empty instance is dropped unless its metric is PER_INSTANCE, or
    SUM_ACROSS_INSTANCES on a host from an allow-listed hardware family.
    Dropping is keyed on the instance being non-empty: testing the instance
    for truthiness and testing it against '' give the same answer, so there is
    no third case.
    """

    def __init__(self, vdi_pattern: Optional[str] = DEFAULT_VDI_PATTERN,
                 adapter_sum_vendors: Iterable[str] = DEFAULT_ADAPTER_SUM_VENDORS):
        """
        Args:
            vdi_pattern: Substring of a cluster name that marks a VDI cluster.
                None or '' disables VDI-only metrics entirely.
            adapter_sum_vendors: Host hardware vendors that get adapter sums
        """
        self.vdi_pattern = vdi_pattern or None
        self.adapter_sum_vendors = frozenset(v.strip().upper() for v in adapter_sum_vendors if v)

    def is_vdi_cluster(self, cluster_name: Optional[str]) -> bool:
        """Case-sensitive substring match on the cluster display name."""
        if not self.vdi_pattern or not cluster_name:
            return False
        return self.vdi_pattern in cluster_name

    def sums_adapters(self, vendor: Optional[str]) -> bool:
        if not vendor:
            return False
        return vendor.strip().upper() in self.adapter_sum_vendors

    def decide(self, sample: RawSample, entry: Optional[MetricMappingEntry],
               entity: Optional[EntityContext] = None) -> Decision:
        """
        Args:
            sample: The raw sample
            entry: Mapping entry of the sample's metric, None if unmapped
            entity: Entity the sample belongs to

        Returns:
            Decision.KEEP or Decision.DROP
        """
        if not sample.instance:
            return Decision.KEEP

        if entry is None:
            return Decision.DROP

        if entry.policy is InstancePolicy.PER_INSTANCE:
            if entry.vdi_only and not self.is_vdi_cluster(entity.cluster_name if entity else None):
                return Decision.DROP
            return Decision.KEEP

        if entry.policy is InstancePolicy.SUM_ACROSS_INSTANCES:
            if sample.instance not in entry.instance_allow_list:
                return Decision.DROP
            if not self.sums_adapters(entity.vendor if entity else None):
                return Decision.DROP
            return Decision.KEEP

        return Decision.DROP
