"""
Sums same-timestamp samples across allow-listed sub-device instances.
"""

import logging
from collections import OrderedDict
from typing import Iterable, List, Optional

from vpa.models import RawSample
from vpa.timestamps import to_epoch_ns

LOG = logging.getLogger(__name__)


class InstanceAggregator:
    """
    Groups per-instance samples by (entity, metric, timestamp) and emits one
    aggregate sample per group with the summed value.

    Groups are not padded: if only one of two adapters reported at a
    timestamp, the derived value is that adapter's value.
    """

    def __init__(self, allow_list: Optional[Iterable[str]] = None):
        """
        Args:
            allow_list: If given, samples for other instances are ignored
        """
        self.allow_list = frozenset(allow_list) if allow_list is not None else None
        self._groups = OrderedDict()

    def add(self, sample: RawSample) -> bool:
        """Add a sample. Returns False if its instance is not allow-listed."""
        if self.allow_list is not None and sample.instance not in self.allow_list:
            LOG.debug(f"Ignoring instance {sample.instance} for {sample.metric_id}")
            return False
        self._groups.setdefault(_group_key(sample), []).append(sample)
        return True

    def covers(self, sample: RawSample) -> bool:
        """True if a derived sample will be emitted for this sample's series and time."""
        return _group_key(sample) in self._groups

    def extend(self, samples: Iterable[RawSample]) -> None:
        for sample in samples:
            self.add(sample)

    def __len__(self):
        return len(self._groups)

    def flush(self) -> List[RawSample]:
        """
        Return the derived samples in order of first appearance and reset.
        """
        derived = []
        for group in self._groups.values():
            first = group[0]
            derived.append(RawSample(
                entity_id=first.entity_id,
                entity_name=first.entity_name,
                metric_id=first.metric_id,
                instance='',
                value=sum(float(s.value) for s in group),
                unit=first.unit,
                timestamp=first.timestamp,
            ))
            LOG.debug(f"Summed {len(group)} instances of {first.metric_id} "
                      f"for {first.entity_name} at {first.timestamp}")
        self._groups = OrderedDict()
        return derived


def aggregate(samples: Iterable[RawSample], allow_list: Optional[Iterable[str]] = None) -> List[RawSample]:
    """Convenience wrapper: add all samples and flush once."""
    aggregator = InstanceAggregator(allow_list)
    aggregator.extend(samples)
    return aggregator.flush()


def _group_key(sample: RawSample):
    return sample.entity_id, sample.metric_id, _timestamp_key(sample.timestamp)


def _timestamp_key(timestamp) -> int:
    # Same instant groups together whatever its representation
    if isinstance(timestamp, int) and not isinstance(timestamp, bool):
        return timestamp
    return to_epoch_ns(timestamp)
