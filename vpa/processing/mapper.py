"""
Maps raw vendor metric ids to output measurements, units and values.
"""

import logging
import math
from typing import Dict, Optional

from vpa.models import EntityContext, MappedValue, MetricMappingEntry
from vpa.transforms import canonical_unit

LOG = logging.getLogger(__name__)


def coerce_number(value) -> Optional[float]:
    """
    Return value as a finite float, or None if it is not a usable number.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class MetricMapper:
    """
    Exact-key dispatch over one mapping table.

    Unknown metric ids are not an error: vCenter exposes far more counters than
    the dashboards use, so they simply produce no output.
    """

    def __init__(self, table: Dict[str, MetricMappingEntry]):
        self.table = table

    def entry_for(self, raw_metric_id: str) -> Optional[MetricMappingEntry]:
        return self.table.get(raw_metric_id)

    def map(self, raw_metric_id: str, raw_value, raw_unit: Optional[str],
            entity: Optional[EntityContext] = None) -> Optional[MappedValue]:
        """
        Map one raw reading.

        Args:
            raw_metric_id: Vendor metric id, e.g. 'cpu.ready.summation'
            raw_value: Raw numeric value
            raw_unit: Source unit label
            entity: Entity context passed to the value transform

        Returns:
            MappedValue, or None when the metric is unknown, intentionally
            dropped, or the value is not numeric
        """
        entry = self.table.get(raw_metric_id)
        if entry is None:
            LOG.debug(f"No mapping for metric {raw_metric_id}")
            return None
        if entry.measurement is None:
            return None

        number = coerce_number(raw_value)
        if number is None:
            LOG.debug(f"Skipping non-numeric value {raw_value!r} for {raw_metric_id}")
            return None

        value = entry.transform(number, raw_unit, entity)
        unit = canonical_unit(raw_unit, entry.unit)

        return MappedValue(measurement=entry.measurement, unit=unit, value=float(value))
