"""
Per-entity metric pipeline: instance filter, adapter summing, mapping and line
building for one entity's raw samples.
"""

import logging
from typing import Dict, Iterable, List, Optional

from vpa.metrics_config import build_metric_table
from vpa.models import (EntityContext, EntityType, InstancePolicy, MetricMappingEntry,
                        OutputLine, RawSample)
from vpa.processing.aggregator import InstanceAggregator
from vpa.processing.instance_filter import Decision, InstanceFilter
from vpa.processing.mapper import MetricMapper, coerce_number
from vpa.writer.line_protocol import LineRecordBuilder

LOG = logging.getLogger(__name__)


class MetricPipeline:
    """
    Turns raw samples into OutputLines.

    Pure mapping problems (unknown metric, non-numeric value) skip the sample.
    InvalidTimestamp is not caught: a record with a broken timestamp must abort
    the run instead of being written at the wrong time.
    """

    def __init__(self, tables: Optional[Dict[EntityType, Dict[str, MetricMappingEntry]]] = None,
                 instance_filter: Optional[InstanceFilter] = None,
                 builder: Optional[LineRecordBuilder] = None,
                 adapter_instances: Optional[Iterable[str]] = None):
        """
        Args:
            tables: Mapping tables by entity type; built from metrics_config if omitted
            instance_filter: Filter to use, default settings if omitted
            builder: Line builder, a new one if omitted
            adapter_instances: Allow list for summed adapter metrics
        """
        if tables is None:
            adapter_list = list(adapter_instances) if adapter_instances is not None else None
            tables = {
                entity_type: build_metric_table(entity_type, adapter_list)
                for entity_type in (EntityType.HOST, EntityType.VM,
                                    EntityType.VSAN_CLUSTER, EntityType.VSAN_DISKGROUP)
            }
        self.mappers = {entity_type: MetricMapper(table) for entity_type, table in tables.items()}
        self.instance_filter = instance_filter or InstanceFilter()
        self.builder = builder or LineRecordBuilder()

    def process(self, entity: EntityContext, samples: Iterable[RawSample]) -> List[OutputLine]:
        """
        Process all samples of one entity.

        Args:
            entity: Entity the samples belong to
            samples: Raw samples, possibly empty

        Returns:
            list: OutputLines in sample order, followed by adapter totals that
            were not summed and then the summed adapter lines

        Raises:
            InvalidTimestamp: If a kept sample has a malformed timestamp
        """
        mapper = self.mappers.get(entity.entity_type)
        if mapper is None:
            LOG.warning(f"No mapping table for entity type {entity.entity_type}")
            return []

        lines = []
        aggregator = InstanceAggregator()
        sum_totals = []
        dropped = 0

        for sample in samples:
            entry = mapper.entry_for(sample.metric_id)
            if entry is None or entry.measurement is None:
                continue

            if self.instance_filter.decide(sample, entry, entity) is Decision.DROP:
                dropped += 1
                continue

            if entry.policy is InstancePolicy.SUM_ACROSS_INSTANCES:
                if not sample.instance:
                    sum_totals.append((entry, sample))
                elif coerce_number(sample.value) is not None:
                    aggregator.add(sample)
                continue

            line = self._build_line(mapper, entry, entity, sample)
            if line is not None:
                lines.append(line)

        # A summed series replaces the source's own total for the same time
        for entry, sample in sum_totals:
            if aggregator.covers(sample):
                continue
            line = self._build_line(mapper, entry, entity, sample)
            if line is not None:
                lines.append(line)

        for derived in aggregator.flush():
            line = self._build_line(mapper, mapper.entry_for(derived.metric_id), entity, derived)
            if line is not None:
                lines.append(line)

        LOG.debug(f"{entity.entity_type.value} {entity.entity_name}: {len(lines)} lines, "
                  f"{dropped} per-instance samples dropped")
        return lines

    def _build_line(self, mapper: MetricMapper, entry: MetricMappingEntry,
                    entity: EntityContext, sample: RawSample) -> Optional[OutputLine]:
        mapped = mapper.map(sample.metric_id, sample.value, sample.unit, entity)
        if mapped is None:
            return None
        tags = self.builder.build_tags(
            entity,
            instance=sample.instance,
            per_instance=entry.policy is InstancePolicy.PER_INSTANCE,
            unit=mapped.unit,
        )
        return self.builder.build(mapped.measurement, tags, {'value': mapped.value}, sample.timestamp)
