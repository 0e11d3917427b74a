"""
Sample processing: instance filtering, multi-instance summing, metric mapping
and the per-entity pipeline that ties them to the line builder.
"""

from vpa.processing.aggregator import InstanceAggregator
from vpa.processing.instance_filter import Decision, InstanceFilter
from vpa.processing.mapper import MetricMapper
from vpa.processing.pipeline import MetricPipeline

__all__ = ['Decision', 'InstanceAggregator', 'InstanceFilter', 'MetricMapper', 'MetricPipeline']
