"""
Tests for summing allow-listed instances.
"""

from datetime import datetime, timedelta, timezone

from vpa.processing.aggregator import InstanceAggregator, aggregate

from tests.conftest import make_sample

METRIC = 'storageAdapter.read.average'


class TestInstanceAggregator:

    def test_sum_two_adapters(self):
        derived = aggregate([
            make_sample(METRIC, 100, instance='vmhba1'),
            make_sample(METRIC, 150, instance='vmhba2'),
        ])
        assert len(derived) == 1
        assert derived[0].value == 250.0
        assert derived[0].instance == ''
        assert derived[0].metric_id == METRIC

    def test_single_adapter_not_padded(self):
        derived = aggregate([make_sample(METRIC, 100, instance='vmhba1')])
        assert [d.value for d in derived] == [100.0]

    def test_groups_by_timestamp(self):
        derived = aggregate([
            make_sample(METRIC, 1, instance='vmhba1', timestamp='28.02.2018 10:00:00'),
            make_sample(METRIC, 2, instance='vmhba1', timestamp='28.02.2018 10:00:20'),
            make_sample(METRIC, 3, instance='vmhba2', timestamp='28.02.2018 10:00:00'),
        ])
        assert [(d.timestamp, d.value) for d in derived] == [
            ('28.02.2018 10:00:00', 4.0),
            ('28.02.2018 10:00:20', 2.0),
        ]

    def test_same_instant_different_zones(self):
        utc = datetime(2018, 2, 28, 10, 0, tzinfo=timezone.utc)
        cet = utc.astimezone(timezone(timedelta(hours=1)))
        derived = aggregate([
            make_sample(METRIC, 1, instance='vmhba1', timestamp=utc),
            make_sample(METRIC, 2, instance='vmhba2', timestamp=cet),
        ])
        assert len(derived) == 1
        assert derived[0].value == 3.0

    def test_allow_list(self):
        aggregator = InstanceAggregator(allow_list=['vmhba1', 'vmhba2'])
        assert aggregator.add(make_sample(METRIC, 1, instance='vmhba1'))
        assert not aggregator.add(make_sample(METRIC, 5, instance='vmhba3'))
        assert [d.value for d in aggregator.flush()] == [1.0]

    def test_flush_resets(self):
        aggregator = InstanceAggregator()
        aggregator.add(make_sample(METRIC, 1, instance='vmhba1'))
        assert len(aggregator) == 1
        aggregator.flush()
        assert len(aggregator) == 0
        assert aggregator.flush() == []

    def test_naive_and_aware_same_instant(self):
        naive = datetime(2018, 2, 28, 10, 0)
        aware = datetime(2018, 2, 28, 11, 0, tzinfo=timezone(timedelta(hours=1)))
        aggregator = InstanceAggregator()
        aggregator.add(make_sample(METRIC, 1, instance='vmhba1', timestamp=naive))
        assert aggregator.covers(make_sample(METRIC, 0, timestamp=aware))
        aggregator.add(make_sample(METRIC, 2, instance='vmhba2', timestamp=aware))
        assert [d.value for d in aggregator.flush()] == [3.0]
