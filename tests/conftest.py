"""
Shared fixtures for the vSphere Perf Analyzer tests.
"""

import pytest

from vpa.models import EntityContext, EntityType, RawSample

SOURCE_TS = "28.02.2018 10:00:00"
SOURCE_TS_NS = 1519812000000000000


def make_sample(metric_id, value, instance='', unit='number', entity_id='host-1',
                entity_name='esx01', timestamp=SOURCE_TS):
    return RawSample(entity_id=entity_id, entity_name=entity_name, metric_id=metric_id,
                     instance=instance, value=value, unit=unit, timestamp=timestamp)


@pytest.fixture
def host_entity():
    return EntityContext(
        entity_type=EntityType.HOST,
        entity_id='host-1',
        entity_name='esx01',
        tags={'vcenter': 'vc1', 'datacenter': 'dc1', 'cluster': 'Prod', 'cluster_id': 'domain-c7'},
        num_cpu=32,
        vendor='HPE',
        cluster_name='Prod',
    )


@pytest.fixture
def vm_entity():
    return EntityContext(
        entity_type=EntityType.VM,
        entity_id='vm-1001',
        entity_name='app01',
        tags={'vcenter': 'vc1', 'datacenter': 'dc1', 'cluster': 'Prod-VDI-01', 'host': 'esx01'},
        num_cpu=2,
        cluster_name='Prod-VDI-01',
    )
