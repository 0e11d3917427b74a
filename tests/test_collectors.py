"""
Tests for the vSphere, vSAN and appliance collectors.

pyVmomi and requests collaborators are replaced by mocks; nothing here talks to
a real vCenter.
"""

from datetime import datetime, timezone
from types import SimpleNamespace as NS
from unittest.mock import Mock, patch

import pytest
import requests
from pyVmomi import vmodl

from vpa.collectors.appliance_collector import ApplianceCollector
from vpa.collectors.vsan_collector import VsanCollector, expand_entity_metric, labels_for
from vpa.collectors.vsphere_collector import VSphereCollector
from vpa.exceptions import InvalidTimestamp
from vpa.models import EntityContext, EntityType

T1 = datetime(2018, 2, 28, 10, 0, 0, tzinfo=timezone.utc)
T2 = datetime(2018, 2, 28, 10, 0, 20, tzinfo=timezone.utc)


def _counter(key, group, name, rollup, unit):
    return NS(key=key, groupInfo=NS(key=group), nameInfo=NS(key=name), rollupType=rollup,
              unitInfo=NS(key=unit))


def _service_instance(counters=None):
    si = Mock()
    content = si.RetrieveContent.return_value
    content.perfManager.perfCounter = counters or [
        _counter(1, 'cpu', 'usage', 'average', 'percent'),
        _counter(2, 'cpu', 'ready', 'summation', 'millisecond'),
        _counter(3, 'storageAdapter', 'read', 'average', 'kiloBytesPerSecond'),
    ]
    return si


def _series(counter_id, values, instance=''):
    return NS(id=NS(counterId=counter_id, instance=instance), value=values)


def _host(name='esx01', vendor='HPE', state='connected'):
    return NS(_moId=f'host-{name}', name=name, runtime=NS(connectionState=state),
              summary=NS(hardware=NS(vendor=vendor, numCpuThreads=48)), vm=[])


class TestVSphereCollector:
    """Counter lookup and QueryPerf result expansion"""

    def setup_method(self):
        self.si = _service_instance()
        self.collector = VSphereCollector(self.si, 'vc1', sample_count=2)
        self.entity = EntityContext(EntityType.HOST, 'host-1', 'esx01')

    def test_counter_names(self):
        assert self.collector.counter_keys == {
            'cpu.usage.average': 1,
            'cpu.ready.summation': 2,
            'storageAdapter.read.average': 3,
        }
        assert self.collector.counter_info[2] == ('cpu.ready.summation', 'millisecond')

    def test_expand_results(self):
        results = [NS(sampleInfo=[NS(timestamp=T1), NS(timestamp=T2)], value=[
            _series(1, [5000, -1]),
            _series(2, [400, 200]),
            _series(3, [100, 120], instance='vmhba1'),
            _series(99, [1, 1]),
        ])]
        samples = self.collector.expand_results(self.entity, results)
        assert [(s.metric_id, s.instance, s.value, s.timestamp) for s in samples] == [
            ('cpu.usage.average', '', 50.0, T1),
            ('cpu.ready.summation', '', 400, T1),
            ('cpu.ready.summation', '', 200, T2),
            ('storageAdapter.read.average', 'vmhba1', 100, T1),
            ('storageAdapter.read.average', 'vmhba1', 120, T2),
        ]
        assert samples[0].unit == 'percent'
        assert all(s.entity_id == 'host-1' for s in samples)

    @patch('vpa.collectors.vsphere_collector.vim')
    def test_query(self, mock_vim):
        perf_manager = self.si.RetrieveContent.return_value.perfManager
        perf_manager.QueryPerf.return_value = [
            NS(sampleInfo=[NS(timestamp=T1)], value=[_series(2, [400])])]
        host = Mock()

        samples = self.collector.query(host, self.entity, ['cpu.ready.summation', 'not.a.counter'])

        mock_vim.PerformanceManager.MetricId.assert_called_once_with(counterId=2, instance='*')
        mock_vim.PerformanceManager.QuerySpec.assert_called_once_with(
            entity=host,
            metricId=[mock_vim.PerformanceManager.MetricId.return_value],
            intervalId=20,
            maxSample=2,
        )
        assert [(s.metric_id, s.value) for s in samples] == [('cpu.ready.summation', 400)]

    def test_query_without_known_counters(self):
        perf_manager = self.si.RetrieveContent.return_value.perfManager
        assert self.collector.query(Mock(), self.entity, ['not.a.counter']) == []
        perf_manager.QueryPerf.assert_not_called()

    def test_host_context(self):
        datacenter = NS(name='dc1')
        cluster = NS(name='Prod-VDI', _moId='domain-c7')
        entity = self.collector.host_context(datacenter, cluster, _host())
        assert entity.entity_type is EntityType.HOST
        assert entity.entity_id == 'host-esx01'
        assert entity.vendor == 'HPE'
        assert entity.cluster_name == 'Prod-VDI'
        assert entity.tags == {'vcenter': 'vc1', 'datacenter': 'dc1', 'cluster': 'Prod-VDI',
                               'cluster_id': 'domain-c7'}

    def test_vm_context(self):
        vm = NS(_moId='vm-7', name='desk07', summary=NS(config=NS(numCpu=4)))
        entity = self.collector.vm_context(NS(name='dc1'), None, _host(), vm)
        assert entity.num_cpu == 4
        assert entity.cluster_name is None
        assert entity.tags['host'] == 'esx01'

    def test_collect_hosts_skips_failures(self):
        good = _host('esx02')
        hosts = [(NS(name='dc1'), None, _host('esx01')), (NS(name='dc1'), None, good),
                 (NS(name='dc1'), None, _host('esx03', state='disconnected'))]
        with patch.object(VSphereCollector, 'iter_hosts', return_value=hosts), \
                patch.object(VSphereCollector, 'query',
                             side_effect=[vmodl.fault.NotSupported(msg='nope'), ['sample']]) as query:
            collected = list(self.collector.collect_hosts())
        assert [(e.entity_name, s) for e, s in collected] == [('esx02', ['sample'])]
        assert query.call_count == 2

    def test_collect_hosts_survives_socket_errors(self):
        hosts = [(NS(name='dc1'), None, _host('esx01')), (NS(name='dc1'), None, _host('esx02'))]
        with patch.object(VSphereCollector, 'iter_hosts', return_value=hosts), \
                patch.object(VSphereCollector, 'query',
                             side_effect=[ConnectionResetError('connection reset by peer'), ['sample']]):
            collected = list(self.collector.collect_hosts())
        assert [(e.entity_name, s) for e, s in collected] == [('esx02', ['sample'])]

    def test_collect_vms_requests_gpu_counters_in_vdi_clusters(self):
        host = _host()
        host.vm = [
            NS(_moId='vm-1', name='desk01', runtime=NS(powerState='poweredOn'), summary=NS(config=NS(numCpu=2))),
            NS(_moId='vm-2', name='off01', runtime=NS(powerState='poweredOff'), summary=NS(config=NS(numCpu=2))),
        ]
        cluster = NS(name='VDI-Desktops', _moId='domain-c9')
        with patch.object(VSphereCollector, 'iter_hosts', return_value=[(NS(name='dc1'), cluster, host)]), \
                patch.object(VSphereCollector, 'query', return_value=[]) as query:
            collected = list(self.collector.collect_vms())
        assert [e.entity_name for e, _ in collected] == ['desk01']
        counters = query.call_args.args[2]
        assert 'gpu.utilization.average' in counters


def _vsan_metric(ref, sample_info, **series):
    return NS(entityRefId=ref, sampleInfo=sample_info,
              value=[NS(metricId=NS(label=label), values=values) for label, values in series.items()])


class TestVsanCollector:
    """CSV series expansion and capacity samples"""

    def setup_method(self):
        self.cluster = NS(name='vsan01', _moId='domain-c7', host=[
            NS(name='esx01', config=NS(vsanHostConfig=NS(storageInfo=NS(diskMapping=[
                NS(ssd=NS(vsanDiskInfo=NS(vsanUuid='52ab')))])))),
            NS(name='esx02', config=None),
        ])
        self.perf_manager = Mock()
        self.space_report = Mock()
        self.collector = VsanCollector(Mock(), self.perf_manager, self.space_report, 'vc1')

    def test_labels_for(self):
        labels = labels_for(EntityType.VSAN_CLUSTER, 'cluster-domclient')
        assert 'iopsRead' in labels
        assert 'latencyAvgWrite' in labels
        assert 'totalCapacityB' not in labels

    def test_expand_entity_metric(self):
        entity = EntityContext(EntityType.VSAN_DISKGROUP, '52ab', '52ab')
        metric = _vsan_metric('disk-group:52ab', '2018-02-28 10:00:00,2018-02-28 10:05:00',
                              latencyAvgRead='1500,2500', iopsRead='10,None')
        samples = expand_entity_metric(metric, entity, 'disk-group')
        assert [(s.metric_id, s.value, s.unit) for s in samples] == [
            ('disk-group.latencyAvgRead', '1500', 'microsecond'),
            ('disk-group.latencyAvgRead', '2500', 'microsecond'),
            ('disk-group.iopsRead', '10', 'number'),
            ('disk-group.iopsRead', 'None', 'number'),
        ]
        assert samples[0].timestamp == datetime(2018, 2, 28, 10, 0, tzinfo=timezone.utc)

    def test_empty_sample_info(self):
        entity = EntityContext(EntityType.VSAN_CLUSTER, 'domain-c7', 'vsan01')
        assert expand_entity_metric(_vsan_metric('cluster-domclient:x', '', iopsRead=''), entity,
                                    'cluster-domclient') == []

    def test_bad_sample_time(self):
        entity = EntityContext(EntityType.VSAN_CLUSTER, 'domain-c7', 'vsan01')
        with pytest.raises(InvalidTimestamp):
            expand_entity_metric(_vsan_metric('cluster-domclient:x', '28.02.2018 10:00:00', iopsRead='1'),
                                 entity, 'cluster-domclient')

    def test_expand_results(self):
        results = [
            _vsan_metric('cluster-domclient:5200', '2018-02-28 10:00:00', iopsRead='100'),
            _vsan_metric('disk-group:52ab', '2018-02-28 10:00:00', iopsRead='40'),
            _vsan_metric('disk-group:52cd', '2018-02-28 10:00:00', iopsRead='60'),
            _vsan_metric('vsan-host-net:x', '2018-02-28 10:00:00', rxThroughput='1'),
        ]
        expanded = self.collector.expand_results(self.cluster, results)
        assert [(e.entity_type, e.entity_id, e.tags.get('host')) for e, _ in expanded] == [
            (EntityType.VSAN_CLUSTER, 'domain-c7', None),
            (EntityType.VSAN_DISKGROUP, '52ab', 'esx01'),
            (EntityType.VSAN_DISKGROUP, '52cd', None),
        ]
        assert expanded[1][1][0].metric_id == 'disk-group.iopsRead'

    def test_query_capacity(self):
        self.space_report.VsanQuerySpaceUsage.return_value = NS(
            totalCapacityB=4 * 1024 ** 4, freeCapacityB=1024 ** 4, spaceOverview=NS(usedB=3 * 1024 ** 4))
        samples = self.collector.query_capacity(self.cluster)
        assert [s.metric_id for s in samples] == [
            'vsan.capacity.totalCapacityB', 'vsan.capacity.freeCapacityB', 'vsan.capacity.usedB']
        assert samples[0].entity_id == 'domain-c7'

    def test_collect_survives_query_faults(self):
        self.space_report.VsanQuerySpaceUsage.return_value = NS(
            totalCapacityB=1, freeCapacityB=1, spaceOverview=None)
        with patch.object(VsanCollector, 'iter_clusters', return_value=[self.cluster]), \
                patch.object(VsanCollector, 'query_performance',
                             side_effect=vmodl.fault.NotSupported(msg='perf service off')):
            collected = list(self.collector.collect())
        assert len(collected) == 1
        assert [s.metric_id for s in collected[0][1]] == [
            'vsan.capacity.totalCapacityB', 'vsan.capacity.freeCapacityB']

    def test_collect_survives_socket_errors(self):
        self.space_report.VsanQuerySpaceUsage.side_effect = OSError('connection reset by peer')
        cluster_entity = self.collector.cluster_context(self.cluster)
        with patch.object(VsanCollector, 'iter_clusters', return_value=[self.cluster]), \
                patch.object(VsanCollector, 'query_performance', return_value=[(cluster_entity, ['sample'])]):
            collected = list(self.collector.collect())
        assert [s for _, s in collected] == [['sample']]


def _response(status_code=200, value=None):
    resp = Mock(status_code=status_code)
    resp.json.return_value = {'value': value}
    return resp


class TestApplianceCollector:
    """REST status collection"""

    def setup_method(self):
        self.session = Mock()
        self.collector = ApplianceCollector(self.session, 'https://vc1:443', ['mem', 'storage'])

    def _route(self, routes):
        def get(url, timeout=None):
            path = url[len('https://vc1:443'):]
            result = routes.get(path, _response(404))
            if isinstance(result, Exception):
                raise result
            return result
        self.session.get.side_effect = get

    def test_collect(self):
        self._route({
            '/rest/appliance/health/mem': _response(value='green'),
            '/rest/appliance/health/storage': _response(value='orange'),
            '/rest/vcenter/services': _response(value=[
                {'key': 'vpxd', 'value': {'state': 'STARTED', 'health': 'HEALTHY'}},
                {'key': 'vmcam', 'value': {'state': 'STOPPED'}},
            ]),
            '/rest/appliance/update': _response(value={'state': 'UP_TO_DATE'}),
            '/rest/appliance/recovery/backup/job/details': requests.exceptions.ConnectionError('reset'),
        })
        records = self.collector.collect()
        assert [(r.check, r.check_type, r.status) for r in records] == [
            ('mem', 'health', 'green'),
            ('storage', 'health', 'orange'),
            ('vpxd', 'service_state', 'STARTED'),
            ('vpxd', 'service_health', 'HEALTHY'),
            ('vmcam', 'service_state', 'STOPPED'),
            ('vmcam', 'service_health', None),
            ('update', 'update', 'UP_TO_DATE'),
        ]

    def test_failed_health_check_skipped(self):
        self._route({
            '/rest/appliance/health/mem': _response(500),
            '/rest/appliance/health/storage': _response(value='red'),
        })
        assert [(r.check, r.status) for r in self.collector.collect_health()] == [('storage', 'red')]

    def test_services_mapping_format(self):
        self._route({'/rest/vcenter/services': _response(value={'vpxd': {'state': 'STARTED', 'health': 'DEGRADED'}})})
        assert [(r.check_type, r.status) for r in self.collector.collect_services()] == [
            ('service_state', 'STARTED'), ('service_health', 'DEGRADED')]

    def test_latest_backup(self):
        self._route({'/rest/appliance/recovery/backup/job/details': _response(value=[
            {'key': 'a', 'value': {'start_time': '2018-02-27T10:00:00Z', 'status': 'SUCCEEDED'}},
            {'key': 'b', 'value': {'start_time': '2018-02-28T10:00:00Z', 'status': 'FAILED'}},
        ])})
        assert [(r.check, r.status) for r in self.collector.collect_backup()] == [('backup', 'FAILED')]

    def test_non_json_body_skipped(self):
        page = Mock(status_code=200)
        page.json.side_effect = requests.exceptions.JSONDecodeError('Expecting value', '<html>', 0)
        self._route({
            '/rest/appliance/health/mem': page,
            '/rest/appliance/health/storage': _response(value='green'),
        })
        assert [(r.check, r.status) for r in self.collector.collect()] == [('storage', 'green')]
