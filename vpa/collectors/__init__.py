"""
Collectors package for vSphere Perf Analyzer.

Available collectors:
- vsphere_collector.py: Host and VM performance counters (QueryPerf)
- vsan_collector.py: vSAN cluster and disk group performance and capacity
- appliance_collector.py: vCenter appliance health and service status (REST)
"""

from vpa.collectors.appliance_collector import ApplianceCollector
from vpa.collectors.vsan_collector import VsanCollector
from vpa.collectors.vsphere_collector import VSphereCollector

__all__ = ['ApplianceCollector', 'VsanCollector', 'VSphereCollector']
