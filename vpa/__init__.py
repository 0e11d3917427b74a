"""
vSphere Perf Analyzer: polls vCenter, vSAN and vCenter appliance metrics and
writes them to InfluxDB in line protocol.
"""

__version__ = '1.0.0'
