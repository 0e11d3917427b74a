# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Unit conversions, value transforms and status ordinals.

Every transform takes (value, unit, entity) and returns a float. They are pure
and never raise for numeric input, so a single odd sample can never fail a
batch.
"""

from typing import Dict, Optional

from vpa.models import EntityContext

# Realtime counters are sampled every 20s; ready/costop summations are
# milliseconds within that interval, so 20000 ms / 100 gives the percent divisor.
CPU_READY_QUANTUM = 200.0

# One year in milliseconds. Latencies above this show up after snapshot
# consolidation and are reported as 0.
LATENCY_CLAMP_MS = 365 * 24 * 60 * 60 * 1000

PERCENT_UNIT = 'perc'
MILLISECOND_UNIT = 'ms'

PERCENT_LABELS = frozenset(['percent', 'percentage', '%', 'perc'])
MICROSECOND_LABELS = frozenset(['microsecond', 'microseconds', 'us', 'µs'])

UNKNOWN_ORDINAL = 9


def is_percent_unit(unit: Optional[str]) -> bool:
    return bool(unit) and unit.strip().lower() in PERCENT_LABELS


def is_microsecond_unit(unit: Optional[str]) -> bool:
    return bool(unit) and unit.strip().lower() in MICROSECOND_LABELS


def canonical_unit(raw_unit: Optional[str], mapped_unit: str) -> str:
    """
    Pick the unit label written to the output line.

    Any percentage label becomes 'perc' whatever the measurement; everything
    else keeps the unit configured in the mapping table.
    """
    if is_percent_unit(raw_unit) or is_percent_unit(mapped_unit):
        return PERCENT_UNIT
    return mapped_unit


def identity(value: float, unit: str = None, entity: EntityContext = None) -> float:
    return float(value)


def cpu_ready_host(value: float, unit: str = None, entity: EntityContext = None) -> float:
    """CPU ready/co-stop summation (ms per 20s interval) to percent."""
    return float(value) / CPU_READY_QUANTUM


def cpu_ready_vm(value: float, unit: str = None, entity: EntityContext = None) -> float:
    """
    CPU ready/co-stop for a VM, normalized by its virtual processor count.

    The VM-level counter is the sum over all vCPUs, so without the division a
    4-vCPU VM would look four times as contended as a single-vCPU one.
    """
    num_cpu = entity.num_cpu if entity and entity.num_cpu and entity.num_cpu > 0 else 1
    return float(value) / CPU_READY_QUANTUM / num_cpu


def bytes_to_kb(value: float, unit: str = None, entity: EntityContext = None) -> float:
    return float(value) / 1024


def kb_to_mb(value: float, unit: str = None, entity: EntityContext = None) -> float:
    return float(value) / 1024


def bytes_to_mb(value: float, unit: str = None, entity: EntityContext = None) -> float:
    return float(value) / 1024 ** 2


def bytes_to_gib(value: float, unit: str = None, entity: EntityContext = None) -> float:
    return float(value) / 1024 ** 3


def latency(value: float, unit: str = None, entity: EntityContext = None) -> float:
    """
    Latency in milliseconds, with implausible values clamped to 0.

    The clamp is checked against the raw value, so a microsecond reading is
    clamped as soon as its raw number passes one year in milliseconds.
    """
    value = float(value)
    if value >= LATENCY_CLAMP_MS:
        return 0.0
    if is_microsecond_unit(unit):
        return value / 1000
    return value


TRANSFORMS = {
    'identity': identity,
    'cpu_ready_host': cpu_ready_host,
    'cpu_ready_vm': cpu_ready_vm,
    'bytes_to_kb': bytes_to_kb,
    'kb_to_mb': kb_to_mb,
    'bytes_to_mb': bytes_to_mb,
    'bytes_to_gib': bytes_to_gib,
    'latency': latency,
}


#######################
# STATUS ORDINALS #####
#######################

# 0 = healthy/started, 1 = warning/stopped, 2 = degraded/error, 9 = unknown
STATUS_ORDINALS: Dict[str, Dict[str, int]] = {
    'health': {
        'green': 0,
        'orange': 1,
        'red': 2,
        'gray': 9,
        'unknown': 9,
    },
    'service_state': {
        'STARTED': 0,
        'STOPPED': 1,
        'STARTING': 9,
        'STOPPING': 9,
    },
    'service_health': {
        'HEALTHY': 0,
        'HEALTHY_WITH_WARNINGS': 1,
        'DEGRADED': 2,
    },
    'backup': {
        'SUCCEEDED': 0,
        'RUNNING': 1,
        'FAILED': 2,
    },
    'update': {
        'UP_TO_DATE': 0,
        'UPDATES_PENDING': 1,
        'INSTALL_FAILED': 2,
    },
}


def status_to_ordinal(kind: str, text) -> int:
    """
    Map an appliance status string to its ordinal.

    Args:
        kind: One of the STATUS_ORDINALS keys
        text: Status text as returned by the REST API

    Returns:
        int: 0, 1, 2 or 9. Unknown kinds and unmapped strings give 9.
    """
    table = STATUS_ORDINALS.get(kind)
    if table is None or not isinstance(text, str):
        return UNKNOWN_ORDINAL
    return table.get(text.strip(), UNKNOWN_ORDINAL)


def health_to_ordinal(colour) -> int:
    return status_to_ordinal('health', colour)
