"""
Appliance health and service status lines.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from vpa.models import EntityContext, EntityType, OutputLine
from vpa.transforms import status_to_ordinal
from vpa.writer.line_protocol import LineRecordBuilder

LOG = logging.getLogger(__name__)


@dataclass
class StatusRecord:
    """
    One status value returned by the appliance REST API.

    Args:
        check: Subsystem or service name (mem, storage, vpxd, ...)
        check_type: STATUS_ORDINALS key (health, service_state, ...)
        status: Status text as returned by the API
    """
    check: str
    check_type: str
    status: Optional[str]


STATUS_MEASUREMENTS = {
    'health': 'appliance_health',
    'service_state': 'appliance_service_state',
    'service_health': 'appliance_service_health',
    'backup': 'appliance_backup',
    'update': 'appliance_update',
}


class ApplianceStatusBuilder:
    """Builds one line per status record with the ordinal and the original text."""

    def __init__(self, builder: Optional[LineRecordBuilder] = None):
        self.builder = builder or LineRecordBuilder()

    def build(self, vcenter: str, records: Iterable[StatusRecord], timestamp) -> List[OutputLine]:
        lines = []
        for record in records:
            measurement = STATUS_MEASUREMENTS.get(record.check_type)
            if measurement is None:
                LOG.debug(f"No measurement for status type {record.check_type}")
                continue
            entity = EntityContext(
                entity_type=EntityType.APPLIANCE,
                entity_id=vcenter,
                entity_name=vcenter,
                tags={'vcenter': vcenter, 'check': record.check, 'check_type': record.check_type},
            )
            fields = {
                'value': status_to_ordinal(record.check_type, record.status),
                'status': record.status if record.status is not None else 'unknown',
            }
            lines.append(self.builder.build(measurement, self.builder.build_tags(entity), fields, timestamp))
        return lines
