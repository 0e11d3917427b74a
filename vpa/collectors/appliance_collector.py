"""
vCenter appliance health and service status over the REST API.
"""

import logging
from typing import Any, Iterable, List, Optional

import requests

from vpa.processing.status import StatusRecord

LOG = logging.getLogger(__name__)

HEALTH_PATH = '/rest/appliance/health/{subsystem}'
SERVICES_PATH = '/rest/vcenter/services'
UPDATE_PATH = '/rest/appliance/update'
BACKUP_JOBS_PATH = '/rest/appliance/recovery/backup/job/details'


class ApplianceCollector:
    """Collects appliance status values as StatusRecords"""

    def __init__(self, session, base_url: str, subsystems: Iterable[str]):
        self.session = session
        self.base_url = base_url
        self.subsystems = list(subsystems)

    def _get(self, path: str) -> Optional[Any]:
        """GET a REST resource and return its 'value', None on failure."""
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, timeout=30)
        except requests.exceptions.RequestException as e:
            LOG.warning(f"Request to {url} failed: {e}")
            return None
        if resp.status_code == 404:
            LOG.debug(f"{url} not available on this appliance")
            return None
        if resp.status_code != 200:
            LOG.warning(f"{url} returned HTTP {resp.status_code}")
            return None
        try:
            body = resp.json()
        except ValueError as e:
            LOG.warning(f"{url} did not return JSON: {e}")
            return None
        if not isinstance(body, dict):
            LOG.warning(f"{url} returned unexpected {type(body).__name__} body")
            return None
        return body.get('value')

    def collect_health(self) -> List[StatusRecord]:
        records = []
        for subsystem in self.subsystems:
            colour = self._get(HEALTH_PATH.format(subsystem=subsystem))
            if colour is None:
                continue
            records.append(StatusRecord(subsystem, 'health', colour))
        return records

    def collect_services(self) -> List[StatusRecord]:
        services = self._get(SERVICES_PATH)
        if not services:
            return []
        # 6.x returns a list of {key, value}, newer releases a mapping
        if isinstance(services, dict):
            items = services.items()
        else:
            items = ((item.get('key'), item.get('value') or {}) for item in services)

        records = []
        for name, info in items:
            if not name:
                continue
            records.append(StatusRecord(name, 'service_state', info.get('state')))
            records.append(StatusRecord(name, 'service_health', info.get('health')))
        return records

    def collect_update(self) -> List[StatusRecord]:
        update = self._get(UPDATE_PATH)
        if not update:
            return []
        return [StatusRecord('update', 'update', update.get('state'))]

    def collect_backup(self) -> List[StatusRecord]:
        """Status of the most recent backup job, if any."""
        jobs = self._get(BACKUP_JOBS_PATH)
        if not jobs:
            return []
        if isinstance(jobs, dict):
            jobs = list(jobs.values())
        else:
            jobs = [item.get('value', item) for item in jobs]
        jobs = [job for job in jobs if isinstance(job, dict)]
        if not jobs:
            return []
        latest = max(jobs, key=lambda job: job.get('start_time') or '')
        return [StatusRecord('backup', 'backup', latest.get('status'))]

    def collect(self) -> List[StatusRecord]:
        records = self.collect_health()
        records.extend(self.collect_services())
        records.extend(self.collect_update())
        records.extend(self.collect_backup())
        LOG.info(f"Collected {len(records)} appliance status records")
        return records
