"""
InfluxDB writer for vSphere Perf Analyzer.

POSTs a line protocol batch to the /write endpoint of {host, port, database}
through the influxdb client. Retries are not attempted; a failed write is
logged and the next interval writes fresh data.
"""

import logging
from typing import Any, Dict

import requests
from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError

from vpa.writer.base import Writer

LOG = logging.getLogger(__name__)

# Lines carry nanosecond timestamps
INFLUXDB_WRITE_PRECISION = 'n'


class InfluxDBWriter(Writer):
    """
    Writer implementation for the InfluxDB 1.x HTTP write API.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize InfluxDB writer with configuration.

        Args:
            config: Dictionary with influxdb_host, influxdb_port, influxdb_database
                and optionally influxdb_username, influxdb_password, influxdb_ssl,
                influxdb_verify_ssl
        """
        self.host = config.get('influxdb_host') or 'localhost'
        self.port = int(config.get('influxdb_port') or 8086)
        self.database = config.get('influxdb_database') or 'vsphere'
        self.ssl = bool(config.get('influxdb_ssl', False))
        self.verify_ssl = config.get('influxdb_verify_ssl', True)
        self.write_count = 0
        self.error_count = 0

        self.client = InfluxDBClient(
            host=self.host,
            port=self.port,
            username=config.get('influxdb_username') or 'root',
            password=config.get('influxdb_password') or 'root',
            database=self.database,
            ssl=self.ssl,
            verify_ssl=self.verify_ssl,
            timeout=60,
        )
        LOG.info(f"InfluxDBWriter initialized: {self.host}:{self.port} -> {self.database}")

    def write(self, payload: str) -> bool:
        """
        Write a batch of line protocol to InfluxDB.

        Args:
            payload: Newline-joined line protocol

        Returns:
            bool: True if the client reported success, False otherwise
        """
        if not payload:
            LOG.debug("Empty payload, nothing to write")
            return True

        try:
            self.client.write_points(
                payload,
                database=self.database,
                time_precision=INFLUXDB_WRITE_PRECISION,
                protocol='line',
            )
        except (InfluxDBClientError, InfluxDBServerError) as e:
            self.error_count += 1
            LOG.error(f"Failed to write batch to InfluxDB {self.host}:{self.port}/{self.database}: {e}")
            return False
        except requests.exceptions.RequestException as e:
            self.error_count += 1
            LOG.error(f"InfluxDB {self.host}:{self.port} unreachable: {e}")
            return False

        self.write_count += 1
        LOG.info(f"Batch sent to InfluxDB ({len(payload.splitlines())} lines)")
        return True

    def close(self) -> None:
        self.client.close()
        LOG.info(f"Closed InfluxDB writer ({self.write_count} writes, {self.error_count} errors)")
