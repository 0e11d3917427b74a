"""
Writer factory for vSphere Perf Analyzer.
"""

import logging

from vpa.writer.base import StubWriter, Writer
from vpa.writer.file_writer import LineProtocolFileWriter
from vpa.writer.influxdb_writer import InfluxDBWriter

# Initialize logger
LOG = logging.getLogger(__name__)


class WriterFactory:
    """
    Factory for creating writer instances based on configuration.
    """

    @staticmethod
    def create_writer(args, settings) -> Writer:
        """
        Create a writer based on command line arguments and settings.

        Args:
            args: Parsed command line arguments
            settings: Merged Settings object

        Returns:
            Appropriate Writer instance
        """
        # File output takes precedence for debugging/replay
        to_file = getattr(args, 'toFile', None)
        if to_file:
            LOG.info(f"Creating line protocol file writer with output directory: {to_file}")
            return LineProtocolFileWriter(to_file, settings.target or 'vpa')

        if getattr(args, 'doNotPost', False):
            LOG.info("--doNotPost given, using stub writer")
            return StubWriter()

        if not settings.influxdb_host:
            LOG.warning("No InfluxDB host configured, using stub writer")
            return StubWriter()

        LOG.info(f"Creating InfluxDB writer for {settings.influxdb_host}:{settings.influxdb_port}, "
                 f"database: {settings.influxdb_database}")
        config = {
            'influxdb_host': settings.influxdb_host,
            'influxdb_port': settings.influxdb_port,
            'influxdb_database': settings.influxdb_database,
            'influxdb_username': settings.influxdb_username,
            'influxdb_password': settings.influxdb_password,
            'influxdb_ssl': settings.influxdb_ssl,
            'influxdb_verify_ssl': settings.tls_validation != 'none',
        }
        return InfluxDBWriter(config)
