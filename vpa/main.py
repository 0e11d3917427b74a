#!/usr/bin/env python3

# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Entry point for the vSphere performance collector.

Each iteration polls vCenter once per collection category (host, vm, vsan,
appliance). Every category becomes its own batch: the raw samples of all its
entities go through the metric pipeline, and the batch plus one poller record
is handed to the writer in a single call.
"""

import argparse
import getpass
import logging
import os
import sys
import time

from vpa.batch import Batch, BatchEmitter, RunStats
from vpa.collectors import ApplianceCollector, VsanCollector, VSphereCollector
from vpa.config import COLLECT_CATEGORIES, Settings
from vpa.connection import (close_rest_session, disconnect, get_rest_session, get_service_instance,
                            get_vsan_performance_manager, get_vsan_space_report_system)
from vpa.exceptions import ConnectionFailed, InvalidTimestamp
from vpa.processing import InstanceFilter, MetricPipeline
from vpa.processing.status import ApplianceStatusBuilder
from vpa.timestamps import now_ns
from vpa.utils import target_label
from vpa.writer.factory import WriterFactory

LOG = logging.getLogger(__name__)

SOAP_CATEGORIES = ('host', 'vm', 'vsan')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect vSphere performance metrics into InfluxDB")
    parser.add_argument('--config', type=str, default=None,
        help='Path to YAML config file. CLI arguments override it, it overrides VPA_* environment variables.')
    parser.add_argument('--vcenter', type=str, default=None,
        help='vCenter hostname or IP address.')
    parser.add_argument('--username', '-u', type=str, default=None,
        help='Username for vCenter authentication.')
    parser.add_argument('--password', '-p', type=str, default=None,
        help='Password for vCenter authentication. If not provided, will prompt interactively.')
    parser.add_argument('--intervalTime', type=int, default=None,
        help='Collection interval in seconds. Default: 60')
    parser.add_argument('--maxIterations', type=int, default=None,
        help='Maximum number of collection iterations before exiting. Default: 0 (run indefinitely).')
    parser.add_argument('--collect', type=str, default=None,
        help=f'Comma separated categories to collect. Default: {",".join(COLLECT_CATEGORIES)}')
    parser.add_argument('--influxdbHost', type=str, default=None,
        help='InfluxDB host name.')
    parser.add_argument('--influxdbPort', type=int, default=None,
        help='InfluxDB HTTP port. Default: 8086')
    parser.add_argument('--influxdbDatabase', type=str, default=None,
        help='InfluxDB database name. Default: vsphere')
    parser.add_argument('--toFile', type=str, default=None,
        help='Directory to write line protocol files to instead of posting to InfluxDB.')
    parser.add_argument('--doNotPost', action='store_true',
        help='Collect and build batches but only log them.')
    parser.add_argument('--tlsValidation', type=str, choices=['strict', 'normal', 'none'], default=None,
        help='TLS validation mode: strict (require valid CA and strict X.509), normal (default Python validation), none (disable all TLS validation, INSECURE, for testing only). Default: strict.')
    parser.add_argument('--tlsCa', type=str, default=None,
        help='Path to CA certificate for verifying vCenter/InfluxDB TLS connections (if not in system trust store).')
    parser.add_argument('--logfile', type=str, default=None,
        help='Path to log file. If not provided, logs to console only.')
    parser.add_argument('--loglevel', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
        help='Log level for both console and file output. Default: INFO')
    return parser


def configure_logging(logfile=None, loglevel='INFO') -> None:
    FORMAT = '%(asctime)s - %(levelname)s - %(funcName)s - %(lineno)d - %(message)s'
    log_level = getattr(logging, loglevel.upper())

    if logfile:
        logfile_dir = os.path.dirname(logfile) if os.path.dirname(logfile) else '.'
        if os.path.exists(logfile_dir) and os.access(logfile_dir, os.W_OK):
            logging.basicConfig(filename=logfile, level=log_level,
                                format=FORMAT, datefmt='%Y-%m-%dT%H:%M:%SZ')
            logging.info('Logging to file: ' + logfile)
        else:
            logging.basicConfig(level=log_level, format=FORMAT,
                                datefmt='%Y-%m-%dT%H:%M:%SZ')
            logging.error(f'Logfile directory {logfile_dir} does not exist or is not writable')
            logging.warning('Falling back to console logging only')
    else:
        logging.basicConfig(level=log_level, format=FORMAT,
                            datefmt='%Y-%m-%dT%H:%M:%SZ')

    # Never allow requests/urllib3 to log below INFO level due to credential exposure
    requests_level = max(log_level, logging.INFO)
    logging.getLogger("requests").setLevel(level=requests_level)
    logging.getLogger("urllib3").setLevel(level=requests_level)
    logging.getLogger("influxdb").setLevel(level=log_level)


def settings_from_args(args) -> Settings:
    overrides = {
        'vcenter': args.vcenter,
        'username': args.username,
        'password': args.password,
        'interval_time': args.intervalTime,
        'max_iterations': args.maxIterations,
        'collect': args.collect,
        'influxdb_host': args.influxdbHost,
        'influxdb_port': args.influxdbPort,
        'influxdb_database': args.influxdbDatabase,
        'tls_validation': args.tlsValidation,
        'tls_ca': args.tlsCa,
    }
    return Settings(config_file=args.config, overrides=overrides)


class Poller:
    """
    Runs collection iterations against one vCenter.

    Args:
        settings: Merged settings
        writer: Writer the batches are emitted to
    """

    def __init__(self, settings: Settings, writer):
        self.settings = settings
        self.writer = writer
        self.instance_filter = InstanceFilter(settings.vdi_cluster_pattern, settings.adapter_sum_vendors)
        self.pipeline = MetricPipeline(instance_filter=self.instance_filter,
                                       adapter_instances=settings.adapter_sum_instances)
        self.status_builder = ApplianceStatusBuilder(self.pipeline.builder)
        self.emitter = BatchEmitter(writer, self.pipeline.builder)

    def process_category(self, category: str, entity_samples) -> bool:
        """
        Build and emit the batch of one category.

        Args:
            category: Collection category name
            entity_samples: Iterable of (EntityContext, [RawSample])

        Returns:
            bool: False if the batch was aborted or the write failed
        """
        stats = RunStats(target_label(self.settings.target, category))
        batch = Batch()
        try:
            for entity, samples in entity_samples:
                batch.extend(self.pipeline.process(entity, samples))
                stats.entity_done()
        except InvalidTimestamp as e:
            # Never write a partial batch with lines at the wrong time
            LOG.error(f"Aborting {category} batch for {self.settings.vcenter}: {e}")
            return False
        return self.emitter.emit(batch, stats)

    def process_appliance(self, records) -> bool:
        stats = RunStats(target_label(self.settings.target, 'appliance'))
        batch = Batch(self.status_builder.build(self.settings.vcenter, records, now_ns()))
        stats.entity_done(len(records))
        return self.emitter.emit(batch, stats)

    def collect_soap(self, categories) -> None:
        s = self.settings
        si = get_service_instance(s.vcenter, s.username, s.password, s.vcenter_port,
                                  s.tls_validation, s.tls_ca)
        try:
            vsphere = VSphereCollector(si, s.vcenter, s.sample_count, self.instance_filter)
            for category in categories:
                try:
                    self.collect_soap_category(si, vsphere, category)
                except Exception as e:
                    # Categories fail independently
                    LOG.error(f"Collecting {category} from {s.vcenter} failed: {e}")
        finally:
            disconnect(si)

    def collect_soap_category(self, si, vsphere: VSphereCollector, category: str) -> None:
        s = self.settings
        if category == 'host':
            self.process_category('host', vsphere.collect_hosts())
        elif category == 'vm':
            self.process_category('vm', vsphere.collect_vms())
        elif category == 'vsan':
            perf_manager = get_vsan_performance_manager(si, s.vcenter, s.vcenter_port,
                                                        s.tls_validation, s.tls_ca)
            space_report = get_vsan_space_report_system(si, s.vcenter, s.vcenter_port,
                                                        s.tls_validation, s.tls_ca)
            vsan = VsanCollector(si, perf_manager, space_report, s.vcenter)
            self.process_category('vsan', vsan.collect())

    def collect_appliance(self) -> None:
        s = self.settings
        session, base_url = get_rest_session(s.vcenter, s.username, s.password, s.vcenter_port,
                                             s.tls_validation, s.tls_ca)
        try:
            records = ApplianceCollector(session, base_url, s.appliance_subsystems).collect()
        finally:
            close_rest_session(session, base_url)
        self.process_appliance(records)

    def run_iteration(self) -> None:
        categories = self.settings.collect
        soap_categories = [c for c in categories if c in SOAP_CATEGORIES]
        if soap_categories:
            try:
                self.collect_soap(soap_categories)
            except ConnectionFailed as e:
                LOG.error(f"Skipping {', '.join(soap_categories)} this iteration: {e}")
            except Exception as e:
                LOG.error(f"Error collecting {', '.join(soap_categories)}: {e}")
        if 'appliance' in categories:
            try:
                self.collect_appliance()
            except ConnectionFailed as e:
                LOG.error(f"Skipping appliance this iteration: {e}")
            except Exception as e:
                LOG.error(f"Error collecting appliance status: {e}")

    def run(self) -> None:
        interval = self.settings.interval_time
        max_iterations = self.settings.max_iterations
        if max_iterations > 0:
            LOG.info(f"Will run for {max_iterations} iterations and then exit")

        loop_iteration = 1
        while True:
            time_start = time.time()
            LOG.info(f"Starting collection iteration {loop_iteration} of "
                     f"{max_iterations if max_iterations > 0 else 'unlimited'}")
            self.run_iteration()
            elapsed = time.time() - time_start

            if elapsed >= interval:
                LOG.warning(f"Collection took {elapsed:.2f}s but interval is {interval}s - consider increasing --intervalTime")
            else:
                LOG.info(f"Collection completed in {elapsed:.2f}s")

            if max_iterations > 0 and loop_iteration >= max_iterations:
                LOG.info(f"Completed final iteration ({max_iterations}). Exiting gracefully.")
                break

            if elapsed < interval:
                LOG.info(f"Sleeping for {interval - elapsed:.2f} seconds until next collection")
                time.sleep(interval - elapsed)
            loop_iteration += 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.logfile, args.loglevel)

    try:
        settings = settings_from_args(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not settings.vcenter:
        print("Error: no vCenter given (--vcenter, config file or VPA_VCENTER).", file=sys.stderr)
        return 1
    if settings.max_iterations < 0:
        print("Error: --maxIterations must be a non-negative integer.", file=sys.stderr)
        return 1
    if not settings.password:
        settings.password = getpass.getpass(f"Password for {settings.username}@{settings.vcenter}: ")

    LOG.debug(f"Effective settings: {settings.as_dict()}")
    writer = WriterFactory.create_writer(args, settings)
    try:
        Poller(settings, writer).run()
    except KeyboardInterrupt:
        LOG.info("Interrupted by user. Exiting gracefully.")
    finally:
        writer.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
