# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml
import os
import logging
from dotenv import load_dotenv

from vpa.utils import split_list

logger = logging.getLogger(__name__)

# Ensure .env from parent directory is loaded for local CLI runs
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

TLS_VALIDATION_MODES = ('strict', 'normal', 'none')
COLLECT_CATEGORIES = ('host', 'vm', 'vsan', 'appliance')
DEFAULT_APPLIANCE_SUBSYSTEMS = ('system', 'load', 'mem', 'storage', 'swap',
                                'database-storage', 'software-packages', 'applmgmt')

DEFAULTS: Dict[str, Any] = {
    'vcenter': None,
    'vcenter_port': 443,
    'username': None,
    'password': None,
    'tls_validation': 'strict',
    'tls_ca': None,
    'influxdb_host': None,
    'influxdb_port': 8086,
    'influxdb_database': 'vsphere',
    'influxdb_username': None,
    'influxdb_password': None,
    'influxdb_ssl': False,
    'interval_time': 60.0,
    'max_iterations': 0,
    'sample_count': 15,
    'collect': list(COLLECT_CATEGORIES),
    'vdi_cluster_pattern': 'VDI',
    'adapter_sum_vendors': ['HP', 'HPE'],
    'adapter_sum_instances': ['vmhba1', 'vmhba2'],
    'appliance_subsystems': list(DEFAULT_APPLIANCE_SUBSYSTEMS),
    'target': None,
}

LIST_KEYS = ('collect', 'adapter_sum_vendors', 'adapter_sum_instances', 'appliance_subsystems')


class FileConfig(BaseModel):
    vcenter: Optional[str] = None
    vcenter_port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None

    # TLS settings
    tls_validation: Optional[str] = None
    tls_ca: Optional[str] = None

    # InfluxDB settings
    influxdb_host: Optional[str] = None
    influxdb_port: Optional[int] = None
    influxdb_database: Optional[str] = None
    influxdb_username: Optional[str] = None
    influxdb_password: Optional[str] = None
    influxdb_ssl: Optional[bool] = None

    # Collection settings
    interval_time: Optional[float] = None
    max_iterations: Optional[int] = None
    sample_count: Optional[int] = None
    collect: Optional[Union[str, List[str]]] = None

    # Instance policy settings
    vdi_cluster_pattern: Optional[str] = None
    adapter_sum_vendors: Optional[Union[str, List[str]]] = None
    adapter_sum_instances: Optional[Union[str, List[str]]] = None
    appliance_subsystems: Optional[Union[str, List[str]]] = None

    target: Optional[str] = None

    model_config = ConfigDict(extra='ignore')


class EnvConfig(BaseSettings):
    """Environment variables, prefixed with VPA_ (VPA_VCENTER, VPA_INFLUXDB_HOST, ...)."""
    vcenter: Optional[str] = None
    vcenter_port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    tls_validation: Optional[str] = None
    tls_ca: Optional[str] = None
    influxdb_host: Optional[str] = None
    influxdb_port: Optional[int] = None
    influxdb_database: Optional[str] = None
    influxdb_username: Optional[str] = None
    influxdb_password: Optional[str] = None
    influxdb_ssl: Optional[bool] = None
    interval_time: Optional[float] = None
    max_iterations: Optional[int] = None
    sample_count: Optional[int] = None

    # Comma separated lists
    collect: Optional[str] = None
    vdi_cluster_pattern: Optional[str] = None
    adapter_sum_vendors: Optional[str] = None
    adapter_sum_instances: Optional[str] = None
    appliance_subsystems: Optional[str] = None

    target: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix='VPA_',
        env_file='.env',
        case_sensitive=False,
        extra='ignore',  # Ignore extra fields in .env that aren't defined in the model
    )


def load_config_file(config_file: Optional[str]) -> FileConfig:
    if not config_file:
        return FileConfig()
    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Config file not found: {config_file}")
    with open(config_file, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_file} must contain a mapping")
    return FileConfig(**data)


class Settings:
    """
    Merged runtime settings.

    Precedence is CLI overrides, then the YAML config file, then VPA_*
    environment variables (including .env), then built-in defaults.
    """

    def __init__(self, config_file: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None,
                 use_env: bool = True):
        self.config_file = config_file
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

        logger.debug(f"Loading configuration from file: {config_file}")
        file_values = load_config_file(config_file).model_dump(exclude_none=True)
        env_values = EnvConfig().model_dump(exclude_none=True) if use_env else {}

        for key, default in DEFAULTS.items():
            if key in overrides:
                value = overrides[key]
            elif key in file_values:
                value = file_values[key]
            elif key in env_values:
                value = env_values[key]
            else:
                value = default
            if key in LIST_KEYS:
                value = split_list(value)
            setattr(self, key, value)

        self.collect = [c.lower() for c in self.collect]
        self._validate()

        if not self.target:
            self.target = self.vcenter or 'vpa'

    def _validate(self) -> None:
        if self.tls_validation not in TLS_VALIDATION_MODES:
            raise ValueError(f"tls_validation must be one of {TLS_VALIDATION_MODES}, got {self.tls_validation!r}")
        unknown = [c for c in self.collect if c not in COLLECT_CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown collection categories: {unknown}. Valid: {COLLECT_CATEGORIES}")
        if self.interval_time is None or float(self.interval_time) <= 0:
            raise ValueError("interval_time must be positive")
        self.interval_time = float(self.interval_time)
        self.vcenter_port = int(self.vcenter_port)
        self.influxdb_port = int(self.influxdb_port)
        self.max_iterations = int(self.max_iterations)
        self.sample_count = max(1, int(self.sample_count))

    def as_dict(self) -> Dict[str, Any]:
        result = {key: getattr(self, key) for key in DEFAULTS}
        for secret in ('password', 'influxdb_password'):
            if result.get(secret):
                result[secret] = '***'
        return result
