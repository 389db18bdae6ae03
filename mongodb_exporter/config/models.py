"""Pydantic configuration models for the exporter."""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..collectors.common import COLLECTOR_LABEL_NAMES


_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)')
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

AUTH_MECHANISMS = (
    "SCRAM-SHA-1",
    "SCRAM-SHA-256",
    "MONGODB-X509",
    "MONGODB-AWS",
    "GSSAPI",
    "PLAIN",
    "MONGODB-OIDC",
)


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (seconds) and Go-style strings such as "10s", "1m30s",
    "250ms" or "1h".

    Args:
        value: Number or duration string

    Returns:
        float: Duration in seconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


class MongoDBConfig(BaseModel):
    """Connection settings for the monitored server."""
    uri: str = "mongodb://localhost:27017"
    username: Optional[str] = None
    password: Optional[str] = None
    database: str = "admin"
    auth_source: str = "admin"
    auth_mechanism: Optional[str] = None
    tls_enabled: bool = False
    tls_insecure_skip_verify: bool = False
    tls_cert_file: Optional[str] = None
    tls_key_file: Optional[str] = None
    tls_ca_file: Optional[str] = None
    connection_timeout: float = 10.0
    server_selection_timeout: float = 5.0
    max_pool_size: int = Field(default=100, ge=1)
    min_pool_size: int = Field(default=5, ge=0)
    max_idle_time: float = 300.0

    @field_validator('uri')
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Validate connection string scheme."""
        if not v:
            raise ValueError('MongoDB URI is required')
        if not v.startswith(('mongodb://', 'mongodb+srv://')):
            raise ValueError('URI must start with mongodb:// or mongodb+srv://')
        return v

    @field_validator('auth_mechanism')
    @classmethod
    def validate_auth_mechanism(cls, v: Optional[str]) -> Optional[str]:
        """Validate authentication mechanism against the driver's list."""
        if v and v not in AUTH_MECHANISMS:
            raise ValueError(f'auth_mechanism must be one of {", ".join(AUTH_MECHANISMS)}')
        return v or None

    @field_validator('connection_timeout', 'server_selection_timeout', 'max_idle_time', mode='before')
    @classmethod
    def parse_timeouts(cls, v: Any) -> float:
        return parse_duration(v)

    @field_validator('connection_timeout', 'server_selection_timeout')
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError('timeout must be positive')
        return v

    @model_validator(mode='after')
    def validate_pool_sizes(self) -> 'MongoDBConfig':
        """Ensure max pool size is not below min pool size."""
        if self.max_pool_size < self.min_pool_size:
            raise ValueError('max_pool_size must be greater than or equal to min_pool_size')
        return self


class ServerConfig(BaseModel):
    """HTTP listener settings."""
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    read_timeout: float = 30.0

    @field_validator('read_timeout', mode='before')
    @classmethod
    def parse_read_timeout(cls, v: Any) -> float:
        value = parse_duration(v)
        if value <= 0:
            raise ValueError('read_timeout must be positive')
        return value


class MetricsConfig(BaseModel):
    """Metric selection and static labels."""
    collection_interval: float = 15.0
    enabled_metrics: List[str] = Field(default_factory=list)
    disabled_metrics: List[str] = Field(default_factory=list)
    custom_labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator('collection_interval', mode='before')
    @classmethod
    def parse_interval(cls, v: Any) -> float:
        value = parse_duration(v)
        if value <= 0:
            raise ValueError('collection_interval must be positive')
        return value

    @field_validator('custom_labels')
    @classmethod
    def validate_label_names(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Label names must be valid Prometheus identifiers not used by any collector."""
        for name in v:
            if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name) or name.startswith('__'):
                raise ValueError(f'Invalid label name: {name}')
            if name in COLLECTOR_LABEL_NAMES:
                raise ValueError(f'Custom label {name} collides with a collector label')
        return v


class LoggingConfig(BaseModel):
    """Log output settings."""
    level: str = "INFO"
    format: str = "json"
    output_path: str = "stdout"

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Invalid log level: {v}')
        return level

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ('json', 'console'):
            raise ValueError('format must be "json" or "console"')
        return v


class CollStatsSettings(BaseModel):
    """Collection detail statistics settings."""
    monitored_collections: Union[str, List[Any]] = Field(default_factory=list)


class ProfileSettings(BaseModel):
    """Profiler collector settings."""
    slow_operation_threshold: float = 0.0
    max_entries_per_cycle: int = Field(default=1000, ge=0)

    @field_validator('slow_operation_threshold', mode='before')
    @classmethod
    def parse_threshold(cls, v: Any) -> float:
        return parse_duration(v)


class ShardingSettings(BaseModel):
    """Sharding collector settings."""
    collect_chunk_distribution: bool = True
    collect_migration_history: bool = True


class IndexStatsSettings(BaseModel):
    """Index statistics settings."""
    collect_usage_stats: bool = True
    max_indexes_per_collection: int = Field(default=0, ge=0)


class ConnectionPoolSettings(BaseModel):
    """Connection pool collector settings."""
    collect_per_host_metrics: bool = True
    analyze_current_operations: bool = True


class CollectorsConfig(BaseModel):
    """Per-collector settings keyed by collector name."""
    collstats: CollStatsSettings = Field(default_factory=CollStatsSettings)
    profile: ProfileSettings = Field(default_factory=ProfileSettings)
    sharding: ShardingSettings = Field(default_factory=ShardingSettings)
    index_stats: IndexStatsSettings = Field(default_factory=IndexStatsSettings)
    connection_pool: ConnectionPoolSettings = Field(default_factory=ConnectionPoolSettings)


class ExporterConfig(BaseModel):
    """Root configuration model for the exporter."""
    mongodb: MongoDBConfig = Field(default_factory=MongoDBConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    collectors: CollectorsConfig = Field(default_factory=CollectorsConfig)
