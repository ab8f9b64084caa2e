"""Configuration management for MySQL Info Exporter"""
from collections import Counter
from pathlib import Path
from typing import List, Literal, Optional, Union

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, validator
from pydantic_settings import BaseSettings


logger = structlog.get_logger(__name__)


class ConfigError(Exception):
    """Raised when the target document cannot be loaded or is invalid"""


class Config(BaseSettings):
    """Process settings with Pydantic validation and environment-based overrides"""

    # Target document
    config_file: Path = Field(default=Path("config.yaml"), description="YAML file listing database targets")

    # Server settings
    metrics_port: int = Field(default=18080, ge=1, le=65535, description="Metrics server port")
    metrics_host: str = Field(default="0.0.0.0", description="Metrics server host")

    # Collection settings
    storage_interval: int = Field(default=55 * 60, ge=1, description="Table size and processlist interval in seconds")
    connection_interval: int = Field(default=5 * 60, ge=1, description="Connection count interval in seconds")
    query_timeout: int = Field(default=30, ge=1, description="Connect, read and write timeout in seconds")
    metric_ttl: int = Field(default=0, ge=0, description="Evict samples older than this many seconds (0 disables)")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")
    enable_request_logging: bool = Field(default=True, description="Enable HTTP request logging")

    # Service settings
    service_name: str = Field(default="mysql-info-exporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    class Config:
        env_prefix = ""
        case_sensitive = False

    @validator('log_level', pre=True)
    def normalize_log_level(cls, v):
        """Accept lowercase log levels from the environment"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @validator('metric_ttl')
    def validate_metric_ttl(cls, v, values):
        """Samples must outlive the slowest collection interval"""
        intervals = [values.get('storage_interval'), values.get('connection_interval')]
        longest = max((i for i in intervals if i), default=0)
        if v and v <= longest:
            raise ValueError(f"METRIC_TTL must exceed the longest collection interval ({longest}s)")
        return v

    @validator('log_file')
    def ensure_parent_directories(cls, v):
        """Ensure parent directories exist for file paths"""
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v


class TargetConfig(BaseModel):
    """One database to poll"""

    name: str = Field(..., min_length=1, description="Display name, exported as the cloud_name label")
    dsn: str = Field(..., min_length=1, description="Connection string")
    origin_prometheus: str = Field(default="", description="Free-form origin label")

    class Config:
        frozen = True

    @validator('name', 'dsn')
    def strip_whitespace(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class TargetsDocument(BaseModel):
    """Top-level layout of the YAML target document"""

    databases: List[TargetConfig] = Field(default_factory=list)


def parse_targets(data) -> List[TargetConfig]:
    """Validate an already-parsed target document"""
    if data is None:
        raise ConfigError("Configuration document is empty")
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration document must be a mapping, got {type(data).__name__}")

    try:
        document = TargetsDocument(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration document: {e}") from e

    if not document.databases:
        raise ConfigError("No databases configured")

    duplicates = [name for name, count in Counter(t.name for t in document.databases).items() if count > 1]
    if duplicates:
        logger.warning(
            "Duplicate target names share label values",
            duplicates=duplicates,
            event_type="config_warning"
        )

    return document.databases


def load_targets(path: Union[str, Path]) -> List[TargetConfig]:
    """Load and validate the YAML target document"""
    path = Path(path)
    try:
        with path.open(encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration file {path}: {e}") from e

    targets = parse_targets(data)
    logger.info(
        "Configuration loaded",
        path=str(path),
        targets=[t.name for t in targets],
        event_type="config_loaded"
    )
    return targets
