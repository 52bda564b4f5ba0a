# SPDX-License-Identifier: Apache-2.0

"""Configuration management for NetBox inventory synchronization."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from dynaconf import Dynaconf

from .exceptions import ConfigError
from .utils import parse_duration

# Default configuration values
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_INITIAL = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_BACKOFF_MAX = 30.0
DEFAULT_CACHE_FILE = "/tmp/netbox_inventory_snapshot.json"
DEFAULT_OUTPUT_FORMAT = "json"
DEFAULT_TEMPLATE_PATH = Path(__file__).parent / "templates"
DEFAULT_LOG_LEVEL = "INFO"
ALLOWED_OUTPUT_FORMATS = ["json", "yaml", "ini"]
ENVVAR_PREFIX = "NETBOX"


def load_settings(settings_file: Optional[Union[str, Path]] = None) -> Dynaconf:
    """Load settings from an optional YAML file and the environment.

    Environment variables use the ``NETBOX_`` prefix, e.g.
    ``NETBOX_API_ENDPOINT``, ``NETBOX_TOKEN`` or ``NETBOX_GROUP_BY='["sites"]'``.

    Args:
        settings_file: Path to a settings file, or None for environment only

    Returns:
        Dynaconf: Settings object
    """
    return Dynaconf(
        envvar_prefix=ENVVAR_PREFIX,
        settings_files=[str(settings_file)] if settings_file else [],
        environments=False,
        load_dotenv=False,
    )


def _plain(value: Any) -> Any:
    """Convert dynaconf boxes into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _optional_path(value: Any) -> Optional[Path]:
    if value in (None, "", False):
        return None
    return Path(value)


@dataclass
class Config:
    """Configuration settings for NetBox inventory synchronization.

    Attributes:
        api_endpoint: NetBox base URL
        token: Authentication token for the NetBox API (never logged)
        group_by: Ordered attribute names to build groups from
        compose: Mapping of derived variable name to source attribute rule
        group_vars: Static variables per group name
        refresh_interval: Seconds between scheduled refreshes, or None
        request_timeout: Per-request timeout in seconds
        max_retries: Retries after the first failed attempt
        backoff_initial: First backoff delay in seconds
        backoff_factor: Multiplier for exponential backoff
        backoff_max: Upper bound for a single backoff delay
        query_filters: Filter(s) for device selection from NetBox
        include_virtual_machines: Whether to fetch virtual machines too
        fetch_platforms: Whether to fetch platform metadata
        page_size: Page size for paginated API calls, or None for the default
        ignore_ssl_errors: Whether to ignore SSL certificate errors
        incremental: Whether refreshes only fetch changed objects
        cycle_timeout: Upper bound for one refresh cycle in seconds, or None
        cache_file: Where the last-known-good snapshot is persisted, or None
        output_path: Where rendered inventory is written, or None
        output_format: Format of the written inventory file
        template_path: Directory holding Jinja2 templates
        trigger_file: File whose modification triggers a refresh, or None
        log_level: Minimum log level
    """

    api_endpoint: str
    token: str = field(repr=False)
    group_by: List[str] = field(default_factory=list)
    compose: Dict[str, Any] = field(default_factory=dict)
    group_vars: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    refresh_interval: Optional[float] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_initial: float = DEFAULT_BACKOFF_INITIAL
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    backoff_max: float = DEFAULT_BACKOFF_MAX
    query_filters: Union[Dict[str, Any], List[Dict[str, Any]]] = field(
        default_factory=dict
    )
    include_virtual_machines: bool = False
    fetch_platforms: bool = True
    page_size: Optional[int] = None
    ignore_ssl_errors: bool = False
    incremental: bool = False
    cycle_timeout: Optional[float] = None
    cache_file: Optional[Path] = None
    output_path: Optional[Path] = None
    output_format: str = DEFAULT_OUTPUT_FORMAT
    template_path: Path = field(default_factory=lambda: DEFAULT_TEMPLATE_PATH)
    trigger_file: Optional[Path] = None
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not self.api_endpoint:
            raise ConfigError("api_endpoint is required")
        if not self.token:
            raise ConfigError("token is required")
        if isinstance(self.group_by, str):
            self.group_by = [self.group_by]
        if not all(isinstance(name, str) and name for name in self.group_by):
            raise ConfigError("group_by must be a list of attribute names")
        if not isinstance(self.compose, dict):
            raise ConfigError("compose must be a mapping")
        if self.max_retries < 0:
            raise ConfigError("max_retries must not be negative")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.refresh_interval is not None and self.refresh_interval <= 0:
            raise ConfigError("refresh_interval must be positive")
        if self.output_format not in ALLOWED_OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {ALLOWED_OUTPUT_FORMATS}, "
                f"got '{self.output_format}'"
            )

    @classmethod
    def from_settings(cls, settings: Any) -> "Config":
        """Create configuration from a settings object.

        Args:
            settings: Dynaconf settings or any mapping with lower-case keys

        Returns:
            Config: Configuration instance populated from the settings

        Raises:
            ConfigError: If required settings are missing or invalid
        """
        # Required settings; NETBOX_API is accepted as a legacy name
        api_endpoint = settings.get("api_endpoint") or settings.get("api")
        if not api_endpoint:
            raise ConfigError("api_endpoint (NETBOX_API_ENDPOINT) is required")

        token = settings.get("token") or cls._read_secret("NETBOX_TOKEN")
        if not token:
            raise ConfigError("token not found in settings, environment or secrets")

        try:
            return cls(
                api_endpoint=str(api_endpoint).rstrip("/"),
                token=str(token),
                group_by=_plain(settings.get("group_by", [])),
                compose=_plain(settings.get("compose", {})),
                group_vars=_plain(settings.get("group_vars", {})),
                refresh_interval=parse_duration(settings.get("refresh_interval")),
                request_timeout=parse_duration(
                    settings.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
                ),
                max_retries=int(settings.get("max_retries", DEFAULT_MAX_RETRIES)),
                backoff_initial=parse_duration(
                    settings.get("backoff_initial", DEFAULT_BACKOFF_INITIAL)
                ),
                backoff_factor=float(
                    settings.get("backoff_factor", DEFAULT_BACKOFF_FACTOR)
                ),
                backoff_max=parse_duration(
                    settings.get("backoff_max", DEFAULT_BACKOFF_MAX)
                ),
                query_filters=_plain(settings.get("query_filters", {})),
                include_virtual_machines=bool(
                    settings.get("include_virtual_machines", False)
                ),
                fetch_platforms=bool(settings.get("fetch_platforms", True)),
                page_size=(
                    int(settings.get("page_size"))
                    if settings.get("page_size")
                    else None
                ),
                ignore_ssl_errors=bool(settings.get("ignore_ssl_errors", False)),
                incremental=bool(settings.get("incremental", False)),
                cycle_timeout=parse_duration(settings.get("cycle_timeout")),
                cache_file=_optional_path(
                    settings.get("cache_file", DEFAULT_CACHE_FILE)
                ),
                output_path=_optional_path(settings.get("output_path")),
                output_format=str(
                    settings.get("output_format", DEFAULT_OUTPUT_FORMAT)
                ).lower(),
                template_path=Path(
                    settings.get("template_path", DEFAULT_TEMPLATE_PATH)
                ),
                trigger_file=_optional_path(settings.get("trigger_file")),
                log_level=str(settings.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_environment(cls, settings_file: Optional[Union[str, Path]] = None):
        """Create configuration from environment variables and a settings file."""
        return cls.from_settings(load_settings(settings_file))

    @staticmethod
    def _read_secret(secret_name: str) -> str:
        """Read secret from file system.

        Args:
            secret_name: Name of the secret to read

        Returns:
            str: Secret value or empty string if not found
        """
        secret_path = Path(f"/run/secrets/{secret_name}")
        try:
            return secret_path.read_text(encoding="utf-8").strip()
        except (EnvironmentError, FileNotFoundError):
            return ""
