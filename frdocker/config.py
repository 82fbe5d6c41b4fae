"""Static configuration for the fault recovery monitor."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RegistrySettings:
    """Keys and paths used when talking to the registry and the gateways."""

    leaf_metadata_key: str = "leaf"
    gateway_metadata_key: str = "gateway"
    info_path: str = "/frecovery/conf"
    replay_path: str = "/frecovery/replace"


@dataclass(frozen=True)
class MonitorSettings:
    """Health checks, scheduling and worker pool; durations are in seconds."""

    health_path: str = "/actuator/health"
    health_timeout: float = 0.3
    metric_interval: float = 30.0
    persistence_interval: float = 60.0
    persistence_collection: str = "frecovery"
    pool_size: int = 500


@dataclass(frozen=True)
class TedaSettings:
    """Parameters of the TEDA eccentricity detector."""

    data_len: int = 1
    n_sigma: int = 3
    timeout_factor: int = 2


@dataclass(frozen=True)
class TraceHeaders:
    """HTTP headers carrying tracing information between services."""

    trace_id: str = "trace-id"
    service_instance: str = "service-instance-id"
    service_name: str = "service-name"
    cached_response: str = "cached-response"


@dataclass(frozen=True)
class LogSettings:
    """Where logs go and how they look."""

    root_path: str = "/var/log/frecovery/"
    file_name: str = "frecovery.log"
    caller_enabled: bool = False
    level_colors: dict = field(
        default_factory=lambda: {
            "INFO": "cyan",
            "ERROR": "red",
            "DEBUG": "white",
            "TRACE": "white",
            "WARNING": "yellow",
            "FATAL": "red",
        }
    )


REGISTRY = RegistrySettings()
MONITOR = MonitorSettings()
TEDA = TedaSettings()
TRACE = TraceHeaders()
LOGGING = LogSettings()

REGISTRY_METADATA_LEAF_KEY = REGISTRY.leaf_metadata_key
REGISTRY_METADATA_GATEWAY_KEY = REGISTRY.gateway_metadata_key
REGISTRY_INFO_URI = REGISTRY.info_path
GATEWAY_REPLAY_MESSAGE_URI = REGISTRY.replay_path

CONTAINER_HEALTH_CHECK_URI = MONITOR.health_path
CONTAINER_HEALTH_CHECK_TIMEOUT = MONITOR.health_timeout
CONTAINER_METRIC_MONITOR_INTERVAL = MONITOR.metric_interval
FRECOVERY_PERSISTENCE_INTERVAL = MONITOR.persistence_interval
FRECOVERY_PERSISTENCE_COLLECTION = MONITOR.persistence_collection
FRECOVERY_POOL_SIZE = MONITOR.pool_size

LOG_FILE_ROOT_PATH = LOGGING.root_path
LOG_FILE = LOGGING.file_name
LOG_CALLER_ENABLED = LOGGING.caller_enabled
LOG_LEVEL_COLORS = LOGGING.level_colors
LOG_INFO_COLOR = LOG_LEVEL_COLORS["INFO"]
LOG_ERROR_COLOR = LOG_LEVEL_COLORS["ERROR"]
LOG_DEBUG_COLOR = LOG_LEVEL_COLORS["DEBUG"]
LOG_TRACE_COLOR = LOG_LEVEL_COLORS["TRACE"]
LOG_WARN_COLOR = LOG_LEVEL_COLORS["WARNING"]
LOG_FATAL_COLOR = LOG_LEVEL_COLORS["FATAL"]

LOG_BANNER = r"""
 _____  ____   ____    ___    ____  _  __ _____  ____
|  ___||  _ \ |  _ \  / _ \  / ___|| |/ /| ____||  _ \
| |_   | |_) || | | || | | || |    | ' / |  _|  | |_) |
|  _|  |  _ < | |_| || |_| || |___ | . \ | |___ |  _ <
|_|    |_| \_\|____/  \___/  \____||_|\_\|_____||_| \_\
"""

TEDA_DATA_LEN = TEDA.data_len
TEDA_N_SIGMA = TEDA.n_sigma
TEDA_TIMEOUT_FACTOR = TEDA.timeout_factor

TRACE_ID_HEADER = TRACE.trace_id
TRACE_SERVICE_INSTANCE_HEADER = TRACE.service_instance
TRACE_SERVICE_NAME_HEADER = TRACE.service_name
TRACE_CACHED_RESPONSE_HEADER = TRACE.cached_response