import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

# Gateway API paths (relative to the endpoint base)
LOGIN_API = 'api/login/Basic'
SITEMASTER_RUN_API = 'api/sitemaster/run'
SOE_API = 'api/system_status/soe'
AGGREGATES_API = 'api/meters/aggregates'
OPERATION_API = 'api/operation'
COMMIT_API = 'api/config/completed'

DEFAULT_RESERVE_PERCENT = 20
BACKUP_RESERVE_PERCENT = 100


class Metric(enum.Enum):
    """ Telemetry metric published by the poller, valued by its event name """
    SOE = 'soe-updated'
    SOLAR = 'solar-updated'
    GRID = 'grid-updated'
    BATTERY = 'battery-updated'
    LOAD = 'load-updated'

    @property
    def event_name(self) -> str:
        return self.value


# Aggregates payload key for each power metric, in emission order
AGGREGATE_KEYS = (
    (Metric.SOLAR, 'solar'),
    (Metric.GRID, 'site'),
    (Metric.BATTERY, 'battery'),
    (Metric.LOAD, 'load'),
)


class OperatingMode(enum.Enum):
    SELF_CONSUMPTION = 'self_consumption'
    BACKUP = 'backup'
    AUTONOMOUS = 'autonomous'


# Externally requested mode names that map onto a device mode
MODE_ALIASES = {
    'reserve': OperatingMode.BACKUP.value,
}


def normalize_mode(mode: str) -> str:
    mode = str(mode).strip()
    normalized = MODE_ALIASES.get(mode.lower(), mode)
    if normalized not in [m.value for m in OperatingMode]:
        log.debug(f"Unknown operating mode '{normalized}' - passing through to gateway")
    return normalized


class CommandOutcome(enum.Enum):
    COMMITTED = 'committed'
    NOT_AUTHENTICATED = 'not_authenticated'
    INVALID_REQUEST = 'invalid_request'
    TRANSPORT_ERROR = 'transport_error'
    REPEATED_AUTH_FAILURE = 'repeated_auth_failure'


@dataclass(frozen=True)
class GatewayEndpoint:
    host: str
    base_path: str = ''

    def url(self, path: str) -> str:
        parts = [p.strip('/') for p in (self.base_path, path) if p and p.strip('/')]
        return 'https://%s/%s' % (self.host, '/'.join(parts))


@dataclass(frozen=True)
class TelemetrySample:
    metric: Metric
    value: float


@dataclass(frozen=True)
class LoginRequest:
    email: str
    password: str
    username: str = 'customer'
    force_sm_off: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            'force_sm_off': self.force_sm_off,
            'email': self.email,
            'password': self.password,
            'username': self.username,
        }


@dataclass(frozen=True)
class LoginResponse:
    token: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> 'LoginResponse':
        if not isinstance(payload, dict):
            return cls(error=f"unexpected login response: {payload!r}")
        error = payload.get('error')
        return cls(token=payload.get('token') or None, error=str(error) if error else None)


@dataclass(frozen=True)
class OperationRequest:
    mode: str
    backup_reserve_percent: float

    @classmethod
    def for_mode(cls, mode: str, reserve_percent: float) -> 'OperationRequest':
        mode = normalize_mode(mode)
        if mode == OperatingMode.BACKUP.value:
            reserve_percent = BACKUP_RESERVE_PERCENT
        return cls(mode=mode, backup_reserve_percent=reserve_percent)

    @property
    def real_mode(self) -> str:
        return self.mode

    def to_payload(self) -> Dict[str, Any]:
        return {
            'mode': self.mode,
            'real_mode': self.real_mode,
            'backup_reserve_percent': self.backup_reserve_percent,
        }


@dataclass(frozen=True)
class GatewayResponse:
    """ HTTP status plus decoded body (dict/list for JSON, str otherwise, None if empty) """
    status_code: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def error(self) -> Optional[str]:
        if isinstance(self.payload, dict) and self.payload.get('error'):
            return str(self.payload['error'])
        return None

    @property
    def auth_rejected(self) -> bool:
        if self.status_code == 401:
            return True
        if isinstance(self.payload, dict):
            try:
                return int(self.payload.get('code')) == 401
            except (TypeError, ValueError):
                return False
        return False

