import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from pwmonitor.exceptions import InvalidConfigurationParameter
from pwmonitor.models import DEFAULT_RESERVE_PERCENT, GatewayEndpoint
from pwmonitor.regex import EMAIL_REGEX, HOST_REGEX, IPV4_6_REGEX
from pwmonitor.scheduler import INITIAL_AUTH_DELAY, POLL_INTERVAL, REAUTH_INTERVAL

log = logging.getLogger(__name__)

# Required settings - current name first, then the legacy name
REQUIRED = {
    'host': ('PW_HOST', 'CONTROLLER_IP'),
    'email': ('PW_EMAIL', 'TESLA_USERNAME'),
    'password': ('PW_PASSWORD', 'TESLA_PASSWORD'),
}


@dataclass(frozen=True)
class MonitorConfig:
    host: str
    email: str
    password: str
    base_path: str = ''
    timeout: float = 5
    poll_interval: float = POLL_INTERVAL
    reauth_interval: float = REAUTH_INTERVAL
    initial_auth_delay: float = INITIAL_AUTH_DELAY
    reserve_percent: int = DEFAULT_RESERVE_PERCENT
    max_auth_retries: int = 1
    debug: bool = False

    @property
    def endpoint(self) -> GatewayEndpoint:
        return GatewayEndpoint(self.host, self.base_path)

    def validate(self) -> 'MonitorConfig':
        if not IPV4_6_REGEX.match(self.host) and not HOST_REGEX.match(self.host):
            raise InvalidConfigurationParameter(f"Invalid powerwall host: '{self.host}'. Must be in the "
                                                f"form of IP address or a valid form of a hostname or FQDN.")
        if not EMAIL_REGEX.match(self.email):
            raise InvalidConfigurationParameter(f"A valid email address is required: '{self.email}' did not "
                                                f"pass validation.")
        if not 0 <= self.reserve_percent <= 100:
            raise InvalidConfigurationParameter(f"Reserve percent must be in range of 0 to 100: "
                                                f"{self.reserve_percent}")
        for name in ('timeout', 'poll_interval', 'reauth_interval'):
            if getattr(self, name) <= 0:
                raise InvalidConfigurationParameter(f"{name} must be greater than zero")
        if self.initial_auth_delay < 0 or self.max_auth_retries < 0:
            raise InvalidConfigurationParameter("initial_auth_delay and max_auth_retries cannot be negative")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'MonitorConfig':
        """
        Build configuration from environment variables.

        Raises InvalidConfigurationParameter when a required variable is missing
        or a value is invalid.
        """
        env = os.environ if environ is None else environ
        values = {}
        for field_name, names in REQUIRED.items():
            value = next((env[n] for n in names if env.get(n)), None)
            if value is None:
                raise InvalidConfigurationParameter(f"{names[0]} not set, not starting")
            values[field_name] = value
        try:
            config = cls(
                base_path=env.get('PW_BASE_PATH', ''),
                timeout=float(env.get('PW_TIMEOUT', 5)),
                poll_interval=float(env.get('PW_POLL_INTERVAL', POLL_INTERVAL)),
                reauth_interval=float(env.get('PW_REAUTH_INTERVAL', REAUTH_INTERVAL)),
                initial_auth_delay=float(env.get('PW_INITIAL_AUTH_DELAY', INITIAL_AUTH_DELAY)),
                reserve_percent=int(env.get('PW_RESERVE_PERCENT', DEFAULT_RESERVE_PERCENT)),
                max_auth_retries=int(env.get('PW_MAX_AUTH_RETRIES', 1)),
                debug=env.get('PW_DEBUG', 'no').lower() == 'yes',
                **values,
            )
        except ValueError as exc:
            raise InvalidConfigurationParameter(f"Invalid numeric setting: {exc}") from exc
        return config.validate()

    def masked(self) -> dict:
        """ Settings safe for logging """
        return {
            'PW_HOST': self.host,
            'PW_EMAIL': self.email,
            'PW_PASSWORD': '*' * len(self.password) if self.password else None,
            'PW_BASE_PATH': self.base_path,
            'PW_TIMEOUT': self.timeout,
            'PW_POLL_INTERVAL': self.poll_interval,
            'PW_REAUTH_INTERVAL': self.reauth_interval,
            'PW_INITIAL_AUTH_DELAY': self.initial_auth_delay,
            'PW_RESERVE_PERCENT': self.reserve_percent,
            'PW_MAX_AUTH_RETRIES': self.max_auth_retries,
            'PW_DEBUG': self.debug,
        }
