# pwMonitor Module
# -*- coding: utf-8 -*-
"""
 Python module to poll and control a local Tesla Energy Gateway (Powerwall)

 Features
    * Keeps a bearer token session with the gateway, renewed every 30 minutes
    * Polls battery level and power flow every 5s and publishes typed events
    * Sets operation mode and backup reserve, re-authenticating once on 401
    * Commits configuration changes so the gateway applies them

 Classes
    PowerwallMonitor(host, password, email, base_path, timeout, poll_interval,
        reauth_interval, initial_auth_delay, reserve_percent, max_auth_retries)

 Parameters
    host                      # Hostname or IP of the Tesla gateway
    password                  # Customer password for gateway
    email                     # Customer email for gateway
    base_path = ""            # Optional path prefix for gateway APIs
    timeout = 5               # Timeout for HTTPS calls in seconds
    poll_interval = 5         # Seconds between telemetry polls
    reauth_interval = 1800    # Seconds between forced logins
    initial_auth_delay = 10   # Seconds to wait before the first login
    reserve_percent = 20      # Reserve used by non-backup mode changes
    max_auth_retries = 1      # Re-authenticated retries for a rejected command

 Functions
    start()                   # Start polling and session renewal
    stop()                    # Stop timers (process shutdown)
    authenticate()            # Login now
    poll_once()               # Run one telemetry cycle, return samples
    subscribe(callback, metric)   # Receive TelemetrySample events
    set_mode(mode)            # Set operation mode in the background
    set_reserve_percent(percent)  # Set backup reserve in the background

 Events
    soe-updated, solar-updated, grid-updated, battery-updated, load-updated

 Requirements
    This module requires the following modules: requests, urllib3, python-dotenv
    pip install requests urllib3 python-dotenv
"""
import logging
import sys
from typing import Callable, List, Optional

version_tuple = (0, 1, 0)
version = __version__ = '%d.%d.%d' % version_tuple
__author__ = 'jasonacox'

# noinspection PyPackageRequirements
import urllib3

from pwmonitor.commands import CommandDispatcher
from pwmonitor.config import MonitorConfig
from pwmonitor.events import TelemetryBus
from pwmonitor.exceptions import InvalidConfigurationParameter, LoginError
from pwmonitor.local.gateway_client import GatewayClient
from pwmonitor.models import (CommandOutcome, GatewayEndpoint, Metric, OperatingMode,
                              TelemetrySample, DEFAULT_RESERVE_PERCENT)
from pwmonitor.scheduler import PollScheduler, spawn, INITIAL_AUTH_DELAY, POLL_INTERVAL, REAUTH_INTERVAL
from pwmonitor.session import SessionManager
from pwmonitor.telemetry import TelemetryFetcher

urllib3.disable_warnings()  # Disable SSL warnings

log = logging.getLogger(__name__)
log.debug('%s version %s', __name__, __version__)
log.debug('Python %s on %s', sys.version, sys.platform)


def set_debug(toggle=True, color=True):
    """Enable verbose logging"""
    if toggle:
        if color:
            logging.basicConfig(format='\x1b[31;1m%(levelname)s:%(message)s\x1b[0m', level=logging.DEBUG)
        else:
            logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.DEBUG)
        log.setLevel(logging.DEBUG)
        log.debug("%s [%s]\n" % (__name__, __version__))
    else:
        log.setLevel(logging.NOTSET)


class PowerwallMonitor(object):
    def __init__(self, host, password, email, base_path="", timeout=5,
                 poll_interval=POLL_INTERVAL, reauth_interval=REAUTH_INTERVAL,
                 initial_auth_delay=INITIAL_AUTH_DELAY, reserve_percent=DEFAULT_RESERVE_PERCENT,
                 max_auth_retries=1, client: Optional[GatewayClient] = None):
        """
        Long-lived poller and controller for one Tesla Energy Gateway.

        Args:
            host        = Hostname or IP address of Powerwall (e.g. 10.0.1.99)
            password    = Customer password set up on Powerwall gateway
            email       = Customer email
            base_path   = Optional path prefix for gateway APIs
            timeout     = Seconds for the timeout on http requests
            poll_interval      = Seconds between telemetry polls
            reauth_interval    = Seconds between forced logins
            initial_auth_delay = Seconds to wait before the first login
            reserve_percent    = Reserve used by non-backup mode changes
            max_auth_retries   = Re-authenticated retries for a rejected command
            client      = Transport to use instead of a new GatewayClient
        """
        self.endpoint = GatewayEndpoint(host, base_path)
        self.client = client or GatewayClient(self.endpoint, timeout=timeout)
        self.session = SessionManager(self.client, email, password)
        self.bus = TelemetryBus()
        self.fetcher = TelemetryFetcher(self.session, self.bus)
        self.dispatcher = CommandDispatcher(self.session, reserve_percent=reserve_percent,
                                            max_auth_retries=max_auth_retries)
        self.scheduler = PollScheduler(self.fetcher.poll_once, self.session.authenticate,
                                       poll_interval=poll_interval, reauth_interval=reauth_interval,
                                       initial_auth_delay=initial_auth_delay)

    @classmethod
    def from_config(cls, config: MonitorConfig, client: Optional[GatewayClient] = None) -> 'PowerwallMonitor':
        return cls(config.host, config.password, config.email, base_path=config.base_path,
                   timeout=config.timeout, poll_interval=config.poll_interval,
                   reauth_interval=config.reauth_interval, initial_auth_delay=config.initial_auth_delay,
                   reserve_percent=config.reserve_percent, max_auth_retries=config.max_auth_retries,
                   client=client)

    def start(self):
        """ Start polling, session renewal and the delayed first login """
        self.scheduler.start()

    def stop(self):
        self.scheduler.stop()
        self.client.close()

    def authenticate(self) -> bool:
        """ Login now - returns True if a new token was obtained """
        return self.session.authenticate()

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def poll_once(self) -> List[TelemetrySample]:
        """ Run one telemetry cycle and return the published samples """
        return self.fetcher.poll_once()

    def subscribe(self, callback: Callable[[TelemetrySample], None],
                  metric: Optional[Metric] = None) -> Callable[[], None]:
        """
        Receive telemetry events

        Args:
            callback = Called with each TelemetrySample
            metric   = Only deliver this Metric (default: all)

        Returns:
            Function that removes the subscription
        """
        return self.bus.subscribe(callback, metric)

    def set_mode(self, mode: str) -> None:
        """
        Set battery operation mode (self_consumption, backup, reserve, autonomous).
        Runs in the background; the outcome is logged.
        """
        spawn('pwmonitor-set-mode', lambda: self.dispatcher.set_mode(mode))

    def set_reserve_percent(self, percent: float) -> None:
        """
        Set battery reserve percentage (0-100) in self consumption mode.
        Runs in the background; the outcome is logged.
        """
        spawn('pwmonitor-set-reserve', lambda: self.dispatcher.set_reserve_percent(percent))


__all__ = [
    'PowerwallMonitor', 'MonitorConfig', 'Metric', 'OperatingMode', 'TelemetrySample', 'CommandOutcome',
    'InvalidConfigurationParameter', 'LoginError', 'set_debug', 'version', '__version__',
]
