import logging
import threading
from typing import Callable, List, Optional

log = logging.getLogger(__name__)

POLL_INTERVAL = 5  # seconds between telemetry polls
REAUTH_INTERVAL = 30 * 60  # seconds between forced logins
INITIAL_AUTH_DELAY = 10  # seconds before the first login


def spawn(name: str, func: Callable[[], object]) -> threading.Thread:
    """ Run func on a daemon thread, logging anything it raises """
    def runner():
        try:
            func()
        except Exception as exc:
            log.error(f'{name} failed: {exc}')

    thread = threading.Thread(target=runner, name=name, daemon=True)
    thread.start()
    return thread


class PeriodicTimer(threading.Thread):
    """
    Fires func every interval seconds on a fresh thread.

    Ticks do not wait for earlier ones to finish, so a slow call may overlap the
    next. The first tick fires after one interval.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        super().__init__(name=name, daemon=True)
        self.interval = interval
        self.func = func
        self._stopped = threading.Event()

    def run(self):
        while not self._stopped.wait(self.interval):
            spawn(self.name, self.func)

    def cancel(self):
        self._stopped.set()


class PollScheduler:
    """
    Drives the telemetry poll, the periodic re-authentication and the delayed
    initial authentication. Runs for the lifetime of the process unless stop()
    is called at shutdown.
    """

    def __init__(self, poll: Callable[[], object], authenticate: Callable[[], object],
                 poll_interval: float = POLL_INTERVAL, reauth_interval: float = REAUTH_INTERVAL,
                 initial_auth_delay: float = INITIAL_AUTH_DELAY):
        self.poll = poll
        self.authenticate = authenticate
        self.poll_interval = poll_interval
        self.reauth_interval = reauth_interval
        self.initial_auth_delay = initial_auth_delay
        self._timers: List[PeriodicTimer] = []
        self._initial: Optional[threading.Timer] = None

    @property
    def running(self) -> bool:
        return bool(self._timers)

    def start(self):
        if self.running:
            log.debug('Poll scheduler already running')
            return
        log.info('starting poll (every %ss, re-authenticate every %ss, first login in %ss)' %
                 (self.poll_interval, self.reauth_interval, self.initial_auth_delay))
        self._timers = [
            PeriodicTimer('pwmonitor-poll', self.poll_interval, self.poll),
            PeriodicTimer('pwmonitor-reauth', self.reauth_interval, self.authenticate),
        ]
        for timer in self._timers:
            timer.start()
        self._initial = threading.Timer(self.initial_auth_delay, spawn, args=('pwmonitor-auth', self.authenticate))
        self._initial.daemon = True
        self._initial.start()

    def stop(self):
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        if self._initial is not None:
            self._initial.cancel()
            self._initial = None
        log.info('poll stopped')
