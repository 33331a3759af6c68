import logging
import threading
from typing import Any, Callable, Optional

from pwmonitor.local.gateway_client import GatewayClient
from pwmonitor.models import LOGIN_API, SITEMASTER_RUN_API, LoginRequest, LoginResponse

log = logging.getLogger(__name__)


def mask(token: Optional[str]) -> str:
    if not token:
        return 'None'
    if len(token) > 8:
        return token[:4] + '****'
    return '****'


class SessionManager:
    """
    Owns the gateway bearer token.

    The token is only written here, after a successful login, and is read by the
    telemetry fetcher and the command dispatcher. There is no expiry timer:
    staleness is detected by a rejected command or refreshed by the scheduler.
    Overlapping logins are tolerated and the last one to finish wins.
    """

    def __init__(self, client: GatewayClient, email: str, password: str):
        self.client = client
        self.email = email
        self.password = password
        self.token: Optional[str] = None
        self._ready = threading.Event()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """ Block until a token has been obtained at least once """
        return self._ready.wait(timeout)

    def authenticate(self, on_complete: Optional[Callable[[], Any]] = None) -> Any:
        """
        Login to the gateway and store the returned token.

        A failed login is logged and leaves the current token untouched. The
        sitemaster is then started (authenticated, so skipped without a token)
        and on_complete is called whatever the login outcome.

        Args:
            on_complete = Optional callable run after the login attempt

        Returns:
            The result of on_complete if given, otherwise True if login succeeded
        """
        success = self._login()
        self.get(SITEMASTER_RUN_API)
        if on_complete is not None:
            return on_complete()
        return success

    def get(self, api: str):
        """ Authenticated GET - skipped with a notice when no token is held """
        token = self.token
        if token is None:
            log.info('Not yet authenticated. Aborting request for %s' % api)
            return None
        response = self.client.get(api, token=token)
        if response is not None and response.error:
            log.error('Powerwall API %s returned error: %s' % (api, response.error))
        return response

    def _login(self) -> bool:
        request = LoginRequest(email=self.email, password=self.password)
        log.debug('login - %s (%s)' % (request.email, request.username))
        response = self.client.post(LOGIN_API, request.to_payload())
        if response is None:
            log.error('Unable to connect to Powerwall for login - keeping current session')
            return False
        login = LoginResponse.from_payload(response.payload)
        if not response.ok or login.error or not login.token:
            log.error('Login failed (status code %s): %s' % (response.status_code, login.error or response.payload))
            return False
        self.token = login.token
        self._ready.set()
        log.info('Authenticated user: %s with token: %s' % (self.email, mask(self.token)))
        return True
