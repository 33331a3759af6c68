import functools
import logging
import math
from typing import Optional

from pwmonitor.models import (COMMIT_API, DEFAULT_RESERVE_PERCENT, OPERATION_API, CommandOutcome,
                              OperatingMode, OperationRequest)
from pwmonitor.session import SessionManager

log = logging.getLogger(__name__)


class CommandDispatcher:
    """
    Sends operation mode and backup reserve changes to the gateway.

    Each invocation runs guard, send, then either re-authenticate and retry (the
    gateway answered 401) or commit. Retries after re-authentication are capped
    by max_auth_retries.
    """

    def __init__(self, session: SessionManager, reserve_percent: float = DEFAULT_RESERVE_PERCENT,
                 max_auth_retries: int = 1):
        self.session = session
        self.reserve_percent = reserve_percent
        self.max_auth_retries = max_auth_retries

    def set_mode(self, mode: str) -> CommandOutcome:
        """
        Set battery operation mode.

        Args:
            mode:    self_consumption, backup (alias: reserve), autonomous

        Backup mode always requests a 100% reserve, other modes use the
        configured reserve percent.
        """
        if not self.session.is_authenticated:
            log.error('cannot set mode, not authenticated')
            return CommandOutcome.NOT_AUTHENTICATED
        request = OperationRequest.for_mode(mode, self.reserve_percent)
        return self._dispatch(request, 'set mode')

    def set_reserve_percent(self, percent: float) -> CommandOutcome:
        """
        Set battery reserve level and switch to self consumption.

        Args:
            percent: Battery reserve level in percents (range of 0-100 is accepted)
        """
        if not self.session.is_authenticated:
            log.error('cannot set reserve percent, not authenticated')
            return CommandOutcome.NOT_AUTHENTICATED
        try:
            if isinstance(percent, bool):
                raise TypeError(percent)
            level = float(percent)
        except (TypeError, ValueError):
            log.error(f"Invalid reserve percent '{percent}'")
            return CommandOutcome.INVALID_REQUEST
        if not math.isfinite(level):
            log.error(f"Invalid reserve percent '{percent}'")
            return CommandOutcome.INVALID_REQUEST
        if level < 0 or level > 100:
            log.error("Level can be in range of 0 to 100 only.")
            return CommandOutcome.INVALID_REQUEST
        if isinstance(percent, (int, float)):
            level = percent
        self.reserve_percent = level
        request = OperationRequest(mode=OperatingMode.SELF_CONSUMPTION.value, backup_reserve_percent=level)
        return self._dispatch(request, 'set reserve percent')

    def _dispatch(self, request: OperationRequest, name: str, attempt: int = 0) -> CommandOutcome:
        token = self.session.token
        if token is None:
            log.error(f'cannot {name}, not authenticated')
            return CommandOutcome.NOT_AUTHENTICATED

        payload = request.to_payload()
        log.info(f'{name} posting: {payload}')
        response = self.session.client.post(OPERATION_API, payload, token=token)
        if response is None:
            log.error(f'{name} failed - no response from Powerwall')
            return CommandOutcome.TRANSPORT_ERROR
        log.info(f'{name} response body: {response.payload!r}')

        if response.auth_rejected:
            if attempt >= self.max_auth_retries:
                log.error(f'{name} rejected after re-authentication - check Powerwall credentials')
                return CommandOutcome.REPEATED_AUTH_FAILURE
            log.info(f'{name} rejected with 401 - session expired, re-authenticating')
            return self.session.authenticate(
                on_complete=functools.partial(self._dispatch, request, name, attempt + 1))

        self.commit()
        return CommandOutcome.COMMITTED

    def commit(self) -> Optional[dict]:
        """ Ask the gateway to apply the pending configuration change """
        log.debug('sending commit')
        response = self.session.get(COMMIT_API)
        body = response.payload if response is not None else None
        log.info(f'commit response body: {body!r}')
        return body
