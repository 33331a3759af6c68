import pytest

from pwmonitor.commands import CommandDispatcher
from pwmonitor.events import TelemetryBus
from pwmonitor.models import (AGGREGATES_API, COMMIT_API, LOGIN_API, OPERATION_API, SITEMASTER_RUN_API,
                              SOE_API, GatewayEndpoint, GatewayResponse)
from pwmonitor.session import SessionManager
from pwmonitor.telemetry import TelemetryFetcher


class StubGateway:
    """ Stands in for GatewayClient and records every request """

    def __init__(self):
        self.endpoint = GatewayEndpoint('10.0.1.99')
        self.calls = []
        self.logins = 0
        # api -> list of queued responses; the last one is repeated
        self.responses = {
            SOE_API: [GatewayResponse(200, {'percentage': '42'})],
            AGGREGATES_API: [GatewayResponse(200, {
                'site': {'instant_power': 1000},
                'solar': {'instant_power': 2000},
                'battery': {'instant_power': -500},
                'load': {'instant_power': 1500},
            })],
            SITEMASTER_RUN_API: [GatewayResponse(202, None)],
            OPERATION_API: [GatewayResponse(200, {'mode': 'self_consumption'})],
            COMMIT_API: [GatewayResponse(202, {'status': 'ok'})],
        }

    def queue(self, api, *responses):
        self.responses[api] = list(responses)

    def _next(self, api):
        queued = self.responses.get(api)
        if not queued:
            return None
        if len(queued) > 1:
            return queued.pop(0)
        return queued[0]

    def get(self, api, token=None):
        self.calls.append(('get', api, None, token))
        return self._next(api)

    def post(self, api, payload, token=None):
        self.calls.append(('post', api, payload, token))
        if api == LOGIN_API and api not in self.responses:
            self.logins += 1
            return GatewayResponse(200, {'token': 'token-%d' % self.logins})
        return self._next(api)

    def close(self):
        pass

    def requests_to(self, api):
        return [c for c in self.calls if c[1] == api]


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def session(gateway):
    return SessionManager(gateway, 'test@example.com', 'secret')


@pytest.fixture
def bus():
    return TelemetryBus()


@pytest.fixture
def events(bus):
    received = []
    bus.subscribe(received.append)
    return received


@pytest.fixture
def fetcher(session, bus):
    return TelemetryFetcher(session, bus)


@pytest.fixture
def dispatcher(session):
    return CommandDispatcher(session)
