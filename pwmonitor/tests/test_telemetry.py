import threading
import time

import pytest

from pwmonitor.models import AGGREGATES_API, LOGIN_API, SOE_API, GatewayResponse, Metric, TelemetrySample
from pwmonitor.session import SessionManager
from pwmonitor.telemetry import TelemetryFetcher, instant_power


@pytest.fixture
def authed(session):
    session.authenticate()
    return session


def test_poll_publishes_soe_and_power(authed, fetcher, events):
    samples = fetcher.poll_once()
    values = {s.metric: s.value for s in samples}
    assert values == {
        Metric.SOE: 42.0,
        Metric.SOLAR: 2000.0,
        Metric.GRID: 1000.0,
        Metric.BATTERY: -500.0,
        Metric.LOAD: 1500.0,
    }
    assert sorted(e.metric.event_name for e in events) == sorted(
        ['soe-updated', 'solar-updated', 'grid-updated', 'battery-updated', 'load-updated'])


def test_soe_string_percentage_emits_once(authed, fetcher, bus, gateway):
    soe = []
    bus.subscribe(soe.append, Metric.SOE)
    gateway.queue(SOE_API, GatewayResponse(200, {'percentage': '42'}))
    fetcher.poll_once()
    assert soe == [TelemetrySample(Metric.SOE, 42)]


def test_power_samples_in_order(authed, fetcher, gateway):
    samples = fetcher.fetch_aggregates()
    assert [s.metric for s in samples] == [Metric.SOLAR, Metric.GRID, Metric.BATTERY, Metric.LOAD]


def test_missing_battery_meter_emits_zero(authed, fetcher, gateway, bus):
    battery = []
    bus.subscribe(battery.append, Metric.BATTERY)
    gateway.queue(AGGREGATES_API, GatewayResponse(200, {
        'site': {'instant_power': 10}, 'solar': {'instant_power': 20}, 'load': {'instant_power': 30}}))
    fetcher.poll_once()
    assert battery == [TelemetrySample(Metric.BATTERY, 0)]


def test_soe_failure_does_not_block_aggregates(authed, fetcher, gateway, events):
    gateway.queue(SOE_API, None)
    fetcher.poll_once()
    assert Metric.SOE not in [e.metric for e in events]
    assert len(events) == 4


def test_aggregates_error_payload_emits_nothing(authed, fetcher, gateway, events):
    gateway.queue(AGGREGATES_API, GatewayResponse(200, {'error': 'not ready'}))
    fetcher.poll_once()
    assert [e.metric for e in events] == [Metric.SOE]


def test_rejected_session_emits_nothing(authed, fetcher, gateway, events):
    logins = len(gateway.requests_to(LOGIN_API))
    gateway.queue(SOE_API, GatewayResponse(401, {'code': 401, 'error': 'bad token'}))
    gateway.queue(AGGREGATES_API, GatewayResponse(401, None))
    assert fetcher.poll_once() == []
    assert events == []
    assert len(gateway.requests_to(LOGIN_API)) == logins

def test_soe_without_percentage_is_skipped(authed, fetcher, gateway):
    gateway.queue(SOE_API, GatewayResponse(200, {'level': 50}))
    assert fetcher.fetch_soe() == []


def test_poll_without_token_sends_nothing(fetcher, gateway, events, caplog):
    caplog.set_level('INFO')
    assert fetcher.poll_once() == []
    assert gateway.calls == []
    assert events == []
    assert 'Not yet authenticated' in caplog.text


def test_polls_use_cookie_token(authed, fetcher, gateway):
    fetcher.poll_once()
    tokens = {c[3] for c in gateway.requests_to(SOE_API) + gateway.requests_to(AGGREGATES_API)}
    assert tokens == {'token-1'}


def test_failing_subscriber_does_not_stop_others(authed, fetcher, bus, events):
    def broken(sample):
        raise RuntimeError('subscriber bug')

    bus.subscribe(broken)
    fetcher.poll_once()
    assert len(events) == 5


def test_instant_power_defaults():
    assert instant_power({}, 'solar') == 0
    assert instant_power({'solar': None}, 'solar') == 0
    assert instant_power({'solar': {}}, 'solar') == 0
    assert instant_power({'solar': {'instant_power': '12.5'}}, 'solar') == 12.5


class SlowGateway:
    def __init__(self, gateway, delay):
        self.gateway = gateway
        self.delay = delay

    def get(self, api, token=None):
        time.sleep(self.delay)
        return self.gateway.get(api, token)

    def post(self, api, payload, token=None):
        return self.gateway.post(api, payload, token)


def test_overlapping_polls_run_concurrently(gateway, bus, events):
    session = SessionManager(gateway, 'test@example.com', 'secret')
    session.authenticate()
    session.client = SlowGateway(gateway, 0.5)
    fetcher = TelemetryFetcher(session, bus)

    threads = [threading.Thread(target=fetcher.poll_once) for _ in range(4)]
    started = time.monotonic()
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)
    elapsed = time.monotonic() - started

    assert elapsed < 1.0
    assert len(events) == 4 * 5
