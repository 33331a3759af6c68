import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

from pwmonitor.events import TelemetryBus
from pwmonitor.models import AGGREGATE_KEYS, AGGREGATES_API, SOE_API, Metric, TelemetrySample
from pwmonitor.session import SessionManager

log = logging.getLogger(__name__)


def instant_power(payload: dict, key: str) -> float:
    """ Instantaneous power of one aggregates meter, 0 when the meter is missing """
    meter = payload.get(key)
    if not isinstance(meter, dict):
        return 0.0
    try:
        return float(meter.get('instant_power') or 0)
    except (TypeError, ValueError):
        log.debug(f"ERROR unable to parse instant_power for '{key}': {meter!r}")
        return 0.0


class TelemetryFetcher:
    """
    Reads battery level and power flow from the gateway and publishes samples.

    Holds no state between cycles, so overlapping polls are harmless.
    """

    def __init__(self, session: SessionManager, bus: TelemetryBus):
        self.session = session
        self.bus = bus

    def poll_once(self) -> List[TelemetrySample]:
        """ Run the SOE and aggregates queries in parallel; return what was published """
        # One pool per cycle so a slow cycle never queues the next one behind it
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="pwmonitor-poll") as pool:
            futures = [pool.submit(self.fetch_soe), pool.submit(self.fetch_aggregates)]
            samples = []
            for future in futures:
                samples.extend(future.result())
        return samples

    def fetch_soe(self) -> List[TelemetrySample]:
        payload = self._query(SOE_API)
        if payload is None:
            return []
        try:
            level = float(payload['percentage'])
        except (KeyError, TypeError, ValueError) as exc:
            log.debug(f"ERROR unable to parse payload '{payload}' for percentage: {exc}")
            return []
        return self._publish([TelemetrySample(Metric.SOE, level)])

    def fetch_aggregates(self) -> List[TelemetrySample]:
        payload = self._query(AGGREGATES_API)
        if payload is None:
            return []
        if not isinstance(payload, dict):
            log.debug(f"ERROR unexpected aggregates payload '{payload}'")
            return []
        return self._publish([TelemetrySample(metric, instant_power(payload, key))
                              for metric, key in AGGREGATE_KEYS])

    def _query(self, api: str) -> Optional[Any]:
        try:
            response = self.session.get(api)
        except Exception as exc:
            log.error(f'ERROR polling {api}: {exc}')
            return None
        if response is None:
            return None
        if response.auth_rejected:
            log.info('Session rejected by Powerwall for %s - waiting for next authentication' % api)
            return None
        if response.error or not response.ok:
            return None
        log.debug(f'{api} response body: {response.payload!r}')
        return response.payload

    def _publish(self, samples: List[TelemetrySample]) -> List[TelemetrySample]:
        for sample in samples:
            self.bus.publish(sample)
        return samples
