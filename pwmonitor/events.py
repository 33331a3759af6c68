import logging
import threading
from typing import Callable, Dict, List, Optional

from pwmonitor.models import Metric, TelemetrySample

log = logging.getLogger(__name__)

Subscriber = Callable[[TelemetrySample], None]


class TelemetryBus:
    """
    Publish/subscribe channel for telemetry samples.

    Subscribers register for one Metric or, with metric=None, for all of them.
    A subscriber that raises is logged and does not affect the others.
    """

    def __init__(self):
        self._subscribers: Dict[Optional[Metric], List[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber, metric: Optional[Metric] = None) -> Callable[[], None]:
        """ Register callback and return a function that unregisters it """
        with self._lock:
            self._subscribers.setdefault(metric, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._subscribers.get(metric, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, sample: TelemetrySample):
        with self._lock:
            callbacks = list(self._subscribers.get(sample.metric, [])) + list(self._subscribers.get(None, []))
        log.debug('%s: %s' % (sample.metric.event_name, sample.value))
        for callback in callbacks:
            try:
                callback(sample)
            except Exception as exc:
                log.error(f'Subscriber {callback!r} failed on {sample.metric.event_name}: {exc}')
