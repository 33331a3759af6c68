# pwMonitor Module - Command Line
# -*- coding: utf-8 -*-
"""
 Python module to poll and control a local Tesla Energy Gateway (Powerwall)

 Command Line:
    python -m pwmonitor run               # Poll and print events until interrupted
    python -m pwmonitor poll              # Login, poll once and print the samples
    python -m pwmonitor set -mode backup  # Set operation mode
    python -m pwmonitor set -reserve 35   # Set backup reserve percent
    python -m pwmonitor version

 Settings are read from the environment (or a .env file):
    PW_HOST, PW_EMAIL, PW_PASSWORD (required)
    PW_BASE_PATH, PW_TIMEOUT, PW_POLL_INTERVAL, PW_REAUTH_INTERVAL,
    PW_INITIAL_AUTH_DELAY, PW_RESERVE_PERCENT, PW_MAX_AUTH_RETRIES, PW_DEBUG
"""

import argparse
import json
import logging
import signal
import sys
import threading

import dotenv

from pwmonitor import PowerwallMonitor, MonitorConfig, CommandOutcome, LoginError, version, set_debug
from pwmonitor.exceptions import InvalidConfigurationParameter

log = logging.getLogger("pwmonitor.cli")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pwMonitor", description=f"pwMonitor Module v{version}")
    subparsers = p.add_subparsers(dest="command", title='commands (run <command> -h to see usage information)',
                                  required=True)

    subparsers.add_parser("run", help='Poll the Powerwall and print telemetry events')

    poll_args = subparsers.add_parser("poll", help='Login and run a single telemetry poll')
    poll_args.add_argument("-format", type=str, default="text", help="Output format: text, json")

    set_mode_args = subparsers.add_parser("set", help='Set Powerwall Mode and Reserve Level')
    set_mode_args.add_argument("-mode", type=str, default=None,
                               help="Powerwall Mode: self_consumption, backup (or reserve), autonomous")
    set_mode_args.add_argument("-reserve", type=int, default=None,
                               help="Set Battery Reserve Level (0-100)")

    subparsers.add_parser("version", help='Print version information')

    # Add a global debug flag
    p.add_argument("-debug", action="store_true", default=False, help="Enable debug output")
    return p


def login(monitor: PowerwallMonitor):
    if not monitor.authenticate():
        raise LoginError("Invalid Powerwall Login")


def run(monitor: PowerwallMonitor) -> int:
    stop = threading.Event()

    # noinspection PyUnusedLocal
    def sig_term_handle(signum, frame):
        stop.set()

    signal.signal(signal.SIGTERM, sig_term_handle)
    signal.signal(signal.SIGINT, sig_term_handle)
    monitor.subscribe(lambda sample: print(f"{sample.metric.event_name}: {sample.value}", flush=True))
    monitor.start()
    stop.wait()
    monitor.stop()
    return 0


def poll(monitor: PowerwallMonitor, output_format: str) -> int:
    login(monitor)
    samples = monitor.poll_once()
    result = {s.metric.event_name: s.value for s in samples}
    if output_format == "json":
        print(json.dumps(result, indent=4))
    else:
        for name, value in result.items():
            print(f" {name:<16} {value}")
    return 0 if samples else 1


def set_operation(monitor: PowerwallMonitor, mode, reserve) -> int:
    if mode is None and reserve is None:
        print("ERROR: Nothing to set - use -mode and/or -reserve")
        return 1
    login(monitor)
    outcomes = []
    if reserve is not None:
        outcomes.append(monitor.dispatcher.set_reserve_percent(reserve))
    if mode is not None:
        outcomes.append(monitor.dispatcher.set_mode(mode))
    for outcome in outcomes:
        print(f"Result: {outcome.value}")
    return 0 if all(o == CommandOutcome.COMMITTED for o in outcomes) else 1


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.command == 'version':
        print("pwMonitor [%s]" % version)
        return 0

    dotenv.load_dotenv()
    logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.INFO)
    try:
        config = MonitorConfig.from_env()
    except InvalidConfigurationParameter as exc:
        # Missing or invalid settings are fatal
        log.error(str(exc))
        return 1

    if args.debug or config.debug:
        set_debug(True)
    log.debug(f"Configuration: {config.masked()}")

    monitor = PowerwallMonitor.from_config(config)
    try:
        if args.command == 'run':
            return run(monitor)
        if args.command == 'poll':
            return poll(monitor, args.format)
        return set_operation(monitor, args.mode, args.reserve)
    except LoginError as exc:
        log.error(f"{exc} - check PW_EMAIL and PW_PASSWORD")
        return 1


if __name__ == '__main__':
    sys.exit(main())
