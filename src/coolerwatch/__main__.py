"""
Entry point for the coolerwatch CLI.

Usage:
    coolerwatch                  Run the alert sweep service (scheduled)
    coolerwatch --run-once       Run one sweep immediately and exit
    coolerwatch --dry-run        Log alerts instead of sending them
    coolerwatch --test           Validate configuration and the store, then exit
    coolerwatch --status         Print the status of every cooler and exit
    coolerwatch --version        Show version and exit

Exit Codes:
    0 - Success
    1 - Configuration error (invalid settings, bad schedule)
    2 - Store error (fleet store unreadable or unwritable)
    3 - Sweep failed (every rule failed, or a sweep was already running)
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from types import FrameType

    from coolerwatch.alerts import AlertEngine
    from coolerwatch.config import CoolerWatchSettings
    from coolerwatch.storage import JsonFleetStore

from coolerwatch import __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_STORE_ERROR = 2
EXIT_SWEEP_ERROR = 3

# Engine shared across scheduled sweeps; rebuilt after a config reload
_engine: Optional["AlertEngine"] = None
_engine_lock = threading.Lock()
_dry_run = False


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="coolerwatch",
        description="Monitor drug coolers and alert on temperature, battery, and expiry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   Success
  1   Configuration error
  2   Store error
  3   Sweep failed

Environment Variables:
  CONFIG_PATH                          Path to YAML configuration file
  COOLERWATCH_STORE_PATH               JSON fleet store (default: ./data/fleet.json)
  COOLERWATCH_GATEWAY_ENDPOINTS        Comma-separated push endpoint URLs
  COOLERWATCH_GATEWAY_TOKEN_FILE       File containing the gateway token (Docker secrets)
  COOLERWATCH_SCHEDULE_PRESET          every_5_minutes, every_15_minutes, hourly
  COOLERWATCH_SCHEDULE_CRON            5-field cron expression
  COOLERWATCH_TEMPERATURE_ALERT_MODE   edge or level
  COOLERWATCH_DISPATCH_SUCCESS_POLICY  any, all, or non_exception
  COOLERWATCH_LOG_LEVEL                Logging level: DEBUG, INFO, WARNING, ERROR
  COOLERWATCH_LOG_FORMAT               Log format: json or text

Examples:
  # Run with config file
  CONFIG_PATH=/etc/coolerwatch/config.yaml coolerwatch

  # See what would be sent without contacting any endpoint
  coolerwatch --run-once --dry-run

  # Register a push endpoint
  coolerwatch --register-endpoint https://push.example.org/hooks/ward-3
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Validate configuration and the fleet store, then exit",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run one sweep immediately and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log alerts instead of sending them",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the status of every cooler and exit",
    )
    parser.add_argument(
        "--register-endpoint",
        metavar="URL",
        help="Register a push endpoint and exit",
    )
    return parser.parse_args(argv)


def handle_sighup(signum: int, frame: Optional[FrameType]) -> None:
    """Reload configuration on SIGHUP; the next sweep uses a fresh engine."""
    global _engine
    from coolerwatch.config.loader import reload_config
    from coolerwatch.logging import get_logger

    log = get_logger()
    log.info("received_sighup", action="reloading configuration")
    try:
        reload_config()
    except (Exception, SystemExit) as e:
        log.error("config_reload_failed", error=str(e))
        return
    with _engine_lock:
        _engine = None
    log.info("config_reloaded", status="success")


def print_banner(config: "CoolerWatchSettings", dry_run: bool = False) -> None:
    """Print startup banner with version and configuration summary."""
    schedule = config.get_schedule()
    lines = [
        "",
        f"CoolerWatch v{__version__}",
        "=" * 40,
        f"Store:         {config.store_path}",
        f"Schedule:      {next(iter(schedule.values()), 'one-shot')}",
        f"Temp Alerts:   {config.temperature_alert_mode.value}",
        f"Dispatch:      {'dry run (log only)' if dry_run else config.dispatch_success_policy.value}",
        f"Log Level:     {config.log_level}",
        f"Log Format:    {config.log_format}",
        "=" * 40,
        "",
    ]
    for line in lines:
        print(line)


def open_store(config: "CoolerWatchSettings") -> "JsonFleetStore":
    from coolerwatch.storage import JsonFleetStore

    return JsonFleetStore(config.store_path)


def build_engine(config: "CoolerWatchSettings", dry_run: bool = False) -> "AlertEngine":
    """Wire store, gateway, dispatcher and rules from configuration.

    Raises:
        PersistenceError: If the store file cannot be read
    """
    from coolerwatch.alerts import AlertEngine, RuleOptions, get_default_registry
    from coolerwatch.compliance import CoolerStatusAggregator
    from coolerwatch.delivery import DispatchManager, LogGateway, PushGateway, create_circuit_breaker
    from coolerwatch.models.enums import DispatchPolicy

    store = open_store(config)
    configured = config.get_gateway_endpoints()

    def endpoints() -> List[str]:
        registered = store.list_endpoints()
        return registered + [url for url in configured if url not in registered]

    if dry_run:
        gateway = LogGateway()
        policy = DispatchPolicy.ANY
    else:
        headers = {"Authorization": f"Bearer {config.gateway_token}"} if config.gateway_token else None
        gateway = PushGateway(
            endpoints=endpoints,
            timeout=config.gateway_timeout,
            max_retries=config.gateway_max_retries,
            headers=headers,
        )
        policy = config.dispatch_success_policy

    dispatcher = DispatchManager(
        gateway,
        policy=policy,
        breaker=create_circuit_breaker(
            gateway.name,
            fail_max=config.circuit_fail_max,
            reset_timeout=config.circuit_reset_timeout,
        ),
    )
    thresholds = config.get_thresholds()
    options = RuleOptions(
        temperature_alert_mode=config.temperature_alert_mode,
        alert_disabled_coolers=config.alert_disabled_coolers,
        thresholds=thresholds,
    )
    return AlertEngine(
        store,
        dispatcher,
        registry=get_default_registry(options, disabled=config.disabled_rules()),
        aggregator=CoolerStatusAggregator(thresholds),
    )


def get_engine() -> "AlertEngine":
    global _engine
    from coolerwatch.config.loader import get_config

    with _engine_lock:
        if _engine is None:
            _engine = build_engine(get_config(), dry_run=_dry_run)
        return _engine


def run_sweep_job() -> bool:
    """Run one sweep and record the outcome.

    Called by the scheduler on each run, or once in one-shot mode. The
    store is re-read first so edits made by other processes are seen.

    Returns:
        True if the sweep completed
    """
    from coolerwatch.config.loader import get_config
    from coolerwatch.exceptions import CoolerWatchError
    from coolerwatch.health import record_sweep_failure, record_sweep_health
    from coolerwatch.logging import get_logger
    from coolerwatch.state import StateManager

    log = get_logger()
    config = get_config()
    state_manager = StateManager(state_dir=config.state_dir)

    try:
        engine = get_engine()
        engine.store.reload()
        report = engine.sweep()
    except CoolerWatchError as e:
        log.error("job_failed", error=e.message)
        record_sweep_failure(e.message, state_manager.read_last_sweep())
        return False

    try:
        state_manager.record_sweep(report)
    except OSError as e:
        log.warning("state_write_failed", error=str(e))

    record_sweep_health(report)
    log.info(
        "job_complete",
        alerts_dispatched=report.alerts_dispatched,
        dispatch_failures=report.dispatch_failures,
    )
    return True


def print_fleet_status(config: "CoolerWatchSettings") -> None:
    """Print the last sweep, then one line per cooler."""
    from coolerwatch.alerts import FleetSnapshot
    from coolerwatch.compliance import CoolerStatusAggregator
    from coolerwatch.state import StateManager
    from coolerwatch.utils.timestamps import isoformat_or_none, utcnow

    state = StateManager(state_dir=config.state_dir).read_state()
    last_sweep = state.last_successful_sweep if state else None
    print(f"Last sweep: {isoformat_or_none(last_sweep) or 'never'}")
    if state is not None:
        print(f"  Alerts: {state.alerts_dispatched}  Dispatch failures: {state.dispatch_failures}")
        if state.failed_stages:
            print(f"  Failed stages: {', '.join(state.failed_stages)}")

    store = open_store(config)
    aggregator = CoolerStatusAggregator(config.get_thresholds())
    snapshot = FleetSnapshot.load(store, aggregator, utcnow())
    fleet = aggregator.evaluate_fleet(
        list(snapshot.coolers.values()), snapshot.drugs_by_cooler(), snapshot.now
    )

    print(f"Coolers: {fleet.total_coolers}  All clear: {fleet.all_clear_count}")
    for status in fleet.statuses:
        cooler = snapshot.coolers[status.cooler_id]
        flags = []
        if status.disabled:
            flags.append("disabled")
        if status.is_unreachable:
            flags.append("unreachable")
        if not status.availability:
            flags.append("unavailable")
        if status.temperature_warning:
            flags.append(f"temperature ({len(status.drugs_over_max)} drug(s) over max)")
        if status.battery_warning:
            flags.append("battery low")
        elif status.battery_below_average:
            flags.append("battery below average")
        if status.unusable_drug_count:
            flags.append(f"{status.unusable_drug_count} unusable")
        if status.expired_drug_count:
            flags.append(f"{status.expired_drug_count} expired")
        print(f"  {cooler.label} [{cooler.id}]: {', '.join(flags) or 'ok'}")
    for cooler_id, reason in fleet.skipped.items():
        print(f"  {cooler_id}: skipped ({reason})")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for coolerwatch.

    Returns:
        Exit code (0=success, 1=config error, 2=store error, 3=sweep failed)
    """
    global _dry_run
    args = parse_args(argv)

    from coolerwatch.config.loader import ConfigurationError, load_config
    from coolerwatch.exceptions import CoolerWatchError, PersistenceError, ValidationError
    from coolerwatch.health import HealthStatus, clear_health_status, update_health_status
    from coolerwatch.logging import configure_logging, get_logger
    from coolerwatch.scheduler import ScheduledRunner, SchedulerError

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SystemExit as e:
        # Validation errors cause sys.exit(1) in loader
        return e.code if isinstance(e.code, int) else EXIT_CONFIG_ERROR

    configure_logging(log_format=config.log_format, log_level=config.log_level)
    log = get_logger()
    _dry_run = args.dry_run

    if args.register_endpoint:
        try:
            added = open_store(config).register_endpoint(args.register_endpoint)
        except ValidationError as e:
            print(f"Invalid endpoint: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR
        except PersistenceError as e:
            print(f"Store error: {e}", file=sys.stderr)
            return EXIT_STORE_ERROR
        print("Endpoint registered" if added else "Endpoint already registered")
        return EXIT_SUCCESS

    if args.status:
        try:
            print_fleet_status(config)
        except PersistenceError as e:
            print(f"Store error: {e}", file=sys.stderr)
            return EXIT_STORE_ERROR
        return EXIT_SUCCESS

    if args.test:
        update_health_status(HealthStatus.STARTING)
        try:
            print_banner(config, dry_run=args.dry_run)
            ScheduledRunner(timezone=config.schedule_timezone).build_trigger(**config.get_schedule())
            store = open_store(config)
            print(f"Coolers: {len(store.list_coolers())}  Drugs: {len(store.list_drugs())}")
            print(f"Endpoints: {len(store.list_endpoints()) + len(config.get_gateway_endpoints())}")
            print("Configuration and store: OK")
            return EXIT_SUCCESS
        except SchedulerError as e:
            print(f"\nSchedule error: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR
        except CoolerWatchError as e:
            log.error("test_failed", error=e.message)
            print(f"\nStore error: {e}", file=sys.stderr)
            return EXIT_STORE_ERROR
        finally:
            clear_health_status()

    if args.run_once:
        print_banner(config, dry_run=args.dry_run)
        log.info("run_once_mode", message="Running single sweep")
        update_health_status(HealthStatus.STARTING)
        try:
            ok = run_sweep_job()
        finally:
            clear_health_status()
        return EXIT_SUCCESS if ok else EXIT_SWEEP_ERROR

    print_banner(config, dry_run=args.dry_run)
    log.info("starting", version=__version__)
    update_health_status(HealthStatus.STARTING)

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_sighup)

    runner = ScheduledRunner(timezone=config.schedule_timezone)
    log.info("service_starting", timezone=config.schedule_timezone, **config.get_schedule())

    try:
        runner.run(func=run_sweep_job, **config.get_schedule())
        return EXIT_SUCCESS
    except SchedulerError as e:
        log.error("schedule_invalid", error=e.message)
        print(f"Schedule error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard interrupt")
        print("\nShutdown requested, exiting...")
        runner.shutdown()
        return EXIT_SUCCESS
    finally:
        clear_health_status()


if __name__ == "__main__":
    sys.exit(main())
