"""Main entry point for the campus-notify service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from campus_notify.config.environment import EnvironmentConfig
from campus_notify.config.exceptions import ConfigurationError
from campus_notify.config.loader import load_config, validate_config_file
from campus_notify.config.models import AppConfig
from campus_notify.directory import RecipientDirectory, SqlRecipientDirectory
from campus_notify.logging import get_logger
from campus_notify.logging.config import configure_logging
from campus_notify.notifications.coordinator import NotificationCoordinator
from campus_notify.notifications.dispatcher import EmailDispatcher
from campus_notify.notifications.transport import SMTPTransport, build_sender_address
from campus_notify.persistence.database import close_database, init_database
from campus_notify.persistence.store import NotificationStore
from campus_notify.retention import RetentionSweeper
from campus_notify.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_dispatcher(
    app_config: AppConfig, env_config: EnvironmentConfig
) -> Optional[EmailDispatcher]:
    """Return an SMTP-backed dispatcher, or None when email is disabled or unconfigured."""
    if not app_config.email.enabled or not env_config.email_enabled:
        logger.info(
            "Email channel disabled; notices will be stored in-app only",
            extra={"event": "email.disabled"},
        )
        return None

    transport = SMTPTransport.from_environment(
        env_config,
        use_tls=app_config.email.use_tls,
        timeout=app_config.email.timeout_seconds,
    )
    return EmailDispatcher(transport, sender=build_sender_address(env_config))


def build_coordinator(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    store: Optional[NotificationStore] = None,
    directory: Optional[RecipientDirectory] = None,
) -> NotificationCoordinator:
    """Wire a coordinator from configuration. The database must already be initialized."""
    store = store or NotificationStore()
    sweeper = RetentionSweeper(store, retention_days=app_config.retention.retention_days)
    return NotificationCoordinator(
        store=store,
        dispatcher=build_dispatcher(app_config, env_config),
        directory=directory or SqlRecipientDirectory(),
        sweeper=sweeper,
    )


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for campus-notify.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="campus-notify - notification storage, email dispatch and retention sweeps"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then built-in defaults)",
    )
    parser.add_argument(
        "--sweep-once",
        action="store_true",
        help="Run a single retention sweep and exit",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    args = parser.parse_args(argv)

    if args.validate_config:
        config_path = args.config or Path("config.yaml")
        if not config_path.exists():
            print(f"Configuration file not found: {config_path}", file=sys.stderr)
            return 1
        return 0 if validate_config_file(config_path) else 1

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            "campus-notify starting",
            extra={
                "event": "service.starting",
                "log_level": env_config.log_level,
                "sweep_once": args.sweep_once,
            },
        )

        init_database(env_config.database_url)

        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "retention_days": app_config.retention.retention_days,
                "sweep_interval_seconds": app_config.retention.sweep_interval_seconds,
                "email_enabled": app_config.email.enabled and env_config.email_enabled,
            },
        )

        store = NotificationStore()
        sweeper = RetentionSweeper(store, retention_days=app_config.retention.retention_days)

        if args.sweep_once:
            deleted = sweeper.sweep()
            close_database()
            logger.info(
                f"Sweep completed: {deleted} notices deleted",
                extra={
                    "event": "service.sweep_once.completed",
                    "deleted_count": deleted,
                    "uptime_seconds": round(time.time() - start_time, 2),
                },
            )
            return 0

        shutdown_event = threading.Event()
        scheduler_service = SchedulerService(
            sweep_callable=sweeper.sweep,
            interval_seconds=app_config.retention.sweep_interval_seconds,
            shutdown_event=shutdown_event,
        )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            scheduler_service.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler_service.start()
        logger.info(
            "Scheduler started. Press Ctrl+C to stop",
            extra={"event": "service.daemon_mode.started"},
        )

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            scheduler_service.shutdown(wait=False)
        finally:
            close_database()

        logger.info(
            "campus-notify stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
