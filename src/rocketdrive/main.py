"""Main application entry point."""

import argparse
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from . import __version__
from .agent import BackupAgent
from .config.loader import ConfigLoader, load_config_from_env
from .config.schema import AgentConfig, ScheduleType
from .config.settings import get_settings
from .exceptions import ConfigurationError
from .scheduler.backup_scheduler import BackupScheduler
from .utils.logging import setup_logging, get_logger

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rocketdrive",
        description="Incremental backup of local folders to Google Drive."
    )
    parser.add_argument("--config", metavar="PATH", help="Settings file (JSON or YAML)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level"
    )
    parser.add_argument("--log-format", choices=["json", "console"], help="Override the configured log format")
    parser.add_argument("--once", action="store_true", help="Run a single backup even if a schedule is configured")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the files the next run would upload without contacting the remote store"
    )
    parser.add_argument(
        "--write-example-config",
        metavar="PATH",
        help="Write an example settings file and exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def record_fatal(error: BaseException, path: Optional[str] = None) -> None:
    """Append one timestamped line (plus traceback) for a top-level crash."""
    fatal_path = Path(path or get_settings().fatal_log_path)
    try:
        fatal_path.parent.mkdir(parents=True, exist_ok=True)
        with open(fatal_path, "a", encoding="utf-8") as f:
            f.write(f"{datetime.now(timezone.utc).isoformat()} {type(error).__name__}: {error}\n")
            f.write("".join(traceback.format_exception(type(error), error, error.__traceback__)))
    except OSError as e:
        print(f"Failed to write fatal log {fatal_path}: {e}", file=sys.stderr)


def configure_logging(config: AgentConfig, args: argparse.Namespace) -> None:
    # Command line beats the settings file, which beats the environment
    setup_logging(
        log_level=args.log_level or config.logging.level,
        log_format=args.log_format or config.logging.format,
        log_file=config.logging.file_path
    )


def dry_run(agent: BackupAgent) -> int:
    logger = get_logger("main")
    candidates = agent.preview()

    for candidate in candidates:
        print(f"{candidate.modified_at.isoformat()}  {candidate.size:>12}  {candidate.path}")

    logger.info("Dry run complete", candidates=len(candidates))
    return EXIT_OK


def run_scheduled(agent: BackupAgent, config: AgentConfig) -> int:
    def job():
        try:
            return agent.run_once()
        except Exception as e:
            record_fatal(e)
            raise

    scheduler = BackupScheduler(job, config.schedule)
    scheduler.start()
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the agent and return the process exit code."""
    args = build_parser().parse_args(argv)

    # Bootstrap logging from the environment until the settings file is read
    setup_logging(log_level=args.log_level, log_format=args.log_format)
    logger = get_logger("main")

    try:
        if args.write_example_config:
            loader = ConfigLoader()
            target = args.write_example_config
            loader.save_to_file(
                loader.create_example_config(),
                target,
                format="yaml" if target.lower().endswith((".yaml", ".yml")) else "json"
            )
            print(f"Example configuration written to {target}")
            return EXIT_OK

        config = load_config_from_env(args.config)
        configure_logging(config, args)
        logger = get_logger("main")

        ConfigLoader().validate_config(config)

        logger.info(
            "Starting RocketDrive backup agent",
            version=__version__,
            folders=len(config.backup_settings.folders),
            schedule=config.schedule.type.value
        )

        agent = BackupAgent(config)

        if args.dry_run:
            return dry_run(agent)

        if config.schedule.type != ScheduleType.ONCE and not args.once:
            return run_scheduled(agent, config)

        status = agent.run_once()
        logger.info(
            "Backup agent finished",
            uploaded=status.files_uploaded,
            errors=status.errors
        )
        return EXIT_OK

    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        record_fatal(e)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        return EXIT_OK
    except Exception as e:
        logger.critical("Backup agent failed", error=str(e), error_type=type(e).__name__)
        record_fatal(e)
        return EXIT_FAILURE


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
