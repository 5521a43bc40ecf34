"""tuberunner CLI."""

import asyncio
import os
import signal
import sys
import traceback
from pathlib import Path

from pydantic import ValidationError

from .config import RunnerSettings, load_configuration_file
from .errors import ConfigurationInvalid, StartFailure
from .handlers import register_handlers
from .lib.logger import Logger, LogLevel, logger
from .lib.registry import HandlerRegistry
from .lib.runner import Runner
from .lib.transport import GreenstalkTransport

EXIT_CODES = {"success": 0, "validation": 2, "failure": 1}
DEBUG_ENABLED = os.getenv("DEBUG", "").lower() in {"1", "true"}


def show_help() -> None:
    """Print CLI help."""
    print(
        """
tuberunner (Python)

Usage:
  python -m tuberunner.cli [options]

Options:
  --config=<path>      JSON runner configuration (default: tuberunner.json)
  --log-level=<level>  debug, info, notice, warning, error, critical, alert, emergency
  --help, -h           Show this help and exit

Environment:
  TUBERUNNER_CONFIG_FILE        JSON runner configuration
  TUBERUNNER_LOG_LEVEL          Minimum log level (default: info)
  TUBERUNNER_RESERVE_TIMEOUT_S  Reservation timeout in seconds (default: 10)

Examples:
  python -m tuberunner.cli --config=workers.json
  TUBERUNNER_LOG_LEVEL=debug python -m tuberunner.cli
"""
    )


def log_unexpected_error(message: str, error: Exception) -> None:
    """Log an unexpected error with optional stack trace."""
    logger.critical(message, {"error": str(error)})
    if DEBUG_ENABLED:
        logger.critical("Stack trace", {"trace": traceback.format_exc()})


async def serve(runner: Runner) -> None:
    """Start the runner and keep it running until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_task: asyncio.Task[dict[str, bool]] | None = None

    def handle_signal(sig: signal.Signals) -> None:
        nonlocal stop_task
        if stop_task is None:
            runner.logger.notice(f"Received {sig.name}, shutting down...")
            stop_task = asyncio.create_task(runner.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal, sig)
        except NotImplementedError:
            # Windows event loops don't support signal handlers.
            pass

    await runner.start()
    runner.logger.info("Runner has started")
    await runner.run_until_stopped()


def main(argv: list[str] | None = None, registry: HandlerRegistry | None = None) -> None:
    """
    CLI entrypoint.

    Args:
        argv: Arguments (defaults to ``sys.argv[1:]``)
        registry: Handler registry; built-in handlers only when omitted
    """
    args = sys.argv[1:] if argv is None else argv
    if "--help" in args or "-h" in args:
        show_help()
        sys.exit(EXIT_CODES["success"])

    try:
        settings = RunnerSettings()
    except ValidationError as e:
        logger.error("Settings error", {"errors": e.errors(include_url=False)})
        sys.exit(EXIT_CODES["validation"])

    for arg in args:
        if arg.startswith("--config="):
            settings.config_file = Path(arg.split("=", 1)[1])
        elif arg.startswith("--log-level="):
            try:
                settings.log_level = LogLevel.parse(arg.split("=", 1)[1])
            except ValueError:
                logger.error("Invalid log level", {"value": arg.split("=", 1)[1]})
                sys.exit(EXIT_CODES["validation"])

    run_logger = Logger(level=settings.log_level)

    if registry is None:
        registry = HandlerRegistry()
        register_handlers(registry)

    try:
        runner = Runner(
            load_configuration_file(settings.config_file),
            registry,
            run_logger,
            transport_factory=GreenstalkTransport,
            reserve_timeout_s=settings.reserve_timeout_s,
        )
    except ConfigurationInvalid as e:
        run_logger.error(e.message, {"errors": e.errors})
        sys.exit(EXIT_CODES["validation"])

    try:
        asyncio.run(serve(runner))
    except StartFailure as e:
        run_logger.emergency("Runner couldn't start", {"error": str(e)})
        sys.exit(EXIT_CODES["failure"])
    except KeyboardInterrupt:
        run_logger.info("Runner interrupted")
    except Exception as e:
        log_unexpected_error("Runner crashed", e)
        sys.exit(EXIT_CODES["failure"])

    sys.exit(EXIT_CODES["success"])


if __name__ == "__main__":
    main()
