import argparse
import asyncio
import importlib
import logging
import sys

from pydantic import ValidationError

from worker_harness.errors import ConfigurationError, ProtocolError
from worker_harness.harness import WorkerHarness
from worker_harness.log_config import configure_logging
from worker_harness.metrics import start_metrics_server
from worker_harness.settings import get_settings
from worker_harness.worker import Handler

logger = logging.getLogger("worker_harness")


def load_handler(spec: str) -> Handler:
    """Resolves "package.module:function" into the work item handler."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"handler must look like 'module:function', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"cannot import handler module {module_name!r}: {e}") from e
    handler = getattr(module, attr, None)
    if handler is None or not callable(handler):
        raise ConfigurationError(f"{spec!r} is not a callable handler")
    return handler


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="worker-harness", description="Lease and execute work items.")
    parser.add_argument("handler", help="async work item handler as 'module:function'")
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    configure_logging(settings.LOG_LEVEL)
    try:
        handler = load_handler(args.handler)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 2

    if settings.METRICS_PORT:
        start_metrics_server(settings.METRICS_PORT)
        logger.info("Metrics exposed on port %d", settings.METRICS_PORT)

    harness = WorkerHarness.create(settings, handler)
    try:
        asyncio.run(harness.run())
    except ProtocolError:
        logger.exception("Protocol violation from coordinator; exiting")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
