"""
Command-line interface for running transformation jobs.

Usage:
    python -m framepipe.cli.job_cli run --job <job.yaml> [options]
    python -m framepipe.cli.job_cli sql --product <product> --command <command>
"""

import argparse
import signal
import sys

from dotenv import load_dotenv

from framepipe.context.listener import LoggingListener
from framepipe.core.exceptions import FramePipeError
from framepipe.db.dialect import DialectRegistry
from framepipe.engine.loader import JobConfigLoader, build_engine
from framepipe.engine.pipeline import TransformEngine
from framepipe.observability.logger import get_logger

logger = get_logger(__name__)

# Engine currently running, for the signal handlers
_engine: TransformEngine | None = None


def signal_handler(signum, frame):  # type: ignore[no-untyped-def]
    """
    Handle shutdown signals (SIGINT, SIGTERM) by asking the running job to stop.

    The frame loop stops before the next frame and teardown runs normally.
    """
    signal_name = signal.Signals(signum).name
    logger.info(f"Received {signal_name} signal, terminating job...")
    if _engine is not None:
        _engine.terminate(f"received {signal_name}")


def run_command(args: argparse.Namespace) -> int:
    """
    Load and run a job.

    Returns:
        Exit code (0 when the job completed)
    """
    global _engine

    try:
        loader = JobConfigLoader(args.job)
        config = loader.load()
        for assignment in args.symbol or []:
            key, _, value = assignment.partition("=")
            config.symbols[key] = value
        if args.work_dir:
            config.work_dir = args.work_dir

        listeners = [LoggingListener()]
        if args.metrics_port:
            from framepipe.observability.metrics import MetricsListener, start_metrics_server

            start_metrics_server(args.metrics_port)
            listeners.append(MetricsListener())

        _engine = build_engine(config, listeners=listeners)
    except (FileNotFoundError, FramePipeError) as e:
        logger.error(f"Cannot load job: {e}")
        return 1

    previous = {sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}

    try:
        result = _engine.run()
    except FramePipeError as e:
        logger.error(f"Job '{config.name}' failed: {e}")
        return 1
    finally:
        _engine = None
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    logger.info("=" * 60)
    logger.info(f"JOB {result.status.value.upper()}: {result.job_name}")
    logger.info("=" * 60)
    logger.info(f"Frames read: {result.counters.read}")
    logger.info(f"Frames rejected: {result.counters.rejected}")
    logger.info(f"Frames written: {result.counters.written}")
    logger.info(f"Frames failed: {result.counters.failed}")
    logger.info(f"Validation failures: {result.counters.validation_failures}")
    if result.error_message:
        logger.info(f"Error: {result.error_message}")
    logger.info("=" * 60)

    return 0 if result.succeeded else 1


def sql_command(args: argparse.Namespace) -> int:
    """Print the raw template a dialect uses for a command."""
    registry = DialectRegistry.default()
    if args.product not in registry:
        print(f"Unknown product '{args.product}'. Known: {', '.join(registry.products)}", file=sys.stderr)
        return 1

    template = registry.render_command(args.product, args.sql_command)
    if template is None:
        print(f"{args.product} has no template for '{args.sql_command}'", file=sys.stderr)
        return 1

    print(template)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Batch frame transformation jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a job
  python -m framepipe.cli.job_cli run --job jobs/nightly.yaml

  # Override symbols and expose metrics
  python -m framepipe.cli.job_cli run --job jobs/nightly.yaml \\
      --symbol region=EU --metrics-port 8000

  # Inspect the PostgreSQL UPDATE template
  python -m framepipe.cli.job_cli sql --product PostgreSQL --command update
        """
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Load environment variables from this file (default: .env if present)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a job")
    run_parser.add_argument(
        "--job",
        required=True,
        help="Path to job YAML file"
    )
    run_parser.add_argument(
        "--symbol",
        action="append",
        metavar="KEY=VALUE",
        help="Set a symbol before the run (repeatable)"
    )
    run_parser.add_argument(
        "--work-dir",
        default=None,
        help="Directory relative reader/writer paths resolve against"
    )
    run_parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port"
    )

    sql_parser = subparsers.add_parser("sql", help="Print a dialect template")
    sql_parser.add_argument(
        "--product",
        required=True,
        help="Database product (e.g. PostgreSQL, MySQL, Oracle, H2, SQLite)"
    )
    sql_parser.add_argument(
        "--command",
        dest="sql_command",
        required=True,
        help="Command name (create, insert, update, select, ...)"
    )

    args = parser.parse_args(argv)

    load_dotenv(args.env_file)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "run":
        return run_command(args)

    return sql_command(args)


if __name__ == "__main__":
    sys.exit(main())
