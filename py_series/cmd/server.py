"""Series API server command-line tool."""

import argparse
import sys
from pathlib import Path


def main() -> None:
    """Main entry point for the series API server."""
    parser = argparse.ArgumentParser(
        description="Recurring event series server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve series stored in the current directory
  py-series-server

  # Serve on a specific port from a data directory
  py-series-server --port 8080 /path/to/data

  # Materialize six months ahead when a series is created
  py-series-server --horizon-months 6 /path/to/data

Endpoints:
  - API:  http://localhost:PORT/series
  - Feed: http://localhost:PORT/feed.ics
        """,
    )
    parser.add_argument(
        "--addr",
        default="127.0.0.1",
        help="listening address (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="listening port (default: 8080)",
    )
    parser.add_argument(
        "--horizon-months",
        type=int,
        default=None,
        help="months materialized when a series is created (default: 3)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="enable debug logging (logs request/response bodies and engine decisions)",
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=None,
        help="data directory (default: $PY_SERIES_DATA_DIR or current directory)",
    )

    args = parser.parse_args()

    from py_series.config import SeriesConfig

    config = SeriesConfig()
    if args.directory is not None:
        config.data_dir = Path(args.directory)
    if args.horizon_months is not None:
        if args.horizon_months < 1:
            print("Error: --horizon-months must be at least 1", file=sys.stderr)
            sys.exit(1)
        config.initial_horizon_months = args.horizon_months

    # Validate directory
    directory = config.data_dir.resolve()
    if not directory.exists():
        print(f"Error: directory does not exist: {directory}", file=sys.stderr)
        sys.exit(1)
    if not directory.is_dir():
        print(f"Error: path is not a directory: {directory}", file=sys.stderr)
        sys.exit(1)

    # Setup debug logging if requested
    if args.debug:
        from py_series.debug import setup_debug_logging
        setup_debug_logging()

    from py_series.server import create_app
    from py_series.service import SeriesService
    from py_series.store import LocalSeriesStore

    service = SeriesService(LocalSeriesStore(directory), config)
    app = create_app(service, debug=args.debug)

    # Run with uvicorn
    import uvicorn

    print(f"Series server listening on {args.addr}:{args.port}")
    print(f"Data directory: {directory}")
    print(f"Feed: http://{args.addr}:{args.port}/feed.ics")

    uvicorn.run(
        app,
        host=args.addr,
        port=args.port,
        log_level="debug" if args.debug else "info",
    )


if __name__ == "__main__":
    main()
