import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from rich.console import Console
from rich.logging import RichHandler

from ws_relay.config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_UPSTREAM_URL, RelayConfig
from ws_relay.dashboard import DashboardRenderer
from ws_relay.relay import Relay

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="WebSocket relay - pairs every client with a connection to a fixed upstream"
    )
    parser.add_argument(
        "upstream_url",
        nargs="?",
        default=DEFAULT_UPSTREAM_URL,
        help=f"WebSocket URL of the upstream server (default: {DEFAULT_UPSTREAM_URL})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on for downstream clients (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Host to listen on for downstream clients (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose debug logging (includes message payloads)",
    )
    parser.add_argument(
        "--max-message-size",
        type=int,
        default=0,
        help="Maximum websocket message size in bytes (<=0 disables limit, default: unlimited)",
    )
    parser.add_argument(
        "--max-sessions",
        type=int,
        default=0,
        help="Maximum number of concurrent sessions (0 means unlimited, default: 0)",
    )
    parser.add_argument(
        "--open-timeout",
        type=float,
        default=10.0,
        help="Timeout in seconds for opening the upstream connection (<=0 waits forever)",
    )

    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Disable the live dashboard display",
    )
    parser.add_argument(
        "--dashboard-refresh-rate",
        type=float,
        default=1.0,
        help="Dashboard refresh rate in seconds (default: 1.0)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RelayConfig:
    """Translate parsed arguments into a RelayConfig."""
    return RelayConfig(
        upstream_url=args.upstream_url,
        host=args.host,
        port=args.port,
        max_message_size=args.max_message_size if args.max_message_size > 0 else None,
        open_timeout=args.open_timeout if args.open_timeout > 0 else None,
        max_sessions=max(args.max_sessions, 0),
    )


async def main_async(args: argparse.Namespace) -> None:
    """Async main function."""
    console = Console()
    relay = Relay(build_config(args))

    dashboard = None
    if not args.no_dashboard:
        dashboard = DashboardRenderer(
            relay, refresh_rate=args.dashboard_refresh_rate, console=console
        )
        # Start dashboard BEFORE configuring logging
        dashboard.start_sync()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=args.verbose,
            )
        ],
    )

    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        asyncio.create_task(relay.stop())  # noqa: RUF006

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        if dashboard:
            dashboard_task = asyncio.create_task(dashboard.run_updates())
            try:
                await relay.serve_forever()
            finally:
                dashboard_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await dashboard_task
                await dashboard.stop()
        else:
            await relay.serve_forever()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception:
        logger.exception("Unexpected error in relay")
        sys.exit(1)
    finally:
        await relay.stop()
        if dashboard:
            await dashboard.stop()


def main() -> None:
    """Main entry point."""
    args = parse_args()

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Exiting")


if __name__ == "__main__":
    main()
