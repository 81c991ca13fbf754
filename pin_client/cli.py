#!/usr/bin/env python3
"""PIN client CLI - headless mode.

Usage:
    pin-client --client-id my-pc --secret s3cr3t --server https://dispatch.example.com
    pin-client --client-id my-pc --backend http://localhost:11434
    pin-client --test-backend
    pin-client --forget

Environment variables (alternative to args):
    PIN_CLIENT_ID            Client ID
    PIN_SERVER_URL           Dispatch service URL (http(s):// or ws(s)://)
    PIN_BACKEND_URL          Local model backend (default: http://localhost:11434)
    PIN_CONCURRENT_REQUESTS  "true" to serve inference requests concurrently
    PIN_CLIENT_HOME          Override the data directory
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .backend import BackendClient
from .config import PinConfig, get_config_value
from .credentials import CredentialStore, resolve_identity
from .errors import BackendError, ConfigError, PinClientError
from .runtime import RuntimeInfo, write_runtime_info
from .session import SessionHandle, SessionManager
from .state import StateStore

log = logging.getLogger("pin_client")
console = Console()


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def build_backend() -> BackendClient:
    return BackendClient(
        list_timeout=get_config_value("LIST_MODELS_TIMEOUT"),
        chat_timeout=get_config_value("CHAT_TIMEOUT"),
    )


def build_manager(state: StateStore, config: PinConfig, log_callback=None) -> SessionManager:
    return SessionManager(
        state=state,
        backend=build_backend(),
        auth_timeout=get_config_value("AUTH_TIMEOUT"),
        send_timeout=get_config_value("SEND_TIMEOUT"),
        concurrent_requests=config.concurrent_requests,
        log_callback=log_callback,
    )


class PinClientCLI:
    """Headless client: one session, until stopped or ended by the server."""

    def __init__(self, config: PinConfig, store: CredentialStore):
        self.config = config
        self.store = store
        self.state = StateStore()
        self.manager = build_manager(self.state, config)
        self._handle: Optional[SessionHandle] = None
        self._runtime: Optional[RuntimeInfo] = None
        self._start_time: Optional[datetime] = None

    async def run(self) -> int:
        """Run the client. Returns exit code."""
        self._start_time = datetime.now()

        log.info("=" * 50)
        log.info("PIN client - Starting")
        log.info("=" * 50)

        try:
            identity = resolve_identity(self.config.client_id, self.store)
            server_url = self.config.resolved_server_url()
            backend_url = self.config.resolved_backend_url()

            log.info(f"Client ID: {identity.client_id}")
            log.info(f"Backend: {backend_url}")

            self._handle = await self.manager.connect(server_url, identity, backend_url)
        except PinClientError as e:
            log.error(f"{e}")
            await self.manager.close()
            return 1

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

        self._runtime = write_runtime_info(self.state.snapshot())
        try:
            while not self._handle.done:
                await asyncio.sleep(1)
                self._runtime.update_status(self.state.snapshot())
                self._log_stats()
            cause = await self._handle.wait()
            return 0 if cause is None else 1
        finally:
            await self._cleanup()

    def _shutdown(self) -> None:
        """Graceful shutdown."""
        if self._handle is not None:
            log.info("Shutting down...")
            self.manager.disconnect(self._handle)

    def _log_stats(self) -> None:
        """Log periodic stats (every 60 seconds)."""
        if not self._start_time:
            return

        elapsed = (datetime.now() - self._start_time).total_seconds()
        if int(elapsed) % 60 == 0 and int(elapsed) > 0:
            snapshot = self.state.snapshot()
            mins = int(elapsed // 60)
            log.info(
                f"Stats: {mins}m uptime | "
                f"{snapshot.total_requests} requests | "
                f"load {snapshot.current_load}"
            )

    async def _cleanup(self) -> None:
        """Cleanup resources."""
        await self.manager.close()
        RuntimeInfo.clear()
        log.info("Goodbye!")


async def test_backend(backend_url: str) -> int:
    """List the backend's models as a table."""
    backend = build_backend()
    try:
        models = await backend.list_models(backend_url)
    except BackendError as e:
        log.error(f"{e}")
        return 1
    finally:
        await backend.close()

    table = Table(title=f"Models at {backend_url}")
    table.add_column("#", justify="right")
    table.add_column("Model")
    for i, name in enumerate(models, start=1):
        table.add_row(str(i), name)
    console.print(table)
    return 0


def apply_args(config: PinConfig, args: argparse.Namespace) -> bool:
    """Merge command-line settings into the config. Returns True if changed."""
    changed = False
    for attr, value in (
        ("client_id", args.client_id),
        ("server_url", args.server),
        ("backend_url", args.backend),
    ):
        if value and getattr(config, attr) != value:
            setattr(config, attr, value)
            changed = True
    if args.concurrent is not None and config.concurrent_requests != args.concurrent:
        config.concurrent_requests = args.concurrent
        changed = True
    return changed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pin-client",
        description="PIN client - relay inference requests to a local model backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pin-client --client-id my-pc --secret s3cr3t --server https://dispatch.example.com
  pin-client --test-backend --backend http://localhost:11434
  pin-client --forget
  pin-client status
        """,
    )
    parser.add_argument("--client-id", default="", help="Client ID (saved for next time)")
    parser.add_argument(
        "--secret",
        default="",
        help="API secret; stored in the local credential store",
    )
    parser.add_argument("--server", default="", help="Dispatch service URL")
    parser.add_argument("--backend", default="", help="Local model backend URL")
    parser.add_argument(
        "--concurrent",
        dest="concurrent",
        action="store_true",
        default=None,
        help="Serve inference requests concurrently instead of one at a time (saved)",
    )
    parser.add_argument(
        "--no-concurrent",
        dest="concurrent",
        action="store_false",
        help="Serve inference requests one at a time (saved; PIN_CONCURRENT_REQUESTS=true still wins)",
    )
    parser.add_argument(
        "--test-backend",
        action="store_true",
        help="List the backend's models and exit",
    )
    parser.add_argument(
        "--forget",
        action="store_true",
        help="Delete the stored secret for the client ID and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: Optional[list[str]] = None):
    """CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    config = PinConfig.load()
    store = CredentialStore()

    if args.test_backend:
        backend_url = args.backend or config.resolved_backend_url()
        sys.exit(asyncio.run(test_backend(backend_url)))

    client_id = args.client_id or config.client_id

    try:
        if args.forget:
            if not client_id:
                log.error("No client ID configured. Use --client-id")
                sys.exit(1)
            if store.delete(client_id):
                log.info(f"Forgot credentials for {client_id}")
            else:
                log.info(f"No credentials stored for {client_id}")
            sys.exit(0)

        if apply_args(config, args):
            config.save()
        if args.secret:
            store.store(config.client_id, args.secret)
    except ConfigError as e:
        log.error(f"{e}")
        sys.exit(1)

    cli = PinClientCLI(config, store)
    exit_code = asyncio.run(cli.run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
