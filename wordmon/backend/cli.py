"""Command line entry point: run a game session locally or behind the HTTP API."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from wordmon.backend import __version__
from wordmon.backend.config import BackendSettings, load_settings
from wordmon.backend.ledger import describe_player
from wordmon.backend.service import GameService
from wordmon.backend.snapshot import restore_snapshot
from wordmon.backend.store import InMemoryPlayerStore, create_store

logger = logging.getLogger("wordmon")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="wordmon", description="WordMon - catch words by solving anagrams")
    parser.add_argument("-v", "--version", action="store_true", help="print the version and exit")
    parser.add_argument("-p", "--player", default="Guest", help="player name")
    parser.add_argument("--serve", action="store_true", help="serve the HTTP API instead of simulating the player")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run_simulation(service: GameService) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, service.stop)
        except NotImplementedError:
            pass
    await service.run()


def serve(service: GameService, settings: BackendSettings) -> None:
    import uvicorn

    from wordmon.backend.api import create_app

    def shutdown() -> None:
        server.should_exit = True

    app = create_app(service=service, on_crash=shutdown)
    server = uvicorn.Server(uvicorn.Config(app, host=settings.host, port=settings.port))
    server.run()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.version:
        print(f"v{__version__}")
        return 0

    settings = load_settings()
    configure_logging(settings.log_level)
    store = create_store(settings.database_url)
    if isinstance(store, InMemoryPlayerStore) and settings.snapshot_path:
        restored = restore_snapshot(store, settings.snapshot_path)
        if restored:
            logger.info("restored %d player(s) from %s", restored, settings.snapshot_path)
    service = GameService.create(
        settings=settings,
        store=store,
        player_name=args.player.strip() or "Guest",
        simulate_player=not args.serve,
    )
    logger.info("WordMon v%s, %s", __version__, describe_player(service.player))

    if args.serve:
        serve(service, settings)
    else:
        asyncio.run(run_simulation(service))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
