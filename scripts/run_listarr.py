"""
Listarr Service
===============
Runs the complete service:
1. Load configuration (fatal on error)
2. Load id-lookup snapshots and the ledger
3. Run an initial scrape pass
4. Refresh periodically and serve the import lists

Usage:
    python scripts/run_listarr.py [--config PATH] [--port PORT] [--once]
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import (
    JIKAN_MIN_DELAY,
    LETTERBOXD_MIN_DELAY,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    AppSettings,
    ConfigurationError,
    load_settings,
)
from listarr.adapters import JikanClient, LetterboxdAdapter, MyAnimeListAdapter
from listarr.http_client import HttpClient, RateLimiter
from listarr.id_lookup import IdLookup
from listarr.ledger import Ledger
from listarr.notifications import DiscordNotifier
from listarr.store import EntryStore
from listarr.sync import RefreshScheduler, WatchlistSync

logger = logging.getLogger("listarr")


# ==============================================================================
# LOGGING SETUP
# ==============================================================================

def setup_logging(settings: Optional[AppSettings] = None):
    """Console logging, plus a log file under the data directory when settings are known"""
    handlers = [logging.StreamHandler()]
    level = 'INFO'
    if settings is not None:
        level = settings.log_level.upper()
        try:
            settings.log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(settings.log_path))
        except OSError as e:
            print(f"Warning: file logging disabled ({e})", file=sys.stderr)

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, handlers=handlers, force=True)


# ==============================================================================
# SERVICE
# ==============================================================================

def build_sync(settings: AppSettings, notifier: DiscordNotifier) -> WatchlistSync:
    """Wire clients, id lookup, ledger, adapters and store into a WatchlistSync"""
    snapshot_client = HttpClient()
    letterboxd_client = HttpClient(RateLimiter(LETTERBOXD_MIN_DELAY))
    jikan_client = HttpClient(RateLimiter(JIKAN_MIN_DELAY))
    # list export lives on myanimelist.net, paced like Jikan
    mal_list_client = HttpClient(RateLimiter(JIKAN_MIN_DELAY))

    id_lookup = IdLookup.load(snapshot_client)
    if id_lookup.load_errors:
        for error in id_lookup.load_errors:
            logger.warning(f"  - {error}")
        notifier.notify_error(
            "ID Lookup Database Load Failed",
            f"Failed to load {len(id_lookup.load_errors)} ID lookup database(s). "
            "The application will continue but some ID mappings may be unavailable.",
            RuntimeError("; ".join(id_lookup.load_errors)),
        )

    ledger = Ledger.load(settings.ledger_path)
    store = EntryStore(ledger.published_entries())
    logger.info(f"Loaded {len(store)} existing entries from {settings.ledger_path}")

    letterboxd = LetterboxdAdapter(ledger, id_lookup, letterboxd_client)
    myanimelist = MyAnimeListAdapter(ledger, id_lookup, mal_list_client, JikanClient(jikan_client))

    return WatchlistSync(
        ledger,
        store,
        notifier,
        sources=[
            ("Letterboxd", letterboxd, settings.letterboxd),
            ("MyAnimeList", myanimelist, settings.myanimelist),
        ],
    )


def run(settings: AppSettings, once: bool = False) -> int:
    logger.info("=" * 60)
    logger.info("STARTING LISTARR")
    logger.info("=" * 60)
    for line in settings.summary():
        logger.info(f"  - {line}")

    notifier = DiscordNotifier(settings.discord_webhook)
    sync = build_sync(settings, notifier)

    sync.run_pass()
    if once:
        return 0

    import uvicorn
    from api.main import app

    app.state.store = sync.store
    scheduler = RefreshScheduler(sync, settings.refresh_interval)
    scheduler.start()
    try:
        uvicorn.run(app, host="0.0.0.0", port=settings.port)
    finally:
        scheduler.stop(timeout=5)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Serve watchlists as Radarr/Sonarr import lists")
    parser.add_argument('--config', type=Path, default=None, help='YAML config file (default: ./config.yaml)')
    parser.add_argument('--port', type=int, default=None, help='Override the HTTP port')
    parser.add_argument('--once', action='store_true', help='Run a single scrape pass and exit')
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"[FATAL] {e}")
        return 1

    if args.port is not None:
        settings = settings.model_copy(update={'port': args.port})

    setup_logging(settings)

    try:
        return run(settings, once=args.once)
    except Exception as e:
        logger.exception(f"[FATAL] Fatal error: {e}")
        DiscordNotifier(settings.discord_webhook).notify_error(
            "Fatal Error - Application Crashed",
            "The application encountered a fatal error and is shutting down.",
            e,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
