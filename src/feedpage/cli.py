"""
Command line entry point.

    feedpage serve       refresh on a schedule and serve the digest
    feedpage run-once    run one refresh cycle and print the digest as JSON
"""

import argparse
import json
import sys
from typing import Optional

from feedpage import __version__
from feedpage.config import get_config, reload_config
from feedpage.core.scheduler import create_scheduler
from feedpage.core.state import StateStore
from feedpage.logger import get_logger, setup_logger
from feedpage.web.app import create_app
from feedpage.web.serializers import state_to_dict

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedpage", description="Digest of an OPML feed collection"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML configuration file (default: config/config.yaml)")
    parser.add_argument("--opml-url", help="OPML address (overrides OPML_URL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Refresh periodically and serve the digest")
    serve.add_argument("--host", help="Web server host")
    serve.add_argument("--port", type=int, help="Web server port")

    subparsers.add_parser("run-once", help="Run one refresh cycle and print the digest")

    return parser


def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Start the scheduler and the web server in this process."""
    config = get_config()
    store = StateStore()
    scheduler = create_scheduler(store=store, config=config)

    if config.scheduler.enabled:
        scheduler.start()
    else:
        logger.warning("Scheduler disabled; serving an empty digest")

    app = create_app(store, config=config, scheduler=scheduler)
    try:
        app.run(
            host=host or config.web.host,
            port=config.web.port if port is None else port,
            debug=config.web.debug,
            use_reloader=False,
        )
    finally:
        if scheduler.is_running():
            scheduler.stop(wait=False)


def run_once() -> int:
    """Run a single cycle; exit status 1 when it failed."""
    config = get_config()
    scheduler = create_scheduler(config=config)
    state = scheduler.run_once()

    json.dump(state_to_dict(state, config.name), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 1 if state.last_error else 0


def main(argv: Optional[list[str]] = None) -> int:
    """FeedPage command line."""
    args = _build_parser().parse_args(argv)

    config = reload_config(args.config)
    if args.opml_url:
        config.opml_url = args.opml_url
    setup_logger()

    if args.command == "serve":
        serve(host=args.host, port=args.port)
        return 0
    return run_once()


if __name__ == "__main__":
    sys.exit(main())
