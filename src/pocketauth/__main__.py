"""PocketAuth entry point.

Changes:
  - 2026-10-18: ``cleanup`` is offline-only; a running server sweeps itself and
    would overwrite the store file written here.
  - 2026-10-03: Added ``cleanup`` to purge expired records from the persisted store.
  - 2026-10-02: Added ``issue-session`` for wiring an external login step.
  - 2026-10-01: ``serve`` starts the OAuth2 API server.
"""

import argparse
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from pocketauth.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("pocketauth")
    except PackageNotFoundError:
        return "unknown"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocketauth",
        description="PocketAuth - OAuth2 authorization server (authorization code + PKCE)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pocketauth serve                                Start the server
  pocketauth serve --port 4000 --dev              Start with auto-reload
  pocketauth issue-session --owner-id 1 --email a@b.c
  pocketauth cleanup                              Purge expired tokens (server stopped)
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the OAuth2 server")
    serve.add_argument("--host", default=None, help="Host to bind (default: from config)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    serve.add_argument("--dev", action="store_true", help="Auto-reload on source changes")

    issue = sub.add_parser("issue-session", help="Print a session credential for an owner")
    issue.add_argument("--owner-id", required=True)
    issue.add_argument("--email", required=True)

    sub.add_parser(
        "cleanup",
        help="Offline: remove expired records from the persisted store (stop the server first;"
        " a running server sweeps its own store)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)

    from pocketauth.config import get_settings
    from pocketauth.oauth2.server import get_oauth_server

    settings = get_settings()

    try:
        if args.command == "serve":
            from pocketauth.api.serve import run_api_server

            run_api_server(
                host=args.host or settings.web_host,
                port=args.port or settings.web_port,
                dev=args.dev,
            )
        elif args.command == "issue-session":
            print(get_oauth_server().sessions.issue(args.owner_id, args.email))
        elif args.command == "cleanup":
            removed = get_oauth_server().cleanup_expired()
            logger.info("Removed %d expired record(s)", removed)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("PocketAuth stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
