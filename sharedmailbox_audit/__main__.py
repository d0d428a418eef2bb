"""
Shared Mailbox Audit — command-line entry point.

Usage:
    python -m sharedmailbox_audit adminroles               # shared mailboxes holding a directory role
    python -m sharedmailbox_audit licenses                 # shared mailboxes holding a license
    python -m sharedmailbox_audit licenses --concurrency 5 --timeout 300
    python -m sharedmailbox_audit adminroles --format json --env-file ./tenant.env

Credentials come from the environment or a .env file:
    TENANT_ID, CLIENT_ID and either CLIENT_SECRET or CERTIFICATE_PATH
    (with optional CERTIFICATE_PASSWORD).

Matches are written to stdout; the summary and per-principal failures go
to stderr. Exit status is 1 on any fatal error (configuration,
authentication, or listing principals), 0 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .auth.authenticator import AuthenticationError
from .config import AuditConfig, ConfigError, EngineConfig, MAX_CONCURRENT_ENRICHMENTS, load_env_file
from .correlation import AUDITS
from .engine import run_audit
from .graph.client import UpstreamError
from .models import PayloadError
from .reporting import ConsoleReporter, export_json
from .safety.guardian import SafetyViolation

logger = logging.getLogger("sharedmailbox_audit")

FATAL_ERRORS = (
    ConfigError,
    AuthenticationError,
    UpstreamError,
    PayloadError,
    SafetyViolation,
)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sharedmailbox_audit",
        description="Find shared mailboxes that hold admin roles or licenses (READ-ONLY)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "audit",
        choices=AUDITS,
        help="adminroles: shared mailboxes with a directory role; "
             "licenses: shared mailboxes with an assigned license",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with TENANT_ID, CLIENT_ID, CLIENT_SECRET (default: ./.env)",
    )
    parser.add_argument("--tenant-id", type=str, default=None, help="Tenant ID (overrides environment)")
    parser.add_argument("--client-id", type=str, default=None, help="Client ID (overrides environment)")
    parser.add_argument(
        "--cert-path",
        type=str,
        default=None,
        help="Path to base64-encoded PFX; switches to certificate auth",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=MAX_CONCURRENT_ENRICHMENTS,
        help=f"Maximum concurrent mailbox lookups (default: {MAX_CONCURRENT_ENRICHMENTS})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for all mailbox lookups (default: none)",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format for the match list",
    )
    parser.add_argument("--info", action="store_true", help="Enable info level logging")
    parser.add_argument("--debug", action="store_true", help="Enable debug level logging")
    return parser.parse_args(argv)


def setup_logging(args: argparse.Namespace):
    if args.debug:
        level = logging.DEBUG
    elif args.info:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build engine configuration from .env, environment, and CLI overrides."""
    load_env_file(args.env_file)
    environ = dict(os.environ)
    if args.tenant_id:
        environ["TENANT_ID"] = args.tenant_id
    if args.client_id:
        environ["CLIENT_ID"] = args.client_id
    if args.cert_path:
        environ["CERTIFICATE_PATH"] = args.cert_path

    config = EngineConfig.from_env(environ=environ)
    config.audit = AuditConfig(
        concurrency_limit=args.concurrency,
        timeout_seconds=args.timeout,
    )
    return config


async def main_async(argv: Optional[Sequence[str]] = None) -> int:
    """Async entry point. Returns the process exit status."""
    args = parse_args(argv)
    setup_logging(args)
    logger.info(f"Starting sharedmailbox_audit {__version__} ({args.audit})")

    try:
        config = build_config(args)
        report = await run_audit(args.audit, config)
    except FATAL_ERRORS as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        logger.debug("Fatal error", exc_info=True)
        return 1

    if args.format == "json":
        export_json(report)
        ConsoleReporter().emit_summary(report)
    else:
        ConsoleReporter().emit(report)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Synchronous entry point for `python -m sharedmailbox_audit`."""
    return asyncio.run(main_async(argv))


if __name__ == "__main__":
    sys.exit(main())
