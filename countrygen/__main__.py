#!/usr/bin/env python3
"""
python -m countrygen - start the webhook server or check its audit log.

  serve         (default) load config, register commands, run uvicorn
  verify-audit  verify the hash chain of an audit log

Startup order matters: the verifying key and the command registration are
resolved *before* the HTTP listener is created. Any failure there exits
non-zero; the process never serves with a key it could not load.

Exit codes:
- 0: OK
- 1: startup failed / audit chain broken
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

import requests
import uvicorn
from fastapi import FastAPI

from .audit import AuditLog, verify_log_chain
from .commands import load_commands
from .config import Settings, settings
from .discord_api import DiscordAPIError, DiscordClient
from .errors import ConfigError
from .main import create_app
from .registration import EndpointRegistration
from .signatures import load_verifying_key

logger = logging.getLogger("countrygen")


def resolve_verifying_key_hex(cfg: Settings, client: DiscordClient) -> str:
    if cfg.PUBLIC_KEY:
        return cfg.PUBLIC_KEY
    logger.info("PUBLIC_KEY not set; fetching verify_key from application metadata")
    return client.fetch_verify_key()


def build_application(cfg: Settings, client: DiscordClient) -> FastAPI:
    """Run every startup step that must succeed before serving."""
    cfg.require_credentials()

    verifying_key = load_verifying_key(resolve_verifying_key_hex(cfg, client))
    commands = load_commands()
    client.set_commands(cfg.APPLICATION_ID, commands.values())

    registration = None
    if cfg.INTERACTION_ENDPOINTS_URL:
        registration = EndpointRegistration(
            client,
            cfg.INTERACTION_ENDPOINTS_URL,
            max_attempts=cfg.REGISTRATION_MAX_ATTEMPTS,
            backoff_seconds=cfg.REGISTRATION_BACKOFF_SECONDS,
            initial_delay_seconds=cfg.REGISTRATION_INITIAL_DELAY_SECONDS,
        )

    audit_log = AuditLog(cfg.AUDIT_LOG_PATH) if cfg.AUDIT_LOG_PATH else None

    return create_app(verifying_key, commands, registration=registration, audit_log=audit_log)


def serve(cfg: Settings) -> int:
    client = DiscordClient(cfg.BOT_KEY, api_url=cfg.DISCORD_API_URL, timeout=cfg.REQUEST_TIMEOUT_SECONDS)
    try:
        app = build_application(cfg, client)
    except (ConfigError, DiscordAPIError, requests.RequestException) as e:
        logger.error("startup failed: %s", e)
        client.close()
        return 1

    try:
        uvicorn.run(app, host=cfg.HOST, port=cfg.PORT, log_level=cfg.LOG_LEVEL.lower())
    finally:
        client.close()
    return 0


def verify_audit(path: str) -> int:
    if verify_log_chain(path):
        print("OK")
        return 0
    print(f"FAIL: hash chain broken in {path}", file=sys.stderr)
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="countrygen", description="Random city/country slash command webhook.")
    sub = p.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the webhook server (default).")
    va = sub.add_parser("verify-audit", help="Verify the audit log hash chain.")
    va.add_argument("log", nargs="?", default=None, help="Path to the audit JSONL (default: AUDIT_LOG_PATH).")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "verify-audit":
        path = args.log or settings.AUDIT_LOG_PATH
        if not path:
            p.error("no audit log path given and AUDIT_LOG_PATH is not set")
        return verify_audit(path)

    return serve(settings)


if __name__ == "__main__":
    raise SystemExit(main())
