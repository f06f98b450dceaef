# countrygen/main.py
#
# -----------------------------------------------------------------------------
# Architectural notes (high level)
# -----------------------------------------------------------------------------
# This file is intentionally "thin" orchestration glue:
#   - It wires the single webhook endpoint to the primitives implemented
#     elsewhere.
#   - It MUST NOT implement crypto itself (crypto lives in signatures.py).
#   - It holds no module-level state: the verifying key, the command registry
#     and the optional audit log are injected through create_app() and kept on
#     app.state, read-only after construction.
#
# Key modules / responsibilities:
#   - config.py       : environment-driven settings
#   - hexcodec.py     : strict fixed-length hex decoding
#   - signatures.py   : Ed25519 verification over (timestamp || body)
#   - interactions.py : discriminant-checked decode / discriminant-stamped encode
#   - commands.py     : command registry + dispatch
#   - registration.py : background endpoint URL registration (not request path)
#   - audit.py        : append-only audit log of auth decisions (optional)
#
# Request pipeline for POST /:
#
#   headers -> verify signature -> decode envelope -> dispatch -> encode
#
# Verification runs on the raw body bytes and always happens before the body
# is parsed. Every failure is an InteractionError with a fixed status and a
# fixed message; nothing about *why* something failed is sent back.
# -----------------------------------------------------------------------------

import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from . import __version__
from .audit import AuditLog, build_event
from .commands import Command, dispatch
from .errors import AuthError, InteractionError, InvalidHeaderEncoding, MissingHeader
from .interactions import decode_interaction, encode_response
from .registration import EndpointRegistration, RegistrationState
from .signatures import verify_request

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"

router = APIRouter()


# -----------------------------------------------------------------------------
# Header helpers
# -----------------------------------------------------------------------------
def _required_header(request: Request, name: str) -> str:
    value = request.headers.get(name)
    if value is None:
        raise MissingHeader(name)
    # Starlette decodes header bytes as latin-1; anything outside ASCII was
    # not valid text on the wire.
    if not value.isascii():
        raise InvalidHeaderEncoding(name)
    return value


def _timestamp_header(request: Request) -> str:
    value = _required_header(request, TIMESTAMP_HEADER)
    if not value.isdigit():
        raise InvalidHeaderEncoding(TIMESTAMP_HEADER)
    return value


async def _audit(request: Request, event: dict) -> None:
    audit_log: Optional[AuditLog] = request.app.state.audit_log
    if audit_log is None:
        return
    try:
        await run_in_threadpool(audit_log.append, event)
    except (OSError, ValueError):
        # The audit trail is not part of the request contract; a full disk or a
        # corrupt state file must not turn into a 500 for the platform.
        logger.exception("failed to append audit event")


async def _authenticate(request: Request, body: bytes) -> None:
    signature = _required_header(request, SIGNATURE_HEADER)
    timestamp = _timestamp_header(request)
    client_ip = request.client.host if request.client else None

    try:
        verify_request(request.app.state.verifying_key, signature, timestamp, body)
    except AuthError as e:
        await _audit(
            request,
            build_event(
                result="rejected",
                reason=type(e).__name__,
                timestamp=timestamp,
                body=body,
                signature_hex=signature,
                request_ip=client_ip,
            ),
        )
        raise

    await _audit(
        request,
        build_event(
            result="accepted",
            reason="ok",
            timestamp=timestamp,
            body=body,
            signature_hex=signature,
            request_ip=client_ip,
        ),
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@router.post("/")
async def handle_interaction(request: Request):
    body = await request.body()

    try:
        await _authenticate(request, body)
        interaction = decode_interaction(body)
        reply = dispatch(interaction, request.app.state.commands)
    except InteractionError as e:
        logger.warning("rejected interaction: %s (%d)", type(e).__name__, e.status_code)
        raise HTTPException(e.status_code, e.public_message)

    return Response(content=encode_response(reply), media_type="application/json")


@router.get("/healthz")
def healthz(request: Request):
    registration: Optional[EndpointRegistration] = request.app.state.registration
    state = registration.state if registration is not None else RegistrationState.DISABLED
    return {"ok": True, "endpoint_registration": state.value}


# -----------------------------------------------------------------------------
# FastAPI application
# -----------------------------------------------------------------------------
def create_app(
    verifying_key: Ed25519PublicKey,
    commands: Mapping[str, Command],
    registration: Optional[EndpointRegistration] = None,
    audit_log: Optional[AuditLog] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Runs before uvicorn binds its socket. The platform validates the URL
        # with a signed PING, so the first attempt waits
        # REGISTRATION_INITIAL_DELAY_SECONDS for the listener to come up; later
        # attempts are covered by the retry backoff.
        if registration is not None:
            registration.start()
        try:
            yield
        finally:
            if registration is not None:
                await registration.stop()

    app = FastAPI(
        title="countrygen",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.verifying_key = verifying_key
    app.state.commands = commands
    app.state.registration = registration
    app.state.audit_log = audit_log

    app.include_router(router)
    return app
