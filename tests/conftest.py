"""Pytest configuration and fixtures."""

from types import MappingProxyType

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from fastapi.testclient import TestClient

from countrygen.commands import Command
from countrygen.main import create_app

TIMESTAMP = "1700000000"

CITY_WORDS = ("Lisbon", "Oslo", "Quito", "Hanoi")


def sign(signing_key: Ed25519PrivateKey, timestamp: str, body: bytes) -> str:
    """Hex signature the way the platform produces it."""
    return signing_key.sign(timestamp.encode("utf-8") + body).hex()


@pytest.fixture
def signing_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture
def verifying_key(signing_key):
    return signing_key.public_key()


@pytest.fixture
def commands():
    return MappingProxyType(
        {
            "city": Command(name="city", description="generate a random city", words=CITY_WORDS),
            "country": Command(name="country", description="generate a random country", words=("Chile",)),
        }
    )


@pytest.fixture
def app(verifying_key, commands):
    return create_app(verifying_key, commands)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def signed_post(client, signing_key):
    """POST a correctly signed body to /."""

    def _post(body: bytes, timestamp: str = TIMESTAMP, **kwargs):
        headers = {
            "X-Signature-Ed25519": sign(signing_key, timestamp, body),
            "X-Signature-Timestamp": timestamp,
        }
        headers.update(kwargs.pop("headers", {}))
        return client.post("/", content=body, headers=headers, **kwargs)

    return _post
