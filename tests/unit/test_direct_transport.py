"""Tests for the direct insert transport against an in-memory SQLite target."""

import base64
import hashlib
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from n8n_credential_injector.exceptions import TransportError
from n8n_credential_injector.services.payload_builder import build_payload
from n8n_credential_injector.transports import DirectInsertTransport
from n8n_credential_injector.utils.json_utils import loads
from tests.fixtures.configs import TEST_ENCRYPTION_KEY, build_config
from tests.fixtures.factories import CredentialRecordFactory

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

CREATE_CREDENTIALS_ENTITY = """
CREATE TABLE credentials_entity (
    id VARCHAR(36) PRIMARY KEY,
    name VARCHAR(128) NOT NULL,
    type VARCHAR(128) NOT NULL,
    data TEXT NOT NULL,
    "createdAt" TIMESTAMP NOT NULL,
    "updatedAt" TIMESTAMP NOT NULL
)
"""


def decrypt(token: str) -> bytes:
    iv_hex, ciphertext_b64 = token.split(":")
    decryptor = Cipher(
        algorithms.AES(hashlib.sha256(TEST_ENCRYPTION_KEY.encode()).digest()),
        modes.CBC(bytes.fromhex(iv_hex)),
    ).decryptor()
    padded = decryptor.update(base64.b64decode(ciphertext_b64)) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


@pytest.fixture
def target_engine():
    engine = create_engine("sqlite://")
    with engine.begin() as connection:
        connection.execute(text(CREATE_CREDENTIALS_ENTITY))
    yield engine
    engine.dispose()


@pytest.fixture
def transport(target_engine):
    config = build_config(transport="direct")
    return DirectInsertTransport(config.n8n, config.n8n_db, engine=target_engine)


@pytest.fixture
def record():
    return CredentialRecordFactory()


def test_prepare_checks_connection(transport):
    transport.prepare()
    assert transport.is_prepared is True


def test_prepare_failure():
    engine = Mock()
    engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))
    config = build_config(transport="direct")
    transport = DirectInsertTransport(config.n8n, config.n8n_db, engine=engine)

    with pytest.raises(TransportError, match="Cannot connect to n8n database"):
        transport.prepare()


def test_inject_inserts_encrypted_row(transport, target_engine, record):
    payload = build_payload(record, NOW, credential_id="cred-1")

    result = transport.inject(payload, record)

    assert result.success is True
    assert result.credential_id == "cred-1"
    assert result.details["table"] == "credentials_entity"

    with target_engine.connect() as connection:
        row = connection.execute(
            text("SELECT id, name, type, data FROM credentials_entity")
        ).one()

    assert row.id == "cred-1"
    assert row.name == payload.name
    assert row.type == "googleOAuth2Api"
    assert record.access_token not in row.data
    assert loads(decrypt(row.data)) == payload.to_n8n()["data"]


def test_duplicate_id_is_failure(transport, record):
    payload = build_payload(record, NOW, credential_id="cred-1")
    transport.inject(payload, record)

    result = transport.inject(payload, record)

    assert result.success is False
    assert "credentials_entity" in result.message
    assert result.details["error_type"] == "db_insert_error"


def test_close_keeps_injected_engine(transport, target_engine):
    transport.close()

    with target_engine.connect() as connection:
        assert connection.execute(text("SELECT 1")).scalar() == 1
