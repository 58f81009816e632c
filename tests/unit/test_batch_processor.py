"""
Tests for the batch orchestrator.

Runs against the in-memory credential store with a scripted transport.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from sqlalchemy import delete, select

from n8n_credential_injector.constants import BatchState, CredentialIdStrategy, ExitCode
from n8n_credential_injector.db import UserSocialCredential
from n8n_credential_injector.exceptions import (
    AuthenticationError,
    ErrorCode,
    WriteBackError,
    get_correlation_id,
)
from n8n_credential_injector.processing import BatchProcessor, RecordStatus
from n8n_credential_injector.repositories import CredentialRepository
from n8n_credential_injector.utils.json_utils import loads
from tests.fixtures.configs import build_config
from tests.fixtures.factories import BASE_REQUESTED_AT, UserSocialCredentialFactory
from tests.fixtures.transports import ScriptedTransport

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def stored(session, user_id, provider="google"):
    session.expire_all()
    return session.scalars(
        select(UserSocialCredential).where(
            UserSocialCredential.user_id == user_id,
            UserSocialCredential.provider == provider,
        )
    ).one()


def make_processor(session, transport, **config_kwargs):
    config = build_config(**config_kwargs)
    return BatchProcessor(
        CredentialRepository(session),
        transport,
        config.injection,
        clock=lambda: FIXED_NOW,
    )


class TestBatchRun:
    def test_empty_queue(self, db_session):
        transport = ScriptedTransport()
        processor = make_processor(db_session, transport)

        result = processor.run()

        assert result.exit_code == ExitCode.SUCCESS
        assert result.total_fetched == 0
        assert transport.prepare_calls == 0
        assert processor.state == BatchState.DONE
        assert result.completed_at is not None

    def test_success_write_back(self, db_session):
        UserSocialCredentialFactory(user_id="u1", provider="google")
        transport = ScriptedTransport()

        result = make_processor(db_session, transport).run()

        assert result.succeeded == 1
        assert result.exit_code == ExitCode.SUCCESS
        credential_id = transport.delivered[0][1].id

        row = stored(db_session, "u1")
        assert row.injected_to_n8n is True
        assert row.injection_requested is False
        assert row.injection_error is None
        assert row.n8n_credential_id == credential_id
        assert loads(row.n8n_credential_ids) == [credential_id]

        blob = loads(row.additional_data)
        assert blob["injection_method"] == "scripted"
        assert blob["success"] is True
        assert blob["platform"] == "northflank"
        assert blob["version"] == "4.0"
        assert blob["details"]["output"] == "Successfully imported"

    def test_payload_named_after_attempt_time(self, db_session):
        UserSocialCredentialFactory(user_id="u1", provider="github")
        transport = ScriptedTransport()

        make_processor(db_session, transport).run()

        payload = transport.delivered[0][1]
        assert payload.name == "Github OAuth2 - 2025-01-15 12:00"
        assert payload.type == "githubOAuth2Api"

    def test_failure_write_back_and_batch_continues(self, db_session):
        UserSocialCredentialFactory(user_id="bad", injection_requested_at=BASE_REQUESTED_AT)
        UserSocialCredentialFactory(
            user_id="good", injection_requested_at=BASE_REQUESTED_AT + timedelta(minutes=5)
        )
        transport = ScriptedTransport(failing_users={"bad"})

        result = make_processor(db_session, transport).run()

        assert (result.succeeded, result.failed) == (1, 1)
        assert result.exit_code == ExitCode.SUCCESS

        bad = stored(db_session, "bad")
        assert bad.injected_to_n8n is False
        assert bad.injection_requested is False
        assert bad.injection_error == "n8n rejected bad"
        assert bad.injected_at is None
        assert bad.n8n_credential_id is None
        details = loads(bad.additional_data)["details"]
        assert details["error_type"] == "scripted_error"
        assert details["error"]["message"] == "n8n rejected bad"
        assert details["error"]["context"]["transport"] == "scripted"
        assert details["error"]["correlation_id"] == result.run_id

        assert stored(db_session, "good").injected_to_n8n is True

    def test_processed_oldest_first(self, db_session):
        UserSocialCredentialFactory(
            user_id="t2", injection_requested_at=BASE_REQUESTED_AT + timedelta(hours=1)
        )
        UserSocialCredentialFactory(user_id="t1", injection_requested_at=BASE_REQUESTED_AT)
        transport = ScriptedTransport()

        make_processor(db_session, transport).run()

        assert [user_id for user_id, _ in transport.delivered] == ["t1", "t2"]

    def test_incomplete_record_skipped_without_write_back(self, db_session):
        UserSocialCredentialFactory(user_id="incomplete", client_secret=None)
        UserSocialCredentialFactory(user_id="complete")
        transport = ScriptedTransport()

        result = make_processor(db_session, transport).run()

        assert [user_id for user_id, _ in transport.delivered] == ["complete"]
        assert result.skipped == 1
        assert result.total_fetched == 2

        row = stored(db_session, "incomplete")
        assert row.injection_requested is True
        assert row.injected_to_n8n is False
        assert row.injection_attempted_at is None
        assert row.additional_data is None

    def test_only_incomplete_records_skips_prepare(self, db_session):
        UserSocialCredentialFactory(user_id="incomplete", access_token="")
        transport = ScriptedTransport()

        result = make_processor(db_session, transport).run()

        assert transport.prepare_calls == 0
        assert result.skipped == 1
        assert result.exit_code == ExitCode.SUCCESS

    def test_unsupported_provider(self, db_session):
        UserSocialCredentialFactory(user_id="u1", provider="unsupported_xyz")
        transport = ScriptedTransport()

        result = make_processor(db_session, transport).run()

        assert transport.delivered == []
        assert result.failed == 1
        assert result.outcomes[0].status == RecordStatus.FAILED

        row = stored(db_session, "u1", provider="unsupported_xyz")
        assert row.injected_to_n8n is False
        assert row.injection_requested is False
        assert "Unsupported provider" in row.injection_error
        assert loads(row.additional_data)["details"]["error_type"] == "processing_error"

    def test_selectors_narrow_batch(self, db_session):
        UserSocialCredentialFactory(user_id="u1", provider="google")
        UserSocialCredentialFactory(user_id="u1", provider="github")
        UserSocialCredentialFactory(user_id="u2", provider="google")
        transport = ScriptedTransport()

        make_processor(db_session, transport, user_id="u1", provider="github").run()

        assert [(uid, p.type) for uid, p in transport.delivered] == [("u1", "githubOAuth2Api")]
        assert stored(db_session, "u2").injection_requested is True

    def test_deterministic_ids(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        transport = ScriptedTransport()
        make_processor(
            db_session, transport, credential_id_strategy=CredentialIdStrategy.DETERMINISTIC
        ).run()

        credential_id = transport.delivered[0][1].id
        assert uuid.UUID(credential_id).version == 5
        assert stored(db_session, "u1").n8n_credential_id == credential_id

    def test_state_path_without_login(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        processor = make_processor(db_session, ScriptedTransport())

        processor.run()

        assert processor.state_history == [
            BatchState.IDLE,
            BatchState.PROCESSING,
            BatchState.DONE,
        ]

    def test_state_path_with_login(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        processor = make_processor(db_session, ScriptedTransport(authenticates=True))

        processor.run()

        assert processor.state_history == [
            BatchState.IDLE,
            BatchState.AUTHENTICATED,
            BatchState.PROCESSING,
            BatchState.DONE,
        ]

    def test_run_id_set_during_run_and_cleared_after(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        transport = ScriptedTransport()

        result = make_processor(db_session, transport).run()

        assert transport.run_ids == [result.run_id]
        assert get_correlation_id() is None


class TestBatchAbort:
    def test_prepare_failure_is_fatal(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        transport = ScriptedTransport(prepare_error=AuthenticationError("Login rejected"))
        processor = make_processor(db_session, transport)

        result = processor.run()

        assert result.exit_code == ExitCode.FATAL
        assert result.error_message == "Login rejected"
        assert transport.delivered == []
        assert processor.state == BatchState.IDLE
        assert stored(db_session, "u1").injection_requested is True

    def test_write_back_failure_aborts(self, db_session):
        UserSocialCredentialFactory(user_id="u1", injection_requested_at=BASE_REQUESTED_AT)
        UserSocialCredentialFactory(
            user_id="u2", injection_requested_at=BASE_REQUESTED_AT + timedelta(minutes=1)
        )
        repository = CredentialRepository(db_session)
        repository.update_status = Mock(
            side_effect=WriteBackError("Update failed", error_code=ErrorCode.DATABASE_ERROR)
        )
        transport = ScriptedTransport()
        config = build_config()
        processor = BatchProcessor(repository, transport, config.injection)

        result = processor.run()

        assert result.exit_code == ExitCode.FATAL
        assert [user_id for user_id, _ in transport.delivered] == ["u1"]
        assert processor.state == BatchState.PROCESSING

    def test_row_removed_before_write_back_aborts(self, db_session):
        UserSocialCredentialFactory(user_id="u1", injection_requested_at=BASE_REQUESTED_AT)
        UserSocialCredentialFactory(
            user_id="u2", injection_requested_at=BASE_REQUESTED_AT + timedelta(minutes=1)
        )
        transport = ScriptedTransport()
        deliver = transport._deliver

        def deliver_then_remove_row(payload, record):
            db_session.execute(
                delete(UserSocialCredential).where(UserSocialCredential.user_id == record.user_id)
            )
            db_session.commit()
            return deliver(payload, record)

        transport._deliver = deliver_then_remove_row

        result = make_processor(db_session, transport).run()

        assert result.exit_code == ExitCode.FATAL
        assert "matched no rows" in result.error_message
        assert result.succeeded == 0
        assert [user_id for user_id, _ in transport.delivered] == ["u1"]
        assert stored(db_session, "u2").injection_requested is True

    def test_unexpected_transport_error_is_per_record(self, db_session):
        UserSocialCredentialFactory(user_id="u1")
        transport = ScriptedTransport()
        transport._deliver = Mock(side_effect=RuntimeError("segfault-ish"))

        result = make_processor(db_session, transport).run()

        assert result.exit_code == ExitCode.SUCCESS
        assert result.failed == 1
        assert stored(db_session, "u1").injection_error == "segfault-ish"


def test_summary(db_session):
    UserSocialCredentialFactory(user_id="ok")
    UserSocialCredentialFactory(user_id="bad")
    UserSocialCredentialFactory(user_id="skip", client_id=None)
    transport = ScriptedTransport(failing_users={"bad"})

    summary = make_processor(db_session, transport).run().to_dict()

    assert summary["total"] == 3
    assert summary["success"] == 1
    assert summary["errors"] == 1
    assert summary["skipped"] == 1
    assert summary["exit_code"] == 0
    assert summary["transport"] == "scripted"
    assert summary["duration_ms"] >= 0
