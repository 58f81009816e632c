"""
n8n command-line transport.

Writes each payload to a temporary import file and runs
`n8n import:credentials --input=<file>` against n8n's own database.
"""

import os
import subprocess
import tempfile
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..config import CliConfig, N8NConfig, N8NDatabaseConfig
from ..constants import (
    CLI_OUTPUT_EXCERPT_LENGTH,
    CLI_SUCCESS_INDICATORS,
    CLI_VERSION_CHECK_TIMEOUT_SECONDS,
    N8N_IMPORT_COMMAND,
    N8N_IMPORT_ENVELOPE_VERSION,
    ImportFileFormat,
)
from ..exceptions import ErrorCode, TransportError
from ..schemas.credential_schemas import CredentialRecord, InjectionPayload
from ..utils.json_utils import dumps
from .base import InjectionTransport


class CliOutputClassifier:
    """
    Decide whether an import run succeeded.

    The n8n CLI does not report a machine-readable result, so success is a
    zero exit status plus one of the known phrases in stdout.
    """

    def __init__(self, indicators: Iterable[str] = CLI_SUCCESS_INDICATORS):
        self.indicators = tuple(indicator.lower() for indicator in indicators)

    def is_success(self, returncode: int, stdout: str) -> bool:
        if returncode != 0:
            return False
        output = (stdout or "").lower()
        return any(indicator in output for indicator in self.indicators)


def build_import_document(payload: InjectionPayload, import_format: ImportFileFormat) -> Any:
    """Shape the import file content: a bare list, or the versioned envelope."""
    credentials = [payload.to_n8n()]
    if import_format == ImportFileFormat.ENVELOPE:
        return {
            "version": N8N_IMPORT_ENVELOPE_VERSION,
            "credentials": credentials,
            "workflows": [],
        }
    return credentials


class CliTransport(InjectionTransport):
    """
    Deliver credentials with `n8n import:credentials`.

    Each record gets its own import file, removed after the run whatever
    the outcome. Each invocation is bounded by the configured timeout.
    """

    method_name = "n8n_cli"

    def __init__(
        self,
        n8n_config: N8NConfig,
        n8n_db_config: N8NDatabaseConfig,
        cli_config: CliConfig,
        classifier: Optional[CliOutputClassifier] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        super().__init__()
        self.n8n_config = n8n_config
        self.n8n_db_config = n8n_db_config
        self.cli_config = cli_config
        self.classifier = classifier or CliOutputClassifier()
        self._run = runner

    def build_environment(self) -> Dict[str, str]:
        """Environment for the import process: inherited env plus n8n database settings."""
        env = dict(os.environ)
        env.update(
            {
                "N8N_DATABASE_TYPE": "postgresdb",
                "DB_TYPE": "postgresdb",
                "N8N_LOG_LEVEL": "error",
                "N8N_USER_MANAGEMENT_DISABLED": "true",
            }
        )
        if self.n8n_config.encryption_key:
            env["N8N_ENCRYPTION_KEY"] = self.n8n_config.encryption_key

        db = self.n8n_db_config
        for name, value in (
            ("DB_POSTGRESDB_HOST", db.host),
            ("DB_POSTGRESDB_PORT", db.port),
            ("DB_POSTGRESDB_DATABASE", db.database),
            ("DB_POSTGRESDB_USER", db.username),
            ("DB_POSTGRESDB_PASSWORD", db.password),
        ):
            if value:
                env[name] = value
        return env

    def prepare(self) -> None:
        """
        Check that the n8n executable runs.

        Raises:
            TransportError: If `n8n --version` fails or times out
        """
        executable = self.cli_config.executable
        try:
            completed = self._run(
                [executable, "--version"],
                capture_output=True,
                text=True,
                timeout=CLI_VERSION_CHECK_TIMEOUT_SECONDS,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise TransportError(
                f"n8n CLI not available: {e}",
                transport=self.method_name,
                error_code=ErrorCode.SUBPROCESS_ERROR,
                cause=e,
                executable=executable,
            ) from e

        self._prepared = True
        self.logger.info("n8n CLI available", extra={"version": (completed.stdout or "").strip()})

    def _write_import_file(self, payload: InjectionPayload, record: CredentialRecord) -> str:
        prefix = f"credentials-{int(time.time() * 1000)}-{record.user_id[:8]}-"
        document = build_import_document(payload, self.cli_config.import_format)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            prefix=prefix,
            suffix=".json",
            dir=self.cli_config.temp_dir,
            delete=False,
        ) as handle:
            handle.write(dumps(document, indent=2))
            path = handle.name

        self.logger.debug(
            "Wrote credential import file",
            extra={"path": path, "format": self.cli_config.import_format.value},
        )
        return path

    def _remove_import_file(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(
                f"Failed to clean up temporary file: {e}", extra={"path": path}
            )

    def _deliver(
        self, payload: InjectionPayload, record: CredentialRecord
    ) -> Tuple[str, Dict[str, Any]]:
        path = self._write_import_file(payload, record)
        command = [self.cli_config.executable, N8N_IMPORT_COMMAND, f"--input={path}"]
        try:
            self.logger.info(
                "Executing n8n import",
                extra={"user_id": record.user_id, "provider": record.provider, "file": os.path.basename(path)},
            )
            try:
                completed = self._run(
                    command,
                    env=self.build_environment(),
                    capture_output=True,
                    text=True,
                    timeout=self.cli_config.timeout_seconds,
                    cwd=self.cli_config.temp_dir,
                )
            except subprocess.TimeoutExpired as e:
                raise TransportError(
                    f"n8n import timed out after {self.cli_config.timeout_seconds:g}s",
                    transport=self.method_name,
                    error_code=ErrorCode.TIMEOUT_ERROR,
                    cause=e,
                    error_type="cli_execution_error",
                ) from e
            except OSError as e:
                raise TransportError(
                    f"n8n import could not be started: {e}",
                    transport=self.method_name,
                    error_code=ErrorCode.SUBPROCESS_ERROR,
                    cause=e,
                    error_type="cli_execution_error",
                ) from e
        finally:
            self._remove_import_file(path)

        stdout = completed.stdout or ""
        if completed.stderr:
            self.logger.warning(
                "n8n CLI wrote to stderr",
                extra={"stderr": completed.stderr[:CLI_OUTPUT_EXCERPT_LENGTH]},
            )

        if not self.classifier.is_success(completed.returncode, stdout):
            if completed.returncode != 0:
                message = (
                    f"n8n import exited with status {completed.returncode}: "
                    f"{(completed.stderr or stdout)[:CLI_OUTPUT_EXCERPT_LENGTH]}"
                )
            else:
                message = f"Import failed - no success indicators found in output: {stdout}"
            raise TransportError(
                message,
                transport=self.method_name,
                error_code=ErrorCode.SUBPROCESS_ERROR,
                error_type="cli_execution_error",
                returncode=completed.returncode,
            )

        return payload.id, {"output": stdout[:CLI_OUTPUT_EXCERPT_LENGTH]}
