"""Unit tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sharedmailbox_audit.config import AuditConfig, ConfigError, EngineConfig


def test_from_env_builds_secret_auth() -> None:
    config = EngineConfig.from_env(environ={
        "TENANT_ID": "tenant",
        "CLIENT_ID": "client",
        "CLIENT_SECRET": "s3cret",
    })

    assert config.auth.mode == "secret"
    assert config.auth.secret.client_secret == "s3cret"
    assert config.auth.secret.tenant_id == "tenant"
    assert config.audit.concurrency_limit == 10


def test_from_env_prefers_certificate_when_path_set() -> None:
    config = EngineConfig.from_env(environ={
        "TENANT_ID": "tenant",
        "CLIENT_ID": "client",
        "CERTIFICATE_PATH": "./base64.txt",
        "CERTIFICATE_PASSWORD": "pw",
    })

    assert config.auth.mode == "certificate"
    assert config.auth.certificate.certificate_path == "./base64.txt"
    assert config.auth.certificate.certificate_password == "pw"


@pytest.mark.parametrize(
    "environ, missing",
    [
        ({"CLIENT_ID": "c", "CLIENT_SECRET": "s"}, "TENANT_ID"),
        ({"TENANT_ID": "t", "CLIENT_SECRET": "s"}, "CLIENT_ID"),
        ({"TENANT_ID": "t", "CLIENT_ID": "c"}, "CLIENT_SECRET"),
    ],
)
def test_from_env_reports_missing_values(environ: dict, missing: str) -> None:
    with pytest.raises(ConfigError, match=missing):
        EngineConfig.from_env(environ=environ)


def test_from_env_reads_dotenv_file(tmp_path: Path, clean_env) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TENANT_ID=t1\nCLIENT_ID=c1\nCLIENT_SECRET=s1\n")

    config = EngineConfig.from_env(env_file=str(env_file))

    assert config.auth.secret.tenant_id == "t1"
    assert config.auth.secret.client_id == "c1"


def test_environment_overrides_dotenv_file(tmp_path: Path, clean_env) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TENANT_ID=from-file\nCLIENT_ID=c1\nCLIENT_SECRET=s1\n")
    clean_env(TENANT_ID="from-env")

    config = EngineConfig.from_env(env_file=str(env_file))

    assert config.auth.secret.tenant_id == "from-env"


def test_audit_config_validates_limits() -> None:
    with pytest.raises(ConfigError):
        AuditConfig(concurrency_limit=0)
    with pytest.raises(ConfigError):
        AuditConfig(timeout_seconds=0)
    assert AuditConfig(concurrency_limit=1, timeout_seconds=30).timeout_seconds == 30


def test_from_env_finds_dotenv_in_working_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clean_env
) -> None:
    """Without an explicit path, the .env in the working directory is loaded."""
    (tmp_path / ".env").write_text("TENANT_ID=cwd-tenant\nCLIENT_ID=c1\nCLIENT_SECRET=s1\n")
    monkeypatch.chdir(tmp_path)

    config = EngineConfig.from_env()

    assert config.auth.secret.tenant_id == "cwd-tenant"
