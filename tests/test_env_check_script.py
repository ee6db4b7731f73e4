"""Tests for the environment drift detection script."""

from __future__ import annotations

from pathlib import Path

import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = [
    "COGNITO_OAUTH2_DOMAIN",
    "COGNITO_APP_CLIENT_ID",
    "COGNITO_APP_SECRET",
    "COGNITO_REDIRECT_URI",
    "COGNITO_LOGOUT_URI",
]

VALID_ENV = {
    "COGNITO_OAUTH2_DOMAIN": "auth.example.com",
    "COGNITO_APP_CLIENT_ID": "client",
    "COGNITO_APP_SECRET": "secret",
    "COGNITO_REDIRECT_URI": "https://app.example.com/api/auth/callback",
    "COGNITO_LOGOUT_URI": "https://app.example.com/signed-out",
}


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_required_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in REQUIRED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    assert check_env.main(argv) == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_rotated_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"
    argv = ["--env-file", str(env_file), "--hash-file", str(hash_file)]

    _clear_required_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    assert check_env.main(["record", *argv]) == check_env.EXIT_OK
    assert hash_file.read_text(encoding="utf-8").strip()

    _clear_required_env(monkeypatch)
    assert check_env.main(["verify", *argv]) == check_env.EXIT_OK

    _write_env(env_file, **{**VALID_ENV, "COGNITO_APP_SECRET": "rotated"})
    _clear_required_env(monkeypatch)
    assert check_env.main(["verify", *argv]) == check_env.EXIT_CHECKSUM_ERROR


def test_verify_without_baseline_is_a_runtime_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_required_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    exit_code = check_env.main(
        ["verify", "--env-file", str(env_file), "--hash-file", str(tmp_path / "none")]
    )

    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_client_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_required_env(monkeypatch)
    values = dict(VALID_ENV)
    values.pop("COGNITO_APP_SECRET")
    _write_env(env_file, **values)

    exit_code = check_env.main(
        ["record", "--env-file", str(env_file), "--hash-file", str(hash_file)]
    )

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_check_accepts_a_complete_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_required_env(monkeypatch)
    _write_env(env_file, **VALID_ENV)

    assert check_env.main(["check", "--env-file", str(env_file)]) == check_env.EXIT_OK


def test_check_reports_wrong_callback_path_and_missing_openid_scope(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_required_env(monkeypatch)
    monkeypatch.setenv("COGNITO_SCOPES", "profile,email")
    _write_env(env_file, **{**VALID_ENV, "COGNITO_REDIRECT_URI": "https://app.example.com/home"})

    settings = check_env.load_settings(env_file)
    problems = check_env.review_settings(settings)

    assert len(problems) == 2
    assert "does not end in /auth/callback" in problems[0]
    assert "lacks 'openid'" in problems[1]
    assert check_env.main(["check", "--env-file", str(env_file)]) == (
        check_env.EXIT_VALIDATION_ERROR
    )


def test_review_requires_https_and_session_secret_outside_development(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_required_env(monkeypatch)
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("SESSION_SECRET", raising=False)
    _write_env(
        env_file,
        **{**VALID_ENV, "COGNITO_REDIRECT_URI": "http://app.example.com/api/auth/callback"},
    )

    problems = check_env.review_settings(check_env.load_settings(env_file))

    assert problems == [
        "COGNITO_REDIRECT_URI must use https when APP_ENV=production.",
        "SESSION_SECRET is unset; sessions are signed with the app client secret.",
    ]


def test_malformed_redirect_uri_is_a_validation_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_required_env(monkeypatch)
    _write_env(env_file, **{**VALID_ENV, "COGNITO_LOGOUT_URI": "app.example.com/bye"})

    assert check_env.main(["check", "--env-file", str(env_file)]) == (
        check_env.EXIT_VALIDATION_ERROR
    )
