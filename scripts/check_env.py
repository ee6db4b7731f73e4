"""Pre-flight checks for the ``.env`` file of a hosted login deployment.

Cognito only reports most configuration mistakes at sign-in time, as a
``redirect_mismatch`` page or a rejected ``userInfo`` call. ``check`` loads the
settings and reviews them for those mistakes up front. ``record`` and
``verify`` keep a SHA-256 baseline of the file, so an unexpected edit (for
example, a rotated app client secret) is noticed before services restart.

Example usages::

    python -m scripts.check_env check --env-file /srv/auth/.env

    python -m scripts.check_env record --env-file /srv/auth/.env \
        --hash-file /srv/auth/.env.sha256

    python -m scripts.check_env verify --env-file /srv/auth/.env \
        --hash-file /srv/auth/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import logging
import sys
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from cognito_auth.core.config import AppSettings, _load_env_file
from cognito_auth.core.logging import configure_logging

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

CALLBACK_PATH_SUFFIX = "/auth/callback"

logger = logging.getLogger("check_env")


class CheckFailed(Exception):
    """Stops the run with ``exit_code`` after the reason has been logged."""

    def __init__(self, exit_code: int) -> None:
        super().__init__(exit_code)
        self.exit_code = exit_code


def load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        logger.error("Environment file %s does not exist.", env_file)
        raise CheckFailed(EXIT_RUNTIME_ERROR)

    _load_env_file(str(env_file))
    try:
        return AppSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "settings"
            logger.error("%s: %s", location, error["msg"])
        raise CheckFailed(EXIT_VALIDATION_ERROR) from exc


def review_settings(settings: AppSettings) -> list[str]:
    """Return human readable problems that would break or weaken the login flow."""
    cognito = settings.cognito
    problems: list[str] = []

    callback_path = urlsplit(cognito.redirect_uri).path.rstrip("/")
    if not callback_path.endswith(CALLBACK_PATH_SUFFIX):
        problems.append(
            f"COGNITO_REDIRECT_URI {cognito.redirect_uri} does not end in "
            f"{CALLBACK_PATH_SUFFIX}; Cognito would send the code elsewhere."
        )
    if "openid" not in cognito.scopes:
        problems.append("COGNITO_SCOPES lacks 'openid'; userInfo will reject the access token.")

    if settings.secure_cookies:
        for name, url in (
            ("COGNITO_REDIRECT_URI", cognito.redirect_uri),
            ("COGNITO_LOGOUT_URI", cognito.logout_uri),
        ):
            if urlsplit(url).scheme != "https":
                problems.append(f"{name} must use https when APP_ENV={settings.environment}.")
        if not settings.oauth.session_secret:
            problems.append("SESSION_SECRET is unset; sessions are signed with the app client secret.")

    return problems


def _checksum(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def run_check(args: argparse.Namespace, settings: AppSettings) -> int:
    cognito = settings.cognito
    logger.info("Hosted UI: https://%s (client %s)", cognito.oauth2_domain, cognito.app_client_id)
    logger.info("Callback URL: %s", cognito.redirect_uri)
    logger.info("Sign-out URL: %s", cognito.logout_uri)

    problems = review_settings(settings)
    for problem in problems:
        logger.warning(problem)
    return EXIT_VALIDATION_ERROR if problems else EXIT_OK


def run_record(args: argparse.Namespace, settings: AppSettings) -> int:
    checksum = _checksum(args.env_file)
    args.hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    logger.info("Recorded baseline %s in %s", checksum, args.hash_file)
    return EXIT_OK


def run_verify(args: argparse.Namespace, settings: AppSettings) -> int:
    if not args.hash_file.exists():
        logger.error("No baseline at %s; run 'record' first.", args.hash_file)
        return EXIT_RUNTIME_ERROR

    expected = args.hash_file.read_text(encoding="utf-8").strip()
    actual = _checksum(args.env_file)
    if expected != actual:
        logger.error(
            "%s changed since the baseline was recorded (expected %s, found %s).",
            args.env_file,
            expected,
            actual,
        )
        return EXIT_CHECKSUM_ERROR

    logger.info("%s matches its baseline.", args.env_file)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate hosted login settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    commands = (
        ("check", run_check, "Load the settings and report risky values.", False),
        ("record", run_record, "Validate settings and store the checksum baseline.", True),
        ("verify", run_verify, "Validate settings and compare against the baseline.", True),
    )
    for name, handler, help_text, needs_baseline in commands:
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.set_defaults(handler=handler)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
        if needs_baseline:
            subparser.add_argument(
                "--hash-file", required=True, type=Path, help="Checksum baseline location."
            )

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = _build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
    except CheckFailed as exc:
        return exc.exit_code
    return args.handler(args, settings)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
