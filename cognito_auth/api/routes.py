"""
FastAPI routes driving the Cognito hosted UI login flow.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from cognito_auth.clients.cognito import (
    AuthenticationError,
    InvalidSignatureError,
    TokenNotFoundError,
)
from cognito_auth.dependencies import (
    get_app_settings,
    get_auth_service,
    get_cognito_client,
    get_oauth_state_encoder,
    get_sqlite_store,
)
from cognito_auth.models.user import User
from cognito_auth.schemas import (
    AuthorizationUrlResponse,
    OAuthCallbackPayload,
    TokenRefreshResponse,
    UserResponse,
)
from cognito_auth.utils.http import client_ip, wants_html

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/login", status_code=HTTPStatus.OK)
async def start_login(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_cognito_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    redirect_to: str | None = Query(
        default=None,
        description="Path or front-end URL to return to after signing in.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the hosted login page.",
    ),
) -> Response:
    """
    Clear the current session and send the user to the hosted login page.
    """
    _ensure_safe_redirect(redirect_to, settings)
    state, nonce = _issue_state(state_encoder, redirect_to)
    authorization_url = oauth_client.build_login_url(
        settings.cognito.redirect_uri,
        scopes=settings.cognito.scopes,
        state=state,
    )

    response: Response
    if redirect or wants_html(request):
        response = RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(
            content=AuthorizationUrlResponse(
                authorization_url=authorization_url, state=state
            ).model_dump()
        )
    _flush_session(response, settings)
    _bind_state(response, nonce, settings)
    return response


@router.get("/auth/logout", status_code=HTTPStatus.TEMPORARY_REDIRECT)
async def logout(
    oauth_client: Annotated[Any, Depends(get_cognito_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> Response:
    """Clear the session, sign out of Cognito and land on the logout URI."""
    response = RedirectResponse(
        url=oauth_client.build_logout_url(settings.cognito.logout_uri),
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )
    _flush_session(response, settings)
    return response


@router.get("/auth/relogin", status_code=HTTPStatus.TEMPORARY_REDIRECT)
async def logout_and_login(
    oauth_client: Annotated[Any, Depends(get_cognito_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    redirect_to: str | None = Query(default=None),
) -> Response:
    """Clear the session, sign out of Cognito and show the login page again."""
    _ensure_safe_redirect(redirect_to, settings)
    state, nonce = _issue_state(state_encoder, redirect_to)
    response = RedirectResponse(
        url=oauth_client.build_logout_and_login_url(
            settings.cognito.redirect_uri,
            scopes=settings.cognito.scopes,
            state=state,
        ),
        status_code=HTTPStatus.TEMPORARY_REDIRECT,
    )
    _flush_session(response, settings)
    _bind_state(response, nonce, settings)
    return response


@router.post("/auth/callback", status_code=HTTPStatus.OK)
async def handle_callback(
    request: Request,
    payload: OAuthCallbackPayload,
    auth_service: Annotated[Any, Depends(get_auth_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> Response:
    """Complete the code exchange and start a session."""
    user, state_data = await _complete_login(
        request, payload, auth_service, state_encoder, settings
    )
    response = JSONResponse(content=_login_result(user, state_data))
    _start_session(response, user, state_encoder, settings)
    return response


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_callback_get(
    request: Request,
    auth_service: Annotated[Any, Depends(get_auth_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str | None = Query(default=None, description="Authorization code."),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    """
    Landing point for the hosted UI redirect.

    Authorization codes are single use, so browsers are sent on to another
    page rather than left on a URL that would fail when reloaded.
    """
    if error:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail=error_description or error,
        )
    if not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Missing authorization code."
        )

    payload = OAuthCallbackPayload(state=state, code=code)
    user, state_data = await _complete_login(
        request, payload, auth_service, state_encoder, settings
    )

    redirect_target = state_data.get("redirect_to") or settings.frontend_base_url
    response: Response
    if redirect_target and (redirect or wants_html(request)):
        response = RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(content=_login_result(user, state_data))
    _start_session(response, user, state_encoder, settings)
    return response


@router.get("/auth/me", status_code=HTTPStatus.OK)
async def current_user(
    request: Request,
    record_store: Annotated[Any, Depends(get_sqlite_store)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    user_id = _require_session(request, state_encoder, settings)
    user = record_store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Not authenticated.")
    return _user_response(user)


@router.post("/auth/refresh", status_code=HTTPStatus.OK)
async def refresh_access_token(
    request: Request,
    auth_service: Annotated[Any, Depends(get_auth_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    user_id = _require_session(request, state_encoder, settings)
    try:
        record = await auth_service.refresh_access_token(user_id)
    except TokenNotFoundError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except AuthenticationError as exc:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=str(exc)) from exc

    return TokenRefreshResponse(expires_at=record.expires_at).model_dump(mode="json")


async def _complete_login(
    request: Request,
    payload: OAuthCallbackPayload,
    auth_service: Any,
    state_encoder: Any,
    settings: Any,
) -> tuple[User, dict]:
    state_data = _verify_state(request, state_encoder, payload.state, settings)
    try:
        user = await auth_service.authorize(
            payload.code,
            settings.cognito.redirect_uri,
            ip_address=client_ip(request),
        )
    except AuthenticationError as exc:
        logger.info("Authorization code exchange rejected: %s", exc)
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=str(exc)) from exc
    return user, state_data


def _issue_state(state_encoder: Any, redirect_to: str | None) -> tuple[str, str]:
    nonce = uuid.uuid4().hex
    state = state_encoder.encode(
        {
            "nonce": nonce,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    return state, nonce


def _bind_state(response: Response, nonce: str, settings: Any) -> None:
    """Tie the state to this browser so a callback started elsewhere is refused."""
    response.set_cookie(
        settings.oauth.state_cookie_name,
        nonce,
        max_age=settings.oauth.state_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )


def _verify_state(request: Request, state_encoder: Any, state: str, settings: Any) -> dict:
    try:
        state_data = state_encoder.decode(state)
    except InvalidSignatureError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid OAuth state signature.",
        ) from exc

    issued_at = _parse_issued_at(state_data)
    if issued_at is None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing or invalid issued_at in state token.",
        )

    if datetime.now(timezone.utc) - issued_at > timedelta(
        seconds=settings.oauth.state_ttl_seconds
    ):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    expected = request.cookies.get(settings.oauth.state_cookie_name) or ""
    nonce = state_data.get("nonce")
    if (
        not expected
        or not isinstance(nonce, str)
        or not hmac.compare_digest(nonce, expected)
    ):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="OAuth state does not match this browser.",
        )
    return state_data


def _parse_issued_at(data: dict) -> datetime | None:
    raw = data.get("issued_at")
    if not raw:
        return None
    try:
        issued_at = datetime.fromisoformat(raw)
    except (TypeError, ValueError):
        return None
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return issued_at


def _ensure_safe_redirect(redirect_to: str | None, settings: Any) -> None:
    """Only same-site paths or the configured front-end origin may be returned to."""
    if not redirect_to:
        return
    if _is_allowed_target(redirect_to, settings.frontend_base_url):
        return
    raise HTTPException(
        status_code=HTTPStatus.BAD_REQUEST, detail="redirect_to is not an allowed target."
    )


def _is_allowed_target(redirect_to: str, frontend: Any) -> bool:
    # Browsers treat "\" as "/" and drop tabs/newlines, so "/\host" leaves the site.
    if "\\" in redirect_to or any(ord(char) < 0x20 for char in redirect_to):
        return False
    try:
        target = urlsplit(redirect_to)
        target_port = target.port
    except ValueError:
        return False

    if not target.scheme and not target.netloc:
        return redirect_to.startswith("/") and not redirect_to.startswith("//")
    if frontend is None:
        return False

    allowed = urlsplit(str(frontend))
    return (
        target.username is None
        and target.password is None
        and target.scheme.lower() == allowed.scheme.lower()
        and target.hostname is not None
        and target.hostname == allowed.hostname
        and target_port == allowed.port
    )


def _start_session(response: Response, user: User, state_encoder: Any, settings: Any) -> None:
    session_value = state_encoder.encode(
        {"user_id": user.id, "issued_at": datetime.now(timezone.utc).isoformat()}
    )
    response.set_cookie(
        settings.oauth.session_cookie_name,
        session_value,
        max_age=settings.oauth.session_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )
    response.delete_cookie(settings.oauth.state_cookie_name)


def _flush_session(response: Response, settings: Any) -> None:
    response.delete_cookie(settings.oauth.session_cookie_name)


def _require_session(request: Request, state_encoder: Any, settings: Any) -> int:
    cookie = request.cookies.get(settings.oauth.session_cookie_name)
    if not cookie:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Not authenticated.")
    try:
        session = state_encoder.decode(cookie)
    except InvalidSignatureError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Not authenticated."
        ) from exc

    user_id = session.get("user_id")
    issued_at = _parse_issued_at(session)
    max_age = timedelta(seconds=settings.oauth.session_max_age_seconds)
    if not isinstance(user_id, int) or issued_at is None:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Not authenticated.")
    if datetime.now(timezone.utc) - issued_at > max_age:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Session expired.")
    return user_id


def _user_response(user: User) -> dict:
    return UserResponse(id=user.id, sub=user.sub, email=user.email, name=user.name).model_dump()


def _login_result(user: User, state_data: dict) -> dict:
    return {
        "status": "authenticated",
        "user": _user_response(user),
        "redirect_to": state_data.get("redirect_to"),
    }


__all__ = ["router"]
