"""
FastAPI routes for the OAuth credential service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, NoReturn, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.clients import OAuthIdentityError, OAuthTokenExchangeError, UserDirectoryError
from app.core.config import AppSettings
from app.dependencies import (
    get_app_settings,
    get_authorization_service,
    get_transport_token,
)
from app.schemas import (
    AuthorizationUrlResponse,
    ConnectedResponse,
    OAuthCallbackPayload,
    SessionResponse,
)
from app.services.errors import (
    CredentialNotFoundError,
    RefreshProviderRejectedError,
    RefreshStoreFailedError,
    StateUnrecognizedError,
    StoreError,
    TokenMalformedError,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _raise_http(exc: Exception) -> NoReturn:
    """Translate a service failure into the matching HTTP rejection."""
    if isinstance(exc, StateUnrecognizedError):
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="OAuth state unrecognized."
        ) from exc
    if isinstance(exc, TokenMalformedError):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Malformed access token."
        ) from exc
    if isinstance(exc, (CredentialNotFoundError, RefreshProviderRejectedError)):
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Authorization required.",
        ) from exc
    if isinstance(exc, RefreshStoreFailedError):
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Credential refresh could not be saved.",
        ) from exc
    if isinstance(exc, StoreError):
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Credential storage unavailable.",
        ) from exc
    if isinstance(exc, OAuthTokenExchangeError):
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to exchange authorization code.",
        ) from exc
    if isinstance(exc, (OAuthIdentityError, UserDirectoryError, httpx.HTTPError)):
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to resolve user identity.",
        ) from exc
    raise exc


_SERVICE_ERRORS = (
    StateUnrecognizedError,
    TokenMalformedError,
    StoreError,
    RefreshProviderRejectedError,
    RefreshStoreFailedError,
    OAuthTokenExchangeError,
    OAuthIdentityError,
    UserDirectoryError,
    httpx.HTTPError,
)


def _set_session_cookie(response: Response, settings: AppSettings, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    service: Annotated[Any, Depends(get_authorization_service)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the consent screen.",
    ),
) -> Any:
    """
    Kick off the OAuth flow by issuing a state token and authorization URL.
    """
    start = service.begin_authorization()

    if redirect or _wants_html(request):
        return RedirectResponse(
            url=start.authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )

    return AuthorizationUrlResponse(
        authorization_url=start.authorization_url, state=start.state
    )


async def _complete(service: Any, payload: OAuthCallbackPayload) -> ConnectedResponse:
    try:
        result = await service.complete_authorization(payload.state, payload.code)
    except _SERVICE_ERRORS as exc:
        logger.warning("OAuth callback failed: %s", type(exc).__name__)
        _raise_http(exc)

    return ConnectedResponse(
        provider_id=result.record.provider_id,
        user_id=result.record.user_id,
        display_name=result.identity.display_name,
        access_token=result.transport_token,
        expires_at=result.record.expires_at,
    )


@router.post("/auth/callback", response_model=ConnectedResponse)
async def handle_oauth_callback(
    payload: OAuthCallbackPayload,
    response: Response,
    service: Annotated[Any, Depends(get_authorization_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> ConnectedResponse:
    """Complete the OAuth exchange, store tokens, and set the session cookie."""
    connected = await _complete(service, payload)
    _set_session_cookie(response, settings, connected.access_token)
    return connected


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback_get(
    request: Request,
    service: Annotated[Any, Depends(get_authorization_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by the provider."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    connected = await _complete(service, OAuthCallbackPayload(state=state, code=code))

    response: Response
    if settings.frontend_base_url and (redirect or _wants_html(request)):
        response = RedirectResponse(
            url=str(settings.frontend_base_url),
            status_code=HTTPStatus.TEMPORARY_REDIRECT,
        )
    else:
        response = JSONResponse(content=connected.model_dump(mode="json"))
    _set_session_cookie(response, settings, connected.access_token)
    return response


@router.get("/auth/session", response_model=SessionResponse)
async def get_session(
    response: Response,
    service: Annotated[Any, Depends(get_authorization_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    token: Annotated[Optional[str], Depends(get_transport_token)],
) -> SessionResponse:
    """Validate the caller's token, refreshing it with the provider when expired."""
    if not token:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Missing access token."
        )

    try:
        result = await service.authorize(token)
    except _SERVICE_ERRORS as exc:
        _raise_http(exc)

    if result.rotated and result.transport_token:
        _set_session_cookie(response, settings, result.transport_token)

    return SessionResponse(
        provider_id=result.record.provider_id,
        user_id=result.record.user_id,
        expires_at=result.record.expires_at,
        rotated=result.rotated,
        access_token=result.transport_token,
    )


__all__ = ["router"]
