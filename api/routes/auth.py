"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /auth/register  -- create account; returns user + token pair (201)
  POST /auth/login     -- email/password login; returns user + token pair
  POST /auth/refresh   -- rotate a refresh token; returns a new pair
  POST /auth/logout    -- revoke one refresh token (requires access token)
  GET  /auth/me        -- current user (requires access token)

Security:
  AuthService.login() equalizes timing and returns one generic error for
  unknown email and wrong password. Do NOT inline get_by_email() +
  verify_password() here.
  Cache-Control: no-store on every response that carries tokens.

Handlers are plain `def`: FastAPI runs them in its threadpool, so bcrypt and
database calls never block the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenPairResponse,
    UserEnvelope,
    UserPublic,
)
from auth.dependencies import get_current_identity
from auth.models import TokenPayload
from auth.service import AuthService

# Auth policy:
# - POST /auth/register: public
# - POST /auth/login:    public
# - POST /auth/refresh:  public -- the refresh token itself is the credential
# - POST /auth/logout:   requires access token (get_current_identity)
# - GET  /auth/me:       requires access token (get_current_identity)
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create an account and return it with its first token pair."""
    result = _service(request).register(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        bio=body.bio,
    )
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="User registered successfully",
        user=UserPublic.from_user(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password and open a new session."""
    result = _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="Login successful",
        user=UserPublic.from_user(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    )


@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(request: Request, response: Response, body: RefreshTokenRequest) -> TokenPairResponse:
    """Exchange a refresh token for a new pair. The presented token stops working."""
    pair = _service(request).refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenPairResponse(
        message="Token refreshed successfully",
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    request: Request,
    body: RefreshTokenRequest,
    identity: TokenPayload = Depends(get_current_identity),
) -> MessageResponse:
    """Revoke the given refresh token for the authenticated user."""
    _service(request).logout(identity, body.refresh_token)
    return MessageResponse(message="Logout successful")


@router.get("/auth/me", response_model=UserEnvelope)
def me(request: Request, identity: TokenPayload = Depends(get_current_identity)) -> UserEnvelope:
    """Return the current record of the authenticated user."""
    user = _service(request).get_user(identity.user_id)
    return UserEnvelope(user=UserPublic.from_user(user))
