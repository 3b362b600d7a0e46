# app/api/auth.py
import logging
from datetime import timedelta

import httpx
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import HTTPConnection
from authlib.integrations.starlette_client import OAuth, OAuthError

from app.core.config import settings
from app.core.database import SessionDep
from app.core.errors import AuthError
from app.models.user import UserProfile
from app.schemas.user import LoginRequest, ProfileRead, SessionRead, SignUpRequest
from app.services.identity import FederatedAssertion
from app.services.session import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter()

ACCESS_TOKEN_COOKIE = "access_token"

oauth = OAuth()
oauth.register(
    name="google",
    client_id=settings.google_client_id,
    client_secret=settings.google_client_secret,
    authorize_url="https://accounts.google.com/o/oauth2/auth",
    authorize_params=None,
    access_token_url="https://accounts.google.com/o/oauth2/token",
    access_token_params=None,
    refresh_token_url=None,
    redirect_uri=settings.redirect_url, # Where Google redirects after auth
    jwks_uri="https://www.googleapis.com/oauth2/v3/certs",
    client_kwargs={"scope": "openid profile email"},
)

# --- Helper Functions ---

def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True, # Prevent JavaScript access
        secure=settings.cookie_secure,
        samesite="Lax",
        max_age=int(timedelta(minutes=settings.access_token_expire_minutes).total_seconds()),
        path="/"
    )

# --- Core Dependency Functions ---

def get_session_context(connection: HTTPConnection, session: SessionDep) -> SessionContext:
    """Builds the per-connection session context and restores it from the cookie."""
    context = SessionContext(session)
    context.restore(connection.cookies.get(ACCESS_TOKEN_COOKIE))
    return context


def get_current_profile(context: SessionContext = Depends(get_session_context)) -> UserProfile:
    """Dependency to get the signed-in user's profile; raises AuthError (401) otherwise."""
    return context.require_profile()

# --- API Endpoints ---

@router.post("/signup", response_model=ProfileRead, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignUpRequest,
    response: Response,
    context: SessionContext = Depends(get_session_context),
):
    """Creates an account and its profile, then signs the user in."""
    profile = context.sign_up(payload.email, payload.password, payload.display_name)
    set_session_cookie(response, context.issue_token())
    return profile


@router.post("/login", response_model=ProfileRead)
async def login(
    payload: LoginRequest,
    response: Response,
    context: SessionContext = Depends(get_session_context),
):
    """Email/password sign-in."""
    profile = context.login(payload.email, payload.password)
    set_session_cookie(response, context.issue_token())
    return profile


@router.get("/login/google")
async def login_google(request: Request):
    """Initiates the Google OAuth2 login flow."""
    request.session.clear() # Clear any previous session state
    request.session["login_redirect_url"] = settings.frontend_url
    logger.info(f"Initiating Google login. Redirect URI for Google: {settings.redirect_url}")
    return await oauth.google.authorize_redirect(request, settings.redirect_url)


@router.get("/auth", include_in_schema=False) # Hide from OpenAPI docs
async def auth(request: Request, context: SessionContext = Depends(get_session_context)):
    """Handles the callback from Google after user authorization."""
    final_redirect_url = request.session.pop("login_redirect_url", settings.frontend_url)
    try:
        logger.info("Handling /auth callback from Google...")
        token_data = await oauth.google.authorize_access_token(request)
    except OAuthError as e:
        logger.error(f"Error authorizing access token from Google: {e}", exc_info=True)
        return RedirectResponse(final_redirect_url + "?error=google_auth_failed")

    # Prefer the parsed id_token, else fetch userinfo
    user_info = token_data.get("userinfo")
    if not user_info:
        logger.warning("Userinfo not in token response, fetching separately...")
        try:
            headers = {"Authorization": f'Bearer {token_data["access_token"]}'}
            async with httpx.AsyncClient() as client:
                google_response = await client.get("https://www.googleapis.com/oauth2/v3/userinfo", headers=headers)
                google_response.raise_for_status()
                user_info = google_response.json()
        except (httpx.HTTPError, KeyError) as e:
            logger.error(f"Error fetching userinfo from Google: {e}", exc_info=True)
            return RedirectResponse(final_redirect_url + "?error=google_userinfo_failed")

    iss = user_info.get("iss")
    if iss and iss not in ["https://accounts.google.com", "accounts.google.com"]:
        logger.error(f"Invalid issuer: {iss}")
        return RedirectResponse(final_redirect_url + "?error=invalid_issuer")

    google_user_id = user_info.get("sub")
    user_email = user_info.get("email")
    if not google_user_id or not user_email:
        logger.error("User sub or email missing in userinfo")
        return RedirectResponse(final_redirect_url + "?error=missing_user_data")

    assertion = FederatedAssertion(
        subject=google_user_id,
        email=user_email,
        display_name=user_info.get("name"),
        email_verified=str(user_info.get("email_verified", "")).lower() == "true",
    )
    try:
        context.login_with_federated_identity(assertion)
    except AuthError as e:
        logger.error(f"Federated login rejected for {user_email}: {e.detail}")
        return RedirectResponse(final_redirect_url + "?error=email_not_verified")

    logger.info(f"Authentication successful. Redirecting user to: {final_redirect_url}")
    response = RedirectResponse(final_redirect_url)
    set_session_cookie(response, context.issue_token())
    return response


@router.get("/auth/session", response_model=SessionRead)
async def auth_session(context: SessionContext = Depends(get_session_context)):
    """
    Session restoration. The client awaits this once on start, before its
    first render; an invalid or missing cookie is reported as unauthenticated.
    """
    profile = ProfileRead.model_validate(context.profile) if context.is_authenticated else None
    return SessionRead(state=context.state.value, profile=profile)


@router.get("/logout")
async def logout(request: Request, context: SessionContext = Depends(get_session_context)):
    """Logs the user out: closes live channels and deletes the session cookie."""
    context.logout()
    request.session.clear()
    response = JSONResponse(content={"message": "Logged out successfully."})
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/") # Ensure path matches where it was set
    logger.info("User logged out, cookie deleted.")
    return response
