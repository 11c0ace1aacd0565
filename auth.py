"""
Authentication module for SearchScope
Google OAuth 2.0 flow that supplies Search Console access tokens per user
"""

from typing import Dict, MutableMapping, Optional

import streamlit as st
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import id_token
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from config import (
    GSC_SCOPES, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI,
    ERROR_MESSAGES
)
from errors import AuthError
from logger import log
from models import User
from storage import Storage

# Session state owned by a signed-in user
SESSION_KEYS = ['user_id', 'authenticated', 'sites', 'analyses', 'dashboard_data']


class GoogleAuthenticator:
    """Runs the OAuth handshake and keeps the user's Google tokens current"""

    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 redirect_uri: Optional[str] = None):
        self.client_id = client_id or GOOGLE_CLIENT_ID
        self.client_secret = client_secret or GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or GOOGLE_REDIRECT_URI

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _build_flow(self, state: Optional[str] = None) -> Flow:
        if not self.configured:
            raise AuthError("OAuth credentials not configured. Please set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET")

        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                    "redirect_uris": [self.redirect_uri]
                }
            },
            scopes=GSC_SCOPES,
            redirect_uri=self.redirect_uri,
            state=state
        )

    def authorization_url(self) -> str:
        """Consent URL; forces re-consent so Google issues a refresh token"""
        flow = self._build_flow()
        auth_url, _ = flow.authorization_url(
            access_type='offline',
            prompt='consent',
            include_granted_scopes='true'
        )
        return auth_url

    def exchange_code(self, code: str) -> Credentials:
        """
        Exchange an authorization code for credentials

        Raises:
            AuthError: the code was rejected
        """
        flow = self._build_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            # oauthlib raises its own hierarchy; any failure here means no token
            log.error(f"OAuth code exchange failed: {e}")
            raise AuthError(f"Failed to exchange OAuth code: {e}") from e
        return flow.credentials

    def fetch_profile(self, credentials: Credentials) -> Dict:
        """Google account id, email and name from the OpenID token"""
        if not credentials.id_token:
            raise AuthError("Google did not return an identity token")

        try:
            claims = id_token.verify_oauth2_token(credentials.id_token, Request(), self.client_id)
        except (ValueError, GoogleAuthError) as e:
            raise AuthError(f"Invalid identity token: {e}") from e

        return {
            'google_id': claims['sub'],
            'email': claims.get('email'),
            'name': claims.get('name') or claims.get('email') or f"user_{claims['sub']}"
        }

    def credentials_for(self, user: User) -> Credentials:
        """Rebuild credentials from the tokens stored on a user"""
        if not user.google_access_token:
            raise AuthError(ERROR_MESSAGES['not_connected'])

        return Credentials(
            token=user.google_access_token,
            refresh_token=user.google_refresh_token,
            token_uri="https://oauth2.googleapis.com/token",
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=GSC_SCOPES
        )


def get_access_token(credentials: Credentials) -> str:
    """
    Return a usable bearer token, refreshing it first when expired

    Raises:
        AuthError: expired without a refresh token, or the refresh failed
    """
    if credentials.expired or not credentials.token:
        if not credentials.refresh_token:
            raise AuthError("Access token expired and no refresh token is available")
        try:
            credentials.refresh(Request())
        except RefreshError as e:
            log.error(f"Failed to refresh Google OAuth token: {e}")
            raise AuthError(f"Failed to refresh Google OAuth token: {e}") from e
        log.info("Refreshed Google OAuth token")

    return credentials.token


def sign_in(storage: Storage, authenticator: GoogleAuthenticator, credentials: Credentials) -> User:
    """Find or create the user for these credentials and store the tokens"""
    profile = authenticator.fetch_profile(credentials)

    user = storage.get_user_by_google_id(profile['google_id'])
    if not user:
        user = storage.create_user(profile['name'], profile['email'])
        log.info(f"Created user {user.id} for Google account {profile['email']}")

    return storage.update_user_google_credentials(
        user.id,
        profile['google_id'],
        get_access_token(credentials),
        credentials.refresh_token or ""
    )


def current_user(storage: Storage) -> Optional[User]:
    user_id = st.session_state.get('user_id')
    return storage.get_user(user_id) if user_id else None


def clear_session(state: MutableMapping) -> None:
    """Drop the signed-in user and everything loaded on their behalf"""
    for key in SESSION_KEYS:
        if key in state:
            del state[key]


def disconnect():
    """Clear all authentication data from the session"""
    clear_session(st.session_state)
    st.query_params.clear()


def handle_authentication(storage: Storage) -> Optional[User]:
    """
    Sidebar authentication UI

    Returns:
        The signed-in user, or None while the OAuth flow is pending
    """
    user = current_user(storage)
    if user:
        st.sidebar.success(f"✅ Connected as {user.email or user.username}")
        if st.sidebar.button("🔌 Disconnect", use_container_width=True):
            disconnect()
            st.rerun()
        return user

    authenticator = GoogleAuthenticator()

    st.sidebar.subheader("🔐 Connect Google Search Console")

    if not authenticator.configured:
        st.sidebar.error("❌ OAuth credentials not configured")
        st.sidebar.info("Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in environment variables")
        return None

    # Handle OAuth callback
    code = st.query_params.get('code')
    if code:
        try:
            credentials = authenticator.exchange_code(code)
            user = sign_in(storage, authenticator, credentials)
        except AuthError as e:
            st.sidebar.error(f"❌ {e.message}")
            st.query_params.clear()
            return None

        st.session_state.user_id = user.id
        st.session_state.authenticated = True
        st.query_params.clear()
        st.rerun()

    try:
        auth_url = authenticator.authorization_url()
    except AuthError as e:
        st.sidebar.error(f"❌ {e.message}")
        return None

    st.sidebar.link_button("🚀 Connect with Google", auth_url, type="primary", use_container_width=True)

    with st.sidebar.expander("📋 OAuth Setup Instructions"):
        st.markdown(f"""
        **Step 1:** Configure OAuth in Google Cloud Console
        1. Go to APIs & Services > Credentials
        2. Create OAuth 2.0 Client ID
        3. Add redirect URI: `{authenticator.redirect_uri}`

        **Step 2:** Enable the Google Search Console API

        **Step 3:** Set Environment Variables
        - GOOGLE_CLIENT_ID
        - GOOGLE_CLIENT_SECRET
        - GOOGLE_REDIRECT_URI
        """)

    return None
