"""
OAuth 2.0 Authorization Code flow with PKCE.

Tokens and in-flight sessions are persisted per provider in a key-value
store so they survive restarts. One OAuth identity is shared by every
domain that syncs through the same provider.
"""

import base64
import hashlib
import logging
import secrets
import time
from abc import ABC, abstractmethod
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from ..exceptions import AuthError
from ..storage import KeyValueStore

logger = logging.getLogger(__name__)

OAUTH_PROVIDERS: Dict[str, Dict[str, Any]] = {
    "google": {
        "auth_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "scopes": {
            "drive": "https://www.googleapis.com/auth/drive.file",
        },
    },
    "dropbox": {
        "auth_url": "https://www.dropbox.com/oauth2/authorize",
        "token_url": "https://api.dropboxapi.com/oauth2/token",
        "scopes": {},
    },
}

PKCE_CHARSET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
VERIFIER_LENGTH = 64
STATE_LENGTH = 32

SESSION_TTL_MS = 10 * 60 * 1000
EXPIRY_BUFFER_MS = 5 * 60 * 1000
DEFAULT_EXPIRES_IN = 3600


def generate_random_string(length: int) -> str:
    """Random string drawn from the PKCE unreserved character set."""
    return "".join(secrets.choice(PKCE_CHARSET) for _ in range(length))


def generate_pkce() -> tuple[str, str]:
    """
    Generate a PKCE code verifier and its S256 challenge.

    Returns:
        Tuple of (verifier, challenge)
    """
    verifier = generate_random_string(VERIFIER_LENGTH)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return verifier, challenge


def _get_provider_config(provider: str) -> Dict[str, Any]:
    config = OAUTH_PROVIDERS.get(provider)
    if not config:
        raise AuthError(f"Unknown provider: {provider}")
    return config


@dataclass
class OAuthSession:
    """In-flight authorization, kept until the callback arrives."""
    state: str
    code_verifier: str
    created_at: int  # epoch ms

    def is_expired(self, now_ms: int) -> bool:
        """Sessions expire after 10 minutes."""
        return now_ms - self.created_at > SESSION_TTL_MS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "verifier": self.code_verifier,
            "timestamp": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuthSession":
        return cls(
            state=data["state"],
            code_verifier=data["verifier"],
            created_at=int(data["timestamp"]),
        )


@dataclass
class TokenRecord:
    """Stored OAuth tokens for one provider."""
    access_token: str
    expiry: int  # epoch ms
    refresh_token: Optional[str] = None

    def is_expired(self, now_ms: int) -> bool:
        """Consider expired 5 minutes before actual expiry."""
        return now_ms > self.expiry - EXPIRY_BUFFER_MS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiry": self.expiry,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenRecord":
        return cls(
            access_token=data["accessToken"],
            refresh_token=data.get("refreshToken"),
            expiry=int(data["expiry"]),
        )


class TokenStore:
    """
    Persists token records and pending OAuth sessions keyed by provider.
    """

    def __init__(self, store: KeyValueStore):
        """
        Initialize token store.

        Args:
            store: Backing key-value store
        """
        self.store = store

    @staticmethod
    def _token_key(provider: str) -> str:
        return f"token-{provider}"

    @staticmethod
    def _session_key(provider: str) -> str:
        return f"oauth-{provider}"

    def save_session(self, provider: str, session: OAuthSession) -> None:
        self.store.set_json(self._session_key(provider), session.to_dict())

    def get_session(self, provider: str) -> Optional[OAuthSession]:
        data = self.store.get_json(self._session_key(provider))
        if not data:
            return None
        try:
            return OAuthSession.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Discarding malformed OAuth session for {provider}")
            self.clear_session(provider)
            return None

    def clear_session(self, provider: str) -> None:
        self.store.delete(self._session_key(provider))

    def save_token(self, provider: str, record: TokenRecord) -> None:
        self.store.set_json(self._token_key(provider), record.to_dict())
        logger.info(f"Stored tokens for {provider}")

    def get_token(self, provider: str) -> Optional[TokenRecord]:
        data = self.store.get_json(self._token_key(provider))
        if not data:
            return None
        try:
            return TokenRecord.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Discarding malformed tokens for {provider}")
            self.delete_token(provider)
            return None

    def delete_token(self, provider: str) -> None:
        self.store.delete(self._token_key(provider))


class UserAgent(ABC):
    """The user agent's location: where callbacks arrive and redirects go."""

    @abstractmethod
    def current_url(self) -> str:
        """URL of the current location."""
        pass

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Send the user agent to another page."""
        pass

    @abstractmethod
    def replace_url(self, url: str) -> None:
        """Rewrite the visible URL without navigating."""
        pass

    def query_params(self) -> Mapping[str, str]:
        """Query parameters of the current location."""
        return dict(parse_qsl(urlsplit(self.current_url()).query))


class RequestUserAgent(UserAgent):
    """
    User agent bound to the URL of the current HTTP request.

    A navigation is recorded in ``redirect_url`` for the web layer to turn
    into an HTTP redirect. Both values live in context variables, so
    concurrent requests (each running in its own task) do not see each
    other's location.
    """

    def __init__(self, url: str = ""):
        self._url: ContextVar[str] = ContextVar(f"user_agent_url_{id(self)}", default=url)
        self._redirect_url: ContextVar[Optional[str]] = ContextVar(
            f"user_agent_redirect_{id(self)}", default=None
        )

    @property
    def url(self) -> str:
        return self._url.get()

    @url.setter
    def url(self, value: str) -> None:
        self._url.set(value)

    @property
    def redirect_url(self) -> Optional[str]:
        return self._redirect_url.get()

    @redirect_url.setter
    def redirect_url(self, value: Optional[str]) -> None:
        self._redirect_url.set(value)

    def bind(self, url: str) -> None:
        """Start handling a new request at ``url``."""
        self.url = url
        self.redirect_url = None

    def current_url(self) -> str:
        return self.url

    def navigate(self, url: str) -> None:
        self.redirect_url = url

    def replace_url(self, url: str) -> None:
        self.url = url


class OAuthAuthenticator:
    """
    Drives the Authorization Code with PKCE flow.

    State per provider: unauthenticated -> auth started (session saved,
    redirected) -> authenticated (token saved) -> unauthenticated again on
    logout or expiry.
    """

    def __init__(
        self,
        token_store: TokenStore,
        user_agent: UserAgent,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize authenticator.

        Args:
            token_store: Storage for tokens and pending sessions
            user_agent: Current location of the user agent
            http_client: HTTP client for the token endpoint
            clock: Returns the current time in epoch seconds
        """
        self.token_store = token_store
        self.user_agent = user_agent
        self._clock = clock
        self._http_client = http_client
        self._owns_client = http_client is None

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client if this authenticator created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def start_auth(
        self,
        provider: str,
        client_id: str,
        scopes: List[str],
        redirect_uri: str,
    ) -> str:
        """
        Start the authorization flow and redirect the user agent.

        Args:
            provider: Provider name (google, dropbox)
            client_id: OAuth client ID
            scopes: Requested scopes
            redirect_uri: OAuth redirect URI

        Returns:
            The authorization URL the user agent was sent to
        """
        config = _get_provider_config(provider)

        verifier, challenge = generate_pkce()
        state = generate_random_string(STATE_LENGTH)

        self.token_store.save_session(
            provider,
            OAuthSession(state=state, code_verifier=verifier, created_at=self._now_ms()),
        )

        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
        auth_url = f"{config['auth_url']}?{urlencode(params)}"

        logger.info(f"Starting OAuth flow for {provider}")
        self.user_agent.navigate(auth_url)
        return auth_url

    def has_callback(self) -> bool:
        """True if the current location carries both code and state."""
        params = self.user_agent.query_params()
        return "code" in params and "state" in params

    def _get_session(self, provider: str) -> Optional[OAuthSession]:
        session = self.token_store.get_session(provider)
        if session and session.is_expired(self._now_ms()):
            logger.info(f"OAuth session for {provider} expired")
            self.token_store.clear_session(provider)
            return None
        return session

    async def handle_callback(
        self,
        provider: str,
        client_id: str,
        redirect_uri: str,
        client_secret: Optional[str] = None,
    ) -> bool:
        """
        Complete the flow from the callback request.

        Args:
            provider: Provider name
            client_id: OAuth client ID
            redirect_uri: OAuth redirect URI used in start_auth
            client_secret: OAuth client secret (optional)

        Returns:
            True on success

        Raises:
            AuthError: On provider error, missing parameters, state mismatch
                or failed token exchange
        """
        config = _get_provider_config(provider)

        params = self.user_agent.query_params()
        code = params.get("code")
        state = params.get("state")
        error = params.get("error")

        if error:
            raise AuthError(f"OAuth error: {error}")

        if not code or not state:
            raise AuthError("Missing code or state parameter")

        session = self._get_session(provider)
        if not session or session.state != state:
            raise AuthError("Invalid state parameter")

        token_params = {
            "client_id": client_id,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
            "code_verifier": session.code_verifier,
        }
        if client_secret:
            token_params["client_secret"] = client_secret

        data = await self._request_token(config["token_url"], token_params, "Token exchange failed")

        self.token_store.save_token(
            provider,
            TokenRecord(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expiry=self._expiry_from(data),
            ),
        )
        self.token_store.clear_session(provider)

        # Strip code/state from the visible URL
        parts = urlsplit(self.user_agent.current_url())
        self.user_agent.replace_url(urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")))

        return True

    async def refresh(
        self,
        provider: str,
        client_id: str,
        client_secret: Optional[str] = None,
    ) -> str:
        """
        Renew the access token with the stored refresh token.

        Args:
            provider: Provider name
            client_id: OAuth client ID
            client_secret: OAuth client secret (optional)

        Returns:
            The new access token

        Raises:
            AuthError: If no refresh token is stored or the grant fails
        """
        config = _get_provider_config(provider)

        record = self.token_store.get_token(provider)
        if not record or not record.refresh_token:
            raise AuthError(f"No refresh token stored for {provider}")

        token_params = {
            "client_id": client_id,
            "refresh_token": record.refresh_token,
            "grant_type": "refresh_token",
        }
        if client_secret:
            token_params["client_secret"] = client_secret

        data = await self._request_token(config["token_url"], token_params, "Token refresh failed")

        # Keep existing refresh token if not returned
        new_record = TokenRecord(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", record.refresh_token),
            expiry=self._expiry_from(data),
        )
        self.token_store.save_token(provider, new_record)
        return new_record.access_token

    async def _request_token(
        self,
        token_url: str,
        params: Dict[str, str],
        failure: str,
    ) -> Dict[str, Any]:
        client = await self._get_http_client()
        try:
            response = await client.post(
                token_url,
                data=params,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            logger.error(f"Token endpoint request failed: {e}")
            raise AuthError(f"{failure}: {e}") from e

        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            detail = error_data.get("error_description") or error_data.get("error")
            logger.error(f"{failure}: {response.status_code} {detail}")
            raise AuthError(f"{failure}: {detail}")

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data.get("access_token"):
            logger.error(f"{failure}: response carried no access token")
            raise AuthError(f"{failure}: invalid token response")

        return data

    def _expiry_from(self, data: Dict[str, Any]) -> int:
        expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
        return self._now_ms() + int(expires_in) * 1000

    def get_token(self, provider: str) -> Optional[str]:
        """
        Get a usable access token.

        Tokens within 5 minutes of expiry are not returned; they are
        deleted unless a refresh token is available for refresh().
        """
        record = self.token_store.get_token(provider)
        if not record:
            return None

        if record.is_expired(self._now_ms()):
            if not record.refresh_token:
                self.token_store.delete_token(provider)
                logger.info(f"Access token for {provider} expired")
            return None

        return record.access_token

    def is_authenticated(self, provider: str) -> bool:
        """Check if a usable token exists for the provider."""
        return self.get_token(provider) is not None

    def logout(self, provider: str) -> None:
        """Clear tokens and any pending session for the provider."""
        self.token_store.delete_token(provider)
        self.token_store.clear_session(provider)
        logger.info(f"Logged out of {provider}")
