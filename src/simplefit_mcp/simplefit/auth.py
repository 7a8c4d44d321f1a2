"""SimpleFit authentication via the Firebase identity toolkit."""

import logging
from datetime import datetime, timedelta, timezone

import httpx

from simplefit_mcp.simplefit.exceptions import AuthenticationError, TokenExpiredError

logger = logging.getLogger(__name__)

FIREBASE_AUTH_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
FIREBASE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"


class FirebaseAuth:
    """Holds the signed-in user's tokens and identity."""

    def __init__(
        self,
        api_key: str = "",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self.id_token: str | None = None
        self.refresh_token: str | None = None
        self.user_id: str | None = None
        self.token_expiry: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.id_token is not None and bool(self.user_id)

    @property
    def is_token_expired(self) -> bool:
        if not self.token_expiry:
            return True
        return datetime.now(timezone.utc) >= (self.token_expiry - timedelta(minutes=5))

    def current_user_id(self) -> str:
        """Return the signed-in user's id or fail for user-scoped operations."""
        if not self.user_id:
            raise AuthenticationError()
        return self.user_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def login(self, email: str, password: str) -> None:
        async with self._client() as client:
            response = await client.post(
                f"{FIREBASE_AUTH_URL}:signInWithPassword",
                params={"key": self.api_key},
                json={
                    "email": email,
                    "password": password,
                    "returnSecureToken": True,
                },
            )

            if response.status_code != 200:
                error_data = response.json()
                error_message = error_data.get("error", {}).get("message", "Authentication failed")
                raise AuthenticationError(f"Login failed: {error_message}")

            self._update_tokens(response.json())
            logger.info("Signed in as %s", self.user_id)

    async def refresh(self) -> None:
        if not self.refresh_token:
            raise AuthenticationError("No refresh token available")

        async with self._client() as client:
            response = await client.post(
                FIREBASE_TOKEN_URL,
                params={"key": self.api_key},
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self.refresh_token,
                },
            )

            if response.status_code != 200:
                raise TokenExpiredError()

            data = response.json()
            self.id_token = data["id_token"]
            self.refresh_token = data["refresh_token"]
            expires_in = int(data.get("expires_in", 3600))
            self.token_expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

    def logout(self) -> None:
        self.id_token = None
        self.refresh_token = None
        self.user_id = None
        self.token_expiry = None

    def _update_tokens(self, data: dict) -> None:
        self.id_token = data["idToken"]
        self.refresh_token = data["refreshToken"]
        self.user_id = data["localId"]
        expires_in = int(data.get("expiresIn", 3600))
        self.token_expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

    def get_auth_header(self) -> dict[str, str]:
        if not self.id_token:
            raise AuthenticationError()
        return {"Authorization": f"Bearer {self.id_token}"}

    def to_dict(self) -> dict:
        return {
            "id_token": self.id_token,
            "refresh_token": self.refresh_token,
            "user_id": self.user_id,
            "token_expiry": self.token_expiry.isoformat() if self.token_expiry else None,
        }

    def restore(self, data: dict) -> None:
        """Load tokens saved by `to_dict` into this instance."""
        self.id_token = data.get("id_token")
        self.refresh_token = data.get("refresh_token")
        self.user_id = data.get("user_id")
        expiry = data.get("token_expiry")
        self.token_expiry = datetime.fromisoformat(expiry) if expiry else None

    @classmethod
    def from_dict(cls, data: dict, api_key: str = "") -> "FirebaseAuth":
        auth = cls(api_key=api_key)
        auth.restore(data)
        return auth
