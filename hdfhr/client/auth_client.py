"""Client-side session handling for the HDF HR API.

``AuthClient`` talks to ``/api/auth`` and keeps the session (token, user
and role) in a ``SessionStore`` so it survives restarts. Any failure is
raised as ``AuthClientError`` carrying the message to show the user.
"""
import json
import logging
from pathlib import Path
import httpx
from hdfhr.core.errors import user_message

log = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"
USER_DATA_KEY = "user_data"
USER_ROLE_KEY = "user_role"


class AuthClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionStore:
    """Persists the session as a small JSON document. ``path=None`` keeps it in memory."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._data: dict = {}
        if self.path and self.path.exists():
            try:
                self._data = json.loads(self.path.read_text())
            except (ValueError, OSError) as e:
                log.warning("Ignoring unreadable session file %s: %s", self.path, e)
                self._data = {}

    def get(self, key: str):
        return self._data.get(key)

    def save(self, token: str, user: dict, role: str | None) -> None:
        self._data = {AUTH_TOKEN_KEY: token, USER_DATA_KEY: user, USER_ROLE_KEY: role}
        self._flush()

    def clear(self) -> None:
        self._data = {}
        if self.path and self.path.exists():
            self.path.unlink()

    def _flush(self) -> None:
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, default=str))


class AuthClient:
    def __init__(self, base_url: str = "", store: SessionStore | None = None,
                 http: httpx.Client | None = None, timeout: float = 30):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.store = store or SessionStore()

    @property
    def token(self) -> str | None:
        return self.store.get(AUTH_TOKEN_KEY)

    @property
    def user(self) -> dict | None:
        return self.store.get(USER_DATA_KEY)

    @property
    def role(self) -> str | None:
        return self.store.get(USER_ROLE_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _request(self, method: str, path: str, auth: bool = False, **kwargs) -> dict:
        headers = kwargs.pop("headers", {})
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = self.http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise AuthClientError(user_message(f"Network error: {e}"))
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail")
            except ValueError:
                detail = None
            if not isinstance(detail, str):
                detail = "Too many requests" if resp.status_code == 429 else f"Request failed ({resp.status_code})"
            raise AuthClientError(user_message(detail), resp.status_code)
        return resp.json()

    def sign_in(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        user = data["user"]
        self.store.save(data["access_token"], user, user.get("role"))
        log.info("Signed in as %s", user.get("id"))
        return user

    def restore(self) -> dict | None:
        """Re-validate a stored session. Rejected tokens clear the session."""
        if not self.token:
            return None
        try:
            user = self._request("GET", "/api/auth/me", auth=True)
        except AuthClientError as e:
            if e.status_code in (401, 403, 404):
                log.info("Stored session rejected: %s", e.message)
                self.store.clear()
                return None
            raise
        self.store.save(self.token, user, user.get("role"))
        return user

    def sign_up(self, email: str, password: str) -> dict:
        return self._request("POST", "/api/auth/register", json={"email": email, "password": password})

    def forgot_password(self, email: str) -> str:
        return self._request("POST", "/api/auth/forgot-password", json={"email": email})["message"]

    def reset_password(self, new_password: str, token: str) -> str:
        data = self._request("POST", "/api/auth/reset-password",
                             json={"token": token, "new_password": new_password})
        return data["message"]

    def sign_out(self) -> None:
        if self.token:
            try:
                self._request("POST", "/api/auth/logout", auth=True)
            except AuthClientError as e:
                log.warning("Sign-out request failed: %s", e.message)
        self.store.clear()
