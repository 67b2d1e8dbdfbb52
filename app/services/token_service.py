# app/services/token_service.py
"""
Access tokens for the CEP admin service.

One TokenProvider owns the registered client credentials and the cached
access token; nothing is kept at module level. Flow on first use:
  1. Dynamic client registration -> client_id / client_secret
  2. OAuth2 password grant with HTTP Basic client auth -> access_token
The token is reused until it is within TOKEN_REFRESH_MARGIN_SECONDS of expiry.
"""

import threading
import time
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

from app.config import Settings, settings as default_settings
from app.exceptions import AuthenticationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EXPIRES_IN = 3600


class TokenProvider:
    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self._http = session or requests.Session()
        self._lock = threading.Lock()
        self._client_id: Optional[str] = None
        self._client_secret: Optional[str] = None
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def get_token(self, username: Optional[str] = None) -> str:
        if self.config.CEP_ADMIN_TOKEN:
            return self.config.CEP_ADMIN_TOKEN
        with self._lock:
            if self._access_token and time.time() < self._expires_at - self.config.TOKEN_REFRESH_MARGIN_SECONDS:
                return self._access_token
            if not (self._client_id and self._client_secret):
                self._register_client()
            self._request_token(username)
            return self._access_token

    def invalidate(self):
        """Drop the cached token; the next get_token() fetches a fresh one."""
        with self._lock:
            self._access_token = None
            self._expires_at = 0.0

    def _register_client(self):
        body = {
            "owner": self.config.OAUTH_USERNAME,
            "clientName": self.config.OAUTH_CLIENT_NAME,
            "grantType": "refresh_token password client_credentials",
            "tokenScope": self.config.OAUTH_SCOPE,
        }
        data = self._post_json(self.config.DCR_ENDPOINT, "client registration", json=body,
                               auth=HTTPBasicAuth(self.config.OAUTH_USERNAME, self.config.OAUTH_PASSWORD))
        try:
            self._client_id = data["client_id"]
            self._client_secret = data["client_secret"]
        except KeyError as e:
            raise AuthenticationError(f"Client registration response is missing {e}")
        logger.info(f"[AUTH] Registered OAuth client {self._client_id}")

    def _request_token(self, username: Optional[str]):
        form = {
            "grant_type": "password",
            "username": username or self.config.OAUTH_USERNAME,
            "password": self.config.OAUTH_PASSWORD,
            "scope": self.config.OAUTH_SCOPE,
        }
        data = self._post_json(self.config.OAUTH_TOKEN_ENDPOINT, "token request", data=form,
                               auth=HTTPBasicAuth(self._client_id, self._client_secret))
        token = data.get("access_token")
        if not token:
            raise AuthenticationError("Token response has no access_token")
        try:
            expires_in = int(data.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        self._access_token = token
        self._expires_at = time.time() + expires_in
        logger.debug(f"[AUTH] Access token refreshed, expires in {expires_in}s")

    def _post_json(self, url: str, what: str, **kwargs) -> dict:
        verify = self.config.CEP_CA_BUNDLE or self.config.CEP_VERIFY_SSL
        try:
            resp = self._http.post(url, timeout=self.config.CEP_ADMIN_TIMEOUT_SECONDS, verify=verify, **kwargs)
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"OAuth {what} to {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise AuthenticationError(f"OAuth {what} to {url} returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise AuthenticationError(f"OAuth {what} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise AuthenticationError(f"OAuth {what} returned an unexpected body")
        return data
