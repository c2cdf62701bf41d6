# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Token lifecycle - OAuth refresh with a rotating, persisted refresh token
"""
import logging
import urllib.parse
from typing import Optional

import requests

from auth.credential_store import CredentialStore
from models import TokenResponse
from utils.errors import AuthenticationError, CredentialPersistenceError
from utils.logger import StructuredLogger

logger = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Owns the refresh/rotation protocol against the OAuth token endpoint.

    Every successful refresh may hand out a new refresh token that
    invalidates the previous one server-side, so the new value is written to
    the credential store before the access token is returned. The rotated
    token is also kept in memory: a second refresh in the same process must
    never replay the consumed token, even if persistence failed.
    """

    def __init__(self, token_endpoint: str, client_id: str, client_secret: str,
                 credential_store: CredentialStore, redirect_uri: Optional[str] = None,
                 authorize_endpoint: Optional[str] = None, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.token_endpoint = token_endpoint
        self.authorize_endpoint = authorize_endpoint
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.credential_store = credential_store
        self.timeout = timeout
        self.session = session or requests.Session()

        self._refresh_token: Optional[str] = None
        self.persistence_failed = False
        self.structured_logger = StructuredLogger(__name__)

    def _current_refresh_token(self) -> Optional[str]:
        if self._refresh_token is None:
            self._refresh_token = self.credential_store.load()
        return self._refresh_token

    def refresh(self) -> str:
        """Exchange the refresh token for a new access token.

        Returns:
            The access token
        Raises:
            AuthenticationError: no refresh token, rejected request or unparseable answer
        """
        refresh_token = self._current_refresh_token()
        if not refresh_token:
            raise AuthenticationError("No refresh token available")

        logger.info("Refreshing access token...")
        tokens = self._post_token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token
        })

        if tokens.refresh_token and tokens.refresh_token != refresh_token:
            self._refresh_token = tokens.refresh_token
            self._persist_refresh_token(tokens.refresh_token)

        logger.info("Access token refreshed successfully")
        return tokens.access_token

    def exchange_authorization_code(self, code: str) -> TokenResponse:
        """Exchange a manually obtained authorization code for tokens.

        The credential store is left untouched; the caller decides whether
        to persist the returned refresh token.
        """
        if not code:
            raise AuthenticationError("Authorization code is required")
        if not self.redirect_uri:
            raise AuthenticationError("REDIRECT_URI is required for the authorization code exchange")

        logger.info("Exchanging authorization code for tokens...")
        return self._post_token_request({
            'redirect_uri': self.redirect_uri,
            'grant_type': 'authorization_code',
            'code': code
        })

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        if not self.authorize_endpoint:
            raise AuthenticationError("AUTHORIZE_ENDPOINT is not configured")
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
        }
        if self.redirect_uri:
            params['redirect_uri'] = self.redirect_uri
        if state:
            params['state'] = state
        return f"{self.authorize_endpoint}?" + urllib.parse.urlencode(params)

    def _post_token_request(self, form: dict) -> TokenResponse:
        try:
            response = self.session.post(
                self.token_endpoint,
                data=form,
                auth=(self.client_id, self.client_secret),
                headers={'Accept': 'application/json'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.structured_logger.log_sync_event('token_request_failed', {'error': type(e).__name__})
            raise AuthenticationError(f"Token endpoint unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            error, description = self._parse_error(response)
            logger.error(f"Token request failed: {response.status_code} - {error} {description or ''}".rstrip())
            raise AuthenticationError(
                f"Token endpoint returned {response.status_code}",
                status_code=response.status_code,
                error=error,
                error_description=description
            )

        try:
            return TokenResponse.from_api(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unparseable token response: {type(e).__name__}")
            raise AuthenticationError("Token endpoint returned an unparseable body",
                                      status_code=response.status_code) from e

    @staticmethod
    def _parse_error(response):
        try:
            body = response.json()
        except ValueError:
            return None, None
        if not isinstance(body, dict):
            return None, None
        return body.get('error'), body.get('error_description')

    def _persist_refresh_token(self, refresh_token: str):
        """Best-effort write; a failure is a latent outage, not an auth failure"""
        try:
            self.credential_store.save(refresh_token)
            self.persistence_failed = False
        except (CredentialPersistenceError, OSError) as e:
            self.persistence_failed = True
            logger.critical(
                f"Rotated refresh token could NOT be persisted ({e}). "
                f"The next process start will fail to authenticate unless this is fixed."
            )
            self.structured_logger.log_sync_event('credential_persist_failed', {'error': str(e)})
