# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Credential stores for the rotating refresh token
"""
import json
import logging
import os
import tempfile
from typing import Optional

from utils.errors import CredentialPersistenceError
from utils.timezone import get_utc_time

logger = logging.getLogger(__name__)


class CredentialStore:
    """Durable home of the refresh token, injected into the token manager"""

    def load(self) -> Optional[str]:
        """Return the current refresh token or None"""
        raise NotImplementedError

    def save(self, refresh_token: str):
        """Persist a freshly rotated refresh token"""
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    """Keeps the token for the lifetime of the process only"""

    def __init__(self, refresh_token: Optional[str] = None):
        self.refresh_token = refresh_token
        self.saved_tokens = []

    def load(self) -> Optional[str]:
        return self.refresh_token

    def save(self, refresh_token: str):
        self.refresh_token = refresh_token
        self.saved_tokens.append(refresh_token)


class FileCredentialStore(CredentialStore):
    """JSON file on persistent disk, falling back to a bootstrap token from configuration"""

    def __init__(self, token_file: str, bootstrap_token: Optional[str] = None):
        self.token_file = token_file
        self.bootstrap_token = bootstrap_token or None

    def load(self) -> Optional[str]:
        if not os.path.exists(self.token_file):
            if self.bootstrap_token:
                logger.info("No persisted refresh token found - using bootstrap token from configuration")
            else:
                logger.warning("No persisted refresh token and no bootstrap token configured")
            return self.bootstrap_token

        try:
            with open(self.token_file, 'r', encoding='utf-8') as f:
                cached = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read refresh token from {self.token_file}: {e}")
            return self.bootstrap_token

        token = cached.get('refresh_token') if isinstance(cached, dict) else None
        if not token:
            logger.warning(f"Token file {self.token_file} holds no refresh token")
            return self.bootstrap_token

        logger.info("✅ Loaded refresh token from persistent storage")
        return token

    def save(self, refresh_token: str):
        """Replace the token file atomically so a crash never leaves a truncated file"""
        directory = os.path.dirname(os.path.abspath(self.token_file))
        token_data = {
            'refresh_token': refresh_token,
            'updated_at': get_utc_time().isoformat()
        }

        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.token-', suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(token_data, f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.token_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise CredentialPersistenceError(f"Could not write refresh token to {self.token_file}: {e}") from e

        logger.info("✅ Refresh token saved to persistent storage")
