"""
Token lifecycle tests - refresh, rotation and persistence of the refresh token

CRITICAL: a rotated refresh token that is lost means the next run cannot
authenticate until someone performs the manual authorization flow again.
"""

import json
import pytest
import requests
import sys
import os
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from auth.credential_store import FileCredentialStore, MemoryCredentialStore
from auth.token_manager import TokenLifecycleManager
from utils.errors import AuthenticationError, CredentialPersistenceError


def make_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def make_manager(store, response=None, **kwargs):
    session = MagicMock()
    if response is not None:
        session.post.return_value = response
    manager = TokenLifecycleManager(
        token_endpoint='https://auth.example.com/oauth/v2/token',
        client_id='client',
        client_secret='secret',
        credential_store=store,
        session=session,
        **kwargs
    )
    return manager, session


class FailingStore(MemoryCredentialStore):
    def save(self, refresh_token):
        raise CredentialPersistenceError("disk full")


class TestRefresh:
    """Refresh grant against the token endpoint"""

    @pytest.mark.auth
    def test_refresh_returns_access_token_and_uses_basic_auth(self):
        store = MemoryCredentialStore('R1')
        manager, session = make_manager(store, make_response(200, {
            'access_token': 'A1', 'refresh_token': 'R1', 'expires_in': 3600
        }))

        assert manager.refresh() == 'A1'

        _, kwargs = session.post.call_args
        assert kwargs['auth'] == ('client', 'secret')
        assert kwargs['data'] == {'grant_type': 'refresh_token', 'refresh_token': 'R1'}
        assert kwargs['timeout'] == 30

    @pytest.mark.auth
    def test_rotated_token_is_persisted(self):
        store = MemoryCredentialStore('R1')
        manager, _ = make_manager(store, make_response(200, {
            'access_token': 'A1', 'refresh_token': 'R2'
        }))

        manager.refresh()

        assert store.saved_tokens == ['R2']
        assert store.load() == 'R2'

    @pytest.mark.auth
    def test_unchanged_token_is_not_rewritten(self):
        store = MemoryCredentialStore('R1')
        manager, _ = make_manager(store, make_response(200, {
            'access_token': 'A1', 'refresh_token': 'R1'
        }))

        manager.refresh()

        assert store.saved_tokens == []

    @pytest.mark.auth
    def test_second_refresh_never_replays_consumed_token(self):
        store = MemoryCredentialStore('R1')
        manager, session = make_manager(store)
        session.post.side_effect = [
            make_response(200, {'access_token': 'A1', 'refresh_token': 'R2'}),
            make_response(200, {'access_token': 'A2', 'refresh_token': 'R3'}),
        ]

        manager.refresh()
        manager.refresh()

        second_form = session.post.call_args_list[1][1]['data']
        assert second_form['refresh_token'] == 'R2'
        assert store.saved_tokens == ['R2', 'R3']

    @pytest.mark.auth
    def test_persistence_failure_still_returns_access_token(self):
        store = FailingStore('R1')
        manager, session = make_manager(store)
        session.post.side_effect = [
            make_response(200, {'access_token': 'A1', 'refresh_token': 'R2'}),
            make_response(200, {'access_token': 'A2', 'refresh_token': 'R3'}),
        ]

        assert manager.refresh() == 'A1'
        assert manager.persistence_failed is True

        # The rotated value is still used in memory
        manager.refresh()
        assert session.post.call_args_list[1][1]['data']['refresh_token'] == 'R2'

    @pytest.mark.auth
    def test_rejected_refresh_raises_with_error_details(self):
        store = MemoryCredentialStore('R1')
        manager, _ = make_manager(store, make_response(400, {
            'error': 'invalid_grant', 'error_description': 'refresh token revoked'
        }))

        with pytest.raises(AuthenticationError) as exc_info:
            manager.refresh()

        assert exc_info.value.status_code == 400
        assert exc_info.value.error == 'invalid_grant'
        assert exc_info.value.error_description == 'refresh token revoked'
        assert store.saved_tokens == []

    @pytest.mark.auth
    def test_unparseable_body_raises(self):
        manager, _ = make_manager(MemoryCredentialStore('R1'), make_response(200, ValueError("no json")))

        with pytest.raises(AuthenticationError):
            manager.refresh()

    @pytest.mark.auth
    def test_missing_access_token_raises(self):
        manager, _ = make_manager(MemoryCredentialStore('R1'), make_response(200, {'refresh_token': 'R2'}))

        with pytest.raises(AuthenticationError):
            manager.refresh()

    @pytest.mark.auth
    def test_network_failure_raises(self):
        manager, session = make_manager(MemoryCredentialStore('R1'))
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(AuthenticationError):
            manager.refresh()

    @pytest.mark.auth
    def test_no_refresh_token_raises_without_request(self):
        manager, session = make_manager(MemoryCredentialStore(None))

        with pytest.raises(AuthenticationError):
            manager.refresh()
        session.post.assert_not_called()


class TestAuthorizationCode:
    """Manual authorization code flow"""

    @pytest.mark.auth
    def test_exchange_posts_code_and_redirect_uri(self):
        store = MemoryCredentialStore(None)
        manager, session = make_manager(
            store,
            make_response(200, {'access_token': 'A1', 'refresh_token': 'R1'}),
            redirect_uri='https://app.example.com/callback'
        )

        tokens = manager.exchange_authorization_code('CODE')

        assert tokens.refresh_token == 'R1'
        assert session.post.call_args[1]['data'] == {
            'redirect_uri': 'https://app.example.com/callback',
            'grant_type': 'authorization_code',
            'code': 'CODE'
        }
        assert store.saved_tokens == []

    @pytest.mark.auth
    def test_exchange_requires_redirect_uri(self):
        manager, session = make_manager(MemoryCredentialStore(None))

        with pytest.raises(AuthenticationError):
            manager.exchange_authorization_code('CODE')
        session.post.assert_not_called()

    @pytest.mark.auth
    def test_authorization_url(self):
        manager, _ = make_manager(
            MemoryCredentialStore(None),
            redirect_uri='https://app.example.com/callback',
            authorize_endpoint='https://auth.example.com/oauth/authorize'
        )

        url = manager.get_authorization_url('xyz')

        assert url.startswith('https://auth.example.com/oauth/authorize?')
        assert 'client_id=client' in url
        assert 'response_type=code' in url
        assert 'state=xyz' in url


class TestFileCredentialStore:
    """Refresh token file on persistent disk"""

    @pytest.mark.auth
    def test_bootstrap_token_used_until_first_save(self, tmp_path):
        store = FileCredentialStore(str(tmp_path / 'token.json'), bootstrap_token='BOOT')

        assert store.load() == 'BOOT'

        store.save('R2')

        assert store.load() == 'R2'
        with open(tmp_path / 'token.json', encoding='utf-8') as f:
            data = json.load(f)
        assert data['refresh_token'] == 'R2'
        assert 'updated_at' in data

    @pytest.mark.auth
    def test_corrupt_file_falls_back_to_bootstrap(self, tmp_path):
        path = tmp_path / 'token.json'
        path.write_text('{not json', encoding='utf-8')

        assert FileCredentialStore(str(path), bootstrap_token='BOOT').load() == 'BOOT'

    @pytest.mark.auth
    def test_unwritable_location_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('file, not a directory', encoding='utf-8')
        store = FileCredentialStore(str(blocker / 'token.json'))

        with pytest.raises(CredentialPersistenceError):
            store.save('R2')
