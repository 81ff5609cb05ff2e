"""
Session handling against the token service.

Bearer tokens are issued by the auth service; the payload is decoded here
for display only. Signature verification is the service's job.
"""

import base64
import json
import logging
import time
from typing import Callable, Dict, Optional

import requests

from urbanai import config
from urbanai.errors import APIError, AuthenticationRequired, TokenDecodeError
from urbanai.session_store import (
    AUTH_KEYS, EXPIRES_KEY, TOKEN_KEY, USER_KEY, SessionStore
)

logger = logging.getLogger(__name__)

MANUAL_TOKEN_USER = {
    'id': 'manual_token_user',
    'username': 'Token User',
    'name': 'Token User'
}


def decode_jwt_payload(token: str) -> Dict:
    """Decode the claims segment of a JWT without verifying it."""
    if not token or not isinstance(token, str):
        raise TokenDecodeError('Token is empty')
    parts = token.split('.')
    if len(parts) < 2 or not parts[1]:
        raise TokenDecodeError('Token has no payload segment')

    segment = parts[1]
    segment += '=' * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(segment).decode('utf-8'))
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenDecodeError(f"Could not decode token payload: {e}") from e
    if not isinstance(payload, dict):
        raise TokenDecodeError('Token payload is not an object')
    return payload


def user_from_token(token: str, fallback_username: Optional[str] = None,
                    clock: Callable[[], float] = time.time) -> Dict:
    """User record {id, username, email, name} from the token claims.

    When the token cannot be decoded a placeholder user is built from the
    login name so the session can still be used.
    """
    try:
        claims = decode_jwt_payload(token)
    except TokenDecodeError as e:
        logger.error(f"Error parsing JWT token: {e}")
        username = fallback_username or 'User'
        return {
            'id': f"user_{int(clock() * 1000)}",
            'username': username,
            'email': fallback_username or '',
            'name': username
        }

    username = claims.get('cognito:username') or fallback_username or ''
    email = claims.get('email') or fallback_username or ''
    return {
        'id': claims.get('sub') or claims.get('cognito:username') or 'unknown',
        'username': username,
        'email': email,
        'name': claims.get('name') or claims.get('email') or username
    }


def _json_body(response: requests.Response) -> Dict:
    """JSON object of a successful auth service response"""
    try:
        data = response.json()
    except ValueError as e:
        raise APIError(f"Invalid JSON from auth service: {e}", response.status_code) from e
    if not isinstance(data, dict):
        raise APIError('Invalid JSON from auth service: expected an object', response.status_code)
    return data


class AuthSession:
    """Bearer-token session persisted in a SessionStore"""

    def __init__(self, store: Optional[SessionStore] = None, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store or SessionStore()
        self.base_url = (base_url or config.API_BASE_URL).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.clock = clock
        self.user: Optional[Dict] = None

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # Stored state

    def clear_credentials(self):
        self.store.clear(AUTH_KEYS)
        self.user = None

    def initialize_auth(self) -> bool:
        """Restore the session from storage; stale or corrupt entries are removed."""
        token = self.store.get_item(TOKEN_KEY)
        stored_user = self.store.get_item(USER_KEY)

        if self.is_token_expired():
            logger.info('Stored token has expired, clearing auth data')
            self.clear_credentials()
            return False

        if not token or not stored_user or stored_user == 'undefined':
            self.user = None
            return False

        try:
            parsed_user = json.loads(stored_user)
        except ValueError as e:
            logger.error(f"Error parsing stored user data: {e}")
            self.clear_credentials()
            return False

        if not isinstance(parsed_user, dict) or not parsed_user.get('id'):
            logger.warning('Stored user has no id, clearing auth data')
            self.clear_credentials()
            return False

        self.user = parsed_user
        logger.info(f"Restored authentication for {parsed_user.get('username') or parsed_user['id']}")
        return True

    def is_token_expired(self) -> bool:
        expires = self.store.get_item(EXPIRES_KEY)
        if not expires:
            return False
        try:
            return self._now_ms() > int(float(expires))
        except (ValueError, OverflowError):
            return True

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.get_token()) and not self.is_token_expired()

    def get_token(self) -> Optional[str]:
        return self.store.get_item(TOKEN_KEY)

    def _store_token(self, token: str, expires_in=None):
        self.store.set_item(TOKEN_KEY, token)
        if expires_in:
            self.store.set_item(EXPIRES_KEY, str(self._now_ms() + int(float(expires_in) * 1000)))

    def set_token(self, token: str, user: Optional[Dict] = None) -> Dict:
        """Install a token obtained elsewhere (e.g. copied from another client)."""
        user = user or dict(MANUAL_TOKEN_USER)
        self.store.set_item(TOKEN_KEY, token)
        self.store.set_item(USER_KEY, json.dumps(user))
        self.user = user
        return user

    def get_auth_header(self) -> Dict[str, str]:
        token = self.get_token()
        if not token:
            logger.debug('No token available for auth header')
            return {}
        return {'Authorization': f'Bearer {token}'}

    # Auth service calls

    def login(self, username: str, password: str) -> Dict:
        url = self._url('/auth/login')
        try:
            response = self.session.post(url, json={'username': username, 'password': password},
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(f"Login failed: {e}") from e

        if not response.ok:
            try:
                message = response.json().get('message')
            except (ValueError, AttributeError):
                message = None
            raise APIError(message or f"Login failed with status {response.status_code}", response.status_code)

        auth_data = _json_body(response)
        token = auth_data.get('access_token')
        if not token:
            raise APIError('No access token received from server', response.status_code)

        user = user_from_token(token, username, clock=self.clock)
        self.store.remove_item(EXPIRES_KEY)
        self._store_token(token, auth_data.get('expires_in'))
        self.store.set_item(USER_KEY, json.dumps(user))
        self.user = user
        logger.info(f"Login successful: {user.get('username')}")
        return user

    def logout(self):
        token = self.get_token()
        if token:
            try:
                self.session.post(self._url('/auth/logout'), headers={'Authorization': f'Bearer {token}'},
                                  timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"Logout request failed, clearing local session anyway: {e}")
        self.clear_credentials()
        logger.info('Logged out')

    def status(self) -> Dict:
        if not self.get_token():
            return {'authenticated': False}
        try:
            response = self.request('GET', self._url('/auth/status'))
        except AuthenticationRequired:
            return {'authenticated': False}
        except requests.RequestException as e:
            raise APIError(f"Failed to check auth status: {e}") from e
        if not response.ok:
            raise APIError(f"Failed to check auth status: HTTP {response.status_code}", response.status_code)

        try:
            remote = response.json()
        except ValueError:
            remote = {}
        return {'authenticated': True, 'user': self.user, 'status': remote}

    def fetch_token(self) -> Optional[str]:
        """Ask the service for the current access token of this session."""
        try:
            response = self.session.get(self._url('/auth/token'), headers=self.get_auth_header(),
                                        timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Token retrieval failed: {e}")
            return None
        if not response.ok:
            logger.error(f"Token retrieval failed with status {response.status_code}")
            return None
        try:
            data = _json_body(response)
        except APIError as e:
            logger.error(f"Token retrieval failed: {e}")
            return None
        token = data.get('access_token')
        if token:
            self._store_token(token, data.get('expires_in'))
        return token or self.get_token()

    def refresh_token(self) -> Optional[str]:
        """Exchange the stored token for a fresh one; None when refused."""
        try:
            response = self.session.post(self._url('/auth/refresh_token'), headers=self.get_auth_header(),
                                         timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Token refresh failed: {e}")
            return None
        if not response.ok:
            logger.warning(f"Token refresh refused with status {response.status_code}")
            return None
        try:
            data = _json_body(response)
        except APIError as e:
            logger.warning(f"Token refresh failed: {e}")
            return None
        token = data.get('access_token')
        if not token:
            return None
        self._store_token(token, data.get('expires_in'))
        logger.info('Token refreshed successfully')
        return token

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Authenticated request; a 401 triggers one refresh-and-retry."""
        token = self.get_token()
        if not token:
            raise AuthenticationRequired('No authentication token found. Please login again.')

        if self.is_token_expired():
            token = self.refresh_token()
            if not token:
                self.clear_credentials()
                raise AuthenticationRequired()

        headers = dict(kwargs.pop('headers', {}) or {})
        kwargs.setdefault('timeout', self.timeout)

        headers['Authorization'] = f'Bearer {token}'
        response = self.session.request(method, url, headers=headers, **kwargs)
        if response.status_code != 401:
            return response

        logger.info('Unauthorized, attempting to refresh token')
        new_token = self.refresh_token()
        if new_token:
            headers['Authorization'] = f'Bearer {new_token}'
            response = self.session.request(method, url, headers=headers, **kwargs)
            if response.status_code != 401:
                return response

        self.clear_credentials()
        raise AuthenticationRequired()
