"""
External service clients
Abstract base class shared by the geometry, catalog, analysis and map-data clients
"""

from abc import ABC, abstractmethod
import json
import logging
from typing import Dict, Optional

import requests

from urbanai import config
from urbanai.errors import APIError

logger = logging.getLogger(__name__)


def format_error_detail(response: requests.Response) -> str:
    """Human readable error text from a failed response.

    Prefers the service's ``message``, then a FastAPI ``detail`` (validation
    errors are rendered one per line as ``loc: msg (type)``), then the raw body.
    """
    try:
        data = response.json()
    except ValueError:
        return f"HTTP error! status: {response.status_code}"

    if not isinstance(data, dict) or not data:
        return f"HTTP error! status: {response.status_code}"
    if data.get('message'):
        return str(data['message'])

    detail = data.get('detail')
    if isinstance(detail, list):
        lines = []
        for err in detail:
            if isinstance(err, dict):
                loc = '.'.join(str(part) for part in err.get('loc', []))
                lines.append(f"{loc}: {err.get('msg')} ({err.get('type')})")
            else:
                lines.append(str(err))
        return '\n'.join(lines)
    if detail:
        return str(detail)
    return json.dumps(data)


class ServiceClient(ABC):
    """Base class for clients of the external REST services"""

    def __init__(self, base_url: str, auth=None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.base_url = base_url.rstrip('/')
        self.auth = auth
        self.session = session or (auth.session if auth is not None else requests.Session())
        self.timeout = timeout or config.REQUEST_TIMEOUT

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Short name used in logs and the service listing"""
        pass

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, authenticated: bool = False, **kwargs) -> requests.Response:
        url = self.url(path)
        headers = {'accept': 'application/json'}
        headers.update(kwargs.pop('headers', {}) or {})
        kwargs.setdefault('timeout', self.timeout)

        logger.info(f"{self.service_name} request: {method} {url}")
        try:
            if authenticated and self.auth is not None:
                response = self.auth.request(method, url, headers=headers, **kwargs)
            else:
                response = self.session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{self.service_name} unreachable: {e}")
            raise APIError(str(e)) from e

        if not response.ok:
            detail = format_error_detail(response)
            logger.error(f"{self.service_name} error {response.status_code}: {detail}")
            raise APIError(detail, response.status_code)
        return response

    def _json(self, method: str, path: str, **kwargs):
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON from {self.service_name}: {e}", response.status_code) from e

    def describe(self) -> Dict:
        return {'name': self.service_name, 'base_url': self.base_url}
