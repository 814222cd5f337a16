"""
HTTP Client - Shared transport for all connectors.

Wraps one requests.Session per thread with urllib3 retry/backoff and
connection pooling. Every failure (network, HTTP status, undecodable body)
is raised as ConnectorError so connectors never leak requests exceptions.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from ..errors import ConnectorError


@dataclass
class HttpConfig:
    """Configuration for outbound HTTP requests."""
    timeout_seconds: int = 30
    max_retries: int = 3
    verify_ssl: bool = True
    user_agent: str = "Mozilla/5.0 (compatible; IntelPipeline/1.0)"

    # Request headers
    accept_language: str = "es-DO,es;q=0.9,en;q=0.8"

    # Retry settings
    retry_backoff_factor: float = 1.0
    retry_on_status: list = None

    # Connection pooling
    pool_connections: int = 10
    pool_maxsize: int = 20

    def __post_init__(self):
        """Set default retry status codes."""
        if self.retry_on_status is None:
            self.retry_on_status = [429, 500, 502, 503, 504]


class HttpClient:
    """Per-thread requests sessions plus JSON/text helpers."""

    def __init__(self, config: Optional[HttpConfig] = None):
        self.config = config or HttpConfig()
        self.sessions: Dict[int, requests.Session] = {}
        self.lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_session(self) -> requests.Session:
        thread_id = threading.get_ident()
        with self.lock:
            if thread_id not in self.sessions:
                self._prune_dead_threads()
                self.sessions[thread_id] = self._create_session()
            return self.sessions[thread_id]

    def _prune_dead_threads(self):
        """Close sessions owned by threads that have exited (run and pool threads)."""
        alive = {thread.ident for thread in threading.enumerate()}
        for thread_id in [t for t in self.sessions if t not in alive]:
            self.sessions.pop(thread_id).close()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=self.config.retry_backoff_factor,
            status_forcelist=self.config.retry_on_status,
            allowed_methods=["GET", "HEAD", "POST"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy,
                              pool_connections=self.config.pool_connections,
                              pool_maxsize=self.config.pool_maxsize)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({
            'User-Agent': self.config.user_agent,
            'Accept-Language': self.config.accept_language,
        })
        return session

    def request(self, domain: str, method: str, url: str, **kwargs) -> requests.Response:
        """
        Perform a request and return the response if its status is 2xx.

        Raises:
            ConnectorError: On any transport error or non-2xx status
        """
        session = self.get_session()
        kwargs.setdefault('timeout', self.config.timeout_seconds)
        kwargs.setdefault('verify', self.config.verify_ssl)

        try:
            response = session.request(method, url, **kwargs)
        except RequestException as e:
            raise ConnectorError(domain, f"Request Error: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ConnectorError(domain, f"HTTP {response.status_code} from {url}")

        self.logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def get_json(self, domain: str, url: str, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> Any:
        response = self.request(domain, "GET", url, params=params, headers=headers)
        return self._decode_json(domain, response)

    def post_form_json(self, domain: str, url: str, data: Dict[str, Any],
                       headers: Optional[Dict[str, str]] = None) -> Any:
        response = self.request(domain, "POST", url, data=data, headers=headers)
        return self._decode_json(domain, response)

    def get_text(self, domain: str, url: str, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None) -> str:
        return self.request(domain, "GET", url, params=params, headers=headers).text

    def post_form_text(self, domain: str, url: str, data: Dict[str, Any],
                       headers: Optional[Dict[str, str]] = None) -> str:
        return self.request(domain, "POST", url, data=data, headers=headers).text

    @staticmethod
    def _decode_json(domain: str, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ConnectorError(domain, f"Invalid JSON response: {e}") from e

    def close_all(self):
        """Close every session; called on shutdown."""
        with self.lock:
            for session in self.sessions.values():
                session.close()
            self.sessions.clear()
        self.logger.debug("HTTP sessions closed")
