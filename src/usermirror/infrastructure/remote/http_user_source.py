"""HTTP/JSON implementation of the remote user directory."""

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from usermirror.config import DEFAULT_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SEC, USERS_ENDPOINT
from usermirror.domain.models import UserRecord
from usermirror.domain.repositories import IUserSource
from usermirror.errors import RemoteFetchError

_logger = logging.getLogger(__name__)


class HttpUserSource(IUserSource):
    """Fetch the complete user list with a single ``GET /users``."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/" + USERS_ENDPOINT
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return self._url

    def fetch_all(self) -> List[UserRecord]:
        _logger.info("Fetching users from %s", self._url)
        try:
            response = self._session.get(self._url, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as exc:
            raise RemoteFetchError(f"Timed out after {self._timeout}s fetching {self._url}") from exc
        except requests.exceptions.ConnectionError as exc:
            raise RemoteFetchError(f"Could not connect to {self._url}") from exc
        except requests.exceptions.HTTPError as exc:
            raise RemoteFetchError(f"Server returned {exc.response.status_code} for {self._url}") from exc
        except requests.exceptions.JSONDecodeError as exc:
            raise RemoteFetchError(f"Malformed JSON from {self._url}: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise RemoteFetchError(f"Request to {self._url} failed: {exc}") from exc

        if not isinstance(payload, list):
            raise RemoteFetchError(f"Expected a JSON array from {self._url}, got {type(payload).__name__}")

        users: List[UserRecord] = []
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                raise RemoteFetchError(f"User #{index} is not a JSON object")
            try:
                users.append(UserRecord.from_api(item))
            except KeyError as exc:
                raise RemoteFetchError(f"User #{index} is missing field {exc}") from exc
            except (TypeError, ValueError) as exc:
                raise RemoteFetchError(f"User #{index} is malformed: {exc}") from exc

        _logger.info("Fetched %d users", len(users))
        return users

    def close(self) -> None:
        self._session.close()
