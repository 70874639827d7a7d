# backend/logic/fetcher.py
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

import requests

from config import SyncSettings
from logic.errors import UnsupportedProvider, UpstreamUnavailable
from logic.platform import GFG, LEETCODE, display_name

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}

CHUNK_SIZE = 8192

# Mirrors are tried in order; the comprehensive one first, then the recent-submissions one
ENDPOINTS: Dict[str, List[str]] = {
    LEETCODE: [
        "https://alfa-leetcode-api.onrender.com/{username}/userProfileUserQuestionProgressV2/{username}",
        "https://leetcode-api-faisalshohag.vercel.app/{username}",
    ],
    GFG: [
        "https://geeks-for-geeks-api.vercel.app/{username}",
    ],
}


class InvalidResponse(Exception):
    """Upstream answered, but not with something we can use."""


@dataclass
class FetchResult:
    provider: str
    payload: dict
    endpoint: str
    attempts: int


class UpstreamFetcher:
    def __init__(
        self,
        settings: SyncSettings = None,
        session: requests.Session = None,
        endpoints: Dict[str, List[str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or SyncSettings()
        self.session = session
        self.endpoints = endpoints if endpoints is not None else ENDPOINTS
        self.sleep = sleep
        self.clock = clock

    def endpoints_for(self, provider: str, username: str) -> List[str]:
        templates = self.endpoints.get(provider)
        if not templates:
            raise UnsupportedProvider(provider)
        return [template.format(username=quote(username, safe="")) for template in templates]

    def _read_body(self, response, deadline: float) -> bytes:
        """Read the streamed body, giving up once the attempt's wall-clock deadline has passed."""
        chunks = []
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            chunks.append(chunk)
            if self.clock() > deadline:
                raise requests.Timeout(f"Attempt exceeded {self.settings.attempt_timeout}s")
        return b"".join(chunks)

    def _get_json(self, session: requests.Session, url: str):
        timeout = self.settings.attempt_timeout
        deadline = self.clock() + timeout
        response = session.get(url, headers=HEADERS, timeout=timeout, stream=True)
        try:
            if not response.ok:
                raise InvalidResponse(f"HTTP {response.status_code}: {response.reason}")
            body = self._read_body(response, deadline)
        finally:
            response.close()
        try:
            data = json.loads(body)
        except ValueError as e:
            raise InvalidResponse(f"Invalid JSON from upstream: {e}") from e
        if not isinstance(data, dict):
            raise InvalidResponse("Invalid response format")
        error = data.get("error") or data.get("errors")
        if error:
            raise InvalidResponse(str(error))
        return data

    def fetch(self, provider: str, username: str) -> FetchResult:
        """
        Walk the provider's endpoints in order, retrying each one up to
        `max_attempts` times, and return the first usable payload.
        Raises UpstreamUnavailable carrying the last error once everything failed.
        """
        urls = self.endpoints_for(provider, username)
        session = self.session or requests.Session()
        max_attempts = self.settings.max_attempts
        last_error: Optional[Exception] = None
        attempts = 0

        try:
            for index, url in enumerate(urls, start=1):
                for attempt in range(1, max_attempts + 1):
                    attempts += 1
                    logger.info("Trying %s API %d, attempt %d: %s", display_name(provider), index, attempt, url)
                    try:
                        data = self._get_json(session, url)
                    except (requests.RequestException, InvalidResponse) as e:
                        last_error = e
                        logger.warning("%s API %d, attempt %d failed: %s", display_name(provider), index, attempt, e)
                        if attempt < max_attempts:
                            self.sleep(self.settings.backoff)
                        continue

                    logger.info("Fetched %s data from API %d (keys: %s)", display_name(provider), index, ", ".join(list(data)[:5]))
                    return FetchResult(provider=provider, payload=data, endpoint=url, attempts=attempts)
        finally:
            if self.session is None:
                session.close()

        raise UpstreamUnavailable(provider, last_error, display_name(provider))
