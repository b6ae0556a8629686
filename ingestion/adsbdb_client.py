"""
Remote aircraft detail lookup (adsbdb.com).
"""

import logging
from typing import Optional

import requests

from contracts.constants import ADSBDB_API_URL
from processing.errors import LookupFailed

logger = logging.getLogger(__name__)


class AdsbDbClient:
    """
    Fetches the raw detail payload for one identifier.

    A 404 means the airframe is unknown and yields None. Other non-200
    statuses and undecodable bodies raise LookupFailed; transport errors
    propagate as requests exceptions.
    """

    def __init__(
        self,
        base_url: str = ADSBDB_API_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, identifier: str) -> Optional[dict]:
        response = self.session.get(f"{self.base_url}{identifier}", timeout=self.timeout)

        if response.status_code == 404:
            logger.debug(f"adsbdb has no record for {identifier}")
            return None
        if response.status_code != 200:
            raise LookupFailed(f"adsbdb API returned non-200 status: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise LookupFailed(f"API JSON decode error for {identifier}: {e}") from e
