"""Review source connector base — retry with backoff, typed failure."""

import asyncio
import logging
from abc import ABC, abstractmethod

from ..errors import ConnectorError

log = logging.getLogger(__name__)


class ReviewSource(ABC):
    """Fetches recent raw reviews for one place.

    fetch() returns a list of normalized review dicts:
        {external_review_id, author_name, rating, comment,
         review_published_at, raw_payload}
    An empty list is a legitimate result. Any failure after the last retry
    surfaces as ConnectorError.
    """

    def __init__(self, timeout: float = 20.0, max_retries: int = 1):
        self.timeout = timeout
        self.max_retries = max_retries

    async def fetch(self, place_id: str, limit: int) -> list[dict]:
        last_err = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._do_fetch(place_id, limit)
            except Exception as e:
                last_err = e
                if attempt < self.max_retries:
                    await asyncio.sleep(2**attempt)
                else:
                    log.warning(f"{self.__class__.__name__} failed for {place_id}: {e}")
        if isinstance(last_err, ConnectorError):
            raise last_err
        raise ConnectorError(place_id, str(last_err) or last_err.__class__.__name__) from last_err

    @abstractmethod
    async def _do_fetch(self, place_id: str, limit: int) -> list[dict]:
        pass
