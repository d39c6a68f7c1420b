from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from padel_alert.config import get_settings
from padel_alert.exceptions import CatalogError

MATCHES_PATH = "/matches"
CLASSES_PATH = "/classes"
LESSONS_PATH = "/tournaments"

PAGE_SIZE = 100
PLAYTOMIC_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_playtomic_time(value: str) -> datetime:
    """Parse ``2024-05-15T14:30:00`` (fractions and a trailing Z are ignored)."""
    if not value:
        raise ValueError("empty timestamp")
    return datetime.strptime(value.rstrip("Z").split(".")[0], PLAYTOMIC_TIME_FORMAT)


def from_start_date(today: Optional[date] = None) -> str:
    """Query floor: today at midnight, in the provider's format."""
    today = today or date.today()
    return f"{today.isoformat()}T00:00:00"


def match_search_params(club_ids: Sequence[str], today: Optional[date] = None) -> Dict[str, Any]:
    return {
        "sort": "start_date,ASC",
        "has_players": "true",
        "sport_id": "PADEL",
        "tenant_id": ",".join(club_ids),
        "visibility": "VISIBLE",
        "from_start_date": from_start_date(today),
        "size": PAGE_SIZE,
    }


def class_search_params(club_ids: Sequence[str], today: Optional[date] = None) -> Dict[str, Any]:
    return {
        "sort": "start_date,created_at,ASC",
        "status": "PENDING,IN_PROGRESS",
        "tenant_id": ",".join(club_ids),
        "include_summary": "true",
        "course_visibility": "PUBLIC",
        "from_start_date": from_start_date(today),
        "size": PAGE_SIZE,
        "page": 0,
    }


def lesson_search_params(club_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    # the lessons endpoint only accepts a single tenant
    return {
        "sort": "start_date,created_at,ASC",
        "tenant_id": club_id,
        "tournament_visibility": "PUBLIC",
        "status": "REGISTRATION_OPEN,REGISTRATION_CLOSED,IN_PROGRESS",
        "from_start_date": from_start_date(today),
        "size": PAGE_SIZE,
        "page": 0,
    }


class PlaytomicClient:
    """Thin client for the public Playtomic catalog endpoints.

    Every failure (transport, non-200 status, undecodable body) is raised as
    :class:`CatalogError`; callers decide whether that aborts the rule.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.playtomic_base_url).rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={
                "Accept": "application/json",
                "User-Agent": "PadelAlert/0.3",
            },
        )

    def close(self) -> None:
        self.client.close()

    def _get(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            resp = self.client.get(path, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"GET {path} returned {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise CatalogError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise CatalogError(f"GET {path} returned invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise CatalogError(f"GET {path} returned {type(data).__name__}, expected list")

        logger.debug(f"Playtomic {path}: {len(data)} items")
        return data

    def get_matches(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._get(MATCHES_PATH, params)

    def get_classes(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._get(CLASSES_PATH, params)

    def get_lessons(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._get(LESSONS_PATH, params)
