import logging
from enum import Enum
from typing import Any

from .. import repo
from ..config import CANDIDATE_MAX_PAGE_SIZE, CANDIDATE_PAGE_SIZE
from ..errors import NotFoundError
from .candidate_filter import CandidateFilter, filter_from_payload, filter_from_preferences, validate_filter

logger = logging.getLogger(__name__)


class RelaxationPolicy(str, Enum):
    STRICT_ONLY = "strict_only"
    STRICT_THEN_UNFILTERED = "strict_then_unfiltered"


def _page_params(page: int | None, page_size: int | None) -> tuple[int, int]:
    p = max(1, int(page or 1))
    size = int(page_size or CANDIDATE_PAGE_SIZE)
    return p, max(1, min(size, CANDIDATE_MAX_PAGE_SIZE))


def select_candidates(
    requester_id: str,
    criteria: CandidateFilter | None,
    page: int | None = 1,
    page_size: int | None = None,
    policy: RelaxationPolicy = RelaxationPolicy.STRICT_THEN_UNFILTERED,
) -> list[dict[str, Any]]:
    """Run the strict query; under STRICT_THEN_UNFILTERED an empty page is re-run with the base predicate only."""
    p, size = _page_params(page, page_size)
    rows = repo.find_candidates(requester_id, criteria, p, size)
    if rows or criteria is None or criteria.is_unconstrained() or policy == RelaxationPolicy.STRICT_ONLY:
        return rows
    logger.debug(f"[match] strict filter empty for user_id={requester_id} page={p}, relaxing")
    return repo.find_candidates(requester_id, None, p, size)


def get_candidates_from_preferences(
    requester_id: str,
    page: int | None = 1,
    page_size: int | None = None,
    policy: RelaxationPolicy = RelaxationPolicy.STRICT_THEN_UNFILTERED,
) -> list[dict[str, Any]]:
    prefs = repo.get_preferences(requester_id)
    if not prefs:
        raise NotFoundError("User preferences not found")
    return select_candidates(requester_id, filter_from_preferences(prefs), page, page_size, policy)


def get_candidates_from_filters(
    requester_id: str,
    payload: dict[str, Any],
    page: int | None = 1,
    page_size: int | None = None,
    policy: RelaxationPolicy = RelaxationPolicy.STRICT_THEN_UNFILTERED,
) -> list[dict[str, Any]]:
    criteria = validate_filter(filter_from_payload(payload))
    return select_candidates(requester_id, criteria, page, page_size, policy)
