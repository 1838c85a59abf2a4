#Purpose: Hard eligibility filtering (rule gates) for a service request.
#Builds the base candidate set before scoring/ranking.
#Typical responsibilities:
#approved / online or available-now / not already on a job
#broadcast radius around the request
#category match (loose, recall over precision)
#fallback to the whole eligible pool so a request is never stranded

#Output: "rule-qualified helpers" (still not ranked).

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from geo.distance import distance_km
from helpers.models import HelperProfile
from service_requests.models import ServiceRequest

from .errors import InvalidRequestError
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    A helper under consideration for one request, annotated with the
    distance to the job and whether their categories match it.
    """
    helper: HelperProfile
    distance_km: float
    category_match: bool

    @property
    def helper_id(self) -> str:
        return self.helper.id


@dataclass(frozen=True)
class CategoryTarget:
    """
    What a helper's category list is compared against.
    """
    category_id: str
    parent_id: Optional[str] = None
    slug: str = ""
    name: str = ""

    @classmethod
    def for_request(cls, request: ServiceRequest) -> CategoryTarget:
        return cls(
            category_id=(request.category.id if request.category else None) or request.category_id,
            parent_id=request.category_parent_id,
            slug=request.category_slug,
            name=request.category_name,
        )


@dataclass(frozen=True)
class CategoryMatch:
    """
    Result of category matching: whether any rule fired, and the first one
    that did (None when nothing matched).
    """
    matched: bool
    rule: Optional[str] = None


# ---- Category predicates ----
# Each takes one entry of a helper's category list (as stored) and the target.

def _exact_id(category: str, target: CategoryTarget) -> bool:
    return category == target.category_id


def _parent_id(category: str, target: CategoryTarget) -> bool:
    return bool(target.parent_id) and category == target.parent_id


def _slug_equal(category: str, target: CategoryTarget) -> bool:
    return bool(target.slug) and category.lower() == target.slug.lower()


def _slug_prefix(category: str, target: CategoryTarget) -> bool:
    if not target.slug:
        return False
    return target.slug.split("-")[0].lower() in category.lower()


def _name_first_word(category: str, target: CategoryTarget) -> bool:
    if not target.name:
        return False
    first_word = target.name.lower().split(" ")[0]
    return first_word in category.lower()


CATEGORY_RULES: Tuple[Tuple[str, Callable[[str, CategoryTarget], bool]], ...] = (
    ("exact_id", _exact_id),
    ("parent_id", _parent_id),
    ("slug_equal", _slug_equal),
    ("slug_prefix", _slug_prefix),
    ("name_first_word", _name_first_word),
)


def match_category(categories: Sequence[str], target: CategoryTarget) -> CategoryMatch:
    """
    True if ANY rule matches ANY of the helper's categories. Rules are tried
    in CATEGORY_RULES order only so the reported `rule` is stable.
    """
    for rule_name, rule in CATEGORY_RULES:
        for category in categories:
            if not category:
                continue
            if rule(category, target):
                return CategoryMatch(matched=True, rule=rule_name)
    return CategoryMatch(matched=False)


# ---- Filter ----

def eligible_snapshot(helpers: Sequence[HelperProfile]) -> List[HelperProfile]:
    """
    Approved, not on a job, online or available-now.
    """
    return [helper for helper in helpers if helper.is_dispatchable]


def filter_candidates(
    request: ServiceRequest,
    helper_snapshot: Sequence[HelperProfile],
    policy: Optional[DispatchPolicy] = None,
) -> List[Candidate]:
    """
    Build the candidate set for `request` out of a helper snapshot.

    - helpers without a location are kept (distance 0, no category match)
    - helpers farther than policy.broadcast_radius_km are dropped
    - if that leaves nobody but the eligible snapshot is non-empty, the whole
      eligible snapshot comes back (distance 0, no category match), capped by
      policy.fallback_cap when one is set

    Raises InvalidRequestError when the request has no coordinates or category.
    Output order is not meaningful; ranking is the scorer's job.
    """
    policy = policy or default_dispatch_policy()

    if request.location is None:
        logger.warning("request has no coordinates", extra={"request_id": request.id})
        raise InvalidRequestError(f"Service request {request.id} has no service coordinates")
    if not request.category_id:
        logger.warning("request has no category", extra={"request_id": request.id})
        raise InvalidRequestError(f"Service request {request.id} has no category")

    target = CategoryTarget.for_request(request)
    eligible = eligible_snapshot(helper_snapshot)

    candidates: List[Candidate] = []
    for helper in eligible:
        if helper.location is None:
            # unknown distance, still eligible
            candidates.append(Candidate(helper=helper, distance_km=0.0, category_match=False))
            continue

        distance = distance_km(request.location, helper.location)
        if distance > policy.broadcast_radius_km:
            logger.debug(
                "helper outside broadcast radius",
                extra={"helper_id": helper.id, "distance_km": round(distance, 1)},
            )
            continue

        match = match_category(helper.service_categories, target)
        candidates.append(Candidate(helper=helper, distance_km=distance, category_match=match.matched))

    if not candidates and eligible:
        fallback = eligible
        if policy.fallback_cap is not None:
            fallback = fallback[: policy.fallback_cap]
        logger.warning(
            "no helpers within radius, falling back to eligible pool",
            extra={"request_id": request.id, "eligible": len(eligible), "notified": len(fallback)},
        )
        candidates = [Candidate(helper=helper, distance_km=0.0, category_match=False) for helper in fallback]

    return candidates
