"""
Purpose: Recommendation query ("who should I hire?").
What it does:
Accepts matching criteria and a pool of helpers, filters out helpers who do
not offer the service, scores the rest with the dispatch scorer and returns
the best matches (score >= 50, highest first, top 10).

Unlike the dispatch path there is no radius and no fallback: a weak match is
simply not recommended.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from dispatch.candidate_filter import CategoryTarget, match_category
from dispatch.policy import DispatchPolicy, default_dispatch_policy
from dispatch.scoring import MatchingCriteria, MatchResult, score_helper
from geo.distance import distance_km

from .models import HelperProfile

logger = logging.getLogger(__name__)

# Shown for helpers with no recorded location; far enough that the distance
# factor scores 0.
UNKNOWN_DISTANCE_KM = 100.0

MIN_VERIFICATIONS = 2


def target_for(criteria: MatchingCriteria) -> CategoryTarget:
    category = criteria.category
    if category is None:
        return CategoryTarget(category_id=criteria.service_type, slug=criteria.service_type)
    return CategoryTarget(
        category_id=category.id,
        parent_id=category.parent_id,
        slug=category.slug,
        name=category.name,
    )


def filter_offering_helpers(
    helpers: Sequence[HelperProfile],
    criteria: MatchingCriteria,
) -> List[HelperProfile]:
    """
    Approved helpers whose categories match the requested service
    (and who are verified, when the requester insists on it).
    """
    target = target_for(criteria)
    offering = []

    for helper in helpers:
        if not helper.is_approved:
            continue

        if criteria.require_verification and helper.verification_count < MIN_VERIFICATIONS:
            continue

        if not match_category(helper.service_categories, target).matched:
            continue

        offering.append(helper)

    return offering


def find_matching_helpers(
    criteria: MatchingCriteria,
    helpers: Sequence[HelperProfile],
    policy: Optional[DispatchPolicy] = None,
    now: Optional[datetime] = None,
) -> List[MatchResult]:
    """
    Score every helper offering the service and return the top matches.
    """
    policy = policy or default_dispatch_policy()
    now = now or datetime.utcnow()

    offering = filter_offering_helpers(helpers, criteria)

    scored: List[MatchResult] = []
    for helper in offering:
        if criteria.location is None or helper.location is None:
            distance = None
        else:
            distance = distance_km(criteria.location, helper.location)

        scored.append(
            score_helper(
                helper,
                distance,
                criteria,
                now=now,
                category_match=True,
                reported_distance_km=UNKNOWN_DISTANCE_KM,
            )
        )

    matches = [m for m in scored if m.match_score >= policy.min_match_score]
    matches.sort(key=lambda m: (-m.match_score, m.distance_km, m.helper_id))
    matches = matches[: policy.max_matches]

    logger.info(
        "smart matching completed",
        extra={
            "service_type": criteria.service_type,
            "total_helpers": len(offering),
            "matched_helpers": len(matches),
            "top_score": matches[0].match_score if matches else None,
        },
    )
    return matches
