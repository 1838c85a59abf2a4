"""
Purpose: Ranking/selection model (the "who is best" layer).
What it does:
Takes candidates (already eligible) + criteria and produces a 0-100 match
score per helper with human-readable reasons and badges.

Weighted factors (points, summed then clamped to [0, 100]):
  distance        25  (lose 2 points per km)
  availability    20  (depends on urgency)
  rating          15
  experience      10  (1 point per 10 jobs)
  responsiveness  10  (latency buckets)
  price fit       10  (5 neutral)
  verification     5
  recency          5

Missing data drops that factor to its minimum; it never excludes a helper.

Dispatch ranking puts category-matched candidates first, then sorts by
distance (or score) inside each group.

Rule: Scoring chooses order; it does not touch the store or send anything.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from geo.eta_service import estimate_arrival
from helpers.models import HelperProfile
from service_requests.models import Category, ServiceRequest, Urgency, LatLon

from .candidate_filter import Candidate

# Helpers with no recorded latency are treated as slow responders.
DEFAULT_RESPONSE_MINUTES = 120.0


@dataclass(frozen=True)
class MatchingCriteria:
    """
    What the requester asked for.
    """
    service_type: str
    location: Optional[LatLon]
    urgency: Urgency = Urgency.FLEXIBLE
    category: Optional[Category] = None
    budget_range: Optional[Tuple[float, float]] = None
    require_verification: bool = False
    # carried through to callers, not a scoring factor
    language_preference: Tuple[str, ...] = ()

    @classmethod
    def from_request(cls, request: ServiceRequest) -> MatchingCriteria:
        return cls(
            service_type=request.category_id,
            location=request.location,
            urgency=request.urgency,
            category=request.category,
            budget_range=request.budget_range,
        )


@dataclass(frozen=True)
class MatchResult:
    """
    Ranked candidate output. Never persisted.
    """
    helper_id: str
    helper_name: str
    match_score: int
    match_reasons: List[str]
    distance_km: float
    estimated_arrival: str
    hourly_rate: float
    rating: float
    total_reviews: int
    completed_jobs: int
    response_time_avg: str
    availability: str
    badges: List[str]
    specialties: List[str] = field(default_factory=list)
    verified_skills: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    category_match: bool = False


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Candidate
    match: MatchResult

    @property
    def helper(self) -> HelperProfile:
        return self.candidate.helper


# -------------------------
# Factor functions
# -------------------------

def distance_points(distance_km: Optional[float]) -> float:
    if distance_km is None:
        return 0.0
    return max(0.0, 25.0 - distance_km * 2)


def availability_points(helper: HelperProfile, urgency: Urgency) -> float:
    if urgency == Urgency.IMMEDIATE:
        return 20.0 if helper.is_online and helper.has_immediate_slot else 5.0
    if urgency == Urgency.SAME_DAY:
        return 15.0 if helper.is_online else 10.0
    # scheduled / flexible: immediacy is irrelevant
    return 10.0


def rating_points(rating: Optional[float]) -> float:
    if not rating:
        return 0.0
    return (rating / 5) * 15


def experience_points(completed_jobs: int) -> float:
    return min(10.0, max(0, completed_jobs) / 10)


def response_points(avg_response_minutes: float) -> float:
    if avg_response_minutes < 5:
        return 10.0
    if avg_response_minutes < 15:
        return 8.0
    if avg_response_minutes < 30:
        return 5.0
    return 2.0


def price_points(hourly_rate: float, budget_range: Optional[Tuple[float, float]]) -> float:
    if budget_range is None:
        return 5.0
    low, high = budget_range
    return 10.0 if low <= hourly_rate <= high else 5.0


def verification_points(verification_count: int) -> float:
    return 5.0 if verification_count >= 2 else 0.0


def hours_since(moment: Optional[datetime], now: datetime) -> float:
    if moment is None:
        return math.inf
    return (now - moment).total_seconds() / 3600


def recency_points(hours_since_active: float) -> float:
    if hours_since_active < 1:
        return 5.0
    if hours_since_active < 24:
        return 3.0
    return 1.0


# -------------------------
# Display helpers
# -------------------------

def format_response_time(minutes: float) -> str:
    if minutes < 5:
        return "< 5 mins"
    if minutes < 15:
        return "5-15 mins"
    if minutes < 30:
        return "15-30 mins"
    if minutes < 60:
        return "30-60 mins"
    return "> 1 hour"


def determine_availability(helper: HelperProfile) -> str:
    if helper.is_online and helper.has_immediate_slot:
        return "available_now"
    if helper.has_same_day_slot:
        return "available_today"
    return "scheduled_only"


def determine_badges(helper: HelperProfile, rating: float, completed_jobs: int, response_minutes: float) -> List[str]:
    badges: List[str] = []
    if rating >= 4.7 and completed_jobs >= 20:
        badges.append("top_rated")
    if response_minutes < 10:
        badges.append("fast_responder")
    if helper.verification_count >= 2:
        badges.append("verified")
    if helper.background_check_verified:
        badges.append("background_checked")
    if completed_jobs >= 100:
        badges.append("pro")
    if helper.is_online:
        badges.append("online_now")
    return badges


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# -------------------------
# Scoring
# -------------------------

def score_helper(
    helper: HelperProfile,
    distance_km: Optional[float],
    criteria: MatchingCriteria,
    *,
    now: Optional[datetime] = None,
    category_match: bool = False,
    reported_distance_km: Optional[float] = None,
) -> MatchResult:
    """
    Score one helper against `criteria`.

    `distance_km` of None means the distance is unknown: the distance factor
    scores 0 and `reported_distance_km` is what shows up on the result.
    """
    now = now or datetime.utcnow()
    total = 0.0
    reasons: List[str] = []

    # Factor 1: distance
    total += distance_points(distance_km)
    if distance_km is not None:
        if distance_km < 3:
            reasons.append(f"Very close ({distance_km:.1f}km away)")
        elif distance_km < 5:
            reasons.append(f"Nearby ({distance_km:.1f}km away)")

    # Factor 2: availability vs urgency
    availability = availability_points(helper, criteria.urgency)
    total += availability
    if availability >= 15:
        reasons.append("Available right now")

    # Factor 3: rating
    rating = helper.rating or 0.0
    total += rating_points(rating)
    if rating >= 4.5:
        reasons.append(f"Excellent rating ({rating:.1f}★)")

    # Factor 4: experience
    jobs = helper.completed_jobs or 0
    total += experience_points(jobs)
    if jobs >= 50:
        reasons.append(f"Very experienced ({jobs} jobs completed)")
    elif jobs >= 20:
        reasons.append(f"Experienced ({jobs} jobs)")

    # Factor 5: responsiveness
    response_minutes = (
        helper.avg_response_time_minutes
        if helper.avg_response_time_minutes is not None
        else DEFAULT_RESPONSE_MINUTES
    )
    total += response_points(response_minutes)
    if response_minutes < 5:
        reasons.append("Responds within 5 minutes")

    # Factor 6: price fit
    price = price_points(helper.hourly_rate, criteria.budget_range)
    total += price
    if price >= 10:
        reasons.append("Within your budget")

    # Factor 7: verification
    verification = verification_points(helper.verification_count)
    total += verification
    if verification > 0:
        reasons.append("Verified identity & background")

    # Factor 8: recent activity
    idle_hours = hours_since(helper.last_active_at, now)
    total += recency_points(idle_hours)
    if idle_hours < 1:
        reasons.append("Online now")

    score = _round_half_up(min(100.0, max(0.0, total)))
    shown_distance = distance_km if distance_km is not None else (reported_distance_km or 0.0)

    return MatchResult(
        helper_id=helper.id,
        helper_name=helper.full_name,
        match_score=score,
        match_reasons=reasons,
        distance_km=shown_distance,
        estimated_arrival=estimate_arrival(shown_distance),
        hourly_rate=helper.hourly_rate,
        rating=rating,
        total_reviews=helper.total_reviews,
        completed_jobs=jobs,
        response_time_avg=format_response_time(response_minutes),
        availability=determine_availability(helper),
        badges=determine_badges(helper, rating, jobs, response_minutes),
        specialties=list(helper.specialties),
        verified_skills=list(helper.verified_skills),
        languages=list(helper.languages),
        category_match=category_match,
    )


def score_candidate(candidate: Candidate, criteria: MatchingCriteria, now: Optional[datetime] = None) -> MatchResult:
    """
    Score a filtered candidate. Deterministic for a fixed `now`.
    """
    return score_helper(
        candidate.helper,
        candidate.distance_km,
        criteria,
        now=now,
        category_match=candidate.category_match,
    )


def rank_for_dispatch(
    candidates: Sequence[Candidate],
    criteria: MatchingCriteria,
    *,
    by: str = "distance",
    now: Optional[datetime] = None,
) -> List[RankedCandidate]:
    """
    Order candidates for a broadcast.

    Category-matched candidates always come first. Inside each group the
    tie-break is ascending distance (by="distance", the dispatch default) or
    descending score (by="score"). Helper id makes the order total.
    """
    if by not in ("distance", "score"):
        raise ValueError(f"unknown dispatch sort {by!r}")

    now = now or datetime.utcnow()
    ranked = [RankedCandidate(candidate=c, match=score_candidate(c, criteria, now)) for c in candidates]

    if by == "distance":
        ranked.sort(key=lambda r: (not r.candidate.category_match, r.candidate.distance_km, r.candidate.helper_id))
    else:
        ranked.sort(
            key=lambda r: (
                not r.candidate.category_match,
                -r.match.match_score,
                r.candidate.distance_km,
                r.candidate.helper_id,
            )
        )
    return ranked


def generate_recommendation_explanation(match: MatchResult) -> str:
    """
    One-line pitch for a recommended helper, e.g. for a helper card.
    """
    reasons: List[str] = []

    if match.match_score >= 90:
        reasons.append("Perfect match for your needs!")
    elif match.match_score >= 80:
        reasons.append("Excellent match!")

    if "top_rated" in match.badges:
        reasons.append("Consistently delivers 5-star service")

    if match.distance_km < 2:
        reasons.append("Can reach you very quickly")

    if match.completed_jobs >= 50:
        reasons.append(f"Completed {match.completed_jobs}+ successful jobs")

    return " • ".join(reasons)
