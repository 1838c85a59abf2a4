"""
Purpose: Central configuration for candidate filtering, scoring and broadcast.
What it does:

Stores all tunable thresholds/caps for finding helpers and pushing offers:

BROADCAST_RADIUS_KM = 25
BROADCAST_TTL_MINUTES = 30
MIN_MATCH_SCORE = 50, MAX_MATCHES = 10 (recommendation query)

Rule: No logic here; just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for dispatch thresholds.
    """

    # --- Candidate filter ---
    # Helpers farther than this from the request are dropped before ranking.
    broadcast_radius_km: float = 25.0

    # When nothing survives the radius filter the whole eligible snapshot is
    # notified. None keeps that unbounded.
    fallback_cap: Optional[int] = None

    # --- Broadcast ---
    # Advisory expiry stamped on the request; sweeping is someone else's job.
    broadcast_ttl_minutes: int = 30

    # "distance" (dispatch) or "score" as the tie-break inside a
    # category-match group.
    dispatch_sort: str = "distance"

    # --- Recommendation query ---
    min_match_score: int = 50
    max_matches: int = 10

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.broadcast_radius_km <= 0:
            raise ValueError("broadcast_radius_km must be > 0")

        if self.fallback_cap is not None and self.fallback_cap <= 0:
            raise ValueError("fallback_cap must be > 0 when set")

        if self.broadcast_ttl_minutes <= 0:
            raise ValueError("broadcast_ttl_minutes must be > 0")

        if self.dispatch_sort not in ("distance", "score"):
            raise ValueError("dispatch_sort must be 'distance' or 'score'")

        if not 0 <= self.min_match_score <= 100:
            raise ValueError("min_match_score must be within [0, 100]")

        if self.max_matches <= 0:
            raise ValueError("max_matches must be > 0")


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p


def dispatch_policy_from_env() -> DispatchPolicy:
    """
    Build a policy from DISPATCH_* variables (a .env file is honoured).
    Unset variables keep their defaults.
    """
    load_dotenv()
    defaults = DispatchPolicy()

    fallback_cap = os.getenv("DISPATCH_FALLBACK_CAP")
    p = DispatchPolicy(
        broadcast_radius_km=float(os.getenv("DISPATCH_BROADCAST_RADIUS_KM") or defaults.broadcast_radius_km),
        fallback_cap=int(fallback_cap) if fallback_cap else None,
        broadcast_ttl_minutes=int(os.getenv("DISPATCH_BROADCAST_TTL_MINUTES") or defaults.broadcast_ttl_minutes),
        dispatch_sort=os.getenv("DISPATCH_SORT") or defaults.dispatch_sort,
        min_match_score=int(os.getenv("DISPATCH_MIN_MATCH_SCORE") or defaults.min_match_score),
        max_matches=int(os.getenv("DISPATCH_MAX_MATCHES") or defaults.max_matches),
    )
    p.validate()
    return p
