"""
Purpose: Core data models for the helpers domain.
What it does:
Defines the structure of a Helper as the dispatch engine sees it, without
relying on Django ORM constraints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

LatLon = Tuple[float, float]


@dataclass(frozen=True)
class HelperProfile:
    """
    A read-only snapshot of a Helper at a specific point in time.
    The matching core never writes these fields.
    """
    id: str
    user_id: str
    location: Optional[LatLon] = None

    full_name: str = ""
    is_approved: bool = True
    is_online: bool = False
    is_available_now: bool = False
    is_on_job: bool = False
    emergency_availability: bool = False

    service_categories: Tuple[str, ...] = ()
    hourly_rate: float = 0.0

    # Aggregates the scorer consumes. None means "no data yet".
    rating: Optional[float] = None
    total_reviews: int = 0
    completed_jobs: int = 0
    avg_response_time_minutes: Optional[float] = None
    verification_count: int = 0
    background_check_verified: bool = False
    last_active_at: Optional[datetime] = None

    # Availability slots advertised on the helper's service listing.
    has_immediate_slot: bool = False
    has_same_day_slot: bool = False

    specialties: Tuple[str, ...] = ()
    verified_skills: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = field(default_factory=lambda: ("English",))

    @property
    def is_dispatchable(self) -> bool:
        """Approved, not on a job, and online or available right now."""
        return self.is_approved and not self.is_on_job and (self.is_online or self.is_available_now)

    @classmethod
    def new(
        cls,
        helper_id: str,
        lat: Optional[float],
        lon: Optional[float],
        categories: Optional[List[str]] = None,
        user_id: Optional[str] = None,
        **attrs,
    ) -> HelperProfile:
        location = (lat, lon) if lat is not None and lon is not None else None
        return cls(
            id=helper_id,
            user_id=user_id or f"user_{helper_id}",
            location=location,
            service_categories=tuple(categories or ()),
            **attrs,
        )
