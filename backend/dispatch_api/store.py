"""
Purpose: Django ORM implementation of dispatch.ports.DispatchStore.
What it does:
- Converts rows to the plain domain dataclasses the dispatch core works on.
- conditional_update_request runs as ONE `UPDATE ... WHERE <guard>` statement
  and checks the affected row count, so the accept race is decided by the
  database, not by this process.
- Wraps database errors in DispatchStoreError.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from django.db import DatabaseError, transaction
from django.db.models import F, Q

from dispatch.errors import DispatchStoreError
from helpers.models import HelperProfile
from notifications.models import BroadcastNotification, BroadcastRowStatus, Notification
from service_requests.models import (
    BroadcastStatus,
    Category,
    RequestStatus,
    ServiceRequest,
    Urgency,
)

from . import models

logger = logging.getLogger(__name__)


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def request_to_domain(row: models.ServiceRequest) -> ServiceRequest:
    category = None
    if row.category is not None:
        category = Category(
            id=row.category.id,
            name=row.category.name or "Service",
            slug=row.category.slug,
            parent_id=row.category.parent_id,
        )

    location = None
    if row.latitude is not None and row.longitude is not None:
        location = (row.latitude, row.longitude)

    budget_range = None
    if row.budget_min is not None and row.budget_max is not None:
        budget_range = (row.budget_min, row.budget_max)

    return ServiceRequest(
        id=row.id,
        customer_id=row.customer_id,
        category_id=row.category_id or "",
        location=location,
        category=category,
        title=row.title,
        description=row.description,
        service_address=row.service_address,
        estimated_price=row.estimated_price,
        urgency=Urgency(row.urgency),
        budget_range=budget_range,
        status=RequestStatus(row.status),
        broadcast_status=BroadcastStatus(row.broadcast_status),
        assigned_helper_id=row.assigned_helper_id,
        helper_accepted_at=row.helper_accepted_at,
        work_started_at=row.work_started_at,
        broadcast_expires_at=row.broadcast_expires_at,
        broadcast_round=row.broadcast_round,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def helper_to_domain(row: models.HelperProfile) -> HelperProfile:
    location = None
    if row.latitude is not None and row.longitude is not None:
        location = (row.latitude, row.longitude)

    return HelperProfile(
        id=row.id,
        user_id=row.user_id,
        location=location,
        full_name=row.full_name,
        is_approved=row.is_approved,
        is_online=row.is_online,
        is_available_now=row.is_available_now,
        is_on_job=row.is_on_job,
        emergency_availability=row.emergency_availability,
        service_categories=tuple(row.service_categories or ()),
        hourly_rate=row.hourly_rate,
        rating=row.rating,
        total_reviews=row.total_reviews,
        completed_jobs=row.completed_jobs,
        avg_response_time_minutes=row.avg_response_time_minutes,
        verification_count=row.verification_count,
        background_check_verified=row.background_check_verified,
        last_active_at=row.last_active_at,
        has_immediate_slot=row.has_immediate_slot,
        has_same_day_slot=row.has_same_day_slot,
        specialties=tuple(row.specialties or ()),
        verified_skills=tuple(row.verified_skills or ()),
        languages=tuple(row.languages or ("English",)),
    )


def broadcast_to_domain(row: models.BroadcastNotification) -> BroadcastNotification:
    return BroadcastNotification(
        request_id=row.request_id,
        helper_id=row.helper_id,
        round=row.round,
        distance_km=row.distance_km,
        status=BroadcastRowStatus(row.status),
        sent_at=row.sent_at,
        responded_at=row.responded_at,
    )


class DjangoDispatchStore:
    """
    Satisfies dispatch.ports.DispatchStore on top of the dispatch_api models.
    """

    def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        try:
            row = models.ServiceRequest.objects.select_related("category").filter(pk=request_id).first()
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load request {request_id}: {exc}") from exc
        return request_to_domain(row) if row else None

    def get_customer_name(self, customer_id: str) -> Optional[str]:
        try:
            return (
                models.CustomerProfile.objects.filter(pk=customer_id)
                .values_list("full_name", flat=True)
                .first()
            )
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load customer {customer_id}: {exc}") from exc

    def conditional_update_request(
        self,
        request_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[ServiceRequest]:
        guard: Dict[str, Any] = {}
        for name, value in expected.items():
            if value is None:
                guard[f"{name}__isnull"] = True
            else:
                guard[name] = _db_value(value)

        values = {name: _db_value(value) for name, value in changes.items()}

        try:
            with transaction.atomic():
                affected = models.ServiceRequest.objects.filter(pk=request_id, **guard).update(
                    version=F("version") + 1, **values
                )
        except DatabaseError as exc:
            logger.error("conditional update failed", extra={"request_id": request_id, "error": str(exc)})
            raise DispatchStoreError(f"could not update request {request_id}: {exc}") from exc

        if affected != 1:
            return None
        return self.get_request(request_id)

    def list_eligible_helpers(self) -> List[HelperProfile]:
        try:
            rows = models.HelperProfile.objects.filter(is_approved=True, is_on_job=False).filter(
                Q(is_online=True) | Q(is_available_now=True)
            )
            return [helper_to_domain(row) for row in rows]
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load helpers: {exc}") from exc

    def list_helpers(self) -> List[HelperProfile]:
        """All approved helpers, online or not (recommendation query)."""
        try:
            return [helper_to_domain(row) for row in models.HelperProfile.objects.filter(is_approved=True)]
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load helpers: {exc}") from exc

    def get_helper(self, helper_id: str) -> Optional[HelperProfile]:
        try:
            row = models.HelperProfile.objects.filter(pk=helper_id).first()
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load helper {helper_id}: {exc}") from exc
        return helper_to_domain(row) if row else None

    def insert_broadcasts(self, rows: Sequence[BroadcastNotification]) -> int:
        inserted = 0
        try:
            with transaction.atomic():
                for row in rows:
                    _, created = models.BroadcastNotification.objects.get_or_create(
                        request_id=row.request_id,
                        round=row.round,
                        helper_id=row.helper_id,
                        defaults={
                            "distance_km": row.distance_km,
                            "status": row.status.value,
                            "sent_at": row.sent_at,
                            "responded_at": row.responded_at,
                        },
                    )
                    inserted += int(created)
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not insert broadcast rows: {exc}") from exc
        return inserted

    def delete_broadcasts(self, request_id: str) -> int:
        try:
            deleted, _ = models.BroadcastNotification.objects.filter(request_id=request_id).delete()
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not delete broadcast rows for {request_id}: {exc}") from exc
        return deleted

    def list_broadcasts(self, request_id: str) -> List[BroadcastNotification]:
        try:
            rows = models.BroadcastNotification.objects.filter(request_id=request_id).order_by("round", "helper_id")
            return [broadcast_to_domain(row) for row in rows]
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not load broadcast rows for {request_id}: {exc}") from exc

    def mark_broadcasts(
        self,
        request_id: str,
        status: BroadcastRowStatus,
        *,
        helper_id: Optional[str] = None,
        exclude_helper_id: Optional[str] = None,
        responded_at=None,
    ) -> int:
        qs = models.BroadcastNotification.objects.filter(request_id=request_id)
        if helper_id is not None:
            qs = qs.filter(helper_id=helper_id)
        if exclude_helper_id is not None:
            qs = qs.exclude(helper_id=exclude_helper_id)
        try:
            return qs.update(status=status.value, responded_at=responded_at)
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not update broadcast rows for {request_id}: {exc}") from exc

    def insert_notifications(self, rows: Sequence[Notification]) -> int:
        try:
            created = models.Notification.objects.bulk_create(
                [
                    models.Notification(
                        user_id=n.user_id,
                        request_id=n.request_id,
                        channel=n.channel,
                        title=n.title,
                        body=n.body,
                        data=n.data,
                        status=n.status.value,
                    )
                    for n in rows
                ]
            )
        except DatabaseError as exc:
            raise DispatchStoreError(f"could not insert notifications: {exc}") from exc
        return len(created)
