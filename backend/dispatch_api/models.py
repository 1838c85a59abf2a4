from django.db import models
from django.utils import timezone


def default_languages():
    return ["English"]


class Category(models.Model):
    """
    Service category. Helpers list categories as free strings (id, slug or a
    name), which is why matching is loose.
    """
    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=255, default="Service")
    slug = models.SlugField(max_length=255, blank=True)
    parent = models.ForeignKey("self", on_delete=models.SET_NULL, null=True, blank=True, related_name="children")

    def __str__(self):
        return self.name


class CustomerProfile(models.Model):
    """
    Only what the notification copy needs about a requester.
    """
    id = models.CharField(primary_key=True, max_length=64)
    full_name = models.CharField(max_length=255, blank=True)

    def __str__(self):
        return self.full_name or self.id


class HelperProfile(models.Model):
    """
    A worker as stored. Maintained by the helper's own status flows; the
    dispatch pipeline only reads it.
    """
    id = models.CharField(primary_key=True, max_length=64)
    user_id = models.CharField(max_length=64)
    full_name = models.CharField(max_length=255, blank=True)

    # Eligibility flags
    is_approved = models.BooleanField(default=False)
    is_online = models.BooleanField(default=False)
    is_available_now = models.BooleanField(default=False)
    is_on_job = models.BooleanField(default=False)
    emergency_availability = models.BooleanField(default=False)

    # Last known position; null until the app reports one
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    # e.g. ["plumbing", "cat_42", "Electrical repairs"]
    service_categories = models.JSONField(default=list)
    hourly_rate = models.FloatField(default=0)

    # Aggregates
    rating = models.FloatField(blank=True, null=True)
    total_reviews = models.PositiveIntegerField(default=0)
    completed_jobs = models.PositiveIntegerField(default=0)
    avg_response_time_minutes = models.FloatField(blank=True, null=True)
    verification_count = models.PositiveIntegerField(default=0)
    background_check_verified = models.BooleanField(default=False)
    last_active_at = models.DateTimeField(blank=True, null=True)

    has_immediate_slot = models.BooleanField(default=False)
    has_same_day_slot = models.BooleanField(default=False)

    specialties = models.JSONField(default=list, blank=True)
    verified_skills = models.JSONField(default=list, blank=True)
    languages = models.JSONField(default=default_languages, blank=True)

    def __str__(self):
        return self.full_name or self.id


class ServiceRequest(models.Model):
    """
    A job posted by a requester.
    Lifecycle: draft -> open (broadcasting) -> assigned -> in_progress -> completed,
    with cancelled reachable from any non-terminal state.
    """
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        OPEN = "open", "Open"
        ASSIGNED = "assigned", "Assigned"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class BroadcastStatus(models.TextChoices):
        NONE = "none", "Not broadcast"
        BROADCASTING = "broadcasting", "Broadcasting"
        ACCEPTED = "accepted", "Accepted"
        COMPLETED = "completed", "Completed"

    class Urgency(models.TextChoices):
        IMMEDIATE = "immediate", "Immediate"
        SAME_DAY = "same_day", "Same day"
        SCHEDULED = "scheduled", "Scheduled"
        FLEXIBLE = "flexible", "Flexible"

    id = models.CharField(primary_key=True, max_length=64)
    customer_id = models.CharField(max_length=64)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="requests")

    title = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    service_address = models.TextField(blank=True)
    latitude = models.FloatField(blank=True, null=True)
    longitude = models.FloatField(blank=True, null=True)

    estimated_price = models.FloatField(default=0)
    budget_min = models.FloatField(blank=True, null=True)
    budget_max = models.FloatField(blank=True, null=True)
    urgency = models.CharField(max_length=20, choices=Urgency.choices, default=Urgency.FLEXIBLE)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    broadcast_status = models.CharField(max_length=20, choices=BroadcastStatus.choices, default=BroadcastStatus.NONE)

    # Set only by the conditional accept write
    assigned_helper_id = models.CharField(max_length=64, blank=True, null=True)
    helper_accepted_at = models.DateTimeField(blank=True, null=True)
    work_started_at = models.DateTimeField(blank=True, null=True)
    broadcast_expires_at = models.DateTimeField(blank=True, null=True)
    broadcast_round = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(blank=True, null=True)
    version = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"Request #{self.id} - {self.status}"


class BroadcastNotification(models.Model):
    """
    One actionable job card per (request, round, helper).
    """
    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        ACCEPTED = "accepted", "Accepted"
        DECLINED = "declined", "Declined"
        EXPIRED = "expired", "Expired"

    request = models.ForeignKey(ServiceRequest, on_delete=models.CASCADE, related_name="broadcasts")
    helper_id = models.CharField(max_length=64)
    round = models.PositiveIntegerField(default=1)
    distance_km = models.FloatField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SENT)
    sent_at = models.DateTimeField(default=timezone.now)
    responded_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        unique_together = ("request", "round", "helper_id")

    def __str__(self):
        return f"{self.request_id} -> {self.helper_id} (round {self.round})"


class Notification(models.Model):
    """
    Generic push / in-app notification row.
    """
    class Status(models.TextChoices):
        QUEUED = "queued", "Queued"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        READ = "read", "Read"

    user_id = models.CharField(max_length=64)
    request_id = models.CharField(max_length=64, blank=True, null=True)
    channel = models.CharField(max_length=20, default="push")
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.QUEUED)
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.title} -> {self.user_id}"
