"""
Service requests domain package.

Public API:
- Domain models: ServiceRequest, Category
- Enums: RequestStatus, BroadcastStatus, Urgency
"""
from .models import (
    ServiceRequest,
    Category,
    RequestStatus,
    BroadcastStatus,
    Urgency,
    ASSIGNED_STATES,
)

__all__ = ["ServiceRequest",
           "Category",
             "RequestStatus",
               "BroadcastStatus",
               "Urgency",
               "ASSIGNED_STATES",
               ]
