import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from dispatch.errors import DispatchError
from dispatch.policy import dispatch_policy_from_env
from helpers.selection import find_matching_helpers
from notifications.fanout import NotificationFanout

from .models import ServiceRequest
from .serializers import (
    HelperActionSerializer,
    MatchingCriteriaSerializer,
    MatchResultSerializer,
    ServiceRequestSerializer,
)
from .services import build_channel, build_dispatcher
from .store import DjangoDispatchStore

logger = logging.getLogger(__name__)


def error_response(exc: Exception) -> Response:
    """
    Map dispatch errors to {success: false, error, kind} with the error's own
    HTTP status. Anything unexpected is a 500.
    """
    if isinstance(exc, DispatchError):
        return Response(
            {"success": False, "error": exc.message, "kind": exc.kind},
            status=exc.http_status,
        )
    logger.exception("unexpected dispatch failure")
    return Response(
        {"success": False, "error": "Internal server error", "kind": "internal"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class DispatchAPIView(APIView):
    """
    Base for the dispatch endpoints. Authentication and roles are handled in
    front of this service.
    """
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    # overridable through as_view(dispatcher_factory=...)
    dispatcher_factory = staticmethod(build_dispatcher)

    def get_dispatcher(self):
        return self.dispatcher_factory()


class RebroadcastRequestView(DispatchAPIView):
    """
    Re-enter broadcast for an existing request (e.g. after a helper dropped it).
    """

    def post(self, request, request_id):
        try:
            outcome = self.get_dispatcher().rebroadcast(request_id)
        except Exception as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "message": outcome.message,
            "helpersNotified": outcome.helpers_notified,
        })


class AcceptRequestView(DispatchAPIView):
    """
    A helper taps "Accept". Only the first one wins.
    """

    def post(self, request, request_id):
        serializer = HelperActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        helper_id = serializer.validated_data["helper_id"]

        try:
            updated = self.get_dispatcher().accept(request_id, helper_id)
        except Exception as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "message": "Job accepted",
            "request": {
                "id": updated.id,
                "status": updated.status.value,
                "broadcast_status": updated.broadcast_status.value,
                "assigned_helper_id": updated.assigned_helper_id,
            },
        })


class HelperCancelView(DispatchAPIView):
    """
    The assigned helper cancels before starting; the job is re-broadcast.
    """

    def post(self, request, request_id):
        serializer = HelperActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            outcome = self.get_dispatcher().cancel_by_helper(request_id, serializer.validated_data["helper_id"])
        except Exception as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "message": outcome.message,
            "helpersNotified": outcome.helpers_notified,
        })


class ServiceRequestDetailView(DispatchAPIView):

    def get(self, request, request_id):
        row = ServiceRequest.objects.filter(pk=request_id).first()
        if row is None:
            return Response({"success": False, "error": "Service request not found", "kind": "not_found"},
                            status=status.HTTP_404_NOT_FOUND)
        return Response(ServiceRequestSerializer(row).data)


class MatchHelpersView(DispatchAPIView):
    """
    Recommended helpers for a set of criteria (score >= 50, top 10).
    With request_id and customer_id the requester also gets a push about the
    best three.
    """
    store_factory = DjangoDispatchStore
    channel_factory = staticmethod(build_channel)

    def post(self, request):
        serializer = MatchingCriteriaSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        criteria = serializer.to_criteria()
        request_id = serializer.validated_data.get('request_id')
        customer_id = serializer.validated_data.get('customer_id')

        try:
            store = self.store_factory()
            matches = find_matching_helpers(criteria, store.list_helpers(), dispatch_policy_from_env())
            requester_notified = False
            if request_id and matches:
                fanout = NotificationFanout(store, self.channel_factory())
                requester_notified = fanout.notify_top_matches(customer_id, request_id, matches)
        except Exception as exc:
            return error_response(exc)

        return Response({
            "success": True,
            "count": len(matches),
            "matches": MatchResultSerializer(matches, many=True).data,
            "requesterNotified": requester_notified,
        })
