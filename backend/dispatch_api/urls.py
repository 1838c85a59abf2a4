from django.urls import path

from .views import (
    AcceptRequestView,
    HelperCancelView,
    MatchHelpersView,
    RebroadcastRequestView,
    ServiceRequestDetailView,
)

urlpatterns = [
    path('requests/<str:request_id>/', ServiceRequestDetailView.as_view(), name='request-detail'),
    path('requests/<str:request_id>/rebroadcast/', RebroadcastRequestView.as_view(), name='request-rebroadcast'),
    path('requests/<str:request_id>/accept/', AcceptRequestView.as_view(), name='request-accept'),
    path('requests/<str:request_id>/cancel/', HelperCancelView.as_view(), name='request-helper-cancel'),
    path('helpers/match/', MatchHelpersView.as_view(), name='helpers-match'),
]
