from rest_framework import serializers

from dispatch.scoring import MatchingCriteria, generate_recommendation_explanation
from service_requests.models import Category, Urgency

from .models import ServiceRequest


class ServiceRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceRequest
        fields = '__all__'
        read_only_fields = ['status', 'broadcast_status', 'assigned_helper_id', 'helper_accepted_at',
                            'work_started_at', 'broadcast_expires_at', 'broadcast_round', 'version']


class HelperActionSerializer(serializers.Serializer):
    """
    Body of the helper-side endpoints (accept / cancel).
    """
    helper_id = serializers.CharField(max_length=64)


class MatchingCriteriaSerializer(serializers.Serializer):
    service_type = serializers.CharField(max_length=64)
    latitude = serializers.FloatField(required=False, allow_null=True)
    longitude = serializers.FloatField(required=False, allow_null=True)
    urgency = serializers.ChoiceField(choices=[u.value for u in Urgency], default=Urgency.FLEXIBLE.value)

    category_name = serializers.CharField(required=False, allow_blank=True)
    category_slug = serializers.CharField(required=False, allow_blank=True)
    category_parent_id = serializers.CharField(required=False, allow_null=True)

    budget_min = serializers.FloatField(required=False, allow_null=True)
    budget_max = serializers.FloatField(required=False, allow_null=True)
    require_verification = serializers.BooleanField(default=False)
    language_preference = serializers.ListField(
        child=serializers.CharField(), required=False, default=list,
        help_text="Accepted but not used for scoring.",
    )

    # when both are given, the requester is told about the top matches
    request_id = serializers.CharField(max_length=64, required=False)
    customer_id = serializers.CharField(max_length=64, required=False)

    def validate(self, attrs):
        if (attrs.get('latitude') is None) != (attrs.get('longitude') is None):
            raise serializers.ValidationError("latitude and longitude must be given together")
        budget_min, budget_max = attrs.get('budget_min'), attrs.get('budget_max')
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            raise serializers.ValidationError("budget_min must not exceed budget_max")
        if bool(attrs.get('request_id')) != bool(attrs.get('customer_id')):
            raise serializers.ValidationError("request_id and customer_id must be given together")
        return attrs

    def to_criteria(self) -> MatchingCriteria:
        data = self.validated_data
        location = None
        if data.get('latitude') is not None:
            location = (data['latitude'], data['longitude'])

        budget_range = None
        if data.get('budget_min') is not None and data.get('budget_max') is not None:
            budget_range = (data['budget_min'], data['budget_max'])

        category = Category(
            id=data['service_type'],
            name=data.get('category_name') or "",
            slug=data.get('category_slug') or data['service_type'],
            parent_id=data.get('category_parent_id'),
        )
        return MatchingCriteria(
            service_type=data['service_type'],
            location=location,
            urgency=Urgency(data['urgency']),
            category=category,
            budget_range=budget_range,
            require_verification=data['require_verification'],
            language_preference=tuple(data.get('language_preference') or ()),
        )


class MatchResultSerializer(serializers.Serializer):
    helper_id = serializers.CharField()
    helper_name = serializers.CharField()
    match_score = serializers.IntegerField()
    match_reasons = serializers.ListField(child=serializers.CharField())
    distance_km = serializers.FloatField()
    estimated_arrival = serializers.CharField()
    hourly_rate = serializers.FloatField()
    rating = serializers.FloatField()
    total_reviews = serializers.IntegerField()
    completed_jobs = serializers.IntegerField()
    response_time_avg = serializers.CharField()
    availability = serializers.CharField()
    badges = serializers.ListField(child=serializers.CharField())
    specialties = serializers.ListField(child=serializers.CharField())
    verified_skills = serializers.ListField(child=serializers.CharField())
    languages = serializers.ListField(child=serializers.CharField())
    explanation = serializers.SerializerMethodField()

    def get_explanation(self, obj):
        return generate_recommendation_explanation(obj)
