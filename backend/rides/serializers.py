from rest_framework import serializers

from clients.serializers import ClientBasicSerializer
from common.serializers import resolve_point
from drivers.serializers import DriverBasicSerializer
from .models import Ride, PendingOffer


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides"""
    client = ClientBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True)
    origin_coordinates = serializers.SerializerMethodField()
    destination_coordinates = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = ['id', 'tracking_code', 'client', 'driver', 'status',
                  'origin', 'destination', 'origin_coordinates', 'destination_coordinates',
                  'price', 'commission_percentage', 'commission_amount', 'distance', 'duration',
                  'passenger_count', 'has_children_under_5', 'is_round_trip', 'payment_method',
                  'request_date', 'assigned_at', 'start_date', 'end_date',
                  'cancelled_at', 'cancellation_reason']
        read_only_fields = fields

    def get_origin_coordinates(self, obj):
        return obj.origin_point.wkt

    def get_destination_coordinates(self, obj):
        return obj.destination_point.wkt


class RideQuoteSerializer(serializers.Serializer):
    """Input shared by ride creation and fare estimation"""
    phone_number = serializers.CharField(max_length=64)
    origin = serializers.CharField()
    destination = serializers.CharField()
    origin_latitude = serializers.FloatField(required=False)
    origin_longitude = serializers.FloatField(required=False)
    origin_coordinates = serializers.CharField(required=False)

    def validate(self, attrs):
        attrs['origin_point'] = resolve_point(
            attrs, 'origin_latitude', 'origin_longitude', 'origin_coordinates', required=False
        )
        return attrs


class RideCreateSerializer(RideQuoteSerializer):
    """Serializer for creating rides"""
    passenger_count = serializers.IntegerField(default=1, min_value=1, max_value=8)
    has_children_under_5 = serializers.BooleanField(default=False)
    is_round_trip = serializers.BooleanField(default=False)
    payment_method = serializers.CharField(default='cash', max_length=20)


class RideCancelSerializer(serializers.Serializer):
    """Serializer for ride cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True)


class CancelByPhoneSerializer(RideCancelSerializer):
    phone_number = serializers.CharField(max_length=64)


class RideStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _ in Ride.STATUS_CHOICES])


class AssignDriverSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(min_value=1)


class RideOfferSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(min_value=1)
    ride_id = serializers.IntegerField(min_value=1)


class PendingOfferSerializer(serializers.ModelSerializer):
    class Meta:
        model = PendingOffer
        fields = ['id', 'ride', 'driver', 'created_at']


class NearestDriverQuerySerializer(serializers.Serializer):
    ride_id = serializers.IntegerField(required=False, min_value=1)
    phone = serializers.CharField(required=False)

    def validate(self, attrs):
        if not attrs.get('ride_id') and not attrs.get('phone'):
            raise serializers.ValidationError({'ride_id': 'Provide ride_id or phone.'})
        return attrs


class FareCalculationSerializer(serializers.Serializer):
    client_id = serializers.IntegerField(min_value=1)
    origin_coordinates = serializers.CharField()
    duration = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0)
