from rest_framework import serializers

from common.serializers import resolve_point
from drivers.models import Driver, DriverLocation


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for ride details.
    """
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Driver
        fields = [
            "id",
            "full_name",
            "phone_number",
            "vehicle",
            "model",
            "color",
            "license_plate",
            "current_latitude",
            "current_longitude",
        ]


class DriverRosterSerializer(serializers.ModelSerializer):
    """
    Active driver with position, as used by the matching roster.
    """
    full_name = serializers.CharField(read_only=True)
    location = serializers.SerializerMethodField()

    class Meta:
        model = Driver
        fields = [
            "id",
            "full_name",
            "status",
            "location",
            "last_location_update",
            "max_passengers",
            "has_child_seat",
            "vehicle",
            "license_plate",
        ]

    def get_location(self, obj):
        point = obj.current_point
        if point is None:
            return None
        return {"coordinates": point.wkt, **point.as_dict()}


class DriverLocationSerializer(serializers.ModelSerializer):
    coordinates = serializers.SerializerMethodField()

    class Meta:
        model = DriverLocation
        fields = ["id", "driver", "ride", "latitude", "longitude", "coordinates", "speed", "heading", "timestamp"]

    def get_coordinates(self, obj):
        return obj.point.wkt


class LocationUpdateSerializer(serializers.Serializer):
    """
    Position fix from a driver: latitude/longitude or a WKT point.
    """
    latitude = serializers.FloatField(required=False)
    longitude = serializers.FloatField(required=False)
    coordinates = serializers.CharField(required=False, allow_blank=False)
    speed = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    heading = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=360)
    ride_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        attrs["point"] = resolve_point(attrs)
        return attrs


class LocationHistoryQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=1000)


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for updating driver availability.
    """
    status = serializers.ChoiceField(choices=[choice for choice, _ in Driver.STATUS_CHOICES])
