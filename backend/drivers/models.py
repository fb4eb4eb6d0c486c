from django.db import models
from django.utils import timezone

from common.utils import GeoPoint


class Driver(models.Model):
    """Driver details, vehicle capacity, availability status and live position"""

    AVAILABLE = 'available'
    BUSY = 'busy'
    OFFLINE = 'offline'
    ON_THE_WAY = 'on_the_way'

    STATUS_CHOICES = [
        (AVAILABLE, 'Available'),
        (BUSY, 'Busy'),
        (OFFLINE, 'Offline'),
        (ON_THE_WAY, 'On the way'),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True, default='')
    phone_number = models.CharField(max_length=32, unique=True)

    # Vehicle details
    vehicle = models.CharField(max_length=100, blank=True, default='')
    model = models.CharField(max_length=100, blank=True, default='')
    color = models.CharField(max_length=50, blank=True, default='')
    license_plate = models.CharField(max_length=20, unique=True)
    max_passengers = models.PositiveIntegerField(default=4)
    has_child_seat = models.BooleanField(default=False)

    active = models.BooleanField(default=True)
    verified = models.BooleanField(default=False)
    average_rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)

    # Status & location
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OFFLINE)
    current_latitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'drivers'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name or ''}".strip()

    @property
    def vehicle_description(self):
        return f"{self.vehicle} {self.model} {self.color}".strip()

    @property
    def current_point(self):
        if self.current_latitude is None or self.current_longitude is None:
            return None
        return GeoPoint(float(self.current_longitude), float(self.current_latitude))

    def __str__(self):
        return f"{self.full_name} - {self.license_plate}"


class DriverLocation(models.Model):
    """Immutable GPS fix history for a driver."""

    driver = models.ForeignKey(Driver, on_delete=models.CASCADE, related_name='locations')
    ride = models.ForeignKey('rides.Ride', on_delete=models.SET_NULL, null=True, blank=True, related_name='locations')

    latitude = models.DecimalField(max_digits=10, decimal_places=6)
    longitude = models.DecimalField(max_digits=10, decimal_places=6)
    speed = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    heading = models.IntegerField(null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'driver_locations'
        ordering = ['-timestamp']

    @property
    def point(self):
        return GeoPoint(float(self.longitude), float(self.latitude))

    def __str__(self):
        return f"Driver {self.driver_id} @ {self.point.wkt}"
