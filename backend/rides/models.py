from django.db import models

from common.utils import GeoPoint


class Zone(models.Model):
    """Priced service area. ``area`` holds a GeoJSON Polygon in SRID 4326."""

    FLAT_RATE = 'flat_rate'
    MINUTE_RATE = 'minute_rate'

    RATE_TYPE_CHOICES = [
        (FLAT_RATE, 'Flat rate'),
        (MINUTE_RATE, 'Per-minute rate'),
    ]

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default='')
    area = models.JSONField()

    rate_type = models.CharField(max_length=20, choices=RATE_TYPE_CHOICES, null=True, blank=True)
    price_per_minute = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    minimum_fare = models.DecimalField(max_digits=10, decimal_places=2)
    flat_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    night_rate_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    weekend_rate_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True, default=10)

    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'zones'
        ordering = ['id']

    def __str__(self):
        return f"Zone #{self.id} - {self.name}"


class Ride(models.Model):
    """A client's ride request, tracked from pending to completion or cancellation"""

    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    ON_THE_WAY = 'on_the_way'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (IN_PROGRESS, 'In progress'),
        (ON_THE_WAY, 'On the way'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    ACTIVE_STATUSES = (PENDING, IN_PROGRESS, ON_THE_WAY)
    TERMINAL_STATUSES = (COMPLETED, CANCELLED)

    # Foreign keys
    client = models.ForeignKey('clients.Client', on_delete=models.CASCADE, related_name='rides')
    driver = models.ForeignKey(
        'drivers.Driver',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rides'
    )

    # Origin / destination
    origin = models.TextField()
    destination = models.TextField()
    origin_latitude = models.DecimalField(max_digits=10, decimal_places=6)
    origin_longitude = models.DecimalField(max_digits=10, decimal_places=6)
    destination_latitude = models.DecimalField(max_digits=10, decimal_places=6)
    destination_longitude = models.DecimalField(max_digits=10, decimal_places=6)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, db_index=True)

    # Pricing & route, fixed at creation
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    commission_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    distance = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    duration = models.PositiveIntegerField(null=True, blank=True)

    # Passenger details
    passenger_count = models.PositiveIntegerField(default=1)
    has_children_under_5 = models.BooleanField(default=False)
    is_round_trip = models.BooleanField(default=False)
    payment_method = models.CharField(max_length=20, default='cash')

    tracking_code = models.CharField(max_length=8, unique=True)

    # Timestamps
    request_date = models.DateTimeField(auto_now_add=True)
    assigned_at = models.DateTimeField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(null=True, blank=True)

    # Post-ride feedback
    client_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    driver_rating = models.PositiveSmallIntegerField(null=True, blank=True)
    client_comment = models.TextField(null=True, blank=True)
    driver_comment = models.TextField(null=True, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-request_date']

    @property
    def origin_point(self):
        return GeoPoint(float(self.origin_longitude), float(self.origin_latitude))

    @property
    def destination_point(self):
        return GeoPoint(float(self.destination_longitude), float(self.destination_latitude))

    def __str__(self):
        return f"Ride #{self.id} ({self.tracking_code}) - {self.status}"


class PendingOffer(models.Model):
    """
    Provisional (driver, ride) pairing awaiting the driver's acceptance.

    A ride has at most one live offer and a driver holds at most one.
    """

    ride = models.OneToOneField(Ride, on_delete=models.CASCADE, related_name='pending_offer')
    driver = models.OneToOneField('drivers.Driver', on_delete=models.CASCADE, related_name='pending_offer')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'pending_offers'

    def __str__(self):
        return f"Offer Ride {self.ride_id} -> Driver {self.driver_id}"
