from django.db import models


class Client(models.Model):
    """Taxi client, identified by phone number, with optional VIP tariff"""

    FLAT_RATE = 'flat_rate'
    MINUTE_RATE = 'minute_rate'

    VIP_RATE_CHOICES = [
        (FLAT_RATE, 'Flat rate'),
        (MINUTE_RATE, 'Per-minute rate'),
    ]

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True, default='')
    phone_number = models.CharField(max_length=32, unique=True)
    email = models.EmailField(null=True, blank=True)
    active = models.BooleanField(default=True)

    # VIP tariff override
    is_vip = models.BooleanField(default=False)
    vip_rate_type = models.CharField(max_length=20, choices=VIP_RATE_CHOICES, null=True, blank=True)
    flat_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    minute_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'clients'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name or ''}".strip()

    def __str__(self):
        return f"{self.full_name} ({self.phone_number})"


class ZoneClient(models.Model):
    """Special flat fare for one client inside one zone."""

    zone = models.ForeignKey('rides.Zone', on_delete=models.CASCADE, related_name='special_clients')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='special_zones')
    special_flat_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'zone_clients'
        constraints = [
            models.UniqueConstraint(fields=['zone', 'client'], name='unique_zone_client')
        ]

    def __str__(self):
        return f"Zone {self.zone_id} <- Client {self.client_id}: {self.special_flat_rate}"


class ChatHistory(models.Model):
    """Conversation memory written by the WhatsApp assistant, keyed by session id."""

    session_id = models.CharField(max_length=255, db_index=True)
    message = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'chat_histories'

    def __str__(self):
        return f"Chat {self.session_id} #{self.id}"
