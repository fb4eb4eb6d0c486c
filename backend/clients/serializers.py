from rest_framework import serializers

from clients.models import Client


class ClientBasicSerializer(serializers.ModelSerializer):
    """Client contact details embedded in ride payloads"""
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Client
        fields = ['id', 'first_name', 'last_name', 'full_name', 'phone_number', 'is_vip']
