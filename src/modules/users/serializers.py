from rest_framework import serializers

from modules.users.models import AppUser


class DriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppUser
        fields = ["id", "name", "email", "phone", "status"]
        read_only_fields = fields
