from rest_framework import serializers

from modules.appsettings.models import AppSettings


class AppSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppSettings
        fields = [
            "id",
            "company_name",
            "logo_url",
            "vat_percentage",
            "default_currency",
            "default_language",
            "support_email",
            "support_phone",
            "updated_at",
        ]
        read_only_fields = ["id", "updated_at"]
