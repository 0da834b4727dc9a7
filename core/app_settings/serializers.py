from rest_framework import serializers

from core.app_settings.models import AppSetting


class AppSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppSetting
        fields = ['key', 'value', 'description', 'updated_at']
        read_only_fields = ['description', 'updated_at']


class AppSettingUpdateSerializer(serializers.Serializer):
    key = serializers.CharField(max_length=100)
    value = serializers.CharField(allow_blank=True, allow_null=True, required=False)
