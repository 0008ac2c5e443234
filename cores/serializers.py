from rest_framework import serializers
from .models import PlatformSetting, AuditLog

class PlatformSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = PlatformSetting
        fields = ['site_name', 'support_email', 'default_negative_marking', 'default_test_duration']

class AuditLogSerializer(serializers.ModelSerializer):
    # Email and role come from the related User model
    actor_email = serializers.CharField(source='actor.email', read_only=True)
    actor_role = serializers.CharField(source='actor.role', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'actor_email', 'actor_role', 'action', 'target_model', 'target_object_id', 'timestamp', 'details']
