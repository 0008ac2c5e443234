from rest_framework import generics
from rest_framework.views import APIView
from rest_framework.response import Response

from users.permissions import IsPlatformAdmin
from .models import PlatformSetting, AuditLog
from .serializers import PlatformSettingSerializer, AuditLogSerializer

class PlatformSettingView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        platform_settings = PlatformSetting.load()
        serializer = PlatformSettingSerializer(platform_settings)
        return Response(serializer.data)

    def put(self, request):
        platform_settings = PlatformSetting.load()
        serializer = PlatformSettingSerializer(platform_settings, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        AuditLog.record(request, AuditLog.Action.SETTINGS, platform_settings, 'Updated platform configuration variables')
        return Response(serializer.data)

class AuditLogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = AuditLog.objects.select_related('actor').all().order_by('-timestamp')
    serializer_class = AuditLogSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action=action)
        return queryset
