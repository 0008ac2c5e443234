from rest_framework import generics, permissions, viewsets
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model

from mocktests.models import MockTest
from attempts.models import Attempt
from cores.models import AuditLog

from .permissions import IsPlatformAdmin
from .serializers import (
    RegisterSerializer,
    CustomTokenObtainPairSerializer,
    StudentListSerializer,
    UserSerializer,
    ProfileSerializer
)

User = get_user_model()

# --- 1. User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin-only endpoint to manage all users.
    Every change is written to the audit log.
    """
    queryset = User.objects.all().order_by('-date_joined')
    permission_classes = [IsPlatformAdmin]

    def get_serializer_class(self):
        if self.action == 'create':
            return RegisterSerializer
        return UserSerializer

    def perform_create(self, serializer):
        user = serializer.save()
        AuditLog.record(
            self.request,
            AuditLog.Action.CREATE,
            user,
            f"Created new user: {user.email} (Role: {user.role})"
        )

    def perform_update(self, serializer):
        user = serializer.save()
        if self.request.data.get('password'):
            user.set_password(self.request.data['password'])
            user.save()

        AuditLog.record(self.request, AuditLog.Action.UPDATE, user, f"Updated profile for: {user.email}")

    def perform_destroy(self, instance):
        AuditLog.record(self.request, AuditLog.Action.DELETE, instance, f"Deleted user account: {instance.email}")
        instance.delete()

# --- 2. Authentication Views ---
class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]

    def perform_create(self, serializer):
        # Self-registration always yields a student account
        serializer.save(role=User.Role.STUDENT)

class CustomLoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user

# --- 3. Dashboard Stats ---
class AdminStatsView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        stats = {
            "total_tests": MockTest.objects.count(),
            "active_tests": MockTest.objects.filter(is_active=True).count(),
            "total_students": User.objects.filter(role=User.Role.STUDENT).count(),
            "completed_attempts": Attempt.objects.filter(is_completed=True).count(),
            "in_progress_attempts": Attempt.objects.filter(is_completed=False).count(),
        }
        return Response(stats)

# --- 4. Student List View ---
class StudentListView(generics.ListAPIView):
    serializer_class = StudentListSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        return User.objects.filter(role=User.Role.STUDENT).order_by('-date_joined')
