from rest_framework import permissions

class IsPlatformAdmin(permissions.BasePermission):
    """
    Allows access to staff users and users holding the admin role.
    Strictly blocks students.
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return getattr(request.user, 'is_platform_admin', False)
