from rest_framework.permissions import BasePermission


class IsPlatformAdmin(BasePermission):
    """Allow access only to users with the ``admin`` role or superusers."""

    message = "Access denied. Admin privileges required."

    def has_permission(self, request, view):
        u = getattr(request, "user", None)
        if not (u and getattr(u, "is_authenticated", False)):
            return False
        return bool(getattr(u, "is_platform_admin", False))
