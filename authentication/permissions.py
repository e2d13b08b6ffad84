from rest_framework import permissions


def is_administrator(user):
    """Superusers and users with an Admin profile manage laboratories and assignments"""
    return bool(
        user and user.is_authenticated and
        (user.is_superuser or hasattr(user, 'admin'))
    )


class IsAdministrator(permissions.BasePermission):
    message = 'Admin access required'

    def has_permission(self, request, view):
        return is_administrator(request.user)
