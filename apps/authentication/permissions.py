from rest_framework import permissions


class IsManager(permissions.BasePermission):
    """
    Custom permission to only allow managers to access certain views.
    """
    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_manager


class IsStaffMember(permissions.BasePermission):
    """
    Custom permission to allow any back-office role (manager or cashier).
    """
    def has_permission(self, request, view):
        return (request.user.is_authenticated and
                request.user.user_type in ('manager', 'cashier'))
