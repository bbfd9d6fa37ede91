from rest_framework.permissions import BasePermission


class IsRenter(BasePermission):
    """Allow access only to users whose role is RENTER. Superusers automatically pass."""

    message = "Only renters can perform this action."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.is_superuser or user.is_renter


class IsLender(BasePermission):
    """Allow access only to users whose role is LENDER. Superusers automatically pass."""

    message = "Only lenders can perform this action."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.is_superuser or user.is_lender
