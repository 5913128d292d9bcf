"""
Core — Permissions

Maps DRF views onto Django model permissions. Each view declares the
codenames it needs per action in `required_permissions`; superusers pass.

@file core/permissions.py
"""

from rest_framework.permissions import BasePermission


class HasModelPermission(BasePermission):
    """
    Read is open to authenticated users; every other action requires the
    permissions listed for it in `view.required_permissions`, e.g.:

        required_permissions = {
            'archive': ['inventory.manage_inventory'],
            'default': ['inventory.change_inventoryrecord'],
        }
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return True
        mapping = getattr(view, 'required_permissions', {})
        perms = mapping.get(getattr(view, 'action', None), mapping.get('default', []))
        return user.has_perms(perms)
