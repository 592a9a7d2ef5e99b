"""
Role-based DRF permission classes shared by the marketplace apps.

Party checks (is this user the booking's client or vendor?) belong to the
services; these classes only gate endpoints by account role.

- IsVendor: Vendor accounts only
- IsPlatformAdmin: Admin role or Django superuser
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsVendor(permissions.BasePermission):
    message = "Only vendors can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_vendor)


class IsPlatformAdmin(permissions.BasePermission):
    message = "Only platform administrators can perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_platform_admin)
