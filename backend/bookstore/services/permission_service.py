# Overview: Service-layer capability checks; the single authorization decision point.

"""
Capability Checking

WHY: Every role check in the application (route decorators and the order
workflow engine alike) goes through require_capability(), so what a role
may do is defined once, in permissions/roles.py.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and unknown capability codes are denied
- Log denials only: grants are not logged
"""

from __future__ import annotations

from flask import current_app, has_app_context

from ..permissions import DEFAULT_ROLE_PERMISSIONS, validate_permission_code
from .errors import ForbiddenError


class PermissionDeniedError(ForbiddenError):
    """Raised when a role lacks the required capability."""

    def __init__(self, role: str | None, capability: str):
        super().__init__(
            f"Role {role or 'ANONYMOUS'} lacks capability {capability}",
            details={"required_permission": capability, "role": role},
        )
        self.role = role
        self.capability = capability


def get_role_capabilities(role: str | None) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, []))


def has_capability(role: str | None, capability: str) -> bool:
    if not validate_permission_code(capability):
        return False
    return capability in get_role_capabilities(role)


def require_capability(role: str | None, capability: str, *, user_id: int | None = None) -> None:
    """
    Raise PermissionDeniedError unless the role grants the capability.

    Denials are logged at WARNING with the acting user for audit.
    """
    if has_capability(role, capability):
        return
    if has_app_context():
        current_app.logger.warning(
            "permission denied user_id=%s role=%s capability=%s", user_id, role, capability
        )
    raise PermissionDeniedError(role, capability)
