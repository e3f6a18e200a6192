"""Role-based access rules for alerts and readings.

Authentication happens upstream; this module only receives the
resolved caller (``AccessScope``) and decides what that caller may see
or change. Rules:

- patient: own data only; may mark own alerts read and delete them;
  may not acknowledge.
- provider: may list any patient's alerts (defaulting to their own id),
  mark any alert read, and acknowledge any alert; may delete only
  alerts addressed to them.
- admin: unrestricted.
"""

from dataclasses import dataclass
from typing import Literal

from vitalwatch.alerts.schemas import Alert, AlertFilter
from vitalwatch.errors import AccessDeniedError

Role = Literal["patient", "provider", "admin"]

VALID_ROLES: frozenset[str] = frozenset({"patient", "provider", "admin"})


@dataclass(frozen=True)
class AccessScope:
    """The authenticated caller of an alerting-core operation."""

    user_id: str
    role: Role

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(
                f"Invalid role {self.role!r}. Must be one of: {sorted(VALID_ROLES)}"
            )

    @property
    def is_patient(self) -> bool:
        return self.role == "patient"

    @property
    def is_provider(self) -> bool:
        return self.role == "provider"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, user_id: str) -> bool:
        return self.user_id == user_id


def scope_alert_filter(scope: AccessScope, requested: AlertFilter) -> AlertFilter:
    """Narrow a requested alert filter to what the caller may see."""
    if scope.is_admin:
        return requested
    if scope.is_provider:
        user_id = requested.user_id or scope.user_id
    else:
        user_id = scope.user_id
    return AlertFilter(
        user_id=user_id,
        severity=requested.severity,
        is_read=requested.is_read,
        is_acknowledged=requested.is_acknowledged,
    )


def check_can_mark_read(scope: AccessScope, alert: Alert) -> None:
    if scope.owns(alert.user_id) or scope.is_provider or scope.is_admin:
        return
    raise AccessDeniedError("Access denied")


def check_can_acknowledge(scope: AccessScope, alert: Alert) -> None:
    if scope.is_provider or scope.is_admin:
        return
    raise AccessDeniedError("Only healthcare providers can acknowledge alerts")


def check_can_delete(scope: AccessScope, alert: Alert) -> None:
    if scope.owns(alert.user_id) or scope.is_admin:
        return
    raise AccessDeniedError("Access denied")


def check_can_view_user(scope: AccessScope, user_id: str) -> None:
    """Patients may only view their own readings and counters."""
    if scope.is_patient and not scope.owns(user_id):
        raise AccessDeniedError("Access denied")


def resolve_subject(scope: AccessScope, requested_user_id: str | None) -> str:
    """Pick whose data an operation targets.

    Patients always act on themselves; providers and admins may name a
    patient and default to themselves.
    """
    if scope.is_patient:
        return scope.user_id
    return requested_user_id or scope.user_id
