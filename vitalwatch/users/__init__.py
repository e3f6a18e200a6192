"""Read-only lookup of alert subjects in the auth service's users table."""

from vitalwatch.users.directory import SubjectUser, UserDirectory

__all__ = ["SubjectUser", "UserDirectory"]
