# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access policy for result operations.

A single table maps (action, role) to a rule. Every service method asks
this module before touching a record, so the table below is the only
place where role semantics live. Combinations that are not listed deny.

Example:
    >>> caller = Caller(user_id="t-1", role=Role.TEACHER, campus_id="T1")
    >>> authorize(caller, Action.SUBMIT, Scope(campus_id="T1", teacher_id="t-1"))
    True
    >>> authorize(caller, Action.PUBLISH, Scope(campus_id="T1"))
    False
"""

from dataclasses import dataclass
from enum import Enum, StrEnum

from campus_results.core.errors import AuthorizationError


class Role(StrEnum):
    """Caller roles known to the engine."""

    ADMIN = "ADMIN"
    DIRECTOR = "DIRECTOR"
    CAMPUS_MANAGER = "CAMPUS_MANAGER"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


GLOBAL_ROLES = frozenset({Role.ADMIN, Role.DIRECTOR})
MANAGER_ROLES = GLOBAL_ROLES | {Role.CAMPUS_MANAGER}

# Statuses a student may ever see
STUDENT_VISIBLE_STATUSES = frozenset({"PUBLISHED", "ARCHIVED"})


class Action(StrEnum):
    """Operations guarded by the policy."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    SUBMIT = "submit"
    PUBLISH = "publish"
    ARCHIVE = "archive"
    LOCK = "lock"
    AUDIT_CORRECT = "audit_correct"
    DELETE = "delete"
    FORCE_DELETE = "force_delete"
    BYPASS_LOCK = "bypass_lock"
    VIEW_CLASS_ANALYTICS = "view_class_analytics"
    VIEW_CAMPUS_ANALYTICS = "view_campus_analytics"
    READ_SCALES = "read_scales"
    MANAGE_SCALES = "manage_scales"
    VALIDATE_TRANSCRIPT = "validate_transcript"


class Rule(Enum):
    """How a role relates to the target of an action."""

    ANY_CAMPUS = "any_campus"
    OWN_CAMPUS = "own_campus"
    OWN_CAMPUS_AND_RECORD = "own_campus_and_record"
    OWN_VISIBLE_RECORD = "own_visible_record"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity attached to every call.

    Attributes:
        user_id: Identity of the caller.
        role: Caller role.
        campus_id: Campus the caller belongs to (None for global roles).
        ip: Client address recorded in audit entries.
    """

    user_id: str
    role: Role
    campus_id: str | None = None
    ip: str | None = None

    @property
    def is_global(self) -> bool:
        """Whether the caller is privileged across every campus."""
        return self.role in GLOBAL_ROLES

    @property
    def is_manager(self) -> bool:
        """Whether the caller manages at least one campus."""
        return self.role in MANAGER_ROLES


@dataclass(frozen=True)
class Scope:
    """Target of an authorization decision.

    Attributes:
        campus_id: Campus owning the target.
        teacher_id: Teacher owning the target record, if any.
        student_id: Student the target record belongs to, if any.
        status: Workflow status of the target record, if any.
    """

    campus_id: str | None
    teacher_id: str | None = None
    student_id: str | None = None
    status: str | None = None


_GLOBAL_ONLY: dict[Role, Rule] = {
    Role.ADMIN: Rule.ANY_CAMPUS,
    Role.DIRECTOR: Rule.ANY_CAMPUS,
}

_MANAGERS: dict[Role, Rule] = {
    **_GLOBAL_ONLY,
    Role.CAMPUS_MANAGER: Rule.OWN_CAMPUS,
}

_MANAGERS_AND_OWNER: dict[Role, Rule] = {
    **_MANAGERS,
    Role.TEACHER: Rule.OWN_CAMPUS_AND_RECORD,
}

POLICY: dict[Action, dict[Role, Rule]] = {
    Action.CREATE: {**_MANAGERS, Role.TEACHER: Rule.OWN_CAMPUS},
    Action.READ: {
        **_MANAGERS,
        Role.TEACHER: Rule.OWN_CAMPUS,
        Role.STUDENT: Rule.OWN_VISIBLE_RECORD,
    },
    Action.UPDATE: _MANAGERS_AND_OWNER,
    Action.SUBMIT: _MANAGERS_AND_OWNER,
    Action.PUBLISH: _MANAGERS,
    Action.ARCHIVE: _MANAGERS,
    Action.LOCK: _MANAGERS,
    Action.AUDIT_CORRECT: _GLOBAL_ONLY,
    Action.DELETE: _MANAGERS_AND_OWNER,
    Action.FORCE_DELETE: _GLOBAL_ONLY,
    Action.BYPASS_LOCK: _GLOBAL_ONLY,
    Action.VIEW_CLASS_ANALYTICS: {**_MANAGERS, Role.TEACHER: Rule.OWN_CAMPUS},
    Action.VIEW_CAMPUS_ANALYTICS: _MANAGERS,
    Action.READ_SCALES: {**_MANAGERS, Role.TEACHER: Rule.OWN_CAMPUS},
    Action.MANAGE_SCALES: _MANAGERS,
    Action.VALIDATE_TRANSCRIPT: _MANAGERS,
}


def authorize(caller: Caller, action: Action, scope: Scope) -> bool:
    """Decide whether caller may perform action on scope.

    Args:
        caller: Authenticated caller.
        action: Requested operation.
        scope: Target of the operation.

    Returns:
        True if the policy allows the call.
    """
    rule = POLICY.get(action, {}).get(caller.role)
    if rule is None:
        return False

    if rule is Rule.ANY_CAMPUS:
        return True

    same_campus = caller.campus_id is not None and caller.campus_id == scope.campus_id
    if not same_campus:
        return False

    if rule is Rule.OWN_CAMPUS:
        return True

    if rule is Rule.OWN_CAMPUS_AND_RECORD:
        return scope.teacher_id == caller.user_id

    if rule is Rule.OWN_VISIBLE_RECORD:
        if scope.student_id != caller.user_id:
            return False
        return scope.status is None or scope.status in STUDENT_VISIBLE_STATUSES

    return False


def ensure_allowed(caller: Caller, action: Action, scope: Scope) -> None:
    """Raise AuthorizationError unless the policy allows the call."""
    if not authorize(caller, action, scope):
        raise AuthorizationError()


def ensure_campus_access(caller: Caller, campus_id: str | None) -> None:
    """Reject any access to a campus other than the caller's own.

    Global callers pass for every campus.
    """
    if caller.is_global:
        return
    if caller.campus_id is None or caller.campus_id != campus_id:
        raise AuthorizationError()


def effective_campus(caller: Caller, requested: str | None) -> str | None:
    """Resolve the campus a call operates on.

    Non-global callers are pinned to their own campus; asking for another
    one is an authorization failure. Global callers may pick any campus or
    none (meaning every campus, for read paths that allow it).
    """
    if caller.is_global:
        return requested
    if requested is not None and requested != caller.campus_id:
        raise AuthorizationError()
    if caller.campus_id is None:
        raise AuthorizationError()
    return caller.campus_id
