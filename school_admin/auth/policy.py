"""
Access policy: which role may do what, and on whose records.

Two checks run before every service operation:
- module permission: role -> {module: {action: bool}}. Built-in matrix below,
  replaced per role by the Role row's JSON permissions when one exists.
- ownership: is_allowed(caller, action, resource) narrows Student/Parent/Teacher
  callers to records they own or are linked to.
"""

from typing import Dict, Optional

from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import PermissionDeniedError
from school_admin.core.models import (
    Attendance,
    Enrollment,
    Exam,
    Invoice,
    Mark,
    Parent,
    Payment,
    Student,
    StudentFee,
    Teacher,
)

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"


def _grant(*actions: str) -> Dict[str, bool]:
    return {a: True for a in actions}


DEFAULT_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    UserRole.TEACHER.value: {
        "students": _grant(READ),
        "teachers": _grant(READ, UPDATE),
        "classes": _grant(READ),
        "subjects": _grant(READ),
        "enrollments": _grant(READ),
        "teacher_assignments": _grant(READ),
        "attendance": _grant(CREATE, READ, UPDATE),
        "exams": _grant(CREATE, READ, UPDATE, DELETE),
        "marks": _grant(CREATE, READ, UPDATE),
        "notices": _grant(READ),
        "holidays": _grant(READ),
    },
    UserRole.STUDENT.value: {
        "students": _grant(READ),
        "classes": _grant(READ),
        "subjects": _grant(READ),
        "enrollments": _grant(READ),
        "attendance": _grant(READ),
        "exams": _grant(READ),
        "marks": _grant(READ),
        "invoices": _grant(READ),
        "notices": _grant(READ),
        "holidays": _grant(READ),
    },
    UserRole.PARENT.value: {
        "students": _grant(READ),
        "parents": _grant(READ),
        "attendance": _grant(READ),
        "marks": _grant(READ),
        "invoices": _grant(READ),
        "payments": _grant(CREATE, READ),
        "notices": _grant(READ),
        "holidays": _grant(READ),
    },
}


def permissions_for_role(role: str, stored: Optional[Dict[str, Dict[str, bool]]] = None) -> Dict[str, Dict[str, bool]]:
    if stored:
        return stored
    return DEFAULT_PERMISSIONS.get(role, {})


def has_permission(caller: CurrentUser, module: str, action: str) -> bool:
    if caller.is_admin:
        return True
    return bool((caller.permissions or {}).get(module, {}).get(action, False))


def _module_for(resource: object) -> Optional[str]:
    return {
        Student: "students",
        Parent: "parents",
        Teacher: "teachers",
        Invoice: "invoices",
        Payment: "payments",
        Mark: "marks",
        Attendance: "attendance",
        Enrollment: "enrollments",
        Exam: "exams",
        StudentFee: "fees",
    }.get(type(resource))


def _owns_student_record(caller: CurrentUser, student_id) -> bool:
    if caller.role == UserRole.STUDENT.value:
        return caller.student_id is not None and student_id == caller.student_id
    if caller.role == UserRole.PARENT.value:
        return student_id in caller.child_ids
    return caller.role == UserRole.TEACHER.value


def is_allowed(caller: CurrentUser, action: str, resource: object = None, module: Optional[str] = None) -> bool:
    """Decide whether `caller` may perform `action` on `resource` (or on `module` when there is no record yet)."""
    if caller.is_admin:
        return True
    module = module or _module_for(resource)
    if module is not None and not has_permission(caller, module, action):
        return False
    if resource is None:
        return True

    if isinstance(resource, Student):
        return _owns_student_record(caller, resource.id)
    if isinstance(resource, Parent):
        return caller.role == UserRole.PARENT.value and resource.id == caller.parent_id
    if isinstance(resource, Teacher):
        if action == READ:
            return True
        return caller.role == UserRole.TEACHER.value and resource.id == caller.teacher_id
    if isinstance(resource, (Invoice, Payment)):
        if caller.role == UserRole.PARENT.value:
            return caller.parent_id is not None and resource.parent_id == caller.parent_id
        if caller.role == UserRole.STUDENT.value:
            return action == READ and resource.student_id == caller.student_id
        return False
    if isinstance(resource, (Mark, Attendance, Enrollment, StudentFee)):
        return _owns_student_record(caller, resource.student_id)
    if isinstance(resource, Exam):
        if action == READ:
            return True
        return caller.role == UserRole.TEACHER.value and resource.teacher_id == caller.teacher_id
    return True


def ensure_allowed(caller: CurrentUser, action: str, resource: object = None, module: Optional[str] = None) -> None:
    if not is_allowed(caller, action, resource, module=module):
        raise PermissionDeniedError()
