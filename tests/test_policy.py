import uuid

import pytest

from school_admin.auth.policy import (
    CREATE,
    DELETE,
    READ,
    UPDATE,
    ensure_allowed,
    has_permission,
    is_allowed,
    permissions_for_role,
)
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import UserRole
from school_admin.core.exceptions import PermissionDeniedError, ValidationError
from school_admin.core.models import Exam, Invoice, Mark, Parent, Student, Teacher


def _caller(role: UserRole, **ids) -> CurrentUser:
    return CurrentUser(
        id=uuid.uuid4(),
        role=role.value,
        permissions=permissions_for_role(role.value),
        **ids,
    )


def test_admin_is_always_allowed() -> None:
    admin = CurrentUser(id=uuid.uuid4(), role=UserRole.ADMIN.value)
    assert is_allowed(admin, DELETE, Student(id=uuid.uuid4()))
    assert has_permission(admin, "invoices", CREATE)


def test_student_reads_only_own_records() -> None:
    me, other = uuid.uuid4(), uuid.uuid4()
    caller = _caller(UserRole.STUDENT, student_id=me)
    assert is_allowed(caller, READ, Student(id=me))
    assert not is_allowed(caller, READ, Student(id=other))
    assert is_allowed(caller, READ, Mark(student_id=me))
    assert not is_allowed(caller, READ, Mark(student_id=other))
    assert not is_allowed(caller, UPDATE, Student(id=me))


def test_parent_sees_linked_children_and_own_invoices() -> None:
    parent_id, child, stranger = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    caller = _caller(UserRole.PARENT, parent_id=parent_id, child_ids=[child])
    assert is_allowed(caller, READ, Student(id=child))
    assert not is_allowed(caller, READ, Student(id=stranger))
    assert is_allowed(caller, READ, Parent(id=parent_id))
    assert not is_allowed(caller, READ, Parent(id=uuid.uuid4()))

    own = Invoice(parent_id=parent_id, student_id=child)
    foreign = Invoice(parent_id=uuid.uuid4(), student_id=stranger)
    assert is_allowed(caller, READ, own)
    assert not is_allowed(caller, READ, foreign)
    assert is_allowed(caller, CREATE, own, module="payments")
    assert not is_allowed(caller, CREATE, foreign, module="payments")
    assert not is_allowed(caller, UPDATE, own)


def test_teacher_edits_only_own_profile_and_exams() -> None:
    teacher_id = uuid.uuid4()
    caller = _caller(UserRole.TEACHER, teacher_id=teacher_id)
    assert is_allowed(caller, READ, Teacher(id=uuid.uuid4()))
    assert is_allowed(caller, UPDATE, Teacher(id=teacher_id))
    assert not is_allowed(caller, UPDATE, Teacher(id=uuid.uuid4()))
    assert is_allowed(caller, UPDATE, Exam(teacher_id=teacher_id))
    assert not is_allowed(caller, UPDATE, Exam(teacher_id=uuid.uuid4()))
    assert not is_allowed(caller, READ, Invoice(parent_id=uuid.uuid4(), student_id=uuid.uuid4()))


def test_module_permission_gates_before_ownership() -> None:
    me = uuid.uuid4()
    caller = CurrentUser(id=uuid.uuid4(), role=UserRole.STUDENT.value, permissions={}, student_id=me)
    assert not is_allowed(caller, READ, Student(id=me))


def test_stored_role_permissions_replace_defaults() -> None:
    stored = {"students": {"read": True}}
    assert permissions_for_role(UserRole.TEACHER.value, stored) == stored
    assert permissions_for_role(UserRole.TEACHER.value, {}) == permissions_for_role(UserRole.TEACHER.value)
    assert permissions_for_role("Unknown") == {}


def test_ensure_allowed_raises_permission_denied() -> None:
    caller = _caller(UserRole.STUDENT, student_id=uuid.uuid4())
    with pytest.raises(PermissionDeniedError):
        ensure_allowed(caller, READ, Student(id=uuid.uuid4()))


def test_validation_error_is_unprocessable() -> None:
    err = ValidationError("Bad amount", field="amount")
    assert err.status_code == 422
    assert err.field == "amount"
