# Login tables share the same metadata
from school_admin.auth.models import Role, User  # noqa: F401
from school_admin.core.models.class_model import SchoolClass
from school_admin.core.models.subject import Subject
from school_admin.core.models.student import Parent, Student, StudentParent
from school_admin.core.models.teacher import Teacher, TeacherClassSubject
from school_admin.core.models.enrollment import Enrollment
from school_admin.core.models.attendance import Attendance
from school_admin.core.models.exam import Exam, Mark
from school_admin.core.models.fee import ClassFee, FeeType, StudentFee
from school_admin.core.models.invoice import Invoice, InvoiceItem, Payment
from school_admin.core.models.notice import Holiday, Notice

__all__ = [
    "SchoolClass",
    "Subject",
    "Student",
    "Parent",
    "StudentParent",
    "Teacher",
    "TeacherClassSubject",
    "Enrollment",
    "Attendance",
    "Exam",
    "Mark",
    "FeeType",
    "ClassFee",
    "StudentFee",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "Notice",
    "Holiday",
]
