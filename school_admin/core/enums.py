from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"
    PARENT = "Parent"


class InvoiceStatus(str, Enum):
    OUTSTANDING = "Outstanding"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    WAIVED = "Waived"


# Settled invoices accept no further payments.
SETTLED_INVOICE_STATUSES = (InvoiceStatus.PAID.value, InvoiceStatus.WAIVED.value)


class PaymentStatus(str, Enum):
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CARD = "Card"
    ONLINE = "Online"
    ONLINE_PARENT = "Online (Parent)"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"


# Statuses that count as attended.
PRESENT_ATTENDANCE_STATUSES = (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)


class EnrollmentStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    COMPLETED = "Completed"
