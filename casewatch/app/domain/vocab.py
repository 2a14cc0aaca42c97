from __future__ import annotations

ROLES = ("student", "teacher", "coordinator", "admin")
STAFF_ROLES = {"teacher", "coordinator", "admin"}
SUPERVISOR_ROLES = {"coordinator", "admin"}

CASE_CATEGORIES = ("ACADEMIC_DIFFICULTY", "BEHAVIOR", "ATTENDANCE", "ADMIN", "OTHER")
CASE_SEVERITIES = ("LOW", "MEDIUM", "HIGH")
CASE_STATUSES = ("OPEN", "IN_PROGRESS", "RESOLVED", "ARCHIVED")
CASE_SOURCES = ("MANUAL", "AUTOMATION")

ENROLLMENT_STATUSES = ("active", "inactive", "completed")

# Present / Absent / Late / Justified
ATTENDANCE_PRESENT = "P"
ATTENDANCE_ABSENT = "A"
ATTENDANCE_LATE = "T"
ATTENDANCE_JUSTIFIED = "J"
ATTENDANCE_STATUSES = (ATTENDANCE_PRESENT, ATTENDANCE_ABSENT, ATTENDANCE_LATE, ATTENDANCE_JUSTIFIED)

COMMUNICATION_CATEGORIES = ("TASK", "BEHAVIOR", "ADMIN", "INFO")

PARTIAL_TERMS = ("MAY", "OCT")
LETTER_GRADES = ("A", "B", "C", "D", "E")
LOW_LETTER_GRADES = {"D", "E"}

REPORT_CARD_CONDITIONS = (
    "APPROVED",
    "FAILED_ORAL",
    "FAILED_WRITTEN",
    "FAILED_BOTH",
    "PASSED_INTERNAL",
    "REPEATER",
)
