# views package - split by shell so each file stays manageable
# common holds the screens admin and instructor share

from .auth import (
    landing_view, home_view, login_view, super_admin_login_view,
    logout_view, setup_view,
)
from .common import (
    dashboard, notification_read, notifications_read_all, course_select,
    users, user_edit, user_delete,
    materials, material_download, material_delete,
    gallery, gallery_delete,
    timetable, timetable_edit, timetable_delete,
    chat, chat_delete,
    assessments, assessment_edit, assessment_delete,
    results, grade_edit, grade_delete,
)
from .admin import (
    subjects, subject_edit, subject_delete,
    courses, course_detail, course_edit, course_delete,
    course_metadata, course_metadata_edit, course_metadata_delete,
    doctor_activities, doctor_view,
    discipline_issues, discipline_issue_edit, discipline_issue_delete,
    discipline_issue_download, discipline_issue_approve, discipline_issue_reject,
    system_report, user_profile,
    admin_settings, admin_permissions_edit,
)
from .doctor import (
    patients, patient_edit, patient_delete,
    medical_reports, medical_report_edit, medical_report_delete,
    attendance, attendance_edit, attendance_delete,
    medical_records, medical_record_edit, medical_record_delete, medical_record_latest,
)
