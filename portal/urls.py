from django.urls import include, path

from . import views

# URL patterns for the portal
# the same screen list is mounted under several shells, each include gets its own
# namespace so {% url 'admin:materials' %} and {% url 'instructor:materials' %} both work

# every shell has these
base_patterns = [
    path('', views.dashboard, name='dashboard'),
    path('notifications/<int:pk>/read/', views.notification_read, name='notification_read'),
    path('notifications/read-all/', views.notifications_read_all, name='notifications_read_all'),
    path('select-course/', views.course_select, name='course_select'),
]

# admin and instructor share the teaching screens
teaching_patterns = [
    path('users/', views.users, name='users'),
    path('users/<int:pk>/edit/', views.user_edit, name='user_edit'),
    path('users/<int:pk>/delete/', views.user_delete, name='user_delete'),

    path('materials/', views.materials, name='materials'),
    path('materials/<int:pk>/download/', views.material_download, name='material_download'),
    path('materials/<int:pk>/delete/', views.material_delete, name='material_delete'),

    path('gallery/', views.gallery, name='gallery'),
    path('gallery/<int:pk>/delete/', views.gallery_delete, name='gallery_delete'),

    path('timetable/', views.timetable, name='timetable'),
    path('timetable/<int:pk>/edit/', views.timetable_edit, name='timetable_edit'),
    path('timetable/<int:pk>/delete/', views.timetable_delete, name='timetable_delete'),

    path('chat/', views.chat, name='chat'),
    path('chat/<int:pk>/delete/', views.chat_delete, name='chat_delete'),

    path('assessments/', views.assessments, name='assessments'),
    path('assessments/<int:pk>/edit/', views.assessment_edit, name='assessment_edit'),
    path('assessments/<int:pk>/delete/', views.assessment_delete, name='assessment_delete'),

    path('results/', views.results, name='results'),
    path('results/<int:pk>/edit/', views.grade_edit, name='grade_edit'),
    path('results/<int:pk>/delete/', views.grade_delete, name='grade_delete'),
]

admin_patterns = [
    path('subjects/', views.subjects, name='subjects'),
    path('subjects/<int:pk>/edit/', views.subject_edit, name='subject_edit'),
    path('subjects/<int:pk>/delete/', views.subject_delete, name='subject_delete'),

    path('courses/', views.courses, name='courses'),
    path('courses/<int:pk>/', views.course_detail, name='course_detail'),
    path('courses/<int:pk>/edit/', views.course_edit, name='course_edit'),
    path('courses/<int:pk>/delete/', views.course_delete, name='course_delete'),

    path('course-metadata/', views.course_metadata, name='course_metadata'),
    path('course-metadata/<int:pk>/edit/', views.course_metadata_edit, name='course_metadata_edit'),
    path('course-metadata/<int:pk>/delete/', views.course_metadata_delete, name='course_metadata_delete'),

    path('doctor-activities/', views.doctor_activities, name='doctor_activities'),
    path('doctor-view/', views.doctor_view, name='doctor_view'),

    path('discipline-issues/', views.discipline_issues, name='discipline_issues'),
    path('discipline-issues/<int:pk>/edit/', views.discipline_issue_edit, name='discipline_issue_edit'),
    path('discipline-issues/<int:pk>/delete/', views.discipline_issue_delete, name='discipline_issue_delete'),
    path('discipline-issues/<int:pk>/download/', views.discipline_issue_download, name='discipline_issue_download'),
    path('discipline-issues/<int:pk>/approve/', views.discipline_issue_approve, name='discipline_issue_approve'),
    path('discipline-issues/<int:pk>/reject/', views.discipline_issue_reject, name='discipline_issue_reject'),

    path('system-report/', views.system_report, name='system_report'),
    path('users/<int:pk>/profile/', views.user_profile, name='user_profile'),

    path('settings/', views.admin_settings, name='settings'),
    path('settings/<int:admin_id>/', views.admin_permissions_edit, name='permissions_edit'),
]

doctor_patterns = [
    path('patients/', views.patients, name='patients'),
    path('patients/<int:pk>/edit/', views.patient_edit, name='patient_edit'),
    path('patients/<int:pk>/delete/', views.patient_delete, name='patient_delete'),

    path('medical-reports/', views.medical_reports, name='medical_reports'),
    path('medical-reports/<int:pk>/edit/', views.medical_report_edit, name='medical_report_edit'),
    path('medical-reports/<int:pk>/delete/', views.medical_report_delete, name='medical_report_delete'),

    path('attendance/', views.attendance, name='attendance'),
    path('attendance/<int:pk>/edit/', views.attendance_edit, name='attendance_edit'),
    path('attendance/<int:pk>/delete/', views.attendance_delete, name='attendance_delete'),

    path('medical-records/', views.medical_records, name='medical_records'),
    path('medical-records/<int:pk>/edit/', views.medical_record_edit, name='medical_record_edit'),
    path('medical-records/<int:pk>/delete/', views.medical_record_delete, name='medical_record_delete'),
    path('medical-records/user/<int:user_id>/latest/', views.medical_record_latest, name='medical_record_latest'),
]

urlpatterns = [
    # Authentication URLs
    path('', views.landing_view, name='landing'),
    path('home/', views.home_view, name='home'),
    path('login/', views.login_view, name='login'),
    path('super-admin/login/', views.super_admin_login_view, name='super_admin_login'),
    path('logout/', views.logout_view, name='logout'),
    path('setup/', views.setup_view, name='setup'),

    # Shells
    path('admin/', include((base_patterns + teaching_patterns + admin_patterns, 'admin'))),
    path('instructor/', include((base_patterns + teaching_patterns, 'instructor'))),
    path('doctor/', include((base_patterns + doctor_patterns, 'doctor'))),

    # JSON api for the session
    path('api/', include('portal.api_urls')),
]
