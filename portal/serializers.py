from rest_framework import serializers

from .identity import Role

# serializers turn whatever the backend sends into predictable dicts
# every field is optional because the backend leaves things out depending on the endpoint
# and anything we don't declare here gets dropped


class LenientDateField(serializers.DateField):
    # the backend sometimes sends full timestamps where we only want the date
    def to_internal_value(self, value):
        if isinstance(value, str) and len(value) > 10 and value[4:5] == '-':
            value = value[:10]
        return super().to_internal_value(value)


def optional_char():
    return serializers.CharField(required=False, allow_null=True, allow_blank=True)


def optional_int():
    return serializers.IntegerField(required=False, allow_null=True)


def optional_number():
    return serializers.FloatField(required=False, allow_null=True)


def optional_date():
    return LenientDateField(required=False, allow_null=True)


def optional_timestamp():
    return serializers.DateTimeField(required=False, allow_null=True)


def optional_dict():
    return serializers.DictField(required=False, allow_null=True)


class PrincipalSerializer(serializers.Serializer):
    # the logged in user as returned by /login, /super-admin/login and /user
    id = serializers.IntegerField()
    user_id = optional_char()
    name = serializers.CharField(allow_blank=True, default='')
    email = serializers.CharField(allow_blank=True, default='')
    role = serializers.ChoiceField(choices=Role.choices)
    phone = optional_char()
    department = optional_char()
    avatar = optional_char()
    course_id = optional_int()
    course_name = optional_char()


class PermissionSetSerializer(serializers.Serializer):
    can_manage_users = serializers.BooleanField(default=False, allow_null=True)
    can_manage_subjects = serializers.BooleanField(default=False, allow_null=True)
    can_manage_materials = serializers.BooleanField(default=False, allow_null=True)
    can_manage_gallery = serializers.BooleanField(default=False, allow_null=True)
    can_manage_timetable = serializers.BooleanField(default=False, allow_null=True)
    can_manage_reports = serializers.BooleanField(default=False, allow_null=True)
    can_manage_chat = serializers.BooleanField(default=False, allow_null=True)
    can_manage_assessments = serializers.BooleanField(default=False, allow_null=True)
    can_manage_results = serializers.BooleanField(default=False, allow_null=True)
    can_manage_activities = serializers.BooleanField(default=False, allow_null=True)
    can_view_doctor_dashboard = serializers.BooleanField(default=False, allow_null=True)


class AdminAccountSerializer(serializers.Serializer):
    # one row on the super admin settings screen
    id = serializers.IntegerField()
    name = serializers.CharField(allow_blank=True, default='')
    email = serializers.CharField(allow_blank=True, default='')
    user_id = optional_char()
    course_id = optional_int()
    course_name = optional_char()
    permissions = PermissionSetSerializer(required=False, allow_null=True)


class UserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    user_id = optional_char()
    name = serializers.CharField(allow_blank=True, default='')
    email = serializers.CharField(allow_blank=True, default='')
    # plain text on purpose - user lists can hold roles the portal doesn't know
    role = optional_char()
    phone = optional_char()
    department = optional_char()
    rank = optional_char()
    course_id = optional_int()
    course_name = optional_char()


class CourseSerializer(serializers.Serializer):
    STATUS_CHOICES = ('active', 'completed', 'upcoming')

    id = serializers.IntegerField()
    code = optional_char()
    name = serializers.CharField(allow_blank=True, default='')
    type = optional_char()
    duration = optional_char()
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False, allow_null=True)
    description = optional_char()
    start_date = optional_date()
    trainees = optional_int()
    instructor_id = optional_int()


class CourseMetadataSerializer(serializers.Serializer):
    TYPE_CHOICES = (
        ('name', 'Course Name'),
        ('course_type', 'Course Type'),
        ('location', 'Location'),
        ('course_code', 'Course Code'),
    )

    id = serializers.IntegerField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES)
    value = serializers.CharField(allow_blank=True)
    description = optional_char()


class SubjectSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField(allow_blank=True, default='')
    code = optional_char()
    description = optional_char()
    course_id = optional_int()


class MaterialSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField(allow_blank=True, default='')
    subject = optional_char()
    type = optional_char()
    # the backend already formats this ("2.4 MB")
    size = optional_char()
    date = optional_date()
    uploader = optional_dict()
    course_id = optional_int()


class GalleryItemSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField(allow_blank=True, default='')
    image_url = optional_char()
    image_path = optional_char()
    date = optional_date()
    course_id = optional_int()


class TimetableEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    date = optional_date()
    time = optional_char()
    subject = optional_char()
    instructor = optional_char()
    location = optional_char()
    course_id = optional_int()


class AssessmentSerializer(serializers.Serializer):
    TYPE_CHOICES = ('quiz', 'assignment', 'exam', 'practical', 'project', 'other')

    id = serializers.IntegerField()
    subject_id = optional_int()
    subject = optional_dict()
    title = serializers.CharField(allow_blank=True, default='')
    description = optional_char()
    type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False, allow_null=True)
    date = optional_date()
    max_score = optional_number()
    weight = optional_number()


class GradeSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    assessment_id = optional_int()
    trainee_id = optional_int()
    score = optional_number()
    comments = optional_char()
    assessment = optional_dict()
    trainee = optional_dict()


class MessageSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    message = serializers.CharField(allow_blank=True, default='')
    user_id = optional_int()
    user = optional_dict()
    created_at = optional_timestamp()


class PatientSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    full_name = serializers.CharField(allow_blank=True, default='')
    email = optional_char()
    phone = optional_char()
    blood_type = optional_char()
    allergies = optional_char()
    medical_history = optional_char()
    emergency_contact = optional_char()
    registered_date = optional_date()
    course_id = optional_int()


class MedicalReportSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    patient_id = optional_int()
    patient = optional_dict()
    doctor = optional_char()
    diagnosis = optional_char()
    symptoms = optional_char()
    treatment = optional_char()
    blood_pressure = optional_char()
    temperature = optional_char()
    heart_rate = optional_char()
    weight = optional_char()
    notes = optional_char()
    date = optional_date()


class AttendanceRecordSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    patient_id = optional_int()
    patient = optional_dict()
    date = optional_date()
    status = optional_char()
    check_in_time = optional_char()
    check_out_time = optional_char()
    notes = optional_char()


class MedicalRecordSerializer(serializers.Serializer):
    # the full medical examination of a trainee, separate from visit reports
    id = serializers.IntegerField()
    user_id = optional_int()
    course_id = optional_int()
    doctor_id = optional_int()
    emergency_contact = optional_char()
    blood_type = optional_char()
    blood_pressure = optional_char()
    malaria_test = optional_char()
    sugar_test = optional_char()
    hepatitis_test = optional_char()
    pregnancy_test = optional_char()
    weight = optional_char()
    height = optional_char()
    hb_hemoglobin = optional_char()
    hiv_status = optional_char()
    allergies = optional_char()
    medical_history = optional_char()
    chronic_illnesses = optional_char()
    trauma_history = optional_char()
    record_date = optional_date()
    user = optional_dict()
    doctor = optional_dict()


class DisciplineIssueSerializer(serializers.Serializer):
    SEVERITY_CHOICES = ('low', 'medium', 'high', 'critical')
    STATUS_CHOICES = ('pending', 'investigating', 'resolved', 'dismissed')
    APPROVAL_CHOICES = ('pending', 'approved', 'rejected')

    id = serializers.IntegerField()
    user_id = optional_int()
    course_id = optional_int()
    reported_by = optional_int()
    title = serializers.CharField(allow_blank=True, default='')
    description = optional_char()
    severity = serializers.ChoiceField(choices=SEVERITY_CHOICES, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False, allow_null=True)
    approval_status = serializers.ChoiceField(choices=APPROVAL_CHOICES, required=False, allow_null=True)
    incident_date = optional_date()
    document_path = optional_char()
    resolution_notes = optional_char()
    resolved_at = optional_date()
    approved_at = optional_timestamp()
    rejection_reason = optional_char()
    user = optional_dict()
    course = optional_dict()
    # camelCase is what the backend sends for these two
    reportedBy = optional_dict()
    approvedBy = optional_dict()


class NotificationSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = optional_char()
    message = optional_char()
    type = optional_char()
    read_at = optional_timestamp()
    created_at = optional_timestamp()


class ActivitySerializer(serializers.Serializer):
    TYPE_CHOICES = (
        ('patient_registration', 'Patient Registration'),
        ('medical_report', 'Medical Report'),
        ('attendance_record', 'Attendance Record'),
    )

    # ids look like "patient_12" so they stay strings
    id = serializers.CharField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES)
    title = optional_char()
    description = optional_char()
    doctor_name = optional_char()
    patient_name = optional_char()
    patient_email = optional_char()
    diagnosis = optional_char()
    status = optional_char()
    course_name = optional_char()
    timestamp = optional_timestamp()


class PaginationSerializer(serializers.Serializer):
    current_page = serializers.IntegerField(default=1)
    per_page = serializers.IntegerField(default=50)
    total = serializers.IntegerField(default=0)
    last_page = serializers.IntegerField(default=1)


class CourseRefSerializer(serializers.Serializer):
    # used by the session JSON api to pick a course
    id = serializers.IntegerField(min_value=1)
    name = serializers.CharField(allow_blank=True, required=False, default='')


class SessionSerializer(serializers.Serializer):
    # read-only view of the current session for the JSON api
    user = serializers.DictField()
    permissions = serializers.DictField()
    shell = serializers.CharField(allow_null=True)
    selected_course = serializers.DictField(allow_null=True)
    effective_course = serializers.DictField(allow_null=True)
