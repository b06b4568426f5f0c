import datetime

from django import forms
from django.conf import settings
from django.core.validators import RegexValidator
from django.template.defaultfilters import filesizeformat

from .identity import CAPABILITIES, Role
from .serializers import (
    AssessmentSerializer, CourseMetadataSerializer, CourseSerializer, DisciplineIssueSerializer,
)

# nothing here touches a database - forms only validate input and
# turn it into the json body the backend expects


class ApiForm(forms.Form):
    def payload(self):
        # cleaned data ready for requests' json=, dates as ISO strings and blanks left out
        data = {}
        for name, value in self.cleaned_data.items():
            if value in (None, ''):
                continue
            if isinstance(value, (datetime.date, datetime.time)):
                value = value.isoformat()
            data[name] = value
        return data


# Login form - user id or email plus password
class LoginForm(forms.Form):
    user_id = forms.CharField(
        max_length=255,
        widget=forms.TextInput(attrs={'placeholder': 'User ID or email', 'autofocus': True}),
    )
    password = forms.CharField(widget=forms.PasswordInput(attrs={'placeholder': 'Password'}))
    # which area the user is trying to get into, empty means whatever their role allows
    role = forms.ChoiceField(
        choices=[('', 'Any')] + [(r.value, r.label) for r in (Role.ADMIN, Role.INSTRUCTOR, Role.DOCTOR)],
        required=False,
    )


class SuperAdminLoginForm(forms.Form):
    user_id = forms.CharField(max_length=255, widget=forms.TextInput(attrs={'placeholder': 'Super admin ID or email'}))
    password = forms.CharField(widget=forms.PasswordInput(attrs={'placeholder': 'Password'}))


course_code_validator = RegexValidator(r'^[A-Z0-9]+$', 'Use capital letters and numbers only.')


# first run setup - creates the admin and their course in one go
class SetupForm(forms.Form):
    adminName = forms.CharField(label='Admin name', max_length=255)
    adminEmail = forms.EmailField(label='Admin email', max_length=255)
    adminPassword = forms.CharField(label='Password', min_length=8, widget=forms.PasswordInput)
    confirmPassword = forms.CharField(label='Confirm password', widget=forms.PasswordInput)
    adminPhone = forms.CharField(label='Phone', required=False)
    adminDepartment = forms.CharField(label='Department', required=False)

    courseCode = forms.CharField(label='Course code', max_length=50)
    courseName = forms.CharField(label='Course name', max_length=255)
    courseType = forms.CharField(label='Course type')
    courseDuration = forms.CharField(label='Duration')
    courseDescription = forms.CharField(label='Description', required=False, widget=forms.Textarea(attrs={'rows': 3}))
    startDate = forms.DateField(label='Start date', widget=forms.DateInput(attrs={'type': 'date'}))

    def clean_courseCode(self):
        # backend only accepts upper case so fix it up before validating
        code = self.cleaned_data['courseCode'].strip().upper()
        course_code_validator(code)
        return code

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('adminPassword') and cleaned.get('adminPassword') != cleaned.get('confirmPassword'):
            self.add_error('confirmPassword', 'Passwords do not match.')
        return cleaned

    def payload(self):
        data = {k: v for k, v in self.cleaned_data.items() if k != 'confirmPassword' and v not in (None, '')}
        data['startDate'] = self.cleaned_data['startDate'].isoformat()
        return data


# Material upload form - file size is checked here so oversized files never get sent
class MaterialUploadForm(forms.Form):
    name = forms.CharField(max_length=255, widget=forms.TextInput(attrs={'placeholder': 'e.g., Week 1 Lecture Notes'}))
    subject = forms.CharField(max_length=255)
    file = forms.FileField()

    def clean_file(self):
        f = self.cleaned_data.get('file')
        limit = settings.PORTAL_MATERIAL_MAX_BYTES
        if f and f.size > limit:
            raise forms.ValidationError(f'File too big (max {filesizeformat(limit)})')
        return f


class GalleryUploadForm(forms.Form):
    title = forms.CharField(max_length=255)
    image = forms.ImageField()

    def clean_image(self):
        image = self.cleaned_data.get('image')
        limit = settings.PORTAL_GALLERY_MAX_BYTES
        if image and image.size > limit:
            raise forms.ValidationError(f'Image too big (max {filesizeformat(limit)})')
        return image


class UserForm(ApiForm):
    ROLE_CHOICES = [(r.value, r.label) for r in (Role.ADMIN, Role.INSTRUCTOR, Role.DOCTOR, Role.TRAINEE)]

    name = forms.CharField(max_length=255)
    email = forms.EmailField(max_length=255)
    role = forms.ChoiceField(choices=ROLE_CHOICES)
    password = forms.CharField(min_length=8, required=False, widget=forms.PasswordInput,
                               help_text='Required for everyone except trainees.')
    phone = forms.CharField(required=False)
    department = forms.CharField(required=False)

    def __init__(self, *args, editing=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.editing = editing

    def clean(self):
        cleaned = super().clean()
        # new staff accounts need a password, trainees can't log in anyway
        if not self.editing and cleaned.get('role') != Role.TRAINEE and not cleaned.get('password'):
            self.add_error('password', 'A password is required for this role.')
        return cleaned


class SubjectForm(ApiForm):
    name = forms.CharField(max_length=255)
    code = forms.CharField(max_length=255, required=False)
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))


class CourseForm(ApiForm):
    code = forms.CharField(max_length=50)
    name = forms.CharField(max_length=255)
    type = forms.CharField()
    duration = forms.CharField()
    start_date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    status = forms.ChoiceField(choices=[(c, c.title()) for c in CourseSerializer.STATUS_CHOICES], initial='upcoming')
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))

    def __init__(self, *args, editing=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.editing = editing
        if editing:
            # the code can't be changed once a course exists
            self.fields['code'].required = False
            self.fields['code'].disabled = True

    def clean_code(self):
        code = (self.cleaned_data.get('code') or '').strip().upper()
        if not self.editing:
            course_code_validator(code)
        return code

    def payload(self):
        data = super().payload()
        if self.editing:
            data.pop('code', None)
        return data


class CourseMetadataForm(ApiForm):
    type = forms.ChoiceField(choices=CourseMetadataSerializer.TYPE_CHOICES)
    value = forms.CharField(max_length=255)
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class TimetableForm(ApiForm):
    date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    time = forms.CharField(widget=forms.TextInput(attrs={'placeholder': '09:00 - 10:30'}))
    subject = forms.CharField(max_length=255)
    instructor = forms.CharField(max_length=255)
    location = forms.CharField(max_length=255)


class MessageForm(ApiForm):
    message = forms.CharField(max_length=1000, widget=forms.Textarea(attrs={'rows': 2, 'placeholder': 'Write a message...'}))


class AssessmentForm(ApiForm):
    subject_id = forms.TypedChoiceField(coerce=int, label='Subject')
    title = forms.CharField(max_length=255)
    type = forms.ChoiceField(choices=[(t, t.title()) for t in AssessmentSerializer.TYPE_CHOICES])
    date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    max_score = forms.FloatField(min_value=0)
    weight = forms.FloatField(min_value=0, max_value=100, required=False)
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))

    def __init__(self, *args, subjects=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['subject_id'].choices = [(s['id'], s['name']) for s in subjects]


class GradeForm(ApiForm):
    assessment_id = forms.TypedChoiceField(coerce=int, label='Assessment')
    trainee_id = forms.TypedChoiceField(coerce=int, label='Trainee')
    score = forms.FloatField(min_value=0)
    comments = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, assessments=(), trainees=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.assessments = {a['id']: a for a in assessments}
        self.fields['assessment_id'].choices = [(a['id'], a['title']) for a in assessments]
        self.fields['trainee_id'].choices = [(t['id'], t['name']) for t in trainees]

    def clean(self):
        cleaned = super().clean()
        assessment = self.assessments.get(cleaned.get('assessment_id'))
        score = cleaned.get('score')
        if assessment and score is not None and assessment.get('max_score') is not None:
            if score > assessment['max_score']:
                self.add_error('score', f"Score cannot be more than {assessment['max_score']:g}.")
        return cleaned


class GradeUpdateForm(ApiForm):
    score = forms.FloatField(min_value=0)
    comments = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class PatientForm(ApiForm):
    full_name = forms.CharField(max_length=255)
    email = forms.EmailField(max_length=255)
    phone = forms.CharField()
    emergency_contact = forms.CharField()
    blood_type = forms.CharField(required=False)
    allergies = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    medical_history = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))


class MedicalReportForm(ApiForm):
    patient_id = forms.TypedChoiceField(coerce=int, label='Patient')
    doctor = forms.CharField(max_length=255)
    diagnosis = forms.CharField(max_length=255)
    date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    symptoms = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    treatment = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    blood_pressure = forms.CharField(required=False)
    temperature = forms.CharField(required=False)
    heart_rate = forms.CharField(required=False)
    weight = forms.CharField(required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, patients=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['patient_id'].choices = [(p['id'], p['full_name']) for p in patients]


class AttendanceForm(ApiForm):
    STATUS_CHOICES = [(s, s) for s in ('Present', 'Absent', 'Late', 'Excused')]

    patient_id = forms.TypedChoiceField(coerce=int, label='Patient')
    date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    status = forms.ChoiceField(choices=STATUS_CHOICES)
    check_in_time = forms.CharField(required=False)
    check_out_time = forms.CharField(required=False)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, patients=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['patient_id'].choices = [(p['id'], p['full_name']) for p in patients]


class MedicalRecordForm(ApiForm):
    user_id = forms.TypedChoiceField(coerce=int, label='Trainee')
    record_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    emergency_contact = forms.CharField(required=False)
    blood_type = forms.CharField(required=False)
    blood_pressure = forms.CharField(required=False)
    weight = forms.CharField(required=False)
    height = forms.CharField(required=False)
    hb_hemoglobin = forms.CharField(required=False, label='Hb (hemoglobin)')
    malaria_test = forms.CharField(required=False)
    sugar_test = forms.CharField(required=False)
    hepatitis_test = forms.CharField(required=False)
    pregnancy_test = forms.CharField(required=False)
    hiv_status = forms.CharField(required=False, label='HIV status')
    allergies = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    medical_history = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    chronic_illnesses = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    trauma_history = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, trainees=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['user_id'].choices = [(t['id'], t['name']) for t in trainees]


SEVERITY_CHOICES = [(s, s.title()) for s in DisciplineIssueSerializer.SEVERITY_CHOICES]


class DisciplineIssueForm(ApiForm):
    user_id = forms.TypedChoiceField(coerce=int, label='User')
    title = forms.CharField(max_length=255)
    description = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}))
    severity = forms.ChoiceField(choices=SEVERITY_CHOICES, initial='medium')
    incident_date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    document = forms.FileField(required=False)

    def __init__(self, *args, users=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['user_id'].choices = [(u['id'], u['name']) for u in users]

    def clean_document(self):
        f = self.cleaned_data.get('document')
        limit = settings.PORTAL_DOCUMENT_MAX_BYTES
        if f and f.size > limit:
            raise forms.ValidationError(f'File too big (max {filesizeformat(limit)})')
        return f

    def payload(self):
        # the document goes as a file part, not in the form fields
        data = super().payload()
        data.pop('document', None)
        return data


class DisciplineIssueUpdateForm(ApiForm):
    title = forms.CharField(max_length=255)
    description = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}))
    severity = forms.ChoiceField(choices=SEVERITY_CHOICES)
    status = forms.ChoiceField(choices=[(s, s.title()) for s in DisciplineIssueSerializer.STATUS_CHOICES])
    incident_date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    resolution_notes = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))


class RejectIssueForm(forms.Form):
    rejection_reason = forms.CharField(max_length=1000, widget=forms.Textarea(attrs={'rows': 2}))


# one checkbox per capability, used on the super admin settings screen
class PermissionsForm(forms.Form):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name, label in CAPABILITIES:
            self.fields[name] = forms.BooleanField(label=label, required=False)
