# who is logged in - roles, capability flags and the principal snapshot
# nothing in here talks to the backend, it only shapes what the backend sends us

from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Administrator'
    SUPER_ADMIN = 'super_admin', 'Super Administrator'
    INSTRUCTOR = 'instructor', 'Instructor'
    DOCTOR = 'doctor', 'Doctor'
    TRAINEE = 'trainee', 'Trainee'

    @classmethod
    def parse(cls, value):
        # unknown roles from the backend become None instead of blowing up
        try:
            return cls(value)
        except ValueError:
            return None


# every capability an admin can be granted, in the order the settings screen shows them
CAPABILITIES = (
    ('can_manage_users', 'Manage Users'),
    ('can_manage_subjects', 'Manage Subjects'),
    ('can_manage_materials', 'Manage Materials'),
    ('can_manage_gallery', 'Manage Gallery'),
    ('can_manage_timetable', 'Manage Timetable'),
    ('can_manage_reports', 'Manage Reports'),
    ('can_manage_chat', 'Manage Chat Board'),
    ('can_manage_assessments', 'Manage Assessments'),
    ('can_manage_results', 'Manage Results'),
    ('can_manage_activities', 'Manage Activities'),
    ('can_view_doctor_dashboard', 'View Doctor Dashboard'),
)
CAPABILITY_NAMES = tuple(name for name, label in CAPABILITIES)


class PermissionSet:
    """
    An admin's capability flags.

    All flags always exist and default to False, so callers never have to
    check for a missing or null permission object.
    """

    def __init__(self, **flags):
        unknown = set(flags) - set(CAPABILITY_NAMES)
        if unknown:
            raise ValueError(f"Unknown capabilities: {', '.join(sorted(unknown))}")
        for name in CAPABILITY_NAMES:
            setattr(self, name, bool(flags.get(name, False)))

    @classmethod
    def from_payload(cls, payload):
        # backend sends null for admins that never had permissions saved
        if not payload:
            return cls()
        return cls(**{name: payload.get(name) for name in CAPABILITY_NAMES})

    def allows(self, capability):
        if capability not in CAPABILITY_NAMES:
            raise ValueError(f"Unknown capability: {capability}")
        return getattr(self, capability)

    def granted(self):
        return [name for name in CAPABILITY_NAMES if getattr(self, name)]

    def as_dict(self):
        return {name: getattr(self, name) for name in CAPABILITY_NAMES}

    def __eq__(self, other):
        if not isinstance(other, PermissionSet):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        return f"PermissionSet({', '.join(self.granted()) or 'none'})"


class CourseRef:
    # just enough of a course to scope requests and show its name
    def __init__(self, id, name=''):
        self.id = int(id)
        self.name = name or ''

    @classmethod
    def from_payload(cls, payload):
        if not payload or payload.get('id') in (None, ''):
            return None
        return cls(payload['id'], payload.get('name') or payload.get('course_name') or '')

    def as_dict(self):
        return {'id': self.id, 'name': self.name}

    def __eq__(self, other):
        if not isinstance(other, CourseRef):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return self.name or f"Course #{self.id}"


class Principal:
    """The authenticated identity of the current session."""

    # lets rest framework treat a principal as a logged in user
    is_authenticated = True

    def __init__(self, id, name, email, role, user_id=None, phone=None,
                 department=None, avatar=None, course=None, permissions=None):
        self.id = id
        self.user_id = user_id or str(id)
        self.name = name
        self.email = email
        self.role = role
        self.phone = phone
        self.department = department
        self.avatar = avatar
        self.course = course
        self.permissions = permissions or PermissionSet()

    @property
    def is_admin(self):
        return self.role == Role.ADMIN

    @property
    def is_super_admin(self):
        return self.role == Role.SUPER_ADMIN

    def can(self, capability):
        # super admins are never restricted by the flags
        if self.is_super_admin:
            return True
        if self.is_admin:
            return self.permissions.allows(capability)
        return False

    def to_snapshot(self):
        # JSON-safe dict for the session
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'role': self.role.value,
            'phone': self.phone,
            'department': self.department,
            'avatar': self.avatar,
            'course': self.course.as_dict() if self.course else None,
            'permissions': self.permissions.as_dict(),
        }

    @classmethod
    def from_snapshot(cls, snapshot):
        # returns None for anything we can't trust, the caller treats that as anonymous
        if not isinstance(snapshot, dict):
            return None
        role = Role.parse(snapshot.get('role'))
        if role is None or snapshot.get('id') is None:
            return None
        return cls(
            id=snapshot['id'],
            user_id=snapshot.get('user_id'),
            name=snapshot.get('name') or '',
            email=snapshot.get('email') or '',
            role=role,
            phone=snapshot.get('phone'),
            department=snapshot.get('department'),
            avatar=snapshot.get('avatar'),
            course=CourseRef.from_payload(snapshot.get('course')),
            permissions=PermissionSet.from_payload(snapshot.get('permissions')),
        )

    def __str__(self):
        return f"{self.name} ({self.role.value})"
