# the three role-gated areas of the portal and what shows up in their sidebars

from django.core.exceptions import ImproperlyConfigured

from .identity import Role


class NavItem:
    def __init__(self, label, url_name, capability=None, roles=None):
        self.label = label
        self.url_name = url_name
        self.capability = capability
        # extra role restriction on top of the shell (settings is super admin only)
        self.roles = roles


class Shell:
    def __init__(self, name, title, roles, nav):
        self.name = name
        self.title = title
        self.roles = frozenset(roles)
        self.nav = nav

    @property
    def namespace(self):
        return self.name

    @property
    def home(self):
        return f'{self.name}:dashboard'

    def can_enter(self, principal):
        return principal is not None and principal.role in self.roles

    def can_open(self, principal, capability=None):
        if not self.can_enter(principal):
            return False
        if capability is None:
            return True
        # flags only limit admins, super admins pass through can()
        if principal.role in (Role.ADMIN, Role.SUPER_ADMIN):
            return principal.can(capability)
        return True

    def nav_for(self, principal):
        items = []
        for item in self.nav:
            if item.roles and principal.role not in item.roles:
                continue
            if self.can_open(principal, item.capability):
                items.append(item)
        return items

    def __repr__(self):
        return f"Shell({self.name})"


ADMIN_SHELL = Shell('admin', 'Administration', [Role.ADMIN, Role.SUPER_ADMIN], [
    NavItem('Dashboard', 'admin:dashboard'),
    NavItem('Users', 'admin:users', 'can_manage_users'),
    NavItem('Subjects', 'admin:subjects', 'can_manage_subjects'),
    NavItem('Courses', 'admin:courses'),
    NavItem('Course Metadata', 'admin:course_metadata'),
    NavItem('Select Course', 'admin:course_select'),
    NavItem('Materials', 'admin:materials', 'can_manage_materials'),
    NavItem('Gallery', 'admin:gallery', 'can_manage_gallery'),
    NavItem('Timetable', 'admin:timetable', 'can_manage_timetable'),
    NavItem('Chat Board', 'admin:chat', 'can_manage_chat'),
    NavItem('Assessments', 'admin:assessments', 'can_manage_assessments'),
    NavItem('Results', 'admin:results', 'can_manage_results'),
    NavItem('Doctor Activities', 'admin:doctor_activities', 'can_manage_activities'),
    NavItem('Doctor View', 'admin:doctor_view', 'can_view_doctor_dashboard'),
    NavItem('Discipline Issues', 'admin:discipline_issues', 'can_manage_reports'),
    NavItem('System Report', 'admin:system_report', 'can_manage_reports'),
    NavItem('Settings', 'admin:settings', roles=[Role.SUPER_ADMIN]),
])

INSTRUCTOR_SHELL = Shell('instructor', 'Instructor', [Role.INSTRUCTOR], [
    NavItem('Dashboard', 'instructor:dashboard'),
    NavItem('Instructors', 'instructor:users'),
    NavItem('Select Course', 'instructor:course_select'),
    NavItem('Materials', 'instructor:materials'),
    NavItem('Gallery', 'instructor:gallery'),
    NavItem('Timetable', 'instructor:timetable'),
    NavItem('Chat Board', 'instructor:chat'),
    NavItem('Assessments', 'instructor:assessments'),
    NavItem('Results', 'instructor:results'),
])

DOCTOR_SHELL = Shell('doctor', 'Doctor', [Role.DOCTOR], [
    NavItem('Dashboard', 'doctor:dashboard'),
    NavItem('Select Course', 'doctor:course_select'),
    NavItem('Patients', 'doctor:patients'),
    NavItem('Medical Reports', 'doctor:medical_reports'),
    NavItem('Attendance', 'doctor:attendance'),
    NavItem('Medical Records', 'doctor:medical_records'),
])

# trainees exist in the backend but have no area in the portal
ROLE_SHELLS = {
    Role.ADMIN: ADMIN_SHELL,
    Role.SUPER_ADMIN: ADMIN_SHELL,
    Role.INSTRUCTOR: INSTRUCTOR_SHELL,
    Role.DOCTOR: DOCTOR_SHELL,
    Role.TRAINEE: None,
}

_missing = set(Role) - set(ROLE_SHELLS)
if _missing:
    raise ImproperlyConfigured(f"No shell mapping for roles: {sorted(_missing)}")

SHELLS = {shell.name: shell for shell in (ADMIN_SHELL, INSTRUCTOR_SHELL, DOCTOR_SHELL)}


def shell_for(role):
    return ROLE_SHELLS[role]


def shell_by_namespace(namespace):
    return SHELLS.get(namespace)
