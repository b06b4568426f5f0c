# session store - who is logged in and which course they're looking at
# everything lives in the django session so a logout (flush) wipes it all

import logging

from . import client as backend
from .client import ApiError
from .identity import CourseRef, PermissionSet, Principal, Role

logger = logging.getLogger(__name__)

TOKEN_KEY = 'portal_token'
PRINCIPAL_KEY = 'portal_principal'
COURSE_KEY = 'portal_selected_course'


class LoginResult:
    def __init__(self, success, user=None):
        self.success = success
        self.user = user

    def __bool__(self):
        return self.success


def principal_from_payload(data, permissions=None):
    # data is what PrincipalSerializer validated
    course = None
    if data.get('course_id'):
        course = CourseRef(data['course_id'], data.get('course_name') or '')
    return Principal(
        id=data['id'],
        user_id=data.get('user_id'),
        name=data.get('name') or '',
        email=data.get('email') or '',
        role=Role(data['role']),
        phone=data.get('phone'),
        department=data.get('department'),
        avatar=data.get('avatar'),
        course=course,
        permissions=permissions,
    )


class AuthSession:
    def __init__(self, request):
        self.request = request
        self.session = request.session
        self.last_error = None
        self._principal = None

    @property
    def token(self):
        return self.session.get(TOKEN_KEY)

    @property
    def principal(self):
        if self._principal is None:
            self._principal = Principal.from_snapshot(self.session.get(PRINCIPAL_KEY))
        return self._principal

    @property
    def is_authenticated(self):
        return bool(self.token) and self.principal is not None

    def login(self, user_id, password, role=None):
        principal = self._login('login', user_id, password)
        if principal is None:
            return False
        if role is not None and principal.role != Role.parse(role):
            self.last_error = 'This account does not have access to that area'
            logger.info("Login for %s rejected: role %s, expected %s", user_id, principal.role, role)
            self.clear()
            return False
        return True

    def super_admin_login(self, user_id, password):
        principal = self._login('super_admin_login', user_id, password)
        if principal is None:
            return LoginResult(False)
        if not principal.is_super_admin:
            self.last_error = 'Only super administrators can sign in here'
            logger.info("Super admin login for %s rejected: role %s", user_id, principal.role)
            self.clear()
            return LoginResult(False)
        return LoginResult(True, principal)

    def _login(self, method, user_id, password):
        api = backend.get_api_client()
        try:
            data, token = getattr(api.auth, method)(user_id, password)
        except ApiError as e:
            self.last_error = e.message
            logger.info("Login for %s failed: %s", user_id, e.message)
            return None

        principal = principal_from_payload(data)
        if principal.role == Role.TRAINEE:
            self.last_error = 'Trainee accounts cannot sign in to the portal'
            logger.info("Login for %s rejected: trainee account", user_id)
            return None

        principal.permissions = self._load_permissions(backend.get_api_client(token), principal)

        # new key and nothing left over from whoever used this browser before
        self.session.flush()
        self.session[TOKEN_KEY] = token
        self.session[PRINCIPAL_KEY] = principal.to_snapshot()
        self._principal = principal
        logger.info("User %s logged in as %s", principal.user_id, principal.role.value)
        return principal

    def _load_permissions(self, api, principal):
        # only plain admins are limited by flags
        if principal.role != Role.ADMIN:
            return PermissionSet()
        try:
            return api.admin_permissions.mine()
        except ApiError as e:
            logger.warning("Could not load permissions for %s: %s", principal.user_id, e.message)
            return PermissionSet()

    def logout(self):
        if self.token:
            try:
                backend.get_api_client(self.token).auth.logout()
            except ApiError as e:
                # the local session goes away regardless
                logger.warning("Backend logout failed: %s", e.message)
        self.clear()

    def clear(self):
        self.session.flush()
        self._principal = None

    def refresh_user(self):
        if not self.token:
            return None
        api = backend.get_api_client(self.token)
        try:
            data = api.auth.current_user()
        except ApiError as e:
            if e.is_unauthorized:
                logger.info("Token rejected by backend, clearing session")
                self.clear()
                return None
            logger.warning("Could not refresh user: %s", e.message)
            return self.principal

        principal = principal_from_payload(data)
        principal.permissions = self._load_permissions(api, principal)
        self.session[PRINCIPAL_KEY] = principal.to_snapshot()
        self._principal = principal
        return principal


class CourseContext:
    """
    The course the current user is working in.

    An explicit selection wins, otherwise the principal's own course is used.
    """

    def __init__(self, request, principal=None):
        self.session = request.session
        self.principal = principal

    @property
    def selected_course(self):
        return CourseRef.from_payload(self.session.get(COURSE_KEY))

    def set_selected_course(self, course):
        if course is None:
            self.session.pop(COURSE_KEY, None)
        else:
            self.session[COURSE_KEY] = course.as_dict()

    @property
    def effective_course(self):
        selected = self.selected_course
        if selected is not None:
            return selected
        return self.principal.course if self.principal else None

    def clear(self):
        self.set_selected_course(None)

    def scope(self):
        # query params that scope a collection fetch to the current course
        course = self.effective_course
        return {'course_id': course.id} if course else {}
