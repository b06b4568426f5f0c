# API client layer - one small wrapper per backend resource
# every call goes through ApiClient.request so the token, the envelope
# unwrapping and the error messages are handled in one place

import logging
import re
import threading

import requests
from django.conf import settings

from . import serializers as s
from .identity import PermissionSet

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message, status=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    @property
    def is_unauthorized(self):
        return self.status == 401

    @property
    def is_network_error(self):
        return self.status is None


def error_message(payload, status):
    # same order the backend uses: message, then laravel validation errors, then error
    if isinstance(payload, dict):
        if payload.get('message'):
            return str(payload['message'])
        errors = payload.get('errors')
        if isinstance(errors, dict) and errors:
            flat = []
            for value in errors.values():
                if isinstance(value, (list, tuple)):
                    flat.extend(str(v) for v in value)
                else:
                    flat.append(str(value))
            return ', '.join(flat)
        if payload.get('error'):
            return str(payload['error'])
    return f"HTTP error! status: {status}"


def unwrap(body):
    # {"success": true, "data": ...} -> data
    if isinstance(body, dict) and 'data' in body:
        return body['data']
    return body


def as_list(payload):
    # collections come back either as a list or as an object holding the list
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get('data'), list):
        return payload['data']
    return []


def normalize(serializer_class, payload, many=False):
    serializer = serializer_class(data=payload, many=many)
    if not serializer.is_valid():
        logger.warning("Unexpected %s payload: %s", serializer_class.__name__, serializer.errors)
        raise ApiError("Unexpected response from server")
    return serializer.validated_data


class Download:
    def __init__(self, filename, content, content_type):
        self.filename = filename
        self.content = content
        self.content_type = content_type


def as_download(response):
    return Download(
        filename=filename_from_disposition(response.headers.get('Content-Disposition')),
        content=response.content,
        content_type=response.headers.get('Content-Type', 'application/octet-stream'),
    )


def filename_from_disposition(header, default='download'):
    if not header:
        return default
    match = re.search(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', header)
    return match.group(1).strip() if match else default


class Resource:
    """Plain CRUD over one backend collection."""

    serializer_class = None

    def __init__(self, client, path, serializer_class=None):
        self.client = client
        self.path = path.strip('/')
        if serializer_class is not None:
            self.serializer_class = serializer_class

    def url(self, *parts):
        return '/'.join([self.path] + [str(p) for p in parts])

    def get_all(self, **filters):
        payload = self.client.request('GET', self.path, params=filters)
        return normalize(self.serializer_class, as_list(payload), many=True)

    def get(self, pk):
        return normalize(self.serializer_class, self.client.request('GET', self.url(pk)))

    # writes hand back whatever the backend said, screens refetch afterwards anyway
    def create(self, data):
        return self.client.request('POST', self.path, json=data)

    def update(self, pk, data):
        return self.client.request('PUT', self.url(pk), json=data)

    def delete(self, pk):
        return self.client.request('DELETE', self.url(pk))


class UsersApi(Resource):
    serializer_class = s.UserSerializer

    def get(self, pk):
        payload = self.client.request('GET', self.url(pk))
        if isinstance(payload, dict) and isinstance(payload.get('user'), dict):
            payload = payload['user']
        return normalize(self.serializer_class, payload)


class CoursesApi(Resource):
    serializer_class = s.CourseSerializer

    def my_courses(self):
        payload = self.client.request('GET', self.url('my-courses'))
        return normalize(self.serializer_class, as_list(payload), many=True)

    def available(self):
        payload = self.client.request('GET', self.url('available'))
        return normalize(self.serializer_class, as_list(payload), many=True)

    def enrolled_users(self, course_id):
        payload = self.client.request('GET', self.url(course_id, 'enrolled-users'))
        return normalize(s.UserSerializer, as_list(payload), many=True)

    def enroll_user(self, course_id, user_id):
        return self.client.request('POST', self.url(course_id, 'enroll-user', user_id))

    def unenroll_user(self, course_id, user_id):
        return self.client.request('POST', self.url(course_id, 'unenroll-user', user_id))


class MaterialsApi(Resource):
    serializer_class = s.MaterialSerializer

    def create(self, file, name, subject):
        files = {'file': (file.name, file, getattr(file, 'content_type', None) or 'application/octet-stream')}
        return self.client.request('POST', self.path, data={'name': name, 'subject': subject}, files=files)

    def download(self, pk):
        return as_download(self.client.request('GET', self.url(pk, 'download'), raw=True))


class GalleryApi(Resource):
    serializer_class = s.GalleryItemSerializer

    def create(self, image, title):
        files = {'image': (image.name, image, getattr(image, 'content_type', None) or 'application/octet-stream')}
        return self.client.request('POST', self.path, data={'title': title}, files=files)


class DisciplineIssuesApi(Resource):
    serializer_class = s.DisciplineIssueSerializer

    def create(self, data, document=None):
        # multipart only when a document is attached
        files = None
        if document is not None:
            files = {'document': (document.name, document,
                                  getattr(document, 'content_type', None) or 'application/octet-stream')}
        return self.client.request('POST', self.path, data=data, files=files)

    def download_document(self, pk):
        return as_download(self.client.request('GET', self.url(pk, 'download'), raw=True))

    # approve / reject are super admin only on the backend
    def approve(self, pk):
        return self.client.request('POST', self.url(pk, 'approve'))

    def reject(self, pk, reason):
        return self.client.request('POST', self.url(pk, 'reject'), json={'rejection_reason': reason})


class MedicalRecordsApi(Resource):
    serializer_class = s.MedicalRecordSerializer

    def latest_for_user(self, user_id):
        # None when the trainee has no record yet
        payload = self.client.request('GET', self.url('user', user_id, 'latest'))
        if not payload:
            return None
        return normalize(self.serializer_class, payload)


class NotificationsApi(Resource):
    serializer_class = s.NotificationSerializer

    def unread_count(self):
        payload = self.client.request('GET', self.url('count'))
        if isinstance(payload, dict):
            payload = payload.get('count', payload.get('unread', 0))
        try:
            return int(payload or 0)
        except (TypeError, ValueError):
            raise ApiError("Unexpected response from server")

    def mark_read(self, pk):
        return self.client.request('POST', self.url(pk, 'read'))

    def mark_all_read(self):
        return self.client.request('POST', self.url('read-all'))


class ActivityPage:
    def __init__(self, items, pagination):
        self.items = items
        self.pagination = pagination


class ActivityLogApi:
    def __init__(self, client):
        self.client = client

    def doctor_activities(self, type=None, page=1, per_page=50):
        # pagination sits next to data, so keep the whole body
        body = self.client.request(
            'GET', 'admin/doctor-activities',
            params={'type': type, 'page': page, 'per_page': per_page},
            envelope=False,
        )
        if not isinstance(body, dict):
            raise ApiError("Unexpected response from server")
        items = normalize(s.ActivitySerializer, as_list(body.get('data')), many=True)
        pagination = normalize(s.PaginationSerializer, body.get('pagination') or {})
        return ActivityPage(items, pagination)


class AdminPermissionsApi:
    def __init__(self, client):
        self.client = client

    def get_all(self):
        payload = self.client.request('GET', 'admin/permissions')
        admins = normalize(s.AdminAccountSerializer, as_list(payload), many=True)
        for admin in admins:
            admin['permissions'] = PermissionSet.from_payload(admin.get('permissions'))
        return admins

    def update(self, admin_id, permissions):
        return self.client.request('PUT', f'admin/permissions/{admin_id}', json=permissions.as_dict())

    def mine(self):
        payload = self.client.request('GET', 'admin/permissions/my')
        return PermissionSet.from_payload(normalize(s.PermissionSetSerializer, payload or {}))


class AuthApi:
    def __init__(self, client):
        self.client = client

    def _login(self, path, user_id, password):
        payload = self.client.request('POST', path, json={'user_id': user_id, 'password': password})
        if not isinstance(payload, dict) or not payload.get('token'):
            raise ApiError("Unexpected response from server")
        return normalize(s.PrincipalSerializer, payload.get('user')), payload['token']

    def login(self, user_id, password):
        return self._login('login', user_id, password)

    def super_admin_login(self, user_id, password):
        return self._login('super-admin/login', user_id, password)

    def logout(self):
        return self.client.request('POST', 'logout')

    def current_user(self):
        payload = self.client.request('GET', 'user')
        if isinstance(payload, dict) and isinstance(payload.get('user'), dict):
            payload = payload['user']
        return normalize(s.PrincipalSerializer, payload)


class SetupApi:
    def __init__(self, client):
        self.client = client

    def check(self):
        body = self.client.request('GET', 'setup/check', envelope=False)
        return isinstance(body, dict) and body.get('is_setup') is True

    def bootstrap(self, data):
        return self.client.request('POST', 'setup', json=data)


class ApiClient:
    def __init__(self, base_url, token=None, timeout=15, session=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        # a session passed in is used as is, otherwise each thread gets its own
        self._session = session
        self._local = threading.local()

        self.auth = AuthApi(self)
        self.setup = SetupApi(self)
        self.users = UsersApi(self, 'users')
        self.courses = CoursesApi(self, 'courses')
        self.course_metadata = Resource(self, 'course-metadata', s.CourseMetadataSerializer)
        self.subjects = Resource(self, 'subjects', s.SubjectSerializer)
        self.materials = MaterialsApi(self, 'materials')
        self.gallery = GalleryApi(self, 'gallery')
        self.timetable = Resource(self, 'timetable', s.TimetableEntrySerializer)
        self.assessments = Resource(self, 'assessments', s.AssessmentSerializer)
        self.grades = Resource(self, 'grades', s.GradeSerializer)
        self.messages = Resource(self, 'messages', s.MessageSerializer)
        self.patients = Resource(self, 'patients', s.PatientSerializer)
        self.medical_reports = Resource(self, 'medical-reports', s.MedicalReportSerializer)
        self.attendance = Resource(self, 'attendance-records', s.AttendanceRecordSerializer)
        self.medical_records = MedicalRecordsApi(self, 'medical-records')
        self.discipline_issues = DisciplineIssuesApi(self, 'discipline-issues')
        self.notifications = NotificationsApi(self, 'notifications')
        self.activity_log = ActivityLogApi(self)
        self.admin_permissions = AdminPermissionsApi(self)

    @property
    def http(self):
        # load_together calls in from worker threads and a requests.Session
        # must not be shared between threads
        if self._session is not None:
            return self._session
        session = getattr(self._local, 'session', None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def headers(self):
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def request(self, method, path, params=None, json=None, data=None, files=None,
                raw=False, envelope=True):
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            # empty filters are left off the query string
            params = {k: v for k, v in params.items() if v not in (None, '')}

        try:
            response = self.http.request(
                method, url, params=params or None, json=json, data=data, files=files,
                headers=self.headers(), timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("[API] %s %s failed: %s", method, url, e)
            raise ApiError("Could not reach the server. Please try again.") from e

        if not response.ok:
            payload = self._json(response)
            message = error_message(payload, response.status_code)
            logger.info("[API] %s %s -> %s: %s", method, url, response.status_code, message)
            raise ApiError(message, status=response.status_code, payload=payload)

        if raw:
            return response
        if response.status_code == 204 or not response.content:
            return None

        body = self._json(response)
        if body is None:
            raise ApiError("Unexpected response from server", status=response.status_code)
        return unwrap(body) if envelope else body

    @staticmethod
    def _json(response):
        try:
            return response.json()
        except ValueError:
            return None


def get_api_client(token=None):
    return ApiClient(
        settings.PORTAL_API_BASE_URL,
        token=token,
        timeout=settings.PORTAL_API_TIMEOUT,
    )
