import io
import threading
from unittest.mock import MagicMock, patch

import requests
from django.contrib.messages import get_messages
from django.contrib.sessions.backends.db import SessionStore
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import CommandError, call_command
from django.test import Client, RequestFactory, TestCase, override_settings
from django.urls import resolve
from PIL import Image
from rest_framework.settings import api_settings
from rest_framework.test import APIClient

from portal import reports
from portal.authentication import PortalSessionAuthentication
from portal.client import ApiClient, ApiError, error_message
from portal.filters import filter_records, search_records
from portal.identity import CAPABILITY_NAMES, CourseRef, PermissionSet, Principal, Role
from portal.session import COURSE_KEY, PRINCIPAL_KEY, TOKEN_KEY, AuthSession, CourseContext
from portal.shells import ADMIN_SHELL, DOCTOR_SHELL, INSTRUCTOR_SHELL, shell_for

# tests for the portal - the backend is never called for real,
# portal.client.get_api_client is patched to hand back a MagicMock


def make_principal(role, id=1, name='Test User', course=None, **flags):
    return Principal(
        id=id,
        name=name,
        email=f'user{id}@tawa.test',
        role=Role(role),
        course=course,
        permissions=PermissionSet(**flags),
    )


def login_as(client, principal, token='test-token'):
    # puts a principal straight into the session, same as a successful login would
    session = client.session
    session[TOKEN_KEY] = token
    session[PRINCIPAL_KEY] = principal.to_snapshot()
    session.save()


def message_texts(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


def login_payload(role, id=1, name='Ada Admin', course_id=3, course_name='Course C3'):
    return {
        'id': id,
        'user_id': f'TAWA-{id:03d}',
        'name': name,
        'email': f'user{id}@tawa.test',
        'role': role,
        'course_id': course_id,
        'course_name': course_name,
    }


class PortalTestCase(TestCase):
    def setUp(self):
        self.client = Client()
        patcher = patch('portal.client.get_api_client')
        self.get_api_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.api = self.get_api_client.return_value


class PermissionSetTests(TestCase):
    def test_null_payload_means_nothing_granted(self):
        perms = PermissionSet.from_payload(None)
        for name in CAPABILITY_NAMES:
            self.assertFalse(perms.allows(name))

    def test_partial_payload_fills_in_false(self):
        perms = PermissionSet.from_payload({'can_manage_users': True, 'can_manage_chat': None})
        self.assertTrue(perms.allows('can_manage_users'))
        self.assertFalse(perms.allows('can_manage_chat'))
        self.assertFalse(perms.allows('can_manage_gallery'))
        self.assertEqual(perms.granted(), ['can_manage_users'])

    def test_unknown_capability_is_an_error(self):
        with self.assertRaises(ValueError):
            PermissionSet(can_fly=True)
        with self.assertRaises(ValueError):
            PermissionSet().allows('can_fly')


class PrincipalTests(TestCase):
    def test_super_admin_bypasses_flags(self):
        principal = make_principal('super_admin')
        self.assertTrue(principal.can('can_manage_materials'))

    def test_admin_needs_flag(self):
        self.assertFalse(make_principal('admin').can('can_manage_materials'))
        self.assertTrue(make_principal('admin', can_manage_materials=True).can('can_manage_materials'))

    def test_snapshot_round_trip(self):
        principal = make_principal('doctor', course=CourseRef(4, 'Field Medicine'))
        restored = Principal.from_snapshot(principal.to_snapshot())
        self.assertEqual(restored.role, Role.DOCTOR)
        self.assertEqual(restored.course, CourseRef(4))
        self.assertEqual(restored.course.name, 'Field Medicine')

    def test_bad_snapshot_is_anonymous(self):
        self.assertIsNone(Principal.from_snapshot(None))
        self.assertIsNone(Principal.from_snapshot({'id': 1, 'role': 'janitor'}))
        self.assertIsNone(Principal.from_snapshot({'role': 'admin'}))


class ShellTableTests(TestCase):
    def test_every_role_has_an_entry(self):
        self.assertIs(shell_for(Role.ADMIN), ADMIN_SHELL)
        self.assertIs(shell_for(Role.SUPER_ADMIN), ADMIN_SHELL)
        self.assertIs(shell_for(Role.INSTRUCTOR), INSTRUCTOR_SHELL)
        self.assertIs(shell_for(Role.DOCTOR), DOCTOR_SHELL)
        self.assertIsNone(shell_for(Role.TRAINEE))

    def test_admin_nav_only_shows_granted_screens(self):
        principal = make_principal('admin', can_manage_gallery=True)
        names = [item.url_name for item in ADMIN_SHELL.nav_for(principal)]
        self.assertIn('admin:gallery', names)
        self.assertNotIn('admin:materials', names)
        self.assertNotIn('admin:settings', names)

    def test_super_admin_sees_settings(self):
        names = [item.url_name for item in ADMIN_SHELL.nav_for(make_principal('super_admin'))]
        self.assertIn('admin:settings', names)
        self.assertIn('admin:materials', names)

    def test_reports_flag_shows_discipline_and_report(self):
        without = [item.url_name for item in ADMIN_SHELL.nav_for(make_principal('admin'))]
        self.assertNotIn('admin:discipline_issues', without)
        self.assertNotIn('admin:system_report', without)

        granted = [item.url_name for item in ADMIN_SHELL.nav_for(make_principal('admin', can_manage_reports=True))]
        self.assertIn('admin:discipline_issues', granted)
        self.assertIn('admin:system_report', granted)


class SearchTests(TestCase):
    users = [
        {'name': 'Jane Doe', 'email': 'jane.doe@tawa.test', 'role': 'doctor'},
        {'name': 'John Roe', 'email': 'john.roe@tawa.test', 'role': 'instructor'},
    ]

    def test_search_is_case_insensitive_substring(self):
        self.assertEqual([u['name'] for u in search_records(self.users, 'jo', ['name'])], ['John Roe'])
        self.assertEqual([u['name'] for u in search_records(self.users, 'doe', ['name'])], ['Jane Doe'])
        self.assertEqual([u['name'] for u in search_records(self.users, 'JANE', ['name', 'email'])], ['Jane Doe'])

    def test_empty_query_returns_everything(self):
        self.assertEqual(len(search_records(self.users, '  ', ['name'])), 2)

    def test_nested_fields(self):
        records = [{'message': 'hi', 'user': {'name': 'Jane'}}, {'message': 'yo', 'user': None}]
        self.assertEqual(search_records(records, 'jane', ['message', 'user.name']), [records[0]])

    def test_filter_all_means_no_filter(self):
        self.assertEqual(len(filter_records(self.users, 'role', 'all')), 2)
        self.assertEqual(filter_records(self.users, 'role', 'doctor'), [self.users[0]])


def png_upload(name, size):
    # a real png padded out to exactly size bytes
    buffer = io.BytesIO()
    Image.new('RGB', (8, 8), 'red').save(buffer, 'PNG')
    data = buffer.getvalue()
    data += b'\0' * (size - len(data))
    return SimpleUploadedFile(name, data, content_type='image/png')


def fake_response(status=200, body=None, headers=None, content=None):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {}
    if body is not None:
        response.json.return_value = body
        response.content = b'{}'
    else:
        response.json.side_effect = ValueError('no json')
        response.content = content or b''
    return response


class ApiClientTests(TestCase):
    def setUp(self):
        self.http = MagicMock()
        self.api = ApiClient('http://backend.test/api/', token='abc', session=self.http)

    def test_sends_token_and_drops_empty_params(self):
        self.http.request.return_value = fake_response(body={'success': True, 'data': []})
        self.api.materials.get_all(course_id=3, subject=None)

        args, kwargs = self.http.request.call_args
        self.assertEqual(args, ('GET', 'http://backend.test/api/materials'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer abc')
        self.assertEqual(kwargs['headers']['Accept'], 'application/json')
        self.assertEqual(kwargs['params'], {'course_id': 3})

    def test_unwraps_envelope_and_paginated_collections(self):
        self.http.request.return_value = fake_response(body={
            'success': True,
            'data': {'data': [{'id': 1, 'name': 'Week 1', 'subject': 'Anatomy', 'date': '2025-01-02T08:00:00Z'}],
                     'current_page': 1},
        })
        materials = self.api.materials.get_all()
        self.assertEqual(len(materials), 1)
        self.assertEqual(materials[0]['name'], 'Week 1')
        self.assertEqual(str(materials[0]['date']), '2025-01-02')

    def test_error_message_order(self):
        self.assertEqual(error_message({'message': 'Nope', 'error': 'x'}, 400), 'Nope')
        self.assertEqual(
            error_message({'errors': {'name': ['Name is required.'], 'email': ['Email is taken.']}}, 422),
            'Name is required., Email is taken.',
        )
        self.assertEqual(error_message({'error': 'Broken'}, 500), 'Broken')
        self.assertEqual(error_message(None, 502), 'HTTP error! status: 502')

    def test_http_error_becomes_api_error(self):
        self.http.request.return_value = fake_response(status=422, body={'errors': {'title': ['Title is required.']}})
        with self.assertRaises(ApiError) as ctx:
            self.api.gallery.create(SimpleUploadedFile('a.png', b'x'), '')
        self.assertEqual(ctx.exception.status, 422)
        self.assertEqual(ctx.exception.message, 'Title is required.')

    def test_network_failure_has_no_status(self):
        self.http.request.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(ApiError) as ctx:
            self.api.courses.get_all()
        self.assertIsNone(ctx.exception.status)
        self.assertFalse(ctx.exception.is_unauthorized)

    def test_material_upload_is_multipart(self):
        self.http.request.return_value = fake_response(status=201, body={'success': True, 'data': {'id': 9}})
        upload = SimpleUploadedFile('notes.pdf', b'%PDF-1.4', content_type='application/pdf')
        self.assertEqual(self.api.materials.create(upload, 'Notes', 'Anatomy'), {'id': 9})

        kwargs = self.http.request.call_args.kwargs
        self.assertEqual(kwargs['data'], {'name': 'Notes', 'subject': 'Anatomy'})
        self.assertEqual(kwargs['files']['file'][0], 'notes.pdf')
        self.assertIsNone(kwargs['json'])

    def test_download_reads_filename(self):
        self.http.request.return_value = fake_response(
            headers={'Content-Disposition': 'attachment; filename="week1.pdf"', 'Content-Type': 'application/pdf'},
            content=b'%PDF',
        )
        download = self.api.materials.download(5)
        self.assertEqual(download.filename, 'week1.pdf')
        self.assertEqual(download.content, b'%PDF')
        self.assertEqual(download.content_type, 'application/pdf')

    def test_doctor_activities_keep_pagination(self):
        self.http.request.return_value = fake_response(body={
            'success': True,
            'data': [{'id': 'patient_1', 'type': 'patient_registration', 'doctor_name': 'Dr Who'}],
            'pagination': {'current_page': 2, 'per_page': 50, 'total': 51, 'last_page': 2},
        })
        page = self.api.activity_log.doctor_activities(type='patient_registration', page=2)
        self.assertEqual(page.items[0]['id'], 'patient_1')
        self.assertEqual(page.pagination['total'], 51)

    def test_null_admin_permissions_become_all_false(self):
        self.http.request.return_value = fake_response(body={
            'success': True,
            'data': [{'id': 2, 'name': 'Ada', 'email': 'ada@tawa.test', 'permissions': None}],
        })
        admins = self.api.admin_permissions.get_all()
        self.assertEqual(admins[0]['permissions'], PermissionSet())

    def test_setup_check(self):
        self.http.request.return_value = fake_response(body={'success': True, 'is_setup': False})
        self.assertFalse(self.api.setup.check())

    def test_discipline_issue_with_document_is_multipart(self):
        self.http.request.return_value = fake_response(status=201, body={'success': True, 'data': {'id': 4}})
        document = SimpleUploadedFile('statement.pdf', b'%PDF', content_type='application/pdf')
        self.api.discipline_issues.create({'user_id': 30, 'title': 'Late'}, document)

        args, kwargs = self.http.request.call_args
        self.assertEqual(args, ('POST', 'http://backend.test/api/discipline-issues'))
        self.assertEqual(kwargs['data'], {'user_id': 30, 'title': 'Late'})
        self.assertEqual(kwargs['files']['document'][0], 'statement.pdf')

    def test_discipline_issue_without_document_sends_no_files(self):
        self.http.request.return_value = fake_response(status=201, body={'success': True, 'data': {'id': 4}})
        self.api.discipline_issues.create({'user_id': 30, 'title': 'Late'})
        self.assertIsNone(self.http.request.call_args.kwargs['files'])

    def test_discipline_issue_reject_sends_reason(self):
        self.http.request.return_value = fake_response(body={'success': True, 'data': {'id': 4}})
        self.api.discipline_issues.reject(4, 'Not enough evidence')

        args, kwargs = self.http.request.call_args
        self.assertEqual(args, ('POST', 'http://backend.test/api/discipline-issues/4/reject'))
        self.assertEqual(kwargs['json'], {'rejection_reason': 'Not enough evidence'})

    def test_latest_medical_record(self):
        self.http.request.return_value = fake_response(body={
            'success': True, 'data': {'id': 8, 'user_id': 30, 'blood_type': 'O+', 'record_date': '2025-02-01'},
        })
        record = self.api.medical_records.latest_for_user(30)
        self.assertEqual(self.http.request.call_args.args[1], 'http://backend.test/api/medical-records/user/30/latest')
        self.assertEqual(record['blood_type'], 'O+')

        self.http.request.return_value = fake_response(body={'success': True, 'data': None})
        self.assertIsNone(self.api.medical_records.latest_for_user(31))


class ApiClientThreadTests(TestCase):
    def test_each_thread_gets_its_own_http_session(self):
        api = ApiClient('http://backend.test/api/')
        self.assertIs(api.http, api.http)

        seen = []
        worker = threading.Thread(target=lambda: seen.append(api.http))
        worker.start()
        worker.join()
        self.assertIsNot(seen[0], api.http)

    def test_given_session_is_used_everywhere(self):
        http = MagicMock()
        api = ApiClient('http://backend.test/api/', session=http)
        seen = []
        worker = threading.Thread(target=lambda: seen.append(api.http))
        worker.start()
        worker.join()
        self.assertIs(seen[0], http)
        self.assertIs(api.http, http)


class RestFrameworkSettingsTests(TestCase):
    def test_authentication_class_loads(self):
        self.assertEqual(api_settings.DEFAULT_AUTHENTICATION_CLASSES, [PortalSessionAuthentication])

    def test_urls_resolve(self):
        self.assertEqual(resolve('/admin/materials/').url_name, 'materials')
        self.assertEqual(resolve('/admin/discipline-issues/').namespace, 'admin')
        self.assertEqual(resolve('/doctor/medical-records/user/30/latest/').kwargs, {'user_id': 30})
        self.assertEqual(resolve('/api/session/').url_name, 'api_session')


class AuthSessionTests(PortalTestCase):
    def make_request(self):
        request = RequestFactory().get('/')
        request.session = SessionStore()
        return request

    def test_login_stores_principal_and_token(self):
        self.api.auth.login.return_value = (login_payload('admin'), 'tok-1')
        self.api.admin_permissions.mine.return_value = PermissionSet(can_manage_users=True)

        request = self.make_request()
        auth = AuthSession(request)
        self.assertTrue(auth.login('ada@tawa.test', 'secret123'))
        self.assertEqual(request.session[TOKEN_KEY], 'tok-1')
        self.assertTrue(auth.principal.can('can_manage_users'))
        self.assertEqual(auth.principal.course, CourseRef(3))

    def test_login_failure_is_just_false(self):
        self.api.auth.login.side_effect = ApiError('Invalid credentials', status=401)
        request = self.make_request()
        auth = AuthSession(request)
        self.assertFalse(auth.login('ada', 'wrong'))
        self.assertEqual(auth.last_error, 'Invalid credentials')
        self.assertNotIn(TOKEN_KEY, request.session)

        self.api.auth.login.side_effect = ApiError('Could not reach the server. Please try again.')
        self.assertFalse(auth.login('ada', 'secret123'))

    def test_trainee_cannot_log_in(self):
        self.api.auth.login.return_value = (login_payload('trainee'), 'tok')
        request = self.make_request()
        self.assertFalse(AuthSession(request).login('t1', 'secret123'))
        self.assertNotIn(TOKEN_KEY, request.session)

    def test_role_mismatch_is_rejected(self):
        self.api.auth.login.return_value = (login_payload('doctor'), 'tok')
        request = self.make_request()
        self.assertFalse(AuthSession(request).login('doc', 'secret123', role='admin'))
        self.assertNotIn(TOKEN_KEY, request.session)

    def test_super_admin_login_rejects_other_roles(self):
        self.api.auth.super_admin_login.return_value = (login_payload('admin'), 'tok')
        request = self.make_request()
        result = AuthSession(request).super_admin_login('ada', 'secret123')
        self.assertFalse(result.success)
        self.assertIsNone(result.user)

        self.api.admin_permissions.mine.reset_mock()
        self.api.auth.super_admin_login.return_value = (login_payload('super_admin', id=99), 'tok')
        result = AuthSession(request).super_admin_login('root', 'secret123')
        self.assertTrue(result.success)
        self.assertTrue(result.user.is_super_admin)
        # super admins never need the permissions call
        self.api.admin_permissions.mine.assert_not_called()

    def test_course_override_does_not_leak_to_next_login(self):
        request = self.make_request()
        self.api.auth.login.return_value = (login_payload('admin', id=1), 'tok-a')
        auth = AuthSession(request)
        auth.login('a', 'secret123')
        CourseContext(request, auth.principal).set_selected_course(CourseRef(7, 'Other course'))

        self.api.auth.login.return_value = (login_payload('instructor', id=2, course_id=11, course_name='C11'), 'tok-b')
        auth = AuthSession(request)
        auth.login('b', 'secret123')

        context = CourseContext(request, auth.principal)
        self.assertIsNone(context.selected_course)
        self.assertEqual(context.effective_course, CourseRef(11))

    def test_refresh_user_clears_session_on_401(self):
        request = self.make_request()
        request.session[TOKEN_KEY] = 'dead'
        request.session[PRINCIPAL_KEY] = make_principal('admin').to_snapshot()
        self.api.auth.current_user.side_effect = ApiError('Unauthenticated.', status=401)

        auth = AuthSession(request)
        self.assertIsNone(auth.refresh_user())
        self.assertFalse(auth.is_authenticated)
        self.assertNotIn(TOKEN_KEY, request.session)

    def test_refresh_user_keeps_old_snapshot_on_other_errors(self):
        request = self.make_request()
        request.session[TOKEN_KEY] = 'tok'
        request.session[PRINCIPAL_KEY] = make_principal('doctor', name='Dr Old').to_snapshot()
        self.api.auth.current_user.side_effect = ApiError('Server error', status=500)

        self.assertEqual(AuthSession(request).refresh_user().name, 'Dr Old')
        self.assertEqual(request.session[TOKEN_KEY], 'tok')


class CourseContextTests(TestCase):
    def test_override_then_default(self):
        # instructor with no override sees their own course until they pick another
        request = RequestFactory().get('/')
        request.session = SessionStore()
        own = CourseRef(1, 'Basic Training')
        other = CourseRef(2, 'Advanced Training')
        context = CourseContext(request, make_principal('instructor', course=own))

        self.assertIsNone(context.selected_course)
        self.assertEqual(context.effective_course, own)

        context.set_selected_course(other)
        self.assertEqual(context.effective_course, other)
        self.assertEqual(context.scope(), {'course_id': 2})

        context.set_selected_course(None)
        self.assertEqual(context.effective_course, own)


class LoginViewTests(PortalTestCase):
    def test_admin_login_goes_to_admin_shell(self):
        self.api.auth.login.return_value = (login_payload('admin'), 'tok')
        self.api.admin_permissions.mine.return_value = PermissionSet()
        response = self.client.post('/login/', {'user_id': 'ada@tawa.test', 'password': 'secret123'})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/admin/')

    def test_bad_credentials_stay_on_login(self):
        self.api.auth.login.side_effect = ApiError('Invalid credentials', status=401)
        response = self.client.post('/login/', {'user_id': 'ada', 'password': 'nope'})
        self.assertEqual(response.status_code, 200)
        self.assertIn('Invalid credentials', message_texts(response))
        self.assertNotIn(TOKEN_KEY, self.client.session)

    def test_logout_clears_principal_and_course(self):
        login_as(self.client, make_principal('admin', course=CourseRef(3, 'C3')))
        self.client.post('/admin/select-course/', {'course_id': '8', 'course_name': 'C8'})
        self.assertEqual(self.client.session[COURSE_KEY], {'id': 8, 'name': 'C8'})

        response = self.client.get('/logout/')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login/', response.url)
        session = self.client.session
        self.assertNotIn(TOKEN_KEY, session)
        self.assertNotIn(PRINCIPAL_KEY, session)
        self.assertNotIn(COURSE_KEY, session)
        self.api.auth.logout.assert_called_once()

        # reload now shows the public landing page
        self.api.setup.check.return_value = True
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Administrator login')

    def test_logout_still_clears_when_backend_fails(self):
        login_as(self.client, make_principal('doctor'))
        self.api.auth.logout.side_effect = ApiError('Server error', status=500)
        self.client.get('/logout/')
        self.assertNotIn(TOKEN_KEY, self.client.session)

    def test_landing_sends_fresh_install_to_setup(self):
        self.api.setup.check.side_effect = ApiError('Could not reach the server. Please try again.')
        response = self.client.get('/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/setup/')

    def test_setup_posts_bootstrap(self):
        self.api.setup.check.return_value = False
        response = self.client.post('/setup/', {
            'adminName': 'Ada', 'adminEmail': 'ada@tawa.test',
            'adminPassword': 'secret123', 'confirmPassword': 'secret123',
            'courseCode': 'tc01', 'courseName': 'Tactical Care', 'courseType': 'Basic',
            'courseDuration': '12 weeks', 'startDate': '2025-03-01',
        })
        self.assertEqual(response.status_code, 302)
        payload = self.api.setup.bootstrap.call_args.args[0]
        self.assertEqual(payload['courseCode'], 'TC01')
        self.assertEqual(payload['startDate'], '2025-03-01')
        self.assertNotIn('confirmPassword', payload)


class ShellAccessTests(PortalTestCase):
    def test_anonymous_goes_to_login(self):
        response = self.client.get('/admin/')
        self.assertEqual(response.status_code, 302)
        self.assertIn('/login/', response.url)

    def test_wrong_role_never_renders_screen(self):
        cases = [
            ('doctor', '/admin/materials/', '/doctor/'),
            ('doctor', '/instructor/', '/doctor/'),
            ('instructor', '/doctor/patients/', '/instructor/'),
            ('instructor', '/admin/subjects/', '/instructor/'),
            ('admin', '/doctor/attendance/', '/admin/'),
            ('admin', '/instructor/chat/', '/admin/'),
            ('super_admin', '/doctor/', '/admin/'),
        ]
        for role, path, home in cases:
            with self.subTest(role=role, path=path):
                self.client = Client()
                login_as(self.client, make_principal(role))
                response = self.client.get(path)
                self.assertEqual(response.status_code, 302)
                self.assertEqual(response.url, home)
        self.api.materials.get_all.assert_not_called()
        self.api.patients.get_all.assert_not_called()

    def test_admin_without_flag_is_turned_away(self):
        login_as(self.client, make_principal('admin'))
        response = self.client.get('/admin/materials/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/admin/')
        self.assertIn('Access denied', message_texts(response))
        self.api.materials.get_all.assert_not_called()

    def test_super_admin_ignores_flags(self):
        self.api.materials.get_all.return_value = []
        login_as(self.client, make_principal('super_admin'))
        response = self.client.get('/admin/materials/')
        self.assertEqual(response.status_code, 200)

    def test_settings_are_super_admin_only(self):
        login_as(self.client, make_principal('admin', **{name: True for name in CAPABILITY_NAMES}))
        response = self.client.get('/admin/settings/')
        self.assertEqual(response.status_code, 302)

    def test_instructor_ignores_admin_flags(self):
        self.api.materials.get_all.return_value = []
        login_as(self.client, make_principal('instructor'))
        response = self.client.get('/instructor/materials/')
        self.assertEqual(response.status_code, 200)

    def test_expired_token_logs_out(self):
        login_as(self.client, make_principal('doctor'))
        self.api.patients.get_all.side_effect = ApiError('Unauthenticated.', status=401)
        response = self.client.get('/doctor/patients/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/login/')
        self.assertNotIn(TOKEN_KEY, self.client.session)


class ScreenTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        self.principal = make_principal('admin', course=CourseRef(3, 'C3'), **{name: True for name in CAPABILITY_NAMES})
        login_as(self.client, self.principal)

    def test_failed_load_then_retry(self):
        material = {'id': 1, 'name': 'Week 1 Notes', 'subject': 'Anatomy', 'type': 'pdf', 'size': '1.2 MB'}
        self.api.materials.get_all.side_effect = [ApiError('Server error', status=500), [material]]

        response = self.client.get('/admin/materials/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context['state'].failed)
        self.assertEqual(response.context['materials'], [])
        self.assertContains(response, 'Retry')

        response = self.client.get('/admin/materials/')
        self.assertTrue(response.context['state'].loaded)
        self.assertContains(response, 'Week 1 Notes')

    def test_collection_fetch_uses_effective_course(self):
        self.api.materials.get_all.return_value = []
        self.client.get('/admin/materials/')
        self.assertEqual(self.api.materials.get_all.call_args.kwargs, {'course_id': 3})

        self.client.post('/admin/select-course/', {'course_id': '9', 'course_name': 'C9'})
        self.client.get('/admin/materials/')
        self.assertEqual(self.api.materials.get_all.call_args.kwargs, {'course_id': 9})

    def test_delete_needs_confirmation(self):
        response = self.client.get('/admin/materials/4/delete/')
        self.assertEqual(response.status_code, 200)
        self.api.materials.delete.assert_not_called()

        self.client.post('/admin/materials/4/delete/', {})
        self.api.materials.delete.assert_not_called()

        response = self.client.post('/admin/materials/4/delete/', {'confirm': 'yes'})
        self.assertEqual(response.status_code, 302)
        self.api.materials.delete.assert_called_once_with(4)

    def test_oversized_material_is_never_sent(self):
        self.api.materials.get_all.return_value = []
        big = SimpleUploadedFile('big.pdf', b'x' * (10 * 1024 * 1024 + 1), content_type='application/pdf')
        response = self.client.post('/admin/materials/', {'name': 'Big', 'subject': 'Anatomy', 'file': big})
        self.assertEqual(response.status_code, 200)
        self.assertIn('file', response.context['form'].errors)
        self.api.materials.create.assert_not_called()

    def test_material_at_limit_is_uploaded(self):
        ok = SimpleUploadedFile('ok.pdf', b'x' * (10 * 1024 * 1024), content_type='application/pdf')
        response = self.client.post('/admin/materials/', {'name': 'Ok', 'subject': 'Anatomy', 'file': ok})
        self.assertEqual(response.status_code, 302)
        self.api.materials.create.assert_called_once()

    def test_oversized_gallery_image_is_never_sent(self):
        self.api.gallery.get_all.return_value = []
        image = png_upload('big.png', 5 * 1024 * 1024 + 1)

        response = self.client.post('/admin/gallery/', {'title': 'Parade', 'image': image})
        self.assertEqual(response.status_code, 200)
        self.assertIn('image', response.context['form'].errors)
        self.api.gallery.create.assert_not_called()

    def test_gallery_image_at_limit_is_uploaded(self):
        image = png_upload('ok.png', 5 * 1024 * 1024)
        response = self.client.post('/admin/gallery/', {'title': 'Parade', 'image': image})
        self.assertEqual(response.status_code, 302)
        self.api.gallery.create.assert_called_once()
        self.assertEqual(self.api.gallery.create.call_args.args[1], 'Parade')

    def test_missing_fields_are_never_sent(self):
        self.api.timetable.get_all.return_value = []
        response = self.client.post('/admin/timetable/', {'subject': 'Anatomy'})
        self.assertEqual(response.status_code, 200)
        self.api.timetable.create.assert_not_called()

    def test_write_failure_is_reported(self):
        self.api.timetable.create.side_effect = ApiError('The location field is required.', status=422)
        response = self.client.post('/admin/timetable/', {
            'date': '2025-03-01', 'time': '09:00', 'subject': 'Anatomy',
            'instructor': 'John Roe', 'location': 'Hall A',
        })
        self.assertEqual(response.status_code, 302)
        self.assertIn('Failed to add timetable entry: The location field is required.', message_texts(response))

    def test_user_search(self):
        self.api.users.get_all.return_value = [
            {'id': 1, 'name': 'Jane Doe', 'email': 'jane.doe@tawa.test', 'user_id': 'TAWA-001', 'role': 'doctor'},
            {'id': 2, 'name': 'John Roe', 'email': 'john.roe@tawa.test', 'user_id': 'TAWA-002', 'role': 'instructor'},
        ]
        response = self.client.get('/admin/users/', {'q': 'jo'})
        self.assertEqual([u['name'] for u in response.context['users']], ['John Roe'])
        response = self.client.get('/admin/users/', {'q': 'doe'})
        self.assertEqual([u['name'] for u in response.context['users']], ['Jane Doe'])
        response = self.client.get('/admin/users/', {'role': 'doctor'})
        self.assertEqual([u['name'] for u in response.context['users']], ['Jane Doe'])

    def test_results_load_together(self):
        self.api.assessments.get_all.return_value = [{'id': 1, 'title': 'Quiz 1', 'max_score': 20.0}]
        self.api.grades.get_all.return_value = [
            {'id': 5, 'assessment_id': 1, 'score': 18.0,
             'trainee': {'name': 'Pte Bloggs'}, 'assessment': {'title': 'Quiz 1', 'max_score': 20.0}},
        ]
        self.api.users.get_all.return_value = [{'id': 30, 'name': 'Pte Bloggs', 'role': 'trainee'}]
        response = self.client.get('/admin/results/')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Pte Bloggs')
        self.api.users.get_all.assert_called_with(role='trainee', course_id=3)

    def test_combined_load_fails_as_a_whole(self):
        self.api.assessments.get_all.return_value = [{'id': 1, 'title': 'Quiz 1', 'max_score': 20.0}]
        self.api.grades.get_all.side_effect = ApiError('Server error', status=500)
        self.api.users.get_all.return_value = []
        response = self.client.get('/admin/results/')
        self.assertTrue(response.context['state'].failed)
        self.assertEqual(response.context['grades'], [])

    def test_grade_above_max_score_is_rejected(self):
        self.api.assessments.get_all.return_value = [{'id': 1, 'title': 'Quiz 1', 'max_score': 20.0}]
        self.api.grades.get_all.return_value = []
        self.api.users.get_all.return_value = [{'id': 30, 'name': 'Pte Bloggs'}]
        response = self.client.post('/admin/results/', {'assessment_id': '1', 'trainee_id': '30', 'score': '25'})
        self.assertEqual(response.status_code, 200)
        self.api.grades.create.assert_not_called()

    def test_permissions_edit(self):
        super_admin = make_principal('super_admin', id=99)
        login_as(self.client, super_admin)
        self.api.admin_permissions.get_all.return_value = [
            {'id': 2, 'name': 'Ada', 'email': 'ada@tawa.test', 'permissions': PermissionSet()},
        ]
        response = self.client.get('/admin/settings/2/')
        self.assertEqual(response.status_code, 200)

        response = self.client.post('/admin/settings/2/', {'can_manage_users': 'on', 'can_manage_chat': 'on'})
        self.assertEqual(response.status_code, 302)
        admin_id, permissions = self.api.admin_permissions.update.call_args.args
        self.assertEqual(admin_id, 2)
        self.assertEqual(permissions.granted(), ['can_manage_users', 'can_manage_chat'])

    def test_doctor_activities_pass_filters_to_backend(self):
        page = MagicMock(items=[], pagination={'current_page': 1, 'per_page': 50, 'total': 0, 'last_page': 1})
        self.api.activity_log.doctor_activities.return_value = page
        response = self.client.get('/admin/doctor-activities/', {'type': 'medical_report', 'page': '2'})
        self.assertEqual(response.status_code, 200)
        self.api.activity_log.doctor_activities.assert_called_once_with(type='medical_report', page=2)


class CourseRefreshTests(PortalTestCase):
    # the backend moves an admin into a course they create or enrol themselves in
    def setUp(self):
        super().setUp()
        self.flags = {name: True for name in CAPABILITY_NAMES}
        login_as(self.client, make_principal('admin', id=1, **self.flags))
        self.api.admin_permissions.mine.return_value = PermissionSet(**self.flags)
        self.course_form = {
            'code': 'BMT01', 'name': 'Basic Military Training', 'type': 'Basic',
            'duration': '12 weeks', 'start_date': '2025-04-01', 'status': 'upcoming',
        }

    def test_course_create_refreshes_principal(self):
        self.api.auth.current_user.return_value = login_payload('admin', course_id=12, course_name='BMT01')
        response = self.client.post('/admin/courses/', self.course_form)

        self.assertEqual(response.status_code, 302)
        self.api.courses.create.assert_called_once()
        self.api.auth.current_user.assert_called_once()
        self.assertEqual(self.client.session[PRINCIPAL_KEY]['course'], {'id': 12, 'name': 'BMT01'})

        self.api.materials.get_all.return_value = []
        self.client.get('/admin/materials/')
        self.assertEqual(self.api.materials.get_all.call_args.kwargs, {'course_id': 12})

    def test_failed_course_create_does_not_refresh(self):
        self.api.courses.create.side_effect = ApiError('The code has already been taken.', status=422)
        response = self.client.post('/admin/courses/', self.course_form)
        self.assertEqual(response.status_code, 302)
        self.api.auth.current_user.assert_not_called()
        self.assertIsNone(self.client.session[PRINCIPAL_KEY]['course'])

    def test_enrolling_yourself_refreshes_principal(self):
        self.api.auth.current_user.return_value = login_payload('admin', course_id=7, course_name='C7')
        response = self.client.post('/admin/courses/7/', {'user_id': '1'})
        self.assertEqual(response.status_code, 302)
        self.api.courses.enroll_user.assert_called_once_with(7, '1')
        self.assertEqual(self.client.session[PRINCIPAL_KEY]['course'], {'id': 7, 'name': 'C7'})

    def test_enrolling_someone_else_does_not_refresh(self):
        self.client.post('/admin/courses/7/', {'user_id': '30'})
        self.api.courses.enroll_user.assert_called_once_with(7, '30')
        self.api.auth.current_user.assert_not_called()


class DisciplineIssueTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        login_as(self.client, make_principal('admin', course=CourseRef(3, 'C3'), can_manage_reports=True))
        self.api.users.get_all.return_value = [{'id': 30, 'name': 'Pte Bloggs', 'role': 'trainee'}]
        self.api.discipline_issues.get_all.return_value = [
            {'id': 4, 'title': 'Late for parade', 'severity': 'low', 'status': 'pending',
             'approval_status': 'pending', 'user': {'name': 'Pte Bloggs'}},
            {'id': 5, 'title': 'Missing kit', 'severity': 'high', 'status': 'resolved',
             'approval_status': 'approved', 'user': {'name': 'Pte Smith'}},
        ]
        self.issue_form = {
            'user_id': '30', 'title': 'Late for parade', 'description': 'Arrived 20 minutes late.',
            'severity': 'low', 'incident_date': '2025-03-01',
        }

    def test_list_is_scoped_and_filtered(self):
        response = self.client.get('/admin/discipline-issues/', {'severity': 'high'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([i['id'] for i in response.context['issues']], [5])
        self.api.discipline_issues.get_all.assert_called_once_with(course_id=3)

        response = self.client.get('/admin/discipline-issues/', {'approval': 'pending', 'q': 'bloggs'})
        self.assertEqual([i['id'] for i in response.context['issues']], [4])

    def test_report_without_document(self):
        response = self.client.post('/admin/discipline-issues/', self.issue_form)
        self.assertEqual(response.status_code, 302)
        data, document = self.api.discipline_issues.create.call_args.args
        self.assertEqual(data, {
            'user_id': 30, 'title': 'Late for parade', 'description': 'Arrived 20 minutes late.',
            'severity': 'low', 'incident_date': '2025-03-01',
        })
        self.assertIsNone(document)

    def test_report_with_document(self):
        self.issue_form['document'] = SimpleUploadedFile('statement.pdf', b'%PDF', content_type='application/pdf')
        self.client.post('/admin/discipline-issues/', self.issue_form)
        data, document = self.api.discipline_issues.create.call_args.args
        self.assertEqual(document.name, 'statement.pdf')
        self.assertNotIn('document', data)

    @override_settings(PORTAL_DOCUMENT_MAX_BYTES=10)
    def test_oversized_document_is_never_sent(self):
        self.issue_form['document'] = SimpleUploadedFile('big.pdf', b'x' * 11, content_type='application/pdf')
        response = self.client.post('/admin/discipline-issues/', self.issue_form)
        self.assertEqual(response.status_code, 200)
        self.assertIn('document', response.context['form'].errors)
        self.api.discipline_issues.create.assert_not_called()

    def test_super_admin_reports_against_selected_course(self):
        login_as(self.client, make_principal('super_admin', id=99))
        self.client.post('/admin/select-course/', {'course_id': '9', 'course_name': 'C9'})
        self.client.post('/admin/discipline-issues/', self.issue_form)
        data, document = self.api.discipline_issues.create.call_args.args
        self.assertEqual(data['course_id'], 9)

    def test_only_super_admin_can_approve_or_reject(self):
        response = self.client.post('/admin/discipline-issues/4/approve/')
        self.assertEqual(response.status_code, 302)
        self.assertIn('Access denied', message_texts(response))
        self.client.post('/admin/discipline-issues/4/reject/', {'rejection_reason': 'No'})
        self.api.discipline_issues.approve.assert_not_called()
        self.api.discipline_issues.reject.assert_not_called()

    def test_super_admin_approves_and_rejects(self):
        login_as(self.client, make_principal('super_admin', id=99))
        response = self.client.post('/admin/discipline-issues/4/approve/')
        self.assertEqual(response.url, '/admin/discipline-issues/')
        self.api.discipline_issues.approve.assert_called_once_with(4)

        response = self.client.post('/admin/discipline-issues/5/reject/', {'rejection_reason': ''})
        self.assertIn('Please give a reason for the rejection.', message_texts(response))
        self.api.discipline_issues.reject.assert_not_called()

        self.client.post('/admin/discipline-issues/5/reject/', {'rejection_reason': 'Not enough evidence'})
        self.api.discipline_issues.reject.assert_called_once_with(5, 'Not enough evidence')

    def test_approve_needs_post(self):
        login_as(self.client, make_principal('super_admin', id=99))
        self.client.get('/admin/discipline-issues/4/approve/')
        self.api.discipline_issues.approve.assert_not_called()

    def test_document_download(self):
        self.api.discipline_issues.download_document.return_value = MagicMock(
            filename='statement.pdf', content=b'%PDF', content_type='application/pdf')
        response = self.client.get('/admin/discipline-issues/4/download/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Disposition'], 'attachment; filename="statement.pdf"')
        self.assertEqual(response.content, b'%PDF')

    def test_reports_flag_gates_both_screens(self):
        login_as(self.client, make_principal('admin', can_manage_users=True))
        for path in ('/admin/discipline-issues/', '/admin/system-report/'):
            with self.subTest(path=path):
                response = self.client.get(path)
                self.assertEqual(response.status_code, 302)
                self.assertEqual(response.url, '/admin/')
        self.api.discipline_issues.get_all.assert_not_called()
        self.api.courses.get_all.assert_not_called()


class SystemReportTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        self.api.courses.get_all.return_value = [{'id': 3, 'name': 'C3'}, {'id': 4, 'name': 'C4'}]
        self.api.users.get_all.return_value = [
            {'id': 1, 'role': 'trainee', 'course_id': 3},
            {'id': 2, 'role': 'trainee', 'course_id': 3},
            {'id': 3, 'role': 'instructor', 'course_id': 4},
        ]
        self.api.materials.get_all.return_value = [{'id': 1, 'type': 'pdf', 'course_id': 3}]
        self.api.subjects.get_all.return_value = []
        self.api.gallery.get_all.return_value = [{'id': 1, 'course_id': 4}]
        self.api.patients.get_all.return_value = [{'id': 10, 'course_id': 3}, {'id': 11, 'course_id': 4}]
        self.api.medical_reports.get_all.return_value = [{'id': 1, 'patient_id': 10}, {'id': 2, 'patient_id': 11}]
        self.api.attendance.get_all.return_value = [{'id': 1, 'patient_id': 11}]

    def test_super_admin_gets_per_course_breakdown(self):
        login_as(self.client, make_principal('super_admin', id=99))
        response = self.client.get('/admin/system-report/')
        self.assertEqual(response.status_code, 200)
        totals = {key: count for key, label, count in response.context['summary']['totals']}
        self.assertEqual(totals['users'], 3)
        self.assertEqual(totals['reports'], 2)
        breakdown = {row['course']['id']: row['counts'] for row in response.context['breakdown']}
        self.assertEqual(breakdown[3]['users'], 2)
        self.assertEqual(breakdown[4]['attendance'], 1)
        self.assertEqual(breakdown[4]['reports'], 1)

    def test_admin_sees_only_their_course(self):
        login_as(self.client, make_principal('admin', course=CourseRef(3, 'C3'), can_manage_reports=True))
        response = self.client.get('/admin/system-report/')
        summary = response.context['summary']
        totals = {key: count for key, label, count in summary['totals']}
        self.assertEqual(totals['courses'], 1)
        self.assertEqual(totals['patients'], 1)
        self.assertEqual(totals['attendance'], 0)
        self.assertEqual(summary['users_by_role'], [('trainee', 2)])
        self.assertIsNone(response.context['breakdown'])

    def test_count_by_labels_blanks(self):
        records = [{'type': 'pdf'}, {'type': None}, {'type': 'pdf'}]
        self.assertEqual(reports.count_by(records, 'type'), [('pdf', 2), ('unknown', 1)])


class UserProfileTests(PortalTestCase):
    def test_profile_shows_only_that_users_records(self):
        login_as(self.client, make_principal('admin', can_manage_users=True))
        self.api.users.get.return_value = {'id': 30, 'name': 'Pte Bloggs', 'email': 'b@tawa.test'}
        self.api.medical_records.get_all.return_value = [
            {'id': 1, 'user_id': 30, 'blood_type': 'O+'}, {'id': 2, 'user_id': 31},
        ]
        self.api.discipline_issues.get_all.return_value = [{'id': 4, 'user_id': 30, 'title': 'Late'}]

        response = self.client.get('/admin/users/30/profile/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([r['id'] for r in response.context['medical_records']], [1])
        self.assertContains(response, 'Late')
        self.api.medical_records.get_all.assert_called_once_with(user_id=30)
        self.api.discipline_issues.get_all.assert_called_once_with(user_id=30)


class DoctorScreenTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        login_as(self.client, make_principal('doctor', name='Dr House', course=CourseRef(5, 'C5')))

    def test_patient_register(self):
        response = self.client.post('/doctor/patients/', {
            'full_name': 'Pte Bloggs', 'email': 'bloggs@tawa.test',
            'phone': '0700000000', 'emergency_contact': 'Mrs Bloggs',
        })
        self.assertEqual(response.status_code, 302)
        payload = self.api.patients.create.call_args.args[0]
        self.assertEqual(payload['full_name'], 'Pte Bloggs')
        self.assertNotIn('blood_type', payload)

    def test_attendance_status_filter(self):
        self.api.attendance.get_all.return_value = [
            {'id': 1, 'status': 'Present', 'patient': {'full_name': 'A'}},
            {'id': 2, 'status': 'Absent', 'patient': {'full_name': 'B'}},
        ]
        self.api.patients.get_all.return_value = []
        response = self.client.get('/doctor/attendance/', {'status': 'Absent'})
        self.assertEqual([r['id'] for r in response.context['records']], [2])

    def test_medical_record_for_trainee(self):
        self.api.users.get_all.return_value = [{'id': 30, 'name': 'Pte Bloggs', 'role': 'trainee'}]
        self.api.medical_records.get_all.return_value = []
        response = self.client.post('/doctor/medical-records/', {
            'user_id': '30', 'record_date': '2025-02-01', 'blood_type': 'O+', 'hiv_status': 'Negative',
        })
        self.assertEqual(response.status_code, 302)
        self.api.medical_records.create.assert_called_once_with({
            'user_id': 30, 'record_date': '2025-02-01', 'blood_type': 'O+', 'hiv_status': 'Negative',
        })
        self.api.users.get_all.assert_called_with(role='trainee', course_id=5)

    def test_latest_only_goes_to_backend(self):
        self.api.users.get_all.return_value = []
        self.api.medical_records.get_all.return_value = [{'id': 1, 'user_id': 30, 'user': {'name': 'Pte Bloggs'}}]
        response = self.client.get('/doctor/medical-records/', {'latest': 'true'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context['active']['latest'])
        self.api.medical_records.get_all.assert_called_once_with(course_id=5, latest='true')

    def test_latest_record_for_trainee(self):
        self.api.medical_records.latest_for_user.return_value = {
            'id': 8, 'user_id': 30, 'blood_type': 'AB-', 'user': {'name': 'Pte Bloggs'},
        }
        response = self.client.get('/doctor/medical-records/user/30/latest/')
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'AB-')
        self.api.medical_records.latest_for_user.assert_called_once_with(30)

    def test_trainee_without_record(self):
        self.api.medical_records.latest_for_user.return_value = None
        response = self.client.get('/doctor/medical-records/user/31/latest/')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/doctor/medical-records/')
        self.assertIn('No medical record for this trainee yet.', message_texts(response))


class SessionApiTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_anonymous_gets_401(self):
        response = self.client.get('/api/session/')
        self.assertEqual(response.status_code, 401)

    def test_session_snapshot(self):
        login_as(self.client, make_principal('admin', course=CourseRef(3, 'C3'), can_manage_users=True))
        response = self.client.get('/api/session/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['shell'], 'admin')
        self.assertTrue(response.data['permissions']['can_manage_users'])
        self.assertFalse(response.data['permissions']['can_manage_gallery'])
        self.assertEqual(response.data['effective_course'], {'id': 3, 'name': 'C3'})
        self.assertIsNone(response.data['selected_course'])

    def test_course_context_select_and_clear(self):
        login_as(self.client, make_principal('instructor', course=CourseRef(3, 'C3')))
        response = self.client.post('/api/course-context/', {'course': {'id': 6, 'name': 'C6'}}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['effective_course'], {'id': 6, 'name': 'C6'})

        response = self.client.post('/api/course-context/', {'course': None}, format='json')
        self.assertEqual(response.data['effective_course'], {'id': 3, 'name': 'C3'})

    def test_bad_course_is_rejected(self):
        login_as(self.client, make_principal('instructor'))
        response = self.client.post('/api/course-context/', {'course': {'id': 0}}, format='json')
        self.assertEqual(response.status_code, 400)


class CheckBackendCommandTests(PortalTestCase):
    def test_reports_not_set_up(self):
        self.api.setup.check.return_value = False
        out = io.StringIO()
        call_command('check_backend', stdout=out)
        self.assertIn('not set up', out.getvalue())

    def test_strict_fails_when_unreachable(self):
        self.api.setup.check.side_effect = ApiError('Could not reach the server. Please try again.')
        with self.assertRaises(CommandError):
            call_command('check_backend', '--strict', stdout=io.StringIO())
