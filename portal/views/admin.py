# admin-only screens - subjects, courses, course metadata, doctor oversight, discipline, reports, permissions

from functools import partial

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import redirect, render

from ..client import ApiError
from ..decorators import screen
from .. import reports
from ..forms import (
    CourseForm, CourseMetadataForm, DisciplineIssueForm, DisciplineIssueUpdateForm,
    PermissionsForm, RejectIssueForm, SubjectForm,
)
from ..identity import PermissionSet, Role
from ..screens import (
    apply_query, confirm_delete, edit_screen, load_collection, load_together,
    run_mutation, shell_reverse, submit_form,
)
from ..serializers import ActivitySerializer, CourseSerializer, DisciplineIssueSerializer

ADMIN_ROLES = [Role.ADMIN, Role.SUPER_ADMIN]


# Subjects
@screen('can_manage_subjects', roles=ADMIN_ROLES)
def subjects(request):
    api = request.api
    back = shell_reverse(request, 'subjects')

    form = SubjectForm(request.POST or None)
    if request.method == 'POST':
        if submit_form(request, form, api.subjects.create, 'Subject added', 'Failed to add subject'):
            return redirect(back)

    state = load_collection(request, api.subjects.get_all, 'subjects', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['name', 'code'])
    return render(request, 'portal/subjects.html', {'state': state, 'subjects': records, 'active': active, 'form': form})


@screen('can_manage_subjects', roles=ADMIN_ROLES)
def subject_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Subject',
        fetch=lambda: api.subjects.get(pk),
        update=lambda data: api.subjects.update(pk, data),
        make_form=SubjectForm,
        back_url=shell_reverse(request, 'subjects'),
    )


@screen('can_manage_subjects', roles=ADMIN_ROLES)
def subject_delete(request, pk):
    return confirm_delete(request, 'Subject', lambda: request.api.subjects.delete(pk),
                          shell_reverse(request, 'subjects'))


# Courses
@screen(roles=ADMIN_ROLES)
def courses(request):
    api = request.api
    back = shell_reverse(request, 'courses')

    form = CourseForm(request.POST or None)
    if request.method == 'POST':
        if form.is_valid():
            created = run_mutation(request, lambda: api.courses.create(form.payload()),
                                   'Course created', 'Failed to create course')
            if created:
                # the backend assigns the new course to the admin who made it
                request.auth_session.refresh_user()
            return redirect(back)
        messages.error(request, 'Please fix the errors.')

    state = load_collection(request, api.courses.get_all, 'courses')
    records, active = apply_query(request, state.records, ['name', 'code', 'type'], {'status': 'status'})
    return render(request, 'portal/courses.html', {
        'state': state,
        'courses': records,
        'active': active,
        'form': form,
        'statuses': CourseSerializer.STATUS_CHOICES,
    })


@screen(roles=ADMIN_ROLES)
def course_detail(request, pk):
    # enrolled users plus enrol / unenrol
    api = request.api
    back = shell_reverse(request, 'course_detail', pk)

    if request.method == 'POST':
        user_id = request.POST.get('user_id')
        if not (user_id or '').isdigit():
            messages.error(request, 'Please pick a user.')
        else:
            if request.POST.get('action') == 'unenroll':
                changed = run_mutation(request, lambda: api.courses.unenroll_user(pk, user_id),
                                       'User removed from course', 'Failed to remove user')
            else:
                changed = run_mutation(request, lambda: api.courses.enroll_user(pk, user_id),
                                       'User enrolled', 'Failed to enroll user')
            if changed and int(user_id) == request.principal.id:
                # enrolling or removing yourself changes your own course
                request.auth_session.refresh_user()
        return redirect(back)

    state = load_together(
        request, 'course',
        course=lambda: api.courses.get(pk),
        enrolled=lambda: api.courses.enrolled_users(pk),
        users=api.users.get_all,
    )
    enrolled, active = apply_query(request, state.records['enrolled'], ['name', 'email', 'user_id'])
    enrolled_ids = {u['id'] for u in state.records['enrolled']}

    return render(request, 'portal/course_detail.html', {
        'state': state,
        'course': state.records['course'] or None,
        'enrolled': enrolled,
        'active': active,
        'candidates': [u for u in state.records['users'] if u['id'] not in enrolled_ids],
    })


@screen(roles=ADMIN_ROLES)
def course_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Course',
        fetch=lambda: api.courses.get(pk),
        update=lambda data: api.courses.update(pk, data),
        make_form=partial(CourseForm, editing=True),
        back_url=shell_reverse(request, 'courses'),
    )


@screen(roles=ADMIN_ROLES)
def course_delete(request, pk):
    return confirm_delete(request, 'Course', lambda: request.api.courses.delete(pk), shell_reverse(request, 'courses'))


# Course metadata - the dropdown values used when creating courses
@screen(roles=ADMIN_ROLES)
def course_metadata(request):
    api = request.api
    back = shell_reverse(request, 'course_metadata')

    form = CourseMetadataForm(request.POST or None)
    if request.method == 'POST':
        if submit_form(request, form, api.course_metadata.create, 'Metadata added', 'Failed to add metadata'):
            return redirect(back)

    state = load_collection(request, api.course_metadata.get_all, 'course metadata')
    records, active = apply_query(request, state.records, ['value', 'description'], {'type': 'type'})
    return render(request, 'portal/course_metadata.html', {
        'state': state,
        'entries': records,
        'active': active,
        'form': form,
        'types': CourseMetadataForm.base_fields['type'].choices,
    })


@screen(roles=ADMIN_ROLES)
def course_metadata_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Metadata',
        fetch=lambda: api.course_metadata.get(pk),
        update=lambda data: api.course_metadata.update(pk, data),
        make_form=CourseMetadataForm,
        back_url=shell_reverse(request, 'course_metadata'),
    )


@screen(roles=ADMIN_ROLES)
def course_metadata_delete(request, pk):
    return confirm_delete(request, 'Metadata', lambda: request.api.course_metadata.delete(pk),
                          shell_reverse(request, 'course_metadata'))


# Doctor activities - the type filter and paging happen on the backend
@screen('can_manage_activities', roles=ADMIN_ROLES)
def doctor_activities(request):
    activity_type = request.GET.get('type') or None
    if activity_type not in dict(ActivitySerializer.TYPE_CHOICES):
        activity_type = None
    page = request.GET.get('page', '1')
    page = int(page) if page.isdigit() and int(page) > 0 else 1

    state = load_collection(
        request, request.api.activity_log.doctor_activities, 'doctor activities',
        type=activity_type, page=page,
    )
    activity_page = state.records if state.loaded else None
    records, active = apply_query(
        request, activity_page.items if activity_page else [],
        ['title', 'description', 'doctor_name', 'patient_name'],
    )
    active['type'] = activity_type or 'all'

    pagination = activity_page.pagination if activity_page else None
    previous_query = next_query = None
    if pagination:
        if pagination['current_page'] > 1:
            previous_query = page_query(request, pagination['current_page'] - 1)
        if pagination['current_page'] < pagination['last_page']:
            next_query = page_query(request, pagination['current_page'] + 1)

    return render(request, 'portal/doctor_activities.html', {
        'state': state,
        'activities': records,
        'pagination': pagination,
        'previous_query': previous_query,
        'next_query': next_query,
        'active': active,
        'types': ActivitySerializer.TYPE_CHOICES,
    })


def page_query(request, page):
    # current filters with a different page
    params = request.GET.copy()
    params['page'] = page
    return params.urlencode()


# Doctor view - read-only look at what the doctors are recording
@screen('can_view_doctor_dashboard', roles=ADMIN_ROLES)
def doctor_view(request):
    api = request.api
    scope = request.course_context.scope()
    state = load_together(
        request, 'doctor dashboard',
        patients=partial(api.patients.get_all, **scope),
        medical_reports=partial(api.medical_reports.get_all, **scope),
        attendance=partial(api.attendance.get_all, **scope),
    )
    patients, active = apply_query(request, state.records['patients'], ['full_name', 'email'])
    return render(request, 'portal/doctor_view.html', {
        'state': state,
        'patients': patients,
        'active': active,
        'report_count': len(state.records['medical_reports']),
        'attendance_count': len(state.records['attendance']),
        'recent_reports': state.records['medical_reports'][:10],
    })


# Discipline issues - admins report them, super admins approve or reject
@screen('can_manage_reports', roles=ADMIN_ROLES)
def discipline_issues(request):
    api = request.api
    back = shell_reverse(request, 'discipline_issues')
    scope = request.course_context.scope()

    state = load_together(
        request, 'discipline issues',
        issues=partial(api.discipline_issues.get_all, **scope),
        users=partial(api.users.get_all, **scope),
    )
    users = state.records['users']

    if request.method == 'POST':
        form = DisciplineIssueForm(request.POST, request.FILES, users=users)
        if form.is_valid():
            data = form.payload()
            # super admins can report against any course, so send the one they are in
            if request.principal.is_super_admin:
                data.update(scope)
            run_mutation(request, lambda: api.discipline_issues.create(data, form.cleaned_data['document']),
                         'Discipline issue reported', 'Failed to report discipline issue')
            return redirect(back)
        messages.error(request, 'Please fix the errors.')
    else:
        form = DisciplineIssueForm(users=users)

    records, active = apply_query(
        request, state.records['issues'], ['title', 'description', 'user.name'],
        {'status': 'status', 'severity': 'severity', 'approval': 'approval_status'},
    )
    return render(request, 'portal/discipline_issues.html', {
        'state': state,
        'issues': records,
        'active': active,
        'form': form,
        'reject_form': RejectIssueForm(auto_id=False),
        'statuses': DisciplineIssueSerializer.STATUS_CHOICES,
        'severities': DisciplineIssueSerializer.SEVERITY_CHOICES,
        'approvals': DisciplineIssueSerializer.APPROVAL_CHOICES,
    })


@screen('can_manage_reports', roles=ADMIN_ROLES)
def discipline_issue_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Discipline issue',
        fetch=lambda: api.discipline_issues.get(pk),
        update=lambda data: api.discipline_issues.update(pk, data),
        make_form=DisciplineIssueUpdateForm,
        back_url=shell_reverse(request, 'discipline_issues'),
    )


@screen('can_manage_reports', roles=ADMIN_ROLES)
def discipline_issue_delete(request, pk):
    return confirm_delete(request, 'Discipline issue', lambda: request.api.discipline_issues.delete(pk),
                          shell_reverse(request, 'discipline_issues'))


@screen('can_manage_reports', roles=ADMIN_ROLES)
def discipline_issue_download(request, pk):
    try:
        download = request.api.discipline_issues.download_document(pk)
    except ApiError as e:
        if e.is_unauthorized:
            raise
        messages.error(request, f'Failed to download document: {e.message}')
        return redirect(shell_reverse(request, 'discipline_issues'))
    response = HttpResponse(download.content, content_type=download.content_type)
    response['Content-Disposition'] = f'attachment; filename="{download.filename}"'
    return response


@screen('can_manage_reports', roles=[Role.SUPER_ADMIN])
def discipline_issue_approve(request, pk):
    if request.method == 'POST':
        run_mutation(request, lambda: request.api.discipline_issues.approve(pk),
                     'Discipline issue approved', 'Failed to approve discipline issue')
    return redirect(shell_reverse(request, 'discipline_issues'))


@screen('can_manage_reports', roles=[Role.SUPER_ADMIN])
def discipline_issue_reject(request, pk):
    if request.method == 'POST':
        form = RejectIssueForm(request.POST)
        if form.is_valid():
            reason = form.cleaned_data['rejection_reason']
            run_mutation(request, lambda: request.api.discipline_issues.reject(pk, reason),
                         'Discipline issue rejected', 'Failed to reject discipline issue')
        else:
            messages.error(request, 'Please give a reason for the rejection.')
    return redirect(shell_reverse(request, 'discipline_issues'))


# System report - totals across every collection, per course for super admins
@screen('can_manage_reports', roles=ADMIN_ROLES)
def system_report(request):
    api = request.api
    state = load_together(
        request, 'system report',
        courses=api.courses.get_all,
        users=api.users.get_all,
        materials=api.materials.get_all,
        subjects=api.subjects.get_all,
        gallery=api.gallery.get_all,
        patients=api.patients.get_all,
        reports=api.medical_reports.get_all,
        attendance=api.attendance.get_all,
    )
    course = request.course_context.effective_course
    data = state.records
    if course is not None:
        data = reports.for_course(data, course.id)

    breakdown = None
    if request.principal.is_super_admin and course is None:
        breakdown = reports.course_breakdown(data)

    return render(request, 'portal/system_report.html', {
        'state': state,
        'course': course,
        'summary': reports.summarize(data),
        'breakdown': breakdown,
        'sections': reports.SECTIONS,
    })


# User profile - one user with their medical records and discipline history
@screen('can_manage_users', roles=ADMIN_ROLES)
def user_profile(request, pk):
    api = request.api
    state = load_together(
        request, 'user profile',
        user=lambda: api.users.get(pk),
        medical_records=partial(api.medical_records.get_all, user_id=pk),
        discipline_issues=partial(api.discipline_issues.get_all, user_id=pk),
    )
    # older backends ignore the user_id filter
    return render(request, 'portal/user_profile.html', {
        'state': state,
        'profile': state.records['user'] or None,
        'medical_records': [r for r in state.records['medical_records'] if r.get('user_id') == pk],
        'discipline_issues': [r for r in state.records['discipline_issues'] if r.get('user_id') == pk],
    })


# Admin settings - super admins grant capabilities to each admin
@screen(roles=[Role.SUPER_ADMIN])
def admin_settings(request):
    state = load_collection(request, request.api.admin_permissions.get_all, 'administrators')
    admins, active = apply_query(request, state.records, ['name', 'email', 'user_id'])
    return render(request, 'portal/admin_settings.html', {'state': state, 'admins': admins, 'active': active})


@screen(roles=[Role.SUPER_ADMIN])
def admin_permissions_edit(request, admin_id):
    api = request.api
    back = shell_reverse(request, 'settings')

    if request.method == 'POST':
        form = PermissionsForm(request.POST)
        if form.is_valid():
            permissions = PermissionSet(**form.cleaned_data)
            run_mutation(request, lambda: api.admin_permissions.update(admin_id, permissions),
                         'Permissions updated', 'Failed to update permissions')
            return redirect(back)
        messages.error(request, 'Please fix the errors.')
        admin = None
    else:
        try:
            admins = api.admin_permissions.get_all()
        except ApiError as e:
            if e.is_unauthorized:
                raise
            messages.error(request, f'Failed to load administrators: {e.message}')
            return redirect(back)
        admin = next((a for a in admins if a['id'] == admin_id), None)
        if admin is None:
            messages.error(request, 'Administrator not found')
            return redirect(back)
        form = PermissionsForm(initial=admin['permissions'].as_dict())

    return render(request, 'portal/admin_permissions.html', {'form': form, 'admin': admin, 'cancel_url': back})
