# screens shared between shells - the same view serves /admin/... and /instructor/...
# (and dashboard / course selection for doctors too), the url namespace decides the shell

from functools import partial

from django.contrib import messages
from django.http import HttpResponse
from django.shortcuts import redirect, render

from ..client import ApiError
from ..decorators import screen
from ..filters import distinct_values
from ..forms import (
    AssessmentForm, GalleryUploadForm, GradeForm, GradeUpdateForm,
    MaterialUploadForm, MessageForm, TimetableForm, UserForm,
)
from ..identity import CourseRef, Role
from ..screens import (
    apply_query, confirm_delete, edit_screen, load_collection, load_together,
    run_mutation, shell_reverse, submit_form,
)
from ..serializers import CourseRefSerializer

ADMIN_ROLES = [Role.ADMIN, Role.SUPER_ADMIN]


# Dashboard - counters for whatever the user can open, plus unread notifications
@screen()
def dashboard(request):
    api = request.api
    scope = request.course_context.scope()
    shell = request.shell

    if shell.name == 'doctor':
        counters = [
            ('patients', 'Patients', None, partial(api.patients.get_all, **scope)),
            ('medical_reports', 'Medical Reports', None, partial(api.medical_reports.get_all, **scope)),
            ('attendance', 'Attendance Records', None, partial(api.attendance.get_all, **scope)),
        ]
    elif shell.name == 'instructor':
        counters = [
            ('materials', 'Materials', None, partial(api.materials.get_all, **scope)),
            ('assessments', 'Assessments', None, partial(api.assessments.get_all, **scope)),
            ('timetable', 'Timetable Entries', None, partial(api.timetable.get_all, **scope)),
        ]
    else:
        counters = [
            ('users', 'Users', 'can_manage_users', partial(api.users.get_all, **scope)),
            ('subjects', 'Subjects', 'can_manage_subjects', partial(api.subjects.get_all, **scope)),
            ('materials', 'Materials', 'can_manage_materials', partial(api.materials.get_all, **scope)),
            ('courses', 'Courses', None, api.courses.get_all),
        ]
    # only count what they're allowed to see, the backend would refuse the rest
    counters = [c for c in counters if shell.can_open(request.principal, c[2])]

    fetches = {key: fetch for key, label, capability, fetch in counters}
    fetches['notifications'] = api.notifications.get_all
    state = load_together(request, 'dashboard', **fetches)

    cards = [
        {'key': key, 'label': label, 'count': len(state.records[key])}
        for key, label, capability, fetch in counters
    ]
    unread = [n for n in state.records['notifications'] if not n.get('read_at')]

    return render(request, 'portal/dashboard.html', {
        'state': state,
        'cards': cards,
        'notifications': unread[:5],
        'unread_count': len(unread),
    })


@screen()
def notification_read(request, pk):
    if request.method == 'POST':
        run_mutation(request, lambda: request.api.notifications.mark_read(pk),
                     'Notification marked as read', 'Failed to update notification')
    return redirect(shell_reverse(request, 'dashboard'))


@screen()
def notifications_read_all(request):
    if request.method == 'POST':
        run_mutation(request, request.api.notifications.mark_all_read,
                     'All notifications marked as read', 'Failed to update notifications')
    return redirect(shell_reverse(request, 'dashboard'))


# Course selection - pick which course every other screen is scoped to
@screen()
def course_select(request):
    context = request.course_context
    back = shell_reverse(request, 'course_select')

    if request.method == 'POST':
        if request.POST.get('clear'):
            context.set_selected_course(None)
            messages.success(request, 'Back to your default course')
        else:
            serializer = CourseRefSerializer(data={
                'id': request.POST.get('course_id'),
                'name': request.POST.get('course_name', ''),
            })
            if serializer.is_valid():
                course = CourseRef(**serializer.validated_data)
                context.set_selected_course(course)
                messages.success(request, f'Now working in {course}')
            else:
                messages.error(request, 'Please pick a course.')
        return redirect(back)

    api = request.api
    fetch = api.courses.get_all if request.principal.role in ADMIN_ROLES else api.courses.my_courses
    state = load_collection(request, fetch, 'courses')
    courses, active = apply_query(request, state.records, ['name', 'code'])

    return render(request, 'portal/course_select.html', {
        'state': state,
        'courses': courses,
        'active': active,
        'selected_course': context.selected_course,
    })


# Users (admin) / Instructors (instructor, read only)
@screen('can_manage_users')
def users(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'users')
    read_only = request.principal.role not in ADMIN_ROLES

    form = None
    if not read_only:
        form = UserForm(request.POST or None)
        if request.method == 'POST':
            if submit_form(request, form, api.users.create, 'User registered', 'Failed to register user'):
                return redirect(back)

    if read_only:
        state = load_collection(request, api.users.get_all, 'instructors', role=Role.INSTRUCTOR.value, **scope)
        records, active = apply_query(request, state.records, ['name', 'email', 'user_id', 'department'])
    else:
        state = load_collection(request, api.users.get_all, 'users', **scope)
        records, active = apply_query(request, state.records, ['name', 'email', 'user_id', 'department'],
                                      {'role': 'role'})

    return render(request, 'portal/users.html', {
        'state': state,
        'users': records,
        'active': active,
        'form': form,
        'read_only': read_only,
        'role_choices': UserForm.ROLE_CHOICES,
    })


@screen('can_manage_users', roles=ADMIN_ROLES)
def user_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'User',
        fetch=lambda: api.users.get(pk),
        update=lambda data: api.users.update(pk, data),
        make_form=partial(UserForm, editing=True),
        back_url=shell_reverse(request, 'users'),
    )


@screen('can_manage_users', roles=ADMIN_ROLES)
def user_delete(request, pk):
    return confirm_delete(request, 'User', lambda: request.api.users.delete(pk), shell_reverse(request, 'users'))


# Materials - upload, list, download, delete
@screen('can_manage_materials')
def materials(request):
    api = request.api
    back = shell_reverse(request, 'materials')

    form = MaterialUploadForm(request.POST, request.FILES) if request.method == 'POST' else MaterialUploadForm()
    if request.method == 'POST':
        if form.is_valid():
            data = form.cleaned_data
            run_mutation(request, lambda: api.materials.create(data['file'], data['name'], data['subject']),
                         'Material uploaded', 'Failed to upload material')
            return redirect(back)
        messages.error(request, 'Please fix the errors.')

    state = load_collection(request, api.materials.get_all, 'materials', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['name', 'subject'], {'subject': 'subject', 'type': 'type'})

    return render(request, 'portal/materials.html', {
        'state': state,
        'materials': records,
        'active': active,
        'form': form,
        'subjects': distinct_values(state.records, 'subject'),
        'types': distinct_values(state.records, 'type'),
    })


@screen('can_manage_materials')
def material_download(request, pk):
    try:
        download = request.api.materials.download(pk)
    except ApiError as e:
        if e.is_unauthorized:
            raise
        messages.error(request, f'Failed to download material: {e.message}')
        return redirect(shell_reverse(request, 'materials'))
    response = HttpResponse(download.content, content_type=download.content_type)
    response['Content-Disposition'] = f'attachment; filename="{download.filename}"'
    return response


@screen('can_manage_materials')
def material_delete(request, pk):
    return confirm_delete(request, 'Material', lambda: request.api.materials.delete(pk),
                          shell_reverse(request, 'materials'))


# Gallery
@screen('can_manage_gallery')
def gallery(request):
    api = request.api
    back = shell_reverse(request, 'gallery')

    form = GalleryUploadForm(request.POST, request.FILES) if request.method == 'POST' else GalleryUploadForm()
    if request.method == 'POST':
        if form.is_valid():
            data = form.cleaned_data
            run_mutation(request, lambda: api.gallery.create(data['image'], data['title']),
                         'Image uploaded', 'Failed to upload image')
            return redirect(back)
        messages.error(request, 'Please fix the errors.')

    state = load_collection(request, api.gallery.get_all, 'gallery', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['title'])

    return render(request, 'portal/gallery.html', {'state': state, 'images': records, 'active': active, 'form': form})


@screen('can_manage_gallery')
def gallery_delete(request, pk):
    return confirm_delete(request, 'Image', lambda: request.api.gallery.delete(pk), shell_reverse(request, 'gallery'))


# Timetable
@screen('can_manage_timetable')
def timetable(request):
    api = request.api
    back = shell_reverse(request, 'timetable')

    form = TimetableForm(request.POST or None)
    if request.method == 'POST':
        if submit_form(request, form, api.timetable.create, 'Timetable entry added', 'Failed to add timetable entry'):
            return redirect(back)

    state = load_collection(request, api.timetable.get_all, 'timetable', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['subject', 'instructor', 'location'], {'date': 'date'})

    return render(request, 'portal/timetable.html', {
        'state': state,
        'entries': records,
        'active': active,
        'form': form,
        'dates': distinct_values(state.records, 'date'),
    })


@screen('can_manage_timetable')
def timetable_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Timetable entry',
        fetch=lambda: api.timetable.get(pk),
        update=lambda data: api.timetable.update(pk, data),
        make_form=TimetableForm,
        back_url=shell_reverse(request, 'timetable'),
    )


@screen('can_manage_timetable')
def timetable_delete(request, pk):
    return confirm_delete(request, 'Timetable entry', lambda: request.api.timetable.delete(pk),
                          shell_reverse(request, 'timetable'))


# Chat board
@screen('can_manage_chat')
def chat(request):
    api = request.api
    back = shell_reverse(request, 'chat')

    form = MessageForm(request.POST or None)
    if request.method == 'POST':
        if submit_form(request, form, api.messages.create, 'Message posted', 'Failed to post message'):
            return redirect(back)

    state = load_collection(request, api.messages.get_all, 'messages', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['message', 'user.name'])

    return render(request, 'portal/chat.html', {'state': state, 'chat_messages': records, 'active': active, 'form': form})


@screen('can_manage_chat')
def chat_delete(request, pk):
    return confirm_delete(request, 'Message', lambda: request.api.messages.delete(pk), shell_reverse(request, 'chat'))


# Assessments - needs the subject list for the form
@screen('can_manage_assessments')
def assessments(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'assessments')

    state = load_together(
        request, 'assessments',
        assessments=partial(api.assessments.get_all, **scope),
        subjects=partial(api.subjects.get_all, **scope),
    )
    subjects = state.records['subjects']

    form = AssessmentForm(request.POST or None, subjects=subjects)
    if request.method == 'POST':
        if submit_form(request, form, api.assessments.create, 'Assessment created', 'Failed to create assessment'):
            return redirect(back)

    records, active = apply_query(request, state.records['assessments'], ['title', 'subject.name'],
                                  {'type': 'type', 'subject': 'subject.name'})

    return render(request, 'portal/assessments.html', {
        'state': state,
        'assessments': records,
        'active': active,
        'form': form,
        'types': AssessmentForm.base_fields['type'].choices,
        'subjects': distinct_values(state.records['assessments'], 'subject.name'),
    })


@screen('can_manage_assessments')
def assessment_edit(request, pk):
    api = request.api
    subjects = load_collection(request, api.subjects.get_all, 'subjects', **request.course_context.scope())
    return edit_screen(
        request, 'Assessment',
        fetch=lambda: api.assessments.get(pk),
        update=lambda data: api.assessments.update(pk, data),
        make_form=partial(AssessmentForm, subjects=subjects.records),
        back_url=shell_reverse(request, 'assessments'),
    )


@screen('can_manage_assessments')
def assessment_delete(request, pk):
    return confirm_delete(request, 'Assessment', lambda: request.api.assessments.delete(pk),
                          shell_reverse(request, 'assessments'))


# Results - grades joined with assessments and trainees
@screen('can_manage_results')
def results(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'results')

    state = load_together(
        request, 'results',
        assessments=partial(api.assessments.get_all, **scope),
        grades=partial(api.grades.get_all, **scope),
        trainees=partial(api.users.get_all, role=Role.TRAINEE.value, **scope),
    )

    form = GradeForm(request.POST or None, assessments=state.records['assessments'], trainees=state.records['trainees'])
    if request.method == 'POST':
        if submit_form(request, form, api.grades.create, 'Grade recorded', 'Failed to record grade'):
            return redirect(back)

    records, active = apply_query(request, state.records['grades'], ['trainee.name', 'assessment.title'],
                                  {'assessment': 'assessment_id'})

    return render(request, 'portal/results.html', {
        'state': state,
        'grades': records,
        'active': active,
        'form': form,
        'assessments': state.records['assessments'],
    })


@screen('can_manage_results')
def grade_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Grade',
        fetch=lambda: api.grades.get(pk),
        update=lambda data: api.grades.update(pk, data),
        make_form=GradeUpdateForm,
        back_url=shell_reverse(request, 'results'),
    )


@screen('can_manage_results')
def grade_delete(request, pk):
    return confirm_delete(request, 'Grade', lambda: request.api.grades.delete(pk), shell_reverse(request, 'results'))
