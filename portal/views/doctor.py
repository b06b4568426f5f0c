# doctor views - patients, medical reports, attendance, medical records

from functools import partial

from django.contrib import messages
from django.shortcuts import redirect, render

from ..client import ApiError
from ..decorators import screen
from ..forms import AttendanceForm, MedicalRecordForm, MedicalReportForm, PatientForm
from ..identity import Role
from ..screens import (
    apply_query, confirm_delete, edit_screen, load_collection, load_together,
    shell_reverse, submit_form,
)


# Patients
@screen()
def patients(request):
    api = request.api
    back = shell_reverse(request, 'patients')

    form = PatientForm(request.POST or None)
    if request.method == 'POST':
        if submit_form(request, form, api.patients.create, 'Patient registered', 'Failed to register patient'):
            return redirect(back)

    state = load_collection(request, api.patients.get_all, 'patients', **request.course_context.scope())
    records, active = apply_query(request, state.records, ['full_name', 'email', 'phone'])
    return render(request, 'portal/patients.html', {'state': state, 'patients': records, 'active': active, 'form': form})


@screen()
def patient_edit(request, pk):
    api = request.api
    return edit_screen(
        request, 'Patient',
        fetch=lambda: api.patients.get(pk),
        update=lambda data: api.patients.update(pk, data),
        make_form=PatientForm,
        back_url=shell_reverse(request, 'patients'),
    )


@screen()
def patient_delete(request, pk):
    return confirm_delete(request, 'Patient', lambda: request.api.patients.delete(pk),
                          shell_reverse(request, 'patients'))


# Medical reports - the form needs the patient list
@screen()
def medical_reports(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'medical_reports')

    state = load_together(
        request, 'medical reports',
        reports=partial(api.medical_reports.get_all, **scope),
        patients=partial(api.patients.get_all, **scope),
    )

    form = MedicalReportForm(request.POST or None, patients=state.records['patients'],
                             initial={'doctor': request.principal.name})
    if request.method == 'POST':
        if submit_form(request, form, api.medical_reports.create, 'Medical report saved', 'Failed to save medical report'):
            return redirect(back)

    records, active = apply_query(request, state.records['reports'], ['patient.full_name', 'diagnosis', 'doctor'])
    return render(request, 'portal/medical_reports.html', {
        'state': state, 'reports': records, 'active': active, 'form': form,
    })


@screen()
def medical_report_edit(request, pk):
    api = request.api
    patients = load_collection(request, api.patients.get_all, 'patients', **request.course_context.scope())
    return edit_screen(
        request, 'Medical report',
        fetch=lambda: api.medical_reports.get(pk),
        update=lambda data: api.medical_reports.update(pk, data),
        make_form=partial(MedicalReportForm, patients=patients.records),
        back_url=shell_reverse(request, 'medical_reports'),
    )


@screen()
def medical_report_delete(request, pk):
    return confirm_delete(request, 'Medical report', lambda: request.api.medical_reports.delete(pk),
                          shell_reverse(request, 'medical_reports'))


# Attendance
@screen()
def attendance(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'attendance')

    state = load_together(
        request, 'attendance',
        records=partial(api.attendance.get_all, **scope),
        patients=partial(api.patients.get_all, **scope),
    )

    form = AttendanceForm(request.POST or None, patients=state.records['patients'])
    if request.method == 'POST':
        if submit_form(request, form, api.attendance.create, 'Attendance recorded', 'Failed to record attendance'):
            return redirect(back)

    records, active = apply_query(request, state.records['records'], ['patient.full_name', 'status'],
                                  {'status': 'status'})
    return render(request, 'portal/attendance.html', {
        'state': state,
        'records': records,
        'active': active,
        'form': form,
        'statuses': AttendanceForm.STATUS_CHOICES,
    })


@screen()
def attendance_edit(request, pk):
    api = request.api
    patients = load_collection(request, api.patients.get_all, 'patients', **request.course_context.scope())
    return edit_screen(
        request, 'Attendance record',
        fetch=lambda: api.attendance.get(pk),
        update=lambda data: api.attendance.update(pk, data),
        make_form=partial(AttendanceForm, patients=patients.records),
        back_url=shell_reverse(request, 'attendance'),
    )


@screen()
def attendance_delete(request, pk):
    return confirm_delete(request, 'Attendance record', lambda: request.api.attendance.delete(pk),
                          shell_reverse(request, 'attendance'))


# Medical records - full examinations of trainees, picked from the course's trainees
@screen()
def medical_records(request):
    api = request.api
    scope = request.course_context.scope()
    back = shell_reverse(request, 'medical_records')

    filters = dict(scope)
    latest_only = request.GET.get('latest') == 'true'
    if latest_only:
        # one record per trainee, the newest
        filters['latest'] = 'true'

    state = load_together(
        request, 'medical records',
        records=partial(api.medical_records.get_all, **filters),
        trainees=partial(api.users.get_all, role=Role.TRAINEE.value, **scope),
    )

    form = MedicalRecordForm(request.POST or None, trainees=state.records['trainees'])
    if request.method == 'POST':
        if submit_form(request, form, api.medical_records.create, 'Medical record saved', 'Failed to save medical record'):
            return redirect(back)

    records, active = apply_query(request, state.records['records'], ['user.name', 'user.user_id', 'blood_type'])
    active['latest'] = latest_only
    return render(request, 'portal/medical_records.html', {
        'state': state, 'records': records, 'active': active, 'form': form,
    })


@screen()
def medical_record_edit(request, pk):
    api = request.api
    trainees = load_collection(request, api.users.get_all, 'trainees',
                               role=Role.TRAINEE.value, **request.course_context.scope())
    return edit_screen(
        request, 'Medical record',
        fetch=lambda: api.medical_records.get(pk),
        update=lambda data: api.medical_records.update(pk, data),
        make_form=partial(MedicalRecordForm, trainees=trainees.records),
        back_url=shell_reverse(request, 'medical_records'),
    )


@screen()
def medical_record_delete(request, pk):
    return confirm_delete(request, 'Medical record', lambda: request.api.medical_records.delete(pk),
                          shell_reverse(request, 'medical_records'))


@screen()
def medical_record_latest(request, user_id):
    back = shell_reverse(request, 'medical_records')
    try:
        record = request.api.medical_records.latest_for_user(user_id)
    except ApiError as e:
        if e.is_unauthorized:
            raise
        messages.error(request, f'Failed to load medical record: {e.message}')
        return redirect(back)
    if record is None:
        messages.info(request, 'No medical record for this trainee yet.')
        return redirect(back)
    return render(request, 'portal/medical_record_detail.html', {'record': record, 'back_url': back})
