# system report numbers, worked out from collections we already fetched
# medical reports and attendance carry no course, they follow their patient

from collections import Counter

SECTIONS = (
    ('users', 'Users'),
    ('materials', 'Materials'),
    ('subjects', 'Subjects'),
    ('gallery', 'Gallery items'),
    ('patients', 'Patients'),
    ('reports', 'Medical reports'),
    ('attendance', 'Attendance records'),
)


def count_by(records, field):
    counts = Counter(r.get(field) or 'unknown' for r in records)
    return sorted(counts.items())


def totals(data):
    rows = [('courses', 'Courses', len(data['courses']))]
    rows += [(key, label, len(data[key])) for key, label in SECTIONS]
    return rows


def for_course(data, course_id):
    """Only the records that belong to one course."""
    patients = [p for p in data['patients'] if p.get('course_id') == course_id]
    patient_ids = {p['id'] for p in patients}
    scoped = {
        key: [r for r in data[key] if r.get('course_id') == course_id]
        for key in ('users', 'materials', 'subjects', 'gallery')
    }
    scoped['courses'] = [c for c in data['courses'] if c['id'] == course_id]
    scoped['patients'] = patients
    scoped['reports'] = [r for r in data['reports'] if r.get('patient_id') in patient_ids]
    scoped['attendance'] = [r for r in data['attendance'] if r.get('patient_id') in patient_ids]
    return scoped


def summarize(data):
    return {
        'totals': totals(data),
        'users_by_role': count_by(data['users'], 'role'),
        'materials_by_type': count_by(data['materials'], 'type'),
    }


def course_breakdown(data):
    rows = []
    for course in data['courses']:
        scoped = for_course(data, course['id'])
        rows.append({
            'course': course,
            'counts': {key: len(scoped[key]) for key, label in SECTIONS},
            'users_by_role': count_by(scoped['users'], 'role'),
        })
    return rows
