from .shells import shell_for


def portal(request):
    # sidebar, current user and course for every template
    principal = getattr(request, 'principal', None)
    if principal is None:
        return {'principal': None, 'shell': None, 'nav': [], 'effective_course': None}

    shell = getattr(request, 'shell', None) or shell_for(principal.role)
    return {
        'principal': principal,
        'shell': shell,
        'nav': shell.nav_for(principal) if shell else [],
        'effective_course': request.course_context.effective_course,
    }
