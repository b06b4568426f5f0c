from functools import wraps

from django.contrib import messages
from django.shortcuts import redirect

from .shells import shell_by_namespace, shell_for


def redirect_home(principal):
    # the principal's own dashboard, or the landing page if they have none
    shell = shell_for(principal.role) if principal else None
    if shell is None:
        return redirect('landing')
    return redirect(shell.home)


def screen(capability=None, roles=None):
    """
    Guard a view that lives inside one of the shells.

    The shell comes from the url namespace the view was mounted under, so the
    same view function can serve the admin and instructor areas.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            principal = request.principal
            if principal is None:
                messages.info(request, 'Please log in first.')
                return redirect('login')

            shell = shell_by_namespace(request.resolver_match.namespace)
            allowed = (
                shell is not None
                and shell.can_open(principal, capability)
                and (roles is None or principal.role in roles)
            )
            if not allowed:
                messages.error(request, 'Access denied')
                return redirect_home(principal)

            request.shell = shell
            return view(request, *args, **kwargs)
        return wrapper
    return decorator
