# authentication related views - landing, login, super admin login, logout, setup
# kept these together since they all deal with getting a user into the right shell

import logging

from django.contrib import messages
from django.shortcuts import redirect, render

from ..client import ApiError
from ..decorators import redirect_home
from ..forms import LoginForm, SetupForm, SuperAdminLoginForm

logger = logging.getLogger(__name__)

SETUP_DONE_KEY = 'portal_setup_done'


def backend_is_setup(request):
    # once the backend says yes we stop asking for this browser session
    if request.session.get(SETUP_DONE_KEY):
        return True
    try:
        done = request.api.setup.check()
    except ApiError as e:
        # can't tell, so behave like a fresh install
        logger.warning("Setup check failed: %s", e.message)
        return False
    if done:
        request.session[SETUP_DONE_KEY] = True
    return done


# Landing page - sends people where they need to be
def landing_view(request):
    if request.principal:
        return redirect_home(request.principal)
    if not backend_is_setup(request):
        return redirect('setup')
    return render(request, 'portal/landing.html')


def home_view(request):
    if not request.principal:
        return redirect('login')
    return redirect_home(request.principal)


# Login view
def login_view(request):
    if request.principal:
        return redirect_home(request.principal)

    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            auth = request.auth_session
            ok = auth.login(
                form.cleaned_data['user_id'],
                form.cleaned_data['password'],
                role=form.cleaned_data.get('role') or None,
            )
            if ok:
                principal = auth.principal
                messages.success(request, f'Welcome back, {principal.name}!')
                return redirect_home(principal)
            messages.error(request, auth.last_error or 'Invalid user ID or password')
        else:
            messages.error(request, 'Invalid user ID or password')
    else:
        form = LoginForm(initial={'role': request.GET.get('role', '')})

    return render(request, 'portal/login.html', {'form': form})


def super_admin_login_view(request):
    if request.principal:
        return redirect_home(request.principal)

    if request.method == 'POST':
        form = SuperAdminLoginForm(request.POST)
        if form.is_valid():
            auth = request.auth_session
            result = auth.super_admin_login(form.cleaned_data['user_id'], form.cleaned_data['password'])
            if result.success:
                messages.success(request, f'Welcome back, {result.user.name}!')
                return redirect_home(result.user)
            messages.error(request, auth.last_error or 'Invalid credentials')
        else:
            messages.error(request, 'Invalid credentials')
    else:
        form = SuperAdminLoginForm()

    return render(request, 'portal/super_admin_login.html', {'form': form})


# Logout view - simple one
def logout_view(request):
    request.auth_session.logout()
    messages.success(request, 'You have been logged out.')
    return redirect('login')


# first run - create the admin account and the first course
def setup_view(request):
    if request.principal:
        return redirect_home(request.principal)
    if request.method != 'POST' and backend_is_setup(request):
        messages.info(request, 'The system is already set up. Please log in.')
        return redirect('login')

    if request.method == 'POST':
        form = SetupForm(request.POST)
        if form.is_valid():
            try:
                request.api.setup.bootstrap(form.payload())
            except ApiError as e:
                logger.warning("Setup failed: %s", e.message)
                messages.error(request, f'Setup failed: {e.message}')
            else:
                request.session[SETUP_DONE_KEY] = True
                messages.success(request, 'Setup complete! You can now log in.')
                return redirect('login')
        else:
            messages.error(request, 'Please fix the errors.')
    else:
        form = SetupForm()

    return render(request, 'portal/setup.html', {'form': form})
