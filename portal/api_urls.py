from django.urls import path

from . import api_views

# /api/session/         who is logged in
# /api/course-context/  pick or clear the working course
urlpatterns = [
    path('session/', api_views.SessionView.as_view(), name='api_session'),
    path('course-context/', api_views.CourseContextView.as_view(), name='api_course_context'),
]
