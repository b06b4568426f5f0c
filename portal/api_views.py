from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .authentication import PortalSessionAuthentication
from .identity import CourseRef
from .serializers import CourseRefSerializer, SessionSerializer
from .shells import shell_for

# small json api over the portal session
# pages use it to read who is logged in and to switch course without a full form post


def effective_course_data(request):
    course = request._request.course_context.effective_course
    return course.as_dict() if course else None


class SessionView(APIView):
    authentication_classes = [PortalSessionAuthentication]
    permission_classes = [IsAuthenticated]

    def get(self, request):
        principal = request.user
        shell = shell_for(principal.role)
        selected = request._request.course_context.selected_course

        snapshot = principal.to_snapshot()
        serializer = SessionSerializer({
            'user': {k: v for k, v in snapshot.items() if k != 'permissions'},
            'permissions': snapshot['permissions'],
            'shell': shell.name if shell else None,
            'selected_course': selected.as_dict() if selected else None,
            'effective_course': effective_course_data(request),
        })
        return Response(serializer.data)


class CourseContextView(APIView):
    authentication_classes = [PortalSessionAuthentication]
    permission_classes = [IsAuthenticated]

    def post(self, request):
        # {"course": {"id": 3, "name": "..."}} selects, {"course": null} goes back to the default
        if 'course' not in request.data:
            return Response({'course': ['This field is required.']}, status=status.HTTP_400_BAD_REQUEST)

        context = request._request.course_context
        course = request.data['course']
        if course is None:
            context.set_selected_course(None)
        else:
            serializer = CourseRefSerializer(data=course)
            serializer.is_valid(raise_exception=True)
            context.set_selected_course(CourseRef(**serializer.validated_data))

        return Response({'effective_course': effective_course_data(request)})
