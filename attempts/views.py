from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.models import AuditLog
from . import services
from .models import Attempt
from .serializers import (
    SaveProgressSerializer, SubmitAttemptSerializer, AttemptStartSerializer,
    AttemptResultSerializer, AttemptHistorySerializer, AttemptDetailSerializer
)


# --- STUDENT VIEWS ---

class StartAttemptView(views.APIView):
    """
    Student starts a test.
    Creates an attempt (or resumes the open one) and returns the test WITHOUT answers.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, test_id):
        attempt, created = services.start_attempt(request.user, test_id)
        data = AttemptStartSerializer(attempt).data
        if created:
            return Response(data, status=status.HTTP_201_CREATED)
        return Response(data)


class SaveProgressView(views.APIView):
    """Stores answers mid-test so a refresh or crash loses nothing."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, test_id):
        serializer = SaveProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.save_progress(
            serializer.validated_data['attempt_id'],
            request.user,
            serializer.validated_data['answers'],
            test_id=test_id
        )
        return Response({"saved": True})


class SubmitAttemptView(views.APIView):
    """
    Student submits answers (or the client auto-submits on time-out).
    Scores immediately and returns the result with the fresh rank.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, test_id):
        serializer = SubmitAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        attempt = services.submit_attempt(
            data['attempt_id'],
            request.user,
            answers=data.get('answers'),
            is_auto_submit=data['is_auto_submit'],
            test_id=test_id
        )
        AuditLog.record(
            request, AuditLog.Action.SUBMIT, attempt,
            f"{'Auto-submitted' if attempt.is_auto_submitted else 'Submitted'} attempt on test {test_id}: "
            f"score {attempt.score}/{attempt.total_marks}"
        )
        return Response(AttemptResultSerializer(attempt).data)


class AttemptHistoryView(generics.ListAPIView):
    """The logged-in student's completed attempts, newest first."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = AttemptHistorySerializer

    def get_queryset(self):
        queryset = Attempt.objects.filter(user=self.request.user, is_completed=True).select_related('test')
        test_id = self.request.query_params.get('test_id')
        if test_id and test_id.isdigit():
            queryset = queryset.filter(test_id=test_id)
        return queryset.order_by('-submitted_at')


class AttemptDetailView(views.APIView):
    """Full result of one attempt. Owners and admins only."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, attempt_id):
        attempt = services.get_viewable_attempt(attempt_id, request.user)
        return Response(AttemptDetailSerializer(attempt).data)


class AnswerKeyView(views.APIView):
    """Answer key with explanations, available once the attempt is submitted."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, attempt_id):
        return Response(services.get_answer_key(attempt_id, request.user))
