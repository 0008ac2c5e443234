from django.utils import timezone
from rest_framework import serializers

from mocktests.serializers import MockTestDetailSerializer
from .models import Attempt, AttemptAnswer, SectionResult

# --- Incoming payloads ---

class AnswerSubmitSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    # null or missing means the question was skipped
    selected_answer = serializers.IntegerField(min_value=0, allow_null=True, required=False, default=None)

class SaveProgressSerializer(serializers.Serializer):
    attempt_id = serializers.IntegerField()
    answers = AnswerSubmitSerializer(many=True, required=False, default=list)

class SubmitAttemptSerializer(serializers.Serializer):
    attempt_id = serializers.IntegerField()
    answers = AnswerSubmitSerializer(many=True, required=False)
    is_auto_submit = serializers.BooleanField(required=False, default=False)

# --- Outgoing ---

class AttemptStartSerializer(serializers.ModelSerializer):
    attempt_id = serializers.IntegerField(source='id', read_only=True)
    duration_minutes = serializers.IntegerField(source='test.duration_minutes', read_only=True)
    time_remaining_seconds = serializers.SerializerMethodField()
    test = MockTestDetailSerializer(read_only=True)
    saved_answers = serializers.SerializerMethodField()

    class Meta:
        model = Attempt
        fields = ['attempt_id', 'started_at', 'duration_minutes', 'time_remaining_seconds', 'saved_answers', 'test']

    def get_time_remaining_seconds(self, obj):
        if obj.is_completed or obj.test is None:
            return 0
        elapsed = (timezone.now() - obj.started_at).total_seconds()
        total = obj.test.duration_minutes * 60
        return max(0, int(total - elapsed))

    def get_saved_answers(self, obj):
        return [
            {'question_id': a.question_id, 'selected_answer': a.selected_answer}
            for a in obj.answers.all()
        ]

class AttemptAnswerSerializer(serializers.ModelSerializer):
    class Meta:
        model = AttemptAnswer
        fields = ['question', 'selected_answer', 'is_correct', 'marks_awarded']

class SectionResultSerializer(serializers.ModelSerializer):
    class Meta:
        model = SectionResult
        fields = [
            'section', 'section_title', 'total_questions', 'attempted_questions',
            'correct_answers', 'wrong_answers', 'skipped_questions',
            'marks_obtained', 'total_marks', 'accuracy'
        ]

class AttemptResultSerializer(serializers.ModelSerializer):
    """Scored result as returned straight after submission."""
    attempt_id = serializers.IntegerField(source='id', read_only=True)
    section_results = SectionResultSerializer(many=True, read_only=True)

    class Meta:
        model = Attempt
        fields = [
            'attempt_id', 'score', 'total_marks', 'percentage', 'rank', 'total_attempts',
            'time_spent', 'total_questions', 'attempted_questions', 'correct_answers',
            'wrong_answers', 'skipped_questions', 'accuracy', 'is_auto_submitted',
            'submitted_at', 'section_results'
        ]

class AttemptHistorySerializer(serializers.ModelSerializer):
    """Lightweight serializer for lists / dashboard history."""
    test_id = serializers.IntegerField(read_only=True)
    test_title = serializers.CharField(source='test.title', read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = Attempt
        fields = [
            'id', 'test_id', 'test_title', 'status', 'started_at', 'submitted_at',
            'score', 'total_marks', 'percentage', 'rank', 'total_attempts', 'time_spent'
        ]

class AttemptDetailSerializer(AttemptResultSerializer):
    test_title = serializers.CharField(source='test.title', read_only=True)
    user_email = serializers.CharField(source='user.email', read_only=True)
    answers = AttemptAnswerSerializer(many=True, read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta(AttemptResultSerializer.Meta):
        fields = ['test_id', 'test_title', 'user_email', 'status', 'started_at'] + \
            AttemptResultSerializer.Meta.fields + ['answers']
