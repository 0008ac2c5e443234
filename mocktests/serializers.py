# mocktests/serializers.py
from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from cores.exceptions import Conflict
from cores.models import PlatformSetting
from .models import MockTest, Section, Question, Category

# --- Helper Serializers ---

class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = '__all__'

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Authoring view of a question, correct answer included."""
    options = serializers.ListField(child=serializers.CharField(), min_length=2)
    marks = serializers.DecimalField(max_digits=6, decimal_places=2, min_value=Decimal('0.01'), required=False)

    class Meta:
        model = Question
        fields = [
            'id', 'order', 'text', 'options', 'correct_answer', 'explanation',
            'marks', 'difficulty', 'subject', 'tags'
        ]

    def validate(self, attrs):
        # Nested writes may run under a partial root, so check required keys by hand
        for field in ('text', 'options', 'correct_answer'):
            if attrs.get(field) in (None, '', []):
                raise serializers.ValidationError({field: "Each question must have text, options and a correct answer."})
        if attrs['correct_answer'] >= len(attrs['options']):
            raise serializers.ValidationError(
                {'correct_answer': "Each question must have a valid correct answer index."}
            )
        return attrs

class PublicQuestionSerializer(serializers.ModelSerializer):
    """What a learner sees: no correct answer, no explanation."""
    class Meta:
        model = Question
        fields = ['id', 'order', 'text', 'options', 'marks', 'difficulty', 'subject']

# --- Section Serializers ---

class SectionSerializer(serializers.ModelSerializer):
    questions = QuestionSerializer(many=True)

    class Meta:
        model = Section
        fields = ['id', 'title', 'order', 'time_limit_minutes', 'questions']

    def validate(self, attrs):
        if not attrs.get('title'):
            raise serializers.ValidationError({'title': "Each section must have a title."})
        if not attrs.get('questions'):
            raise serializers.ValidationError({'questions': "Each section must have at least one question."})
        return attrs

class PublicSectionSerializer(serializers.ModelSerializer):
    questions = PublicQuestionSerializer(many=True, read_only=True)

    class Meta:
        model = Section
        fields = ['id', 'title', 'order', 'time_limit_minutes', 'questions']

# --- Test Serializers ---

class MockTestSerializer(serializers.ModelSerializer):
    """Admin authoring serializer with nested, writable sections."""
    # Handle category as string (name) instead of ID
    category = serializers.CharField(source='category.name', required=False, allow_blank=True)
    sections = SectionSerializer(many=True)
    duration_minutes = serializers.IntegerField(min_value=1, required=False)
    negative_marking = serializers.DecimalField(max_digits=4, decimal_places=2, min_value=Decimal('0'), required=False)
    total_questions = serializers.IntegerField(read_only=True)
    created_by = serializers.CharField(source='created_by.email', read_only=True)

    class Meta:
        model = MockTest
        fields = [
            'id', 'title', 'slug', 'description', 'category', 'exam_type', 'difficulty',
            'instructions', 'duration_minutes', 'negative_marking', 'total_marks',
            'total_questions', 'is_active', 'is_paid', 'price', 'attempt_count',
            'sections', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['slug', 'total_marks', 'attempt_count', 'created_at', 'updated_at']

    def validate_sections(self, value):
        if not value:
            raise serializers.ValidationError("A test needs at least one section.")
        return value

    def _resolve_category(self, validated_data):
        cat_name = (validated_data.pop('category', None) or {}).get('name')
        if not cat_name:
            return None
        category_obj, _ = Category.objects.get_or_create(name=cat_name.strip())
        return category_obj

    def _write_sections(self, test, sections_data):
        for s_index, section_data in enumerate(sections_data, start=1):
            questions_data = section_data.pop('questions')
            section_data.setdefault('order', s_index)
            section = Section.objects.create(test=test, **section_data)
            for q_index, question_data in enumerate(questions_data, start=1):
                question_data.setdefault('order', q_index)
                Question.objects.create(section=section, **question_data)

    @transaction.atomic
    def create(self, validated_data):
        sections_data = validated_data.pop('sections')
        has_category = 'category' in validated_data
        category_obj = self._resolve_category(validated_data)

        platform = PlatformSetting.load()
        validated_data.setdefault('negative_marking', platform.default_negative_marking)
        validated_data.setdefault('duration_minutes', platform.default_test_duration)

        request = self.context.get('request')
        test = MockTest.objects.create(
            category=category_obj if has_category else None,
            created_by=request.user if request else None,
            **validated_data
        )
        self._write_sections(test, sections_data)
        test.recalculate_total_marks()
        return test

    @transaction.atomic
    def update(self, instance, validated_data):
        sections_data = validated_data.pop('sections', None)
        if 'category' in validated_data:
            instance.category = self._resolve_category(validated_data)

        if sections_data is not None:
            # Questions are frozen once anyone has attempted the test
            if instance.attempts.exists():
                raise Conflict("Questions cannot be changed after the test has been attempted.")
            instance.sections.all().delete()
            self._write_sections(instance, sections_data)

        instance = super().update(instance, validated_data)
        instance.recalculate_total_marks()
        return instance

class MockTestListSerializer(serializers.ModelSerializer):
    category = serializers.CharField(source='category.name', read_only=True)
    total_questions = serializers.IntegerField(read_only=True)

    class Meta:
        model = MockTest
        fields = [
            'id', 'title', 'slug', 'description', 'category', 'exam_type', 'difficulty',
            'duration_minutes', 'negative_marking', 'total_marks', 'total_questions',
            'is_paid', 'price', 'attempt_count'
        ]

class MockTestDetailSerializer(MockTestListSerializer):
    """Detailed view for learners, answers stripped."""
    sections = PublicSectionSerializer(many=True, read_only=True)

    class Meta(MockTestListSerializer.Meta):
        fields = MockTestListSerializer.Meta.fields + ['instructions', 'sections']
