import csv
import io
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response

from cores.exceptions import Conflict
from cores.models import AuditLog
from users.permissions import IsPlatformAdmin
from .models import MockTest, Section, Question, Category
from .serializers import (
    MockTestSerializer, MockTestListSerializer, MockTestDetailSerializer,
    CategorySerializer, QuestionSerializer
)

logger = logging.getLogger(__name__)


class MockTestViewSet(viewsets.ReadOnlyModelViewSet):
    """Learner-facing catalogue. Correct answers never leave this viewset."""
    queryset = MockTest.objects.select_related('category').order_by('-created_at')
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r'\d+'

    # Enable search on title and category name
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'category__name']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return MockTestDetailSerializer
        return MockTestListSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'list':
            queryset = queryset.filter(is_active=True)
            category = self.request.query_params.get('category')
            if category:
                queryset = queryset.filter(category__name=category)
            exam_type = self.request.query_params.get('exam_type')
            if exam_type:
                queryset = queryset.filter(exam_type=exam_type)
        return queryset

    def retrieve(self, request, *args, **kwargs):
        test = self.get_object()
        if not test.is_active:
            raise PermissionDenied("Test is not active")
        return Response(self.get_serializer(test).data)


class AdminMockTestViewSet(viewsets.ModelViewSet):
    """Test authoring for admins, answers included."""
    queryset = MockTest.objects.select_related('category', 'created_by').order_by('-created_at')
    serializer_class = MockTestSerializer
    permission_classes = [IsPlatformAdmin]
    lookup_value_regex = r'\d+'

    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'category__name']

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category__name=params['category'])
        if params.get('exam_type'):
            queryset = queryset.filter(exam_type=params['exam_type'])
        is_active = params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset

    def perform_create(self, serializer):
        test = serializer.save()
        logger.info("Test %s created by %s", test.pk, self.request.user)
        AuditLog.record(self.request, AuditLog.Action.CREATE, test, f"Created test: {test.title}")

    def perform_update(self, serializer):
        test = serializer.save()
        AuditLog.record(self.request, AuditLog.Action.UPDATE, test, f"Updated test: {test.title}")

    def perform_destroy(self, instance):
        AuditLog.record(self.request, AuditLog.Action.DELETE, instance, f"Deleted test: {instance.title}")
        instance.delete()

    @action(detail=True, methods=['post'], url_path=r'sections/(?P<section_id>\d+)/bulk-upload',
            parser_classes=[MultiPartParser, FormParser])
    def bulk_upload(self, request, pk=None, section_id=None):
        """
        Appends questions to a section from a CSV file.
        Expected CSV Header: question_text, options, correct_answer, marks, difficulty, subject, explanation
        `options` are separated by '|' and `correct_answer` repeats the text of the right option.
        """
        test = self.get_object()
        section = get_object_or_404(Section, pk=section_id, test=test)

        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded"}, status=status.HTTP_400_BAD_REQUEST)
        if test.attempts.exists():
            raise Conflict("Questions cannot be changed after the test has been attempted.")

        try:
            reader = csv.DictReader(io.StringIO(file_obj.read().decode('utf-8-sig')))
            rows = [self._question_from_row(row, line) for line, row in enumerate(reader, start=2)]
        except UnicodeDecodeError:
            return Response({"error": "File must be UTF-8 encoded CSV"}, status=status.HTTP_400_BAD_REQUEST)
        except ValueError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        if not rows:
            return Response({"error": "The file contains no questions"}, status=status.HTTP_400_BAD_REQUEST)

        next_order = section.questions.count() + 1
        with transaction.atomic():
            for offset, fields in enumerate(rows):
                Question.objects.create(section=section, order=next_order + offset, **fields)
            test.recalculate_total_marks()

        AuditLog.record(request, AuditLog.Action.UPDATE, test,
                        f"Uploaded {len(rows)} questions to section '{section.title}'")
        return Response(
            {"status": f"Successfully uploaded {len(rows)} questions", "total_marks": test.total_marks},
            status=status.HTTP_201_CREATED
        )

    @staticmethod
    def _question_from_row(row, line):
        text = (row.get('question_text') or '').strip()
        options = [opt.strip() for opt in (row.get('options') or '').split('|') if opt.strip()]
        if not text or len(options) < 2:
            raise ValueError(f"Row {line}: each question must have text and at least 2 options")

        correct_text = (row.get('correct_answer') or '').strip().lower()
        lowered = [opt.lower() for opt in options]
        if correct_text not in lowered:
            raise ValueError(f"Row {line}: correct_answer does not match any option")

        # Same field rules as nested authoring
        serializer = QuestionSerializer(data={
            'text': text,
            'options': options,
            'correct_answer': lowered.index(correct_text),
            'marks': (row.get('marks') or '').strip() or '1',
            'difficulty': (row.get('difficulty') or 'medium').strip().lower(),
            'subject': (row.get('subject') or '').strip(),
            'explanation': (row.get('explanation') or '').strip(),
        })
        if not serializer.is_valid():
            field, messages = next(iter(serializer.errors.items()))
            message = messages[0] if isinstance(messages, list) else messages
            raise ValueError(f"Row {line}: {field}: {message}")
        return serializer.validated_data


class CategoryViewSet(viewsets.ModelViewSet):
    queryset = Category.objects.all().order_by('name')
    serializer_class = CategorySerializer
    permission_classes = [IsPlatformAdmin]
