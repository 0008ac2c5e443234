from django.urls import path
from .views import (
    StartAttemptView, SaveProgressView, SubmitAttemptView,
    AttemptHistoryView, AttemptDetailView, AnswerKeyView
)

urlpatterns = [
    # Student test flow
    path('tests/<int:test_id>/start/', StartAttemptView.as_view(), name='start-test'),
    path('tests/<int:test_id>/save-progress/', SaveProgressView.as_view(), name='save-progress'),
    path('tests/<int:test_id>/submit/', SubmitAttemptView.as_view(), name='submit-test'),

    # Results
    path('tests/attempts/', AttemptHistoryView.as_view(), name='attempt-history'),
    path('tests/attempts/<int:attempt_id>/', AttemptDetailView.as_view(), name='attempt-detail'),
    path('tests/attempts/<int:attempt_id>/answers/', AnswerKeyView.as_view(), name='attempt-answers'),
]
