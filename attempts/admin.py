from django.contrib import admin

from .models import Attempt, AttemptAnswer, SectionResult


class AttemptAnswerInline(admin.TabularInline):
    model = AttemptAnswer
    extra = 0
    readonly_fields = ('question', 'selected_answer', 'is_correct', 'marks_awarded')


class SectionResultInline(admin.TabularInline):
    model = SectionResult
    extra = 0


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = ('user', 'test', 'is_completed', 'score', 'percentage', 'rank', 'total_attempts', 'submitted_at')
    list_filter = ('is_completed', 'is_auto_submitted')
    inlines = [SectionResultInline, AttemptAnswerInline]
