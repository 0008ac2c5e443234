from django.contrib import admin

from .models import MockTest, Section, Question, Category


class SectionInline(admin.TabularInline):
    model = Section
    extra = 0


class QuestionInline(admin.StackedInline):
    model = Question
    extra = 0


@admin.register(MockTest)
class MockTestAdmin(admin.ModelAdmin):
    list_display = ('title', 'category', 'exam_type', 'total_marks', 'negative_marking', 'is_active', 'attempt_count')
    list_filter = ('is_active', 'difficulty', 'category')
    search_fields = ('title',)
    readonly_fields = ('slug', 'total_marks', 'attempt_count')
    inlines = [SectionInline]


@admin.register(Section)
class SectionAdmin(admin.ModelAdmin):
    list_display = ('title', 'test', 'order')
    inlines = [QuestionInline]


admin.site.register(Category)
