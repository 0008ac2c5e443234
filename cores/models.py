from decimal import Decimal

from django.db import models
from django.core.cache import cache
from django.core.validators import MinValueValidator
from django.conf import settings

class PlatformSetting(models.Model):
    CACHE_KEY = 'platform_settings'

    # --- General & Branding ---
    site_name = models.CharField(max_length=100, default="TestPrep Platform")
    support_email = models.EmailField(default="support@testprep.example")

    # --- Test Authoring Defaults ---
    default_negative_marking = models.DecimalField(
        max_digits=4, decimal_places=2, default=Decimal('0.25'),
        validators=[MinValueValidator(0)],
        help_text="Fraction of a question's marks deducted for a wrong answer"
    )
    default_test_duration = models.PositiveIntegerField(default=120, help_text="Default duration in minutes")

    def save(self, *args, **kwargs):
        self.pk = 1  # Singleton pattern
        super().save(*args, **kwargs)
        cache.set(self.CACHE_KEY, self)

    def delete(self, *args, **kwargs):
        pass

    @classmethod
    def load(cls):
        obj = cache.get(cls.CACHE_KEY)
        if obj is None:
            obj, created = cls.objects.get_or_create(pk=1)
            cache.set(cls.CACHE_KEY, obj)
        return obj

    def __str__(self):
        return "Platform Settings"


class AuditLog(models.Model):
    class Action(models.TextChoices):
        CREATE = 'CREATE', 'Create'
        UPDATE = 'UPDATE', 'Update'
        DELETE = 'DELETE', 'Delete'
        SUBMIT = 'SUBMIT', 'Test Submitted'
        SETTINGS = 'SETTINGS', 'Settings Changed'

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=Action.choices)
    target_model = models.CharField(max_length=50, help_text="e.g., MockTest, User, Attempt")
    target_object_id = models.CharField(max_length=100, blank=True, null=True)
    details = models.TextField(blank=True, help_text="Description of changes")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.timestamp}"

    @classmethod
    def record(cls, request, action, target, details=''):
        actor = request.user if request is not None and request.user.is_authenticated else None
        return cls.objects.create(
            actor=actor,
            action=action,
            target_model=type(target).__name__,
            target_object_id=str(target.pk) if target.pk is not None else None,
            details=details,
            ip_address=request.META.get('REMOTE_ADDR') if request is not None else None
        )
