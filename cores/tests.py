from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import PlatformSetting, AuditLog

User = get_user_model()


class PlatformSettingTestCase(TestCase):

    def setUp(self):
        cache.clear()

    def test_load_creates_single_row(self):
        first = PlatformSetting.load()
        second = PlatformSetting.load()
        self.assertEqual(first.pk, 1)
        self.assertEqual(second.pk, 1)
        self.assertEqual(PlatformSetting.objects.count(), 1)
        self.assertEqual(first.default_negative_marking, Decimal('0.25'))

    def test_save_refreshes_cache(self):
        setting = PlatformSetting.load()
        setting.default_test_duration = 90
        setting.save()
        self.assertEqual(PlatformSetting.load().default_test_duration, 90)

    def test_delete_is_ignored(self):
        PlatformSetting.load().delete()
        self.assertTrue(PlatformSetting.objects.filter(pk=1).exists())


class PlatformSettingApiTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username='root@example.com', email='root@example.com', password='pass12345', role=User.Role.ADMIN
        )
        cls.student = User.objects.create_user(
            username='kid@example.com', email='kid@example.com', password='pass12345'
        )

    def setUp(self):
        cache.clear()

    def test_update_settings(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.put(reverse('platform-settings'), {'default_negative_marking': '0.50'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(PlatformSetting.load().default_negative_marking, Decimal('0.50'))
        self.assertEqual(AuditLog.objects.filter(action=AuditLog.Action.SETTINGS).count(), 1)

        logs = self.client.get(reverse('audit-logs'), {'action': 'SETTINGS'})
        self.assertEqual(logs.status_code, status.HTTP_200_OK)
        self.assertEqual(logs.data['pagination']['total'], 1)
        self.assertEqual(logs.data['results'][0]['action'], 'SETTINGS')

    def test_negative_rate_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.put(reverse('platform-settings'), {'default_negative_marking': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('default_negative_marking', response.data)

    def test_students_get_error_envelope(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(reverse('platform-settings'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(list(response.data), ['error'])
