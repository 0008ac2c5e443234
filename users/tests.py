from django.contrib.auth import authenticate, get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from attempts.models import Attempt
from cores.models import AuditLog
from mocktests.models import MockTest

User = get_user_model()


class EmailBackendTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            username='asha', email='Asha@Example.com', password='pass12345'
        )

    def test_login_with_email_or_username(self):
        self.assertEqual(authenticate(email='asha@example.com', password='pass12345'), self.user)
        self.assertEqual(authenticate(username='ASHA', password='pass12345'), self.user)

    def test_wrong_password_or_unknown_user(self):
        self.assertIsNone(authenticate(email='asha@example.com', password='nope'))
        self.assertIsNone(authenticate(email='ghost@example.com', password='pass12345'))

    def test_inactive_user_is_refused(self):
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(authenticate(email='asha@example.com', password='pass12345'))


class AuthApiTestCase(APITestCase):

    def test_register_always_creates_student(self):
        response = self.client.post(reverse('register'), {
            'email': 'new@example.com',
            'first_name': 'New',
            'last_name': 'Learner',
            'password': 'a-Strong-pass-99',
            'role': 'admin',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        user = User.objects.get(email='new@example.com')
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertFalse(user.is_platform_admin)

    def test_register_rejects_weak_password(self):
        response = self.client.post(reverse('register'), {
            'email': 'weak@example.com', 'password': '123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_login_returns_tokens_and_user(self):
        User.objects.create_user(username='kiran@example.com', email='kiran@example.com', password='pass12345')

        response = self.client.post(reverse('login'), {
            'email': 'kiran@example.com', 'password': 'pass12345'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['email'], 'kiran@example.com')

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        profile = self.client.get(reverse('user-profile'))
        self.assertEqual(profile.status_code, status.HTTP_200_OK)
        self.assertEqual(profile.data['email'], 'kiran@example.com')

    def test_login_with_bad_credentials(self):
        response = self.client.post(reverse('login'), {
            'email': 'nobody@example.com', 'password': 'pass12345'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_profile_cannot_change_role(self):
        user = User.objects.create_user(username='sam@example.com', email='sam@example.com', password='pass12345')
        self.client.force_authenticate(user=user)

        response = self.client.patch(reverse('user-profile'), {
            'first_name': 'Sam', 'role': 'admin'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Sam')
        self.assertEqual(user.role, User.Role.STUDENT)


class AdminUserApiTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username='staff@example.com', email='staff@example.com', password='pass12345', is_staff=True,
            role=User.Role.ADMIN
        )
        cls.student = User.objects.create_user(
            username='pupil@example.com', email='pupil@example.com', password='pass12345'
        )
        cls.test = MockTest.objects.create(title='Paper', description='x', duration_minutes=30)
        Attempt.objects.create(user=cls.student, test=cls.test)

    def test_stats_for_admins_only(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(reverse('admin-stats'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('admin-stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_tests'], 1)
        self.assertEqual(response.data['total_students'], 1)
        self.assertEqual(response.data['in_progress_attempts'], 1)
        self.assertEqual(response.data['completed_attempts'], 0)

    def test_student_list(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('admin-students'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['tests_taken'], 0)

    def test_admin_creates_user_with_audit_entry(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse('users-list'), {
            'email': 'tutor@example.com', 'password': 'a-Strong-pass-99', 'role': 'admin'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email='tutor@example.com').role, User.Role.ADMIN)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.CREATE, target_model='User').exists())
