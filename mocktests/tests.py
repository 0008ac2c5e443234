from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from attempts.models import Attempt
from cores.models import AuditLog
from mocktests.models import MockTest, Section, Question, Category

User = get_user_model()


def build_payload(**overrides):
    payload = {
        'title': 'Banking Prelims Mock 1',
        'description': 'Full length paper',
        'category': 'Banking',
        'exam_type': 'Prelims',
        'sections': [
            {
                'title': 'Reasoning',
                'questions': [
                    {'text': 'Odd one out?', 'options': ['Cat', 'Dog', 'Car'], 'correct_answer': 2, 'marks': '3.00'},
                    {'text': 'Next in 2, 4, 8?', 'options': ['10', '16'], 'correct_answer': 1, 'marks': '4.00',
                     'explanation': 'Doubles each time'},
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


class MockTestModelTestCase(TestCase):

    def test_slug_is_unique(self):
        first = MockTest.objects.create(title='Quant Sprint', description='x', duration_minutes=30)
        second = MockTest.objects.create(title='Quant Sprint', description='y', duration_minutes=30)
        self.assertEqual(first.slug, 'quant-sprint')
        self.assertEqual(second.slug, 'quant-sprint-2')

    def test_total_marks_follow_questions(self):
        test = MockTest.objects.create(title='Marks', description='x', duration_minutes=30)
        section = Section.objects.create(test=test, title='S1')
        Question.objects.create(section=section, text='a', options=['x', 'y'], correct_answer=0, marks=Decimal('2.5'))
        Question.objects.create(section=section, text='b', options=['x', 'y'], correct_answer=1, marks=Decimal('1.5'))

        self.assertEqual(test.recalculate_total_marks(), Decimal('4'))
        test.refresh_from_db()
        self.assertEqual(test.total_marks, Decimal('4'))
        self.assertEqual(test.total_questions, 2)

    def test_question_clean(self):
        test = MockTest.objects.create(title='Clean', description='x', duration_minutes=30)
        section = Section.objects.create(test=test, title='S1')
        question = Question(section=section, text='a', options=['only'], correct_answer=0)
        with self.assertRaises(ValidationError):
            question.clean()

        question.options = ['x', 'y']
        question.correct_answer = 2
        with self.assertRaises(ValidationError):
            question.clean()


class AdminMockTestApiTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username='admin@example.com', email='admin@example.com', password='pass12345', role=User.Role.ADMIN
        )
        cls.student = User.objects.create_user(
            username='student@example.com', email='student@example.com', password='pass12345'
        )

    def setUp(self):
        cache.clear()
        self.client.force_authenticate(user=self.admin)

    def create_test(self, **overrides):
        return self.client.post(reverse('admin-tests-list'), build_payload(**overrides), format='json')

    def test_create_nested_test(self):
        response = self.create_test()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        test = MockTest.objects.get(pk=response.data['id'])
        self.assertEqual(test.slug, 'banking-prelims-mock-1')
        self.assertEqual(test.total_marks, Decimal('7'))
        self.assertEqual(test.category.name, 'Banking')
        self.assertEqual(test.created_by, self.admin)
        # Defaults come from platform settings
        self.assertEqual(test.negative_marking, Decimal('0.25'))
        self.assertEqual(test.duration_minutes, 120)
        self.assertEqual(list(test.sections.get().questions.values_list('order', flat=True)), [1, 2])
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.CREATE, target_model='MockTest').exists())

    def test_create_reuses_category(self):
        Category.objects.create(name='Banking')
        self.create_test()
        self.assertEqual(Category.objects.filter(name='Banking').count(), 1)

    def test_create_validation(self):
        response = self.create_test(sections=[])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        bad_index = build_payload()
        bad_index['sections'][0]['questions'][0]['correct_answer'] = 3
        response = self.client.post(reverse('admin-tests-list'), bad_index, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        zero_marks = build_payload()
        zero_marks['sections'][0]['questions'][0]['marks'] = '0'
        response = self.client.post(reverse('admin-tests-list'), zero_marks, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        empty_section = build_payload(sections=[{'title': 'Nothing', 'questions': []}])
        response = self.client.post(reverse('admin-tests-list'), empty_section, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(MockTest.objects.exists())

    def test_students_cannot_author(self):
        self.client.force_authenticate(user=self.student)
        response = self.create_test()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_replace_sections_before_attempts(self):
        test_id = self.create_test().data['id']
        response = self.client.patch(
            reverse('admin-tests-detail', kwargs={'pk': test_id}),
            {'sections': [{'title': 'New', 'questions': [
                {'text': 'Only one', 'options': ['a', 'b'], 'correct_answer': 0, 'marks': '10'}
            ]}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        test = MockTest.objects.get(pk=test_id)
        self.assertEqual(test.total_marks, Decimal('10'))
        self.assertEqual(test.sections.get().title, 'New')

    def test_questions_locked_after_attempt(self):
        test_id = self.create_test().data['id']
        Attempt.objects.create(user=self.student, test_id=test_id)

        response = self.client.patch(
            reverse('admin-tests-detail', kwargs={'pk': test_id}),
            {'sections': [{'title': 'New', 'questions': [
                {'text': 'Only one', 'options': ['a', 'b'], 'correct_answer': 0}
            ]}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(MockTest.objects.get(pk=test_id).total_marks, Decimal('7'))

        response = self.client.patch(
            reverse('admin-tests-detail', kwargs={'pk': test_id}), {'is_active': False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(MockTest.objects.get(pk=test_id).is_active)

    def test_bulk_upload(self):
        test = MockTest.objects.get(pk=self.create_test().data['id'])
        section = test.sections.get()
        csv_file = SimpleUploadedFile(
            'questions.csv',
            b'question_text,options,correct_answer,marks,difficulty,subject,explanation\n'
            b'Capital of France?,London|Paris|Rome,Paris,2,easy,GK,\n'
            b'2+2?,3|4,4,,hard,Maths,Basic sum\n',
            content_type='text/csv'
        )
        url = reverse('admin-tests-bulk-upload', kwargs={'pk': test.pk, 'section_id': section.pk})
        response = self.client.post(url, {'file': csv_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(section.questions.count(), 4)
        uploaded = section.questions.get(text='Capital of France?')
        self.assertEqual(uploaded.correct_answer, 1)
        self.assertEqual(uploaded.order, 3)
        test.refresh_from_db()
        self.assertEqual(test.total_marks, Decimal('10'))

    def test_bulk_upload_errors(self):
        test = MockTest.objects.get(pk=self.create_test().data['id'])
        section = test.sections.get()
        url = reverse('admin-tests-bulk-upload', kwargs={'pk': test.pk, 'section_id': section.pk})

        response = self.client.post(url, {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        bad_answer = SimpleUploadedFile(
            'questions.csv',
            b'question_text,options,correct_answer\nWhich?,a|b,c\n',
            content_type='text/csv'
        )
        response = self.client.post(url, {'file': bad_answer}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Row 2', response.data['error'])
        self.assertEqual(section.questions.count(), 2)

        Attempt.objects.create(user=self.student, test=test)
        locked = SimpleUploadedFile(
            'questions.csv',
            b'question_text,options,correct_answer\nWhich?,a|b,a\n',
            content_type='text/csv'
        )
        response = self.client.post(url, {'file': locked}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_bulk_upload_checks_row_fields(self):
        test = MockTest.objects.get(pk=self.create_test().data['id'])
        section = test.sections.get()
        url = reverse('admin-tests-bulk-upload', kwargs={'pk': test.pk, 'section_id': section.pk})

        for row, field in ((b'Which?,a|b,a,100000\n', 'marks'),
                           (b'Which?,a|b,a,0\n', 'marks'),
                           (b'Which?,a|b,a,abc\n', 'marks'),
                           (b'Which?,a|b,a,1,mixed\n', 'difficulty')):
            upload = SimpleUploadedFile(
                'questions.csv',
                b'question_text,options,correct_answer,marks,difficulty\n' + row,
                content_type='text/csv'
            )
            response = self.client.post(url, {'file': upload}, format='multipart')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn(f'Row 2: {field}', response.data['error'])

        self.assertEqual(section.questions.count(), 2)
        test.refresh_from_db()
        self.assertEqual(test.total_marks, Decimal('7'))

    def test_bulk_upload_accepts_excel_byte_order_mark(self):
        test = MockTest.objects.get(pk=self.create_test().data['id'])
        section = test.sections.get()
        upload = SimpleUploadedFile(
            'questions.csv',
            b'\xef\xbb\xbfquestion_text,options,correct_answer,marks\nWhich?,a|b,b,2\n',
            content_type='text/csv'
        )
        url = reverse('admin-tests-bulk-upload', kwargs={'pk': test.pk, 'section_id': section.pk})
        response = self.client.post(url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(section.questions.get(text='Which?').correct_answer, 1)


class PublicMockTestApiTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.student = User.objects.create_user(
            username='reader@example.com', email='reader@example.com', password='pass12345'
        )
        cls.active = MockTest.objects.create(title='Open Paper', description='x', duration_minutes=45, exam_type='SSC')
        section = Section.objects.create(test=cls.active, title='GK')
        Question.objects.create(section=section, text='Q', options=['a', 'b'], correct_answer=1,
                                explanation='b it is', marks=Decimal('2'))
        cls.active.recalculate_total_marks()
        cls.inactive = MockTest.objects.create(title='Draft Paper', description='x', duration_minutes=45,
                                               is_active=False)

    def setUp(self):
        self.client.force_authenticate(user=self.student)

    def test_list_shows_active_tests(self):
        response = self.client.get(reverse('tests-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [t['title'] for t in response.data['results']]
        self.assertEqual(titles, ['Open Paper'])

        response = self.client.get(reverse('tests-list'), {'exam_type': 'UPSC'})
        self.assertEqual(response.data['pagination']['total'], 0)

    def test_detail_strips_answers(self):
        response = self.client.get(reverse('tests-detail', kwargs={'pk': self.active.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['total_marks']), Decimal('2'))
        question = response.data['sections'][0]['questions'][0]
        self.assertNotIn('correct_answer', question)
        self.assertNotIn('explanation', question)

    def test_inactive_detail_is_forbidden(self):
        response = self.client.get(reverse('tests-detail', kwargs={'pk': self.inactive.pk}))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Test is not active')

    def test_missing_detail(self):
        response = self.client.get(reverse('tests-detail', kwargs={'pk': 999999}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', response.data)
