from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import TestCase

from .models import Student, Admin, validate_student_number
from .permissions import is_administrator

User = get_user_model()


class StudentModelTest(TestCase):
    """Test student profiles"""

    def setUp(self):
        self.user = User.objects.create_user(
            username='mreyes',
            password='testpass123',
            first_name='Maria',
            last_name='Reyes'
        )

    def test_create_student(self):
        """Test creating a student normalizes the student number"""
        student = Student.objects.create(
            user=self.user,
            student_number='sti-2024-0001',
            course_name='BSCS'
        )

        self.assertEqual(student.student_number, 'STI-2024-0001')
        self.assertEqual(student.full_name, 'Maria Reyes')

    def test_full_name_falls_back_to_username(self):
        """Test students without a name are shown by username"""
        user = User.objects.create_user(username='anon01', password='testpass123')
        student = Student.objects.create(user=user, student_number='02000999999')

        self.assertEqual(student.full_name, 'anon01')

    def test_invalid_student_numbers(self):
        """Test student number format validation"""
        for value in ['', '123', 'A' * 21, '02000 12345', '02000_12345']:
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    validate_student_number(value)

    def test_student_number_rejected_on_save(self):
        """Test saving a student with a malformed number fails"""
        with self.assertRaises(ValidationError):
            Student.objects.create(user=self.user, student_number='12')


class AdministratorPermissionTest(TestCase):
    """Test who counts as an administrator"""

    def test_admin_profile_is_administrator(self):
        user = User.objects.create_user(username='admin', password='testpass123')
        Admin.objects.create(user=user, admin_id='ADM001')

        self.assertTrue(is_administrator(user))

    def test_superuser_is_administrator(self):
        user = User.objects.create_superuser(username='root', password='testpass123', email='root@example.com')

        self.assertTrue(is_administrator(user))

    def test_student_is_not_administrator(self):
        user = User.objects.create_user(username='student', password='testpass123')
        Student.objects.create(user=user, student_number='02000123123')

        self.assertFalse(is_administrator(user))
        self.assertFalse(is_administrator(AnonymousUser()))
