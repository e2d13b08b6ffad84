from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
import uuid


def validate_student_number(student_number):
    """Validate student number format - 6 to 20 letters, digits or hyphens"""
    if not student_number:
        raise ValidationError("Student number is required.")

    if not 6 <= len(student_number) <= 20:
        raise ValidationError("Student number must be between 6 and 20 characters long.")

    if not student_number.replace('-', '').isalnum() or not student_number.isascii():
        raise ValidationError("Student number must contain only letters, numbers and hyphens.")

    return student_number.upper()  # Convert to uppercase for consistency


class Student(models.Model):
    """
    Student profile extending the user model. Students are the voters.
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True)
    student_number = models.CharField(
        max_length=20,
        unique=True,
        help_text="School-issued student number"
    )
    course_name = models.CharField(max_length=100, blank=True)
    department = models.CharField(max_length=100, blank=True)
    year_level = models.PositiveSmallIntegerField(null=True, blank=True)

    def clean(self):
        super().clean()
        if self.student_number:
            self.student_number = validate_student_number(self.student_number)

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    @property
    def full_name(self):
        return self.user.get_full_name() or self.user.get_username()

    def __str__(self):
        return f"Student: {self.full_name} ({self.student_number})"

    class Meta:
        db_table = 'student'
        ordering = ['student_number']


class Admin(models.Model):
    """
    Admin profile for election administrators
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, primary_key=True)
    admin_id = models.CharField(max_length=20, unique=True)
    department = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Admin: {self.user.get_username()} ({self.admin_id})"

    class Meta:
        db_table = 'admin'
