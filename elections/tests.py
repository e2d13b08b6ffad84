from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from datetime import timedelta

from .models import Election

User = get_user_model()


class ElectionModelTest(TestCase):
    """Test election status helpers"""

    def setUp(self):
        self.admin_user = User.objects.create_user(username='admin', password='testpass123')

    def make_election(self, status_value):
        return Election.objects.create(
            title='Student Council Election',
            start_date=timezone.now() - timedelta(days=1),
            end_date=timezone.now() + timedelta(days=1),
            status=status_value,
            created_by=self.admin_user
        )

    def test_live_statuses(self):
        """Test only upcoming and ongoing elections keep assignments in force"""
        self.assertTrue(self.make_election('upcoming').is_live())
        self.assertTrue(self.make_election('ongoing').is_live())
        self.assertFalse(self.make_election('completed').is_live())
        self.assertFalse(self.make_election('cancelled').is_live())

