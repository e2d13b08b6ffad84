from django.conf import settings
from django.db import models
import uuid


class Election(models.Model):
    """
    Election whose ballots are cast from assigned laboratories
    """
    STATUS_CHOICES = [
        ('upcoming', 'Upcoming'),
        ('ongoing', 'Ongoing'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    # Statuses during which laboratory assignments are in force
    LIVE_STATUSES = ('upcoming', 'ongoing')

    election_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='upcoming')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_elections'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def is_live(self):
        """Upcoming or ongoing elections still rely on their laboratory assignments"""
        return self.status in self.LIVE_STATUSES

    def __str__(self):
        return f"{self.title} ({self.status})"

    class Meta:
        db_table = 'election'
        ordering = ['-start_date']
