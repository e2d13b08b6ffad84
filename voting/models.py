import logging
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction

from authentication.models import Student
from elections.models import Election
from laboratories.models import Laboratory

logger = logging.getLogger(__name__)


class StudentAssignmentManager(models.Manager):
    """
    Per-election mapping of students to laboratories
    """
    def assign(self, student, election, laboratory, assigned_by=None):
        """Create or overwrite the student's laboratory for the election"""
        if not election.is_live():
            raise ValidationError({
                'election_id': [f"Election '{election.title}' is {election.status}; "
                                "laboratory assignments can no longer be changed."]
            })

        with transaction.atomic():
            # Serializes with delete_laboratory, which locks the same row
            if Laboratory._default_manager.select_for_update().filter(pk=laboratory.pk).first() is None:
                raise ValidationError({'laboratory_id': ['Laboratory no longer exists.']})
            assignment, created = self.update_or_create(
                student=student,
                election=election,
                defaults={'laboratory': laboratory, 'assigned_by': assigned_by},
            )
        logger.info("%s student %s to laboratory '%s' for election %s",
                    'Assigned' if created else 'Reassigned',
                    student.student_number, laboratory.name, election.election_id)
        return assignment, created

    def get_assignment(self, student_id, election_id):
        """Assignment for a student number and election UUID, or None"""
        try:
            election_id = uuid.UUID(str(election_id))
        except ValueError:
            return None
        return self.select_related('laboratory').filter(
            student__student_number=str(student_id).upper(),
            election__election_id=election_id,
        ).first()

    def list_by_laboratory(self, laboratory, election):
        """Student numbers assigned to the laboratory for the election"""
        return list(
            self.filter(laboratory=laboratory, election=election)
            .order_by('student__student_number')
            .values_list('student__student_number', flat=True)
        )

    def has_live_assignments(self, laboratory):
        return self.filter(
            laboratory=laboratory,
            election__status__in=Election.LIVE_STATUSES,
        ).exists()


class StudentAssignment(models.Model):
    """
    Binding of a student to the laboratory they must vote from in one election
    """
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='laboratory_assignments')
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name='laboratory_assignments')
    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='student_assignments')
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    assigned_at = models.DateTimeField(auto_now=True)

    objects = StudentAssignmentManager()

    def __str__(self):
        return f"{self.student.student_number} -> {self.laboratory.name} ({self.election.title})"

    class Meta:
        db_table = 'student_laboratory_assignment'
        unique_together = ['student', 'election']  # One laboratory per student per election
        ordering = ['-assigned_at']
