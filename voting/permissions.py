from rest_framework import permissions

from laboratories.conf import lab_access_setting
from .authorization import authorize
from .utils import get_client_ip


def denial_message(decision):
    """Voter-facing text. Never carries the reason code or rule details."""
    message = lab_access_setting('DENIAL_MESSAGE')
    if decision.laboratory_name:
        message = f"{message} Please go to {decision.laboratory_name} to cast your vote."
    return message


class IsAtAssignedLaboratory(permissions.BasePermission):
    """
    Allows the request only from a workstation of the laboratory the
    requesting student is assigned to for the election in the URL.
    The decision is kept on `request.voting_location_decision`.
    """
    message = 'Only students can vote'

    def has_permission(self, request, view):
        student = getattr(request.user, 'student', None)
        if student is None:
            return False

        decision = authorize(student.student_number, view.kwargs.get('election_id'), get_client_ip(request))
        request.voting_location_decision = decision
        if not decision.allowed:
            self.message = denial_message(decision)
        return decision.allowed
