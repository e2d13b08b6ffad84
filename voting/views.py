import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.shortcuts import get_object_or_404
from rest_framework import status, permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.permissions import IsAdministrator
from elections.models import Election
from laboratories.models import Laboratory
from .authorization import authorize
from .models import StudentAssignment
from .permissions import IsAtAssignedLaboratory
from .serializers import (
    StudentAssignmentSerializer, AssignStudentSerializer,
    AuthorizeVoteSerializer, DecisionSerializer
)

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, IsAdministrator])
def assign_student(request):
    """Assign a student to a laboratory for an election (Admin only)"""
    serializer = AssignStudentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    validated_data = serializer.validated_data
    try:
        assignment, created = StudentAssignment._default_manager.assign(
            validated_data['student'],
            validated_data['election'],
            validated_data['laboratory'],
            assigned_by=request.user,
        )
    except DjangoValidationError as e:
        return Response(e.message_dict, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'message': 'Student assigned successfully' if created else 'Student assignment updated',
        'assignment': StudentAssignmentSerializer(assignment).data
    }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, IsAdministrator])
def laboratory_students(request, election_id, laboratory_id):
    """Students assigned to a laboratory for an election (Admin only)"""
    election = get_object_or_404(Election, election_id=election_id)
    laboratory = get_object_or_404(Laboratory, laboratory_id=laboratory_id)

    student_ids = StudentAssignment._default_manager.list_by_laboratory(laboratory, election)
    return Response({
        'election_id': election.election_id,
        'laboratory_id': laboratory.laboratory_id,
        'laboratory_name': laboratory.name,
        'capacity': laboratory.capacity,
        'assigned_count': len(student_ids),
        'student_ids': student_ids
    })


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, IsAdministrator])
def authorize_vote(request):
    """Decide whether a student may vote from a client address"""
    serializer = AuthorizeVoteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    validated_data = serializer.validated_data
    try:
        decision = authorize(
            validated_data['student_id'],
            validated_data['election_id'],
            validated_data['client_ip'],
        )
    except DatabaseError:
        logger.exception("Vote location check failed for student %s", validated_data['student_id'])
        return Response({
            'allowed': False,
            'error': 'Vote location could not be verified'
        }, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response(DecisionSerializer(decision).data)


class LocationCheckView(APIView):
    """
    Lets a student confirm they are at their assigned laboratory before
    opening the ballot. Denials carry only the voter-facing message.
    """
    permission_classes = [permissions.IsAuthenticated, IsAtAssignedLaboratory]

    def get(self, request, election_id):
        decision = request.voting_location_decision
        return Response({
            'allowed': decision.allowed,
            'laboratory_name': decision.laboratory_name,
            'message': f'You may vote from {decision.laboratory_name}.'
        })
