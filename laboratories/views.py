import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from rest_framework import status, permissions, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response

from authentication.permissions import IsAdministrator
from .exceptions import DuplicateLaboratoryName, LaboratoryInUse
from .models import Laboratory, IPAssignmentRule
from .serializers import (
    LaboratorySerializer, LaboratoryDetailSerializer, IPAssignmentRuleSerializer,
    IPAssignmentRuleCreateSerializer, BulkIPAddressSerializer, RuleStatusSerializer
)

logger = logging.getLogger(__name__)


class LaboratoryViewSet(viewsets.ModelViewSet):
    queryset = Laboratory._default_manager.list_laboratories()
    permission_classes = [permissions.IsAuthenticated, IsAdministrator]
    lookup_field = 'laboratory_id'

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return LaboratoryDetailSerializer
        return LaboratorySerializer

    def create(self, request, *args, **kwargs):
        try:
            return super().create(request, *args, **kwargs)
        except DuplicateLaboratoryName as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except DjangoValidationError as e:
            return Response(e.message_dict, status=status.HTTP_400_BAD_REQUEST)

    def update(self, request, *args, **kwargs):
        try:
            return super().update(request, *args, **kwargs)
        except DuplicateLaboratoryName as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except IntegrityError:
            return Response({
                'error': 'A laboratory with this name already exists.'
            }, status=status.HTTP_409_CONFLICT)

    def destroy(self, request, *args, **kwargs):
        laboratory = self.get_object()
        try:
            Laboratory._default_manager.delete_laboratory(laboratory)
        except LaboratoryInUse as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get', 'post'], url_path='ip-addresses')
    def ip_addresses(self, request, laboratory_id=None):
        """List or add address rules of a laboratory"""
        laboratory = self.get_object()

        if request.method == 'GET':
            rules = IPAssignmentRule._default_manager.list_rules(laboratory)
            return Response(IPAssignmentRuleSerializer(rules, many=True).data)

        serializer = IPAssignmentRuleCreateSerializer(data=request.data, context={'laboratory': laboratory})
        if serializer.is_valid():
            rule = serializer.save()
            return Response(IPAssignmentRuleSerializer(rule).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    @action(detail=True, methods=['post'], url_path='ip-addresses/bulk', url_name='bulk-ip-addresses')
    def bulk_ip_addresses(self, request, laboratory_id=None):
        """Add many single-address rules from newline-delimited text"""
        laboratory = self.get_object()

        serializer = BulkIPAddressSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            results = IPAssignmentRule._default_manager.add_rules_bulk(
                laboratory, serializer.validated_data['ip_addresses']
            )
        except DjangoValidationError as e:
            return Response(e.message_dict, status=status.HTTP_400_BAD_REQUEST)

        created = sum(1 for result in results if result.success)
        failed = len(results) - created
        return Response({
            'message': f'{created} IP address(es) added, {failed} rejected',
            'created': created,
            'failed': failed,
            'results': [result.as_dict() for result in results]
        }, status=status.HTTP_200_OK if failed == 0 else status.HTTP_207_MULTI_STATUS)


@api_view(['PUT', 'PATCH', 'DELETE'])
@permission_classes([permissions.IsAuthenticated, IsAdministrator])
def ip_address_detail(request, rule_id):
    """Activate, deactivate or delete an address rule"""
    if request.method == 'DELETE':
        # Deleting a rule that is already gone is not an error
        IPAssignmentRule._default_manager.delete_rule(rule_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = RuleStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        rule = IPAssignmentRule._default_manager.set_active(rule_id, serializer.validated_data['is_active'])
    except IPAssignmentRule.DoesNotExist:
        return Response({'error': 'IP address rule not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(IPAssignmentRuleSerializer(rule).data)
