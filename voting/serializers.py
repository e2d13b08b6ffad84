from rest_framework import serializers

from authentication.models import Student
from elections.models import Election
from laboratories.models import Laboratory
from .models import StudentAssignment


class StudentAssignmentSerializer(serializers.ModelSerializer):
    student_id = serializers.CharField(source='student.student_number', read_only=True)
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    election_id = serializers.UUIDField(source='election.election_id', read_only=True)
    election_title = serializers.CharField(source='election.title', read_only=True)
    laboratory_id = serializers.UUIDField(source='laboratory.laboratory_id', read_only=True)
    laboratory_name = serializers.CharField(source='laboratory.name', read_only=True)

    class Meta:
        model = StudentAssignment
        fields = [
            'student_id', 'student_name', 'election_id', 'election_title',
            'laboratory_id', 'laboratory_name', 'assigned_at'
        ]
        read_only_fields = fields


class AssignStudentSerializer(serializers.Serializer):
    student_id = serializers.CharField(max_length=20)
    election_id = serializers.UUIDField()
    laboratory_id = serializers.UUIDField()

    def validate(self, attrs):
        data = attrs.copy()
        errors = {}

        try:
            data['student'] = Student._default_manager.get(student_number=attrs['student_id'].upper())
        except Student.DoesNotExist:
            errors['student_id'] = ["Student not found."]

        try:
            data['election'] = Election._default_manager.get(election_id=attrs['election_id'])
        except Election.DoesNotExist:
            errors['election_id'] = ["Election not found."]

        try:
            data['laboratory'] = Laboratory._default_manager.get(laboratory_id=attrs['laboratory_id'])
        except Laboratory.DoesNotExist:
            errors['laboratory_id'] = ["Laboratory not found."]

        if errors:
            raise serializers.ValidationError(errors)
        return data


class AuthorizeVoteSerializer(serializers.Serializer):
    student_id = serializers.CharField(max_length=20)
    election_id = serializers.UUIDField()
    # Passed through as received; a blank or malformed address is a deny, not a 400
    client_ip = serializers.CharField(max_length=64, allow_blank=True, trim_whitespace=False)


class DecisionSerializer(serializers.Serializer):
    allowed = serializers.BooleanField()
    reason = serializers.CharField()
    matched_rule_id = serializers.UUIDField(allow_null=True)
    laboratory_id = serializers.UUIDField(allow_null=True)
    laboratory_name = serializers.CharField(allow_null=True)
