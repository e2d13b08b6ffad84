from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .exceptions import DuplicateLaboratoryName
from .models import Laboratory, IPAssignmentRule, clean_rule_fields


class IPAssignmentRuleSerializer(serializers.ModelSerializer):
    laboratory_id = serializers.UUIDField(source='laboratory.laboratory_id', read_only=True)
    display = serializers.SerializerMethodField()

    class Meta:
        model = IPAssignmentRule
        fields = [
            'rule_id', 'laboratory_id', 'ip_type', 'ip_address', 'ip_range_start',
            'ip_range_end', 'subnet_mask', 'display', 'is_active', 'created_at'
        ]
        read_only_fields = fields

    def get_display(self, obj):
        return obj.describe()


class LaboratorySerializer(serializers.ModelSerializer):
    name = serializers.CharField(max_length=100)
    ip_count = serializers.SerializerMethodField()
    active_ip_count = serializers.SerializerMethodField()

    class Meta:
        model = Laboratory
        fields = [
            'laboratory_id', 'name', 'description', 'capacity',
            'ip_count', 'active_ip_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['laboratory_id', 'ip_count', 'active_ip_count', 'created_at', 'updated_at']

    def get_ip_count(self, obj):
        # Annotated by Laboratory.objects.list_laboratories(); counted otherwise
        count = getattr(obj, 'ip_count', None)
        return count if count is not None else obj.ip_rules.count()

    def get_active_ip_count(self, obj):
        count = getattr(obj, 'active_ip_count', None)
        return count if count is not None else obj.ip_rules.filter(is_active=True).count()

    def validate_name(self, value):
        """Names are unique regardless of case"""
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Laboratory name is required.")
        if self.instance is not None:
            others = Laboratory._default_manager.exclude(pk=self.instance.pk)
            if others.filter(name__iexact=value).exists():
                raise DuplicateLaboratoryName(value)
        return value

    def create(self, validated_data):
        return Laboratory._default_manager.create_laboratory(**validated_data)


class LaboratoryDetailSerializer(LaboratorySerializer):
    ip_rules = serializers.SerializerMethodField()

    class Meta(LaboratorySerializer.Meta):
        fields = LaboratorySerializer.Meta.fields + ['ip_rules']

    def get_ip_rules(self, obj):
        rules = IPAssignmentRule._default_manager.list_rules(obj)
        return IPAssignmentRuleSerializer(rules, many=True).data


class IPAssignmentRuleCreateSerializer(serializers.Serializer):
    ip_type = serializers.ChoiceField(choices=IPAssignmentRule.Kind.choices)
    ip_address = serializers.CharField(required=False, allow_blank=True, max_length=15)
    ip_range_start = serializers.CharField(required=False, allow_blank=True, max_length=15)
    ip_range_end = serializers.CharField(required=False, allow_blank=True, max_length=15)
    subnet_mask = serializers.CharField(required=False, allow_blank=True, max_length=18)
    confirm_all_addresses = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        try:
            clean_rule_fields(**attrs)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.message_dict)
        return attrs

    def create(self, validated_data):
        laboratory = self.context['laboratory']
        try:
            return IPAssignmentRule._default_manager.add_rule(laboratory, **validated_data)
        except DjangoValidationError as e:
            # Duplicate of an existing rule
            raise serializers.ValidationError(e.message_dict)


class BulkIPAddressSerializer(serializers.Serializer):
    ip_addresses = serializers.CharField(trim_whitespace=False)

    def validate_ip_addresses(self, value):
        if not value.strip():
            raise serializers.ValidationError("Provide at least one IP address, one per line.")
        return value


class RuleStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()
