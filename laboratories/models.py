import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.db.models import Count, Q
from django.db.models.functions import Lower

from .addressing import (
    InvalidAddress, SingleAddress, format_ipv4, parse_ipv4, parse_range, parse_subnet,
)
from .conf import lab_access_setting
from .exceptions import DuplicateLaboratoryName, LaboratoryInUse

logger = logging.getLogger(__name__)


# Address columns that belong to each rule type
RULE_FIELDS = {
    'single': ('ip_address',),
    'range': ('ip_range_start', 'ip_range_end'),
    'subnet': ('subnet_mask',),
}
ADDRESS_FIELDS = ('ip_address', 'ip_range_start', 'ip_range_end', 'subnet_mask')


def clean_rule_fields(ip_type, ip_address='', ip_range_start='', ip_range_end='',
                      subnet_mask='', confirm_all_addresses=False):
    """
    Validate the address columns of a rule and return them in canonical form.

    Raises ValidationError keyed by the offending field. Columns that do not
    belong to `ip_type` must be empty, so a rule only ever carries the
    fields of its own kind.
    """
    if ip_type not in RULE_FIELDS:
        raise ValidationError({
            'ip_type': [f"'{ip_type}' is not a valid rule type. Expected single, range or subnet."]
        })

    supplied = {
        'ip_address': ip_address or '',
        'ip_range_start': ip_range_start or '',
        'ip_range_end': ip_range_end or '',
        'subnet_mask': subnet_mask or '',
    }
    errors = {}
    for field, value in supplied.items():
        if field in RULE_FIELDS[ip_type]:
            if not value:
                errors[field] = [f'This field is required for a {ip_type} rule.']
        elif value:
            errors[field] = [f'This field does not apply to a {ip_type} rule.']
    if errors:
        raise ValidationError(errors)

    cleaned = dict.fromkeys(ADDRESS_FIELDS, '')
    if ip_type == 'single':
        try:
            cleaned['ip_address'] = format_ipv4(parse_ipv4(supplied['ip_address']))
        except InvalidAddress as e:
            errors['ip_address'] = [str(e)]
    elif ip_type == 'range':
        for field in RULE_FIELDS['range']:
            try:
                cleaned[field] = format_ipv4(parse_ipv4(supplied[field]))
            except InvalidAddress as e:
                errors[field] = [str(e)]
        if not errors:
            address_range = parse_range(cleaned['ip_range_start'], cleaned['ip_range_end'])
            if address_range.start > address_range.end:
                errors['ip_range_end'] = ['Range end must not be lower than range start.']
    else:
        try:
            subnet = parse_subnet(supplied['subnet_mask'])
        except InvalidAddress as e:
            errors['subnet_mask'] = [str(e)]
        else:
            if subnet.prefix_length == 0 and not confirm_all_addresses:
                errors['subnet_mask'] = [
                    'A /0 subnet matches every IPv4 address. '
                    'Resubmit with confirm_all_addresses set to create it.'
                ]
            cleaned['subnet_mask'] = str(subnet)

    if errors:
        raise ValidationError(errors)
    return cleaned


@dataclass(frozen=True)
class BulkLineResult:
    line: int
    value: str
    success: bool
    rule_id: Optional[uuid.UUID] = None
    error: Optional[str] = None

    def as_dict(self):
        data = {'line': self.line, 'value': self.value, 'success': self.success}
        if self.success:
            data['rule_id'] = str(self.rule_id)
        else:
            data['error'] = self.error
        return data


class LaboratoryManager(models.Manager):
    """
    Laboratory directory operations
    """
    def create_laboratory(self, name, description='', capacity=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError({'name': ['Laboratory name is required.']})
        if self.filter(name__iexact=name).exists():
            raise DuplicateLaboratoryName(name)

        try:
            with transaction.atomic():
                laboratory = self.create(name=name, description=description or '', capacity=capacity)
        except IntegrityError:
            # Lost a race against a concurrent create with the same name
            raise DuplicateLaboratoryName(name)

        logger.info("Created laboratory '%s' (%s)", laboratory.name, laboratory.laboratory_id)
        return laboratory

    def list_laboratories(self):
        """Laboratories with derived rule counts, ordered by name"""
        return self.annotate(
            ip_count=Count('ip_rules'),
            active_ip_count=Count('ip_rules', filter=Q(ip_rules__is_active=True)),
        ).order_by('name')

    def delete_laboratory(self, laboratory):
        """Delete a laboratory and its rules unless an upcoming or ongoing election still uses it"""
        from voting.models import StudentAssignment

        with transaction.atomic():
            # Assignments lock the same row, so none can land between the check and the delete
            self.select_for_update().filter(pk=laboratory.pk).first()
            if StudentAssignment._default_manager.has_live_assignments(laboratory):
                raise LaboratoryInUse(laboratory)
            laboratory.delete()
        logger.info("Deleted laboratory '%s' (%s)", laboratory.name, laboratory.laboratory_id)


class Laboratory(models.Model):
    """
    Computer laboratory used as a voting precinct
    """
    laboratory_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)  # number of workstations
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LaboratoryManager()

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'laboratory_precinct'
        ordering = ['name']
        verbose_name_plural = 'laboratories'
        constraints = [
            models.UniqueConstraint(Lower('name'), name='laboratory_name_ci_unique'),
        ]


class IPAssignmentRuleManager(models.Manager):
    """
    Rule registry operations, each scoped to one laboratory
    """
    def add_rule(self, laboratory, ip_type, ip_address='', ip_range_start='', ip_range_end='',
                 subnet_mask='', confirm_all_addresses=False):
        cleaned = clean_rule_fields(
            ip_type,
            ip_address=ip_address,
            ip_range_start=ip_range_start,
            ip_range_end=ip_range_end,
            subnet_mask=subnet_mask,
            confirm_all_addresses=confirm_all_addresses,
        )
        if self._is_duplicate(laboratory, ip_type, cleaned):
            raise ValidationError({
                RULE_FIELDS[ip_type][0]: ['This address is already configured for the laboratory.']
            })

        rule = self.create(laboratory=laboratory, ip_type=ip_type, **cleaned)
        if ip_type == 'subnet' and rule.pattern.prefix_length == 0:
            logger.warning(
                "Subnet rule %s on laboratory '%s' matches every IPv4 address",
                rule.rule_id, laboratory.name,
            )
        logger.info("Added %s rule %s (%s) to laboratory '%s'",
                    ip_type, rule.rule_id, rule.describe(), laboratory.name)
        return rule

    def _is_duplicate(self, laboratory, ip_type, cleaned):
        if ip_type != 'subnet':
            return self.filter(laboratory=laboratory, ip_type=ip_type, **cleaned).exists()

        # Subnets differing only in host bits cover the same addresses
        subnet = parse_subnet(cleaned['subnet_mask'])
        network = subnet.base & subnet.mask
        candidates = self.filter(
            laboratory=laboratory, ip_type=ip_type,
            subnet_mask__endswith=f'/{subnet.prefix_length}',
        )
        for rule in candidates:
            try:
                existing = rule.pattern
            except InvalidAddress:
                continue
            if existing.prefix_length == subnet.prefix_length and existing.base & existing.mask == network:
                return True
        return False

    def add_rules_bulk(self, laboratory, ip_addresses):
        """
        Add one single-address rule per non-blank line.

        Every line succeeds or fails on its own; a malformed or duplicate
        line is reported and the remaining lines are still added.
        Accepts newline-delimited text or a sequence of lines.
        """
        if isinstance(ip_addresses, str):
            lines = ip_addresses.splitlines()
        else:
            lines = [str(line) for line in ip_addresses]
        entries = [(number, line.strip()) for number, line in enumerate(lines, 1) if line.strip()]

        max_lines = lab_access_setting('BULK_MAX_LINES')
        if len(entries) > max_lines:
            raise ValidationError({
                'ip_addresses': [f'At most {max_lines} addresses can be added at once, got {len(entries)}.']
            })

        results = []
        for number, value in entries:
            try:
                with transaction.atomic():
                    rule = self.add_rule(laboratory, self.model.Kind.SINGLE, ip_address=value)
            except ValidationError as e:
                results.append(BulkLineResult(number, value, False, error=' '.join(e.messages)))
            else:
                results.append(BulkLineResult(number, value, True, rule_id=rule.rule_id))

        created = sum(1 for result in results if result.success)
        logger.info("Bulk add on laboratory '%s': %d added, %d rejected",
                    laboratory.name, created, len(results) - created)
        return results

    def list_rules(self, laboratory):
        return self.filter(laboratory=laboratory).order_by('id')

    def set_active(self, rule_id, active):
        with transaction.atomic():
            rule = self.select_for_update().get(rule_id=rule_id)
            if rule.is_active != active:
                rule.is_active = active
                rule.save(update_fields=['is_active'])
                logger.info("Rule %s %s", rule_id, 'activated' if active else 'deactivated')
        return rule

    def delete_rule(self, rule_id):
        """Delete a rule. Deleting an unknown id is not an error."""
        deleted, _ = self.filter(rule_id=rule_id).delete()
        if deleted:
            logger.info("Deleted rule %s", rule_id)
        return deleted > 0


class IPAssignmentRule(models.Model):
    """
    Network address rule identifying the workstations of a laboratory
    """
    class Kind(models.TextChoices):
        SINGLE = 'single', 'Single IP'
        RANGE = 'range', 'IP Range'
        SUBNET = 'subnet', 'Subnet (CIDR)'

    rule_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    laboratory = models.ForeignKey(Laboratory, on_delete=models.CASCADE, related_name='ip_rules')
    ip_type = models.CharField(max_length=10, choices=Kind.choices, default=Kind.SINGLE)
    ip_address = models.CharField(max_length=15, blank=True)
    ip_range_start = models.CharField(max_length=15, blank=True)
    ip_range_end = models.CharField(max_length=15, blank=True)
    subnet_mask = models.CharField(max_length=18, blank=True)  # CIDR, e.g. 10.9.203.0/24
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = IPAssignmentRuleManager()

    @property
    def pattern(self):
        """The rule as a SingleAddress, AddressRange or Subnet"""
        if self.ip_type == self.Kind.SINGLE:
            return SingleAddress(parse_ipv4(self.ip_address))
        if self.ip_type == self.Kind.RANGE:
            return parse_range(self.ip_range_start, self.ip_range_end)
        if self.ip_type == self.Kind.SUBNET:
            return parse_subnet(self.subnet_mask)
        raise InvalidAddress(self.ip_type, f"Unknown rule type '{self.ip_type}'.")

    def describe(self):
        if self.ip_type == self.Kind.RANGE:
            return f'{self.ip_range_start} - {self.ip_range_end}'
        if self.ip_type == self.Kind.SUBNET:
            return self.subnet_mask
        return self.ip_address

    def clean(self):
        super().clean()
        cleaned = clean_rule_fields(
            self.ip_type,
            ip_address=self.ip_address,
            ip_range_start=self.ip_range_start,
            ip_range_end=self.ip_range_end,
            subnet_mask=self.subnet_mask,
        )
        for field, value in cleaned.items():
            setattr(self, field, value)

    def __str__(self):
        return f'{self.describe()} ({self.ip_type}) - {self.laboratory.name}'

    class Meta:
        db_table = 'laboratory_ip_address'
        ordering = ['id']
        verbose_name = 'IP assignment rule'
