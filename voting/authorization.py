"""
Vote-time decision on whether a student may vote from a client address.

Every path returns a Decision and the default outcome is a deny: only a
match against an active rule of the student's assigned laboratory allows
the vote. Storage errors propagate to the caller, which must treat them as
a deny.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from django.db import models

from laboratories.addressing import InvalidAddress, matches, parse_ipv4
from laboratories.models import IPAssignmentRule
from .models import StudentAssignment

logger = logging.getLogger(__name__)


class ReasonCode(models.TextChoices):
    IP_MATCHED = 'IP_MATCHED', 'Client address matches an active laboratory rule'
    MALFORMED_CLIENT_IP = 'MALFORMED_CLIENT_IP', 'Client address is not a valid IPv4 address'
    NOT_ASSIGNED = 'NOT_ASSIGNED', 'Student has no laboratory assignment for the election'
    NO_RULES_CONFIGURED = 'NO_RULES_CONFIGURED', 'Assigned laboratory has no address rules'
    IP_NOT_IN_RANGE = 'IP_NOT_IN_RANGE', 'Client address matches no active laboratory rule'


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    matched_rule_id: Optional[uuid.UUID] = None
    laboratory_id: Optional[uuid.UUID] = None
    laboratory_name: Optional[str] = None

    @classmethod
    def allow(cls, rule, laboratory):
        return cls(True, ReasonCode.IP_MATCHED, rule.rule_id,
                   laboratory.laboratory_id, laboratory.name)

    @classmethod
    def deny(cls, reason, laboratory=None):
        if laboratory is None:
            return cls(False, reason)
        return cls(False, reason, None, laboratory.laboratory_id, laboratory.name)


def authorize(student_id, election_id, client_ip):
    """
    Decide whether `student_id` (a student number) may vote in
    `election_id` (an election UUID) from `client_ip`.
    """
    try:
        ip = parse_ipv4(client_ip)
    except InvalidAddress:
        return _logged(Decision.deny(ReasonCode.MALFORMED_CLIENT_IP), student_id, election_id, client_ip)

    assignment = StudentAssignment._default_manager.get_assignment(student_id, election_id)
    if assignment is None:
        return _logged(Decision.deny(ReasonCode.NOT_ASSIGNED), student_id, election_id, client_ip)

    laboratory = assignment.laboratory
    rules = list(IPAssignmentRule._default_manager.list_rules(laboratory))
    if not rules:
        return _logged(Decision.deny(ReasonCode.NO_RULES_CONFIGURED, laboratory),
                       student_id, election_id, client_ip)

    for rule in rules:
        try:
            matched = matches(rule, ip)
        except InvalidAddress:
            logger.error("Rule %s of laboratory '%s' holds an unparseable address and was skipped",
                         rule.rule_id, laboratory.name)
            continue
        if matched:
            return _logged(Decision.allow(rule, laboratory), student_id, election_id, client_ip)

    return _logged(Decision.deny(ReasonCode.IP_NOT_IN_RANGE, laboratory), student_id, election_id, client_ip)


def _logged(decision, student_id, election_id, client_ip):
    if decision.allowed:
        logger.info("Vote location allowed: student=%s election=%s ip=%s rule=%s",
                    student_id, election_id, client_ip, decision.matched_rule_id)
    else:
        logger.warning("Vote location denied (%s): student=%s election=%s ip=%r",
                       decision.reason, student_id, election_id, client_ip)
    return decision
