from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase, RequestFactory, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase, APIClient
from datetime import timedelta
from unittest import mock
import uuid

from .authorization import Decision, ReasonCode, authorize
from .models import StudentAssignment
from .permissions import denial_message
from .utils import get_client_ip
from authentication.models import Admin, Student
from elections.models import Election
from laboratories.models import Laboratory, IPAssignmentRule

User = get_user_model()


class VotingLocationFixtureMixin:
    """Lab 208 with one range rule and a student assigned to it for an ongoing election"""

    def create_fixture(self):
        self.admin_user = User.objects.create_user(username='admin', password='testpass123')
        Admin.objects.create(user=self.admin_user, admin_id='ADM100')

        self.student_user = User.objects.create_user(
            username='jdelacruz', password='testpass123', first_name='Juan', last_name='Dela Cruz'
        )
        self.student = Student.objects.create(
            user=self.student_user,
            student_number='02000111111',
            course_name='BSIT'
        )

        self.election = Election.objects.create(
            title='Student Council Election',
            start_date=timezone.now() - timedelta(hours=1),
            end_date=timezone.now() + timedelta(hours=8),
            status='ongoing',
            created_by=self.admin_user
        )

        self.laboratory = Laboratory.objects.create_laboratory('Lab 208')
        self.range_rule = IPAssignmentRule.objects.add_rule(
            self.laboratory, 'range', ip_range_start='10.9.203.1', ip_range_end='10.9.203.60'
        )


class StudentAssignmentTest(VotingLocationFixtureMixin, TestCase):
    """Test the per-election student assignment store"""

    def setUp(self):
        self.create_fixture()
        self.other_laboratory = Laboratory.objects.create_laboratory('Lab 209')

    def test_assign_creates_assignment(self):
        """Test assigning a student for the first time"""
        assignment, created = StudentAssignment.objects.assign(
            self.student, self.election, self.laboratory, assigned_by=self.admin_user
        )

        self.assertTrue(created)
        self.assertEqual(assignment.laboratory, self.laboratory)
        self.assertEqual(assignment.assigned_by, self.admin_user)

    def test_assign_overwrites_previous_assignment(self):
        """Test a second assignment for the same election replaces the first"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        assignment, created = StudentAssignment.objects.assign(self.student, self.election, self.other_laboratory)

        self.assertFalse(created)
        self.assertEqual(StudentAssignment.objects.count(), 1)
        self.assertEqual(assignment.laboratory, self.other_laboratory)

    def test_assign_refused_for_completed_election(self):
        """Test assignments cannot change once an election is over"""
        self.election.status = 'completed'
        self.election.save()

        with self.assertRaises(ValidationError):
            StudentAssignment.objects.assign(self.student, self.election, self.laboratory)

    def test_assign_refused_for_deleted_laboratory(self):
        """Test a laboratory removed before the assignment lands is refused"""
        Laboratory.objects.delete_laboratory(self.other_laboratory)

        with self.assertRaises(ValidationError) as ctx:
            StudentAssignment.objects.assign(self.student, self.election, self.other_laboratory)
        self.assertIn('laboratory_id', ctx.exception.message_dict)
        self.assertFalse(StudentAssignment.objects.exists())

    def test_get_assignment(self):
        """Test looking up an assignment by student number and election id"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)

        assignment = StudentAssignment.objects.get_assignment('02000111111', self.election.election_id)
        self.assertEqual(assignment.laboratory, self.laboratory)
        self.assertIsNone(StudentAssignment.objects.get_assignment('02000111111', uuid.uuid4()))
        self.assertIsNone(StudentAssignment.objects.get_assignment('99999999', self.election.election_id))

    def test_list_by_laboratory(self):
        """Test listing student numbers assigned to a laboratory"""
        second_user = User.objects.create_user(username='mreyes', password='testpass123')
        second = Student.objects.create(user=second_user, student_number='02000000001')
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        StudentAssignment.objects.assign(second, self.election, self.laboratory)

        self.assertEqual(
            StudentAssignment.objects.list_by_laboratory(self.laboratory, self.election),
            ['02000000001', '02000111111']
        )
        self.assertEqual(StudentAssignment.objects.list_by_laboratory(self.other_laboratory, self.election), [])


class AuthorizationServiceTest(VotingLocationFixtureMixin, TestCase):
    """Test the vote-time location decision"""

    def setUp(self):
        self.create_fixture()
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)

    def authorize(self, client_ip):
        return authorize(self.student.student_number, self.election.election_id, client_ip)

    def test_address_inside_range_is_allowed(self):
        """Test a workstation inside the laboratory range may vote"""
        decision = self.authorize('10.9.203.53')

        self.assertTrue(decision.allowed)
        self.assertEqual(decision.reason, ReasonCode.IP_MATCHED)
        self.assertEqual(decision.matched_rule_id, self.range_rule.rule_id)
        self.assertEqual(decision.laboratory_name, 'Lab 208')

    def test_range_boundaries_are_allowed(self):
        """Test the first and last address of the range are allowed"""
        self.assertTrue(self.authorize('10.9.203.1').allowed)
        self.assertTrue(self.authorize('10.9.203.60').allowed)

    def test_address_outside_range_is_denied(self):
        """Test a workstation outside the laboratory is denied"""
        decision = self.authorize('10.9.204.1')

        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, ReasonCode.IP_NOT_IN_RANGE)
        self.assertIsNone(decision.matched_rule_id)

    def test_unassigned_student_is_denied(self):
        """Test a student without an assignment is denied regardless of address"""
        StudentAssignment.objects.all().delete()

        for client_ip in ['10.9.203.53', '10.9.204.1']:
            decision = self.authorize(client_ip)
            self.assertFalse(decision.allowed)
            self.assertEqual(decision.reason, ReasonCode.NOT_ASSIGNED)

    def test_assignment_for_other_election_does_not_count(self):
        """Test an assignment only authorizes its own election"""
        decision = authorize(self.student.student_number, uuid.uuid4(), '10.9.203.53')

        self.assertEqual(decision.reason, ReasonCode.NOT_ASSIGNED)

    def test_malformed_election_id_is_not_assigned(self):
        """Test an election id that is not a UUID denies instead of raising"""
        for election_id in ['not-a-uuid', '', None, 42]:
            with self.subTest(election_id=election_id):
                decision = authorize(self.student.student_number, election_id, '10.9.203.53')
                self.assertFalse(decision.allowed)
                self.assertEqual(decision.reason, ReasonCode.NOT_ASSIGNED)

        decision = authorize(self.student.student_number, str(uuid.uuid4()), '10.9.203.53')
        self.assertEqual(decision.reason, ReasonCode.NOT_ASSIGNED)

    def test_laboratory_without_rules_is_denied(self):
        """Test an unconfigured laboratory is treated as closed"""
        IPAssignmentRule.objects.delete_rule(self.range_rule.rule_id)

        decision = self.authorize('10.9.203.53')

        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, ReasonCode.NO_RULES_CONFIGURED)

    def test_only_inactive_rules_is_not_in_range(self):
        """Test a laboratory whose rules are all inactive denies with IP_NOT_IN_RANGE"""
        IPAssignmentRule.objects.set_active(self.range_rule.rule_id, False)

        decision = self.authorize('10.9.203.53')

        self.assertEqual(decision.reason, ReasonCode.IP_NOT_IN_RANGE)

    def test_deactivating_matching_rule_flips_decision(self):
        """Test deactivating the matching rule turns an allow into a deny"""
        self.assertTrue(self.authorize('10.9.203.53').allowed)

        IPAssignmentRule.objects.set_active(self.range_rule.rule_id, False)

        decision = self.authorize('10.9.203.53')
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, ReasonCode.IP_NOT_IN_RANGE)

    def test_malformed_client_address_is_denied(self):
        """Test malformed, IPv6-mapped and empty client addresses are denied"""
        for client_ip in ['', '::ffff:10.9.203.53', '::1', '10.9.203.053', 'unknown', None]:
            with self.subTest(client_ip=client_ip):
                decision = self.authorize(client_ip)
                self.assertFalse(decision.allowed)
                self.assertEqual(decision.reason, ReasonCode.MALFORMED_CLIENT_IP)

    def test_first_matching_rule_is_reported(self):
        """Test overlapping rules report the earliest added match"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.9.203.0/24')

        decision = self.authorize('10.9.203.53')
        self.assertEqual(decision.matched_rule_id, self.range_rule.rule_id)

        decision = self.authorize('10.9.203.200')
        self.assertTrue(decision.allowed)
        self.assertNotEqual(decision.matched_rule_id, self.range_rule.rule_id)

    def test_rules_of_other_laboratories_are_ignored(self):
        """Test a match in a different laboratory does not authorize the student"""
        other = Laboratory.objects.create_laboratory('Lab 209')
        IPAssignmentRule.objects.add_rule(other, 'single', ip_address='10.9.209.10')

        decision = self.authorize('10.9.209.10')

        self.assertEqual(decision.reason, ReasonCode.IP_NOT_IN_RANGE)

    def test_corrupted_rule_is_skipped(self):
        """Test a stored rule with an unparseable address never matches"""
        IPAssignmentRule.objects.filter(pk=self.range_rule.pk).update(ip_range_start='garbage')

        decision = self.authorize('10.9.203.53')

        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, ReasonCode.IP_NOT_IN_RANGE)


class ClientAddressTest(TestCase):
    """Test extracting the client address from a request"""

    def setUp(self):
        self.factory = RequestFactory()

    def test_remote_addr_used_by_default(self):
        """Test X-Forwarded-For is ignored unless trusted"""
        request = self.factory.get('/', REMOTE_ADDR='10.9.203.5', HTTP_X_FORWARDED_FOR='10.9.203.53')

        self.assertEqual(get_client_ip(request), '10.9.203.5')

    @override_settings(LAB_ACCESS={'TRUST_X_FORWARDED_FOR': True})
    def test_forwarded_for_used_when_trusted(self):
        """Test the first X-Forwarded-For entry is used behind a trusted proxy"""
        request = self.factory.get(
            '/', REMOTE_ADDR='172.16.0.1', HTTP_X_FORWARDED_FOR='10.9.203.53, 172.16.0.1'
        )

        self.assertEqual(get_client_ip(request), '10.9.203.53')

    def test_denial_message_names_laboratory_only(self):
        """Test the voter message names the laboratory without rule details"""
        decision = Decision(False, ReasonCode.IP_NOT_IN_RANGE, None, uuid.uuid4(), 'Lab 208')

        message = denial_message(decision)

        self.assertIn('Lab 208', message)
        self.assertNotIn('IP_NOT_IN_RANGE', message)


class VotingLocationAPITest(VotingLocationFixtureMixin, APITestCase):
    """Test assignment and authorization API endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.create_fixture()
        self.admin_token = Token.objects.create(user=self.admin_user)
        self.student_token = Token.objects.create(user=self.student_user)

    def authenticate_admin(self):
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.admin_token.key)

    def assign(self, laboratory=None):
        return self.client.post('/api/voting/assignments/', {
            'student_id': self.student.student_number,
            'election_id': str(self.election.election_id),
            'laboratory_id': str((laboratory or self.laboratory).laboratory_id)
        }, format='json')

    def test_assign_student(self):
        """Test assigning and then reassigning a student"""
        self.authenticate_admin()

        response = self.assign()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['assignment']['laboratory_name'], 'Lab 208')

        other = Laboratory.objects.create_laboratory('Lab 209')
        response = self.assign(other)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['assignment']['laboratory_name'], 'Lab 209')

    def test_assign_unknown_student(self):
        """Test assigning a missing student reports the field"""
        self.authenticate_admin()

        response = self.client.post('/api/voting/assignments/', {
            'student_id': 'NOSUCHSTUDENT',
            'election_id': str(self.election.election_id),
            'laboratory_id': str(self.laboratory.laboratory_id)
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('student_id', response.data)

    def test_assign_requires_admin(self):
        """Test students cannot assign themselves"""
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.student_token.key)

        response = self.assign()

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(StudentAssignment.objects.exists())

    def test_laboratory_students(self):
        """Test listing students assigned to a laboratory"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        self.authenticate_admin()

        response = self.client.get(
            f'/api/voting/assignments/{self.election.election_id}/{self.laboratory.laboratory_id}/'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['student_ids'], ['02000111111'])
        self.assertEqual(response.data['assigned_count'], 1)

    def test_authorize_vote(self):
        """Test the authorize endpoint returns the decision"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        self.authenticate_admin()

        response = self.client.post('/api/voting/authorize/', {
            'student_id': self.student.student_number,
            'election_id': str(self.election.election_id),
            'client_ip': '10.9.203.53'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['allowed'])
        self.assertEqual(response.data['reason'], 'IP_MATCHED')
        self.assertEqual(response.data['matched_rule_id'], str(self.range_rule.rule_id))

    def test_authorize_vote_blank_address(self):
        """Test a blank client address is a deny, not a request error"""
        self.authenticate_admin()

        response = self.client.post('/api/voting/authorize/', {
            'student_id': self.student.student_number,
            'election_id': str(self.election.election_id),
            'client_ip': ''
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['allowed'])
        self.assertEqual(response.data['reason'], 'MALFORMED_CLIENT_IP')

    def test_authorize_vote_storage_failure(self):
        """Test a storage failure is reported as a deny"""
        self.authenticate_admin()

        with mock.patch('voting.views.authorize', side_effect=DatabaseError('database is locked')):
            response = self.client.post('/api/voting/authorize/', {
                'student_id': self.student.student_number,
                'election_id': str(self.election.election_id),
                'client_ip': '10.9.203.53'
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertFalse(response.data['allowed'])

    def test_location_check_from_assigned_laboratory(self):
        """Test a student at their laboratory passes the location check"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.student_token.key)

        response = self.client.get(
            f'/api/voting/elections/{self.election.election_id}/location-check/',
            REMOTE_ADDR='10.9.203.20'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['allowed'])

    def test_location_check_from_wrong_workstation(self):
        """Test a student elsewhere gets the opaque denial message"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.student_token.key)

        response = self.client.get(
            f'/api/voting/elections/{self.election.election_id}/location-check/',
            REMOTE_ADDR='10.9.204.1'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('Lab 208', str(response.data['detail']))
        self.assertNotIn(str(self.range_rule.rule_id), str(response.data))
        self.assertNotIn('IP_NOT_IN_RANGE', str(response.data))

    def test_location_check_ignores_untrusted_forwarded_for(self):
        """Test a spoofed X-Forwarded-For header does not grant access"""
        StudentAssignment.objects.assign(self.student, self.election, self.laboratory)
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.student_token.key)

        response = self.client.get(
            f'/api/voting/elections/{self.election.election_id}/location-check/',
            REMOTE_ADDR='192.168.1.100',
            HTTP_X_FORWARDED_FOR='10.9.203.20'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_location_check_requires_student(self):
        """Test users without a student profile cannot pass the location check"""
        self.authenticate_admin()

        response = self.client.get(
            f'/api/voting/elections/{self.election.election_id}/location-check/',
            REMOTE_ADDR='10.9.203.20'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
