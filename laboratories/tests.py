from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase, APIClient
from datetime import timedelta
from unittest import mock

from .addressing import (
    AddressRange, InvalidAddress, SingleAddress, Subnet, format_ipv4, matches,
    matches_range, matches_subnet, parse_ipv4, parse_subnet,
)
from .exceptions import DuplicateLaboratoryName, LaboratoryInUse
from .models import Laboratory, LaboratoryManager, IPAssignmentRule, IPAssignmentRuleManager
from authentication.models import Admin, Student
from elections.models import Election
from voting.models import StudentAssignment, StudentAssignmentManager

User = get_user_model()


class FakeRule:
    """Stand-in exposing the attributes matches() reads"""

    def __init__(self, pattern, is_active=True):
        self.pattern = pattern
        self.is_active = is_active


class AddressParsingTest(SimpleTestCase):
    """Test dotted-quad and CIDR parsing"""

    def test_parse_valid_addresses(self):
        """Test valid addresses convert to their 32-bit value"""
        self.assertEqual(parse_ipv4('0.0.0.0'), 0)
        self.assertEqual(parse_ipv4('255.255.255.255'), 0xFFFFFFFF)
        self.assertEqual(parse_ipv4('10.9.203.53'), (10 << 24) | (9 << 16) | (203 << 8) | 53)

    def test_parse_then_format_round_trips(self):
        """Test parse followed by format reproduces the canonical text"""
        for text in ['0.0.0.0', '1.2.3.4', '10.9.203.1', '192.168.100.7', '255.255.255.255']:
            self.assertEqual(format_ipv4(parse_ipv4(text)), text)

    def test_parse_rejects_malformed_addresses(self):
        """Test out-of-range octets, wrong segment counts and non-numeric text are rejected"""
        malformed = [
            '', '256.1.1.1', '1.2.3', '1.2.3.4.5', 'a.b.c.d', '1.2.3.-4',
            '010.0.0.1', '1.2.3.04', ' 1.2.3.4', '1.2.3.4\n', '1..3.4',
            '::ffff:192.168.100.7', '::1', 'localhost', '1.2.3.4/32',
            '١.2.3.4',
        ]
        for text in malformed:
            with self.subTest(text=text):
                with self.assertRaises(InvalidAddress):
                    parse_ipv4(text)

    def test_parse_rejects_non_string(self):
        """Test integers and None are not accepted as addresses"""
        for value in [None, 167837953, b'1.2.3.4']:
            with self.assertRaises(InvalidAddress):
                parse_ipv4(value)

    def test_parse_subnet(self):
        """Test CIDR text parsing keeps host bits and prefix"""
        subnet = parse_subnet('10.9.203.17/24')
        self.assertEqual(subnet.base, parse_ipv4('10.9.203.17'))
        self.assertEqual(subnet.prefix_length, 24)
        self.assertEqual(str(subnet), '10.9.203.17/24')

    def test_parse_subnet_rejects_bad_prefix(self):
        """Test prefixes outside 0-32 and malformed CIDR are rejected"""
        for text in ['10.0.0.0/33', '10.0.0.0/', '10.0.0.0/08', '10.0.0.0', '10.0.0/8', '10.0.0.0/8/8', '10.0.0.0/-1']:
            with self.subTest(text=text):
                with self.assertRaises(InvalidAddress):
                    parse_subnet(text)


class AddressMatchingTest(SimpleTestCase):
    """Test single, range and subnet membership"""

    def test_range_includes_boundaries(self):
        """Test both range ends match and neighbours do not"""
        pattern = AddressRange(parse_ipv4('10.9.203.1'), parse_ipv4('10.9.203.60'))
        self.assertTrue(matches_range(pattern, parse_ipv4('10.9.203.1')))
        self.assertTrue(matches_range(pattern, parse_ipv4('10.9.203.60')))
        self.assertTrue(matches_range(pattern, parse_ipv4('10.9.203.53')))
        self.assertFalse(matches_range(pattern, parse_ipv4('10.9.203.0')))
        self.assertFalse(matches_range(pattern, parse_ipv4('10.9.203.61')))

    def test_range_above_signed_boundary(self):
        """Test addresses with the top bit set compare as unsigned"""
        pattern = AddressRange(parse_ipv4('127.255.255.250'), parse_ipv4('128.0.0.5'))
        self.assertTrue(matches_range(pattern, parse_ipv4('128.0.0.1')))
        self.assertTrue(matches_range(pattern, parse_ipv4('127.255.255.255')))
        self.assertFalse(matches_range(pattern, parse_ipv4('200.0.0.1')))

    def test_subnet_matches_shared_prefix(self):
        """Test a /24 matches its own block only"""
        pattern = parse_subnet('192.168.1.0/24')
        self.assertTrue(matches_subnet(pattern, parse_ipv4('192.168.1.0')))
        self.assertTrue(matches_subnet(pattern, parse_ipv4('192.168.1.255')))
        self.assertFalse(matches_subnet(pattern, parse_ipv4('192.168.2.1')))

    def test_subnet_slash_32_matches_one_address(self):
        """Test a /32 subnet behaves like a single address"""
        pattern = parse_subnet('10.9.205.20/32')
        self.assertTrue(matches_subnet(pattern, parse_ipv4('10.9.205.20')))
        self.assertFalse(matches_subnet(pattern, parse_ipv4('10.9.205.21')))

    def test_subnet_slash_0_matches_everything(self):
        """Test a /0 subnet matches any address"""
        pattern = Subnet(parse_ipv4('10.0.0.0'), 0)
        for text in ['0.0.0.0', '8.8.8.8', '255.255.255.255']:
            self.assertTrue(matches_subnet(pattern, parse_ipv4(text)))

    def test_matches_dispatches_on_kind(self):
        """Test matches() uses the matcher of the rule's kind"""
        ip = parse_ipv4('10.9.203.53')
        self.assertTrue(matches(FakeRule(SingleAddress(ip)), ip))
        self.assertFalse(matches(FakeRule(SingleAddress(ip + 1)), ip))
        self.assertTrue(matches(FakeRule(parse_subnet('10.9.0.0/16')), ip))

    def test_inactive_rule_never_matches(self):
        """Test an inactive rule does not match even the exact address"""
        ip = parse_ipv4('10.9.203.53')
        self.assertFalse(matches(FakeRule(SingleAddress(ip), is_active=False), ip))
        self.assertFalse(matches(FakeRule(Subnet(0, 0), is_active=False), ip))


class RuleRegistryTest(TestCase):
    """Test adding, listing, toggling and deleting rules"""

    def setUp(self):
        self.laboratory = Laboratory.objects.create_laboratory('Lab 208', 'Second floor, north wing')

    def test_add_single_rule(self):
        """Test a single rule is stored active with only its own field"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.5')

        self.assertTrue(rule.is_active)
        self.assertEqual(rule.ip_address, '10.9.203.5')
        self.assertEqual(rule.ip_range_start, '')
        self.assertEqual(rule.subnet_mask, '')
        self.assertEqual(rule.pattern, SingleAddress(parse_ipv4('10.9.203.5')))

    def test_add_range_rule(self):
        """Test a range rule exposes an AddressRange pattern"""
        rule = IPAssignmentRule.objects.add_rule(
            self.laboratory, 'range', ip_range_start='10.9.203.1', ip_range_end='10.9.203.60'
        )
        self.assertEqual(rule.pattern, AddressRange(parse_ipv4('10.9.203.1'), parse_ipv4('10.9.203.60')))
        self.assertEqual(rule.describe(), '10.9.203.1 - 10.9.203.60')

    def test_add_rule_rejects_invalid_address(self):
        """Test an unparseable address is reported on its field and not stored"""
        with self.assertRaises(ValidationError) as ctx:
            IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.256')

        self.assertIn('ip_address', ctx.exception.message_dict)
        self.assertFalse(IPAssignmentRule.objects.exists())

    def test_add_rule_rejects_reversed_range(self):
        """Test range start above range end is rejected"""
        with self.assertRaises(ValidationError) as ctx:
            IPAssignmentRule.objects.add_rule(
                self.laboratory, 'range', ip_range_start='10.9.203.60', ip_range_end='10.9.203.1'
            )
        self.assertIn('ip_range_end', ctx.exception.message_dict)

    def test_add_rule_rejects_fields_of_other_kind(self):
        """Test a single rule carrying range fields is rejected"""
        with self.assertRaises(ValidationError) as ctx:
            IPAssignmentRule.objects.add_rule(
                self.laboratory, 'single', ip_address='10.9.203.5', ip_range_start='10.9.203.1'
            )
        self.assertIn('ip_range_start', ctx.exception.message_dict)

    def test_add_rule_rejects_unknown_type(self):
        """Test an unknown rule type is rejected"""
        with self.assertRaises(ValidationError) as ctx:
            IPAssignmentRule.objects.add_rule(self.laboratory, 'wildcard', ip_address='10.9.203.5')
        self.assertIn('ip_type', ctx.exception.message_dict)

    def test_slash_zero_subnet_requires_confirmation(self):
        """Test a /0 subnet is refused unless explicitly confirmed"""
        with self.assertRaises(ValidationError):
            IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='0.0.0.0/0')

        rule = IPAssignmentRule.objects.add_rule(
            self.laboratory, 'subnet', subnet_mask='0.0.0.0/0', confirm_all_addresses=True
        )
        self.assertEqual(rule.pattern.prefix_length, 0)

    def test_duplicate_rule_rejected(self):
        """Test the same address cannot be added twice to a laboratory"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.5')

        with self.assertRaises(ValidationError):
            IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.5')

        other = Laboratory.objects.create_laboratory('Lab 209')
        IPAssignmentRule.objects.add_rule(other, 'single', ip_address='10.9.203.5')

    def test_subnet_duplicate_ignores_host_bits(self):
        """Test subnets covering the same network are duplicates whatever their host bits"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.9.203.0/24')

        with self.assertRaises(ValidationError) as ctx:
            IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.9.203.7/24')
        self.assertIn('subnet_mask', ctx.exception.message_dict)

        IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.9.203.7/25')
        IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.9.204.0/24')
        self.assertEqual(IPAssignmentRule.objects.filter(laboratory=self.laboratory).count(), 3)

    def test_bulk_add_partial_success(self):
        """Test one malformed line among valid ones only rejects that line"""
        text = '10.9.203.1\n10.9.203.2\n10.9.203.999\n\n  10.9.203.4  \n10.9.203.5\n'

        results = IPAssignmentRule.objects.add_rules_bulk(self.laboratory, text)

        self.assertEqual(len(results), 5)
        self.assertEqual(sum(1 for result in results if result.success), 4)
        failure = [result for result in results if not result.success][0]
        self.assertEqual(failure.line, 3)
        self.assertEqual(failure.value, '10.9.203.999')
        self.assertTrue(failure.error)
        self.assertEqual(IPAssignmentRule.objects.filter(laboratory=self.laboratory).count(), 4)
        self.assertEqual(results[3].line, 5)
        self.assertEqual(results[3].value, '10.9.203.4')

    def test_bulk_add_reports_duplicates(self):
        """Test a repeated address within a batch fails on its second line"""
        results = IPAssignmentRule.objects.add_rules_bulk(self.laboratory, ['10.0.0.1', '10.0.0.1'])

        self.assertTrue(results[0].success)
        self.assertFalse(results[1].success)

    @override_settings(LAB_ACCESS={'BULK_MAX_LINES': 2})
    def test_bulk_add_line_limit(self):
        """Test an over-long batch is refused before anything is added"""
        with self.assertRaises(ValidationError):
            IPAssignmentRule.objects.add_rules_bulk(self.laboratory, '10.0.0.1\n10.0.0.2\n10.0.0.3')
        self.assertFalse(IPAssignmentRule.objects.exists())

    def test_list_rules_in_insertion_order(self):
        """Test rules are listed in the order they were added"""
        first = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.9')
        second = IPAssignmentRule.objects.add_rule(self.laboratory, 'subnet', subnet_mask='10.1.0.0/16')
        third = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')

        rules = list(IPAssignmentRule.objects.list_rules(self.laboratory))
        self.assertEqual(rules, [first, second, third])

    def test_set_active_is_idempotent(self):
        """Test deactivating twice leaves the rule inactive"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')

        IPAssignmentRule.objects.set_active(rule.rule_id, False)
        rule = IPAssignmentRule.objects.set_active(rule.rule_id, False)

        self.assertFalse(rule.is_active)
        self.assertFalse(matches(rule, parse_ipv4('10.0.0.1')))
        rule = IPAssignmentRule.objects.set_active(rule.rule_id, True)
        self.assertTrue(matches(rule, parse_ipv4('10.0.0.1')))

    def test_delete_rule_is_idempotent(self):
        """Test deleting the same rule twice is not an error"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')

        self.assertTrue(IPAssignmentRule.objects.delete_rule(rule.rule_id))
        self.assertFalse(IPAssignmentRule.objects.delete_rule(rule.rule_id))

    def test_model_clean_validates_fields(self):
        """Test full_clean applies the same validation as add_rule"""
        rule = IPAssignmentRule(laboratory=self.laboratory, ip_type='subnet', subnet_mask='10.0.0.0/40')
        with self.assertRaises(ValidationError):
            rule.full_clean()


class LaboratoryDirectoryTest(TestCase):
    """Test laboratory creation, listing and deletion"""

    def setUp(self):
        self.admin_user = User.objects.create_user(username='admin1', password='testpass123')
        self.student_user = User.objects.create_user(username='student1', password='testpass123')
        self.student = Student.objects.create(user=self.student_user, student_number='02000123456')
        self.laboratory = Laboratory.objects.create_laboratory('Lab 101')

    def make_election(self, status_value):
        return Election.objects.create(
            title=f'{status_value.title()} Election',
            start_date=timezone.now() - timedelta(days=1),
            end_date=timezone.now() + timedelta(days=1),
            status=status_value,
            created_by=self.admin_user
        )

    def test_duplicate_name_is_case_insensitive(self):
        """Test a name differing only in case is a duplicate"""
        with self.assertRaises(DuplicateLaboratoryName):
            Laboratory.objects.create_laboratory('lab 101')
        with self.assertRaises(DuplicateLaboratoryName):
            Laboratory.objects.create_laboratory('  LAB 101 ')

    def test_empty_name_rejected(self):
        """Test a blank name is a validation error"""
        with self.assertRaises(ValidationError):
            Laboratory.objects.create_laboratory('   ')

    def test_list_laboratories_with_rule_counts(self):
        """Test listing annotates total and active rule counts"""
        IPAssignmentRule.objects.add_rules_bulk(self.laboratory, '10.0.0.1\n10.0.0.2\n10.0.0.3')
        rule = IPAssignmentRule.objects.list_rules(self.laboratory).first()
        IPAssignmentRule.objects.set_active(rule.rule_id, False)
        Laboratory.objects.create_laboratory('Lab 102')

        laboratories = list(Laboratory.objects.list_laboratories())

        self.assertEqual([lab.name for lab in laboratories], ['Lab 101', 'Lab 102'])
        self.assertEqual(laboratories[0].ip_count, 3)
        self.assertEqual(laboratories[0].active_ip_count, 2)
        self.assertEqual(laboratories[1].ip_count, 0)

    def test_delete_cascades_rules(self):
        """Test deleting a laboratory removes its rules"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')

        Laboratory.objects.delete_laboratory(self.laboratory)

        self.assertFalse(Laboratory.objects.filter(name='Lab 101').exists())
        self.assertFalse(IPAssignmentRule.objects.exists())

    def test_delete_blocked_by_ongoing_election(self):
        """Test a laboratory assigned for an ongoing election cannot be deleted"""
        election = self.make_election('ongoing')
        StudentAssignment.objects.assign(self.student, election, self.laboratory)

        with self.assertRaises(LaboratoryInUse):
            Laboratory.objects.delete_laboratory(self.laboratory)
        self.assertTrue(Laboratory.objects.filter(pk=self.laboratory.pk).exists())

    def test_delete_checks_assignments_under_row_lock(self):
        """Test the laboratory row is locked before live assignments are checked"""
        calls = []
        lock = LaboratoryManager.select_for_update
        check = StudentAssignmentManager.has_live_assignments

        def locking(manager, *args, **kwargs):
            calls.append('lock')
            return lock(manager, *args, **kwargs)

        def checking(manager, laboratory):
            calls.append('check')
            return check(manager, laboratory)

        with mock.patch.object(LaboratoryManager, 'select_for_update', locking), \
                mock.patch.object(StudentAssignmentManager, 'has_live_assignments', checking):
            Laboratory.objects.delete_laboratory(self.laboratory)

        self.assertEqual(calls, ['lock', 'check'])
        self.assertFalse(Laboratory.objects.filter(pk=self.laboratory.pk).exists())

    def test_delete_allowed_after_election_completed(self):
        """Test assignments of a completed election do not block deletion"""
        election = self.make_election('ongoing')
        StudentAssignment.objects.assign(self.student, election, self.laboratory)
        election.status = 'completed'
        election.save()

        Laboratory.objects.delete_laboratory(self.laboratory)

        self.assertFalse(Laboratory.objects.filter(pk=self.laboratory.pk).exists())
        self.assertFalse(StudentAssignment.objects.exists())


class LaboratoryAPITest(APITestCase):
    """Test laboratory and rule API endpoints"""

    def setUp(self):
        self.client = APIClient()

        self.admin_user = User.objects.create_user(username='labadmin', password='testpass123')
        Admin.objects.create(user=self.admin_user, admin_id='ADM001')
        self.admin_token = Token.objects.create(user=self.admin_user)

        self.student_user = User.objects.create_user(username='student', password='testpass123')
        Student.objects.create(user=self.student_user, student_number='02000654321')
        self.student_token = Token.objects.create(user=self.student_user)

        self.laboratory = Laboratory.objects.create_laboratory('Lab 208', capacity=40)

    def authenticate_admin(self):
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.admin_token.key)

    def rules_url(self, laboratory=None):
        laboratory = laboratory or self.laboratory
        return f'/api/laboratories/laboratories/{laboratory.laboratory_id}/ip-addresses/'

    def test_create_laboratory(self):
        """Test an admin can create a laboratory"""
        self.authenticate_admin()

        response = self.client.post('/api/laboratories/laboratories/', {
            'name': 'Lab 301',
            'description': 'Third floor'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Lab 301')
        self.assertEqual(response.data['ip_count'], 0)
        self.assertTrue(Laboratory.objects.filter(name='Lab 301').exists())

    def test_create_duplicate_laboratory(self):
        """Test a case-insensitive duplicate name returns 409"""
        self.authenticate_admin()

        response = self.client.post('/api/laboratories/laboratories/', {'name': 'LAB 208'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_rename_to_existing_name(self):
        """Test renaming onto another laboratory's name returns 409"""
        other = Laboratory.objects.create_laboratory('Lab 209')
        self.authenticate_admin()

        response = self.client.patch(
            f'/api/laboratories/laboratories/{other.laboratory_id}/', {'name': 'lab 208'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_list_laboratories(self):
        """Test the list includes rule counts"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.5')
        self.authenticate_admin()

        response = self.client.get('/api/laboratories/laboratories/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['ip_count'], 1)
        self.assertEqual(response.data[0]['capacity'], 40)

    def test_student_cannot_manage_laboratories(self):
        """Test non-admin users are refused"""
        self.client.credentials(HTTP_AUTHORIZATION='Token ' + self.student_token.key)

        response = self.client.get('/api/laboratories/laboratories/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_request(self):
        """Test requests without credentials are refused"""
        response = self.client.get('/api/laboratories/laboratories/')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_range_rule(self):
        """Test adding a range rule through the API"""
        self.authenticate_admin()

        response = self.client.post(self.rules_url(), {
            'ip_type': 'range',
            'ip_range_start': '10.9.203.1',
            'ip_range_end': '10.9.203.60'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['display'], '10.9.203.1 - 10.9.203.60')
        self.assertTrue(response.data['is_active'])

    def test_add_invalid_rule(self):
        """Test validation errors are returned per field"""
        self.authenticate_admin()

        response = self.client.post(self.rules_url(), {
            'ip_type': 'range',
            'ip_range_start': '10.9.203.60',
            'ip_range_end': '10.9.203.1'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('ip_range_end', response.data)
        self.assertFalse(IPAssignmentRule.objects.exists())

    def test_add_duplicate_rule(self):
        """Test a duplicate address is a 400"""
        IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.9.203.5')
        self.authenticate_admin()

        response = self.client.post(self.rules_url(), {
            'ip_type': 'single', 'ip_address': '10.9.203.5'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('ip_address', response.data)

    def test_bulk_add(self):
        """Test bulk add reports per-line results"""
        self.authenticate_admin()

        response = self.client.post(self.rules_url() + 'bulk/', {
            'ip_addresses': '10.9.203.1\n10.9.203.2\nnot-an-ip\n10.9.203.3'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_207_MULTI_STATUS)
        self.assertEqual(response.data['created'], 3)
        self.assertEqual(response.data['failed'], 1)
        self.assertEqual(response.data['results'][2]['line'], 3)
        self.assertFalse(response.data['results'][2]['success'])
        self.assertIn('rule_id', response.data['results'][0])

    def test_list_rules(self):
        """Test listing the rules of a laboratory"""
        IPAssignmentRule.objects.add_rules_bulk(self.laboratory, '10.0.0.2\n10.0.0.1')
        self.authenticate_admin()

        response = self.client.get(self.rules_url())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([rule['ip_address'] for rule in response.data], ['10.0.0.2', '10.0.0.1'])

    def test_toggle_rule(self):
        """Test deactivating a rule through the API"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')
        self.authenticate_admin()

        response = self.client.patch(
            f'/api/laboratories/ip-addresses/{rule.rule_id}/', {'is_active': False}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        rule.refresh_from_db()
        self.assertFalse(rule.is_active)

    def test_toggle_unknown_rule(self):
        """Test toggling a missing rule is a 404"""
        self.authenticate_admin()

        response = self.client.patch(
            '/api/laboratories/ip-addresses/00000000-0000-0000-0000-000000000000/',
            {'is_active': True}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_toggle_rule_deleted_concurrently(self):
        """Test a rule removed while being toggled is a 404"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')
        self.authenticate_admin()

        with mock.patch.object(
            IPAssignmentRuleManager, 'set_active', side_effect=IPAssignmentRule.DoesNotExist
        ):
            response = self.client.patch(
                f'/api/laboratories/ip-addresses/{rule.rule_id}/', {'is_active': False}, format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_rule_twice(self):
        """Test deleting a rule is idempotent"""
        rule = IPAssignmentRule.objects.add_rule(self.laboratory, 'single', ip_address='10.0.0.1')
        self.authenticate_admin()
        url = f'/api/laboratories/ip-addresses/{rule.rule_id}/'

        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)

    def test_delete_laboratory_in_use(self):
        """Test deleting a laboratory used by an upcoming election returns 409"""
        election = Election.objects.create(
            title='Student Council Election',
            start_date=timezone.now() + timedelta(days=1),
            end_date=timezone.now() + timedelta(days=2),
            status='upcoming',
            created_by=self.admin_user
        )
        StudentAssignment.objects.assign(self.student_user.student, election, self.laboratory)
        self.authenticate_admin()

        response = self.client.delete(f'/api/laboratories/laboratories/{self.laboratory.laboratory_id}/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Laboratory.objects.filter(pk=self.laboratory.pk).exists())
