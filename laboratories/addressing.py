import ipaddress
import re
from dataclasses import dataclass


IPV4_MAX = 0xFFFFFFFF

# Four ASCII-decimal octets, no leading zeros (a leading zero is read as octal by some resolvers)
_OCTET = r'(?:0|[1-9][0-9]{0,2})'
_DOTTED_QUAD = re.compile(r'{0}\.{0}\.{0}\.{0}'.format(_OCTET))
_PREFIX = re.compile(r'0|[1-9][0-9]?')


class InvalidAddress(ValueError):
    """Raised when text is not a well-formed dotted-quad IPv4 address or CIDR subnet"""

    def __init__(self, value, message=None):
        self.value = value
        super().__init__(message or f"'{value}' is not a valid IPv4 address.")


@dataclass(frozen=True)
class SingleAddress:
    address: int
    kind = 'single'


@dataclass(frozen=True)
class AddressRange:
    start: int
    end: int
    kind = 'range'


@dataclass(frozen=True)
class Subnet:
    base: int
    prefix_length: int
    kind = 'subnet'

    @property
    def mask(self):
        return prefix_mask(self.prefix_length)

    def __str__(self):
        return f'{format_ipv4(self.base)}/{self.prefix_length}'


def parse_ipv4(text):
    """
    Convert dotted-quad text to an unsigned 32-bit integer.

    Whitespace, leading zeros, IPv6 (including IPv6-mapped IPv4),
    hostnames and non-string input are all rejected.
    """
    if not isinstance(text, str) or not _DOTTED_QUAD.fullmatch(text):
        raise InvalidAddress(text)
    if any(int(octet) > 255 for octet in text.split('.')):
        raise InvalidAddress(text)
    return int(ipaddress.IPv4Address(text))


def format_ipv4(value):
    """Render an unsigned 32-bit integer as canonical dotted-quad text"""
    if not 0 <= value <= IPV4_MAX:
        raise InvalidAddress(value, f'{value} is outside the IPv4 address space.')
    return str(ipaddress.IPv4Address(value))


def prefix_mask(prefix_length):
    """Mask with the top prefix_length bits set"""
    if not 0 <= prefix_length <= 32:
        raise InvalidAddress(prefix_length, f'Prefix length {prefix_length} must be between 0 and 32.')
    return (IPV4_MAX << (32 - prefix_length)) & IPV4_MAX


def parse_subnet(text):
    """Parse CIDR text such as '10.9.203.0/24'. Host bits in the address are allowed."""
    if not isinstance(text, str) or text.count('/') != 1:
        raise InvalidAddress(text, f"'{text}' is not a valid CIDR subnet (expected address/prefix).")
    address, prefix = text.split('/')
    if not _PREFIX.fullmatch(prefix) or int(prefix) > 32:
        raise InvalidAddress(text, f"'{text}' has an invalid prefix length (expected 0-32).")
    try:
        base = parse_ipv4(address)
    except InvalidAddress:
        raise InvalidAddress(text, f"'{text}' is not a valid CIDR subnet (bad network address).")
    return Subnet(base=base, prefix_length=int(prefix))


def parse_range(start_text, end_text):
    """Parse an inclusive range. The caller decides how to report start > end."""
    return AddressRange(start=parse_ipv4(start_text), end=parse_ipv4(end_text))


def matches_single(pattern, ip):
    return ip == pattern.address


def matches_range(pattern, ip):
    # Python ints are unbounded, so plain comparison is already unsigned
    return pattern.start <= ip <= pattern.end


def matches_subnet(pattern, ip):
    mask = pattern.mask
    return (ip & mask) == (pattern.base & mask)


_MATCHERS = {
    SingleAddress.kind: matches_single,
    AddressRange.kind: matches_range,
    Subnet.kind: matches_subnet,
}


def matches(rule, ip):
    """
    Test a parsed client address against a rule.

    `rule` is anything exposing `is_active` and `pattern` (an
    IPAssignmentRule in practice). Inactive rules never match and their
    address test is not evaluated.
    """
    if not rule.is_active:
        return False
    pattern = rule.pattern
    return _MATCHERS[pattern.kind](pattern, ip)
