"""Deny-list rules consulted before any authentication attempt."""

from datetime import UTC, datetime
from enum import StrEnum
from ipaddress import IPv4Address, ip_address
from typing import cast
from uuid import UUID

from pydantic import BaseModel, Field

from warden.core.db import MongoModel
from warden.errors import ValidationError
from warden.utils import now


class BlockKind(StrEnum):
    """What a block rule matches against.

    - IP: exact client address
    - IP_RANGE: first three octets of an IPv4 client address (a /24)
    - EMAIL: exact email, case-insensitive
    """

    IP = "ip"
    IP_RANGE = "ip_range"
    EMAIL = "email"


class BlockRule(MongoModel):
    """Deny rule. A rule never changes the request; it only vetoes it.

    Indexed on (kind, value) - unique among active rules.
    """

    kind: BlockKind
    value: str
    reason: str
    is_active: bool = True
    expires_at: datetime | None = None  # None = never expires
    created_by: UUID | None = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    def is_effective(self, at: datetime) -> bool:
        """Active and not past its expiry."""
        if self.expires_at is None:
            return self.is_active
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return self.is_active and expires_at > at

    def matches(self, client_ip: str | None, email: str | None) -> bool:
        """Check the rule against a client address and candidate email (ignores activity/expiry)."""
        match self.kind:
            case BlockKind.IP:
                return client_ip is not None and normalize_ip(client_ip) == self.value
            case BlockKind.IP_RANGE:
                if client_ip is None:
                    return False
                prefix = parse_ip_prefix(self.value)
                return prefix is not None and ipv4_prefix(client_ip) == prefix
            case BlockKind.EMAIL:
                return email is not None and normalize_email(email) == self.value


class BlockRuleCreate(BaseModel):
    kind: BlockKind
    value: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)
    is_active: bool = True
    expires_at: datetime | None = None


class BlockRuleUpdate(BaseModel):
    """Partial update; None fields are left unchanged."""

    reason: str | None = None
    is_active: bool | None = None
    expires_at: datetime | None = None
    clear_expiry: bool = False  # Set to make the rule permanent again


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_ip(value: str) -> str:
    """Canonical string form of an address; IPv4-mapped IPv6 collapses to IPv4.

    Unparseable input is returned stripped, so it can still match exactly.
    """
    value = value.strip()
    try:
        address = ip_address(value)
    except ValueError:
        return value
    if address.version == 6 and address.ipv4_mapped is not None:
        return str(address.ipv4_mapped)
    return str(address)


def ipv4_prefix(client_ip: str) -> tuple[int, int, int] | None:
    """First three octets of an IPv4 (or IPv4-mapped) address, None for anything else."""
    try:
        address = ip_address(client_ip.strip())
    except ValueError:
        return None
    if address.version == 6:
        if address.ipv4_mapped is None:
            return None
        address = address.ipv4_mapped
    first, second, third, _ = cast(IPv4Address, address).packed
    return first, second, third


def parse_ip_prefix(value: str) -> tuple[int, int, int] | None:
    """Parse "a.b.c" into octets, None if it is not three octets in 0..255."""
    parts = value.strip().split(".")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None
    octets = tuple(int(part) for part in parts)
    if any(octet > 255 for octet in octets):
        return None
    return octets[0], octets[1], octets[2]


def normalize_rule_value(kind: BlockKind, value: str) -> str:
    """Validate a rule value for its kind and return the stored form.

    Raises:
        ValidationError: If the value does not fit the kind
    """
    match kind:
        case BlockKind.IP:
            try:
                ip_address(value.strip())
            except ValueError:
                raise ValidationError(f"Invalid IP address: {value}") from None
            return normalize_ip(value)
        case BlockKind.IP_RANGE:
            octets = parse_ip_prefix(value)
            if octets is None:
                raise ValidationError(f"Invalid IP range, expected three octets like 10.0.0: {value}")
            return ".".join(str(octet) for octet in octets)
        case BlockKind.EMAIL:
            email = normalize_email(value)
            if "@" not in email or email.startswith("@") or email.endswith("@"):
                raise ValidationError(f"Invalid email address: {value}")
            return email
