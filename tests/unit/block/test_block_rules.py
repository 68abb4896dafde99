"""Tests for the block registry."""

from datetime import timedelta

import pytest

from warden.core.modules.block.models import (
    BlockKind,
    BlockRule,
    BlockRuleCreate,
    BlockRuleUpdate,
    ipv4_prefix,
    normalize_rule_value,
    parse_ip_prefix,
)
from warden.errors import NotFoundError, ValidationError
from warden.utils import now


class TestRuleMatching:
    def test_ip_range_matches_same_first_three_octets(self):
        rule = BlockRule(kind=BlockKind.IP_RANGE, value="10.0.0", reason="abuse")

        assert rule.matches("10.0.0.55", None)
        assert not rule.matches("10.0.1.1", None)

    def test_ip_range_compares_octets_numerically(self):
        rule = BlockRule(kind=BlockKind.IP_RANGE, value="10.0.0", reason="abuse")

        # A string prefix check would match these
        assert not rule.matches("10.0.00.1", None)
        assert not rule.matches("10.0.011.5", None)
        assert not BlockRule(kind=BlockKind.IP_RANGE, value="1.2.3", reason="x").matches("1.2.34.5", None)

    def test_ip_range_matches_ipv4_mapped_address(self):
        rule = BlockRule(kind=BlockKind.IP_RANGE, value="192.168.1", reason="abuse")
        assert rule.matches("::ffff:192.168.1.20", None)

    def test_unparseable_stored_range_matches_nothing(self):
        rule = BlockRule.model_construct(kind=BlockKind.IP_RANGE, value="bogus", reason="x", is_active=True)

        assert not rule.matches("2001:db8::1", None)
        assert not rule.matches("unknown", None)
        assert not rule.matches("10.0.0.1", None)

    def test_exact_ip(self):
        rule = BlockRule(kind=BlockKind.IP, value="203.0.113.7", reason="abuse")

        assert rule.matches("203.0.113.7", None)
        assert rule.matches("::ffff:203.0.113.7", None)
        assert not rule.matches("203.0.113.8", None)

    def test_email_is_case_insensitive_and_absent_never_matches(self):
        rule = BlockRule(kind=BlockKind.EMAIL, value="spam@example.com", reason="spam")

        assert rule.matches("1.1.1.1", "Spam@Example.com")
        assert not rule.matches("1.1.1.1", None)

    def test_expiry(self):
        at = now()
        permanent = BlockRule(kind=BlockKind.IP, value="1.1.1.1", reason="x")
        expired = BlockRule(kind=BlockKind.IP, value="1.1.1.1", reason="x", expires_at=at - timedelta(seconds=1))
        inactive = BlockRule(kind=BlockKind.IP, value="1.1.1.1", reason="x", is_active=False)

        assert permanent.is_effective(at)
        assert not expired.is_effective(at)
        assert not inactive.is_effective(at)


class TestValueParsing:
    def test_ipv4_prefix(self):
        assert ipv4_prefix("10.20.30.40") == (10, 20, 30)
        assert ipv4_prefix("2001:db8::1") is None
        assert ipv4_prefix("unknown") is None

    @pytest.mark.parametrize("value", ["10.0", "10.0.0.1", "a.b.c", "256.0.0", ""])
    def test_invalid_prefix(self, value):
        assert parse_ip_prefix(value) is None

    def test_normalize_values(self):
        assert normalize_rule_value(BlockKind.IP_RANGE, " 010.0.0 ") == "10.0.0"
        assert normalize_rule_value(BlockKind.EMAIL, "Bad@Example.COM") == "bad@example.com"
        assert normalize_rule_value(BlockKind.IP, "::ffff:10.1.1.1") == "10.1.1.1"

    @pytest.mark.parametrize(
        ("kind", "value"),
        [(BlockKind.IP, "10.0.0"), (BlockKind.IP_RANGE, "10.0.0.1"), (BlockKind.EMAIL, "nobody")],
    )
    def test_invalid_values_rejected(self, kind, value):
        with pytest.raises(ValidationError):
            normalize_rule_value(kind, value)


class TestBlockService:
    async def test_not_blocked_without_rules(self, core):
        assert await core.services.block.is_blocked("10.0.0.55", "a@example.com") is False

    async def test_ip_range_rule_blocks_subnet_only(self, core):
        await core.services.block.create_rule(BlockRuleCreate(kind=BlockKind.IP_RANGE, value="10.0.0", reason="abuse"), None)

        assert await core.services.block.is_blocked("10.0.0.55", None)
        assert not await core.services.block.is_blocked("10.0.1.1", None)

    async def test_email_rule(self, core):
        await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.EMAIL, value="spam@example.com", reason="spam"), None
        )

        assert await core.services.block.is_blocked("1.2.3.4", "SPAM@example.com")
        assert not await core.services.block.is_blocked("1.2.3.4", None)
        assert not await core.services.block.is_blocked("1.2.3.4", "other@example.com")

    async def test_expired_rule_never_blocks_even_when_active(self, core):
        await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x", expires_at=now() - timedelta(minutes=1)), None
        )

        assert not await core.services.block.is_blocked("1.2.3.4", None)

    async def test_future_expiry_still_blocks(self, core):
        await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x", expires_at=now() + timedelta(hours=1)), None
        )

        assert await core.services.block.is_blocked("1.2.3.4", None)

    async def test_naive_expiry_is_treated_as_utc(self, core):
        naive_past = (now() - timedelta(hours=1)).replace(tzinfo=None)
        rule = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x", expires_at=naive_past), None
        )

        assert rule.expires_at is not None and rule.expires_at.tzinfo is not None
        assert not await core.services.block.is_blocked("1.2.3.4", None)

    async def test_lookup_error_fails_open(self, core, monkeypatch):
        def broken_find(*args, **kwargs):
            raise RuntimeError("store unreachable")

        monkeypatch.setattr(core.services.block._collection, "find", broken_find)

        assert await core.services.block.is_blocked("10.0.0.55", "a@example.com") is False

    async def test_duplicate_active_rule_rejected(self, core):
        data = BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x")
        await core.services.block.create_rule(data, None)

        with pytest.raises(ValidationError):
            await core.services.block.create_rule(data, None)

    async def test_inactive_duplicate_allowed_but_not_reactivated(self, core):
        await core.services.block.create_rule(BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x"), None)
        inactive = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="old", is_active=False), None
        )

        with pytest.raises(ValidationError):
            await core.services.block.update_rule(inactive.id, BlockRuleUpdate(is_active=True))

    async def test_expired_active_rule_does_not_hold_the_slot(self, core):
        expired = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x", expires_at=now() - timedelta(minutes=1)), None
        )
        assert not await core.services.block.is_blocked("1.2.3.4", None)

        fresh = await core.services.block.create_rule(BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="again"), None)

        assert fresh.is_active
        assert (await core.services.block.get_rule(expired.id)).is_active is False
        assert await core.services.block.is_blocked("1.2.3.4", None)

    async def test_reactivation_retires_expired_active_rule(self, core):
        expired = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.EMAIL, value="spam@example.com", reason="x", expires_at=now() - timedelta(minutes=1)),
            None,
        )
        inactive = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.EMAIL, value="spam@example.com", reason="old", is_active=False), None
        )

        reactivated = await core.services.block.update_rule(inactive.id, BlockRuleUpdate(is_active=True))

        assert reactivated.is_active is True
        assert (await core.services.block.get_rule(expired.id)).is_active is False
        assert await core.services.block.is_blocked("1.1.1.1", "spam@example.com")

    async def test_update_and_delete(self, core):
        rule = await core.services.block.create_rule(
            BlockRuleCreate(kind=BlockKind.IP, value="1.2.3.4", reason="x", expires_at=now() + timedelta(days=1)), None
        )

        updated = await core.services.block.update_rule(rule.id, BlockRuleUpdate(reason="repeat abuse", clear_expiry=True))
        assert updated.reason == "repeat abuse"
        assert updated.expires_at is None

        deactivated = await core.services.block.update_rule(rule.id, BlockRuleUpdate(is_active=False))
        assert not await core.services.block.is_blocked("1.2.3.4", None)
        assert deactivated.is_active is False

        await core.services.block.delete_rule(rule.id)
        with pytest.raises(NotFoundError):
            await core.services.block.get_rule(rule.id)
        with pytest.raises(NotFoundError):
            await core.services.block.delete_rule(rule.id)
