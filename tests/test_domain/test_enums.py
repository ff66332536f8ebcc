"""Tests for domain enumerations."""

from __future__ import annotations

from fast_withdrawals.domain.enums import EventType, KeyScheme, WithdrawalStatus


class TestWithdrawalStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"UNSET", "GREENLIGHTED", "CLAIMED_BY_OWNER", "CLAIMED_BY_BENEFICIARY"}
        actual = {s.value for s in WithdrawalStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(WithdrawalStatus.UNSET, str)
        assert WithdrawalStatus.GREENLIGHTED == "GREENLIGHTED"

    def test_only_unset_is_unsettled(self) -> None:
        assert not WithdrawalStatus.UNSET.is_settled
        assert WithdrawalStatus.GREENLIGHTED.is_settled
        assert WithdrawalStatus.CLAIMED_BY_OWNER.is_settled
        assert WithdrawalStatus.CLAIMED_BY_BENEFICIARY.is_settled


class TestEventType:
    def test_all_event_types_exist(self) -> None:
        # 2 registry + 3 settlement + 1 reconciliation
        assert len(EventType) == 6

    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.WITHDRAWAL_GREENLIT, str)


class TestKeyScheme:
    def test_values(self) -> None:
        assert KeyScheme.LEGACY == "legacy"
        assert KeyScheme("nonce_bound") is KeyScheme.NONCE_BOUND
