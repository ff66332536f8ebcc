"""Tests for the WithdrawalStateMachine domain guard.

These tests verify that:
    1. Both settlement paths are allowed.
    2. Every other transition is blocked.
    3. The convenience function validate_transition works.
    4. Terminal states accept nothing.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from fast_withdrawals.domain.state_machine import (
    WithdrawalStateMachine,
    validate_transition,
)


class TestMarketMakerPath:
    """UNSET -> GREENLIGHTED -> CLAIMED_BY_OWNER."""

    def test_full_lifecycle(self) -> None:
        sm = WithdrawalStateMachine("UNSET")
        assert sm.status == "UNSET"

        sm.greenlight()
        assert sm.status == "GREENLIGHTED"

        sm.owner_claims()
        assert sm.status == "CLAIMED_BY_OWNER"


class TestSelfClaimPath:
    """UNSET -> CLAIMED_BY_BENEFICIARY."""

    def test_beneficiary_claims_unset(self) -> None:
        sm = WithdrawalStateMachine("UNSET")
        sm.beneficiary_claims()
        assert sm.status == "CLAIMED_BY_BENEFICIARY"


class TestInvalidTransitions:
    """Transitions that must be blocked."""

    def test_cannot_greenlight_twice(self) -> None:
        sm = WithdrawalStateMachine("GREENLIGHTED")
        with pytest.raises(TransitionNotAllowed):
            sm.greenlight()

    def test_beneficiary_cannot_claim_greenlit(self) -> None:
        sm = WithdrawalStateMachine("GREENLIGHTED")
        with pytest.raises(TransitionNotAllowed):
            sm.beneficiary_claims()

    def test_owner_cannot_claim_unset(self) -> None:
        sm = WithdrawalStateMachine("UNSET")
        with pytest.raises(TransitionNotAllowed):
            sm.owner_claims()

    def test_owner_cannot_claim_after_self_claim(self) -> None:
        sm = WithdrawalStateMachine("CLAIMED_BY_BENEFICIARY")
        with pytest.raises(TransitionNotAllowed):
            sm.owner_claims()

    def test_cannot_greenlight_after_self_claim(self) -> None:
        sm = WithdrawalStateMachine("CLAIMED_BY_BENEFICIARY")
        with pytest.raises(TransitionNotAllowed):
            sm.greenlight()

    def test_owner_cannot_claim_twice(self) -> None:
        sm = WithdrawalStateMachine("CLAIMED_BY_OWNER")
        with pytest.raises(TransitionNotAllowed):
            sm.owner_claims()


class TestAllowedEvents:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("UNSET", {"greenlight", "beneficiary_claims"}),
            ("GREENLIGHTED", {"owner_claims"}),
            ("CLAIMED_BY_OWNER", set()),
            ("CLAIMED_BY_BENEFICIARY", set()),
        ],
    )
    def test_allowed_events(self, status: str, expected: set[str]) -> None:
        sm = WithdrawalStateMachine(status)
        assert set(sm.get_allowed_events()) == expected

    def test_terminal_states_are_final(self) -> None:
        for status in ("CLAIMED_BY_OWNER", "CLAIMED_BY_BENEFICIARY"):
            assert WithdrawalStateMachine(status).current_state.final


class TestValidateTransition:
    def test_valid_transition(self) -> None:
        assert validate_transition("UNSET", "greenlight") == "GREENLIGHTED"
        assert validate_transition("GREENLIGHTED", "owner_claims") == "CLAIMED_BY_OWNER"

    def test_invalid_transition(self) -> None:
        with pytest.raises(TransitionNotAllowed):
            validate_transition("CLAIMED_BY_OWNER", "greenlight")

    def test_unknown_event(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("UNSET", "nonexistent_event")

    def test_unknown_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            WithdrawalStateMachine("SETTLED")
