"""Domain enumerations for the fast-withdrawal desk.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class WithdrawalStatus(enum.StrEnum):
    """Ledger states of a withdrawal key.

    State transitions are enforced by the WithdrawalStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    UNSET = "UNSET"
    GREENLIGHTED = "GREENLIGHTED"
    CLAIMED_BY_OWNER = "CLAIMED_BY_OWNER"
    CLAIMED_BY_BENEFICIARY = "CLAIMED_BY_BENEFICIARY"

    @property
    def is_settled(self) -> bool:
        """True once the payout is resolved from the desk's point of view."""
        return self is not WithdrawalStatus.UNSET


class EventType(enum.StrEnum):
    """Types of audit events recorded in the ledger_events table.

    Every registry write and every ledger transition produces exactly one event.
    """

    # Registry events
    DEPOSIT_BOX_REGISTERED = "DEPOSIT_BOX_REGISTERED"
    MIRROR_REGISTERED = "MIRROR_REGISTERED"

    # Settlement events
    WITHDRAWAL_GREENLIT = "WITHDRAWAL_GREENLIT"
    CLAIMED_BY_OWNER = "CLAIMED_BY_OWNER"
    CLAIMED_BY_BENEFICIARY = "CLAIMED_BY_BENEFICIARY"

    # Transfer sent, result never observed; needs reconciliation
    TRANSFER_OUTCOME_UNKNOWN = "TRANSFER_OUTCOME_UNKNOWN"


class KeyScheme(enum.StrEnum):
    """How a withdrawal key is derived.

    LEGACY hashes (token, beneficiary, amount) and is wire-compatible with the
    on-chain market maker. Two withdrawals with identical parameters collide
    onto one key under this scheme.

    NONCE_BOUND also hashes the messenger nonce, so every withdrawal gets its
    own key. Greenlights then have to name the nonce.
    """

    LEGACY = "legacy"
    NONCE_BOUND = "nonce_bound"
