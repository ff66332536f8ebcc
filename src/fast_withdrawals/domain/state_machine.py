"""Withdrawal Ledger State Machine Guard.

Uses python-statemachine to enforce legal ledger transitions at the domain level.
Whatever the API or the simulation does, an illegal transition
(e.g., CLAIMED_BY_BENEFICIARY -> CLAIMED_BY_OWNER) raises TransitionNotAllowed.

The state machine is instantiated per withdrawal key and validates transitions
before the ledger row's status field is updated.

Transition table:
    UNSET          -> GREENLIGHTED            (greenlight)
    UNSET          -> CLAIMED_BY_BENEFICIARY  (beneficiary_claims)
    GREENLIGHTED   -> CLAIMED_BY_OWNER        (owner_claims)
"""

from __future__ import annotations

from statemachine import State, StateMachine


class WithdrawalStateMachine(StateMachine):
    """State machine that guards the lifecycle of one withdrawal key.

    Usage:
        sm = WithdrawalStateMachine(current_status="UNSET")
        sm.greenlight()      # transitions to GREENLIGHTED
        sm.current_state     # State('GREENLIGHTED', ...)
    """

    # --- States ---
    UNSET = State("UNSET", initial=True)
    GREENLIGHTED = State("GREENLIGHTED")
    CLAIMED_BY_OWNER = State("CLAIMED_BY_OWNER", final=True)
    CLAIMED_BY_BENEFICIARY = State("CLAIMED_BY_BENEFICIARY", final=True)

    # --- Events / Transitions ---

    # Market maker fronts the funds
    greenlight = UNSET.to(GREENLIGHTED)

    # Claims once the message is relayed
    owner_claims = GREENLIGHTED.to(CLAIMED_BY_OWNER)
    beneficiary_claims = UNSET.to(CLAIMED_BY_BENEFICIARY)

    def __init__(self, current_status: str = "UNSET") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current WithdrawalStatus value (e.g., "GREENLIGHTED").
                           Must match one of the State value strings exactly.
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches WithdrawalStatus enum)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return list(dict.fromkeys(str(t.event) for t in self.current_state.transitions))


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a ledger transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = WithdrawalStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
