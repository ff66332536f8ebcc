"""Market Maker Service — the settlement engine.

Arbitrates the race between the market maker and a withdrawing user over
exactly one payout per withdrawal key:

    greenlight  owner fronts `amount` from an inventory account to the user
    claim       once the real message is relayed, the owner reclaims what it
                fronted, or the user collects the withdrawal it was never fronted

Every public method is one unit of work:
    - a contextvar rejects calls made from inside an external transfer,
    - writes are serialized on this engine by an asyncio.Lock; reads are not,
    - a fresh session runs inside `session.begin()`, so any exception
      (including TransferFailed) rolls back every write of the call.

Across processes the database decides: ledger rows are read FOR UPDATE and
moved with a compare-and-set on their status, and a lost race surfaces as the
same rejection a sequential caller would get.

Ledger writes are flushed before the external transfer is made. If the
transfer may have gone through but its result was never seen, the transition
is committed anyway and TransferOutcomeUnknown is raised afterwards.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, nullcontext
from contextvars import ContextVar
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError
from statemachine.exceptions import TransitionNotAllowed

from fast_withdrawals.domain.enums import EventType, KeyScheme, WithdrawalStatus
from fast_withdrawals.domain.exceptions import (
    AlreadyClaimed,
    AlreadyGreenlighted,
    FastWithdrawalError,
    MessageNotRelayed,
    NotGreenlighted,
    ReentrantCall,
    TransferFailed,
    TransferOutcomeUnknown,
    Unauthorized,
    WrongBeneficiary,
)
from fast_withdrawals.domain.messages import (
    check_uint256,
    normalize_address,
    withdrawal_key,
)
from fast_withdrawals.domain.state_machine import WithdrawalStateMachine
from fast_withdrawals.infrastructure.database.repositories import (
    EventRepository,
    LedgerRepository,
)
from fast_withdrawals.logging_config import get_logger
from fast_withdrawals.services.registry_service import RegistryEntry, RegistryService
from fast_withdrawals.services.verification_service import VerificationService

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from fast_withdrawals.domain.protocols import MessageRelayOracle, TokenGateway
    from fast_withdrawals.infrastructure.database.orm_models import (
        LedgerEvent,
        WithdrawalEntry,
    )

logger = get_logger(__name__)

_active_operation: ContextVar[str | None] = ContextVar(
    "fast_withdrawals_active_operation", default=None
)

_EVENT_TYPES = {
    "greenlight": EventType.WITHDRAWAL_GREENLIT,
    "owner_claims": EventType.CLAIMED_BY_OWNER,
    "beneficiary_claims": EventType.CLAIMED_BY_BENEFICIARY,
}


class MarketMakerService:
    """Registry, verifier and withdrawal ledger behind one transactional boundary."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tokens: TokenGateway,
        oracle: MessageRelayOracle,
        owner: str,
        market_maker_address: str,
        key_scheme: KeyScheme = KeyScheme.LEGACY,
    ) -> None:
        """Wire the engine to its collaborators.

        Args:
            session_factory: Opens one session per operation.
            tokens: Moves value; inventories must have approved `market_maker_address`.
            oracle: The messenger's record of relayed messages.
            owner: The only principal allowed to register tokens and greenlight.
            market_maker_address: The desk's own L1 account. It spends inventory
                allowances and receives relayed withdrawals.
            key_scheme: How withdrawal keys are derived.
        """
        self._session_factory = session_factory
        self._tokens = tokens
        self._oracle = oracle
        self._owner = normalize_address(owner)
        self._address = normalize_address(market_maker_address)
        self._key_scheme = key_scheme
        self._lock = asyncio.Lock()

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def address(self) -> str:
        return self._address

    @property
    def key_scheme(self) -> KeyScheme:
        return self._key_scheme

    @property
    def tokens(self) -> TokenGateway:
        return self._tokens

    @property
    def oracle(self) -> MessageRelayOracle:
        return self._oracle

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def register_deposit_box(self, caller: str, token: str, box: str) -> RegistryEntry:
        async with self._operation("registerDepositBox") as session:
            return await RegistryService(session, self._owner).register_deposit_box(
                caller, token, box
            )

    async def register_mirror(self, caller: str, token: str, l2_token: str) -> RegistryEntry:
        async with self._operation("registerMirror") as session:
            return await RegistryService(session, self._owner).register_mirror(
                caller, token, l2_token
            )

    async def get_registration(self, token: str) -> RegistryEntry:
        async with self._operation("getRegistration", exclusive=False) as session:
            return await RegistryService(session, self._owner).get_entry(token)

    async def list_registrations(self) -> list[RegistryEntry]:
        async with self._operation("listRegistrations", exclusive=False) as session:
            return await RegistryService(session, self._owner).list_entries()

    # ------------------------------------------------------------------
    # Message verification
    # ------------------------------------------------------------------

    async def is_successful_msg(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> bool:
        async with self._operation("isSuccessfulMsg", exclusive=False) as session:
            verifier = VerificationService(session, self._oracle)
            return await verifier.is_successful_msg(token, beneficiary, amount, nonce)

    async def describe_message(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> dict:
        """Return the reconstructed relay envelope and whether it was relayed."""
        async with self._operation("describeMessage", exclusive=False) as session:
            verifier = VerificationService(session, self._oracle)
            message = await verifier.build_message(token, beneficiary, amount, nonce)
            return {**message.to_dict(), "relayed": await verifier.is_relayed(message)}

    # ------------------------------------------------------------------
    # Greenlight
    # ------------------------------------------------------------------

    async def greenlight(
        self,
        caller: str,
        token: str,
        inventory: str,
        beneficiary: str,
        amount: int,
        nonce: int | None = None,
    ) -> WithdrawalEntry:
        """Pay `beneficiary` from `inventory` now and mark the withdrawal settled.

        Raises:
            Unauthorized: caller is not the owner.
            AlreadyGreenlighted: the withdrawal key is not UNSET.
            TransferFailed: the inventory transfer did not succeed.
            TransferOutcomeUnknown: the transfer may have succeeded; the key
                stays GREENLIGHTED.
        """
        async with self._operation("greenlight") as session:
            caller = normalize_address(caller)
            if caller != self._owner:
                raise Unauthorized(caller, "greenlight")

            token, inventory = normalize_address(token), normalize_address(inventory)
            beneficiary = normalize_address(beneficiary)
            amount = check_uint256("amount", amount)
            if nonce is not None:
                nonce = check_uint256("nonce", nonce)
            key = self._key(token, beneficiary, amount, nonce)

            entry = await self._transition(
                session,
                key=key,
                event_name="greenlight",
                actor=caller,
                token=token,
                beneficiary=beneficiary,
                amount=amount,
                nonce=nonce,
                metadata={"inventory": inventory},
            )

            # ledger row is flushed; only now touch the token
            unknown = await self._pay(
                session,
                entry,
                caller,
                self._tokens.transfer_from,
                token,
                self._address,
                inventory,
                beneficiary,
                amount,
                destination=beneficiary,
            )
        if unknown is not None:
            raise unknown

        logger.info(
            "withdrawal.greenlit",
            withdrawal_key=key,
            token=token,
            inventory=inventory,
            beneficiary=beneficiary,
            amount=str(amount),
        )
        return entry

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    async def claim(
        self,
        caller: str,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> WithdrawalEntry:
        """Pay out a relayed withdrawal to whoever is entitled to it.

        The owner may reclaim only what it greenlighted. Anyone else must be
        the beneficiary, and only of a withdrawal nobody greenlighted.

        Raises:
            MessageNotRelayed: the messenger has no record of the message.
            NotGreenlighted: owner claim of a key it never fronted.
            AlreadyClaimed: second owner claim of the same key.
            WrongBeneficiary: non-owner caller is not the beneficiary.
            AlreadyGreenlighted: beneficiary claim of a settled key.
            TransferFailed: the payout transfer did not succeed.
            TransferOutcomeUnknown: the payout may have succeeded; the claim
                stays recorded.
        """
        async with self._operation("claim") as session:
            caller = normalize_address(caller)
            token, beneficiary = normalize_address(token), normalize_address(beneficiary)
            amount = check_uint256("amount", amount)
            nonce = check_uint256("nonce", nonce)

            verifier = VerificationService(session, self._oracle)
            message = await verifier.build_message(token, beneficiary, amount, nonce)
            if not await verifier.is_relayed(message):
                raise MessageNotRelayed("0x" + message.hash.hex())

            if caller == self._owner:
                event_name, payee = "owner_claims", self._owner
            elif caller == beneficiary:
                event_name, payee = "beneficiary_claims", beneficiary
            else:
                raise WrongBeneficiary(caller, beneficiary)

            key = self._key(token, beneficiary, amount, nonce)
            entry = await self._transition(
                session,
                key=key,
                event_name=event_name,
                actor=caller,
                token=token,
                beneficiary=beneficiary,
                amount=amount,
                nonce=nonce,
                metadata={"payee": payee, "message_hash": "0x" + message.hash.hex()},
            )

            unknown = await self._pay(
                session,
                entry,
                caller,
                self._tokens.transfer,
                token,
                self._address,
                payee,
                amount,
                destination=payee,
            )
        if unknown is not None:
            raise unknown

        logger.info(
            "withdrawal.claimed",
            withdrawal_key=key,
            by=event_name,
            payee=payee,
            amount=str(amount),
            nonce=nonce,
        )
        return entry

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def is_greenlighted(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int | None = None,
    ) -> bool:
        status = await self.get_ledger_status(token, beneficiary, amount, nonce)
        return status.is_settled

    async def get_ledger_status(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int | None = None,
    ) -> WithdrawalStatus:
        key = self._key(token, beneficiary, amount, nonce)
        async with self._operation("isGreenlighted", exclusive=False) as session:
            entry = await LedgerRepository(session).get(key)
        return WithdrawalStatus(entry.status) if entry else WithdrawalStatus.UNSET

    async def get_status(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int | None = None,
    ) -> dict:
        """Ledger status of a withdrawal with the events that may still fire."""
        key = self._key(token, beneficiary, amount, nonce)
        status = await self.get_ledger_status(token, beneficiary, amount, nonce)
        sm = WithdrawalStateMachine(current_status=status.value)
        return {
            "withdrawal_key": key,
            "status": status.value,
            "greenlighted": status.is_settled,
            "allowed_events": sm.get_allowed_events(),
        }

    async def list_withdrawals(self, beneficiary: str) -> list[WithdrawalEntry]:
        """Ledger rows of a beneficiary, newest first. UNSET keys have no row."""
        beneficiary = normalize_address(beneficiary)
        async with self._operation("listWithdrawals", exclusive=False) as session:
            return await LedgerRepository(session).get_by_beneficiary(beneficiary)

    async def get_events(self, withdrawal_key: str) -> list[LedgerEvent]:
        """Audit trail of a withdrawal key, oldest first."""
        async with self._operation("getEvents", exclusive=False) as session:
            return await EventRepository(session).get_by_subject(withdrawal_key.lower())

    def key_for(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int | None = None,
    ) -> str:
        return self._key(token, beneficiary, amount, nonce)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _operation(
        self, name: str, *, exclusive: bool = True
    ) -> AsyncIterator[AsyncSession]:
        if _active_operation.get() is not None:
            logger.warning(
                "engine.reentrant_call",
                operation=name,
                active=_active_operation.get(),
            )
            raise ReentrantCall(name)

        marker = _active_operation.set(name)
        try:
            with structlog.contextvars.bound_contextvars(operation=name):
                async with self._lock if exclusive else nullcontext():
                    async with self._session_factory() as session, session.begin():
                        yield session
        finally:
            _active_operation.reset(marker)

    def _key(self, token: str, beneficiary: str, amount: int, nonce: int | None) -> str:
        if self._key_scheme is KeyScheme.LEGACY:
            nonce = None
        return withdrawal_key(token, beneficiary, amount, nonce, scheme=self._key_scheme)

    async def _transition(
        self,
        session: AsyncSession,
        *,
        key: str,
        event_name: str,
        actor: str,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int | None,
        metadata: dict,
    ) -> WithdrawalEntry:
        """Fire a ledger transition, persist it and append its audit event."""
        ledger = LedgerRepository(session)
        entry = await ledger.get_for_update(key)
        old_status = WithdrawalStatus(entry.status) if entry else WithdrawalStatus.UNSET
        new_status = self._fire_transition(key, old_status, event_name)

        if entry is None:
            try:
                entry = await ledger.add(key, token, beneficiary, amount, new_status, nonce)
            except IntegrityError as err:
                logger.warning("withdrawal.lost_insert_race", withdrawal_key=key)
                raise AlreadyGreenlighted(key, "settled concurrently") from err
        elif not await ledger.compare_and_set(entry, old_status, new_status, nonce):
            logger.warning(
                "withdrawal.lost_update_race",
                withdrawal_key=key,
                expected=old_status.value,
                found=entry.status,
            )
            raise self._rejection(key, entry.status, event_name)

        await EventRepository(session).record(
            subject=key,
            event_type=_EVENT_TYPES[event_name],
            actor=actor,
            old_status=old_status,
            new_status=new_status,
            metadata={"amount": str(amount), **metadata},
        )
        return entry

    def _fire_transition(
        self, key: str, status: WithdrawalStatus, event_name: str
    ) -> WithdrawalStatus:
        """Validate and fire a state machine transition.

        Translates TransitionNotAllowed into the error the caller expects.
        """
        sm = WithdrawalStateMachine(current_status=status.value)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise self._rejection(key, status, event_name) from err
        return WithdrawalStatus(sm.status)

    @staticmethod
    def _rejection(key: str, status: str, event_name: str) -> FastWithdrawalError:
        if event_name == "owner_claims":
            if status == WithdrawalStatus.CLAIMED_BY_OWNER:
                return AlreadyClaimed(key)
            return NotGreenlighted(key, status)
        return AlreadyGreenlighted(key, status)

    async def _pay(
        self,
        session: AsyncSession,
        entry: WithdrawalEntry,
        actor: str,
        method,  # noqa: ANN001
        *args,
        destination: str,
    ) -> TransferOutcomeUnknown | None:
        """Make the transfer behind a recorded transition.

        Returns the TransferOutcomeUnknown to raise once the transaction has
        committed, or None when the transfer succeeded.

        Raises:
            TransferFailed: the transfer certainly moved nothing.
        """
        token, amount = args[0], args[-1]
        try:
            ok = await method(*args)
        except TransferOutcomeUnknown as exc:
            unknown = exc
        except FastWithdrawalError:
            raise
        except Exception as exc:
            unknown = TransferOutcomeUnknown(
                token, destination, amount, reason=str(exc) or type(exc).__name__
            )
        else:
            if not ok:
                raise TransferFailed(token, destination, amount)
            return None

        logger.error(
            "withdrawal.transfer_outcome_unknown",
            withdrawal_key=entry.withdrawal_key,
            token=token,
            destination=destination,
            amount=str(amount),
            reason=unknown.reason,
            tx_hash=unknown.tx_hash,
        )
        status = WithdrawalStatus(entry.status)
        await EventRepository(session).record(
            subject=entry.withdrawal_key,
            event_type=EventType.TRANSFER_OUTCOME_UNKNOWN,
            actor=actor,
            old_status=status,
            new_status=status,
            metadata={
                "destination": destination,
                "amount": str(amount),
                "reason": unknown.reason,
                "tx_hash": unknown.tx_hash,
            },
        )
        return unknown
