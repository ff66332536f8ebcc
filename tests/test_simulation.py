"""Tests for the end-to-end scenario simulation."""

from __future__ import annotations

import pytest

from fast_withdrawals.simulation import (
    AMOUNT,
    INVENTORY_FUNDS,
    main,
    run_all,
    run_scenario,
)


class TestScenarios:
    @pytest.mark.asyncio
    async def test_market_maker_path(self) -> None:
        result = await run_scenario(1)

        assert result["user_balance_after_greenlight"] == AMOUNT
        assert result["user_balance"] == AMOUNT
        assert result["owner_balance"] == AMOUNT
        assert result["inventory_balance"] == INVENTORY_FUNDS - AMOUNT
        assert result["desk_balance"] == 0
        assert result["user_rejections"] == ["ALREADY_GREENLIGHTED"]
        assert result["market_maker_rejections"] == []
        assert result["status"] == "CLAIMED_BY_OWNER"

    @pytest.mark.asyncio
    async def test_self_claim_path(self) -> None:
        result = await run_scenario(2)

        assert result["user_balance"] == AMOUNT
        assert result["owner_balance"] == 0
        assert result["inventory_balance"] == INVENTORY_FUNDS
        assert result["desk_balance"] == 0
        assert result["greenlighted"] is True
        assert result["user_rejections"] == []
        assert result["market_maker_rejections"] == [
            "ALREADY_GREENLIGHTED",
            "NOT_GREENLIGHTED",
        ]
        assert result["status"] == "CLAIMED_BY_BENEFICIARY"

    @pytest.mark.asyncio
    async def test_relay_pending(self) -> None:
        result = await run_scenario(3)

        assert result["user_balance"] == 0
        assert result["user_rejections"] == ["MESSAGE_NOT_RELAYED", "MESSAGE_NOT_RELAYED"]
        assert result["status"] == "UNSET"

    @pytest.mark.asyncio
    async def test_run_all(self) -> None:
        results = await run_all()
        assert sorted(results) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_unknown_scenario(self) -> None:
        with pytest.raises(ValueError, match="Unknown scenario"):
            await run_scenario(9)


def test_cli_runs_one_scenario() -> None:
    main(["--scenario", "2", "--log-level", "WARNING"])
