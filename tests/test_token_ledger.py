"""Tests for TokenLedger: dual index, max-merge top-up, atomic consume."""

import asyncio

import pytest

from nitrogate.constants import ConsumeResult
from nitrogate.token_ledger import TokenLedger


# ---------------------------------------------------------------------------
# upsert
# ---------------------------------------------------------------------------


class TestTokenLedgerUpsert:
    @pytest.mark.asyncio
    async def test_first_upsert_creates_record(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 100)
        assert rec.channel_id == "0xchan"
        assert rec.total_credits == 100
        assert rec.used_credits == 0
        assert rec.token
        assert ledger.size == 1

    @pytest.mark.asyncio
    async def test_both_indexes_resolve_same_record(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 100)
        assert ledger.get_by_token(rec.token) == ledger.get_by_channel("0xchan")

    @pytest.mark.asyncio
    async def test_token_is_stable_across_top_ups(self) -> None:
        ledger = TokenLedger()
        first = await ledger.upsert("0xchan", 10)
        second = await ledger.upsert("0xchan", 20)
        assert first.token == second.token
        assert second.total_credits == 20

    @pytest.mark.asyncio
    async def test_out_of_order_total_never_regresses(self) -> None:
        """Totals 50 then 30 arrive out of order: 50 stays."""
        ledger = TokenLedger()
        await ledger.upsert("0xchan", 50)
        rec = await ledger.upsert("0xchan", 30)
        assert rec.total_credits == 50

    @pytest.mark.asyncio
    async def test_total_tracks_running_maximum(self) -> None:
        ledger = TokenLedger()
        seen = 0
        for total in [5, 3, 9, 9, 1, 12, 11]:
            rec = await ledger.upsert("0xchan", total)
            seen = max(seen, total)
            assert rec.total_credits == seen

    @pytest.mark.asyncio
    async def test_reverify_same_total_is_noop(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 40)
        await ledger.consume(rec.token, 3)
        again = await ledger.upsert("0xchan", 40)
        assert again == ledger.get_by_channel("0xchan")
        assert again.total_credits == 40
        assert again.used_credits == 3

    @pytest.mark.asyncio
    async def test_distinct_channels_get_distinct_tokens(self) -> None:
        ledger = TokenLedger()
        a = await ledger.upsert("0xa", 1)
        b = await ledger.upsert("0xb", 1)
        assert a.token != b.token
        assert ledger.size == 2

    @pytest.mark.asyncio
    async def test_rejects_negative_total(self) -> None:
        ledger = TokenLedger()
        with pytest.raises(ValueError, match="non-negative"):
            await ledger.upsert("0xchan", -1)
        assert ledger.size == 0

    @pytest.mark.asyncio
    async def test_rejects_empty_channel(self) -> None:
        ledger = TokenLedger()
        with pytest.raises(ValueError):
            await ledger.upsert("", 5)

    @pytest.mark.asyncio
    async def test_returned_snapshot_is_detached(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 10)
        rec.used_credits = 10
        assert ledger.get_by_channel("0xchan").used_credits == 0

    @pytest.mark.asyncio
    async def test_concurrent_first_upserts_create_one_record(self) -> None:
        ledger = TokenLedger()
        results = await asyncio.gather(*(ledger.upsert("0xchan", t) for t in range(1, 21)))
        assert len({r.token for r in results}) == 1
        assert ledger.size == 1
        assert ledger.get_by_channel("0xchan").total_credits == 20


# ---------------------------------------------------------------------------
# consume
# ---------------------------------------------------------------------------


class TestTokenLedgerConsume:
    @pytest.mark.asyncio
    async def test_unknown_token_not_found(self) -> None:
        ledger = TokenLedger()
        assert await ledger.consume("nope") is ConsumeResult.NOT_FOUND
        assert ledger.size == 0
        assert ledger.get_by_token("nope") is None

    @pytest.mark.asyncio
    async def test_spend_down_to_exhaustion(self) -> None:
        """Total 100: 100 consumes succeed, the 101st is exhausted."""
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 100)

        assert await ledger.consume(rec.token, 1) is ConsumeResult.OK
        assert ledger.get_by_token(rec.token).remaining == 99

        for _ in range(99):
            assert await ledger.consume(rec.token, 1) is ConsumeResult.OK
        assert await ledger.consume(rec.token, 1) is ConsumeResult.EXHAUSTED

        final = ledger.get_by_token(rec.token)
        assert final.used_credits == 100
        assert final.remaining == 0

    @pytest.mark.asyncio
    async def test_exhausted_leaves_state_unchanged(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 5)
        await ledger.consume(rec.token, 4)
        assert await ledger.consume(rec.token, 2) is ConsumeResult.EXHAUSTED
        assert ledger.get_by_token(rec.token).used_credits == 4

    @pytest.mark.asyncio
    async def test_top_up_restores_spending(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 1)
        await ledger.consume(rec.token)
        assert await ledger.consume(rec.token) is ConsumeResult.EXHAUSTED
        await ledger.upsert("0xchan", 3)
        assert await ledger.consume(rec.token) is ConsumeResult.OK

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -3])
    async def test_non_positive_amount_rejected(self, amount: int) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 5)
        with pytest.raises(ValueError, match="positive"):
            await ledger.consume(rec.token, amount)
        with pytest.raises(ValueError):
            await ledger.consume("ghost", amount)
        assert ledger.get_by_token(rec.token).used_credits == 0
        assert ledger.health()["exhausted_calls"] == 0

    @pytest.mark.asyncio
    async def test_zero_total_channel_is_exhausted(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 0)
        assert await ledger.consume(rec.token) is ConsumeResult.EXHAUSTED


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestTokenLedgerConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_consume_never_overspends(self) -> None:
        """1,000 concurrent single-credit consumes against 500 remaining."""
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 500)

        results = await asyncio.gather(*(ledger.consume(rec.token, 1) for _ in range(1000)))

        assert results.count(ConsumeResult.OK) == 500
        assert results.count(ConsumeResult.EXHAUSTED) == 500
        final = ledger.get_by_token(rec.token)
        assert final.used_credits == final.total_credits == 500

    @pytest.mark.asyncio
    async def test_concurrent_mixed_amounts_bounded_by_total(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 100)
        amounts = [1, 2, 3, 7] * 25

        results = await asyncio.gather(*(ledger.consume(rec.token, a) for a in amounts))

        spent = sum(a for a, r in zip(amounts, results) if r is ConsumeResult.OK)
        final = ledger.get_by_token(rec.token)
        assert final.used_credits == spent
        assert final.used_credits <= final.total_credits

    @pytest.mark.asyncio
    async def test_channels_do_not_share_locks(self) -> None:
        ledger = TokenLedger()
        a = await ledger.upsert("0xa", 1)
        await ledger.upsert("0xb", 1)
        # Hold channel a's lock; channel b must still be consumable.
        async with ledger._get_lock("0xa"):
            b = ledger.get_by_channel("0xb")
            assert await asyncio.wait_for(ledger.consume(b.token), 1.0) is ConsumeResult.OK
        assert await ledger.consume(a.token) is ConsumeResult.OK

    @pytest.mark.asyncio
    async def test_concurrent_upsert_and_consume(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 10)
        tasks = [ledger.consume(rec.token) for _ in range(30)]
        tasks += [ledger.upsert("0xchan", 20)]
        await asyncio.gather(*tasks)
        final = ledger.get_by_channel("0xchan")
        assert final.total_credits == 20
        assert 10 <= final.used_credits <= 20


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestTokenLedgerHealth:
    @pytest.mark.asyncio
    async def test_health_counters(self) -> None:
        ledger = TokenLedger()
        rec = await ledger.upsert("0xchan", 2)
        await ledger.consume(rec.token)
        await ledger.consume(rec.token)
        await ledger.consume(rec.token)
        await ledger.consume("ghost")

        health = ledger.health()
        assert health["channels"] == 1
        assert health["total_credits"] == 2
        assert health["used_credits"] == 2
        assert health["consumed_calls"] == 2
        assert health["exhausted_calls"] == 1
        assert health["not_found_calls"] == 1

    def test_health_empty(self) -> None:
        health = TokenLedger().health()
        assert health["channels"] == 0
        assert health["total_credits"] == 0
