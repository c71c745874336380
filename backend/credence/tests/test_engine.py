"""
Investment Service Tests
========================

End-to-end flows through InvestmentService with in-memory storage.

Reference scenario:
    alice invests 1000 into carol's content (no dividends, coefficient -> 1.1)
    bob invests 500 an hour later:
        pool = 50, alice holds the whole table -> alice receives 50
        bob 10000 -> 9500, alice 9000 -> 9050
"""

import asyncio
from datetime import timedelta

import pytest

from credence import (
    ContentNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvestmentService,
    ShareComputationError,
    UserNotFoundError,
)
from models.domain import CoefficientReason

from .fakes import FailingInvestmentRepository, Gate, GatedUserRepository


async def invest_then_advance(service, clock, username, content_id, amount):
    outcome = await service.invest(username, content_id, amount)
    clock.advance(hours=1)
    return outcome


async def wait_until(predicate):
    while not predicate():
        await asyncio.sleep(0)


class TestInvest:

    @pytest.mark.asyncio
    async def test_first_investment(self, service, store, alice_bob):
        outcome = await service.invest("alice", alice_bob.id, 1000)

        assert outcome.new_balance == 9000
        assert outcome.dividends == []
        assert outcome.effective_amount == 1000.0
        assert outcome.investment.coefficient_at_time == 1.0
        assert outcome.user_coefficient == 1.1
        assert outcome.coefficient_report.complete
        assert store.users["alice"].total_invested == 1000

    @pytest.mark.asyncio
    async def test_reference_scenario(self, service, store, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        outcome = await service.invest("bob", alice_bob.id, 500)

        assert [d.to_dict() for d in outcome.dividends] == [{"username": "alice", "amount": 50}]
        assert outcome.new_balance == 9500
        assert outcome.effective_amount == 500.0
        assert store.users["alice"].balance == 9050
        assert store.users["alice"].total_dividends == 50
        assert store.users["bob"].balance == 9500

        body = outcome.to_dict()
        assert body["newBalance"] == 9500
        assert body["dividendsDistributed"] == [{"username": "alice", "amount": 50}]
        assert "50 coins paid" in body["message"]

    @pytest.mark.asyncio
    async def test_coins_are_conserved(self, service, store, alice_bob, clock):
        before = store.total_coins()
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await invest_then_advance(service, clock, "bob", alice_bob.id, 500)
        await invest_then_advance(service, clock, "alice", alice_bob.id, 333)

        invested = sum(i.amount for i in store.investments)
        paid = sum(d.amount for d in store.dividends)
        assert store.total_coins() == before - invested + paid

    @pytest.mark.asyncio
    async def test_dividends_never_exceed_pool(self, service, store, clock):
        store.add_user("author")
        content = store.add_content("author")
        names = [f"user{i}" for i in range(7)]
        for name in names:
            store.add_user(name)
        for name in names:
            await invest_then_advance(service, clock, name, content.id, 97)

        newcomer = store.add_user("late")
        outcome = await service.invest(newcomer.username, content.id, 1234)

        assert sum(d.amount for d in outcome.dividends) <= 123
        assert all(d.amount > 0 for d in outcome.dividends)

    @pytest.mark.asyncio
    async def test_content_statistics(self, service, store, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await invest_then_advance(service, clock, "bob", alice_bob.id, 500)
        await invest_then_advance(service, clock, "alice", alice_bob.id, 300)

        content = store.contents[alice_bob.id]
        assert content.total_investment == 1800
        assert content.investor_count == 2
        assert content.average_investment == pytest.approx(600.0)
        assert [e.total_investment_after for e in content.investment_history] == [1000, 1500, 1800]

    @pytest.mark.asyncio
    async def test_investment_records_current_coefficient(self, service, store, alice_bob):
        store.users["alice"].coefficient = 2.0
        outcome = await service.invest("alice", alice_bob.id, 100)
        assert outcome.investment.coefficient_at_time == 2.0
        assert outcome.investment.effective_amount == 200.0

    @pytest.mark.asyncio
    async def test_trigger_records_history(self, service, store, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await service.invest("bob", alice_bob.id, 500)

        reasons = [(e.username, e.reason) for e in store.history]
        assert reasons == [
            ("alice", CoefficientReason.INVESTMENT_MADE),
            ("bob", CoefficientReason.INVESTMENT_MADE),
            ("alice", CoefficientReason.ATTRACTED_INVESTMENT),
        ]

    @pytest.mark.asyncio
    async def test_cache_cleared_after_investment(self, service, alice_bob):
        await service.invest("alice", alice_bob.id, 1000)
        assert service.cache.stats() == {"coefficients": 0, "shares": 0}


class TestInvestRejections:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, 2.5, None, True])
    async def test_invalid_amount(self, service, store, alice_bob, amount):
        with pytest.raises(InvalidAmountError):
            await service.invest("alice", alice_bob.id, amount)
        assert store.investments == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, service, alice_bob):
        with pytest.raises(UserNotFoundError):
            await service.invest("ghost", alice_bob.id, 100)

    @pytest.mark.asyncio
    async def test_unknown_content(self, service, alice_bob):
        with pytest.raises(ContentNotFoundError):
            await service.invest("alice", 999, 100)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, service, store, alice_bob):
        store.users["alice"].balance = 50
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await service.invest("alice", alice_bob.id, 100)

        assert exc_info.value.details == {"username": "alice", "balance": 50, "amount": 100}
        assert store.users["alice"].balance == 50
        assert store.investments == []

    @pytest.mark.asyncio
    async def test_whole_balance_is_affordable(self, service, store, alice_bob):
        outcome = await service.invest("alice", alice_bob.id, 10000)

        assert outcome.new_balance == 0
        assert not store.users["alice"].can_afford(1)
        with pytest.raises(InsufficientBalanceError):
            await service.invest("alice", alice_bob.id, 1)

    @pytest.mark.asyncio
    async def test_share_failure_rejects_investment(self, users, contents, store, params, clock, alice_bob):
        failing = FailingInvestmentRepository(store, fail_contents={alice_bob.id})
        service = InvestmentService(users, contents, failing, params=params, clock=clock)

        with pytest.raises(ShareComputationError):
            await service.invest("alice", alice_bob.id, 100)
        assert store.users["alice"].balance == 10000
        assert store.investments == []


class TestTriggerResilience:

    @pytest.mark.asyncio
    async def test_rescoring_failure_does_not_undo_investment(
        self, users, contents, store, params, clock, alice_bob
    ):
        failing = FailingInvestmentRepository(store, fail_users={"alice"})
        service = InvestmentService(users, contents, failing, params=params, clock=clock)

        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        outcome = await service.invest("bob", alice_bob.id, 500)

        assert outcome.new_balance == 9500
        assert outcome.dividends[0].username == "alice"
        assert [f.username for f in outcome.coefficient_report.failed] == ["alice"]
        assert outcome.coefficient_report.entry_for("bob") is not None
        assert len(store.investments) == 2


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_same_content_investments_are_serialized(self, service, store, alice_bob, clock):
        store.add_user("dave")
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)

        first, second = await asyncio.gather(
            service.invest("bob", alice_bob.id, 500),
            service.invest("dave", alice_bob.id, 500),
        )

        # Whichever ran second priced its dividends from a table including the first
        later = second if first.investment.id < second.investment.id else first
        earlier = first if later is second else second
        recipients = {d.username for d in later.dividends}
        assert earlier.investment.username in recipients
        assert sum(d.amount for d in later.dividends) <= 50
        assert len(store.investments) == 3

    @pytest.mark.asyncio
    async def test_overdraw_race(self, service, store, alice_bob):
        store.users["alice"].balance = 150

        results = await asyncio.gather(
            service.invest("alice", alice_bob.id, 100),
            service.invest("alice", alice_bob.id, 100),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientBalanceError)
        assert store.users["alice"].balance == 50

    @pytest.mark.asyncio
    async def test_slow_reader_does_not_hide_later_investor(
        self, store, contents, investments, params, clock, alice_bob
    ):
        """
        A share view that started before bob's investment finishes after it,
        while bob's coefficient writes are still pending (epoch unchanged).
        dave must still pay bob.
        """
        store.add_user("dave")
        gated = GatedUserRepository(store)
        service = InvestmentService(gated, contents, investments, params=params, clock=clock)
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)

        gated.hold_get("alice")
        reader = asyncio.create_task(service.content_shares(alice_bob.id))
        await asyncio.wait_for(gated.get_gate.reached.wait(), timeout=1)

        gated.write_gate = Gate()
        bob = asyncio.create_task(service.invest("bob", alice_bob.id, 500))
        await asyncio.wait_for(gated.write_gate.reached.wait(), timeout=1)

        gated.get_gate.open()
        view = await asyncio.wait_for(reader, timeout=1)
        assert [s.username for s in view.shares] == ["alice"]

        dave = asyncio.create_task(service.invest("dave", alice_bob.id, 300))
        await asyncio.wait_for(
            wait_until(lambda: any(i.username == "dave" for i in store.investments)),
            timeout=1,
        )
        gated.write_gate.open()
        await asyncio.wait_for(asyncio.gather(bob, dave), timeout=1)

        paid_by_dave = {d.recipient: d.amount for d in store.dividends if d.from_username == "dave"}
        # pool 30 over alice 1000 * 1.1 and bob 500 * 1.0
        assert paid_by_dave == {"alice": 20, "bob": 9}


class TestReadViews:

    @pytest.mark.asyncio
    async def test_user_summary(self, service, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await service.invest("bob", alice_bob.id, 500)

        summary = await service.user_summary("alice")

        assert summary.balance == 9050
        assert summary.total_invested == 1000
        assert summary.total_dividends == 50
        assert summary.current_coefficient == 1.1
        assert summary.total_effective_value == pytest.approx(1100.0)
        assert [e.reason for e in summary.coefficient_history] == [
            CoefficientReason.ATTRACTED_INVESTMENT,
            CoefficientReason.INVESTMENT_MADE,
        ]
        body = summary.to_dict()
        assert body["currentCoefficient"] == 1.1
        assert body["coefficientHistory"][0]["reason"] == "attracted_investment"

    @pytest.mark.asyncio
    async def test_user_summary_history_limit(self, service, store, alice_bob, clock):
        for _ in range(12):
            await service.set_manual_coefficient("alice", 1.5)
            clock.advance(seconds=1)
        summary = await service.user_summary("alice")
        assert len(summary.coefficient_history) == 10

    @pytest.mark.asyncio
    async def test_user_summary_unknown(self, service):
        with pytest.raises(UserNotFoundError):
            await service.user_summary("ghost")

    @pytest.mark.asyncio
    async def test_content_shares(self, service, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await service.invest("bob", alice_bob.id, 500)

        view = await service.content_shares(alice_bob.id)

        assert [s.username for s in view.shares] == ["alice", "bob"]
        assert view.total_shares == pytest.approx(1100.0 + 550.0)
        assert sum(s.share for s in view.shares) == pytest.approx(1.0, abs=1e-9)
        assert view.last_updated == clock()
        assert view.to_dict()["contentId"] == alice_bob.id

    @pytest.mark.asyncio
    async def test_content_shares_unknown(self, service):
        with pytest.raises(ContentNotFoundError):
            await service.content_shares(42)

    @pytest.mark.asyncio
    async def test_user_investments(self, service, store, alice_bob, clock):
        other = store.add_content("bob", "Second post")
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await invest_then_advance(service, clock, "bob", alice_bob.id, 500)
        await invest_then_advance(service, clock, "alice", other.id, 200)
        await invest_then_advance(service, clock, "alice", alice_bob.id, 100)

        holdings = await service.user_investments("alice")

        assert [h.content_id for h in holdings] == [other.id, alice_bob.id]
        first = holdings[1]
        assert first.total_invested == 1100
        assert first.total_content_investment == 1600
        # 50 from bob, then floor(10 * 1100 / 1650) from alice's own top-up
        assert first.total_dividends == 56
        assert first.content_author == "carol"
        assert 0 < first.current_share < 100
        assert holdings[0].current_share == 100.0

    @pytest.mark.asyncio
    async def test_user_investments_empty(self, service, alice_bob):
        assert await service.user_investments("alice") == []


class TestAdministration:

    @pytest.mark.asyncio
    async def test_batch_update(self, service, store, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        report = await service.batch_update_coefficients()

        assert report.complete
        assert {e.username for e in report.succeeded} == {"alice", "bob", "carol"}
        assert store.users["bob"].coefficient == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_manual_override_changes_shares(self, service, store, alice_bob, clock):
        await invest_then_advance(service, clock, "alice", alice_bob.id, 1000)
        await invest_then_advance(service, clock, "bob", alice_bob.id, 1000)
        before = await service.content_shares(alice_bob.id)

        await service.set_manual_coefficient("alice", 3.0)
        after = await service.content_shares(alice_bob.id)

        assert after.shares[0].coefficient == 3.0
        assert after.shares[0].share > before.shares[0].share
        assert after.last_updated > before.last_updated
