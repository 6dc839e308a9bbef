import pytest

from src.core.allocation import (
    DuplicateTargetError,
    InsufficientBufferError,
    InvalidParameterError,
    PortfolioPausedError,
    ReentrantCallError,
    TargetLimitExceededError,
    TargetNotFoundError,
    UnauthorizedError,
    ValuationUnavailableError,
    WeightExceededError,
)
from tests.factories import (
    ADMIN,
    OUTSIDER,
    CallbackAdapter,
    FaultyAdapter,
    adapter,
    build_portfolio,
    funded_portfolio,
)


def _sixty_forty(clock, a, b):
    return funded_portfolio(buffer=100000, targets=[("A", 6000, a), ("B", 4000, b)], clock=clock)


def test_weighted_rebalance_then_reweight(clock):
    a, b = adapter("A"), adapter("B")
    portfolio = _sixty_forty(clock, a, b)

    first = portfolio.rebalance(actor_id=ADMIN)
    assert first.status == "REBALANCED"
    assert (a.valuation(), b.valuation(), portfolio.buffer) == (60000, 40000, 0)

    with pytest.raises(WeightExceededError):
        portfolio.add_target(actor_id=ADMIN, target_id="C", adapter=adapter("C"), weight_bps=5000)

    portfolio.update_weight(actor_id=ADMIN, target_id="A", weight_bps=3000)
    portfolio.update_weight(actor_id=ADMIN, target_id="B", weight_bps=7000)
    assert portfolio.evaluate_gate().reasons == ["DRIFT_EXCEEDED:A", "DRIFT_EXCEEDED:B"]

    second = portfolio.rebalance(actor_id=ADMIN)

    assert second.status == "REBALANCED"
    assert (a.valuation(), b.valuation(), portfolio.buffer) == (30000, 70000, 0)
    assert portfolio.total_value() == 100000
    assert portfolio.is_rebalance_needed() is False


def test_rebalance_is_noop_when_not_due(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    stamp = portfolio.last_rebalance_at

    clock.advance(60)
    outcome = portfolio.rebalance(actor_id=ADMIN)

    assert outcome.status == "NOT_DUE"
    assert outcome.movements == []
    assert portfolio.last_rebalance_at == stamp
    assert len(portfolio.list_events(event_type="REBALANCED")) == 1


def test_interval_elapsed_triggers_rebalance(clock):
    a = adapter("A")
    portfolio = funded_portfolio(
        buffer=1000, targets=[("A", 10000, a)], clock=clock, rebalance_interval_seconds=3600
    )
    portfolio.rebalance(actor_id=ADMIN)

    clock.advance(3600)

    assert portfolio.evaluate_gate().reasons == ["INTERVAL_ELAPSED"]
    assert portfolio.rebalance(actor_id=ADMIN).status == "REBALANCED"
    assert portfolio.last_rebalance_at == clock.now


def test_empty_portfolio_reports_no_assets(portfolio):
    portfolio.add_target(actor_id=ADMIN, target_id="A", adapter=adapter("A"), weight_bps=5000)

    outcome = portfolio.rebalance(actor_id=ADMIN)

    assert outcome.status == "NO_ASSETS"
    assert portfolio.last_rebalance_at is None
    assert portfolio.is_rebalance_needed() is False


def test_partial_withdrawal_keeps_rebalance_due(clock):
    a, b = adapter("A"), adapter("B")
    portfolio = _sixty_forty(clock, a, b)
    portfolio.rebalance(actor_id=ADMIN)
    a.liquidity_limit = 10000
    portfolio.update_weight(actor_id=ADMIN, target_id="A", weight_bps=3000)
    portfolio.update_weight(actor_id=ADMIN, target_id="B", weight_bps=7000)

    outcome = portfolio.rebalance(actor_id=ADMIN)

    assert outcome.status == "REBALANCED"
    assert "PARTIAL_WITHDRAWAL:A" in outcome.warnings
    assert (a.valuation(), b.valuation(), portfolio.buffer) == (50000, 50000, 0)
    assert portfolio.is_rebalance_needed() is True


def test_tight_liquidity_converges_over_several_cycles(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=100000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    b, c = adapter("B"), adapter("C")
    portfolio.update_weight(actor_id=ADMIN, target_id="A", weight_bps=2000)
    portfolio.add_target(actor_id=ADMIN, target_id="B", adapter=b, weight_bps=4000)
    portfolio.add_target(actor_id=ADMIN, target_id="C", adapter=c, weight_bps=4000)
    a.liquidity_limit = 30000

    observed = []
    for _ in range(3):
        clock.advance(86_400)
        portfolio.rebalance(actor_id=ADMIN)
        observed.append((a.valuation(), b.valuation(), c.valuation(), portfolio.buffer))

    assert observed == [
        (70000, 30000, 0, 0),
        (40000, 40000, 20000, 0),
        (20000, 40000, 40000, 0),
    ]
    assert portfolio.total_value() == 100000


def test_cooperative_adapters_converge_in_one_cycle(clock):
    backends = {f"T{i}": adapter(f"T{i}") for i in range(4)}
    weights = [1000, 2500, 3500, 3000]
    portfolio = funded_portfolio(
        buffer=777777,
        targets=[(tid, w, backends[tid]) for tid, w in zip(backends, weights)],
        clock=clock,
    )

    portfolio.rebalance(actor_id=ADMIN)

    for (target_id, backend), weight in zip(backends.items(), weights):
        assert backend.valuation() == 777777 * weight // 10000, target_id
    assert portfolio.total_value() == 777777


def test_reentrant_callbacks_are_rejected_without_state_change(clock):
    holder = {}
    b = CallbackAdapter(name="B", callback=lambda: holder["portfolio"].deposit(amount=1))
    portfolio = _sixty_forty(clock, adapter("A"), b)
    holder["portfolio"] = portfolio

    portfolio.rebalance(actor_id=ADMIN)

    assert len(b.callback_errors) == 1
    assert isinstance(b.callback_errors[0], ReentrantCallError)
    assert b.valuation() == 40000
    assert portfolio.total_value() == 100000
    assert len(portfolio.list_events(event_type="DEPOSITED")) == 1
    assert portfolio.guard.busy is False


def test_reentrant_rebalance_from_adapter_counts_as_rejected_allocation(clock):
    holder = {}
    b = CallbackAdapter(
        name="B", callback=lambda: holder["portfolio"].rebalance(actor_id=ADMIN), swallow=False
    )
    portfolio = _sixty_forty(clock, adapter("A"), b)
    holder["portfolio"] = portfolio

    outcome = portfolio.rebalance(actor_id=ADMIN)

    assert isinstance(b.callback_errors[0], ReentrantCallError)
    assert "ALLOCATION_REJECTED:B" in outcome.warnings
    assert (b.valuation(), portfolio.buffer) == (0, 40000)


def test_admin_operations_require_admin(portfolio):
    calls = [
        lambda: portfolio.add_target(
            actor_id=OUTSIDER, target_id="A", adapter=adapter("A"), weight_bps=100
        ),
        lambda: portfolio.update_weight(actor_id=OUTSIDER, target_id="A", weight_bps=100),
        lambda: portfolio.remove_target(actor_id=OUTSIDER, target_id="A"),
        lambda: portfolio.set_rebalance_interval(actor_id=OUTSIDER, seconds=60),
        lambda: portfolio.set_rebalance_threshold(actor_id=None, bps=60),
        lambda: portfolio.rebalance(actor_id=OUTSIDER),
        lambda: portfolio.harvest_all(actor_id=OUTSIDER),
        lambda: portfolio.pause(actor_id=OUTSIDER),
        lambda: portfolio.emergency_exit(actor_id=OUTSIDER),
    ]
    for call in calls:
        with pytest.raises(UnauthorizedError, match="UNAUTHORIZED"):
            call()

    assert portfolio.get_targets() == []
    assert portfolio.rebalance_interval_seconds == 86_400
    assert portfolio.list_events() == []


def test_gate_parameters_are_validated(portfolio):
    portfolio.set_rebalance_interval(actor_id=ADMIN, seconds=0)
    portfolio.set_rebalance_threshold(actor_id=ADMIN, bps=10000)

    with pytest.raises(InvalidParameterError):
        portfolio.set_rebalance_interval(actor_id=ADMIN, seconds=-1)
    with pytest.raises(InvalidParameterError):
        portfolio.set_rebalance_threshold(actor_id=ADMIN, bps=10001)

    assert portfolio.rebalance_interval_seconds == 0
    assert portfolio.rebalance_threshold_bps == 10000


def test_target_share_and_weight_queries(portfolio):
    portfolio.add_target(actor_id=ADMIN, target_id="A", adapter=adapter("A"), weight_bps=2500)

    assert portfolio.target_share("A") == 2500
    assert portfolio.total_weight_bps() == 2500
    with pytest.raises(TargetNotFoundError):
        portfolio.target_share("missing")


def test_remove_target_drains_into_buffer(clock):
    a, b = adapter("A"), adapter("B")
    portfolio = _sixty_forty(clock, a, b)
    portfolio.rebalance(actor_id=ADMIN)

    removal = portfolio.remove_target(actor_id=ADMIN, target_id="A")

    assert removal.drain.drained == 60000
    assert removal.target.active is False
    assert removal.buffer_after == 60000
    assert portfolio.total_weight_bps() == 4000
    assert [t.target_id for t in portfolio.get_targets()] == ["B"]
    assert portfolio.total_value() == 100000


def test_stranded_value_can_be_swept_later(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    a.liquidity_limit = 400

    removal = portfolio.remove_target(actor_id=ADMIN, target_id="A")
    assert removal.drain.stranded_value == 600
    assert portfolio.retired_targets()[0].stranded_value == 600

    a.liquidity_limit = None
    sweep = portfolio.sweep_retired_target(actor_id=ADMIN, target_id="A")

    assert (sweep.drained, sweep.stranded_value) == (600, 0)
    assert portfolio.retired_targets()[0].stranded_value == 0
    assert portfolio.buffer == 1000


def test_removed_target_with_failing_backend_still_retires(clock):
    a = FaultyAdapter(name="A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    a.fail_withdraw = True

    removal = portfolio.remove_target(actor_id=ADMIN, target_id="A")

    assert removal.drain.stranded_value == 1000
    assert portfolio.get_targets() == []


def test_max_targets_limit(clock):
    portfolio = build_portfolio(clock=clock, max_targets=1)
    portfolio.add_target(actor_id=ADMIN, target_id="A", adapter=adapter("A"), weight_bps=100)

    with pytest.raises(TargetLimitExceededError):
        portfolio.add_target(actor_id=ADMIN, target_id="B", adapter=adapter("B"), weight_bps=100)


def test_deposit_and_redeem_validate_amounts(portfolio):
    assert portfolio.deposit(amount=500).buffer_after == 500
    assert portfolio.redeem(amount=200, actor_id="holder").buffer_after == 300

    with pytest.raises(InvalidParameterError, match="INVALID_AMOUNT"):
        portfolio.deposit(amount=0)
    with pytest.raises(InsufficientBufferError, match="INSUFFICIENT_BUFFER"):
        portfolio.redeem(amount=301)
    assert portfolio.buffer == 300


def test_pause_blocks_rebalance_and_deposits_but_not_redemptions(portfolio):
    portfolio.deposit(amount=100)
    portfolio.pause(actor_id=ADMIN)

    with pytest.raises(PortfolioPausedError):
        portfolio.rebalance(actor_id=ADMIN)
    with pytest.raises(PortfolioPausedError):
        portfolio.deposit(amount=1)
    portfolio.redeem(amount=40)

    portfolio.unpause(actor_id=ADMIN)
    portfolio.deposit(amount=1)
    assert portfolio.buffer == 61
    assert [e.event_type for e in portfolio.list_events(limit=3)] == [
        "REDEEMED",
        "UNPAUSED",
        "DEPOSITED",
    ]


def test_emergency_exit_pauses_and_drains_everything(clock):
    a, b = adapter("A"), adapter("B")
    portfolio = _sixty_forty(clock, a, b)
    portfolio.rebalance(actor_id=ADMIN)

    outcome = portfolio.emergency_exit(actor_id=ADMIN)

    assert outcome.total_drained == 100000
    assert portfolio.buffer == 100000
    assert portfolio.paused is True
    assert (a.valuation(), b.valuation()) == (0, 0)
    assert portfolio.total_weight_bps() == 10000


def test_harvest_all_realizes_yield(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    a.accrue_yield(50)

    outcome = portfolio.harvest_all(actor_id=ADMIN)

    assert outcome.total_harvested == 50
    assert portfolio.buffer == 50
    assert portfolio.total_value() == 1050


def test_portfolio_stats_and_event_log(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 5000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)

    stats = portfolio.portfolio_stats()
    events = portfolio.list_events()

    assert (stats.total_value, stats.buffer, stats.invested_value) == (1000, 500, 500)
    assert stats.buffer_share_bps == 5000
    assert stats.last_rebalance_at == clock.now
    assert [e.event_type for e in events] == ["DEPOSITED", "TARGET_ADDED", "REBALANCED"]
    assert all(e.event_id.startswith("tev_") for e in events)
    events[0].details["amount"] = "tampered"
    assert portfolio.list_events()[0].details["amount"] == "1000"


def test_plan_rebalance_is_read_only(clock):
    a = adapter("A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)

    plan = portfolio.plan_rebalance()

    assert plan.entries[0].delta == 1000
    assert a.valuation() == 0
    assert portfolio.buffer == 1000


def test_shared_backend_is_not_counted_twice(clock):
    shared = adapter("shared")
    portfolio = funded_portfolio(buffer=100, targets=[("A", 5000, shared)], clock=clock)

    with pytest.raises(DuplicateTargetError, match="DUPLICATE_STRATEGY"):
        portfolio.add_target(actor_id=ADMIN, target_id="B", adapter=shared, weight_bps=5000)
    portfolio.rebalance(actor_id=ADMIN)

    assert portfolio.total_value() == 100
    assert portfolio.buffer + shared.valuation() == 100


def test_sweep_refuses_backend_reattached_to_active_target(clock):
    shared = adapter("shared")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, shared)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    shared.liquidity_limit = 400
    portfolio.remove_target(actor_id=ADMIN, target_id="A")
    portfolio.add_target(actor_id=ADMIN, target_id="B", adapter=shared, weight_bps=10000)

    with pytest.raises(DuplicateTargetError, match="STRATEGY_REASSIGNED"):
        portfolio.sweep_retired_target(actor_id=ADMIN, target_id="A")

    assert shared.valuation() == 600
    assert portfolio.retired_targets()[0].stranded_value == 600
    assert portfolio.total_value() == 1000


def test_remove_target_with_unreadable_valuation_is_rejected(clock):
    a = FaultyAdapter(name="A")
    portfolio = funded_portfolio(buffer=1000, targets=[("A", 10000, a)], clock=clock)
    portfolio.rebalance(actor_id=ADMIN)
    a.fail_valuation = True

    with pytest.raises(ValuationUnavailableError, match="VALUATION_UNAVAILABLE"):
        portfolio.remove_target(actor_id=ADMIN, target_id="A")

    assert [t.target_id for t in portfolio.get_targets()] == ["A"]
    assert portfolio.retired_targets() == []
    assert portfolio.buffer == 0
    a.fail_valuation = False
    assert portfolio.total_value() == 1000
    assert portfolio.remove_target(actor_id=ADMIN, target_id="A").drain.drained == 1000


def test_emergency_exit_flags_unreadable_backends(clock):
    a, b = FaultyAdapter(name="A"), adapter("B")
    portfolio = _sixty_forty(clock, a, b)
    portfolio.rebalance(actor_id=ADMIN)
    a.fail_valuation = True

    outcome = portfolio.emergency_exit(actor_id=ADMIN)

    by_id = {drain.target_id: drain for drain in outcome.drains}
    assert by_id["A"].valuation_ok is False
    assert by_id["A"].drained == 0
    assert by_id["B"].drained == 40000
    assert portfolio.list_events(event_type="EMERGENCY_EXIT")[0].details[
        "valuation_failures"
    ] == "A"
