"""
Test suite for the AdaptivePool facade.

Covers:
  - Construction and views (get_state, get_dynamic_fee, to_dict)
  - Authority-gated parameter updates
  - Execution lock (reentrancy, concurrent callers)
  - Notifications
"""

import threading

import pytest

from adaptive_cpamm.amm import (
    AdaptivePool,
    EventBus,
    EventKind,
    EventRecorder,
    InMemoryToken,
    ParametersUpdated,
    SwapExecuted,
)
from adaptive_cpamm.amm.fees import FeeConfig
from adaptive_cpamm.amm.fixed_point import SCALE
from adaptive_cpamm.config import AMMConfig
from adaptive_cpamm.exceptions import (
    InvalidParameter,
    NoLiquidity,
    ReentrancyError,
    TransferInFailed,
    Unauthorized,
)

ADDR_ADMIN = "cpamm_test_admin_00000000000000000001"
ADDR_LP = "cpamm_test_alice_00000000000000000002"
ADDR_TRADER = "cpamm_test_bob_0000000000000000000003"
ADDR_MALLORY = "cpamm_test_mallory_000000000000000004"
ADDR_POOL = "cpamm_test_pool_000000000000000000005"

FUNDING = 10 ** 30


class CallbackAccount:
    """Token capability that runs a hook before pulling funds."""

    def __init__(self, inner):
        self.inner = inner
        self.hook = None

    def balance_of(self, holder):
        return self.inner.balance_of(holder)

    def transfer_from(self, src, dst, amount):
        if self.hook is not None:
            hook, self.hook = self.hook, None
            return hook()
        return self.inner.transfer_from(src, dst, amount)

    def transfer(self, dst, amount):
        return self.inner.transfer(dst, amount)


class PausingAccount:
    """Token capability that blocks inside transfer until released."""

    def __init__(self, inner):
        self.inner = inner
        self.entered = threading.Event()
        self.release = threading.Event()

    def balance_of(self, holder):
        return self.inner.balance_of(holder)

    def transfer_from(self, src, dst, amount):
        return self.inner.transfer_from(src, dst, amount)

    def transfer(self, dst, amount):
        self.entered.set()
        assert self.release.wait(timeout=5)
        return self.inner.transfer(dst, amount)


@pytest.fixture
def tokens():
    t0 = InMemoryToken("token0")
    t1 = InMemoryToken("token1")
    for holder in (ADDR_LP, ADDR_TRADER, ADDR_MALLORY):
        t0.mint(holder, FUNDING)
        t1.mint(holder, FUNDING)
    return t0, t1


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def pool(tokens, recorder):
    t0, t1 = tokens
    p = AdaptivePool(
        t0.account(ADDR_POOL),
        t1.account(ADDR_POOL),
        address=ADDR_POOL,
        authority=ADDR_ADMIN,
        clock=lambda: 42,
    )
    p.events.register(recorder)
    return p


# ============================================================================
#  CONSTRUCTION / VIEWS
# ============================================================================

class TestPoolViews:

    def test_identical_tokens_rejected(self, tokens):
        t0, _ = tokens
        with pytest.raises(InvalidParameter, match="differ"):
            AdaptivePool(t0.account(ADDR_POOL), t0.account(ADDR_POOL), token0_id="x", token1_id="x")

    def test_empty_authority_rejected(self, tokens):
        t0, t1 = tokens
        with pytest.raises(InvalidParameter):
            AdaptivePool(t0.account(ADDR_POOL), t1.account(ADDR_POOL), authority="")

    def test_state_of_empty_pool(self, pool):
        state = pool.get_state()
        assert state.spot_price is None
        assert state.ema_price == 0
        assert (state.reserve0, state.reserve1) == (0, 0)
        assert state.last_update_timestamp == 0

    def test_state_after_deposit(self, pool):
        pool.add_liquidity(ADDR_LP, 400, 900)
        state = pool.get_state()
        assert state.spot_price == 900 * SCALE // 400
        assert state.ema_price == 900 * SCALE // 400
        assert (state.reserve0, state.reserve1) == (400, 900)
        assert state.last_update_timestamp == 42

    def test_dynamic_fee_has_no_side_effects(self, pool, recorder):
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        before = (pool.ledger.to_dict(), pool.oracle.to_dict(), len(recorder.events))
        fq = pool.get_dynamic_fee("token0", 100)
        assert fq.fee_bps == 49
        assert (pool.ledger.to_dict(), pool.oracle.to_dict(), len(recorder.events)) == before

    def test_to_dict(self, pool):
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        d = pool.to_dict()
        assert d["address"] == ADDR_POOL
        assert d["authority"] == ADDR_ADMIN
        assert d["tokens"] == ["token0", "token1"]
        assert d["ledger"]["total_shares"] == 1000
        assert d["spot_price"] == SCALE
        assert d["fee_config"]["max_fee_bps"] == 120
        assert d["breaker"] == {"vol_threshold": SCALE // 5, "trip_count": 0}

    def test_from_config(self, tokens):
        t0, t1 = tokens
        config = AMMConfig.from_dict({
            "pool": {"address": ADDR_POOL, "authority": ADDR_ADMIN, "token0": "USDX", "token1": "WQRX"},
            "fees": {"min_fee_bps": 5, "max_fee_bps": 500},
            "oracle": {"ema_alpha": "0.5"},
            "breaker": {"vol_threshold": "0.1"},
        })
        pool = AdaptivePool.from_config(config, t0.account(ADDR_POOL), t1.account(ADDR_POOL))
        assert pool.fee_config.min_fee_bps == 5
        assert pool.fee_config.max_fee_bps == 500
        assert pool.oracle.alpha == SCALE // 2
        assert pool.breaker_config.vol_threshold == SCALE // 10
        assert pool.authority == ADDR_ADMIN
        pool.add_liquidity(ADDR_LP, 100, 100)
        assert pool.swap(ADDR_TRADER, "USDX", 10).token_out == "WQRX"


# ============================================================================
#  ADMIN
# ============================================================================

class TestAdmin:

    def test_non_authority_rejected(self, pool):
        fee_before = pool.fee_config
        with pytest.raises(Unauthorized):
            pool.set_fee_bounds(ADDR_MALLORY, 0, 1000)
        with pytest.raises(Unauthorized):
            pool.set_coefficients(ADDR_MALLORY, 0, 0, 0)
        with pytest.raises(Unauthorized):
            pool.set_ema_config(ADDR_MALLORY, SCALE)
        with pytest.raises(Unauthorized):
            pool.set_breaker(ADDR_MALLORY, 10 ** 30)
        with pytest.raises(Unauthorized):
            pool.transfer_authority(ADDR_MALLORY, ADDR_MALLORY)
        assert pool.fee_config == fee_before
        assert pool.authority == ADDR_ADMIN

    def test_set_fee_bounds(self, pool, recorder):
        pool.set_fee_bounds(ADDR_ADMIN, 10, 300)
        assert (pool.fee_config.min_fee_bps, pool.fee_config.max_fee_bps) == (10, 300)
        updates = recorder.of_type(ParametersUpdated)
        assert dict(updates[-1].changes) == {"min_fee_bps": 10, "max_fee_bps": 300}

    def test_set_fee_bounds_validation(self, pool):
        with pytest.raises(InvalidParameter):
            pool.set_fee_bounds(ADDR_ADMIN, 200, 100)
        with pytest.raises(InvalidParameter):
            pool.set_fee_bounds(ADDR_ADMIN, 0, 1001)
        assert pool.fee_config == FeeConfig()

    def test_set_coefficients_changes_quotes(self, pool):
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        pool.set_coefficients(ADDR_ADMIN, 0, 0, 0)
        assert pool.get_dynamic_fee("token0", 100).fee_bps == 30

    def test_set_ema_config(self, pool):
        pool.set_ema_config(ADDR_ADMIN, SCALE)
        assert pool.oracle.alpha == SCALE
        with pytest.raises(InvalidParameter):
            pool.set_ema_config(ADDR_ADMIN, 0)
        assert pool.oracle.alpha == SCALE

    def test_set_breaker(self, pool):
        pool.set_breaker(ADDR_ADMIN, 0)
        assert pool.breaker_config.vol_threshold == 0
        with pytest.raises(InvalidParameter):
            pool.set_breaker(ADDR_ADMIN, -1)

    def test_set_params_all_at_once(self, pool, recorder):
        pool.set_params(
            ADDR_ADMIN,
            min_fee_bps=5,
            max_fee_bps=50,
            beta_vol=1,
            gamma_slip=2,
            delta_shallow=3,
            ema_alpha=SCALE // 10,
            breaker_vol_threshold=SCALE // 2,
        )
        assert pool.fee_config == FeeConfig(5, 50, 1, 2, 3)
        assert pool.oracle.alpha == SCALE // 10
        assert pool.breaker_config.vol_threshold == SCALE // 2
        assert len(recorder.of_type(ParametersUpdated)) == 1

    def test_set_params_is_atomic(self, pool, recorder):
        with pytest.raises(InvalidParameter):
            pool.set_params(
                ADDR_ADMIN,
                min_fee_bps=5,
                max_fee_bps=50,
                beta_vol=1,
                gamma_slip=2,
                delta_shallow=3,
                ema_alpha=0,
                breaker_vol_threshold=SCALE // 2,
            )
        assert pool.fee_config == FeeConfig()
        assert pool.breaker_config.vol_threshold == SCALE // 5
        assert recorder.of_type(ParametersUpdated) == []

    def test_transfer_authority(self, pool):
        pool.transfer_authority(ADDR_ADMIN, ADDR_LP)
        assert pool.authority == ADDR_LP
        with pytest.raises(Unauthorized):
            pool.set_breaker(ADDR_ADMIN, 0)
        pool.set_breaker(ADDR_LP, 0)
        with pytest.raises(InvalidParameter):
            pool.transfer_authority(ADDR_LP, "")


# ============================================================================
#  EXECUTION LOCK
# ============================================================================

class TestExecutionLock:

    def _callback_pool(self, tokens):
        t0, t1 = tokens
        cap0 = CallbackAccount(t0.account(ADDR_POOL))
        pool = AdaptivePool(cap0, t1.account(ADDR_POOL), address=ADDR_POOL, authority=ADDR_ADMIN)
        pool.add_liquidity(ADDR_LP, 10_000, 10_000)
        return pool, cap0

    def test_reentrant_swap_rejected(self, tokens):
        pool, cap0 = self._callback_pool(tokens)
        seen = []

        def reenter():
            try:
                pool.swap(ADDR_MALLORY, "token1", 100)
            except ReentrancyError as e:
                seen.append(e)
            return False

        cap0.hook = reenter
        ledger_before = pool.ledger.to_dict()
        with pytest.raises(TransferInFailed):
            pool.swap(ADDR_MALLORY, "token0", 100)
        assert len(seen) == 1
        assert pool.ledger.to_dict() == ledger_before

    @pytest.mark.parametrize("call", [
        lambda p: p.add_liquidity(ADDR_MALLORY, 1, 1),
        lambda p: p.remove_liquidity(ADDR_LP, 1),
        lambda p: p.get_dynamic_fee("token0", 10),
        lambda p: p.set_breaker(ADDR_ADMIN, 0),
        lambda p: p.get_state(),
        lambda p: p.to_dict(),
    ])
    def test_every_entry_point_is_guarded(self, tokens, call):
        pool, cap0 = self._callback_pool(tokens)
        seen = []

        def reenter():
            try:
                call(pool)
            except ReentrancyError as e:
                seen.append(e)
            return False

        cap0.hook = reenter
        with pytest.raises(TransferInFailed):
            pool.swap(ADDR_MALLORY, "token0", 100)
        assert len(seen) == 1

    def test_uncaught_reentry_fails_the_leg(self, tokens):
        pool, cap0 = self._callback_pool(tokens)
        cap0.hook = lambda: pool.swap(ADDR_MALLORY, "token1", 100)
        ledger_before = pool.ledger.to_dict()
        with pytest.raises(TransferInFailed):
            pool.swap(ADDR_MALLORY, "token0", 100)
        assert pool.ledger.to_dict() == ledger_before

    def test_get_state_waits_for_running_operation(self, tokens):
        t0, t1 = tokens
        cap1 = PausingAccount(t1.account(ADDR_POOL))
        pool = AdaptivePool(t0.account(ADDR_POOL), cap1, address=ADDR_POOL, authority=ADDR_ADMIN)
        cap1.release.set()
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        cap1.release.clear()
        cap1.entered.clear()

        states = []
        remover = threading.Thread(target=pool.remove_liquidity, args=(ADDR_LP, 1000))
        reader = threading.Thread(target=lambda: states.append(pool.get_state()))
        remover.start()
        assert cap1.entered.wait(timeout=5)
        reader.start()
        reader.join(timeout=0.2)
        # Reader is blocked while the burn is half settled
        assert reader.is_alive()
        assert states == []

        cap1.release.set()
        remover.join(timeout=5)
        reader.join(timeout=5)
        assert len(states) == 1
        assert (states[0].reserve0, states[0].reserve1) == (0, 0)
        assert states[0].spot_price is None

    def test_lock_released_after_error(self, pool):
        with pytest.raises(NoLiquidity):
            pool.swap(ADDR_TRADER, "token0", 10)
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        assert pool.swap(ADDR_TRADER, "token0", 100).amount_out == 90

    def test_concurrent_swaps_serialize(self, pool, tokens):
        t0, t1 = tokens
        pool.add_liquidity(ADDR_LP, 10 ** 9, 10 ** 9)
        pool.set_breaker(ADDR_ADMIN, 10 ** 30)
        errors = []

        def trade(token):
            try:
                for _ in range(25):
                    pool.swap(ADDR_TRADER, token, 10 ** 5)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=trade, args=(tok,)) for tok in ("token0", "token1") * 2]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert (pool.ledger.reserve0, pool.ledger.reserve1) == (
            t0.balance_of(ADDR_POOL), t1.balance_of(ADDR_POOL)
        )
        assert pool.ledger.reserve0 * pool.ledger.reserve1 >= 10 ** 18


# ============================================================================
#  NOTIFICATIONS
# ============================================================================

class TestNotifications:

    def test_kind_filter(self, pool):
        swaps_only = EventRecorder()
        pool.events.register(swaps_only, EventKind.SWAP)
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        pool.swap(ADDR_TRADER, "token0", 100)
        assert [type(e) for e in swaps_only.events] == [SwapExecuted]

    def test_failing_listener_does_not_revert(self, pool, recorder):
        def boom(event):
            raise RuntimeError("listener failure")

        pool.events.register(boom)
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        assert pool.ledger.total_shares == 1000
        assert len(recorder.events) == 1

    def test_unregister(self):
        bus = EventBus()
        rec = EventRecorder()
        bus.register(rec)
        assert bus.listener_count == 1
        bus.unregister(rec)
        assert bus.listener_count == 0

    def test_event_serialization(self, pool, recorder):
        pool.add_liquidity(ADDR_LP, 1000, 1000)
        pool.set_breaker(ADDR_ADMIN, SCALE)
        kinds = [e.to_dict()["event"] for e in recorder.events]
        assert kinds == ["LiquidityMinted", "ParametersUpdated"]
        assert recorder.events[1].to_dict()["changes"] == {"breaker_vol_threshold": SCALE}
