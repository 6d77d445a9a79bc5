#!/usr/bin/env python3
"""
Adaptive CPAMM Command Line Interface

Preview dynamic fees and replay scripted pool sessions against an
in-memory pool.

Usage:
    cpamm quote --reserve0 R0 --reserve1 R1 --amount-in N [--ema PRICE] [--side 0|1]
    cpamm replay <script.json> [--config FILE] [--stop-on-error]
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..amm import (
    AdaptivePool,
    BreakerDecision,
    EventRecorder,
    InMemoryToken,
    Initialized,
    OracleTracker,
    PoolLedger,
    amount_out_for,
    check,
    quote,
)
from ..amm.fees import FeeConfig
from ..config import AMMConfig, load_config, parse_fraction
from ..exceptions import AMMException
from ..logger import configure_logging, get_logger
from .. import __version__


def _load(config_path: Optional[str]) -> AMMConfig:
    try:
        return load_config(config_path)
    except AMMException as e:
        raise click.ClickException(str(e))


def _fee_config(config: AMMConfig) -> FeeConfig:
    try:
        return FeeConfig(
            min_fee_bps=config.fees.min_fee_bps,
            max_fee_bps=config.fees.max_fee_bps,
            beta_vol=config.fees.beta_vol,
            gamma_slip=config.fees.gamma_slip,
            delta_shallow=config.fees.delta_shallow,
        )
    except AMMException as e:
        raise click.ClickException(f"Invalid fee configuration: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="cpamm")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, ...)")
def cli(log_level: Optional[str]):
    """Adaptive CPAMM Command Line Interface

    Inspect the dynamic fee model and replay pool sessions.
    """
    configure_logging(log_level=log_level)


@cli.command("quote")
@click.option("--reserve0", type=int, required=True, help="Pool reserve of token0")
@click.option("--reserve1", type=int, required=True, help="Pool reserve of token1")
@click.option("--amount-in", type=int, required=True, help="Trade input amount")
@click.option("--side", type=click.IntRange(0, 1), default=0, help="0 = token0 in, 1 = token1 in")
@click.option(
    "--ema",
    default=None,
    help='EMA price as a decimal such as "1.25" (default: uninitialized)',
)
@click.option("--config", "config_path", type=click.Path(exists=True), default=None, help="TOML config file")
def quote_cmd(
    reserve0: int,
    reserve1: int,
    amount_in: int,
    side: int,
    ema: Optional[str],
    config_path: Optional[str],
):
    """Preview the dynamic fee and output of one trade.

    Examples:

        cpamm quote --reserve0 1000 --reserve1 1000 --amount-in 100

        cpamm quote --reserve0 1000 --reserve1 130000 --amount-in 10 --ema 100.0
    """
    config = _load(config_path)
    fee_config = _fee_config(config)

    ledger = PoolLedger(reserve0=reserve0, reserve1=reserve1)
    try:
        oracle = OracleTracker(alpha=config.oracle.ema_alpha)
        if ema is not None:
            oracle.state = Initialized(parse_fraction(ema, "ema"))
        fq = quote(side, amount_in, ledger, oracle, fee_config)
    except AMMException as e:
        raise click.ClickException(str(e))

    reserve_in, reserve_out = ledger.reserves_for(side)
    amount_out, after_fee = amount_out_for(amount_in, reserve_in, reserve_out, fq.fee_bps)
    decision = check(fq.vol_proxy, config.breaker.vol_threshold)

    click.echo(f"Fee:          {fq.fee_bps} bps (raw {fq.composite_fee_bps(fee_config)} bps)")
    click.echo(f"Volatility:   {fq.vol_proxy}")
    click.echo(f"Slippage:     {fq.slip_proxy}")
    click.echo(f"Shallowness:  {fq.shallow_proxy}")
    click.echo(f"Input net:    {after_fee}")
    click.echo(f"Output:       {amount_out}")
    if decision is BreakerDecision.REJECT:
        click.echo(click.style(
            f"Breaker:      REJECT (threshold {config.breaker.vol_threshold})", fg="red"
        ))
    else:
        click.echo(click.style("Breaker:      allow", fg="green"))


def _run_op(pool: AdaptivePool, op: Dict[str, Any]) -> Any:
    kind = op.get("op")
    if kind == "add":
        return pool.add_liquidity(op["sender"], int(op["amount0"]), int(op["amount1"]))
    if kind == "remove":
        return pool.remove_liquidity(op["sender"], int(op["shares"]))
    if kind == "swap":
        return pool.swap(op["sender"], op["token_in"], int(op["amount_in"]))
    if kind == "set_fee_bounds":
        return pool.set_fee_bounds(op["caller"], int(op["min_fee_bps"]), int(op["max_fee_bps"]))
    if kind == "set_coefficients":
        return pool.set_coefficients(
            op["caller"], int(op["beta_vol"]), int(op["gamma_slip"]), int(op["delta_shallow"])
        )
    if kind == "set_ema_config":
        return pool.set_ema_config(op["caller"], parse_fraction(op["alpha"], "alpha"))
    if kind == "set_breaker":
        return pool.set_breaker(op["caller"], parse_fraction(op["vol_threshold"], "vol_threshold"))
    raise click.ClickException(f"Unknown op: {kind!r}")


@cli.command("replay")
@click.argument("script", type=click.Path(exists=True))
@click.option("--config", "config_path", type=click.Path(exists=True), default=None, help="TOML config file")
@click.option("--stop-on-error", is_flag=True, help="Abort at the first rejected operation")
def replay_cmd(script: str, config_path: Optional[str], stop_on_error: bool):
    """Replay a JSON session script against a fresh in-memory pool.

    The script holds initial "balances" ({holder: [amount0, amount1]}) and
    a list of "ops" (add, remove, swap, set_*).
    """
    config = _load(config_path)
    try:
        data = json.loads(Path(script).read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid script: {e}")

    t0 = InMemoryToken(config.pool.token0)
    t1 = InMemoryToken(config.pool.token1)
    try:
        for holder, (b0, b1) in data.get("balances", {}).items():
            if b0:
                t0.mint(holder, int(b0))
            if b1:
                t1.mint(holder, int(b1))
    except (TypeError, ValueError) as e:
        raise click.ClickException(f"Invalid balances: {e}")

    ticks = iter(range(1, 1 << 62))
    try:
        pool = AdaptivePool.from_config(
            config,
            t0.account(config.pool.address),
            t1.account(config.pool.address),
            clock=lambda: next(ticks),
        )
    except AMMException as e:
        raise click.ClickException(f"Invalid pool configuration: {e}")
    recorder = EventRecorder()
    pool.events.register(recorder)

    ops = data.get("ops", [])
    get_logger(__name__).info("Replaying %d ops from %s", len(ops), script)
    for i, op in enumerate(ops):
        try:
            result = _run_op(pool, op)
        except KeyError as e:
            raise click.ClickException(f"Op {i} is missing field {e}")
        except (TypeError, ValueError) as e:
            raise click.ClickException(f"Op {i} has an invalid value: {e}")
        except AMMException as e:
            click.echo(click.style(f"[{i}] {op.get('op')}: {type(e).__name__}: {e}", fg="red"))
            if stop_on_error:
                raise click.ClickException(f"Stopped at op {i}")
            continue
        click.echo(f"[{i}] {op.get('op')}: {result if result is not None else 'ok'}")

    click.echo()
    click.echo(json.dumps(pool.to_dict(), indent=2))
    click.echo(f"{len(recorder.events)} events emitted")


def main():
    cli()


if __name__ == "__main__":
    main()
