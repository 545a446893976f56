"""
Replay a YAML trading scenario against a fresh reward market.

Scenario format:

    start_time: 1700000000          # genesis (optional, default 0)
    period_seconds: 2592000         # season length (optional)
    reward_pool: 10_000_000e18      # reward tokens minted to the engine (optional)
    traders:                        # collateral granted + approved per trader
      alice: 1_000_000e18
    steps:
      - {trader: alice, action: deposit, amount: 500_000e18}
      - {trader: alice, action: open, amount: 10_000e18, side: long, leverage: 10}
      - {trader: alice, action: increase, amount: 1e18}
      - {trader: alice, action: close, amount: 5_000e18}
      - {trader: alice, action: withdraw, amount: 1e18}
      - {action: advance, seconds: 2592005}     # or {action: advance, seasons: 1}
      - {trader: alice, action: claim}

Amounts are ints or strings of the form `<digits>` / `<digits>e<exp>`
(underscores allowed), evaluated exactly as integers.

A failing step is recorded with its error code and the replay continues,
unless `--stop-on-error` is given. With `--env` the `PERP_REWARDS_*` variables
provide the base config (scenario keys still win). The summary is printed as
JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..core.perp_rewards import (
    ManualClock,
    Market,
    PerpRewardsError,
    RewardConfig,
    config_from_env,
    deploy_market,
)

_log = logging.getLogger(__name__)

_AMOUNT_RE = re.compile(r"^([0-9][0-9_]*)(?:e([0-9]+))?$")

ACTIONS = ("deposit", "withdraw", "open", "increase", "close", "claim", "advance")


class ScenarioError(ValueError):
    """Raised when a scenario document is malformed."""


def parse_amount(value: Any, *, name: str = "amount") -> int:
    if isinstance(value, bool):
        raise ScenarioError(f"{name} must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        m = _AMOUNT_RE.match(value.strip())
        if m:
            base = int(m.group(1).replace("_", ""))
            exp = int(m.group(2)) if m.group(2) else 0
            return base * 10**exp
    raise ScenarioError(f"{name} must be an integer or '<digits>e<exp>', got {value!r}")


@dataclass
class StepOutcome:
    index: int
    action: str
    trader: Optional[str]
    ok: bool
    result: Any = None
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass
class Replay:
    market: Market
    clock: ManualClock
    traders: List[str]
    outcomes: List[StepOutcome] = field(default_factory=list)

    def run_step(self, index: int, step: Mapping[str, Any]) -> StepOutcome:
        action = str(step.get("action", "")).strip().lower()
        if action not in ACTIONS:
            raise ScenarioError(f"step {index}: unknown action {action!r}")
        trader = step.get("trader")
        if action != "advance" and not trader:
            raise ScenarioError(f"step {index}: {action} requires a trader")
        ledger = self.market.ledger
        engine = self.market.engine
        try:
            if action == "advance":
                if "seasons" in step:
                    seconds = parse_amount(step["seasons"], name="seasons") * engine.config.period_seconds
                else:
                    seconds = parse_amount(step.get("seconds", 0), name="seconds")
                result: Any = self.clock.advance(seconds)
            elif action == "deposit":
                result = ledger.deposit(trader, parse_amount(step.get("amount")))
            elif action == "withdraw":
                result = ledger.withdraw(trader, parse_amount(step.get("amount")))
            elif action == "open":
                result = ledger.open_position(
                    trader,
                    parse_amount(step.get("amount")),
                    step.get("side", "long"),
                    parse_amount(step.get("leverage", 1), name="leverage"),
                )
            elif action == "increase":
                result = ledger.increase_position(trader, parse_amount(step.get("amount")))
            elif action == "close":
                result = ledger.close_position(trader, parse_amount(step.get("amount")))
            else:
                result = engine.claim(trader)
        except PerpRewardsError as exc:
            _log.info("step %d (%s %s) rejected: %s", index, action, trader, exc.code)
            return StepOutcome(index, action, trader, ok=False, code=exc.code, message=str(exc))
        return StepOutcome(index, action, trader, ok=True, result=result)

    def summary(self) -> Dict[str, Any]:
        engine = self.market.engine
        ledger = self.market.ledger
        traders: Dict[str, Any] = {}
        for name in sorted(self.traders):
            position = ledger.get_position(name)
            traders[name] = {
                "balance": ledger.get_balance(name),
                "locked": ledger.locked_collateral(name),
                "position": None if position is None else {
                    "amount": position.amount,
                    "side": position.side.name,
                    "leverage": position.leverage,
                },
                "claimable": engine.claimable(name),
                "pending_reward": engine.pending_reward(name),
                "rewards_paid": self.market.reward_token.balance_of(name),
            }
        seasons = {
            str(s): {
                "market_volume": engine.market_season_volume(s),
                "trader_volume": dict(sorted(engine.volumes.traders_in(s).items())),
            }
            for s in engine.volumes.seasons()
        }
        season = engine.current_season()
        return {
            "now": self.clock.now,
            "season": season,
            "season_start": engine.clock.season_start(season),
            "traders": traders,
            "seasons": seasons,
            "failures": [
                {"step": o.index, "action": o.action, "trader": o.trader, "code": o.code}
                for o in self.outcomes
                if not o.ok
            ],
        }


def load_scenario(path: Path) -> Dict[str, Any]:
    obj = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(obj, dict):
        raise ScenarioError("scenario must be a mapping")
    if not isinstance(obj.get("steps", []), list):
        raise ScenarioError("steps must be a list")
    if not isinstance(obj.get("traders", {}), dict):
        raise ScenarioError("traders must be a mapping")
    return obj


def build_replay(
    scenario: Mapping[str, Any], *, check_invariants: bool = False, use_env: bool = False,
) -> Replay:
    """Deploy a fresh market for `scenario`.

    With `use_env` the `PERP_REWARDS_*` environment supplies the base config;
    keys present in the scenario still win.
    """
    start_time: Optional[int] = None
    if "start_time" in scenario:
        start_time = parse_amount(scenario["start_time"], name="start_time")
    base = config_from_env(start_time=start_time) if use_env else RewardConfig(start_time=start_time or 0)
    overrides: Dict[str, Any] = {"check_invariants": check_invariants or base.check_invariants}
    if "period_seconds" in scenario:
        overrides["period_seconds"] = parse_amount(scenario["period_seconds"], name="period_seconds")
    config = replace(base, **overrides)
    clock = ManualClock(config.start_time)
    market = deploy_market(config=config, time_source=clock)
    pool = parse_amount(scenario.get("reward_pool", 0), name="reward_pool")
    if pool:
        market.fund_rewards(pool)
    traders = []
    for name, grant in (scenario.get("traders") or {}).items():
        market.grant(str(name), parse_amount(grant, name=f"traders.{name}"))
        traders.append(str(name))
    return Replay(market=market, clock=clock, traders=traders)


def replay(
    scenario: Mapping[str, Any],
    *,
    stop_on_error: bool = False,
    check_invariants: bool = False,
    use_env: bool = False,
) -> Replay:
    run = build_replay(scenario, check_invariants=check_invariants, use_env=use_env)
    for index, step in enumerate(scenario.get("steps") or []):
        if not isinstance(step, Mapping):
            raise ScenarioError(f"step {index} must be a mapping")
        outcome = run.run_step(index, step)
        run.outcomes.append(outcome)
        if not outcome.ok and stop_on_error:
            break
    return run


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Replay a trading scenario against a fresh reward market.")
    ap.add_argument("scenario", type=Path, help="YAML scenario file")
    ap.add_argument("--stop-on-error", action="store_true", help="Abort at the first rejected step.")
    ap.add_argument("--check-invariants", action="store_true", help="Check the invariant registry after every action.")
    ap.add_argument("--env", action="store_true", help="Read the base config from PERP_REWARDS_* variables.")
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    try:
        scenario = load_scenario(args.scenario)
        run = replay(
            scenario,
            stop_on_error=args.stop_on_error,
            check_invariants=args.check_invariants,
            use_env=args.env,
        )
    except (OSError, yaml.YAMLError, ScenarioError) as exc:
        print(f"scenario invalid: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(run.summary(), indent=2, sort_keys=True))
    return 1 if any(not o.ok for o in run.outcomes) and args.stop_on_error else 0


if __name__ == "__main__":
    raise SystemExit(main())
