"""Notification emitters.

One function per observable event. Events are appended to the store's log
inside the action's transaction, so a rolled-back action leaves no events.
"""

from __future__ import annotations

from ...state.store import LogRecord, StateStore

from .types import Event, Side


def effect_deposit(store: StateStore, trader: str, amount: int) -> LogRecord:
    return store.emit(Event.DEPOSIT.value, trader=trader, amount=amount)


def effect_withdraw(store: StateStore, trader: str, amount: int) -> LogRecord:
    return store.emit(Event.WITHDRAW.value, trader=trader, amount=amount)


def effect_position_opened(store: StateStore, trader: str, amount: int, side: Side, leverage: int) -> LogRecord:
    return store.emit(
        Event.POSITION_OPENED.value, trader=trader, amount=amount, side=side, leverage=leverage,
    )


def effect_position_increased(store: StateStore, trader: str, amount: int) -> LogRecord:
    return store.emit(Event.POSITION_INCREASED.value, trader=trader, amount=amount)


def effect_position_closed(store: StateStore, trader: str, amount: int) -> LogRecord:
    return store.emit(Event.POSITION_CLOSED.value, trader=trader, amount=amount)


def effect_reward_set(store: StateStore, trader: str, season: int, reward: int) -> LogRecord:
    return store.emit(Event.REWARD_SET.value, trader=trader, season=season, reward=reward)


def effect_reward_claimed(store: StateStore, trader: str, amount: int) -> LogRecord:
    return store.emit(Event.REWARD_CLAIMED.value, trader=trader, amount=amount)


def effect_ledger_address_set(store: StateStore, address: str) -> LogRecord:
    return store.emit(Event.LEDGER_ADDRESS_SET.value, address=address)
