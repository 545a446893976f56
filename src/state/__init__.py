"""
Shared state store, balance tables and in-memory tokens
"""

from .balances import BalanceTable
from .store import LogRecord, StateStore
from .tokens import Token, TokenCustody, ValueTransfer

__all__ = [
    "BalanceTable",
    "LogRecord",
    "StateStore",
    "Token",
    "TokenCustody",
    "ValueTransfer",
]
