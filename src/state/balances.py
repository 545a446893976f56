"""
Single-asset balance tracking inside a `StateStore`.

Implements BalanceTable[Address] -> Amount
"""

from .store import StateStore


# Type aliases
Address = str  # opaque caller identity supplied by the host
Amount = int  # Non-negative integer (arbitrary precision)


class BalanceTable:
    """
    Balance table mapping address -> amount, stored in one store table.

    Note: zero balances are removed to keep the table sparse. Do not rely on
    dict iteration order; callers sort explicitly at export boundaries.
    """

    def __init__(self, store: StateStore, table: str):
        """Bind to `table` inside `store`."""
        self._store = store
        self._table = table

    def get(self, holder: Address) -> Amount:
        """Get balance for holder. Returns 0 if not found."""
        return self._store.get(self._table, holder, 0)

    def set(self, holder: Address, amount: Amount) -> None:
        """
        Set balance for holder.

        Args:
            holder: Address
            amount: Non-negative amount

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Balance cannot be negative: {amount}")
        if amount == 0:
            self._store.delete(self._table, holder)
        else:
            self._store.set(self._table, holder, amount)

    def add(self, holder: Address, delta: Amount) -> None:
        """
        Add delta to balance. Equivalent to set(holder, get(holder) + delta).

        Raises:
            ValueError: If resulting balance would be negative
        """
        current = self.get(holder)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient balance: {current} + {delta} = {new_balance} < 0"
            )
        self.set(holder, new_balance)

    def subtract(self, holder: Address, delta: Amount) -> None:
        """
        Subtract delta from balance.

        Raises:
            ValueError: If delta is negative or insufficient balance
        """
        if delta < 0:
            raise ValueError(f"Delta must be non-negative: {delta}")
        self.add(holder, -delta)

    def total(self) -> Amount:
        return sum(self._store.items(self._table).values())

    def __repr__(self) -> str:
        return f"BalanceTable({self._table!r}, {len(self._store.items(self._table))} entries)"
