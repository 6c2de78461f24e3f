"""
Account ledger. The only code that changes an account's balance or counters.
Every method is one indivisible state transition on the account row.
"""

from decimal import Decimal

from app.core.database import Database
from app.core.exceptions import InsufficientFunds, NotFound
from app.core.logger import get_logger
from app.core.money import Amount, from_cents, to_cents, to_decimal

logger = get_logger("ledger")


class AccountLedger:
    """Balance and counters for one account."""

    def __init__(self, db: Database, account_id: str):
        self.db = db
        self.account_id = account_id

    def get_balance(self) -> Decimal:
        cents = self.db.get_balance_cents(self.account_id)
        if cents is None:
            raise NotFound(f"Unknown account: {self.account_id}")
        return from_cents(cents)

    def debit(self, amount: Amount, game: str = None, details: str = None) -> Decimal:
        """
        Take `amount` from the balance. Raises InsufficientFunds without
        touching the account when the balance cannot cover it.
        """
        cents = to_cents(amount)
        if cents <= 0:
            raise ValueError(f"Debit amount must be positive: {amount}")

        with self.db.transaction():
            new_balance = self.db.debit(self.account_id, cents)
            if new_balance is None:
                if self.db.get_balance_cents(self.account_id) is None:
                    raise NotFound(f"Unknown account: {self.account_id}")
                raise InsufficientFunds(
                    f"Insufficient balance for a stake of {to_decimal(amount):.2f}"
                )
            self.db.log_transaction(
                self.account_id, "bet", -cents, new_balance, game=game, details=details
            )

        logger.debug(
            "Debited account",
            extra={"account_id": self.account_id, "amount": str(from_cents(cents))},
        )
        return from_cents(new_balance)

    def credit(self, amount: Amount, game: str = None, details: str = None) -> Decimal:
        """Add `amount` to the balance. Zero is allowed; negatives are not."""
        cents = to_cents(amount)
        if cents < 0:
            raise ValueError(f"Credit amount must not be negative: {amount}")

        with self.db.transaction():
            new_balance = self.db.credit(self.account_id, cents)
            if new_balance is None:
                raise NotFound(f"Unknown account: {self.account_id}")
            self.db.log_transaction(
                self.account_id, "win", cents, new_balance, game=game, details=details
            )

        logger.debug(
            "Credited account",
            extra={"account_id": self.account_id, "amount": str(from_cents(cents))},
        )
        return from_cents(new_balance)

    def record_bet_placed(self) -> int:
        return self.db.increment_counter(self.account_id, "total_bets")

    def record_win(self) -> int:
        """Count a win. Minigame wins and won sports bets both come through here."""
        return self.db.increment_counter(self.account_id, "total_wins")
