"""
Debt tracking: offline-first debt list plus per-currency net balances.

Monica's in_debt flag reads from the contact's side: "yes" means the contact
is in debt to the user (they owe me), "no" means the user owes the contact.

Net balances are derived, never stored. They are recomputed from the
outstanding debts every time the list changes. The currency is sniffed from
the server's formatted amount string ("$50.00" -> "$"); ambiguous symbols
such as "$" (USD/AUD/CAD...) therefore collapse into one bucket. Switching to
ISO currency codes needs server-side support for them.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from monica.features.base import RecordViewModel
from monica.models.records import DebtRecord

# Checked in order by substring; "$" comes first, so "R$12" reads as "$"
CURRENCY_SYMBOLS = ["$", "€", "£", "¥", "₹", "₽", "₿", "kr", "R$", "A$", "C$", "HK$", "NZ$", "S$", "CHF"]
DEFAULT_CURRENCY = "$"


class DebtDirection(str, Enum):
    THEY_OWE_ME = "yes"
    I_OWE_THEM = "no"

    @property
    def label(self) -> str:
        return "They owe me" if self is DebtDirection.THEY_OWE_ME else "I owe them"


class DebtStatus(str, Enum):
    OUTSTANDING = "inprogress"
    SETTLED = "completed"


def extract_currency(amount_string: str) -> str:
    for symbol in CURRENCY_SYMBOLS:
        if symbol in amount_string:
            return symbol
    for char in amount_string:
        if not char.isnumeric() and char not in ".,-":
            return char
    return DEFAULT_CURRENCY


def debt_currency(debt: DebtRecord) -> str:
    formatted = debt.amount_with_currency
    if formatted is None:
        formatted = f"{DEFAULT_CURRENCY}{debt.amount}"
    return extract_currency(formatted)


@dataclass(frozen=True)
class NetBalance:
    """Per-currency total; positive net means the contact owes the user."""

    currency: str
    they_owe_me: float
    i_owe_them: float

    @property
    def net_amount(self) -> float:
        return self.they_owe_me - self.i_owe_them

    @property
    def is_positive(self) -> bool:
        return self.net_amount >= 0

    @property
    def display_net(self) -> str:
        sign = "+" if self.net_amount >= 0 else ""
        return f"{sign}{self.currency}{abs(self.net_amount):.2f}"

    @property
    def summary(self) -> str:
        if self.net_amount > 0:
            return f"They owe you {self.currency}{self.net_amount:.2f}"
        if self.net_amount < 0:
            return f"You owe {self.currency}{abs(self.net_amount):.2f}"
        return "Settled"


def calculate_net_balances(debts: Iterable[DebtRecord]) -> List[NetBalance]:
    """Sum outstanding debts per currency, sorted by currency symbol."""
    totals: Dict[str, Tuple[float, float]] = {}
    for debt in debts:
        if debt.status != DebtStatus.OUTSTANDING.value:
            continue
        currency = debt_currency(debt)
        they_owe_me, i_owe_them = totals.get(currency, (0.0, 0.0))
        if debt.in_debt == DebtDirection.THEY_OWE_ME.value:
            they_owe_me += debt.amount
        else:
            i_owe_them += debt.amount
        totals[currency] = (they_owe_me, i_owe_them)

    return sorted(
        (NetBalance(currency=c, they_owe_me=t, i_owe_them=i) for c, (t, i) in totals.items()),
        key=lambda b: b.currency,
    )


class DebtViewModel(RecordViewModel):
    record_cls = DebtRecord
    noun = "debt"

    def __init__(self, client, engine, sync_engine=None):
        self.net_balances: List[NetBalance] = []
        super().__init__(client, engine, sync_engine)

    def _items_changed(self) -> None:
        self.net_balances = calculate_net_balances(self.items)

    # ── Derived lists ─────────────────────────────────────────────────────────

    @property
    def debts(self) -> List[DebtRecord]:
        return self.items

    @property
    def outstanding_debts(self) -> List[DebtRecord]:
        return [d for d in self.items if d.status == DebtStatus.OUTSTANDING.value]

    @property
    def settled_debts(self) -> List[DebtRecord]:
        return [d for d in self.items if d.status == DebtStatus.SETTLED.value]

    @property
    def debts_owed_to_me(self) -> List[DebtRecord]:
        return self.filtered_outstanding_debts(DebtDirection.THEY_OWE_ME)

    @property
    def debts_i_owe_them(self) -> List[DebtRecord]:
        return self.filtered_outstanding_debts(DebtDirection.I_OWE_THEM)

    def filtered_debts(self, direction: Optional[DebtDirection]) -> List[DebtRecord]:
        if direction is None:
            return self.items
        return [d for d in self.items if d.in_debt == direction.value]

    def filtered_outstanding_debts(self, direction: Optional[DebtDirection]) -> List[DebtRecord]:
        outstanding = self.outstanding_debts
        if direction is None:
            return outstanding
        return [d for d in outstanding if d.in_debt == direction.value]

    # ── Loading ───────────────────────────────────────────────────────────────

    async def fetch_debts(self, contact_id: int) -> None:
        await self._fetch(lambda: self.client.list_debts(contact_id), contact_id=contact_id)

    async def fetch_all_debts(self) -> None:
        await self._fetch(self.client.list_all_debts)

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def create_debt(
        self,
        contact_id: int,
        direction: DebtDirection,
        amount: float,
        reason: Optional[str] = None,
    ) -> bool:
        if amount <= 0:
            self.error_message = "Amount must be greater than zero"
            return False
        record = await self._create(
            contact_id=contact_id,
            in_debt=DebtDirection(direction).value,
            status=DebtStatus.OUTSTANDING.value,
            amount=amount,
            reason=reason or None,
        )
        return record is not None

    async def update_debt(
        self,
        debt: DebtRecord,
        direction: Optional[DebtDirection] = None,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> bool:
        fields = {}
        if direction is not None:
            fields["in_debt"] = DebtDirection(direction).value
        if amount is not None:
            if amount <= 0:
                self.error_message = "Amount must be greater than zero"
                return False
            fields["amount"] = amount
            if amount != debt.amount:
                # provisional until the push returns the server's formatting
                fields["amount_with_currency"] = f"{debt_currency(debt)}{amount:.2f}"
        if reason is not None:
            fields["reason"] = reason or None
        return await self._update(debt, **fields)

    async def mark_as_settled(self, debt: DebtRecord) -> bool:
        if debt.status != DebtStatus.OUTSTANDING.value:
            return False
        return await self._update(debt, status=DebtStatus.SETTLED.value)

    async def delete_debt(self, debt: DebtRecord) -> bool:
        return await self._delete(debt)
