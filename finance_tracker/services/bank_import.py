"""
Simulated Bank Import

DESIGN DECISION: There is no real bank integration. This service produces
deterministic sample transactions for a "linked" account so the import
flow (flagging, validation, persistence) can be exercised end to end.
Generated rows are raw form input; they go through the normal validator.
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional


# (type, category, description, min amount, max amount)
SAMPLE_OPERATIONS = (
    ("expense", "Courses", "Supermarché", Decimal("12.50"), Decimal("140.00")),
    ("expense", "Transport", "Carte de transport", Decimal("2.10"), Decimal("75.00")),
    ("expense", "Restaurants", "Restaurant", Decimal("9.90"), Decimal("65.00")),
    ("expense", "Abonnements", "Abonnement mensuel", Decimal("4.99"), Decimal("29.99")),
    ("expense", "Santé", "Pharmacie", Decimal("3.20"), Decimal("48.00")),
    ("income", "Remboursement", "Virement reçu", Decimal("10.00"), Decimal("250.00")),
)


@dataclass(frozen=True)
class BankAccount:
    """A linked (simulated) bank account."""
    id: str
    name: str
    institution: str = "Banque Démo"


def simulate_bank_transactions(
    account: BankAccount,
    count: int = 5,
    start: Optional[date] = None,
    seed: Optional[int] = None,
    income_categories: Optional[Iterable[str]] = None,
) -> list[dict]:
    """
    Generate raw transaction input for an account.

    Args:
        account: Account the rows are attributed to
        count: Number of rows to generate
        start: First date; rows are spread over the following days
        seed: Seed for reproducible output
        income_categories: Allowed income categories. Income rows whose
            sample category is not allowed get one of these instead.

    Returns:
        Raw form dicts flagged imported=True with bankAccount set
    """
    if count < 0:
        raise ValueError("count cannot be negative")

    allowed = tuple(income_categories or ())
    rng = random.Random(seed)
    start = start or date.today() - timedelta(days=count)
    rows = []
    for offset in range(count):
        kind, category, description, low, high = rng.choice(SAMPLE_OPERATIONS)
        if kind == "income" and allowed and category not in allowed:
            category = rng.choice(allowed)
        cents = rng.randint(int(low * 100), int(high * 100))
        rows.append({
            "type": kind,
            "amount": Decimal(cents) / 100,
            "category": category,
            "description": f"{description} - {account.name}",
            "date": (start + timedelta(days=offset)).isoformat(),
            "imported": True,
            "bankAccount": account.id,
        })
    return rows
