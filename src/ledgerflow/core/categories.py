"""
Canonical category table.

Stable string ids are what the ledger, rules and patterns store.
"""

from enum import Enum
from typing import Optional

from ledgerflow.core.exceptions import ValidationError


class Category(Enum):
    """Canonical spending/income categories."""

    # Income
    SALARY = "cat-salary"
    FREELANCE = "cat-freelance"
    DIVIDENDS = "cat-dividends"
    RENTAL_INCOME = "cat-rental-income"
    REFUND = "cat-refund"
    OTHER_INCOME = "cat-other-income"

    # Expenses
    HOUSING = "cat-housing"
    UTILITIES = "cat-utilities"
    GROCERIES = "cat-groceries"
    RESTAURANTS = "cat-restaurants"
    TRANSPORT = "cat-transport"
    HEALTH = "cat-health"
    INSURANCE = "cat-insurance"
    SUBSCRIPTIONS = "cat-subscriptions"
    SHOPPING = "cat-shopping"
    LEISURE = "cat-leisure"
    TRAVEL = "cat-travel"
    EDUCATION = "cat-education"
    TAXES = "cat-taxes"
    FEES = "cat-fees"
    SAVINGS = "cat-savings"
    INVESTMENT = "cat-investment"
    LOAN_PAYMENT = "cat-loan-payment"
    OTHER_EXPENSE = "cat-other-expense"

    # Neutral
    TRANSFER = "cat-transfer"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def is_income(self) -> bool:
        return self in INCOME_CATEGORIES

    @classmethod
    def from_id(cls, category_id: str) -> "Category":
        """
        Resolve a category from its id or enum name.

        Raises:
            ValidationError: If the id is not a canonical category
        """
        found = cls.lookup(category_id)
        if found is None:
            raise ValidationError(f"Unknown category: {category_id}")
        return found

    @classmethod
    def lookup(cls, value: Optional[str]) -> Optional["Category"]:
        """Like from_id but returns None for unknown values."""
        if not value:
            return None
        value = value.strip()
        try:
            return cls(value)
        except ValueError:
            pass
        return cls.__members__.get(value.upper().replace("-", "_"))


INCOME_CATEGORIES = frozenset({
    Category.SALARY,
    Category.FREELANCE,
    Category.DIVIDENDS,
    Category.RENTAL_INCOME,
    Category.REFUND,
    Category.OTHER_INCOME,
})

CATEGORY_LABELS = {
    Category.SALARY: "Salaire",
    Category.FREELANCE: "Freelance",
    Category.DIVIDENDS: "Dividendes",
    Category.RENTAL_INCOME: "Revenus locatifs",
    Category.REFUND: "Remboursement",
    Category.OTHER_INCOME: "Autres revenus",
    Category.HOUSING: "Logement",
    Category.UTILITIES: "Énergie et eau",
    Category.GROCERIES: "Courses",
    Category.RESTAURANTS: "Restaurants",
    Category.TRANSPORT: "Transports",
    Category.HEALTH: "Santé",
    Category.INSURANCE: "Assurances",
    Category.SUBSCRIPTIONS: "Abonnements",
    Category.SHOPPING: "Shopping",
    Category.LEISURE: "Loisirs",
    Category.TRAVEL: "Voyages",
    Category.EDUCATION: "Éducation",
    Category.TAXES: "Impôts et taxes",
    Category.FEES: "Frais bancaires",
    Category.SAVINGS: "Épargne",
    Category.INVESTMENT: "Investissement",
    Category.LOAN_PAYMENT: "Remboursement de prêt",
    Category.OTHER_EXPENSE: "Autres dépenses",
    Category.TRANSFER: "Virement interne",
}
