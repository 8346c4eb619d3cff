"""
Bank category hints.

Parsers already translate native labels into canonical ids when they can.
This mapper accepts those ids and, for rows imported without one, retries on
the stored native label ("Categorie > Sous categorie") with a generic
vocabulary.
"""

import logging
from typing import Optional

from ledgerflow.core.categories import Category
from ledgerflow.parsers.bank.base import fold_label

logger = logging.getLogger(__name__)

# Generic native vocabulary shared by French banks, folded
GENERIC_LABELS = {
    "salaires": Category.SALARY,
    "salaire": Category.SALARY,
    "revenus": Category.OTHER_INCOME,
    "remboursements": Category.REFUND,
    "alimentation": Category.GROCERIES,
    "courses": Category.GROCERIES,
    "supermarche": Category.GROCERIES,
    "restaurant": Category.RESTAURANTS,
    "restaurants": Category.RESTAURANTS,
    "transports": Category.TRANSPORT,
    "carburant": Category.TRANSPORT,
    "voyages": Category.TRAVEL,
    "logement": Category.HOUSING,
    "loyer": Category.HOUSING,
    "energie": Category.UTILITIES,
    "telephonie": Category.SUBSCRIPTIONS,
    "abonnements": Category.SUBSCRIPTIONS,
    "assurances": Category.INSURANCE,
    "sante": Category.HEALTH,
    "shopping": Category.SHOPPING,
    "loisirs": Category.LEISURE,
    "impots": Category.TAXES,
    "impots et taxes": Category.TAXES,
    "frais bancaires": Category.FEES,
    "epargne": Category.SAVINGS,
    "virement interne": Category.TRANSFER,
    "virements internes": Category.TRANSFER,
}


class BankCategoryMapper:
    """Maps a bank-supplied category hint to a canonical category."""

    def map(self, raw_category: Optional[str], bank_label: Optional[str] = None) -> Optional[Category]:
        """
        Resolve a hint.

        Args:
            raw_category: Canonical id set by the parser, if any
            bank_label: Native label, most specific part last

        Returns:
            Category or None when nothing maps
        """
        category = Category.lookup(raw_category)
        if category is not None:
            return category

        if not bank_label:
            return None
        # Most specific part first: "Alimentation > Hyper/supermarche"
        for part in reversed(bank_label.split(">")):
            folded = fold_label(part)
            if folded in GENERIC_LABELS:
                return GENERIC_LABELS[folded]
        return None
