"""
Bank statement parsers for ledgerflow.

Supports:
- Caisse d'Épargne (CSV, personal and business layouts)
- Caisse d'Épargne Entreprise / SCI (CSV)
- Crédit Mutuel / CIC (CSV, Excel)
- Boursorama Banque (CSV)
"""

from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult, TransactionKind
from ledgerflow.parsers.bank.base import BankStatementParser
from ledgerflow.parsers.bank.caisse_epargne import CaisseEpargneParser, CaisseEpargneEntrepriseParser
from ledgerflow.parsers.bank.credit_mutuel import CreditMutuelParser
from ledgerflow.parsers.bank.credit_mutuel_excel import CreditMutuelExcelParser
from ledgerflow.parsers.bank.boursorama import BoursoramaParser
from ledgerflow.parsers.bank.registry import ParserRegistry

ParserRegistry.register(
    "caisse_epargne",
    CaisseEpargneParser,
    aliases=["Caisse d'Épargne", "caisse_epargne_particulier", "ce"],
)
ParserRegistry.register(
    "caisse_epargne_entreprise",
    CaisseEpargneEntrepriseParser,
    aliases=["Caisse d'Épargne Entreprise", "caisse_epargne_sci", "ce_sci"],
)
ParserRegistry.register(
    "credit_mutuel",
    CreditMutuelParser,
    aliases=["Crédit Mutuel", "cic"],
    spreadsheet_variant="credit_mutuel_xlsx",
)
ParserRegistry.register(
    "credit_mutuel_xlsx",
    CreditMutuelExcelParser,
    aliases=["Crédit Mutuel Excel", "cic_xlsx"],
)
ParserRegistry.register("boursorama", BoursoramaParser, aliases=["Boursorama Banque", "boursobank"])

__all__ = [
    "ParsedTransaction",
    "ParseResult",
    "TransactionKind",
    "BankStatementParser",
    "CaisseEpargneParser",
    "CaisseEpargneEntrepriseParser",
    "CreditMutuelParser",
    "CreditMutuelExcelParser",
    "BoursoramaParser",
    "ParserRegistry",
]
