"""
ledgerflow parsers - decoders, locale normalizers and institution parsers.

Architecture:
- tabular: delimited text decoding
- spreadsheet: workbook decoding (openpyxl)
- normalizers: French amount/date helpers
- bank: one BankStatementParser per institution, resolved via ParserRegistry
"""
