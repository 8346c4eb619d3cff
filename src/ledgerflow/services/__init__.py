"""
Services - import, categorization and recurring pattern detection on top of the ledger.
"""
