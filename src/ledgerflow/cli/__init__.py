"""ledgerflow command line interface."""
