"""Command-line tools for inspecting a chequebook ledger."""
