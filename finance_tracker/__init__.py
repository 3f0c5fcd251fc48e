"""Finance Tracker API: Google sign-in, JWT sessions and a personal ledger."""

__version__ = "0.1.0"
