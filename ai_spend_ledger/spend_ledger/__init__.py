"""AI spend ledger: multi-provider LLM cost/usage sync service."""

__version__ = "0.1.0"
