"""Per-bank export adapters producing :class:`bankfeed.transaction.Transaction` values."""
