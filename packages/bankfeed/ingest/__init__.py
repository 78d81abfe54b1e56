"""Raw export ingestion: shared helpers and per-bank adapters."""
