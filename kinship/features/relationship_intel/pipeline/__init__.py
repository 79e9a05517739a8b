"""
Pipeline components for relationship intelligence.

Ingestion writes relationships and records, scoring refreshes derived fields,
ranking reads them back out.
"""

__all__ = ["ingestion", "ranking", "scoring"]
