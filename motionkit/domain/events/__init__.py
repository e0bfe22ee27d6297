"""Domain Event definitions.

Represents significant occurrences (retries, evictions, pagination anomalies)
that are dispatched to the debug log.
"""
