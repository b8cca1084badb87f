"""QuiFin charge-date reminder service.

Subpackages: ``api`` (HTTP surface), ``jobs`` (scheduler and one-shot runner),
``services`` (sweep, ledger store, ntfy gateway) and ``models``.
"""

__all__: list[str] = []
