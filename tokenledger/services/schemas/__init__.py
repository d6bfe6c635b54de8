"""Shared dataclasses for ledger services."""

from tokenledger.services.schemas.results import BatchReleaseResult, ReleaseResult

__all__ = [
    "BatchReleaseResult",
    "ReleaseResult",
]
