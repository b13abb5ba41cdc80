"""Models package for the contract pipeline."""

from supplychain_api.models.contract import ContractContext, LinkItem, PublishedArtifact

__all__ = [
    "ContractContext",
    "LinkItem",
    "PublishedArtifact",
]
