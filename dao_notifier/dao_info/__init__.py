"""DAO Notifier — DAO Info Package.

Looks up DAO metadata (chain, display name, page URL) from the
indexer. Components:
  - DaoInfoClient: Async HTTP client for the indexer query
  - DaoInfo: Parsed metadata
"""

from dao_notifier.dao_info.client import DaoInfo, DaoInfoClient

__all__ = [
    "DaoInfo",
    "DaoInfoClient",
]
