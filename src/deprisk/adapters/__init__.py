"""Manifest parsing, registry adapters and shared errors."""

from deprisk.adapters.base import DepRiskError, parse_repo_url
from deprisk.adapters.npm import NpmAdapter, extract_dependencies

__all__ = ["DepRiskError", "NpmAdapter", "extract_dependencies", "parse_repo_url"]
