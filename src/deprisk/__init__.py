"""Supply-chain risk scoring for npm project dependencies."""

__version__ = "0.1.0"
