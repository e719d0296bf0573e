"""Staking farm with fixed-point reward accrual and deferred transfer settlement."""

__version__ = "0.1.0"
