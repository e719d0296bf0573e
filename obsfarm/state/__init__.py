"""
State management for the staking farm
"""

from .account_key import AccountKey, derive_account_key
from .ledger import Account, AccountLedger

__all__ = [
    "AccountKey",
    "derive_account_key",
    "Account",
    "AccountLedger",
]
