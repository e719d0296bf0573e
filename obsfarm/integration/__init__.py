"""
Settlement and configuration layer around the farm core
"""

from .asset_service import AssetService, InMemoryAssetService, TransferOutcome
from .config import farm_config_from_env, load_farm_config
from .receipts import SettlementReceipt, sign_receipt, verify_receipt
from .runner import ReceiptRejectedError, SettlementRunner

__all__ = [
    "AssetService",
    "InMemoryAssetService",
    "TransferOutcome",
    "farm_config_from_env",
    "load_farm_config",
    "SettlementReceipt",
    "sign_receipt",
    "verify_receipt",
    "ReceiptRejectedError",
    "SettlementRunner",
]
