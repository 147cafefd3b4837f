from .backup import BackupSetting, BackupStatus, BackupType, DataBackup
from .restaurant_data import ConsumptionHistory, InventoryItem, MenuItem, MenuItemIngredient, PurchaseHistory
from .security_log import SecurityEventType, SecurityLog
from .two_factor import TwoFactorBackupCode, TwoFactorSettings
from .user import Restaurant, User
from .user_session import ActiveSession

__all__ = [
    "ActiveSession",
    "BackupSetting",
    "BackupStatus",
    "BackupType",
    "ConsumptionHistory",
    "DataBackup",
    "InventoryItem",
    "MenuItem",
    "MenuItemIngredient",
    "PurchaseHistory",
    "Restaurant",
    "SecurityEventType",
    "SecurityLog",
    "TwoFactorBackupCode",
    "TwoFactorSettings",
    "User",
]
