from enum import Enum


class ModuleKey(str, Enum):
    BOM = "BOM"
    PRODUCTION = "PRODUCTION"
    STOCK = "STOCK"


MODULE_DEFINITIONS: list[tuple[ModuleKey, str]] = [
    (ModuleKey.BOM, "Bills of Materials"),
    (ModuleKey.PRODUCTION, "Production & Shipments"),
    (ModuleKey.STOCK, "Stock"),
]

MODULE_KEYS: list[str] = [module_key.value for module_key, _ in MODULE_DEFINITIONS]
MODULE_KEY_SET: set[str] = set(MODULE_KEYS)
