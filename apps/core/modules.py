"""
Feature modules a tenant can have enabled.

Tenants store a list of module keys. Older records and admin forms may use
lower-case aliases or route names (``mi-caja``, ``accounts-payable``), so
every read goes through ``normalize_modules``.
"""

POS = "POS"
DOCUMENTS = "DOCUMENTS"
INVENTORY = "INVENTORY"
CUSTOMERS = "CUSTOMERS"
CREDITS = "CREDITS"
CASH_REGISTER = "CASH_REGISTER"
ACCOUNTING = "ACCOUNTING"
SUPPLIERS = "SUPPLIERS"
QUOTES = "QUOTES"
PROJECTS = "PROJECTS"

# Catalog order is also the display order
MODULE_CATALOG = [
    (POS, "Punto de Venta"),
    (DOCUMENTS, "Documentos"),
    (INVENTORY, "Inventario"),
    (CUSTOMERS, "Clientes"),
    (CREDITS, "Fiados"),
    (CASH_REGISTER, "Caja"),
    (ACCOUNTING, "Contabilidad"),
    (SUPPLIERS, "Proveedores"),
    (QUOTES, "Cotizaciones"),
    (PROJECTS, "Proyectos"),
]

MODULE_KEYS = [key for key, _ in MODULE_CATALOG]
MODULE_LABELS = dict(MODULE_CATALOG)

MODULE_ALIASES = {
    "pos": POS,
    "documents": DOCUMENTS,
    "document": DOCUMENTS,
    "inventory": INVENTORY,
    "products": INVENTORY,
    "categories": INVENTORY,
    "customers": CUSTOMERS,
    "customer": CUSTOMERS,
    "credits": CREDITS,
    "credit": CREDITS,
    "payments": CREDITS,
    "cash": CASH_REGISTER,
    "cashregister": CASH_REGISTER,
    "cash-register": CASH_REGISTER,
    "mi-caja": CASH_REGISTER,
    "accounting": ACCOUNTING,
    "accounts-payable": ACCOUNTING,
    "operational-expenses": ACCOUNTING,
    "treasury-movements": ACCOUNTING,
    "suppliers": SUPPLIERS,
    "supplier": SUPPLIERS,
    "quotes": QUOTES,
    "projects": PROJECTS,
    "services": PROJECTS,
}
MODULE_ALIASES.update({key: key for key in MODULE_KEYS})

# Bundles from the earlier plan layout
LEGACY_MODULES = {
    "CRM": [CUSTOMERS, CREDITS],
    "FINANCE": [CASH_REGISTER, ACCOUNTING],
}


def default_modules():
    return list(MODULE_KEYS)


def resolve_module(value):
    """Map a key or alias to its canonical module key, or None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return MODULE_ALIASES.get(value) or MODULE_ALIASES.get(value.lower())


def normalize_modules(values):
    """
    Return the canonical, de-duplicated module list in catalog order.

    Unknown values are dropped; legacy bundles expand to their modules.
    """
    resolved = set()
    for value in values or []:
        if isinstance(value, str) and value.strip().upper() in LEGACY_MODULES:
            resolved.update(LEGACY_MODULES[value.strip().upper()])
            continue
        key = resolve_module(value)
        if key:
            resolved.add(key)
    return [key for key in MODULE_KEYS if key in resolved]


def get_enabled_modules(tenant):
    """Effective module list for a tenant (all modules when none stored)."""
    if tenant is None:
        return []
    if tenant.modules is None:
        return default_modules()
    return normalize_modules(tenant.modules)


def has_module_access(tenant, module):
    key = resolve_module(module)
    return key is not None and key in get_enabled_modules(tenant)
