from __future__ import annotations

from flask import session

SUPPORTED_LANGS = {"es", "en"}

I18N: dict[str, dict[str, str]] = {
    "menu.dashboard": {"es": "Panel", "en": "Dashboard"},
    "menu.cases": {"es": "Ver casos", "en": "Cases"},
    "menu.new_case": {"es": "Nuevo caso", "en": "New case"},
    "menu.correspondents": {"es": "Corresponsales", "en": "Correspondents"},
    "menu.logout": {"es": "Cerrar sesión", "en": "Sign out"},
    "kpi.open_cases": {"es": "Casos abiertos", "en": "Open cases"},
    "kpi.month_cost": {"es": "Costo del mes", "en": "Cost this month"},
    "kpi.overdue_invoices": {"es": "Facturas vencidas", "en": "Overdue invoices"},
    "kpi.no_invoice_30d": {"es": "Sin factura +30 días", "en": "No invoice 30+ days"},
    "dashboard.by_country": {"es": "Casos por país", "en": "Cases by country"},
    "dashboard.recent": {"es": "Casos recientes", "en": "Recent cases"},
    "dashboard.attention": {"es": "Casos que requieren atención", "en": "Cases needing attention"},
    "action.search": {"es": "Buscar", "en": "Search"},
    "action.filter": {"es": "Filtrar", "en": "Filter"},
    "action.clear": {"es": "Limpiar", "en": "Clear"},
    "action.save": {"es": "Guardar", "en": "Save"},
    "action.delete": {"es": "Eliminar", "en": "Delete"},
    "action.edit": {"es": "Editar", "en": "Edit"},
}


def get_locale() -> str:
    lang = session.get("lang", "es")
    if lang not in SUPPORTED_LANGS:
        return "es"
    return lang


def translate(key: str) -> str:
    lang = get_locale()
    return I18N.get(key, {}).get(lang, key)
