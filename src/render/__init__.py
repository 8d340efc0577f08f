"""
Render layer: XLSX photo ledger.

Roles:
- DeliveryReport → workbook (openpyxl)
"""

from .excel import PhotoLedgerRenderer, render_photo_ledger

__all__ = [
    "render_photo_ledger",
    "PhotoLedgerRenderer",
]
