"""Core (UI-agnostic) dashboard logic.

This package contains:
- spreadsheet decoding and row normalization (XLSX -> canonical daily rows)
- persistence of canonical rows and the import boundary
- series aggregation and pivoting (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
