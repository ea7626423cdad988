from .engine import (
    apply_vlookups,
    apply_vlookups_to_sheets,
    create_cross_sheet_lookup,
    create_inline_lookup,
)

__all__ = [
    "apply_vlookups",
    "apply_vlookups_to_sheets",
    "create_cross_sheet_lookup",
    "create_inline_lookup",
]
