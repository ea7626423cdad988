from .preview import (
    ColumnInfo,
    PreviewData,
    analyze_columns_for_preview,
    build_multi_sheet_preview,
    build_preview_data,
    render_preview,
)

__all__ = [
    "ColumnInfo",
    "PreviewData",
    "analyze_columns_for_preview",
    "build_multi_sheet_preview",
    "build_preview_data",
    "render_preview",
]
