from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Sheet progress bar for a conversion job (tqdm, TTY only).

The bar advances once per target sheet and shows running ok / failed / rows
counters as its postfix. Outside a TTY (CI, pipes) nothing is drawn so the
labeled log lines stay clean; the counters are still kept.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Counts converted / failed sheets and drives an optional tqdm bar."""

    def __init__(self, total_sheets: int, *, description: str = "Converting sheets") -> None:
        self.total_sheets = total_sheets
        self.description = description
        self.current_sheet: str | None = None
        self.converted = 0
        self.failed = 0
        self.rows = 0

        self.pbar: TqdmType[Any] | None = None
        if is_tty_enabled():
            self.pbar = tqdm(total=total_sheets, desc=description, unit="sheet", ncols=80, ascii=True)

    @property
    def done(self) -> int:
        return self.converted + self.failed

    def start_sheet(self, sheet_name: str) -> None:
        self.current_sheet = sheet_name
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({sheet_name})")

    def finish_sheet(self, *, success: bool, rows: int = 0) -> None:
        if success:
            self.converted += 1
        else:
            self.failed += 1
        self.rows += rows
        self.current_sheet = None
        if self.pbar is not None:
            self.pbar.set_postfix(ok=self.converted, failed=self.failed, rows=self.rows)
            self.pbar.set_description(self.description)
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
