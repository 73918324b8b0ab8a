"""
Tabular runtime report: one row per (account, region, function, runtime).
"""

import sys
from typing import List, Optional, TextIO

NOT_AVAILABLE = 'N/A'
PADDING = 2
MIN_WIDTH = 2


class RuntimeTable:
    """Buffers rows and writes them as an aligned table on flush."""

    def __init__(self, show_profile: bool = False, stream: Optional[TextIO] = None):
        self.show_profile = show_profile
        self.stream = stream
        self._rows: List[List[str]] = []
        self._header_written = False

    @property
    def columns(self) -> List[str]:
        if self.show_profile:
            return ['AccountID', 'Profile', 'Region', 'FunctionName', 'CurrentRuntime']
        return ['AccountID', 'Region', 'FunctionName', 'CurrentRuntime']

    def write_header(self) -> None:
        """Queue the title and separator rows. Only the first call has any effect."""
        if self._header_written:
            return
        self._header_written = True
        self._rows.insert(0, list(self.columns))
        self._rows.insert(1, ['-' * len(c) for c in self.columns])

    def add_row(self, account_id: str, profile: str, region: str, function_name: str, runtime: str) -> None:
        runtime = runtime or NOT_AVAILABLE
        if self.show_profile:
            self._rows.append([account_id, profile, region, function_name, runtime])
        else:
            self._rows.append([account_id, region, function_name, runtime])

    def render(self) -> str:
        if not self._rows:
            return ''
        # The last cell of each line is not aligned, like a tabwriter line with no trailing tab.
        widths = [
            max(MIN_WIDTH, max(len(row[i]) for row in self._rows) + PADDING)
            for i in range(len(self._rows[0]) - 1)
        ]
        lines = []
        for row in self._rows:
            cells = [cell.ljust(width) for cell, width in zip(row, widths)]
            cells.append(row[-1])
            lines.append(''.join(cells))
        return '\n'.join(lines) + '\n'

    def flush(self) -> None:
        """Write buffered rows and clear the buffer."""
        output = self.render()
        if output:
            stream = self.stream or sys.stdout
            stream.write(output)
            stream.flush()
        self._rows = []
