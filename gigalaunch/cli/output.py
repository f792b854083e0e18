"""Rendering of the CLI output, either for a human in a terminal or for another program
reading it line by line.
"""

from .lang import get_raw as _raw

import shutil
import time
import sys

from typing import List, Tuple, Optional


# A row of cells, none is a separator.
Row = Optional[Tuple[str, ...]]


class OutputTable:
    """Rows and separators accumulated before being printed at once.
    """

    def __init__(self) -> None:
        self.rows: List[Row] = []

    def add(self, *cells) -> None:
        self.rows.append(tuple(str(cell) for cell in cells))

    def separator(self) -> None:
        self.rows.append(None)

    def widths(self) -> List[int]:
        """Width of each column, the number of columns is the one of the longest row.
        """
        widths: List[int] = []
        for row in self.rows:
            if row is None:
                continue
            for i, cell in enumerate(row):
                if i == len(widths):
                    widths.append(len(cell))
                elif len(cell) > widths[i]:
                    widths[i] = len(cell)
        return widths

    def print(self) -> None:
        raise NotImplementedError


class Output:
    """Abstract output of the CLI. A task is a single line message with a state, that
    can be updated in place until it is finished.
    """

    def table(self) -> OutputTable:
        raise NotImplementedError

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        """Update the current task, or start a new one if the previous one was finished.
        The message is given by its language key and format arguments.
        """
        raise NotImplementedError

    def finish(self) -> None:
        """Finish the current task, if any, next task will be printed on a new line.
        """
        raise NotImplementedError

    def print(self, text: str) -> None:
        """Print raw text, without new line.
        """
        raise NotImplementedError


class HumanOutput(Output):

    # Width of the state column, like "[  OK  ] ".
    STATE_WIDTH = 9

    COLORS = {
        "OK": 92,
        "FAILED": 31,
        "WARN": 33,
        "INFO": 34,
        "HALT": 33,
    }

    def __init__(self, color: bool) -> None:
        self.color = color
        self._width = 0
        self._width_time = 0.0
        self._line_len: Optional[int] = None

    def term_width(self) -> int:
        """Terminal's columns count, only queried once per second.
        """
        now = time.monotonic()
        if now - self._width_time > 1:
            self._width_time = now
            self._width = shutil.get_terminal_size().columns
        return self._width

    def table(self) -> OutputTable:
        return HumanTable(self)

    def _state(self, state: Optional[str]) -> str:
        if state is None:
            return " " * self.STATE_WIDTH
        color = self.COLORS.get(state) if self.color else None
        if color is None:
            return f"[{state:^6s}] "
        return f"[\033[{color}m{state:^6s}\033[0m] "

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:

        width = self.term_width()
        if width < self.STATE_WIDTH + 11:
            return

        msg = "" if key is None else _raw(key, kwargs)
        max_len = width - self.STATE_WIDTH
        if len(msg) > max_len:
            msg = msg[:max_len - 3] + "..."

        # Pad with spaces to erase the end of the previous message of this task.
        padding = 0 if self._line_len is None else max(0, self._line_len - len(msg))

        sys.stdout.write(f"\r{self._state(state)}{msg}{' ' * padding}")
        sys.stdout.flush()
        self._line_len = len(msg)

    def finish(self) -> None:
        if self._line_len is not None:
            sys.stdout.write("\n")
            self._line_len = None

    def print(self, text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()


class HumanTable(OutputTable):
    """Table drawn with box characters, columns are shrunk (and their cells wrapped) if
    the table is larger than the terminal.
    """

    def __init__(self, out: HumanOutput) -> None:
        super().__init__()
        self.out = out

    def _fit(self, widths: List[int]) -> List[int]:
        # Each column takes 3 characters of borders and padding, plus the last border.
        available = self.out.term_width() - 2 - 3 * len(widths)
        widths = widths.copy()
        while sum(widths) > available:
            widest = max(range(len(widths)), key=lambda i: widths[i])
            if widths[widest] <= 1:
                break
            widths[widest] -= 1
        return widths

    def print(self) -> None:

        widths = self._fit(self.widths())
        if not len(widths):
            return

        def border(left: str, middle: str, right: str) -> str:
            return left + middle.join("─" * (w + 2) for w in widths) + right

        lines = [border("┌", "┬", "┐")]

        for row in self.rows:

            if row is None:
                lines.append(border("├", "┼", "┤"))
                continue

            cells = [row[i] if i < len(row) else "" for i in range(len(widths))]
            chunks = [[cell[j:j + w] for j in range(0, len(cell), w)] or [""] for cell, w in zip(cells, widths)]

            for line_index in range(max(map(len, chunks))):
                parts = []
                for cell_chunks, w in zip(chunks, widths):
                    part = cell_chunks[line_index] if line_index < len(cell_chunks) else ""
                    parts.append(part.ljust(w))
                lines.append("│ " + " │ ".join(parts) + " │")

        lines.append(border("└", "┴", "┘"))
        print("\n".join(lines))


class MachineOutput(Output):
    """Each output is a line made of a name, a colon and comma separated arguments, the
    commas and new lines in arguments are escaped with a backslash.
    """

    ESCAPES = str.maketrans({",": "\\,", "\n": "\\n", "\r": "\\r"})

    @classmethod
    def escape(cls, text: str) -> str:
        return text.translate(cls.ESCAPES)

    def line(self, name: str, *args: str, **kwargs) -> None:
        values = [*args, *(f"{k}={v}" for k, v in kwargs.items())]
        print(f"{name}:{','.join(map(self.escape, values))}")

    def table(self) -> OutputTable:
        return MachineTable(self)

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        self.line("task", state or "", key or "", **kwargs)

    def finish(self) -> None:
        pass

    def print(self, text: str) -> None:
        self.line("print", text)


class MachineTable(OutputTable):

    def __init__(self, out: MachineOutput) -> None:
        super().__init__()
        self.out = out

    def print(self) -> None:
        self.out.line("table", str(len(self.rows)))
        for row in self.rows:
            if row is None:
                self.out.line("sep")
            else:
                self.out.line("row", *row)
