# codeshare/printer.py
# Centralized CLI output formatter: results to stdout, errors to stderr.

import os
import sys
from typing import Optional


class OutputPrinter:
    """
    Output formatter for the code share CLI.

    - Results are the focal point; status lines are secondary
    - Errors always go to stderr with an optional fix hint
    - Color is optional and disabled by --no-color or NO_COLOR
    - --quiet leaves only the essential value (code, text or URL)
    """

    SYMBOLS : dict[str, str] = {
        "success" : "✅",
        "error"   : "❌",
        "warning" : "⚠️ ",
        "info"    : "ℹ️ ",
        "hint"    : "→",
    }

    COLORS : dict[str, str] = {
        "green"  : "32",
        "red"    : "31",
        "yellow" : "33",
        "cyan"   : "36",
        "bold"   : "1",
        "dim"    : "90",
    }

    COL_WIDTH : int = 10  # Column alignment for detail blocks

    def __init__(self, quiet : bool = False, no_color : bool = False, stream=None) -> None:
        self.quiet    : bool = quiet
        self.no_color : bool = no_color or bool(os.environ.get("NO_COLOR", ""))
        self.stream = stream or sys.stdout

    def _colorize(self, text : str, code : str) -> str:
        if self.no_color:
            return text
        return f"\033[{code}m{text}\033[0m"

    def _out(self, line : str = "") -> None:
        print(line, file=self.stream)

    def _details(self, details : Optional[dict[str, str]]) -> None:
        for key, value in (details or {}).items():
            dim_key : str = self._colorize(f"{key:<{self.COL_WIDTH}}", self.COLORS["dim"])
            self._out(f"    {dim_key}: {value}")

    # ── Results ──────────────────────────────────────────────────

    def code(self, code : str, details : Optional[dict[str, str]] = None) -> None:
        """Print an issued code, spaced out for reading aloud."""
        if self.quiet:
            self._out(code)
            return
        symbol : str = self._colorize(self.SYMBOLS["success"], self.COLORS["green"])
        spaced : str = self._colorize(" ".join(code), self.COLORS["bold"])
        self._out(f"\n{symbol}  Your code: {spaced}")
        self._details(details)

    def content(self, body : str, title : Optional[str] = None) -> None:
        """Print retrieved text (or a URL) verbatim, with a heading unless quiet."""
        if self.quiet:
            self._out(body)
            return
        if title:
            self._out(self._colorize(title, self.COLORS["dim"]))
        self._out(body)

    def success(self, title : str, details : Optional[dict[str, str]] = None) -> None:
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["success"], self.COLORS["green"])
        label  : str = self._colorize(title, self.COLORS["green"])
        self._out(f"\n{symbol}  {label}")
        self._details(details)

    # ── Status ───────────────────────────────────────────────────

    def error(self, message : str, hint : Optional[str] = None) -> None:
        """Print an error to stderr with optional fix hint."""
        symbol : str = self._colorize(self.SYMBOLS["error"], self.COLORS["red"])
        msg    : str = self._colorize(message, self.COLORS["red"])
        print(f"\n{symbol}  {msg}", file=sys.stderr)
        if hint:
            h : str = self._colorize(f"{self.SYMBOLS['hint']} {hint}", self.COLORS["cyan"])
            print(f"    {h}", file=sys.stderr)

    def warning(self, message : str, hint : Optional[str] = None) -> None:
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["warning"], self.COLORS["yellow"])
        msg    : str = self._colorize(message, self.COLORS["yellow"])
        self._out(f"\n{symbol} {msg}")
        if hint:
            h : str = self._colorize(f"{self.SYMBOLS['hint']} {hint}", self.COLORS["cyan"])
            self._out(f"    {h}")

    def info(self, message : str) -> None:
        if self.quiet:
            return
        symbol : str = self._colorize(self.SYMBOLS["info"], self.COLORS["cyan"])
        self._out(f"{symbol} {message}")
