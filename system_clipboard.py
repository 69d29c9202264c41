"""Clipboard access through the platform's command-line helpers."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from typing import Optional, Protocol

from outline_errors import ClipboardUnavailable

logger = logging.getLogger(__name__)


class Clipboard(Protocol):
    def get_text(self) -> Optional[str]: ...

    def set_text(self, text: str) -> None: ...


def _copy_commands() -> list[list[str]]:
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if os.name == "nt":
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


def _paste_commands() -> list[list[str]]:
    if sys.platform == "darwin":
        return [["pbpaste"]]
    if os.name == "nt":
        return [["powershell", "-NoProfile", "-Command", "Get-Clipboard"]]
    return [
        ["wl-paste", "--no-newline"],
        ["xclip", "-selection", "clipboard", "-out"],
        ["xsel", "--clipboard", "--output"],
    ]


class SystemClipboard:
    """Best-effort OS clipboard across macOS, Windows and common Linux tools."""

    def __init__(self, timeout: float = 2.0) -> None:
        self.timeout = timeout

    def _run(self, commands: list[list[str]], text: Optional[str] = None) -> str:
        tried = []
        for command in commands:
            if shutil.which(command[0]) is None:
                continue
            tried.append(command[0])
            try:
                proc = subprocess.run(
                    command,
                    input=text,
                    capture_output=True,
                    text=True,
                    check=False,
                    timeout=self.timeout,
                )
            except (OSError, subprocess.SubprocessError) as exc:
                logger.warning("Clipboard helper %s failed: %s", command[0], exc)
                continue
            if proc.returncode == 0:
                return proc.stdout
            logger.warning("Clipboard helper %s exited with %d", command[0], proc.returncode)
        if tried:
            raise ClipboardUnavailable(f"Clipboard helpers failed: {', '.join(tried)}")
        raise ClipboardUnavailable("No clipboard helper found")

    def get_text(self) -> Optional[str]:
        output = self._run(_paste_commands())
        return output or None

    def set_text(self, text: str) -> None:
        self._run(_copy_commands(), text)


class MemoryClipboard:
    """Process-local clipboard; used when no OS clipboard is wanted."""

    def __init__(self, text: Optional[str] = None) -> None:
        self.text = text

    def get_text(self) -> Optional[str]:
        return self.text

    def set_text(self, text: str) -> None:
        self.text = text
