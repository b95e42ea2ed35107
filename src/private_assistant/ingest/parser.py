"""Upload parsers: read a local file into text the knowledge base can embed."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from private_assistant.types import ParsedDocument

_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


class UnsupportedFileTypeError(ValueError):
    """Raised for uploads whose extension has no registered parser."""

    def __init__(self, extension: str, supported: list[str]) -> None:
        self.extension = extension or "(none)"
        self.supported = supported
        super().__init__(
            f"Unsupported file type {self.extension}; supported: {', '.join(supported)}"
        )


def _read_upload(path: Path) -> str:
    text = path.read_text(encoding="utf-8-sig").replace("\r\n", "\n")
    if not text.strip():
        raise ValueError(f"Uploaded file is empty: {path.name}")
    return text


class PlainTextParser:
    """Text and log files are uploaded as-is."""

    format = "text"
    extensions: tuple[str, ...] = (".txt", ".log")

    def parse(self, path: Path) -> ParsedDocument:
        return ParsedDocument(
            name=path.name,
            text=_read_upload(path),
            metadata={"source": str(path), "format": self.format},
        )


class MarkdownParser(PlainTextParser):
    format = "markdown"
    extensions = (".md", ".markdown")

    def parse(self, path: Path) -> ParsedDocument:
        parsed = super().parse(path)
        heading = _HEADING.search(parsed.text)
        if heading:
            parsed.metadata["title"] = heading.group(1)
        return parsed


class JsonParser:
    """Objects are re-serialized with sorted keys so identical data embeds identically."""

    format = "json"
    extensions: tuple[str, ...] = (".json",)

    def parse(self, path: Path) -> ParsedDocument:
        payload: Any = json.loads(_read_upload(path))
        if isinstance(payload, (dict, list)):
            text = json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
        else:
            text = str(payload)
        return ParsedDocument(
            name=path.name,
            text=text,
            metadata={"source": str(path), "format": self.format},
        )


class ParserRegistry:
    def __init__(self, parsers: list[Any] | None = None) -> None:
        self._parsers: dict[str, Any] = {}
        for parser in parsers or [PlainTextParser(), MarkdownParser(), JsonParser()]:
            for extension in parser.extensions:
                self._parsers[extension.lower()] = parser

    @property
    def supported_extensions(self) -> list[str]:
        return sorted(self._parsers)

    def parse_path(self, path: str | Path) -> ParsedDocument:
        file_path = Path(path)
        suffix = file_path.suffix.lower()
        parser = self._parsers.get(suffix)
        if parser is None:
            raise UnsupportedFileTypeError(suffix, self.supported_extensions)
        return parser.parse(file_path)
