"""Streaming JSON record reader built on aiofiles."""

import json
import re
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import aiofiles

from stream_to_mongo.errors import RecordSourceError

_WHITESPACE = re.compile(r"[ \t\n\r]*")

# A decode error this far before the end of the buffer cannot be cured by more input
_MALFORMED_LOOKAHEAD = 64


class JsonRecordDecoder:
    """Incremental decoder yielding top-level JSON records from text chunks.

    A document starting with ``[`` is read as an array and each element is a
    record. Anything else is read as a sequence of JSON values separated by
    whitespace, which covers newline-delimited JSON.

    A value that ends exactly at the end of the buffered text is held back
    until more text or ``close()`` arrives, since a number split across two
    chunks would otherwise decode early.
    """

    def __init__(self) -> None:
        self._decoder = json.JSONDecoder()
        self._buffer = ""
        self._array: bool | None = None
        self._array_closed = False
        self._expect_comma = False
        self._after_comma = False

    def feed(self, chunk: str) -> list[Any]:
        """Add text and return the records it completed."""
        self._buffer += chunk
        return self._drain(final=False)

    def close(self) -> list[Any]:
        """Return the remaining records.

        Raises:
            RecordSourceError: If the input ends in the middle of a value or
                an unterminated array.
        """
        records = self._drain(final=True)
        if self._array and not self._array_closed:
            raise RecordSourceError("Unexpected end of input: unterminated JSON array")
        return records

    def _is_malformed(self, exc: json.JSONDecodeError) -> bool:
        # a string may legitimately run past the end of the buffer
        if exc.msg.startswith("Unterminated string"):
            return False
        return len(self._buffer) - exc.pos > _MALFORMED_LOOKAHEAD

    def _skip_whitespace(self, pos: int) -> int:
        return _WHITESPACE.match(self._buffer, pos).end()

    def _drain(self, final: bool) -> list[Any]:
        records: list[Any] = []
        pos = self._skip_whitespace(0)

        while pos < len(self._buffer):
            if self._array is None:
                self._array = self._buffer[pos] == "["
                if self._array:
                    pos = self._skip_whitespace(pos + 1)
                    continue

            if self._array_closed:
                raise RecordSourceError(f"Unexpected data after JSON array: {self._buffer[pos:pos + 20]!r}")

            if self._array:
                char = self._buffer[pos]
                if char == "]":
                    if self._after_comma:
                        raise RecordSourceError("Trailing comma before ']' in JSON array")
                    self._array_closed = True
                    pos = self._skip_whitespace(pos + 1)
                    continue
                if self._expect_comma:
                    if char != ",":
                        raise RecordSourceError(f"Expected ',' or ']' in JSON array, got {char!r}")
                    self._expect_comma = False
                    self._after_comma = True
                    pos = self._skip_whitespace(pos + 1)
                    continue

            try:
                value, end = self._decoder.raw_decode(self._buffer, pos)
            except json.JSONDecodeError as exc:
                if final or self._is_malformed(exc):
                    raise RecordSourceError(f"Malformed JSON record: {exc}") from exc
                break

            if end == len(self._buffer) and not final:
                break

            records.append(value)
            self._expect_comma = bool(self._array)
            self._after_comma = False
            pos = self._skip_whitespace(end)

        self._buffer = self._buffer[pos:]
        return records


async def iter_json_records(
    path: str | Path,
    chunk_size: int = 65_536,
) -> AsyncIterator[Any]:
    """Yield the records of a JSON array or newline-delimited JSON file.

    The file is read in chunks so large inputs are never loaded whole.

    Args:
        path: File to read.
        chunk_size: Characters read per chunk.

    Yields:
        Each decoded record, in file order.

    Raises:
        RecordSourceError: If the file is not valid UTF-8 JSON.
    """
    decoder = JsonRecordDecoder()
    async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
        while True:
            try:
                chunk = await f.read(chunk_size)
            except UnicodeDecodeError as exc:
                raise RecordSourceError(f"{path} is not valid UTF-8: {exc}") from exc
            if not chunk:
                break
            for record in decoder.feed(chunk):
                yield record

    for record in decoder.close():
        yield record
