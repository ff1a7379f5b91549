"""Recursive character text splitter.

Text is cut on the most structural separator that occurs in it (paragraph,
line, sentence, clause, word, character). Consecutive pieces are merged
greedily into runs of at most ``chunk_size`` characters; when a run closes,
its trailing pieces (up to ``chunk_overlap`` characters) open the next run.
Pieces that are too large on their own are split again with the remaining,
finer separators.
"""
from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from research_index.exceptions import ValidationError
from research_index.models import Chunk, DocumentMetadata

DEFAULT_SEPARATORS: tuple[str, ...] = (
    "\n\n",
    "\n",
    ". ",
    "! ",
    "? ",
    "; ",
    ", ",
    " ",
    "",
)


@dataclass(frozen=True)
class ChunkingProfile:
    """Chunk size and overlap, both in characters."""

    chunk_size: int
    chunk_overlap: int


DEFAULT_PROFILE = ChunkingProfile(chunk_size=500, chunk_overlap=50)
LONG_DOCUMENT_PROFILE = ChunkingProfile(chunk_size=2000, chunk_overlap=300)


class RecursiveCharacterSplitter:
    """Split text into bounded, overlapping chunks using a separator hierarchy."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_PROFILE.chunk_size,
        chunk_overlap: int = DEFAULT_PROFILE.chunk_overlap,
        separators: Sequence[str] | None = None,
    ):
        if chunk_size < 1:
            raise ValidationError(f"chunk_size must be >= 1, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValidationError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ValidationError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else list(DEFAULT_SEPARATORS)
        if not self.separators:
            raise ValidationError("At least one separator is required")

    @classmethod
    def from_profile(
        cls,
        profile: ChunkingProfile,
        separators: Sequence[str] | None = None,
    ) -> RecursiveCharacterSplitter:
        return cls(profile.chunk_size, profile.chunk_overlap, separators)

    def split(self, text: str, metadata: DocumentMetadata | None = None) -> list[Chunk]:
        """Split ``text`` into chunks that all carry ``metadata``.

        Empty or whitespace-only text yields no chunks.
        """
        metadata = metadata or DocumentMetadata()
        located = self._locate(text, self._split_raw(text))
        total = len(located)
        return [
            Chunk(
                text=chunk_text,
                ordinal=ordinal,
                total_chunks=total,
                start_offset=start,
                end_offset=end,
                metadata=metadata,
            )
            for ordinal, (chunk_text, start, end) in enumerate(located)
        ]

    def split_text(self, text: str) -> list[str]:
        """Split ``text`` and return only the trimmed chunk strings."""
        return [chunk.text for chunk in self.split(text)]

    def _split_raw(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []
        return self._split_recursive(text, self.separators)

    def _split_recursive(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        finer: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                finer = separators[i + 1:]
                break

        chunks: list[str] = []
        mergeable: list[str] = []
        for piece in _split_keeping_separator(text, separator):
            if len(piece) <= self.chunk_size:
                mergeable.append(piece)
                continue
            if mergeable:
                chunks.extend(self._merge(mergeable))
                mergeable = []
            if finer:
                chunks.extend(self._split_recursive(piece, finer))
            else:
                # Nothing finer to cut with; keep the content rather than drop it.
                chunks.append(piece)

        if mergeable:
            chunks.extend(self._merge(mergeable))
        return chunks

    def _merge(self, pieces: list[str]) -> list[str]:
        """Greedily join pieces into runs, carrying trailing pieces over as overlap."""
        runs: list[str] = []
        current: deque[str] = deque()
        total = 0

        for piece in pieces:
            length = len(piece)
            if current and total + length > self.chunk_size:
                runs.append("".join(current))
                while current and (
                    total > self.chunk_overlap or total + length > self.chunk_size
                ):
                    total -= len(current.popleft())
            current.append(piece)
            total += length

        if current:
            runs.append("".join(current))
        return runs

    @staticmethod
    def _locate(text: str, raw_chunks: list[str]) -> list[tuple[str, int, int]]:
        """Trim chunks, drop empty ones and find each span in ``text``.

        Each search starts just after the previous chunk's start so repeated
        passages resolve to the right occurrence.
        """
        located: list[tuple[str, int, int]] = []
        cursor = 0
        for raw in raw_chunks:
            trimmed = raw.strip()
            if not trimmed:
                continue
            start = text.find(raw, cursor)
            if start == -1:
                start = text.find(raw)
            located.append((trimmed, start, start + len(raw)))
            cursor = max(cursor, start + 1)
        return located


def _split_keeping_separator(text: str, separator: str) -> list[str]:
    """Split on ``separator``, re-attaching it so that joining restores ``text``."""
    if separator == "":
        return list(text)
    parts = text.split(separator)
    pieces = [part + separator for part in parts[:-1]]
    if parts[-1]:
        pieces.append(parts[-1])
    return pieces


def split_text(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    separators: Sequence[str] | None = None,
    metadata: DocumentMetadata | None = None,
) -> list[Chunk]:
    """Split ``text`` into chunks with the given size and overlap."""
    splitter = RecursiveCharacterSplitter(chunk_size, chunk_overlap, separators)
    return splitter.split(text, metadata)
