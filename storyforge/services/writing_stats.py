from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Optional

DEFAULT_TARGET_WORDS = 50000


def count_words(text: Optional[str]) -> int:
    return len((text or "").split())


@dataclass
class WritingStats:
    total_words: int
    total_chapters: int
    average_words_per_chapter: int
    target_words: int
    progress_percent: float

    def to_dict(self) -> dict:
        return asdict(self)


def build_writing_stats(chapters: Iterable, target_words: int = DEFAULT_TARGET_WORDS) -> WritingStats:
    """Summarise word counts for a project's chapters against ``target_words``."""

    counts = [count_words(getattr(chapter, "content", None)) for chapter in chapters]
    total_words = sum(counts)
    total_chapters = len(counts)
    average = round(total_words / total_chapters) if total_chapters else 0
    progress = round(total_words / target_words * 100, 1) if target_words > 0 else 0.0
    return WritingStats(
        total_words=total_words,
        total_chapters=total_chapters,
        average_words_per_chapter=average,
        target_words=target_words,
        progress_percent=progress,
    )
