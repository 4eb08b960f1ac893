"""Documentation sources: mdBook books and plain Markdown directories."""

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from docs_keeper.extractor import extract_tests, sanitize_test_name
from docs_keeper.models.test import Test

log = logging.getLogger(__name__)


class Chapter(BaseModel):
    """A chapter of an mdBook book."""

    name: str
    content: str = ""
    path: str | None = None
    sub_items: Sequence["BookItem"] = Field(default_factory=list)

    def page_stem(self) -> str:
        """Name examples after the chapter's file, or its title if it has none."""
        if self.path:
            return Path(self.path).stem
        return sanitize_test_name(self.name)


class ChapterItem(BaseModel):
    """Book item wrapping a chapter."""

    chapter: Chapter = Field(alias="Chapter")


class PartTitleItem(BaseModel):
    """Book item naming a part of the book."""

    part_title: str = Field(alias="PartTitle")


type BookItem = ChapterItem | PartTitleItem | Literal["Separator"]

Chapter.model_rebuild()


class Book(BaseModel):
    """An mdBook book as passed to preprocessors.

    Older mdBook releases call the top-level items ``sections``.
    """

    items: Sequence[BookItem] = Field(default_factory=list)
    sections: Sequence[BookItem] = Field(default_factory=list)

    def chapters(self) -> Sequence[BookItem]:
        return self.items or self.sections


def collect_tests(items: Sequence[BookItem]) -> list[Test]:
    """Extract examples from chapters, each before its sub-chapters."""
    tests: list[Test] = []
    for item in items:
        if not isinstance(item, ChapterItem):
            continue
        chapter = item.chapter
        page_tests, _ = extract_tests(chapter.content, chapter.page_stem())
        tests.extend(page_tests)
        tests.extend(collect_tests(chapter.sub_items))
    return tests


def parse_book(data: Any) -> Book:
    """Validate book JSON received from mdBook.

    Raises:
        ValueError: If the data is not a book

    """
    try:
        return Book.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid book: {e}") from e


def load_pages(src_dir: Path) -> list[Test]:
    """Extract examples from every Markdown file below src_dir, sorted by path.

    Raises:
        FileNotFoundError: If src_dir is not a directory

    """
    if not src_dir.is_dir():
        raise FileNotFoundError(f"Source directory not found: {src_dir}")

    tests: list[Test] = []
    for path in sorted(src_dir.rglob("*.md")):
        page_tests, _ = extract_tests(path.read_text(encoding="utf-8"), path.stem)
        log.debug("Found %d example(s) in %s", len(page_tests), path)
        tests.extend(page_tests)
    return tests
