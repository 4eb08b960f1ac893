"""Extract code examples from Markdown documentation pages."""

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Literal

from markdown_it import MarkdownIt
from markdown_it.token import Token

from docs_keeper.models.test import Test

# Headings at this level or shallower name the section of the examples below.
MAX_SECTION_LEVEL = 2

TEMPLATE_PREFIX = "skt-"

_INFO_SEPARATOR = re.compile(r"[^\w-]")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")

_parser = MarkdownIt("commonmark")


@dataclass(frozen=True, kw_only=True)
class CodeBlockInfo:
    """Flags parsed from a fenced code block's info string."""

    is_rust: bool = False
    should_panic: bool = False
    ignore: bool = False
    no_run: bool = False
    compile_fail: bool = False
    is_legacy_template: bool = False
    template: str | None = None


def parse_code_block_info(info: str) -> CodeBlockInfo:
    """Parse a fence info string the way rustdoc does.

    Unknown tokens exclude a block only when no recognized tag is present.
    Unlike rustdoc, an untagged block is never Rust, and ``rust`` itself is
    a recognized tag, so ``rust,custom`` is still Rust.
    """
    flags: dict[str, bool] = {}
    template: str | None = None
    seen_known = False
    seen_other = False

    for token in _INFO_SEPARATOR.split(info):
        match token:
            case "":
                continue
            case "rust":
                flags["is_rust"] = True
            case "should_panic" | "ignore" | "no_run" | "compile_fail":
                flags[token] = True
            case "skeptic-template":
                flags["is_legacy_template"] = True
            case _ if token.startswith(TEMPLATE_PREFIX):
                template = token.removeprefix(TEMPLATE_PREFIX)
            case _:
                seen_other = True
                continue
        seen_known = True

    is_rust = flags.pop("is_rust", False) and (not seen_other or seen_known)
    return CodeBlockInfo(is_rust=is_rust, template=template, **flags)


def sanitize_test_name(text: str) -> str:
    """Lowercase text and collapse non-alphanumeric runs to underscores."""
    return _NON_ALPHANUMERIC.sub("_", text.lower()).strip("_")


def split_lines(text: str) -> list[str]:
    """Split text into newline-terminated lines, dropping carriage returns."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") + "\n" for line in lines]


@dataclass(frozen=True, kw_only=True)
class Event:
    """A block-level parse event with the source line it starts on."""

    kind: Literal["heading_start", "heading_end", "code_start", "code_end", "text"]
    line: int = 0
    level: int = 0
    info: str = ""
    text: str = ""


def iter_events(text: str) -> Iterator[Event]:
    """Flatten markdown-it tokens into start/text/end events.

    Fenced code blocks arrive as a single token; they are split into a start,
    a text event for non-empty content, and an end. Indented code blocks are
    not examples and produce no events.
    """
    tokens: Sequence[Token] = _parser.parse(text)
    for token in tokens:
        line = token.map[0] if token.map else 0
        match token.type:
            case "heading_open":
                yield Event(kind="heading_start", line=line, level=int(token.tag[1:]))
            case "heading_close":
                yield Event(kind="heading_end", line=line, level=int(token.tag[1:]))
            case "inline":
                heading_text = "".join(
                    child.content
                    for child in token.children or ()
                    if child.type == "text"
                )
                yield Event(kind="text", line=line, text=heading_text)
            case "fence":
                yield Event(kind="code_start", line=line, info=token.info)
                if token.content:
                    yield Event(kind="text", line=line + 1, text=token.content)
                yield Event(kind="code_end", line=line, info=token.info)


@dataclass(frozen=True)
class EmptyBuffer:
    """Nothing is being collected."""


@dataclass(frozen=True)
class HeadingBuffer:
    """Collecting the text of a section heading."""

    text: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CodeBuffer:
    """Collecting the lines of a Rust code block."""

    lines: list[str] = field(default_factory=list)


type Buffer = EmptyBuffer | HeadingBuffer | CodeBuffer


@dataclass(kw_only=True)
class PageScan:
    """Accumulator threaded through the events of one page."""

    page_stem: str
    buffer: Buffer = field(default_factory=EmptyBuffer)
    section: str | None = None
    code_block_start: int = 0
    tests: list[Test] = field(default_factory=list)
    legacy_template: str | None = None

    def feed(self, event: Event) -> None:
        match event.kind, self.buffer:
            case "heading_start", _ if event.level <= MAX_SECTION_LEVEL:
                self.buffer = HeadingBuffer()
            case "heading_end", HeadingBuffer(text=text) if (
                event.level <= MAX_SECTION_LEVEL
            ):
                self.buffer = EmptyBuffer()
                self.section = sanitize_test_name("".join(text))
            case "code_start", _ if parse_code_block_info(event.info).is_rust:
                self.buffer = CodeBuffer()
                self.code_block_start = event.line + 1
            case "text", CodeBuffer(lines=lines):
                lines.extend(split_lines(event.text))
            case "text", HeadingBuffer(text=text):
                text.append(event.text)
            case "code_end", CodeBuffer(lines=lines):
                self.buffer = EmptyBuffer()
                self._finish_code_block(parse_code_block_info(event.info), lines)

    def _finish_code_block(self, info: CodeBlockInfo, lines: list[str]) -> None:
        if info.is_legacy_template:
            self.legacy_template = "".join(lines)
            return

        if self.section is not None:
            name = f"{self.page_stem}_sect_{self.section}_line_{self.code_block_start}"
        else:
            name = f"{self.page_stem}_line_{self.code_block_start}"

        self.tests.append(
            Test(
                name=name,
                lines=tuple(lines),
                ignore=info.ignore,
                no_run=info.no_run,
                should_panic=info.should_panic,
                compile_fail=info.compile_fail,
                template=info.template,
            )
        )


def extract_tests(text: str, page_stem: str) -> tuple[tuple[Test, ...], str | None]:
    """Extract every Rust example from a page, in document order.

    Args:
        text: Markdown source of the page
        page_stem: Stem used as the prefix of each example's name

    Returns:
        The examples found and the page's legacy template, if it has one.
        Names carry the zero-based line of the block's first source line.

    """
    scan = PageScan(page_stem=page_stem)
    for event in iter_events(text):
        scan.feed(event)
    return tuple(scan.tests), scan.legacy_template


def clean_omitted_line(line: str) -> str:
    """Strip the ``# `` marker that hides a line from readers."""
    trimmed = line.lstrip()
    if trimmed.startswith("# "):
        return trimmed[2:]
    if line.strip() == "#":
        return trimmed[1:]
    return line


def create_test_input(lines: Sequence[str]) -> str:
    """Build the source file contents for an example."""
    return "".join(clean_omitted_line(line) for line in lines)
