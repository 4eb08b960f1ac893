"""Models for code examples extracted from documentation pages."""

import base64
import hashlib

from pydantic import Field, computed_field

from docs_keeper.models.base import Model


def hash_lines(lines: tuple[str, ...]) -> str:
    """Digest source lines into a URL-safe, unpadded identifier."""
    digest = hashlib.sha256("".join(lines).encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


class Test(Model):
    """One code example and the expectations declared in its fence."""

    __test__ = False

    name: str = Field(..., description="Page stem, section and line, for reports")
    lines: tuple[str, ...] = Field(
        default=(), description="Source lines as written, newline terminated"
    )
    ignore: bool = Field(default=False, description="Skip the example entirely")
    no_run: bool = Field(default=False, description="Compile without running")
    should_panic: bool = Field(
        default=False, description="Running the example must fail"
    )
    compile_fail: bool = Field(
        default=False, description="Compiling the example must fail"
    )
    template: str | None = Field(
        default=None, description="Named template referenced by skt-<name>"
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hash(self) -> str:
        """Content identity, shared by examples with identical source."""
        return hash_lines(self.lines)
