"""
TranslationUnit: one source document queued for translation.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

from docs_translator.logging_config import ContextLoggerAdapter, child_logger

FRONTMATTER_BLOCK = re.compile(r"\A---\r?\n([\s\S]*?)\r?\n---")
TITLE_LINE = re.compile(r"^title:[ \t]*(.+?)[ \t]*\r?$", re.MULTILINE)


def extract_doc_title(content: str) -> str | None:
    """
    Read the ``title:`` value from a leading front-matter block.

    Surrounding single or double quotes are removed. Returns None when the
    document has no front-matter or no title key.
    """
    block = FRONTMATTER_BLOCK.match(content)
    if not block:
        return None
    match = TITLE_LINE.search(block.group(1))
    if not match:
        return None
    title = match.group(1).strip()
    if len(title) >= 2 and title[0] == title[-1] and title[0] in "'\"":
        title = title[1:-1]
    return title or None


@dataclass(frozen=True)
class TranslationUnit:
    """
    A document to translate.

    Attributes:
        content: Source text. Never mutated.
        filename: Base name of the file.
        path: Repository-relative path.
        revision: Content-addressing tag (e.g. a git blob SHA).
        title: Front-matter title, parsed once at construction.
        correlation_id: UUID4 string, stable for the unit's lifetime.
        logger: Logging context carrying file, path and correlation id.
    """

    content: str
    filename: str
    path: str = ""
    revision: str = ""
    title: str | None = field(init=False, repr=True, compare=False)
    correlation_id: str = field(init=False, repr=False, compare=False)
    logger: ContextLoggerAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        correlation_id = str(uuid.uuid4())
        object.__setattr__(self, "title", extract_doc_title(self.content))
        object.__setattr__(self, "correlation_id", correlation_id)
        object.__setattr__(
            self,
            "logger",
            child_logger(
                None,
                file=self.filename,
                path=self.path or self.filename,
                correlation_id=correlation_id,
            ),
        )
