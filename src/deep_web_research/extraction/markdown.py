"""HTML fragment to markdown rendering plus the post-format cleanup pass."""

from __future__ import annotations

import re
from collections.abc import Iterable

from bs4 import Comment, NavigableString, PageElement, Tag

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
VOID_TAGS = frozenset({"br", "hr", "img", "input", "source", "wbr", "area", "col", "embed", "track"})
FENCE = "```"
ELLIPSIS = "..."

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_ONLY_RE = re.compile(r"^[\W_]+$")
_SEPARATOR_CELL_RE = re.compile(r"^:?-{2,}:?$")
_TABLE_SEPARATOR_LINE_RE = re.compile(r"^\|(?:\s*:?-{3,}:?\s*\|)+$")
_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-(.+)$")


class MarkdownRenderer:
    """Renders block elements to markdown.

    Only absolute http(s) links survive as links, images become ``[Image: alt]``
    and tables are normalized to a single header row and separator.
    """

    def render_blocks(self, blocks: Iterable[Tag]) -> str:
        parts = [self.render_block(block) for block in blocks]
        return "\n\n".join(part for part in parts if part.strip())

    def render_block(self, element: Tag) -> str:
        name = element.name
        if name in HEADING_TAGS:
            text = self.render_inline(element).strip()
            return f"{'#' * int(name[1])} {text}" if text else ""
        if name == "pre":
            return self._render_pre(element)
        if name in ("ul", "ol"):
            return self._render_list(element, depth=0)
        if name == "table":
            return self.render_table(element)
        if name == "blockquote":
            inner = self._render_children_as_blocks(element)
            return "\n".join(f"> {line}" if line else ">" for line in inner.splitlines())
        if name == "hr":
            return "---"
        if name == "code":
            return self._inline(element)
        if self._has_block_children(element):
            return self._render_children_as_blocks(element)
        return self.render_inline(element).strip()

    # -- blocks -----------------------------------------------------------

    def _has_block_children(self, element: Tag) -> bool:
        return any(
            isinstance(child, Tag) and child.name in BLOCK_CONTAINER_TAGS for child in element.children
        )

    def _render_children_as_blocks(self, element: Tag) -> str:
        parts: list[str] = []
        inline_run: list[PageElement] = []

        def flush() -> None:
            text = "".join(self._inline(node) for node in inline_run).strip()
            if text:
                parts.append(text)
            inline_run.clear()

        for child in element.children:
            if isinstance(child, Tag) and child.name in BLOCK_CONTAINER_TAGS:
                flush()
                rendered = self.render_block(child)
                if rendered.strip():
                    parts.append(rendered)
            else:
                inline_run.append(child)
        flush()
        return "\n\n".join(parts)

    def _render_pre(self, element: Tag) -> str:
        code = element.find("code")
        language = ""
        for candidate in (code, element):
            if isinstance(candidate, Tag):
                for css_class in candidate.get("class") or []:
                    match = _LANGUAGE_CLASS_RE.match(css_class)
                    if match:
                        language = match.group(1)
                        break
            if language:
                break
        body = element.get_text().strip("\n")
        return f"{FENCE}{language}\n{body}\n{FENCE}"

    def _render_list(self, element: Tag, depth: int) -> str:
        lines: list[str] = []
        ordered = element.name == "ol"
        indent = "  " * depth
        for index, item in enumerate(element.find_all("li", recursive=False), start=1):
            marker = f"{index}." if ordered else "-"
            inline_parts: list[str] = []
            nested: list[Tag] = []
            for child in item.children:
                if isinstance(child, Tag) and child.name in ("ul", "ol"):
                    nested.append(child)
                else:
                    inline_parts.append(self._inline(child))
            text = re.sub(r"[ \t]+", " ", "".join(inline_parts)).strip()
            if text:
                lines.append(f"{indent}{marker} {text}")
            for child in nested:
                rendered = self._render_list(child, depth + 1)
                if rendered:
                    lines.append(rendered)
        return "\n".join(lines)

    def render_table(self, table: Tag) -> str:
        rows: list[list[str]] = []
        for row in table.find_all("tr"):
            cells = [
                self.render_inline(cell).strip().replace("|", "\\|") or " "
                for cell in row.find_all(["th", "td"])
            ]
            if not cells:
                continue
            if all(_SEPARATOR_CELL_RE.match(cell.strip()) for cell in cells if cell.strip()) and any(
                cell.strip() for cell in cells
            ):
                continue
            rows.append(cells)
        if not rows:
            return ""

        width = max(len(row) for row in rows)
        padded = [row + [" "] * (width - len(row)) for row in rows]
        header, *body = padded
        lines = [
            "| " + " | ".join(header) + " |",
            "|" + "|".join([" --- "] * width) + "|",
        ]
        lines.extend("| " + " | ".join(row) + " |" for row in body)
        return "\n".join(lines)

    # -- inline -----------------------------------------------------------

    def render_inline(self, element: Tag) -> str:
        text = "".join(self._inline(child) for child in element.children)
        return re.sub(r"[ \t]+", " ", text)

    def _inline(self, node: PageElement) -> str:
        if isinstance(node, Comment):
            return ""
        if isinstance(node, NavigableString):
            return _WHITESPACE_RE.sub(" ", str(node))
        if not isinstance(node, Tag):
            return ""

        name = node.name
        if name == "br":
            return "\n"
        if name == "img":
            alt = (node.get("alt") or "").strip()
            return f"[Image: {alt}]" if alt else ""
        if name == "a":
            label = self.render_inline(node).strip()
            href = (node.get("href") or "").strip()
            if label and href.lower().startswith(("http://", "https://")):
                return f"[{label}]({href})"
            return label
        if name == "code":
            code = node.get_text().strip()
            return f"`{code}`" if code else ""
        if name in ("strong", "b"):
            inner = self.render_inline(node).strip()
            return f"**{inner}**" if inner else ""
        if name in ("em", "i"):
            inner = self.render_inline(node).strip()
            return f"_{inner}_" if inner else ""
        if name in ("ul", "ol"):
            return "\n" + self._render_list(node, depth=0) + "\n"
        if name == "table":
            return "\n" + self.render_table(node) + "\n"
        if name == "pre":
            return "\n" + self._render_pre(node) + "\n"
        return self.render_inline(node)


BLOCK_CONTAINER_TAGS = frozenset(
    {*HEADING_TAGS, "p", "pre", "ul", "ol", "table", "blockquote", "div", "section", "article", "hr", "figure"}
)


def clean_markdown(content: str) -> str:
    """Post-format cleanup.

    Outside fenced code: blank-line runs collapse to one separator, lines
    shorter than 3 characters or made only of punctuation are dropped, and
    repeated lines keep their first occurrence.
    """
    output: list[str] = []
    seen: set[str] = set()
    in_fence = False
    pending_blank = False

    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith(FENCE):
            if pending_blank and output:
                output.append("")
            pending_blank = False
            output.append(stripped)
            in_fence = not in_fence
            continue
        if in_fence:
            output.append(line.rstrip())
            continue
        if not stripped:
            pending_blank = True
            continue
        if _TABLE_SEPARATOR_LINE_RE.match(stripped):
            output.append(stripped)
            continue
        if len(stripped) < 3 or _PUNCTUATION_ONLY_RE.match(stripped):
            continue
        if stripped in seen:
            continue
        seen.add(stripped)
        if pending_blank and output:
            output.append("")
        pending_blank = False
        output.append(line.rstrip())

    return "\n".join(output).strip("\n")


def truncate_content(content: str, max_length: int | None) -> str:
    """Cut at the last whitespace before ``max_length`` and append an ellipsis."""
    if not max_length or len(content) <= max_length:
        return content
    head = content[:max_length]
    boundary = max(head.rfind(" "), head.rfind("\n"), head.rfind("\t"))
    if boundary > 0:
        head = head[:boundary]
    return head.rstrip() + ELLIPSIS
