from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, CData, NavigableString, Tag

from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.extraction.document import (
    ContentSegment,
    ExtractedDocument,
    ExtractionOptions,
    SegmentKind,
)
from deep_web_research.extraction.markdown import (
    HEADING_TAGS,
    VOID_TAGS,
    MarkdownRenderer,
    clean_markdown,
    truncate_content,
)
from deep_web_research.extraction.metadata import (
    extract_metadata,
    extract_structured_data,
    extract_title,
)
from deep_web_research.utils import get_logger
from deep_web_research.utils.state_helpers import clamp

BLOCK_TAGS = (*HEADING_TAGS, "p", "pre", "ul", "ol", "table", "blockquote")
DEDUPE_TAGS = ("p", "li", "td")
CODE_TAGS = ("pre", "code")

HEADING_IMPORTANCE = {"h1": 1.0, "h2": 0.8, "h3": 0.6}
DEFAULT_IMPORTANCE = 0.5
CODE_BONUS = 0.2
VOCABULARY_BONUS = 0.2
TECHNICAL_SELECTOR_BONUS = 0.1
TECHNICAL_TITLE = "Technical Content"


@dataclass(slots=True)
class _SegmentDraft:
    starter: Tag
    kind: SegmentKind
    title: str | None
    blocks: list[Tag] = field(default_factory=list)


class ContentExtractor:
    """Turns raw page markup into a cleaned, segmented ``ExtractedDocument``.

    Passes run in order: metadata lookup on the untouched markup, cleanup,
    duplicate removal, main-container selection, segmentation, markdown
    rendering and post-format cleanup. Technical content (code, technical
    selectors, technical vocabulary) is never removed by cleanup.
    """

    def __init__(self, tables: HeuristicTables = DEFAULT_TABLES, renderer: MarkdownRenderer | None = None) -> None:
        self.tables = tables
        self.renderer = renderer or MarkdownRenderer()
        self._technical_selector = ", ".join(tables.technical_selectors)
        self._boilerplate_selector = ", ".join(tables.boilerplate_selectors)
        self._non_content_selector = ", ".join(tables.non_content_selectors)
        markers = "|".join(re.escape(marker) for marker in sorted(tables.content_markers))
        self._vocabulary_re = re.compile(rf"\b(?:{markers})\b", re.IGNORECASE)
        self._ui_text_res = tuple(re.compile(pattern, re.IGNORECASE) for pattern in tables.ui_text_patterns)
        self.logger = get_logger(__name__)

    def extract(self, html: str, url: str, options: ExtractionOptions | None = None) -> ExtractedDocument:
        options = options or ExtractionOptions()
        soup = BeautifulSoup(html or "", "html.parser")

        title = extract_title(soup)
        metadata = extract_metadata(soup)
        structured_data = extract_structured_data(soup) if options.extract_structured_data else None

        self.cleanup(soup)
        container = self.select_main_container(soup)
        segments = self.segment(container)

        rendered = "\n\n".join(segment.markdown for segment in segments if segment.markdown)
        content = truncate_content(clean_markdown(rendered), options.max_content_length)

        self.logger.debug(
            "extractor.complete",
            url=url,
            segments=len(segments),
            content_length=len(content),
            word_count=metadata.word_count,
        )
        return ExtractedDocument(
            url=url,
            title=title,
            content=content,
            segments=segments,
            metadata=metadata,
            structured_data=structured_data,
            html=html if options.include_html else None,
        )

    # -- heuristics -------------------------------------------------------

    def matches_technical_selector(self, element: Tag) -> bool:
        return bool(element.css.match(self._technical_selector))

    def has_vocabulary(self, text: str) -> bool:
        return self._vocabulary_re.search(text) is not None

    def is_technical(self, element: Tag) -> bool:
        """Technical selector, embedded code, or whole-word technical vocabulary."""
        if self.matches_technical_selector(element):
            return True
        if element.find(CODE_TAGS) is not None:
            return True
        return self.has_vocabulary(element.get_text(" "))

    def technical_flags(self, root: Tag, elements: list[Tag]) -> dict[int, bool]:
        """``is_technical`` for every element of ``elements`` in one bottom-up pass.

        ``elements`` must be ``root.find_all(True)``; results are keyed by ``id()``
        and stay valid while the caller holds that list.
        """
        selected = {id(element) for element in root.select(self._technical_selector)}
        has_code: dict[int, bool] = {}
        has_vocabulary: dict[int, bool] = {}
        flags: dict[int, bool] = {}
        # reversed document order visits children before their parents
        for element in reversed(elements):
            code = False
            vocabulary = False
            for child in element.children:
                if isinstance(child, Tag):
                    code = code or child.name in CODE_TAGS or has_code[id(child)]
                    vocabulary = vocabulary or has_vocabulary[id(child)]
                elif type(child) in (NavigableString, CData) and not vocabulary:
                    vocabulary = self.has_vocabulary(child)
            key = id(element)
            has_code[key] = code
            has_vocabulary[key] = vocabulary
            flags[key] = key in selected or code or vocabulary
        return flags

    def _is_technical_block(self, element: Tag) -> bool:
        return (
            element.name == "pre"
            or self.matches_technical_selector(element)
            or element.find(CODE_TAGS) is not None
        )

    def _is_ui_text(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self._ui_text_res)

    def _is_component_tag(self, element: Tag) -> bool:
        return any(element.name.startswith(prefix) for prefix in self.tables.boilerplate_tag_prefixes)

    def _removable(self, element: Tag) -> bool:
        return not element.decomposed and element.name not in self.tables.protected_tags

    # -- cleanup ----------------------------------------------------------

    def cleanup(self, soup: BeautifulSoup) -> None:
        root = soup.body or soup

        for element in soup.select(self._non_content_selector):
            if self._removable(element):
                element.decompose()

        boilerplate = list(root.select(self._boilerplate_selector))
        boilerplate.extend(root.find_all(self._is_component_tag))
        for element in boilerplate:
            if self._removable(element) and not self.is_technical(element):
                element.decompose()

        elements = root.find_all(True)
        technical = self.technical_flags(root, elements)
        for element in elements:
            if not self._removable(element) or technical[id(element)]:
                continue
            text = element.get_text(" ", strip=True)
            if text and self._is_ui_text(text):
                element.decompose()
            elif (
                not text
                and element.name not in CODE_TAGS
                and element.name not in VOID_TAGS
                and element.find("img") is None
            ):
                element.decompose()

        self.deduplicate(root, technical)

    def deduplicate(self, root: Tag, technical: dict[int, bool] | None = None) -> None:
        seen: set[str] = set()
        for element in root.find_all(DEDUPE_TAGS):
            if element.decomposed:
                continue
            flagged = self.is_technical(element) if technical is None else technical[id(element)]
            if flagged:
                continue
            text = element.get_text(" ", strip=True)
            if not text:
                continue
            if text in seen:
                element.decompose()
            else:
                seen.add(text)

    # -- container --------------------------------------------------------

    def container_quality(self, element: Tag) -> float:
        score = len(element.find_all(CODE_TAGS)) * 2
        score += len(element.find_all(HEADING_TAGS))
        score += len(element.find_all("p")) * 0.5
        score += len(element.find_all(["ul", "ol"]))
        score -= len(element.select(self._boilerplate_selector)) * 2
        return score

    def select_main_container(self, soup: BeautifulSoup) -> Tag:
        best: Tag = soup.body or soup
        best_score = 0.0
        for selector, base_score in self.tables.main_container_selectors:
            for element in soup.select(selector):
                score = base_score + self.container_quality(element)
                if score > best_score:
                    best, best_score = element, score
        return best

    # -- segmentation -----------------------------------------------------

    def _iter_blocks(self, container: Tag) -> Iterator[Tag]:
        for child in container.children:
            if not isinstance(child, Tag):
                continue
            if child.name in BLOCK_TAGS or self.matches_technical_selector(child):
                yield child
            elif child.find(BLOCK_TAGS) is not None:
                yield from self._iter_blocks(child)
            elif child.get_text(strip=True) or child.find("img") is not None:
                yield child

    def segment(self, container: Tag) -> list[ContentSegment]:
        drafts: list[_SegmentDraft] = []
        current: _SegmentDraft | None = None

        blocks = list(self._iter_blocks(container))
        if not blocks and container.get_text(strip=True):
            blocks = [container]

        for block in blocks:
            text = block.get_text(" ", strip=True)
            if not text and block.find("img") is None:
                continue
            heading = block.name in HEADING_TAGS
            technical = not heading and self._is_technical_block(block)

            if current is None or heading or technical:
                draft = _SegmentDraft(
                    starter=block,
                    kind="technical" if technical else "main",
                    title=text if heading else (TECHNICAL_TITLE if technical else None),
                )
                if technical and current is not None:
                    self._pull_context(current, draft, block)
                current = draft
                drafts.append(current)
            current.blocks.append(block)

        return [self._finalize(draft, index) for index, draft in enumerate(drafts)]

    def _pull_context(self, previous: _SegmentDraft, draft: _SegmentDraft, block: Tag) -> None:
        """Move an explanatory paragraph directly before a technical block into its segment."""
        if len(previous.blocks) < 2:
            return
        candidate = previous.blocks[-1]
        if candidate is not block.find_previous_sibling():
            return
        if candidate.name == "p" and self.is_technical(candidate):
            draft.blocks.append(previous.blocks.pop())

    def _finalize(self, draft: _SegmentDraft, index: int) -> ContentSegment:
        text = "\n".join(block.get_text(" ", strip=True) for block in draft.blocks)
        has_code = any(block.name in CODE_TAGS or block.find(CODE_TAGS) is not None for block in draft.blocks)
        has_selector = any(
            self.matches_technical_selector(block) or block.select_one(self._technical_selector) is not None
            for block in draft.blocks
        )
        importance = HEADING_IMPORTANCE.get(draft.starter.name, DEFAULT_IMPORTANCE)
        if has_code:
            importance += CODE_BONUS
        if self.has_vocabulary(text):
            importance += VOCABULARY_BONUS
        if has_selector:
            importance += TECHNICAL_SELECTOR_BONUS

        is_lead = index == 0 and draft.kind == "main" and draft.starter.name not in HEADING_TAGS
        return ContentSegment(
            id="main" if is_lead else f"section-{index + 1}",
            title=draft.title,
            html="".join(str(block) for block in draft.blocks),
            text=text,
            importance=clamp(importance),
            kind=draft.kind,
            markdown=self.renderer.render_blocks(draft.blocks),
        )
