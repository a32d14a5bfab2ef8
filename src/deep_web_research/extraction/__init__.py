from .document import ContentSegment, DocumentMetadata, ExtractedDocument, ExtractionOptions
from .extractor import ContentExtractor
from .markdown import MarkdownRenderer, clean_markdown, truncate_content

__all__ = [
    "ContentExtractor",
    "ContentSegment",
    "DocumentMetadata",
    "ExtractedDocument",
    "ExtractionOptions",
    "MarkdownRenderer",
    "clean_markdown",
    "truncate_content",
]
