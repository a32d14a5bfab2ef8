"""Versioned heuristic tables shared by search scoring, extraction and analysis.

Every keyword list, selector list and regex the pipeline relies on lives here so
it can be swapped out (or tested) as plain data. Components receive a
``HeuristicTables`` instance and fall back to ``DEFAULT_TABLES``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

VOCABULARY_VERSION = "2024.1"


def _frozen(*words: str) -> frozenset[str]:
    return frozenset(words)


@dataclass(frozen=True, slots=True)
class HeuristicTables:
    version: str = VOCABULARY_VERSION

    # -- extraction -------------------------------------------------------
    technical_selectors: tuple[str, ...] = (
        "pre",
        "code",
        ".example",
        ".code-example",
        ".api-details",
        ".implementation-details",
        ".method-signature",
        ".function-signature",
        ".parameters",
        ".returns",
        ".arguments",
        ".technical-docs",
        ".api-docs",
    )
    content_markers: frozenset[str] = _frozen(
        "example",
        "implementation",
        "usage",
        "api",
        "method",
        "function",
        "parameter",
        "return",
        "class",
        "interface",
        "object",
        "pattern",
    )
    boilerplate_selectors: tuple[str, ...] = (
        "nav",
        "header",
        "footer",
        ".social-share",
        ".share-buttons",
        '[id*="share"]',
        '[class*="share"]',
        ".menu",
        ".navigation",
        "#menu",
        "#nav",
        ".sidebar",
        "#sidebar",
        '[class*="sidebar"]',
        "#comments",
        ".comments",
        ".comment-section",
        ".ad",
        ".ads",
        ".advertisement",
        '[id*="ad-"]',
        '[class*="ad-"]',
        ".popup",
        ".modal",
        ".overlay",
        ".header-content",
        ".footer-content",
        ".site-header",
        ".site-footer",
        ".cookie-notice",
        ".cookie-banner",
        ".gdpr",
        '[class*="cookie"]',
        '[id*="cookie"]',
        ".search",
        ".search-form",
        ".related-posts",
        ".related-articles",
        ".widget",
        ".widgets",
        '[class*="widget"]',
        ".newsletter",
        ".subscribe",
        '[class*="newsletter"]',
        '[class*="subscribe"]',
        ".social",
        ".social-media",
        '[class*="social"]',
        ".print",
        ".utility-nav",
        '[class*="print"]',
        "[data-widget]",
        "[data-module]",
        "[data-analytics]",
        "[data-tracking]",
        "button",
        '[role="button"]',
        ".button",
        ".btn",
        '[class*="footer"]',
        '[id*="footer"]',
        '[class*="nav"]',
        '[id*="nav"]',
        '[class*="legal"]',
        '[id*="legal"]',
        '[class*="policy"]',
        '[id*="policy"]',
        '[class*="btn-"]',
        '[id*="btn-"]',
        '[class*="button-"]',
        '[id*="button-"]',
        '[class*="menu-"]',
        '[id*="menu-"]',
        '[class*="bottom-"]',
        '[id*="bottom-"]',
        '[class*="foot-"]',
        '[id*="foot-"]',
    )
    boilerplate_tag_prefixes: tuple[str, ...] = ("c4d-",)
    protected_tags: frozenset[str] = _frozen("html", "body", "main", "article")
    non_content_selectors: tuple[str, ...] = (
        "script",
        "style",
        "noscript",
        "iframe",
        "form",
        "link",
        "meta",
        "template",
        '[style*="display: none"]',
        '[style*="display:none"]',
        "[hidden]",
    )
    ui_text_patterns: tuple[str, ...] = (
        r"^(close|dismiss|accept|cancel|loading|\d+ min read|share|menu|search)$",
        r"^(follow us|subscribe|sign up|log in|register)$",
        r"^(cookie|privacy|terms|gdpr)",
    )
    main_container_selectors: tuple[tuple[str, float], ...] = (
        ('article[class*="content"]', 10.0),
        ('[role="main"]', 9.0),
        ("main", 8.0),
        (".main-content", 8.0),
        ("#main-content", 8.0),
        (".documentation", 8.0),
        ('[itemprop="articleBody"]', 8.0),
        ('[data-content-type="article"]', 8.0),
        ("article", 7.0),
        (".post-content", 7.0),
        (".article-content", 7.0),
        (".entry-content", 7.0),
        (".markdown-body", 7.0),
        (".content", 6.0),
    )
    skip_extensions: tuple[str, ...] = (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx")

    # -- page fetching ----------------------------------------------------
    challenge_selectors: tuple[str, ...] = (
        "#challenge-form",
        "#challenge-running",
        "#challenge-stage",
        "#cf-challenge-running",
        ".cf-browser-verification",
        "#captcha",
        "#recaptcha",
        ".g-recaptcha",
        "#px-captcha",
    )
    challenge_title_phrases: tuple[str, ...] = (
        "just a moment",
        "attention required",
        "access denied",
        "verify you are human",
        "are you a robot",
        "security check",
        "captcha",
        "ddos protection",
    )

    # -- search scoring ---------------------------------------------------
    # marker semantics: ".tld" matches a top-level label, "sub." matches a
    # leading label, anything else matches the registered domain.
    search_domain_bonus: tuple[tuple[str, float], ...] = (
        (".edu", 0.3),
        (".gov", 0.3),
        ("github.com", 0.25),
        ("stackoverflow.com", 0.25),
        ("docs.", 0.25),
    )
    default_domain_bonus: float = 0.1

    # -- analysis ---------------------------------------------------------
    technical_terms: frozenset[str] = _frozen(
        "algorithm",
        "encryption",
        "cryptography",
        "quantum",
        "standard",
        "protocol",
        "security",
        "implementation",
        "parameter",
        "mechanism",
        "authentication",
        "signature",
        "verification",
        "validation",
        "key",
        "public",
        "private",
        "symmetric",
        "asymmetric",
        "cipher",
        "hash",
        "digital",
        "certificate",
        "computation",
        "lattice",
        "api",
        "function",
        "method",
        "class",
        "interface",
        "module",
        "library",
        "framework",
        "database",
        "server",
        "client",
        "request",
        "response",
        "configuration",
        "deployment",
        "architecture",
        "performance",
        "concurrency",
        "async",
        "thread",
        "cache",
        "query",
        "schema",
        "pattern",
        "compiler",
        "runtime",
        "memory",
        "latency",
        "network",
        "endpoint",
        "component",
        "object",
        "type",
    )
    credibility_domains: tuple[str, ...] = (".gov", ".edu", "csrc.", "nist.")
    co_occurring_pairs: tuple[tuple[str, str], ...] = (
        ("key", "encryption"),
        ("key", "cryptography"),
        ("quantum", "cryptography"),
        ("quantum", "security"),
        ("encryption", "security"),
        ("standard", "implementation"),
        ("algorithm", "implementation"),
    )
    stop_words: frozenset[str] = _frozen(
        "a", "about", "above", "after", "again", "against", "all", "am", "an", "and", "any", "are",
        "as", "at", "be", "because", "been", "before", "being", "below", "between", "both", "but",
        "by", "can", "could", "did", "do", "does", "doing", "down", "during", "each", "few", "for",
        "from", "further", "had", "has", "have", "having", "he", "her", "here", "hers", "him",
        "his", "how", "i", "if", "in", "into", "is", "it", "its", "itself", "just", "me", "more",
        "most", "my", "no", "nor", "not", "now", "of", "off", "on", "once", "only", "or", "other",
        "our", "ours", "out", "over", "own", "same", "she", "should", "so", "some", "such", "than",
        "that", "the", "their", "them", "then", "there", "these", "they", "this", "those",
        "through", "to", "too", "under", "until", "up", "very", "was", "we", "were", "what",
        "when", "where", "which", "while", "who", "whom", "why", "will", "with", "would", "you",
        "your", "yours", "also", "may", "might", "must", "shall", "use", "used", "using",
    )
    topic_patterns: tuple[str, ...] = (
        r"\busing (?:the |a |an )?([A-Za-z][\w-]*(?: [A-Za-z][\w-]*)?) pattern\b",
        r"\b([A-Za-z][\w-]*(?: [A-Z][\w-]*)?) implementation\b",
        r"\b([A-Za-z][\w-]*) (?:wrapper|API|api|SDK|sdk)\b",
    )
    code_identifier_patterns: tuple[str, ...] = (
        r"\b(?:class|interface|struct|trait|enum)\s+([A-Z][A-Za-z0-9_]*)",
        r"\b(?:def|function|func|fn)\s+([A-Za-z_][A-Za-z0-9_]*)",
    )
    best_practice_patterns: tuple[str, ...] = (
        r"\bshould\b",
        r"\bmust\b",
        r"\brecommend(?:ed|s)?\b",
        r"\bbest practices?\b",
        r"\bavoid\b",
        r"\balways\b",
        r"\bnever\b",
        r"\bprefer(?:red|ably)?\b",
        r"\bensure\b",
        r"\bmake sure\b",
    )
    implementation_patterns: tuple[str, ...] = (
        r"\b(?:implement|create|configure|install|define|call|import|initiali[sz]e|instantiate|"
        r"build|deploy|register|override|extend)\w*\b.*\b(?:function|class|method|module|api|"
        r"library|component|object|interface|file|code|endpoint|handler|instance|package)s?\b",
        r"\b(?:to|you can|we can)\s+(?:use|call|invoke|pass)\b",
        r"\b(?:returns?|accepts?|takes?)\s+(?:an?|the)\s+\w+",
    )
    boilerplate_sentence_patterns: tuple[str, ...] = (
        r"\bcookies?\b",
        r"\bsubscribe\b",
        r"\bnewsletter\b",
        r"\ball rights reserved\b",
        r"\bcopyright\b",
        r"\bprivacy policy\b",
        r"\bterms of (?:service|use)\b",
        r"\bsign up\b",
        r"\bclick here\b",
        r"\bfollow us\b",
    )
    standard_entity_pattern: str = r"\b(?:FIPS|SP|RFC|ISO|IEEE)\s+\d+(?:-\d+)?"
    algorithm_entity_pattern: str = (
        r"(?:ML-KEM|ML-DSA|SLH-DSA|CRYSTALS-Kyber|CRYSTALS-Dilithium|SPHINCS\+|FALCON)(?:-\d+)?"
    )
    sentiment_lexicon: Mapping[str, int] = field(
        default_factory=lambda: {
            "good": 3, "great": 3, "excellent": 3, "best": 3, "better": 2, "easy": 1,
            "efficient": 2, "effective": 2, "fast": 2, "improve": 2, "improved": 2,
            "improvement": 2, "benefit": 2, "benefits": 2, "reliable": 2, "robust": 2,
            "secure": 2, "safe": 1, "simple": 1, "clean": 2, "powerful": 2, "success": 2,
            "successful": 3, "successfully": 3, "useful": 2, "helpful": 2, "recommended": 2,
            "love": 3, "like": 2, "nice": 3, "strong": 2, "stable": 2, "support": 2,
            "supported": 2, "advantage": 2, "win": 4, "perfect": 3, "awesome": 4,
            "bad": -3, "worse": -3, "worst": -3, "poor": -2, "slow": -2, "hard": -1,
            "difficult": -1, "complex": -1, "complicated": -2, "error": -2, "errors": -2,
            "fail": -2, "fails": -2, "failed": -2, "failure": -2, "bug": -2, "bugs": -2,
            "broken": -1, "problem": -2, "problems": -2, "issue": -1, "issues": -1,
            "risk": -2, "risks": -2, "vulnerable": -2, "vulnerability": -2, "attack": -1,
            "attacks": -1, "insecure": -2, "deprecated": -1, "crash": -2, "wrong": -2,
            "warning": -3, "danger": -2, "dangerous": -2, "hate": -3, "lack": -2,
            "limited": -1, "limitation": -1, "weak": -2, "breach": -2,
        }
    )


DEFAULT_TABLES = HeuristicTables()

__all__ = ["HeuristicTables", "DEFAULT_TABLES", "VOCABULARY_VERSION"]
