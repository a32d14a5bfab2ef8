from .browser_fetcher import BrowserPageFetcher, looks_like_challenge, visit_page

__all__ = ["BrowserPageFetcher", "looks_like_challenge", "visit_page"]
