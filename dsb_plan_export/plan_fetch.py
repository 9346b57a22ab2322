"""
Fetch substitution plan pages by URL and extract them.

Plan URLs come from the user (or whatever lists them); each page is one
self-contained HTML document. Several pages are fetched in parallel, each
worker doing its own fetch + extraction.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .plan_html import ClassEntry, PlanParseError, extract_class_entries

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"}


class PlanFetchError(RuntimeError):
    """A plan page could not be downloaded."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


@dataclass
class PlanPage:
    url: str
    title: str
    entries: List[ClassEntry] = field(default_factory=list)


def create_session(retries: int = 3, backoff_factor: float = 1.0) -> requests.Session:
    """Session with retries on throttling / server errors."""
    session = requests.Session()
    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(HEADERS)
    return session


def _download(http: requests.Session, url: str, timeout: float) -> bytes:
    try:
        logger.info("Fetching plan %s", url)
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise PlanFetchError(url, str(e)) from e
    return response.content


def fetch_plan_html(
    url: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> bytes:
    """
    Download one plan page and return its raw bytes.

    The bytes are left undecoded: Untis pages usually declare their charset
    only in <meta>, which the HTML parser reads itself.
    """
    if session is not None:
        return _download(session, url, timeout)
    with create_session() as http:
        return _download(http, url, timeout)


def fetch_plan(
    url: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> PlanPage:
    """Fetch and extract a single plan page."""
    html = fetch_plan_html(url, session=session, timeout=timeout)
    entries, title = extract_class_entries(html)
    logger.info("Parsed %d class entries from %s", len(entries), url)
    return PlanPage(url=url, title=title, entries=entries)


def _fetch_all(
    http: requests.Session,
    urls: List[str],
    max_workers: int,
    timeout: float,
    raise_on_error: bool,
) -> List[PlanPage]:
    pages: List[PlanPage] = []
    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="plan-fetch") as pool:
        futures = [pool.submit(fetch_plan, url, http, timeout) for url in urls]
        for url, future in zip(urls, futures):
            try:
                pages.append(future.result())
            except (PlanFetchError, PlanParseError) as e:
                if raise_on_error:
                    raise
                logger.error("Skipping plan %s: %s", url, e)
    return pages


def fetch_plans(
    urls: Iterable[str],
    max_workers: int = 4,
    timeout: float = DEFAULT_TIMEOUT,
    raise_on_error: bool = False,
    session: requests.Session | None = None,
) -> List[PlanPage]:
    """
    Fetch and extract several plan pages concurrently.

    Results keep the order of *urls*. A page that fails to download or to
    parse is logged and left out, unless *raise_on_error* is set.
    """
    urls = list(urls)
    if not urls:
        return []

    if session is not None:
        return _fetch_all(session, urls, max_workers, timeout, raise_on_error)
    with create_session() as http:
        return _fetch_all(http, urls, max_workers, timeout, raise_on_error)
