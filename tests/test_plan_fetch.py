import pytest
import requests

from dsb_plan_export import plan_fetch
from dsb_plan_export.plan_fetch import (
    PlanFetchError,
    create_session,
    fetch_plan,
    fetch_plan_html,
    fetch_plans,
)
from dsb_plan_export.plan_html import ClassEntry, PlanParseError


def _plan_html(name: str) -> str:
    return (
        "<html><body><table><tr><td>info</td></tr></table>"
        '<div class="mon_title">21.10.2024 Montag</div>'
        f'<table><tr><td colspan="1">{name}</td></tr><tr><td>x</td></tr></table>'
        "</body></html>"
    )


class FakeResponse:
    def __init__(self, text: str, status: int = 200, encoding: str = "utf-8"):
        self.content = text.encode(encoding)
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Maps URL → FakeResponse or exception instance."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


def test_create_session_mounts_retries():
    session = create_session(retries=2)
    adapter = session.get_adapter("https://example.org/")
    assert adapter.max_retries.total == 2
    assert "Mozilla" in session.headers["User-Agent"]


def test_fetch_plan_html():
    session = FakeSession({"https://a/plan.htm": FakeResponse("<html></html>")})
    assert fetch_plan_html("https://a/plan.htm", session=session, timeout=5) == b"<html></html>"
    assert session.calls == [("https://a/plan.htm", 5)]
    assert not session.closed


def test_own_session_is_closed(monkeypatch):
    session = FakeSession({"https://a/plan.htm": FakeResponse("<html></html>")})
    monkeypatch.setattr(plan_fetch, "create_session", lambda: session)
    fetch_plan_html("https://a/plan.htm")
    assert session.closed

    session.closed = False
    fetch_plans(["https://a/plan.htm"])
    assert session.closed


def test_meta_charset_is_honoured():
    html = (
        '<html><head><meta http-equiv="Content-Type" content="text/html; charset=iso-8859-1">'
        "</head><body><table></table>"
        '<table><tr><td colspan="1">5a</td></tr><tr><td>Verlegung nach Raum Ü1</td></tr></table>'
        "</body></html>"
    )
    session = FakeSession({"https://a/plan.htm": FakeResponse(html, encoding="iso-8859-1")})
    page = fetch_plan("https://a/plan.htm", session=session)
    assert page.entries == [ClassEntry("5a", [["Verlegung nach Raum Ü1"]])]


def test_fetch_plan_html_http_error():
    session = FakeSession({"https://a/plan.htm": FakeResponse("", status=404)})
    with pytest.raises(PlanFetchError) as exc:
        fetch_plan_html("https://a/plan.htm", session=session)
    assert exc.value.url == "https://a/plan.htm"


def test_fetch_plan_html_network_error():
    session = FakeSession({"https://a/plan.htm": requests.ConnectionError("down")})
    with pytest.raises(PlanFetchError, match="down"):
        fetch_plan_html("https://a/plan.htm", session=session)


def test_fetch_plan():
    session = FakeSession({"https://a/1.htm": FakeResponse(_plan_html("5a"))})
    page = fetch_plan("https://a/1.htm", session=session)
    assert page.url == "https://a/1.htm"
    assert page.title == "21.10.2024 Montag"
    assert page.entries == [ClassEntry("5a", [["x"]])]


def test_fetch_plans_keeps_order_and_skips_failures():
    session = FakeSession({
        "https://a/1.htm": FakeResponse(_plan_html("5a")),
        "https://a/2.htm": requests.ConnectionError("down"),
        "https://a/3.htm": FakeResponse(_plan_html("6b")),
    })
    pages = fetch_plans(
        ["https://a/1.htm", "https://a/2.htm", "https://a/3.htm"],
        max_workers=3,
        session=session,
    )
    assert [p.url for p in pages] == ["https://a/1.htm", "https://a/3.htm"]
    assert [p.entries[0].name for p in pages] == ["5a", "6b"]


def test_fetch_plans_raise_on_error():
    session = FakeSession({"https://a/1.htm": FakeResponse("", status=500)})
    with pytest.raises(PlanFetchError):
        fetch_plans(["https://a/1.htm"], session=session, raise_on_error=True)


def test_fetch_plans_empty():
    assert fetch_plans([]) == []


def test_fetch_plans_skips_unparseable_page(monkeypatch):
    session = FakeSession({
        "https://a/1.htm": FakeResponse("broken"),
        "https://a/2.htm": FakeResponse(_plan_html("6b")),
    })
    real_extract = plan_fetch.extract_class_entries

    def extract(html):
        if html == b"broken":
            raise PlanParseError("Could not parse plan HTML")
        return real_extract(html)

    monkeypatch.setattr(plan_fetch, "extract_class_entries", extract)
    pages = fetch_plans(["https://a/1.htm", "https://a/2.htm"], session=session)
    assert [p.url for p in pages] == ["https://a/2.htm"]
