"""Tests for the headless Chromium session, with Playwright stubbed out."""

from unittest import mock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.exceptions import CaptureError
from preview.browser import BrowserSession


def _playwright_stub(goto_error=None, selector_error=None, evaluate_result=None):
    """Mocks for async_playwright() and the objects it hands out."""
    page = mock.MagicMock()
    page.goto = mock.AsyncMock(side_effect=goto_error)
    page.wait_for_selector = mock.AsyncMock(side_effect=selector_error)
    page.evaluate = mock.AsyncMock(return_value=evaluate_result)

    context = mock.MagicMock()
    context.new_page = mock.AsyncMock(return_value=page)

    browser = mock.MagicMock()
    browser.new_context = mock.AsyncMock(return_value=context)
    browser.close = mock.AsyncMock()

    pw = mock.MagicMock()
    pw.chromium.launch = mock.AsyncMock(return_value=browser)
    pw.stop = mock.AsyncMock()

    starter = mock.MagicMock()
    starter.start = mock.AsyncMock(return_value=pw)
    factory = mock.MagicMock(return_value=starter)
    return factory, pw, browser, page


@pytest.mark.unit
class TestBrowserSession:

    async def test_opens_page_with_requested_density(self):
        factory, pw, browser, page = _playwright_stub()
        with mock.patch("preview.browser.async_playwright", factory):
            async with BrowserSession("http://editor.test/w/wf1", selector=".react-flow",
                                      width=800, height=600, scale=2.0) as opened:
                assert opened is page

        browser.new_context.assert_awaited_once_with(
            viewport={"width": 800, "height": 600},
            device_scale_factor=2.0,
        )
        page.goto.assert_awaited_once()
        assert page.goto.await_args.args[0] == "http://editor.test/w/wf1"
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    async def test_navigation_failure_raises_capture_error_and_closes(self):
        factory, pw, browser, page = _playwright_stub(
            goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        )
        session = BrowserSession("http://editor.test/w/wf1")
        with mock.patch("preview.browser.async_playwright", factory):
            with pytest.raises(CaptureError, match="ERR_NAME_NOT_RESOLVED") as info:
                async with session:
                    pass

        assert info.value.status_code == 502
        assert isinstance(info.value.__cause__, PlaywrightError)
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        assert session._browser is None

    async def test_selector_timeout_is_not_fatal(self):
        factory, pw, browser, page = _playwright_stub(
            selector_error=PlaywrightTimeoutError("Timeout 30000ms exceeded")
        )
        with mock.patch("preview.browser.async_playwright", factory):
            async with BrowserSession("http://editor.test", selector="#missing") as opened:
                assert opened is page

        page.wait_for_selector.assert_awaited_once()
        browser.close.assert_awaited_once()

    async def test_close_errors_are_logged_not_raised(self):
        factory, pw, browser, page = _playwright_stub()
        browser.close.side_effect = PlaywrightError("Target closed")
        session = BrowserSession("http://editor.test")
        with mock.patch("preview.browser.async_playwright", factory):
            async with session:
                pass
        assert session._pw is None


@pytest.mark.integration
class TestCaptureThroughBrowser:

    async def test_unreachable_page_returns_502(self, client, preview_service):
        preview_service.session_factory = BrowserSession
        factory, pw, browser, page = _playwright_stub(goto_error=PlaywrightError("net::ERR_CONNECTION_REFUSED"))

        with mock.patch("preview.browser.async_playwright", factory):
            resp = await client.post(
                "/api/v1/workflow-preview/capture",
                json={"workflowId": "wf1", "url": "http://editor.test/w/wf1"},
            )

        assert resp.status_code == 502
        assert "ERR_CONNECTION_REFUSED" in resp.json()["detail"]
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    async def test_target_never_appears_returns_404(self, client, preview_service):
        preview_service.session_factory = BrowserSession
        factory, pw, browser, page = _playwright_stub(
            selector_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"),
            evaluate_result=None,
        )

        with mock.patch("preview.browser.async_playwright", factory):
            resp = await client.post(
                "/api/v1/workflow-preview/capture",
                json={"workflowId": "wf1", "url": "http://editor.test/w/wf1"},
            )

        assert resp.status_code == 404
        assert ".react-flow" in resp.json()["detail"]
        browser.close.assert_awaited_once()
