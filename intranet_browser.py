"""Read the Rapports bearer token from a logged-in intranet browser session."""

import asyncio
import json
import os
from typing import Awaitable, Callable

from playwright.async_api import BrowserContext, Page, async_playwright

from errors import CredentialUnavailable
from patterns import Patterns
from utils import SESSION_FILE

TIMEOUT = 10000  # 10 seconds

TokenProvider = Callable[[], Awaitable[str]]


def extract_access_token(app_state: str | None) -> str:
    """Get tokenData.accessToken from the intranet's sessionStorage 'appState'."""
    if not app_state:
        raise CredentialUnavailable("Could not retrieve 'appState' from session storage.")
    try:
        token = json.loads(app_state).get("tokenData", {}).get("accessToken")
    except (json.JSONDecodeError, AttributeError):
        raise CredentialUnavailable("'appState' in session storage is not valid JSON.")
    validate_token(token)
    return token


def validate_token(token, source: str = "appState") -> str:
    if not isinstance(token, str) or not Patterns.BEARER_TOKEN.match(token):
        raise CredentialUnavailable(f"Could not find a valid token within {source}.")
    return token


class IntranetBrowser:
    """Context manager for an intranet browser session."""

    def __init__(self, config: dict, headless: bool = False, slow_mo: int = 100):
        self.config = config
        self.headless = headless
        self.slow_mo = slow_mo
        self.intranet_url = config.get("rapports", {}).get("intranet_url")
        self._playwright = None
        self._browser = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if not self._page:
            raise RuntimeError("Browser not initialized. Use 'async with' context.")
        return self._page

    async def __aenter__(self) -> "IntranetBrowser":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            slow_mo=self.slow_mo,
        )

        if os.path.exists(SESSION_FILE):
            self._context = await self._browser.new_context(storage_state=SESSION_FILE)
        else:
            self._context = await self._browser.new_context()

        self._page = await self._context.new_page()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def check_session_valid(self) -> bool:
        """Quick check if session is still valid.

        Returns:
            True if session appears valid, False if login is required.
        """
        try:
            title = await self.page.title()
            if "Login" in title or "Sign in" in title or "Iniciar" in title:
                return False
            return True
        except Exception:
            return False

    async def read_access_token(self) -> str:
        """Open the intranet and read the access token of the logged-in user."""
        if not self.intranet_url:
            raise CredentialUnavailable("rapports.intranet_url not configured in config.json")

        print("[*] Opening intranet...")
        await self.page.goto(self.intranet_url, timeout=TIMEOUT * 3)
        await self.page.wait_for_load_state("networkidle")

        if not await self.check_session_valid():
            if self.headless:
                raise CredentialUnavailable("Intranet session expired. Run once without --headless to log in.")
            print("[!] Session expired or not logged in.")
            print("    Please log in, then press ENTER...")
            try:
                await asyncio.get_running_loop().run_in_executor(None, input)
            except EOFError:
                raise CredentialUnavailable("Not logged in to the intranet.")
            await self._context.storage_state(path=SESSION_FILE)
            print("    Session saved for future use.")

        app_state = await self.page.evaluate("() => sessionStorage.getItem('appState')")
        return extract_access_token(app_state)


def make_token_provider(config: dict, headless: bool = False) -> TokenProvider:
    """Token from config.json if present, otherwise from the browser session."""
    configured = config.get("rapports", {}).get("token")

    async def provide() -> str:
        if configured:
            return validate_token(configured, "rapports.token")
        async with IntranetBrowser(config, headless=headless) as browser:
            return await browser.read_access_token()

    return provide
