"""Shared fixtures: a scriptable strategy and sample environment configurations."""

import pytest

from envprobe.exceptions import OperationalError
from envprobe.http_client import FetchResult
from envprobe.models import Credentials, EnvironmentConfig, LoginLocators
from envprobe.resolvers import StaticDocumentResolver
from envprobe.strategy import NavigationResult, ProbeStrategy


LOGIN_PAGE = """
<html>
  <head><title>Sign in</title></head>
  <body>
    <form id="login-form" action="/login" method="post">
      <input id="username" name="username" type="text">
      <input id="password" name="password" type="password">
      <button type="submit" class="btn btn-primary">Sign in</button>
    </form>
    <p class="footer">Need help? Contact support.</p>
  </body>
</html>
"""


class FakeStrategy(ProbeStrategy):
    """Strategy whose every capability is scripted by the test."""

    name = "fake"

    def __init__(
        self,
        interactive: bool = False,
        status_code: int = 200,
        elapsed_ms: float = 120.0,
        navigation_error: Exception = None,
        html: str = LOGIN_PAGE,
        api_status: int = 200,
        api_elapsed_ms: float = 80.0,
        api_error: Exception = None,
        console_errors=None,
        error_text_visible: bool = True,
        redirect_ok: bool = True,
        start_error: Exception = None,
    ):
        super().__init__()
        self.interactive = interactive
        self.status_code = status_code
        self.elapsed_ms = elapsed_ms
        self.navigation_error = navigation_error
        self.api_status = api_status
        self.api_elapsed_ms = api_elapsed_ms
        self.api_error = api_error
        self.error_text_visible = error_text_visible
        self.redirect_ok = redirect_ok
        self.start_error = start_error

        self._resolver = StaticDocumentResolver(html)
        self._console_errors = console_errors

        self.started = False
        self.closed = False
        self.navigated = []
        self.fetched = []
        self.submissions = []

    async def start(self):
        if self.start_error:
            raise self.start_error
        self.started = True

    async def close(self):
        self.closed = True

    async def navigate(self, url):
        self.navigated.append(url)
        if self.navigation_error:
            raise self.navigation_error
        return NavigationResult(status_code=self.status_code, elapsed_ms=self.elapsed_ms, url=url)

    @property
    def resolver(self):
        return self._resolver

    @property
    def console_errors(self):
        return self._console_errors

    async def fetch(self, url, timeout):
        self.fetched.append((url, timeout))
        if self.api_error:
            raise self.api_error
        return FetchResult(status_code=self.api_status, text="{}", elapsed_ms=self.api_elapsed_ms, url=url)

    async def submit_login(self, user, password, submit, username, password_value):
        if not self.interactive:
            raise OperationalError("not interactive")
        self.submissions.append((username, password_value))

    async def wait_for_text(self, text, timeout_ms):
        return self.error_text_visible

    async def wait_for_url(self, url, timeout_ms):
        return self.redirect_ok


@pytest.fixture
def login_page():
    return LOGIN_PAGE


@pytest.fixture
def make_strategy():
    """Factory for FakeStrategy instances."""
    return FakeStrategy


@pytest.fixture
def basic_config():
    """Target URL only."""
    return EnvironmentConfig(target_url="https://qa.example.com", name="QA")


@pytest.fixture
def locator_config():
    """Login locators without auth verification settings."""
    return EnvironmentConfig(
        target_url="https://qa.example.com",
        locators=LoginLocators(user="#username", password="//input[@type='password']"),
        name="QA",
    )


@pytest.fixture
def auth_config():
    """Everything needed for the full valid/invalid login flow."""
    return EnvironmentConfig(
        target_url="https://qa.example.com/login",
        api_endpoint="https://qa.example.com/api/health",
        credentials=Credentials(username="admin", password="s3cret"),
        dashboard_url="https://qa.example.com/dashboard",
        locators=LoginLocators(
            user="#username",
            password="#password",
            submit="//button[@type='submit']",
        ),
        expected_error_text="Invalid credentials",
        name="QA",
    )
