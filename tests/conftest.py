# CounterPOS Live Smoke Suite - Shared Configuration and Fixtures
#
# Runs against an already-running backend. Every test is skipped unless
# TEST_BACKEND_URL is set, e.g.
#
#   flask --app wsgi system init --admin-pin 1234
#   flask --app wsgi run --port 5001
#   TEST_BACKEND_URL=http://127.0.0.1:5001 pytest tests

import os
import time
from typing import Dict, Generator, Optional, Any
from dataclasses import dataclass

import pytest
import httpx


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "")

    # Credentials created by `flask system init`
    admin_email: str = os.environ.get("TEST_ADMIN_EMAIL", "admin@counterpos.local")
    admin_pin: str = os.environ.get("TEST_ADMIN_PIN", "1234")

    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))

    # Suffix for records created by a run
    seed: int = int(os.environ.get("TEST_SEED", str(int(time.time()))))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Failure with a human-readable breakdown.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """Raise TestFailure unless the response has the expected status (and body text)."""
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_body_contains and expected_body_contains not in response.text:
        raise TestFailure(
            scenario=scenario,
            expected=f"Response body contains: {expected_body_contains}",
            actual=f"Response body: {response.text[:500]}",
            likely_cause="Response format changed or wrong endpoint hit",
            code_location=code_location,
            response=response
        )


def _infer_cause(response: httpx.Response) -> str:
    if response.status_code == 401:
        return "Authentication failed - sessionId missing, revoked or idle too long"
    elif response.status_code == 403:
        return "Permission denied - staff role not allowed for this action"
    elif response.status_code == 404:
        return "Resource not found - wrong ID or already deleted"
    elif response.status_code == 400:
        return "Invalid request - missing field, validation failed or totals mismatch"
    elif response.status_code == 500:
        return "Server error - check backend logs for stack trace"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """
    httpx wrapper that carries the staff session as a bearer token.
    """

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)
        self.token: Optional[str] = None
        self.current_staff: Optional[Dict] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", headers=self._headers(), params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.put(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.client.delete(f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    def login(self, email: str, pin: str) -> bool:
        """Sign in and keep the returned sessionId."""
        response = self.post("/api/staff/login", json={"email": email, "pin": pin})
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("sessionId")
            self.current_staff = data
            return True
        return False

    def logout(self) -> bool:
        """End only this client's session."""
        if not self.token:
            return True
        response = self.post("/api/staff/logout")
        if response.status_code == 200:
            self.token = None
            self.current_staff = None
            return True
        return False

    def close(self):
        self.client.close()


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    config = TestConfig()
    if not config.backend_base_url:
        pytest.skip("TEST_BACKEND_URL not set; live smoke suite skipped")
    return config


@pytest.fixture(scope="session")
def api_client(test_config: TestConfig) -> Generator[APIClient, None, None]:
    client = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    yield client
    client.close()


@pytest.fixture
def client(api_client: APIClient) -> APIClient:
    """API client with auth state cleared."""
    api_client.token = None
    api_client.current_staff = None
    return api_client


@pytest.fixture
def admin_client(client: APIClient, test_config: TestConfig) -> Generator[APIClient, None, None]:
    if not client.login(test_config.admin_email, test_config.admin_pin):
        pytest.fail(f"Failed to login as {test_config.admin_email}; run `flask system init` first")
    yield client
    client.logout()


def pytest_configure(config):
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "auth: Staff sign-in tests")
    config.addinivalue_line("markers", "sales: Checkout tests")
