# Stock Ledger Live API Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - Ephemeral SQLite database per test run
# - A real Flask server started through the CLI (flask system init-db + flask run)
# - An httpx client wrapper and a small master-data factory
# - Failure message formatting
#
# These tests talk to a running server over HTTP. In-process tests live in
# backend/tests and run by default; run these explicitly:
#     pytest tests/api

import os
import sys
import time
import tempfile
import subprocess
import shutil
import uuid
from pathlib import Path
from typing import Generator, Optional, Dict, Any, List
from dataclasses import dataclass

import pytest
import httpx

REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")

    # Timeouts
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))

    # Concurrency (for the HTTP oversell test)
    concurrent_buyers: int = int(os.environ.get("TEST_CONCURRENT_BUYERS", "8"))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Exception with a readable failure report.

    Structure:
    1. Scenario: What was being tested
    2. Expected / Actual
    3. Likely Cause
    4. Code Location: Where to look in the codebase
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
    """
    Assert HTTP response status and optionally body content.
    Raises TestFailure with detailed message on failure.
    """
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
    """Infer likely cause from response status/body."""
    if response.status_code == 404:
        return "Resource not found - wrong ID or deleted record"
    elif response.status_code == 400:
        return "Invalid request - missing required field or validation failed"
    elif response.status_code == 409:
        return "Conflict - duplicate resource or insufficient stock"
    elif response.status_code == 500:
        return "Server error - check backend logs for stack trace"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT
# =============================================================================

class APIClient:
    """Thin httpx wrapper rooted at the backend base URL."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(self._url(path), params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> httpx.Response:
        return self.client.post(self._url(path), json=json, **kwargs)

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> httpx.Response:
        return self.client.put(self._url(path), json=json, **kwargs)

    def patch(self, path: str, json: Optional[Any] = None, **kwargs) -> httpx.Response:
        return self.client.patch(self._url(path), json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.client.delete(self._url(path), **kwargs)

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """
    Manages Flask backend server lifecycle for tests.
    """

    def __init__(self, config: TestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None

    def _env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["DATABASE_URL"] = f"sqlite:///{self.db_file}"
        env["FLASK_APP"] = "wsgi.py"
        return env

    def start(self) -> bool:
        """Create the schema through the CLI, then start the server."""
        temp_dir = tempfile.mkdtemp(prefix="stockledger_test_")
        self.db_file = Path(temp_dir) / "test_stockledger.sqlite3"

        subprocess.run(
            [sys.executable, "-m", "flask", "system", "init-db"],
            cwd=str(BACKEND_DIR),
            env=self._env(),
            check=True,
            capture_output=True,
        )

        port = self.config.backend_base_url.rsplit(":", 1)[-1]
        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "run", "--port", port, "--with-threads"],
            cwd=str(BACKEND_DIR),
            env=self._env(),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        """Wait for server to be responsive."""
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/api/health", timeout=2.0)
                if response.status_code in (200, 503):
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        """Stop the Flask server and cleanup."""
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class TestDataFactory:
    """Creates master data and stock through the public API."""

    def __init__(self, client: APIClient):
        self.client = client

    def _unique(self, prefix: str) -> str:
        return f"{prefix} {uuid.uuid4().hex[:8]}"

    def create_store(self, name: Optional[str] = None, zone: Optional[List[str]] = None) -> Dict:
        response = self.client.post("/api/stores", json={
            "name": name or self._unique("Store"),
            "zone": zone or [],
        })
        assert_response(
            response, 201,
            scenario="Create store",
            code_location="backend/stockledger/routes/stores.py:create_store",
        )
        return response.json()

    def create_item(self, name: Optional[str] = None, purchase_price: float = 10) -> Dict:
        response = self.client.post("/api/items", json={
            "name": name or self._unique("Item"),
            "category": "Test",
            "purchase_price": purchase_price,
        })
        assert_response(
            response, 201,
            scenario="Create item",
            code_location="backend/stockledger/routes/items.py:create_item_route",
        )
        return response.json()

    def receive_stock(self, item_id: int, store_id: int, quantity: float) -> Dict:
        """Create a purchase for quantity and receive all of it."""
        response = self.client.post("/api/purchases", json={
            "supplier_name": "Test Supplier",
            "items": [{"product_id": item_id, "store_id": store_id, "quantity": quantity, "unit_price": 1}],
        })
        assert_response(
            response, 201,
            scenario="Create purchase",
            code_location="backend/stockledger/routes/purchases.py:create_purchase_route",
        )
        purchase = response.json()["purchase"]

        response = self.client.put(f"/api/purchases/{purchase['id']}/receive", json={
            "items": [{"purchase_item_id": purchase["items"][0]["id"], "quantity_received": quantity}],
        })
        assert_response(
            response, 200,
            scenario="Receive purchase",
            code_location="backend/stockledger/routes/purchases.py:receive_purchase_route",
        )
        return response.json()

    def stock(self, item_id: int, store_id: int) -> float:
        response = self.client.get(f"/api/inventory/{store_id}/products/{item_id}")
        assert_response(
            response, 200,
            scenario="Read product stock",
            code_location="backend/stockledger/routes/inventory.py:product_stock_route",
        )
        return response.json()["current_stock"]


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Provide test configuration."""
    return TestConfig()


@pytest.fixture(scope="session")
def server_manager(test_config: TestConfig) -> Generator[ServerManager, None, None]:
    """
    Manage test server lifecycle.
    Server is started once per test session.
    """
    manager = ServerManager(test_config)

    # For CI/external server mode, don't manage server
    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            manager.stop()
            pytest.fail("Failed to start test server")
        yield manager
        manager.stop()


@pytest.fixture(scope="session")
def api_client(test_config: TestConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    client = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    yield client
    client.close()


@pytest.fixture
def factory(api_client: APIClient) -> TestDataFactory:
    """Provide test data factory."""
    return TestDataFactory(api_client)


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "inventory: Stock and movement tests")
    config.addinivalue_line("markers", "purchases: Purchase and receiving tests")
    config.addinivalue_line("markers", "sales: Sales workflow tests")
    config.addinivalue_line("markers", "concurrent: Concurrency tests")
