# Stock Ledger live-server test suite
#
# This package contains:
# - API tests against a running server (pytest + httpx)
# - Stress/load tests (Locust)
#
# Run with: pytest tests/api
