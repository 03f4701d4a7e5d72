"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/unit/ - Fast, isolated unit tests
- tests/integration/ - Full runs against in-memory and mocked-HTTP collaborators
- tests/conftest.py - Shared fixtures (settings, fake source, recording publisher)

No test touches the network: the CRM and identity endpoints are served by
httpx.MockTransport and the archive is a temporary directory or in memory.
"""
