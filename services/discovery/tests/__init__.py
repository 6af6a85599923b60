"""Discovery core test suite. Shared fakes and fixtures live in conftest.py."""
