"""
PropGuard Test Suite

Test Structure:
- tests/accounts/ - Status engine, domain types, codec and account store
- tests/advisory/ - Advisories, trading plan and position sizing
- tests/infrastructure/ - Settings, logging and document stores
- tests/shared/ - Event bus

Run all tests: pytest
Run one module: pytest tests/accounts/test_store.py
"""
