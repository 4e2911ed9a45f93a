"""
Test suite for Marketplace Sync.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_cursor_pager.py -v
"""
