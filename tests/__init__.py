"""
Test suite for the catalog mapping service.

Run all tests: pytest
Run with coverage: pytest --cov=. --cov-report=html
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_attribute_mapping_service.py -v
"""
