"""
Test suite for the tabular import engine.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_section_detector.py -v
"""
