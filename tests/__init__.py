# tests/__init__.py
"""
BioReconcile - Test Suite
=========================

Tests covering:
- Interpolation and Kalman state estimation
- Stoichiometric reconciliation (exact and redundant)
- Dynamic balance model and simulation driver
- Off-gas analysis, validation and plotting helpers
- End-to-end workflows

Run all tests:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_reconciliation.py -v
"""
