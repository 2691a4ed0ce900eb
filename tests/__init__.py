"""
Test Suite for the Charge Point Pipeline
========================================

- Unit Tests: one transformation at a time, on small mocked DataFrames
- Integration Tests: chained transformations and the batch job, run
  end-to-end on a production-like message log (tests/data)

Running Tests:
    # Run all tests
    pytest tests/ -v

    # Run unit tests only
    pytest tests/ -v --ignore=tests/integration

    # Run with coverage
    pytest tests/ -v --cov=chargepoint_pipeline --cov-report=html
"""
