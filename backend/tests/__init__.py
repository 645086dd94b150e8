"""
Review Scheduler Test Suite

Test Structure:
    tests/
    ├── conftest.py                  # Shared fixtures (SQLite engine, API client)
    └── unit/
        ├── test_stages.py           # Stage tables
        ├── test_staged_scheduler.py # Stage transition rule
        ├── test_tracker.py          # Item state transitions and invariants
        ├── test_ranking.py          # Due ordering, priority, pagination
        ├── test_daily_stats.py      # Daily and range statistics
        ├── test_concurrency.py      # Keyed locks and conflict retries
        ├── test_review_service.py   # Item review service on SQLite
        ├── test_workbook_service.py # Workbook review service on SQLite
        ├── test_review_api.py       # HTTP surface
        └── test_scheduler_jobs.py   # Batch jobs

Running Tests:
    # Run all tests
    pytest backend/tests -v

    # Run with coverage
    pytest backend/tests --cov=app --cov-report=html
"""
