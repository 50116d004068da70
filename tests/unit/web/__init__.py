"""Unit tests for quoteflow web route modules.

Structure:
    tests/unit/web/
    ├── test_app.py                  # Error mapping, middleware, health
    ├── test_dependencies.py         # Dependency providers
    ├── test_routes_threads.py       # Thread workflow routes
    └── test_routes_vessels.py       # Vessel routes

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Replace the workflow with mocks via app.dependency_overrides
    - Test request/response validation
    - Test error handling
"""
