"""Top-level application package for the expense tracker service.

This package contains the FastAPI backend that turns uploaded receipt
images into expense transactions. It includes the database models,
Pydantic schemas, the upload receiver, the extraction tool adapter,
the normalizer, the transaction store, the ingestion orchestrator and
the receipt history service, as well as the API routers.

To run the API locally you can execute (from the ``backend`` folder):

```bash
uvicorn expense_tracker.api.main:app --reload
```

This will serve the FastAPI application on http://localhost:8000 and
automatically reload on code changes. The default configuration uses
a local SQLite database stored in ``expenses.db``. You can override
configuration values using environment variables or a ``.env`` file at
the project root.
"""

__all__: list[str] = []  # explicit for linters; populated dynamically elsewhere if needed
