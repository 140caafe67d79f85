"""PostgreSQL adapters: connection pool, schema and repositories."""
