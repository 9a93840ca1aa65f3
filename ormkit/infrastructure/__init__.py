"""Infrastructure modules: database engine, sessions and lock-safe connections."""
