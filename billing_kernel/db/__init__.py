"""Database infrastructure: declarative base, engine, column types."""
