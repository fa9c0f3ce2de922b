"""Tests for engine initialization and schema creation."""

from sqlalchemy import inspect

from billing_kernel.db.engine import get_engine


class TestEngine:

    def test_get_engine_returns_initialized_engine(self, db_engine):
        assert get_engine() is db_engine

    def test_create_tables_registers_every_table(self, db_tables, db_engine):
        tables = set(inspect(db_engine).get_table_names())
        assert {
            "customers",
            "fees",
            "jobs",
            "job_fees",
            "invoices",
            "invoice_items",
            "payments",
            "sequence_counters",
        } <= tables
