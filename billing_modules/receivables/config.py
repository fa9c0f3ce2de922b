"""
Receivables Configuration Schema.

Defines the structure and sensible defaults for billing settings.
Actual values are loaded from a YAML file or a dict at runtime.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Self

import yaml

from billing_kernel.logging_config import get_logger

logger = get_logger("modules.receivables.config")


@dataclass
class BillingConfig:
    """
    Configuration schema for the receivables module.

    Override at instantiation with company-specific values:

        config = BillingConfig(
            default_payment_terms_days=45,
            enforce_credit_limit=True,
        )
    """

    # Payment terms applied when a customer has none
    default_payment_terms_days: int = 30

    # Display only; amounts are single-currency
    currency: str = "USD"

    # INV-<year>-<sequence>
    invoice_number_prefix: str = "INV"
    invoice_number_padding: int = 4

    # Credit management
    enforce_credit_limit: bool = False

    # Statements raise on a negative closing balance
    strict_statements: bool = True

    # Aging bucket upper bounds (in days overdue)
    aging_buckets: tuple[int, ...] = (30, 60)

    def __post_init__(self):
        if self.default_payment_terms_days < 0:
            raise ValueError("default_payment_terms_days cannot be negative")

        if not self.currency or len(self.currency.strip()) != 3:
            raise ValueError(f"currency must be a 3-letter code, got '{self.currency}'")

        if not self.invoice_number_prefix or not self.invoice_number_prefix.strip():
            raise ValueError("invoice_number_prefix cannot be empty")
        if self.invoice_number_padding < 1:
            raise ValueError("invoice_number_padding must be at least 1")

        self.aging_buckets = tuple(self.aging_buckets)
        if self.aging_buckets:
            if list(self.aging_buckets) != sorted(self.aging_buckets):
                raise ValueError("aging_buckets must be sorted ascending")
            if len(self.aging_buckets) != len(set(self.aging_buckets)):
                raise ValueError("aging_buckets must be unique")
            if any(b <= 0 for b in self.aging_buckets):
                raise ValueError("aging_buckets must contain positive values")

        logger.info(
            "billing_config_initialized",
            extra={
                "default_payment_terms_days": self.default_payment_terms_days,
                "currency": self.currency,
                "invoice_number_prefix": self.invoice_number_prefix,
                "enforce_credit_limit": self.enforce_credit_limit,
                "strict_statements": self.strict_statements,
                "aging_buckets": list(self.aging_buckets),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("billing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from database/file)."""
        logger.info(
            "billing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "aging_buckets" in data:
            data["aging_buckets"] = tuple(data["aging_buckets"])
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """
        Create config from a YAML file.

        Settings may sit at the top level or under a ``billing:`` key.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if "billing" in data:
            data = data["billing"] or {}
        return cls.from_dict(data)
