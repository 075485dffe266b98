"""Common reusable utility exports."""

from .common_functions import (
    add_months,
    generate_password,
    installment_amount,
    new_id,
    round_currency,
    to_iso_date,
)
from .mock_data_catalog import MockDataCatalog

__all__ = [
    "add_months",
    "generate_password",
    "installment_amount",
    "new_id",
    "round_currency",
    "to_iso_date",
    "MockDataCatalog",
]
