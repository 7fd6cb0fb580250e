"""Utility functions for statement-ingest."""

from statement_ingest.utils.parsing import (
    clean_description,
    parse_amount,
    parse_date,
    sniff_document_type,
)

__all__ = ["parse_date", "parse_amount", "clean_description", "sniff_document_type"]
