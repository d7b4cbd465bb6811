"""Table, text and PDF extraction of the six data domains."""

from qfilings.extraction.core import (
    Locator,
    TableExtraction,
    apply_rules,
    extract_rule_table,
    locate_table,
)
from qfilings.extraction.eras import (
    Era,
    company_eras,
    extract_domain,
    run_eras,
    select_eras,
)

__all__ = [
    "Locator",
    "TableExtraction",
    "apply_rules",
    "extract_rule_table",
    "locate_table",
    "Era",
    "company_eras",
    "extract_domain",
    "run_eras",
    "select_eras",
]
