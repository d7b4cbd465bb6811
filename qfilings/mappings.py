"""
Row label to metric key mappings.

Every filer labels the same statement lines a little differently, and labels
drift across years ("Non-marketable investments" became "Non-marketable
securities"). The extraction engine is shared; what differs per company is
kept here as data: ordered rules of label patterns to output keys.

A dotted key ("googleCloud.revenue") writes a nested value.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class RowRule:
    key: str
    patterns: Tuple[re.Pattern, ...]
    section: Optional[re.Pattern] = None   # only rows under a matching section header
    nth: int = 1                           # use the n-th row that matches

    def matches(self, label: str, section: str = "") -> bool:
        if self.section is not None and not self.section.search(section or ""):
            return False
        return any(p.search(label) for p in self.patterns)


def rule(key: str, *patterns: str, section: Optional[str] = None, nth: int = 1) -> RowRule:
    return RowRule(
        key=key,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        section=re.compile(section, re.IGNORECASE) if section else None,
        nth=nth,
    )


FINANCIALS = "financials"
BALANCE_SHEET = "balance-sheet"
CASH_FLOWS = "cash-flows"
SEGMENTS = "segments"
SEGMENT_PROFIT = "segment-profit"
INVESTMENTS = "investments"

DOMAINS = [FINANCIALS, BALANCE_SHEET, CASH_FLOWS, SEGMENTS, SEGMENT_PROFIT, INVESTMENTS]

# Section headers that introduce per-share and share-count rows
_EPS_SECTION = r"^(?:basic and diluted )?(?:earnings|net income|net income \(loss\)|net loss)(?: \(loss\))? per (?:common )?share"
_SHARES_SECTION = r"^(?:weighted.?average|shares used|number of shares|shares of common stock)"

# Rows shared by most US GAAP income statements
_EPS_RULES = [
    rule("epsBasic", r"^basic$", section=_EPS_SECTION),
    rule("epsDiluted", r"^diluted$", section=_EPS_SECTION),
    rule("sharesBasic", r"^basic$", section=_SHARES_SECTION),
    rule("sharesDiluted", r"^diluted$", section=_SHARES_SECTION),
]

# Financial keys every company is expected to report each quarter
EXPECTED_FINANCIAL_KEYS = ["revenue", "operatingIncome", "netIncome"]

# Keys that cannot be derived by subtracting quarters from an annual figure
NON_ADDITIVE_KEYS = {"epsBasic", "epsDiluted", "sharesBasic", "sharesDiluted", "eps"}


# ----------------------------
# Income statements
# ----------------------------

FINANCIAL_RULES: Dict[str, List[RowRule]] = {
    "alphabet": [
        rule("revenue", r"^Revenues$"),
        rule("costOfRevenue", r"^Cost of revenues$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("salesAndMarketing", r"^Sales and marketing$"),
        rule("generalAndAdministrative", r"^General and administrative$"),
        rule("totalCostsAndExpenses", r"^Total costs and expenses$"),
        rule("operatingIncome", r"^Income from operations$"),
        rule("otherIncomeExpense", r"^Other income \(expense\),?\s*net$"),
        rule("incomeBeforeTax", r"^Income before income taxes$"),
        rule("incomeTaxExpense", r"^Provision for income taxes$"),
        rule("netIncome", r"^Net income$"),
        rule("epsBasic", r"^Basic net income per share", r"^Basic earnings per share"),
        rule("epsDiluted", r"^Diluted net income per share", r"^Diluted earnings per share"),
        rule("sharesBasic", r"^Number of shares used in basic"),
        rule("sharesDiluted", r"^Number of shares used in diluted"),
    ],
    "apple": [
        rule("revenue", r"^Total net sales$"),
        rule("costOfRevenue", r"^Total cost of sales$"),
        rule("grossProfit", r"^Gross margin$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("sga", r"^Selling, general and administrative$"),
        rule("totalOperatingExpenses", r"^Total operating expenses$"),
        rule("operatingIncome", r"^Operating income$"),
        rule("otherIncomeExpense", r"^Other income/\(expense\),?\s*net$"),
        rule("incomeBeforeTax", r"^Income before provision for income taxes$"),
        rule("incomeTaxExpense", r"^Provision for income taxes$"),
        rule("netIncome", r"^Net income$"),
        *_EPS_RULES,
    ],
    "broadcom": [
        rule("revenue", r"^Net revenue$", r"^Total net revenue$"),
        rule("costOfRevenue", r"^Total cost of revenue$", r"^Cost of revenue$"),
        rule("grossProfit", r"^Gross margin$", r"^Gross profit$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("sga", r"^Selling, general and administrative$", r"^Sales, general and administrative$"),
        rule("totalOperatingExpenses", r"^Total operating expenses$"),
        rule("operatingIncome", r"^Operating income$", r"^Income from operations$"),
        rule("interestExpense", r"^Interest expense$"),
        rule("otherIncomeExpense", r"^Other income.*net$"),
        rule("incomeBeforeTax", r"^Income (?:from continuing operations )?before income taxes$"),
        rule("incomeTaxExpense", r"^Provision for .*income taxes$", r"^Benefit from income taxes$", r"^Income tax expense$"),
        rule("netIncome", r"^Net income(?: \(loss\))?$"),
        *_EPS_RULES,
    ],
    "intel": [
        rule("revenue", r"^Net revenue$", r"^Revenue$"),
        rule("costOfRevenue", r"^Cost of sales$", r"^Cost of revenue$"),
        rule("grossProfit", r"^Gross (?:margin|profit)$"),
        rule("researchAndDevelopment", r"^Research and development", r"^R&D$"),
        rule("sga", r"^Marketing,?\s*general,?\s*and\s*administrative", r"^MG&A$"),
        rule("restructuringCharges", r"^Restructuring and other charges$"),
        rule("operatingIncome", r"^Operating income(?: \(loss\))?$"),
        rule("otherIncomeExpense", r"^Interest and other"),
        rule("incomeBeforeTax", r"^Income (?:\(loss\) )?before (?:provision for )?(?:\(benefit from\) )?(?:income )?taxes$"),
        rule("incomeTaxExpense", r"^(?:Provision for|\(?Benefit\)? ?provision for|Income tax)"),
        rule("netIncome", r"^Net income \(loss\) attributable to Intel", r"^Net income$", r"^Net income \(loss\)$"),
        *_EPS_RULES,
    ],
    "meta": [
        rule("revenue", r"^Revenue$", r"^Total revenue$"),
        rule("costOfRevenue", r"^Cost of revenue$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("salesAndMarketing", r"^Marketing and sales$"),
        rule("generalAndAdministrative", r"^General and administrative$"),
        rule("totalCostsAndExpenses", r"^Total costs and expenses$"),
        rule("operatingIncome", r"^Income from operations$"),
        rule("otherIncomeExpense", r"^Interest and other income.*net$"),
        rule("incomeBeforeTax", r"^Income before provision for income taxes$"),
        rule("incomeTaxExpense", r"^Provision for income taxes$"),
        rule("netIncome", r"^Net income$"),
        *_EPS_RULES,
    ],
    "microsoft": [
        rule("revenue", r"^Total revenue$"),
        rule("costOfRevenue", r"^Total cost of revenue$"),
        rule("grossProfit", r"^Gross margin$", r"^Gross profit$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("salesAndMarketing", r"^Sales and marketing$"),
        rule("generalAndAdministrative", r"^General and administrative$"),
        rule("operatingIncome", r"^Operating income$", r"^Income from operations$"),
        rule("otherIncomeExpense", r"^Other income(?: \(expense\))?,?\s*net$"),
        rule("incomeBeforeTax", r"^Income before income taxes$"),
        rule("incomeTaxExpense", r"^Provision for income taxes$", r"^Income tax (?:expense|provision)$"),
        rule("netIncome", r"^Net income$"),
        *_EPS_RULES,
    ],
    "nvidia": [
        rule("revenue", r"^Revenue$"),
        rule("costOfRevenue", r"^Cost of revenue$"),
        rule("grossProfit", r"^Gross profit$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("sga", r"^Sales, general and administrative$"),
        rule("totalOperatingExpenses", r"^Total operating expenses$"),
        rule("operatingIncome", r"^(?:Income from operations|Operating income)$"),
        rule("otherIncomeExpense", r"^Total other income(?:.*net)?$", r"^Total other income \(expense\)$"),
        rule("incomeBeforeTax", r"^Income before income tax$"),
        rule("incomeTaxExpense", r"^Income tax expense(?: \(benefit\))?$"),
        rule("netIncome", r"^Net income$"),
        *_EPS_RULES,
    ],
    "palantir": [
        rule("revenue", r"^Revenue$"),
        rule("costOfRevenue", r"^Cost of revenue$"),
        rule("grossProfit", r"^Gross profit$"),
        rule("salesAndMarketing", r"^Sales and marketing$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("generalAndAdministrative", r"^General and administrative$"),
        rule("totalOperatingExpenses", r"^Total operating expenses$"),
        rule("operatingIncome", r"^(?:Income|Loss|Income \(loss\)) from operations$"),
        rule("otherIncomeExpense", r"^Other income \(expense\),?\s*net$"),
        rule("incomeBeforeTax", r"^(?:Income|Loss|Income \(loss\)) before (?:provision for|benefit from|\(benefit from\) provision for) income taxes$"),
        rule("incomeTaxExpense", r"^Provision for \(?benefit from\)? ?income taxes$", r"^Provision for income taxes$"),
        rule("netIncome", r"^Net income \(loss\) attributable to common stockholders$", r"^Net (?:income|loss)(?: \(loss\))?$"),
        *_EPS_RULES,
    ],
    "tesla": [
        rule("revenue", r"^Total revenues$"),
        rule("costOfRevenue", r"^Total cost of revenues$"),
        rule("grossProfit", r"^Gross profit$"),
        rule("researchAndDevelopment", r"^Research and development$"),
        rule("sga", r"^Selling,?\s*general and administrative$"),
        rule("restructuringCharges", r"^Restructuring"),
        rule("totalOperatingExpenses", r"^Total operating expenses$"),
        rule("operatingIncome", r"^(?:Income|Loss) from operations$"),
        rule("interestIncome", r"^Interest income$"),
        rule("interestExpense", r"^Interest expense$"),
        rule("otherIncomeExpense", r"^Other income"),
        rule("incomeBeforeTax", r"^Income before income taxes$"),
        rule("incomeTaxExpense", r"^Provision for income taxes$"),
        rule("netIncome", r"^Net income attributable to common"),
        *_EPS_RULES,
    ],
    "tsmc": [
        rule("revenue", r"^Net sales"),
        rule("grossProfit", r"^Gross profit"),
        rule("operatingIncome", r"^Income from operations"),
        rule("incomeBeforeTax", r"^Income before tax"),
        rule("netIncome", r"^Net income"),
        rule("eps", r"^EPS"),
    ],
}

# Rows that look like income statement lines but belong elsewhere
FINANCIAL_SKIP_PATTERNS = [
    re.compile(r"^European Commission fine", re.IGNORECASE),
    re.compile(r"^Alphabet.level activities", re.IGNORECASE),
    re.compile(r"^Hedging gains", re.IGNORECASE),
]


# ----------------------------
# Balance sheets
# ----------------------------

_EQUITY = (r"^Total (?:stockholders|shareholders).?\s*equity$",)

BALANCE_SHEET_RULES: Dict[str, List[RowRule]] = {
    "alphabet": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("marketableSecurities", r"^Marketable securities$"),
        rule("totalCashAndSecurities", r"^Total cash,?\s*cash equivalents,?\s*and\s*(?:short-term\s*)?marketable securities$"),
        rule("accountsReceivable", r"^Accounts receivable,?\s*net$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("nonMarketableSecurities", r"^Non-marketable securities$", r"^Non-marketable equity securities$", r"^Non-marketable investments$"),
        rule("ppe", r"^Property and equipment,?\s*net$"),
        rule("totalAssets", r"^Total assets$"),
        rule("accountsPayable", r"^Accounts payable$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Long-term debt$", r"^Long-term notes payable$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY),
    ],
    "apple": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("marketableSecurities", r"^Marketable securities$"),
        rule("accountsReceivable", r"^Accounts receivable"),
        rule("inventories", r"^Inventories$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("totalAssets", r"^Total assets$"),
        rule("accountsPayable", r"^Accounts payable$"),
        rule("commercialPaper", r"^Commercial paper$"),
        rule("shortTermDebt", r"^Term debt$"),
        rule("longTermDebt", r"^Term debt$", nth=2),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY),
    ],
    "broadcom": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$", r"^Cash,?\s*cash equivalents"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("totalAssets", r"^Total assets$"),
        rule("shortTermDebt", r"^Short-term debt$", r"^Current portion of long-term debt$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Long-term debt$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY),
    ],
    "intel": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("shortTermInvestments", r"^Short-term investments$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("ppe", r"^Property, plant,? and equipment,? net$"),
        rule("totalAssets", r"^Total assets$"),
        rule("shortTermDebt", r"^Short-term debt$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Debt$", r"^Long-term debt$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", r"^Total Intel stockholders.?\s*equity$", *_EQUITY),
    ],
    "meta": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("marketableSecurities", r"^Marketable securities$"),
        rule("accountsReceivable", r"^Accounts receivable"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("ppe", r"^Property and equipment,?\s*net$"),
        rule("totalAssets", r"^Total assets$"),
        rule("accountsPayable", r"^Accounts payable$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Long-term debt$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY),
    ],
    "microsoft": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("shortTermInvestments", r"^Short-term investments$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("totalAssets", r"^Total assets$"),
        rule("shortTermDebt", r"^Current portion of long-term debt$", r"^Short-term debt$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Long-term debt$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY),
    ],
    "nvidia": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$", r"^Cash,?\s*cash equivalents"),
        rule("marketableSecurities", r"^Marketable securities$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("totalAssets", r"^Total assets$"),
        rule("shortTermDebt", r"^Short-term debt$", r"^Current portion of long-term debt$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Long-term debt$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", r"^(?:Total )?(?:stockholders|shareholders).?\s*equity$"),
    ],
    "palantir": [
        rule("cashAndEquivalents", r"^Cash and cash equivalents$"),
        rule("marketableSecurities", r"^Marketable securities$"),
        rule("accountsReceivable", r"^Accounts receivable"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("totalAssets", r"^Total assets$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", *_EQUITY, r"^Total equity$"),
    ],
    "tesla": [
        rule("cashAndEquivalents", r"^Cash[,\s]+cash equivalents", r"^Cash and cash equivalents$"),
        rule("accountsReceivable", r"^Accounts receivable"),
        rule("inventories", r"^Inventory$", r"^Inventories$"),
        rule("totalCurrentAssets", r"^Total current assets$"),
        rule("ppe", r"^Property,?\s*plant and equipment"),
        rule("totalAssets", r"^Total assets$"),
        rule("accountsPayable", r"^Accounts payable$"),
        rule("totalCurrentLiabilities", r"^Total current liabilities$"),
        rule("longTermDebt", r"^Debt and finance leases,?\s*net of current"),
        rule("totalLiabilities", r"^Total liabilities$"),
        rule("totalEquity", r"^Total stockholders.?\s*equity"),
    ],
}


# ----------------------------
# Cash flow statements
# ----------------------------

_OPERATING = r"^Net cash (?:provided by|from|used in|\(used in\)|provided by \(used (?:in|for)\)) ?operati(?:ng activities|ons)$"
_INVESTING = r"^Net cash\b.*?investing(?: activities)?$"
_FINANCING = r"^Net cash\b.*?financing(?: activities)?$"

CASH_FLOW_RULES: Dict[str, List[RowRule]] = {
    "alphabet": [
        rule("depreciation", r"^Depreciation of property and equipment$", r"^Depreciation and impairment of property and equipment$"),
        rule("stockBasedComp", r"^Stock-based compensation expense$", r"^Stock-based compensation$"),
        rule("operatingCF", r"^Net cash provided by operating activities$"),
        rule("capex", r"^Purchases of property and equipment$"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
    ],
    "apple": [
        rule("depreciation", r"^Depreciation and amortization$"),
        rule("stockBasedComp", r"^Share-based compensation expense$"),
        rule("operatingCF", r"^Cash generated by operating activities$"),
        rule("capex", r"^Payments for acquisition of property, plant and equipment$"),
        rule("investingCF", r"^Cash (?:generated by|used in)(?:/\(used in\))? investing activities$"),
        rule("financingCF", r"^Cash (?:generated by|used in)(?:/\(used in\))? financing activities$"),
    ],
    "broadcom": [
        rule("operatingCF", r"^Net cash provided by operating activities$"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
        rule("capex", r"^Purchases of property,?\s*plant and equipment$"),
    ],
    "intel": [
        rule("operatingCF", _OPERATING),
        rule("capex", r"^Additions to property, plant,? and equipment$"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
        rule("freeCashFlow", r"^(?:Adjusted )?free cash flow$"),
    ],
    "meta": [
        rule("operatingCF", r"^Net cash provided by operating activities$"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
        rule("capex", r"^Purchases of property and equipment"),
        rule("financeLeasePayments", r"^Principal payments on finance leases$"),
    ],
    "microsoft": [
        rule("operatingCF", r"^Net cash from operations$", r"^Net cash provided by operating activities$"),
        rule("investingCF", r"^Net cash used in investing$", _INVESTING),
        rule("financingCF", r"^Net cash used in financing$", _FINANCING),
        rule("capex", r"^Additions to property and equipment$", r"^Capital expenditure", r"^Purchases of property and equipment"),
    ],
    "nvidia": [
        rule("operatingCF", r"^Net cash provided by operating activities$"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
        rule("capex", r"^Purchases related to property and equipment and intangible assets$", r"^Purchases of property and equipment"),
    ],
    "palantir": [
        rule("operatingCF", _OPERATING),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
        rule("capex", r"^Purchases of property and equipment$"),
    ],
    "tesla": [
        rule("depreciation", r"^Depreciation,?\s*amortization and impairment$"),
        rule("stockBasedComp", r"^Stock-based compensation$"),
        rule("operatingCF", r"^Net cash\b.*?operating activities$"),
        rule("capex", r"^Capital expenditures$", r"^Purchases of property and equipment"),
        rule("investingCF", _INVESTING),
        rule("financingCF", _FINANCING),
    ],
}


# ----------------------------
# Segment revenue
# ----------------------------

SEGMENT_RULES: Dict[str, List[RowRule]] = {
    "alphabet": [
        rule("googleSearch", r"^Google Search & other$"),
        rule("youtubeAds", r"^YouTube ads$"),
        rule("googleNetwork", r"^Google Network$", r"^Google Network Members' properties$"),
        rule("googleAdvertising", r"^Google advertising$"),
        rule("googleSubscriptions", r"^Google subscriptions, platforms, and devices$", r"^Google other$"),
        rule("googleServicesTotal", r"^Google Services total$", r"^Google revenues$"),
        rule("googleCloud", r"^Google Cloud$"),
        rule("otherBets", r"^Other Bets$", r"^Other Bets revenues$"),
    ],
    "apple": [
        rule("products", r"^Products$", section=r"^Net sales"),
        rule("services", r"^Services$", section=r"^Net sales"),
    ],
    "broadcom": [
        rule("semiconductorSolutions", r"^Semiconductor solutions$"),
        rule("infrastructureSoftware", r"^Infrastructure software$"),
    ],
    "meta": [
        rule("advertising", r"^Advertising$"),
        rule("otherRevenue", r"^Other revenue$"),
        rule("familyOfApps", r"^Family of Apps$", r"^Total Family of Apps revenue$"),
        rule("realityLabs", r"^Reality Labs$"),
    ],
    "palantir": [
        rule("government", r"^Government$"),
        rule("commercial", r"^Commercial$"),
    ],
    "tesla": [
        rule("automotive", r"^Total automotive revenues?$"),
        rule("energyGenerationAndStorage", r"^Energy generation and storage(?:\s+segment\s+revenue)?$"),
        rule("servicesAndOther", r"^Services and other$"),
    ],
    # Narrative press releases: patterns match the bold segment headings
    "nvidia": [
        rule("dataCenter", r"^Data Center"),
        rule("gaming", r"^Gaming"),
        rule("professionalVisualization", r"^Professional Visualization"),
        rule("automotive", r"^Automotive"),
        rule("oem", r"^OEM"),
    ],
}

SEGMENT_TABLE_TEXTS: Dict[str, Tuple[str, ...]] = {
    "alphabet": ("Google Search", "Total revenues"),
    "broadcom": ("Semiconductor solutions", "Infrastructure software"),
    "meta": ("Family of Apps", "Reality Labs"),
    "palantir": ("Government", "Commercial", "Total revenue"),
    "tesla": ("Automotive sales", "Total revenues"),
}

# Rows that add up other segment rows; left out of segment sums
SEGMENT_SUBTOTAL_KEYS: Dict[str, Tuple[str, ...]] = {
    "alphabet": ("googleAdvertising", "googleServicesTotal"),
    "meta": ("advertising", "otherRevenue"),
}


# ----------------------------
# Segment profit (revenue and operating income per segment)
# ----------------------------

_REVENUE_SECTION = r"^(?:Revenues|Net revenue|Operating segment revenue|Revenue)\s*(?:\(loss\))?:?$"
_INCOME_SECTION = r"^Operating income\s*(?:\(loss\))?:?$"

ALPHABET_SEGMENT_PROFIT_RULES: List[RowRule] = [
    rule("googleServices.revenue", r"^Google Services$", section=_REVENUE_SECTION),
    rule("googleCloud.revenue", r"^Google Cloud$", section=_REVENUE_SECTION),
    rule("otherBets.revenue", r"^Other Bets$", section=_REVENUE_SECTION),
    rule("googleServices.operatingIncome", r"^Google Services$", section=_INCOME_SECTION),
    rule("googleCloud.operatingIncome", r"^Google Cloud$", section=_INCOME_SECTION),
    rule("otherBets.operatingIncome", r"^Other Bets$", section=_INCOME_SECTION),
    rule("alphabetLevelActivities.operatingIncome", r"^Corporate costs,?\s*unallocated$", r"^Alphabet-level activities$", section=_INCOME_SECTION),
    rule("total.operatingIncome", r"^Total income from operations$", section=_INCOME_SECTION),
]

# Before Google Services was split out the segment was reported as "Google"
ALPHABET_SEGMENT_PROFIT_RULES_GOOGLE = [
    rule("googleServices.revenue", r"^Google$", r"^Google \(1\)$", section=_REVENUE_SECTION),
    rule("googleServices.operatingIncome", r"^Google$", r"^Google \(1\)$", section=_INCOME_SECTION),
] + ALPHABET_SEGMENT_PROFIT_RULES

META_SEGMENT_PROFIT_RULES: List[RowRule] = [
    rule("familyOfApps.revenue", r"^Family of Apps$", section=r"^Revenue:?$"),
    rule("realityLabs.revenue", r"^Reality Labs$", section=r"^Revenue:?$"),
    rule("familyOfApps.operatingIncome", r"^Family of Apps$", section=r"^Income \(loss\) from operations:?$"),
    rule("realityLabs.operatingIncome", r"^Reality Labs$", section=r"^Income \(loss\) from operations:?$"),
]


@dataclass(frozen=True)
class SectionGroup:
    """A group header row whose subtotal belongs to `key`; matching sub-rows are skipped."""
    header: re.Pattern
    key: str
    sub_rows: Optional[re.Pattern] = None


@dataclass(frozen=True)
class SectionTableSpec:
    """Segment table laid out as a revenue section followed by an operating income section."""
    revenue_section: re.Pattern
    income_section: re.Pattern
    end_section: re.Pattern
    segments: Tuple[RowRule, ...]
    groups: Tuple[SectionGroup, ...] = ()


def _segments(*pairs: Tuple[str, str]) -> Tuple[RowRule, ...]:
    return tuple(rule(key, pattern) for key, pattern in pairs)


_INTEL_SECTIONS = dict(
    revenue_section=re.compile(r"^(?:Operating segment revenue|Net revenue)\s*:", re.IGNORECASE),
    income_section=re.compile(r"^Operating income(?: \(loss\))?\s*:?$", re.IGNORECASE),
    end_section=re.compile(r"^Total (?:net revenue|operating segment revenue|operating income)", re.IGNORECASE),
)

INTEL_SECTION_SPECS: Dict[str, SectionTableSpec] = {
    # FY2020-FY2021: DCG / IOTG / Mobileye / NSG / PSG / CCG
    "era1": SectionTableSpec(
        segments=_segments(
            ("dcg", r"^Data Center Group$"),
            ("iotg", r"^IOTG$"),
            ("mobileye", r"^Mobileye$"),
            ("nsg", r"^Non-Volatile Memory"),
            ("psg", r"^Programmable Solutions"),
            ("ccg", r"^Client Computing Group$"),
            ("allOther", r"^All other$"),
        ),
        groups=(
            SectionGroup(re.compile(r"^Client Computing Group$", re.IGNORECASE), "ccg",
                         re.compile(r"^(?:Platform|Adjacent)$", re.IGNORECASE)),
            SectionGroup(re.compile(r"^Internet of Things$", re.IGNORECASE), "iot"),
        ),
        **_INTEL_SECTIONS,
    ),
    # FY2022-FY2023: CCG / DCAI / NEX / AXG / Mobileye / IFS
    "era2": SectionTableSpec(
        segments=_segments(
            ("dcai", r"^(?:Datacenter and AI|Data Center and AI)$"),
            ("nex", r"^Network and Edge$"),
            ("axg", r"^Accelerated Computing"),
            ("mobileye", r"^Mobileye$"),
            ("ifs", r"^Intel Foundry Services$"),
            ("ccg", r"^Client Computing(?: Group)?$"),
            ("allOther", r"^All other$"),
        ),
        groups=(
            SectionGroup(re.compile(r"^Client Computing$", re.IGNORECASE), "ccg",
                         re.compile(r"^(?:Desktop|Notebook|Other)$", re.IGNORECASE)),
        ),
        **_INTEL_SECTIONS,
    ),
    # FY2024 Q1-Q3: Intel Products / Intel Foundry / All other
    "era3": SectionTableSpec(
        segments=_segments(
            ("ccg", r"^Client Computing Group$"),
            ("dcai", r"^Data Center and AI$"),
            ("nex", r"^Network and Edge$"),
            ("foundry", r"^Intel Foundry$"),
            ("altera", r"^Altera$"),
            ("mobileye", r"^Mobileye$"),
            ("otherSub", r"^Other$"),
            ("allOther", r"^Total all other (?:revenue|operating income)"),
            ("intelProducts", r"^Total Intel Products"),
        ),
        **_INTEL_SECTIONS,
    ),
}


@dataclass(frozen=True)
class MatrixTableSpec:
    """Segments as columns, metrics as rows."""
    header_texts: Tuple[str, ...]             # a header row must contain all of these
    columns: Tuple[RowRule, ...]             # header cell -> segment key; keys starting "_" are dropped
    metrics: Tuple[RowRule, ...]             # row label -> metric key


INTEL_MATRIX_SPEC = MatrixTableSpec(
    header_texts=("CCG", "DCAI", "Intel Foundry"),
    columns=_segments(
        ("ccg", r"^CCG$"),
        ("dcai", r"^DCAI$"),
        ("nex", r"^NEX$"),
        ("_totalIntelProducts", r"^Total Intel Products$"),
        ("foundry", r"^Intel Foundry$"),
        ("allOther", r"^All Other$"),
        ("_corporateUnallocated", r"^Corporate Unallocated"),
        ("_intersegmentEliminations", r"^Intersegment Eliminations$"),
        ("_totalConsolidated", r"^Total Consolidated$"),
    ),
    metrics=_segments(
        ("revenue", r"^(?:Net )?Revenue$"),
        ("operatingIncome", r"^Operating income"),
    ),
)


@dataclass(frozen=True)
class PdfSegmentSpec:
    """Segment note in PDF text: two segment columns and the consolidated total."""
    columns: Tuple[Tuple[str, str], ...]    # (segment key, heading text used to detect order)
    note_re: re.Pattern = re.compile(r"^\s*Note \d+[\s\-–—]+Segment Information", re.IGNORECASE | re.MULTILINE)


NVIDIA_PDF_SEGMENTS = PdfSegmentSpec(
    columns=(("computeAndNetworking", "Compute"), ("graphics", "Graphics")),
)

# Microsoft reports segments as rows of a "Segment revenue and operating income" note
MICROSOFT_SEGMENT_ROWS = _segments(
    ("productivityAndBusiness", r"Productivity and Business"),
    ("intelligentCloud", r"Intelligent Cloud"),
    ("morePersonalComputing", r"More Personal Computing"),
)

# Press release "SEGMENT RESULTS" table, older layout: Revenue / Operating Income sections
MICROSOFT_SECTION_SPEC = SectionTableSpec(
    revenue_section=re.compile(r"^Revenue$", re.IGNORECASE),
    income_section=re.compile(r"^Operating Income$", re.IGNORECASE),
    end_section=re.compile(r"^Total$", re.IGNORECASE),
    segments=MICROSOFT_SEGMENT_ROWS,
)

# Metric rows inside one segment block (Microsoft press releases, Apple 10-Q note)
SEGMENT_METRIC_RULES = _segments(
    ("revenue", r"^(?:Revenue|Net sales)$"),
    ("operatingIncome", r"^Operating income(?: \(loss\))?$"),
)
SEGMENT_BLOCK_END = re.compile(r"^Total\b|Consolidated", re.IGNORECASE)

# Apple reports geographic segments in the 10-Q "Segment Information" note
APPLE_GEOGRAPHIC_SEGMENTS = _segments(
    ("americas", r"^Americas:?$"),
    ("europe", r"^Europe:?$"),
    ("greaterChina", r"^Greater China:?$"),
    ("japan", r"^Japan:?$"),
    ("restOfAsiaPacific", r"^Rest of Asia Pacific:?$"),
)

PALANTIR_SEGMENT_PROFIT_RULES: List[RowRule] = [
    rule("government.revenue", r"^Government$", section=r"^Revenue:?$"),
    rule("commercial.revenue", r"^Commercial$", section=r"^Revenue:?$"),
    rule("government.contribution", r"^Government$", section=r"^Contribution:?$"),
    rule("commercial.contribution", r"^Commercial$", section=r"^Contribution:?$"),
]

# Tesla statement of operations: segment revenue and cost rows; gross profit is derived
_TESLA_REVENUES = r"^Revenues?:?$"
_TESLA_COSTS = r"^Cost of revenues?:?$"
TESLA_SEGMENT_PROFIT_RULES: List[RowRule] = [
    rule("automotive.revenue", r"^Total automotive revenues?$"),
    rule("automotive.costOfRevenue", r"^Total automotive cost of revenues?$"),
    rule("energyGenerationAndStorage.revenue", r"^Energy generation and storage$", section=_TESLA_REVENUES),
    rule("energyGenerationAndStorage.costOfRevenue", r"^Energy generation and storage$", section=_TESLA_COSTS),
    rule("servicesAndOther.revenue", r"^Services and other$", section=_TESLA_REVENUES),
    rule("servicesAndOther.costOfRevenue", r"^Services and other$", section=_TESLA_COSTS),
]


# ----------------------------
# Text rules (presentation slides and PDF lines)
# ----------------------------

@dataclass(frozen=True)
class TextRule:
    key: str
    pattern: re.Pattern
    scale: float = 1.0          # NT$ billion -> NT$ million is 1000


def text_rule(key: str, pattern: str, scale: float = 1.0) -> TextRule:
    return TextRule(key=key, pattern=re.compile(pattern), scale=scale)


@dataclass(frozen=True)
class TextRuleSet:
    """Regex rules applied to the first text block containing every string in block_texts."""
    block_texts: Tuple[str, ...]
    rules: Tuple[TextRule, ...]


_BN = 1000.0
_SIGNED = r"(\(?\d[\d,.]*\)?)"

# TSMC presentation slides carry their figures as hidden 1pt white text
TEXT_RULES: Dict[str, Dict[str, TextRuleSet]] = {
    "tsmc": {
        BALANCE_SHEET: TextRuleSet(
            block_texts=("Balance Sheet", "Total Assets"),
            rules=(
                text_rule("cashAndMarketable", r"Cash\s*&\s*Marketable Securities\s+([\d,]+\.\d+)", _BN),
                text_rule("accountsReceivable", r"Accounts Receivable\s+([\d,]+\.\d+)", _BN),
                text_rule("inventories", r"Inventories\s+([\d,]+\.\d+)", _BN),
                text_rule("longTermInvestments", r"Long-term Investments\s+([\d,]+\.\d+)", _BN),
                text_rule("ppe", r"Net PP&E\s+([\d,]+\.\d+)", _BN),
                text_rule("totalAssets", r"Total Assets\s+([\d,]+\.\d+)", _BN),
                text_rule("totalCurrentLiabilities", r"Current Liabilities\s+([\d,]+\.\d+)", _BN),
                text_rule("longTermDebt", r"Long-term Interest-bearing Debts?\s+([\d,]+\.\d+)", _BN),
                text_rule("totalLiabilities", r"Total Liabilities\s+([\d,]+\.\d+)", _BN),
                text_rule("totalEquity", r"Total Shareholders.?\s*Equity\s+([\d,]+\.\d+)", _BN),
                text_rule("arTurnoverDays", r"A/R Turnover Days\s+(\d+)"),
                text_rule("inventoryTurnoverDays", r"Inventory Turnover Days\s+(\d+)"),
                text_rule("currentRatio", r"Current Ratio\s*\(x\)\s+([\d.]+)"),
            ),
        ),
        CASH_FLOWS: TextRuleSet(
            block_texts=("Cash Flow", "operating activities"),
            rules=(
                text_rule("operatingCF", r"Cash from operating activities\s+" + _SIGNED, _BN),
                text_rule("capex", r"Capital expenditures\s+" + _SIGNED, _BN),
                text_rule("dividends", r"Cash dividends\s+" + _SIGNED, _BN),
                text_rule("freeCashFlow", r"Free Cash Flow\s*\*?\s+" + _SIGNED, _BN),
            ),
        ),
    },
}

# TSMC income statement footnotes
TSMC_FOOTNOTE_RULES = (
    text_rule("sharesDiluted", r"Based on ([\d,]+) million weighted average"),
    text_rule("epsADR", r"US.?([\d.]+)\s*per ADR"),
)

# TSMC reports revenue share by platform, not segment amounts
TSMC_PLATFORMS = ("HPC", "Smartphone", "IoT", "Automotive", "DCE", "Others")


# ----------------------------
# Quarter slides (statement text with one column per quarter)
# ----------------------------

@dataclass(frozen=True)
class SlideRule:
    """Numbers after the first label match, searched from the first match of `after` (skipped when absent)."""
    key: str
    label: re.Pattern
    after: Optional[re.Pattern] = None


def slide_rule(key: str, label: str, after: Optional[str] = None) -> SlideRule:
    return SlideRule(
        key=key,
        label=re.compile(label, re.IGNORECASE),
        after=re.compile(after, re.IGNORECASE) if after else None,
    )


@dataclass(frozen=True)
class SlideSpec:
    block_texts: Tuple[str, ...]   # the slide is the longest text block holding all of these
    header_end: str                # quarter labels are read before this marker
    rules: Tuple[SlideRule, ...]


_COSTS = r"COST OF REVENUES"
_OPEX = r"OPERATING EXPENSES"
_BELOW = r"INCOME FROM OPERATIONS"

# Tesla update deck: statement of operations as text, five quarters wide.
# Later rules for a key only fill columns an earlier rule left empty.
TESLA_STATEMENT_SLIDE = SlideSpec(
    block_texts=("REVENUES", "Total revenues", "Gross profit"),
    header_end="REVENUES",
    rules=(
        slide_rule("revenue", r"Total\s+revenues"),
        slide_rule("costOfRevenue", r"Total\s+cost\s+of\s+revenues", after=_COSTS),
        slide_rule("grossProfit", r"Gross\s+profit", after=_COSTS),
        slide_rule("researchAndDevelopment", r"Research\s+and\s+development", after=_OPEX),
        slide_rule("sga", r"Selling,?\s+general\s+and\s+administrative", after=_OPEX),
        slide_rule("restructuringCharges", r"Restructuring\s+and\s+other", after=_OPEX),
        slide_rule("totalOperatingExpenses", r"Total\s+operating\s+expenses", after=_OPEX),
        slide_rule("operatingIncome", _BELOW),
        slide_rule("interestIncome", r"Interest\s+income", after=_BELOW),
        slide_rule("interestExpense", r"Interest\s+expense", after=_BELOW),
        slide_rule("otherIncomeExpense", r"Other\s+income", after=_BELOW),
        slide_rule("incomeBeforeTax", r"INCOME\s+BEFORE\s+INCOME\s+TAXES", after=_BELOW),
        slide_rule("incomeTaxExpense", r"Provision\s+for\s+income\s+taxes", after=_BELOW),
        slide_rule("netIncome", r"NET\s+INCOME\s+ATTRIBUTABLE\s+TO\s+COMMON\s+STOCKHOLDERS", after=_BELOW),
        slide_rule("netIncome", r"\bNET\s+INCOME\b(?!\s+(?:ATTRIBUTABLE|USED|PER))", after=r"INCOME\s+BEFORE\s+INCOME\s+TAXES"),
        slide_rule("epsBasic", r"\bBasic\b", after=r"Net\s+income\s+per\s+share"),
        slide_rule("epsDiluted", r"\bDiluted\b", after=r"Net\s+income\s+per\s+share"),
        slide_rule("sharesBasic", r"\bBasic\b", after=r"Weighted\s+average\s+shares"),
        slide_rule("sharesDiluted", r"\bDiluted\b", after=r"Weighted\s+average\s+shares"),
    ),
)


# ----------------------------
# PDF line rules
# ----------------------------

@dataclass(frozen=True)
class LineRule:
    """First number on a PDF text line matching pattern; exclude drops look-alike lines."""
    key: str
    pattern: re.Pattern
    exclude: Optional[re.Pattern] = None


# Microsoft equity investments, from the investments note or the balance sheet line.
# Later layouts wrap "Total equity" / "investments" over two lines.
MICROSOFT_INVESTMENT_LINES = (
    LineRule("equityInvestments", re.compile(r"Total\s+equity\s+investments", re.IGNORECASE)),
    LineRule("equityInvestments", re.compile(r"^\s*Equity investments\s"),
             exclude=re.compile(r"Total|Note|note|See|see|Level|Other")),
)

# Balance sheet keys copied into the investments domain
INVESTMENT_KEYS = (
    "cashAndEquivalents",
    "marketableSecurities",
    "shortTermInvestments",
    "cashAndMarketable",
    "nonMarketableSecurities",
    "longTermInvestments",
    "equityInvestments",
    "totalCashAndSecurities",
    "longTermDebt",
)


def get_rules(table: Dict[str, List[RowRule]], company: str) -> List[RowRule]:
    """Rules for a company; an empty list when the company has none for that table."""
    return list(table.get(company.lower(), []))


def is_financial_skip_row(label: str) -> bool:
    return any(p.search(label) for p in FINANCIAL_SKIP_PATTERNS)
