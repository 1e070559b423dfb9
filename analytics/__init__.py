"""Pure forecasting helpers: week bucketing, categorisation, reconciliation and aggregation."""

from analytics.categorize import (
    DEFAULT_CATEGORY_RULES,
    CategoryRule,
    categorize_transaction,
    categorize_transactions,
    category_rules_table,
    normalize_description,
    suggest_categories,
    summarize_categories,
)
from analytics.duplicates import (
    ImportPartition,
    SimilarityGroup,
    SimilarityOptions,
    are_transactions_similar,
    find_similar_transaction_groups,
    partition_new_transactions,
)
from analytics.forecasting import (
    ar_scenario_analysis,
    cashflows_to_frame,
    compute_weekly_cashflows,
    estimate_accuracy,
    minimum_balance_week,
)
from analytics.receivables import (
    ARConfig,
    CollectionAssumptions,
    apply_collection_assumptions,
    ar_contribution_summary,
    build_ar_estimates,
    filter_ar_estimates,
    summarize_receivables,
)
from analytics.recurring import EstimateValidationError, expand_estimate, expand_estimates, validate_estimate
from analytics.weeks import WeekCalendar, build_week_calendar, is_date_in_week

__all__ = [
    "DEFAULT_CATEGORY_RULES",
    "CategoryRule",
    "categorize_transaction",
    "categorize_transactions",
    "category_rules_table",
    "normalize_description",
    "suggest_categories",
    "summarize_categories",
    "ImportPartition",
    "SimilarityGroup",
    "SimilarityOptions",
    "are_transactions_similar",
    "find_similar_transaction_groups",
    "partition_new_transactions",
    "ar_scenario_analysis",
    "cashflows_to_frame",
    "compute_weekly_cashflows",
    "estimate_accuracy",
    "minimum_balance_week",
    "ARConfig",
    "CollectionAssumptions",
    "apply_collection_assumptions",
    "ar_contribution_summary",
    "build_ar_estimates",
    "filter_ar_estimates",
    "summarize_receivables",
    "EstimateValidationError",
    "expand_estimate",
    "expand_estimates",
    "validate_estimate",
    "WeekCalendar",
    "build_week_calendar",
    "is_date_in_week",
]
