# tests/test_query_analyzer.py
from app.core.query_analyzer import (
    QueryAnalyzer, WARN_GROUP_BY, WARN_JOINS_WITHOUT_FILTERS, WARN_LARGE_AGGREGATION, WARN_MULTIPLE_SELECTS,
    WARN_NO_LIMIT, WARN_NO_WHERE, WARN_TIME_RANGE, WARN_WILDCARD, missing_index_warning,
)
from app.models.intent import (
    AggregationType, IntentCategory, PatternFilter, QueryIntent, RangeFilter, TimeRange,
)
from app.models.query import QueryOptions, QueryPlan


def _analyze(builder, analyzer, intent, context, options=None):
    plan = builder.build_query(intent, context, options)
    return plan, analyzer.analyze(plan, intent)


def test_scoped_count_only_warns_about_aggregation(builder, analyzer, user_context):
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts",), aggregation_type=AggregationType.COUNT)
    _, analysis = _analyze(builder, analyzer, intent, user_context)

    assert analysis.warnings == [WARN_LARGE_AGGREGATION]
    assert analysis.estimated_rows == 1


def test_unscoped_count_has_no_where(builder, analyzer, admin_context):
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts",), aggregation_type=AggregationType.COUNT)
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_NO_WHERE, WARN_LARGE_AGGREGATION]


def test_row_query_without_where_or_limit(builder, analyzer, admin_context):
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts",))
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_NO_WHERE, WARN_NO_LIMIT]
    assert analysis.estimated_rows == 1000


def test_filter_on_unindexed_column(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.ACCOUNT_QUERY,
        tables=("accounts",),
        filters=(RangeFilter(column="accounts.engagement_score", max=40, inclusive=False),),
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_NO_LIMIT, missing_index_warning("accounts")]
    assert analysis.estimated_rows == 100


def test_reduction_factor_is_configurable(builder, catalog, admin_context):
    intent = QueryIntent(
        category=IntentCategory.ACCOUNT_QUERY,
        tables=("accounts",),
        filters=(RangeFilter(column="accounts.engagement_score", max=40, inclusive=False),),
    )
    plan = builder.build_query(intent, admin_context)
    assert QueryAnalyzer(catalog, filter_factor=0.5).analyze(plan, intent).estimated_rows == 250


def test_joins_without_filters(builder, analyzer, admin_context):
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts", "accounts", "sub_accounts"))
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_NO_WHERE, WARN_NO_LIMIT, WARN_JOINS_WITHOUT_FILTERS]
    assert analysis.estimated_rows == 1500


def test_limit_caps_estimate(builder, analyzer, admin_context):
    intent = QueryIntent(category=IntentCategory.CONTACT_QUERY, tables=("contacts", "accounts", "sub_accounts"))
    _, analysis = _analyze(builder, analyzer, intent, admin_context, QueryOptions(limit=10))

    assert WARN_NO_LIMIT not in analysis.warnings
    assert analysis.estimated_rows == 10


def test_wildcard_pattern(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.CONTACT_QUERY,
        tables=("contacts",),
        filters=(PatternFilter(column="contacts.name", pattern="Acme"),),
        limit=20,
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_WILDCARD, missing_index_warning("contacts")]
    assert analysis.estimated_rows == 20


def test_union_sums_table_sizes(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.QUOTATION_QUERY,
        tables=("quotes_mbcb", "quotes_signages", "quotes_paint"),
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert analysis.warnings == [WARN_NO_WHERE, WARN_NO_LIMIT, WARN_MULTIPLE_SELECTS]
    assert analysis.estimated_rows == 650


def test_union_scoping_flags_unindexed_owner_columns(builder, analyzer, user_context):
    intent = QueryIntent(
        category=IntentCategory.QUOTATION_QUERY,
        tables=("quotes_mbcb", "quotes_signages", "quotes_paint"),
        aggregation_type=AggregationType.SUM,
        aggregation_column="quotes_mbcb.final_total_cost",
        time_range=TimeRange(relative="this quarter"),
    )
    _, analysis = _analyze(builder, analyzer, intent, user_context)

    assert analysis.warnings == [
        WARN_LARGE_AGGREGATION,
        WARN_MULTIPLE_SELECTS,
        missing_index_warning("quotes_signages"),
        missing_index_warning("quotes_paint"),
    ]
    assert analysis.estimated_rows == 1


def test_time_range_on_text_column(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.QUOTATION_QUERY,
        tables=("quotes_mbcb",),
        time_range=TimeRange(relative="last month", column="quotes_mbcb.date"),
        limit=10,
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert WARN_TIME_RANGE in analysis.warnings
    assert missing_index_warning("quotes_mbcb") in analysis.warnings


def test_group_by_across_tables(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.LEAD_QUERY,
        tables=("leads", "accounts"),
        aggregation_type=AggregationType.COUNT,
        group_by=("accounts.company_tag",),
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert WARN_GROUP_BY in analysis.warnings
    assert analysis.estimated_rows == 20


def test_account_scoping_counts_as_subquery(builder, analyzer, user_context):
    intent = QueryIntent(category=IntentCategory.ACCOUNT_QUERY, tables=("accounts",), limit=10)
    _, analysis = _analyze(builder, analyzer, intent, user_context)

    assert analysis.warnings == [WARN_MULTIPLE_SELECTS]


def test_unknown_tables_get_unreduced_estimate(analyzer):
    plan = QueryPlan(sql="SELECT *\nFROM ghosts", affected_tables=("ghosts",), explanation="", primary_table="ghosts")
    analysis = analyzer.analyze(plan)

    assert analysis.estimated_rows == 1000
    assert analysis.warnings[:2] == [WARN_NO_WHERE, WARN_NO_LIMIT]


def test_union_without_joins_is_not_a_join_warning(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.QUOTATION_QUERY,
        tables=("quotes_mbcb", "quotes_signages", "quotes_paint"),
    )
    plan, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert plan.joins == ()
    assert WARN_JOINS_WITHOUT_FILTERS not in analysis.warnings


def test_union_group_by_counts_as_multiple_tables(builder, analyzer, admin_context):
    intent = QueryIntent(
        category=IntentCategory.QUOTATION_QUERY,
        tables=("quotes_mbcb", "quotes_paint"),
        aggregation_type=AggregationType.COUNT,
        group_by=("quotes_mbcb.status",),
    )
    _, analysis = _analyze(builder, analyzer, intent, admin_context)

    assert WARN_GROUP_BY in analysis.warnings


def test_ownership_subquery_is_not_a_grouped_join(builder, analyzer, user_context):
    intent = QueryIntent(
        category=IntentCategory.ACCOUNT_QUERY,
        tables=("accounts",),
        aggregation_type=AggregationType.COUNT,
        group_by=("accounts.company_tag",),
    )
    plan, analysis = _analyze(builder, analyzer, intent, user_context)

    assert plan.affected_tables == ("accounts", "sub_accounts")
    assert analysis.warnings == [WARN_LARGE_AGGREGATION, WARN_MULTIPLE_SELECTS]
