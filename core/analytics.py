# =============================================================================
# core/analytics.py  -  Opportunity analytics engine
# =============================================================================
#
# Pure functions over lists of OpportunityRecord.  Nothing here touches the
# backend: handlers fetch the records, these functions roll them up.
#
# Rules every function follows:
#   - Empty input never raises.  Counts and rates default to 0 and averages
#     never divide by zero.
#   - Percentages and averages are rounded half up to whole numbers, so 2/3
#     becomes 67 and 0.5 becomes 1.
#   - "today" is a parameter wherever the result depends on the calendar,
#     so the same records always produce the same report in tests.
#
# Sections:
#   1. Helpers
#   2. Insights report (core metrics, stage/owner/industry rollups,
#      pipeline health, conversion rates, strategic recommendations)
#   3. Similarity search (criteria, scoring, pattern analysis)
#   4. Enrichment (market intelligence, insights, best practices,
#      competitive intelligence)
# =============================================================================

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional
import calendar
import math

from core.models import (
    IndustryTrend,
    OpportunityRecord,
    OwnerPerformance,
    PipelineBucket,
    PipelineCategories,
    PipelineHealth,
    StageConversion,
    StageSummary,
    StrategicRecommendation,
)
from core.query_builder import QueryBuilder

UNKNOWN = "Unknown"


# =============================================================================
# 1. Helpers
# =============================================================================
def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def percent(part: float, whole: float) -> int:
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def average(total: float, count: int) -> int:
    if not count:
        return 0
    return round_half_up(total / count)


def months_before(day: date, months: int) -> date:
    """Same day-of-month `months` earlier, clamped to the month's length."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _first_of_month_after(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    return date(year, month + 1, 1)


def _total_amount(records: Iterable[OpportunityRecord]) -> float:
    return sum(r.amount_or_zero for r in records)


def format_money(value: float) -> str:
    return f"${value:,.0f}"


def _top_counts(values: Iterable[Optional[str]], limit: int) -> list[tuple[str, int]]:
    # Counter.most_common keeps first-seen order among equal counts.
    return Counter(v for v in values if v).most_common(limit)


# =============================================================================
# 2. Insights report
# =============================================================================
INSIGHT_FIELDS = [
    "Id", "Name", "Amount", "StageName", "Probability", "CloseDate", "IsWon", "IsClosed",
    "Account.Name", "Account.Industry", "Account.NumberOfEmployees",
    "Owner.Name", "LeadSource", "Type", "CreatedDate",
]

INSIGHT_LIMIT = 1000


@dataclass
class InsightsOptions:
    include_stage_analysis: bool = True
    include_owner_performance: bool = True
    include_industry_trends: bool = True
    include_pipeline_health: bool = True
    include_conversion_rates: bool = True


def build_insights_query(
    timeframe_filter: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    industry: Optional[str] = None,
    owner: Optional[str] = None,
) -> str:
    return (
        QueryBuilder("Opportunity")
        .select(INSIGHT_FIELDS)
        .where(timeframe_filter)
        .where_range("Amount", min_amount, max_amount)
        .where_equals("Account.Industry", industry)
        .where_equals("Owner.Name", owner)
        .order_by("CloseDate DESC")
        .limit(INSIGHT_LIMIT)
        .build()
    )


def filter_summary(
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    industry: Optional[str] = None,
    owner: Optional[str] = None,
) -> list[str]:
    filters = []
    if min_amount is not None:
        filters.append(f"Min Amount: {format_money(min_amount)}")
    if max_amount is not None:
        filters.append(f"Max Amount: {format_money(max_amount)}")
    if industry:
        filters.append(f"Industry: {industry}")
    if owner:
        filters.append(f"Owner: {owner}")
    return filters or ["No additional filters"]


def core_metrics(records: list[OpportunityRecord]) -> dict:
    """Headline numbers for a record set.

    win_rate is won / (won + lost): open deals do not count against it.
    """
    won = [r for r in records if r.is_won]
    lost = [r for r in records if r.is_lost]
    open_ = [r for r in records if not r.is_closed]

    total_value = _total_amount(records)
    won_value = _total_amount(won)
    open_value = _total_amount(open_)

    return {
        "total_opportunities": len(records),
        "total_value": total_value,
        "average_deal_size": average(total_value, len(records)),
        "won_deals": {
            "count": len(won),
            "value": won_value,
            "average_size": average(won_value, len(won)),
        },
        "lost_deals": {
            "count": len(lost),
            "percentage": percent(len(lost), len(records)),
        },
        "open_pipeline": {
            "count": len(open_),
            "value": open_value,
            "average_size": average(open_value, len(open_)),
        },
        "win_rate": percent(len(won), len(won) + len(lost)),
    }


def _group(records: list[OpportunityRecord], key) -> dict[str, list[OpportunityRecord]]:
    groups: dict[str, list[OpportunityRecord]] = {}
    for record in records:
        groups.setdefault(key(record) or UNKNOWN, []).append(record)
    return groups


def stage_analysis(records: list[OpportunityRecord]) -> dict:
    stages = []
    for stage, members in _group(records, lambda r: r.stage).items():
        value = _total_amount(members)
        stages.append(StageSummary(
            stage=stage,
            count=len(members),
            value=value,
            average_size=average(value, len(members)),
            average_probability=average(sum(r.probability or 0 for r in members), len(members)),
            percentage=percent(len(members), len(records)),
        ))
    stages.sort(key=lambda s: s.value, reverse=True)

    insights = []
    if stages:
        top = stages[0]
        insights.append(f"{top.stage} represents {top.percentage}% of opportunities")
    low_probability = [s for s in stages if s.average_probability < 25]
    if low_probability:
        insights.append(f"{len(low_probability)} stages have low average probability (<25%)")

    return {"stages": stages, "insights": insights}


def owner_performance(records: list[OpportunityRecord]) -> dict:
    performers = []
    for owner, members in _group(records, lambda r: r.owner_name).items():
        won = [r for r in members if r.is_won]
        lost = [r for r in members if r.is_lost]
        open_ = [r for r in members if not r.is_won and not r.is_lost]
        total_value = _total_amount(members)
        performers.append(OwnerPerformance(
            owner=owner,
            total_opportunities=len(members),
            won_deals=len(won),
            lost_deals=len(lost),
            open_deals=len(open_),
            win_rate=percent(len(won), len(won) + len(lost)),
            total_value=total_value,
            won_value=_total_amount(won),
            open_value=_total_amount(open_),
            average_deal_size=average(total_value, len(members)),
        ))
    performers.sort(key=lambda p: p.won_value, reverse=True)

    insights = []
    if performers:
        leader = performers[0]
        insights.append(f"{leader.owner} leads with {format_money(leader.won_value)} in won deals")
        team_average = sum(p.win_rate for p in performers) / len(performers)
        insights.append(f"Average team win rate: {round_half_up(team_average)}%")

    return {"performers": performers, "insights": insights}


def industry_trends(records: list[OpportunityRecord]) -> dict:
    industries = []
    for industry, members in _group(records, lambda r: r.industry).items():
        won = [r for r in members if r.is_won]
        total_value = _total_amount(members)
        industries.append(IndustryTrend(
            industry=industry,
            total_opportunities=len(members),
            won_deals=len(won),
            win_rate=percent(len(won), len(members)),
            total_value=total_value,
            won_value=_total_amount(won),
            average_deal_size=average(total_value, len(members)),
            market_share=percent(len(members), len(records)),
        ))
    industries.sort(key=lambda i: i.total_value, reverse=True)

    insights = []
    if industries:
        top = industries[0]
        insights.append(f"{top.industry} is the largest segment ({top.market_share}% of deals)")
        strong = [i for i in industries if i.win_rate > 50]
        if strong:
            insights.append(f"{len(strong)} industries have >50% win rates")

    return {"industries": industries, "insights": insights}


def _bucket(records: list[OpportunityRecord]) -> PipelineBucket:
    return PipelineBucket(count=len(records), value=_total_amount(records))


def pipeline_health_score(overdue: int, this_month: int, total_open: int) -> int:
    """100, minus up to 30 for overdue deals, plus up to 10 for deals closing this month."""
    if total_open == 0:
        return 100
    score = 100 - overdue / total_open * 30 + this_month / total_open * 10
    return max(0, min(100, round_half_up(score)))


def pipeline_health(records: list[OpportunityRecord], today: Optional[date] = None) -> PipelineHealth:
    """Bucket open deals by how soon they are due to close.

    Deals without a close date are counted as open but land in no bucket.
    """
    today = today or date.today()
    next_month = _first_of_month_after(today, 1)
    month_after = _first_of_month_after(today, 2)

    open_ = [r for r in records if not r.is_closed]
    dated = [(r, r.close_date) for r in open_ if r.close_date is not None]

    overdue = [r for r, d in dated if d < today]
    this_month = [r for r, d in dated if d >= today and (d.year, d.month) == (today.year, today.month)]
    upcoming = [r for r, d in dated if next_month <= d < month_after]
    future = [r for r, d in dated if d >= month_after]

    return PipelineHealth(
        total_open_opportunities=len(open_),
        total_open_value=_total_amount(open_),
        categories=PipelineCategories(
            overdue=_bucket(overdue),
            this_month=_bucket(this_month),
            next_month=_bucket(upcoming),
            future=_bucket(future),
        ),
        health_score=pipeline_health_score(len(overdue), len(this_month), len(open_)),
    )


def conversion_rates(records: list[OpportunityRecord]) -> dict:
    conversions = []
    for stage, members in _group(records, lambda r: r.stage).items():
        converted = sum(1 for r in members if r.is_won)
        conversions.append(StageConversion(
            stage=stage,
            entered=len(members),
            converted=converted,
            conversion_rate=percent(converted, len(members)),
        ))
    conversions.sort(key=lambda c: c.conversion_rate, reverse=True)

    return {
        "stage_conversions": conversions,
        "overall_conversion_rate": percent(sum(1 for r in records if r.is_won), len(records)),
    }


def strategic_recommendations(
    metrics: Mapping[str, Any],
    health: Optional[PipelineHealth] = None,
    performers: Optional[list[OwnerPerformance]] = None,
) -> list[StrategicRecommendation]:
    """Apply the fixed recommendation rules, in order.

    Rules are independent: any combination may fire.  The pipeline and team
    rules only run when those sections were computed.
    """
    recommendations = []

    win_rate = metrics["win_rate"]
    if win_rate < 30:
        recommendations.append(StrategicRecommendation(
            category="Performance",
            priority="high",
            issue=f"Low win rate ({win_rate}%)",
            recommendation="Focus on qualification criteria and competitive differentiation",
            impact="Improve deal quality and close rates",
        ))

    if health is not None and health.categories.overdue.count > 0:
        recommendations.append(StrategicRecommendation(
            category="Pipeline Management",
            priority="high",
            issue=f"{health.categories.overdue.count} overdue opportunities",
            recommendation="Review and update overdue opportunities, reassess close dates",
            impact="Improve forecast accuracy and pipeline hygiene",
        ))

    if performers and len(performers) > 1:
        leader = performers[0]
        team_average = sum(p.win_rate for p in performers) / len(performers)
        if leader.win_rate > team_average + 20:
            recommendations.append(StrategicRecommendation(
                category="Team Development",
                priority="medium",
                issue="Significant performance variation across team members",
                recommendation=f"Share best practices from {leader.owner} ({leader.win_rate}% win rate)",
                impact="Elevate overall team performance",
            ))

    return recommendations


def build_insights_report(
    records: list[OpportunityRecord],
    options: Optional[InsightsOptions] = None,
    today: Optional[date] = None,
) -> dict:
    """Core metrics, each requested rollup, and the strategic recommendations."""
    options = options or InsightsOptions()
    report: dict[str, Any] = {"core_metrics": core_metrics(records)}

    if options.include_stage_analysis:
        report["stage_analysis"] = stage_analysis(records)
    if options.include_owner_performance:
        report["owner_performance"] = owner_performance(records)
    if options.include_industry_trends:
        report["industry_trends"] = industry_trends(records)
    if options.include_pipeline_health:
        report["pipeline_health"] = pipeline_health(records, today)
    if options.include_conversion_rates:
        report["conversion_rates"] = conversion_rates(records)

    owners = report.get("owner_performance")
    report["strategic_recommendations"] = strategic_recommendations(
        report["core_metrics"],
        report.get("pipeline_health"),
        owners["performers"] if owners else None,
    )
    return report


# =============================================================================
# 3. Similarity search
# =============================================================================
REFERENCE_FIELDS = [
    "Id", "Name", "Amount", "StageName", "Probability", "CloseDate", "Type",
    "Account.Name", "Account.Industry", "Account.NumberOfEmployees",
    "Owner.Name", "LeadSource",
]

SIMILAR_FIELDS = [
    "Id", "Name", "Amount", "StageName", "Probability", "CloseDate", "IsWon", "Type",
    "Account.Name", "Account.Industry", "Account.NumberOfEmployees",
    "Owner.Name", "LeadSource", "CreatedDate",
]

DEFAULT_SIMILAR_LIMIT = 50

# Factor weights for similarity_score().  They sum to 100.
SIMILARITY_WEIGHTS = {
    "industry": 30,
    "amount": 25,
    "stage": 20,
    "type": 15,
    "lead_source": 10,
}


def build_similar_search_criteria(
    reference: Optional[OpportunityRecord] = None,
    industry: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    stage: Optional[str] = None,
    is_won: Optional[bool] = None,
    close_date_start: Optional[str] = None,
    close_date_end: Optional[str] = None,
) -> dict:
    """Search criteria from a reference deal and/or explicit filters.

    With a reference, industry defaults to the reference's, the amount band
    is 0.3x..3x of its amount (floor/ceil) unless given explicitly, and its
    type is recorded.  Explicit values always win.
    """
    criteria: dict[str, Any] = {}

    if reference is not None:
        industry = industry or reference.industry
        if reference.amount:
            min_amount = min_amount or math.floor(reference.amount * 0.3)
            max_amount = max_amount or math.ceil(reference.amount * 3)

    if industry:
        criteria["industry"] = industry
    if min_amount:
        criteria["min_amount"] = min_amount
    if max_amount:
        criteria["max_amount"] = max_amount
    if stage:
        criteria["stage"] = stage
    if reference is not None and reference.type:
        criteria["type"] = reference.type
    if is_won is not None:
        criteria["is_won"] = is_won
    if close_date_start:
        criteria["close_date_start"] = close_date_start
    if close_date_end:
        criteria["close_date_end"] = close_date_end
    return criteria


def build_similar_query(criteria: Mapping[str, Any], limit: int = DEFAULT_SIMILAR_LIMIT) -> str:
    # "type" only feeds similarity_score(); it is not a filter.
    return (
        QueryBuilder("Opportunity")
        .select(SIMILAR_FIELDS)
        .where_equals("Account.Industry", criteria.get("industry"))
        .where_range("Amount", criteria.get("min_amount"), criteria.get("max_amount"))
        .where_equals("StageName", criteria.get("stage"))
        .where_boolean("IsWon", criteria.get("is_won"))
        .where_date_range("CloseDate", criteria.get("close_date_start"), criteria.get("close_date_end"))
        .order_by("CloseDate DESC", "Amount DESC")
        .limit(limit)
        .build()
    )


def similarity_score(candidate: OpportunityRecord, reference: Optional[OpportunityRecord]) -> int:
    """Weighted 0-100 similarity of `candidate` to `reference` (0 without one)."""
    if reference is None:
        return 0

    raw = 0.0
    if candidate.industry == reference.industry:
        raw += SIMILARITY_WEIGHTS["industry"]
    if candidate.amount and reference.amount:
        ratio = min(candidate.amount, reference.amount) / max(candidate.amount, reference.amount)
        raw += ratio * SIMILARITY_WEIGHTS["amount"]
    if candidate.stage == reference.stage:
        raw += SIMILARITY_WEIGHTS["stage"]
    if candidate.type == reference.type:
        raw += SIMILARITY_WEIGHTS["type"]
    if candidate.lead_source == reference.lead_source:
        raw += SIMILARITY_WEIGHTS["lead_source"]

    return round_half_up(raw / sum(SIMILARITY_WEIGHTS.values()) * 100)


def summarize_reference(reference: Optional[OpportunityRecord]) -> Optional[dict]:
    if reference is None:
        return None
    return {
        "id": reference.id,
        "name": reference.name,
        "amount": reference.amount,
        "industry": reference.industry,
        "stage": reference.stage,
    }


def summarize_similar(candidate: OpportunityRecord, reference: Optional[OpportunityRecord]) -> dict:
    return {
        "id": candidate.id,
        "name": candidate.name,
        "amount": candidate.amount,
        "stage": candidate.stage,
        "probability": candidate.probability,
        "close_date": candidate.close_date,
        "is_won": candidate.is_won,
        "account": {
            "name": candidate.account_name,
            "industry": candidate.industry,
            "employees": candidate.employees,
        },
        "owner": candidate.owner_name,
        "lead_source": candidate.lead_source,
        "similarity": similarity_score(candidate, reference),
    }


def _shares(counts: list[tuple[str, int]], label: str, total: int) -> list[dict]:
    return [
        {label: value, "count": count, "percentage": percent(count, total)}
        for value, count in counts
    ]


def _recent_count(records: list[OpportunityRecord], today: date, months: int = 6) -> int:
    cutoff = months_before(today, months)
    return sum(1 for r in records if r.close_date is not None and r.close_date > cutoff)


def analyze_patterns(
    records: list[OpportunityRecord],
    reference: Optional[OpportunityRecord] = None,
    today: Optional[date] = None,
) -> dict:
    """Distribution summary and positioning insights for a similar-deal set."""
    if not records:
        return {"message": "No opportunities found for analysis"}

    today = today or date.today()
    total = len(records)

    amounts = [r.amount for r in records if r.amount]
    probabilities = [r.probability for r in records if r.probability]
    won = sum(1 for r in records if r.is_won)

    average_deal_size = sum(amounts) / len(amounts) if amounts else 0
    win_rate = won / total * 100
    average_probability = sum(probabilities) / len(probabilities) if probabilities else 0

    return {
        "summary": {
            "total_opportunities": total,
            "average_deal_size": round_half_up(average_deal_size),
            "win_rate": round_half_up(win_rate),
            "average_probability": round_half_up(average_probability),
        },
        "patterns": {
            "top_industries": _shares(_top_counts((r.industry for r in records), 5), "industry", total),
            "top_stages": _shares(_top_counts((r.stage for r in records), 5), "stage", total),
            "top_lead_sources": _shares(_top_counts((r.lead_source for r in records), 3), "source", total),
            "top_owners": _shares(_top_counts((r.owner_name for r in records), 5), "owner", total),
        },
        "insights": _pattern_insights(records, reference, average_deal_size, win_rate, today),
    }


def _pattern_insights(
    records: list[OpportunityRecord],
    reference: Optional[OpportunityRecord],
    average_deal_size: float,
    win_rate: float,
    today: date,
) -> list[dict]:
    insights = []

    if reference is not None and reference.amount and average_deal_size > 0:
        ratio = reference.amount / average_deal_size
        if ratio > 1.5:
            insights.append({
                "type": "deal_size",
                "message": f"Reference opportunity is {round_half_up(ratio * 100)}% of the similar deals average",
                "recommendation": "Position premium value proposition to justify higher investment",
            })
        elif ratio < 0.7:
            insights.append({
                "type": "deal_size",
                "message": "Reference opportunity is smaller than similar deals average",
                "recommendation": "Focus on efficiency and quick wins, or explore expansion opportunities",
            })

    if win_rate > 70:
        insights.append({
            "type": "win_rate",
            "message": f"High win rate ({round_half_up(win_rate)}%) in this segment indicates strong market fit",
            "recommendation": "Leverage proven success stories and case studies from similar clients",
        })
    elif win_rate < 30:
        insights.append({
            "type": "win_rate",
            "message": f"Lower win rate ({round_half_up(win_rate)}%) suggests competitive or challenging market",
            "recommendation": "Focus on differentiation and unique value proposition",
        })

    if _recent_count(records, today) > len(records) * 0.6:
        insights.append({
            "type": "timing",
            "message": "High recent activity indicates growing market demand",
            "recommendation": "Act quickly to capitalize on market momentum",
        })

    return insights


# =============================================================================
# 4. Enrichment
# =============================================================================
ENRICH_FIELDS = [
    "Id", "Name", "Amount", "StageName", "Probability", "CloseDate",
    "Account.Name", "Account.Industry", "Account.Website", "Account.NumberOfEmployees",
    "Owner.Name", "Owner.Email", "Type", "LeadSource",
]

WON_DEAL_FIELDS = [
    "Id", "Name", "Amount", "StageName", "CloseDate", "Account.Industry",
    "Probability", "IsWon", "Type", "LeadSource",
]

FALLBACK_DEAL_AMOUNT = 25000
MIN_COMPARABLE_AMOUNT = 10000
WON_DEAL_LIMIT = 25
EARLY_STAGES = frozenset({"Initiate", "Prospecting"})


def comparable_amount_band(amount: Optional[float]) -> tuple[float, float]:
    base = amount or FALLBACK_DEAL_AMOUNT
    return max(MIN_COMPARABLE_AMOUNT, base * 0.4), base * 3


def build_won_deals_query(opportunity: OpportunityRecord) -> str:
    """Recent won deals of comparable size, excluding the deal itself."""
    minimum, maximum = comparable_amount_band(opportunity.amount)
    return (
        QueryBuilder("Opportunity")
        .select(WON_DEAL_FIELDS)
        .where_boolean("IsWon", True)
        .where_range("Amount", minimum, maximum)
        .where_not_equals("Id", opportunity.id)
        .order_by("CloseDate DESC")
        .limit(WON_DEAL_LIMIT)
        .build()
    )


def opportunity_profile(opportunity: OpportunityRecord) -> dict:
    return {
        "name": opportunity.name,
        "amount": opportunity.amount,
        "stage": opportunity.stage,
        "probability": opportunity.probability,
        "account": {
            "name": opportunity.account_name,
            "industry": opportunity.industry,
            "website": opportunity.website,
            "employees": opportunity.employees,
        },
    }


def _average_over_all(similar: list[OpportunityRecord]) -> float:
    # Missing amounts count as zero; the divisor is every similar deal.
    if not similar:
        return 0
    return _total_amount(similar) / len(similar)


def market_intelligence(similar: list[OpportunityRecord]) -> dict:
    probability_total = sum(r.probability or 0 for r in similar)
    return {
        "similar_deals_analyzed": len(similar),
        "average_deal_size": round_half_up(_average_over_all(similar)),
        "market_probability_average": average(probability_total, len(similar)),
        "top_industries": [
            {"industry": industry, "deal_count": count}
            for industry, count in _top_counts((r.industry for r in similar), 5)
        ],
        "top_lead_sources": [
            {"source": source, "deal_count": count}
            for source, count in _top_counts((r.lead_source for r in similar), 3)
        ],
    }


def enrichment_insights(opportunity: OpportunityRecord, similar: list[OpportunityRecord]) -> list[dict]:
    insights = []
    average_deal_size = _average_over_all(similar)

    if opportunity.amount and average_deal_size > 0:
        ratio = opportunity.amount / average_deal_size
        if ratio > 1.5:
            insights.append({
                "type": "deal_size",
                "insight": (
                    f"This opportunity is {round_half_up(ratio * 100)}% of the similar deals "
                    f"average (avg: {format_money(round_half_up(average_deal_size))})"
                ),
                "recommendation": "Consider positioning premium services or expanding scope to justify higher investment",
                "impact": "high",
            })
        elif ratio < 0.7:
            insights.append({
                "type": "deal_size",
                "insight": f"This opportunity is {round_half_up((1 - ratio) * 100)}% smaller than similar deals",
                "recommendation": "Focus on quick wins and efficiency, or explore expansion opportunities",
                "impact": "medium",
            })

    industries = Counter(r.industry for r in similar if r.industry)
    industry = opportunity.industry
    if industry and industries[industry]:
        industry_deals = industries[industry]
        total_deals = sum(industries.values())
        share = percent(industry_deals, total_deals)
        insights.append({
            "type": "industry",
            "insight": (
                f"{share}% of similar won deals are in {industry} sector "
                f"({industry_deals} of {total_deals} deals)"
            ),
            "recommendation": f"Leverage case studies and success stories from {industry} companies",
            "impact": "high" if share > 30 else "medium",
        })

    if (
        opportunity.stage in EARLY_STAGES
        and opportunity.probability is not None
        and opportunity.probability <= 20
    ):
        insights.append({
            "type": "stage",
            "insight": "Early stage opportunity with high potential based on similar deal patterns",
            "recommendation": "Focus on discovery and value demonstration to advance to qualification",
            "impact": "high",
        })

    sources = Counter(r.lead_source for r in similar if r.lead_source)
    source = opportunity.lead_source
    if source and sources[source]:
        insights.append({
            "type": "lead_source",
            "insight": f"{sources[source]} similar deals originated from {source}",
            "recommendation": "Apply proven tactics that have worked for this lead source",
            "impact": "medium",
        })

    return insights


def best_practices(opportunity: OpportunityRecord) -> list[dict]:
    practices = []
    industry = opportunity.industry or ""

    if "Technology" in industry or "Software" in industry:
        practices.append({
            "category": "Technical Positioning",
            "practice": "Emphasize delivery velocity and modern engineering practices",
            "rationale": "Technology companies respond well to proven methodologies that improve development velocity",
        })
        practices.append({
            "category": "Stakeholder Engagement",
            "practice": "Involve engineering leadership early in the process",
            "rationale": "Technical decision makers need to validate solution architecture and implementation approach",
        })

    if "Financial" in industry or "Banking" in industry:
        practices.append({
            "category": "Compliance Focus",
            "practice": "Highlight regulatory compliance and risk management benefits",
            "rationale": "Financial services prioritize governance and audit trail capabilities",
        })

    if "Healthcare" in industry or "Medical" in industry:
        practices.append({
            "category": "Security Emphasis",
            "practice": "Lead with data security and privacy compliance capabilities",
            "rationale": "Healthcare organizations require robust security frameworks for patient data protection",
        })

    if opportunity.amount and opportunity.amount > 50000:
        practices.append({
            "category": "Executive Engagement",
            "practice": "Schedule executive briefing and ROI presentation",
            "rationale": "Larger investments require executive approval and a strategic business case",
        })

    practices.append({
        "category": "Proof of Value",
        "practice": "Propose pilot program or proof of concept",
        "rationale": "Demonstrates value and reduces perceived risk for transformation initiatives",
    })
    return practices


def competitive_intelligence(similar: list[OpportunityRecord], today: Optional[date] = None) -> dict:
    recent = _recent_count(similar, today or date.today())
    return {
        "market_activity": {
            "recent_similar_deals": recent,
            "competitive_signals": (
                "High market activity - expect competitive pressure"
                if recent > 5 else "Moderate market activity"
            ),
        },
        "positioning_advantages": [
            "Track record of won deals in the same size band",
            "Proven success with comparable organizations",
            "Structured assessment approach reduces implementation risk",
        ],
    }
