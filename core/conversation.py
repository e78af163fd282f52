# =============================================================================
# core/conversation.py  -  Engagement insights from an activity history
# =============================================================================
#
# Call-recording integrations log activity as Tasks whose subject carries a
# marker:
#
#   "[Gong In] Re: pricing"    inbound email
#   "[Gong Out] Proposal"      outbound email
#   "[Gong] Discovery call"    recorded call (anything else tagged "[Gong")
#
# derive_engagement_insights() counts these, works out the engagement trend
# over the trailing 30 days and applies the follow-up rules below.
# =============================================================================

from datetime import datetime, timedelta, timezone
from typing import Optional
import re

from core.models import (
    ActivityRecord,
    EmailExchanges,
    EngagementInsights,
    EngagementRecommendation,
)

ACTIVITY_FIELDS = [
    "Id", "Subject", "Description", "Status", "CreatedDate",
    "ActivityDate", "Priority", "Type", "TaskSubtype", "WhoId", "Who.Name",
]

MARKER = "[Gong"
INBOUND_MARKER = "[Gong In]"
OUTBOUND_MARKER = "[Gong Out]"
_CALL_MARKER_RE = re.compile(r"\[Gong[^\]]*\]?\s*")

TREND_WINDOW = timedelta(days=30)


def call_topic(subject: str) -> str:
    return _CALL_MARKER_RE.sub("", subject).strip()


def engagement_trend(recent_count: int) -> str:
    if recent_count >= 5:
        return "increasing"
    if recent_count <= 1:
        return "declining"
    return "stable"


def derive_engagement_insights(
    activities: list[ActivityRecord],
    now: Optional[datetime] = None,
) -> EngagementInsights:
    """Summarize one record's activity history."""
    now = now or datetime.now(timezone.utc)
    window_start = now - TREND_WINDOW

    emails = EmailExchanges()
    call_count = 0
    call_topics: list[str] = []
    contacts: list[str] = []
    activity_types: dict[str, int] = {}
    last_activity: Optional[datetime] = None
    recent = 0

    for activity in activities:
        created = activity.created_date
        if created is not None:
            if last_activity is None or created > last_activity:
                last_activity = created
            if created > window_start:
                recent += 1

        contact = activity.contact_name
        if contact and contact not in contacts:
            contacts.append(contact)

        activity_types[activity.type] = activity_types.get(activity.type, 0) + 1

        subject = activity.subject
        if MARKER not in subject:
            continue
        if INBOUND_MARKER in subject:
            emails.inbound += 1
        elif OUTBOUND_MARKER in subject:
            emails.outbound += 1
        else:
            call_count += 1
            topic = call_topic(subject)
            if topic and topic not in call_topics:
                call_topics.append(topic)

    insights = EngagementInsights(
        total_activities=len(activities),
        call_count=call_count,
        email_exchanges=emails,
        last_activity_date=last_activity,
        call_topics=call_topics,
        engagement_trend=engagement_trend(recent),
        key_contacts=contacts,
        activity_types=activity_types,
    )
    insights.recommendations = engagement_recommendations(insights, now)
    return insights


def engagement_recommendations(
    insights: EngagementInsights,
    now: Optional[datetime] = None,
) -> list[EngagementRecommendation]:
    """Fixed-order follow-up rules.  Any combination may fire."""
    now = now or datetime.now(timezone.utc)
    recommendations = []

    if insights.total_activities < 3:
        recommendations.append(EngagementRecommendation(
            type="engagement",
            priority="high",
            message="Low activity count - consider scheduling discovery call to increase engagement",
        ))

    emails = insights.email_exchanges
    if emails.inbound + emails.outbound > 0 and emails.inbound > emails.outbound * 2:
        recommendations.append(EngagementRecommendation(
            type="communication",
            priority="medium",
            message="Client showing high inbound interest - increase outbound follow-up",
        ))

    if insights.last_activity_date is not None:
        idle_days = (now - insights.last_activity_date).days
        if idle_days > 7:
            recommendations.append(EngagementRecommendation(
                type="follow-up",
                priority="high",
                message=f"Re-engage: {idle_days} days since last activity",
            ))
        elif idle_days > 3:
            recommendations.append(EngagementRecommendation(
                type="follow-up",
                priority="medium",
                message="Consider follow-up to maintain momentum",
            ))

    if len(insights.call_topics) > 2:
        recommendations.append(EngagementRecommendation(
            type="progression",
            priority="medium",
            message="Multiple discussion topics indicate readiness for next stage",
        ))

    if insights.engagement_trend == "declining":
        recommendations.append(EngagementRecommendation(
            type="engagement",
            priority="high",
            message="Engagement declining - schedule check-in call to re-energize relationship",
        ))
    elif insights.engagement_trend == "increasing":
        recommendations.append(EngagementRecommendation(
            type="progression",
            priority="medium",
            message="High engagement momentum - consider advancing to next stage",
        ))

    return recommendations
