"""
Plan table, usage status and feature gating.

Key rules:
- A ``None`` limit means unlimited and short-circuits all limit arithmetic
- Features are listed per plan; a pricier plan does not inherit anything
  from a cheaper one unless the table says so
- Gates answer with a ``Result``: a denial is an ordinary outcome
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from types import MappingProxyType

import structlog

from dialysis_core.domain.result import Result
from dialysis_core.domain.rounding import round_half_up
from dialysis_core.domain.subscription import (
    EntitlementError,
    FeatureKey,
    FeatureNotAvailable,
    PlanConfig,
    PlanId,
    PlanTableError,
    ResourceKey,
    ResourceLimitReached,
    Subscription,
    SubscriptionInactive,
    SubscriptionStatus,
    UnknownPlan,
    UsageItem,
    UsageSnapshot,
)

logger = structlog.get_logger(__name__)

NEAR_LIMIT_PERCENT = 80

PLAN_DISPLAY_NAMES: Mapping[PlanId, str] = MappingProxyType(
    {
        PlanId.FREE: "Free",
        PlanId.BASIC: "Basic",
        PlanId.PREMIUM: "Premium",
        PlanId.FAMILY: "Family",
    }
)

RESOURCE_DISPLAY_NAMES: Mapping[ResourceKey, str] = MappingProxyType(
    {
        ResourceKey.SESSIONS: "Dialysis Sessions",
        ResourceKey.WEIGHT_LOGS: "Weight Logs",
        ResourceKey.FLUID_LOGS: "Fluid Logs",
        ResourceKey.VITAL_RECORDS: "Vital Records",
        ResourceKey.SYMPTOM_LOGS: "Symptom Logs",
        ResourceKey.MEDICATIONS: "Medications",
        ResourceKey.MEAL_LOGS: "Meal Logs",
        ResourceKey.REPORTS: "Reports",
        ResourceKey.AI_REQUESTS: "AI Requests",
    }
)

FEATURE_DISPLAY_NAMES: Mapping[FeatureKey, str] = MappingProxyType(
    {
        FeatureKey.SESSION_HISTORY: "Session History",
        FeatureKey.BASIC_VITALS_MONITORING: "Basic Vitals Monitoring",
        FeatureKey.MEDICATION_TRACKER: "Medication Tracker",
        FeatureKey.SYMPTOMS_VITALS_HUB: "Symptoms & Vitals Hub",
        FeatureKey.AI_HEALTH_ANALYSIS: "AI Health Analysis",
        FeatureKey.NUTRI_SCAN_AI: "Nutri-Scan AI",
        FeatureKey.EXPORT_DATA: "Data Export (PDF/CSV)",
        FeatureKey.CAREGIVER_ACCESS: "Caregiver Access",
        FeatureKey.FAMILY_DASHBOARD: "Family Dashboard",
    }
)


def validate_plan_table(plans: Mapping[PlanId, PlanConfig]) -> Mapping[PlanId, PlanConfig]:
    """
    Check the table is complete and return a read-only view of it.

    Every plan id needs an entry keyed by its own id, and every plan must state a
    limit (possibly None) for every resource.
    """
    missing_plans = [plan_id.value for plan_id in PlanId if plan_id not in plans]
    if missing_plans:
        raise PlanTableError(f"Plan table is missing plans: {', '.join(missing_plans)}")

    for key, plan in plans.items():
        if key != plan.id:
            raise PlanTableError(f"Plan keyed as {key!r} declares id {plan.id.value!r}")
        missing_limits = [r.value for r in ResourceKey if r not in plan.limits]
        if missing_limits:
            raise PlanTableError(
                f"Plan {plan.id.value!r} has no limit for: {', '.join(missing_limits)}"
            )

    logger.debug("plan_table_validated", plan_count=len(plans))
    return MappingProxyType(dict(plans))


PLAN_TABLE: Mapping[PlanId, PlanConfig] = validate_plan_table(
    {
        PlanId.FREE: PlanConfig(
            id=PlanId.FREE,
            name="Free",
            description="Get started with essential tracking tools.",
            price_monthly=0.0,
            price_yearly=0.0,
            limits={
                ResourceKey.SESSIONS: 10,
                ResourceKey.WEIGHT_LOGS: None,
                ResourceKey.FLUID_LOGS: None,
                ResourceKey.VITAL_RECORDS: 30,
                ResourceKey.SYMPTOM_LOGS: 30,
                ResourceKey.MEDICATIONS: 5,
                ResourceKey.MEAL_LOGS: 0,
                ResourceKey.REPORTS: 1,
                ResourceKey.AI_REQUESTS: 0,
            },
            features=frozenset(
                {
                    FeatureKey.SESSION_HISTORY,
                    FeatureKey.BASIC_VITALS_MONITORING,
                    FeatureKey.MEDICATION_TRACKER,
                }
            ),
        ),
        PlanId.BASIC: PlanConfig(
            id=PlanId.BASIC,
            name="Basic",
            description="Essential tools for active dialysis patients.",
            price_monthly=5.99,
            price_yearly=59.99,
            limits={
                ResourceKey.SESSIONS: None,
                ResourceKey.WEIGHT_LOGS: None,
                ResourceKey.FLUID_LOGS: None,
                ResourceKey.VITAL_RECORDS: None,
                ResourceKey.SYMPTOM_LOGS: None,
                ResourceKey.MEDICATIONS: 5,
                ResourceKey.MEAL_LOGS: 0,
                ResourceKey.REPORTS: 5,
                ResourceKey.AI_REQUESTS: 0,
            },
            features=frozenset(
                {
                    FeatureKey.SESSION_HISTORY,
                    FeatureKey.BASIC_VITALS_MONITORING,
                    FeatureKey.MEDICATION_TRACKER,
                    FeatureKey.EXPORT_DATA,
                }
            ),
        ),
        PlanId.PREMIUM: PlanConfig(
            id=PlanId.PREMIUM,
            name="Premium",
            description="Full clinical insight and AI-powered analysis.",
            price_monthly=9.99,
            price_yearly=99.99,
            limits={
                ResourceKey.SESSIONS: None,
                ResourceKey.WEIGHT_LOGS: None,
                ResourceKey.FLUID_LOGS: None,
                ResourceKey.VITAL_RECORDS: None,
                ResourceKey.SYMPTOM_LOGS: None,
                ResourceKey.MEDICATIONS: None,
                ResourceKey.MEAL_LOGS: None,
                ResourceKey.REPORTS: None,
                ResourceKey.AI_REQUESTS: 100,
            },
            features=frozenset(
                {
                    FeatureKey.SESSION_HISTORY,
                    FeatureKey.BASIC_VITALS_MONITORING,
                    FeatureKey.MEDICATION_TRACKER,
                    FeatureKey.SYMPTOMS_VITALS_HUB,
                    FeatureKey.AI_HEALTH_ANALYSIS,
                    FeatureKey.NUTRI_SCAN_AI,
                    FeatureKey.EXPORT_DATA,
                }
            ),
        ),
        PlanId.FAMILY: PlanConfig(
            id=PlanId.FAMILY,
            name="Family",
            description="Comprehensive care for the whole household.",
            price_monthly=14.99,
            price_yearly=149.99,
            limits={
                ResourceKey.SESSIONS: None,
                ResourceKey.WEIGHT_LOGS: None,
                ResourceKey.FLUID_LOGS: None,
                ResourceKey.VITAL_RECORDS: None,
                ResourceKey.SYMPTOM_LOGS: None,
                ResourceKey.MEDICATIONS: None,
                ResourceKey.MEAL_LOGS: None,
                ResourceKey.REPORTS: None,
                ResourceKey.AI_REQUESTS: 400,
            },
            features=frozenset(
                {
                    FeatureKey.SESSION_HISTORY,
                    FeatureKey.BASIC_VITALS_MONITORING,
                    FeatureKey.MEDICATION_TRACKER,
                    FeatureKey.SYMPTOMS_VITALS_HUB,
                    FeatureKey.AI_HEALTH_ANALYSIS,
                    FeatureKey.NUTRI_SCAN_AI,
                    FeatureKey.EXPORT_DATA,
                    FeatureKey.CAREGIVER_ACCESS,
                    FeatureKey.FAMILY_DASHBOARD,
                }
            ),
        ),
    }
)


def get_plan(
    plan_id: PlanId | str, plans: Mapping[PlanId, PlanConfig] = PLAN_TABLE
) -> PlanConfig:
    try:
        return plans[PlanId(plan_id)]
    except (ValueError, KeyError):
        raise UnknownPlan(f"Unknown plan: {plan_id}", plan=str(plan_id)) from None


# Usage


def compute_usage_item(current: int, limit: int | None) -> UsageItem:
    """
    Derive usage status from a counter and its limit.

    A limit of 0 reads as fully used rather than dividing by zero. Negative
    counters are rejected by ``UsageItem`` validation.
    """
    if limit is None:
        return UsageItem(current=current, limit=None, unlimited=True)

    remaining = max(0, limit - current)
    if limit == 0:
        percent_used = 100
    else:
        percent_used = round_half_up(min(100.0, current / limit * 100))

    return UsageItem(
        current=current,
        limit=limit,
        remaining=remaining,
        percent_used=percent_used,
        unlimited=False,
        at_limit=remaining <= 0,
        near_limit=percent_used >= NEAR_LIMIT_PERCENT,
    )


def can_add_resource(usage: UsageItem) -> bool:
    """The gate checked before a new session, medication, etc. is created."""
    return usage.unlimited or (usage.remaining is not None and usage.remaining > 0)


def is_at_limit(usage: UsageItem) -> bool:
    """Whether the at-limit banner shows; judged on the displayed percentage."""
    return not usage.unlimited and usage.percent_used >= 100


def is_near_limit(usage: UsageItem) -> bool:
    """Near the limit but not yet shown as full, which is when the warning banner shows."""
    return not usage.unlimited and NEAR_LIMIT_PERCENT <= usage.percent_used < 100


def upgrade_message(resource: ResourceKey, usage: UsageItem) -> str:
    if usage.unlimited:
        return ""
    name = RESOURCE_DISPLAY_NAMES[resource]
    return f"You've used {usage.current} of {usage.limit} {name}. Upgrade to add more."


def build_usage_snapshot(plan: PlanConfig, counters: Mapping[ResourceKey, int]) -> UsageSnapshot:
    """Usage for every resource of ``plan``; resources without a counter count as 0."""
    usage = {
        resource: compute_usage_item(counters.get(resource, 0), plan.limit_for(resource))
        for resource in ResourceKey
    }
    return UsageSnapshot(plan=plan.id, usage=usage)


def check_can_add(
    snapshot: UsageSnapshot, resource: ResourceKey
) -> Result[UsageItem, ResourceLimitReached]:
    item = snapshot.usage.get(resource)
    if item is None:
        # Untracked usage is denied, never granted as unlimited
        logger.warning(
            "usage_missing_for_resource", resource=resource.value, plan=snapshot.plan.value
        )
        return Result.err(
            ResourceLimitReached(
                f"Upgrade to add more {RESOURCE_DISPLAY_NAMES[resource]}.",
                resource=resource.value,
                plan=snapshot.plan.value,
                upgrade_required=True,
            )
        )

    if can_add_resource(item):
        return Result.ok(item)

    logger.info(
        "resource_limit_reached",
        resource=resource.value,
        plan=snapshot.plan.value,
        current=item.current,
        limit=item.limit,
    )
    return Result.err(
        ResourceLimitReached(
            upgrade_message(resource, item),
            resource=resource.value,
            current=item.current,
            limit=item.limit,
            plan=snapshot.plan.value,
            upgrade_required=True,
        )
    )


# Features


def has_feature(plan: PlanConfig, feature: FeatureKey) -> bool:
    return feature in plan.features


def requires_upgrade(
    plan_id: PlanId, feature: FeatureKey, plans: Mapping[PlanId, PlanConfig] = PLAN_TABLE
) -> bool:
    return not has_feature(get_plan(plan_id, plans), feature)


def minimum_plan_for_feature(
    feature: FeatureKey, plans: Mapping[PlanId, PlanConfig] = PLAN_TABLE
) -> PlanId:
    """
    Cheapest plan that lists ``feature``.

    Falls back to the most expensive plan when no plan lists it; with a complete
    table that only happens for a feature nobody sells. An empty table falls back
    to Family.
    """
    by_price = sorted(plans.values(), key=lambda plan: plan.price_monthly)
    if not by_price:
        logger.warning("plan_table_empty", feature=feature.value)
        return PlanId.FAMILY

    for plan in by_price:
        if has_feature(plan, feature):
            return plan.id

    logger.warning("feature_not_in_any_plan", feature=feature.value)
    return by_price[-1].id


def locked_features(plan: PlanConfig) -> list[FeatureKey]:
    return [feature for feature in FeatureKey if not has_feature(plan, feature)]


def effective_plan_id(subscription: Subscription, now: datetime | None = None) -> PlanId:
    """
    Plan whose entitlements currently apply.

    A canceled subscription keeps its plan until the end of the paid period and
    drops to Free afterwards. Past-due and trialing subscriptions keep their plan;
    dunning is the billing service's job.
    """
    if subscription.status is not SubscriptionStatus.CANCELED:
        return subscription.plan

    now = now or datetime.now(UTC)
    if subscription.current_period_end is not None and now < subscription.current_period_end:
        return subscription.plan
    return PlanId.FREE


def check_feature_access(
    subscription: Subscription,
    feature: FeatureKey,
    now: datetime | None = None,
    plans: Mapping[PlanId, PlanConfig] = PLAN_TABLE,
) -> Result[PlanConfig, EntitlementError]:
    effective = effective_plan_id(subscription, now)
    try:
        plan = get_plan(effective, plans)
    except UnknownPlan as e:
        return Result.err(e)

    if has_feature(plan, feature):
        return Result.ok(plan)

    name = FEATURE_DISPLAY_NAMES[feature]
    if effective != subscription.plan:
        try:
            nominal = get_plan(subscription.plan, plans)
        except UnknownPlan as e:
            return Result.err(e)
        if has_feature(nominal, feature):
            logger.info(
                "feature_locked_subscription_inactive",
                feature=feature.value,
                plan=subscription.plan.value,
                status=subscription.status.value,
            )
            return Result.err(
                SubscriptionInactive(
                    f"{name} requires an active "
                    f"{PLAN_DISPLAY_NAMES[subscription.plan]} subscription.",
                    feature=feature.value,
                    plan=subscription.plan.value,
                    status=subscription.status.value,
                )
            )

    minimum = minimum_plan_for_feature(feature, plans)
    logger.info(
        "feature_locked",
        feature=feature.value,
        plan=plan.id.value,
        minimum_plan=minimum.value,
    )
    return Result.err(
        FeatureNotAvailable(
            f"{name} is not included in your plan. Upgrade to "
            f"{PLAN_DISPLAY_NAMES[minimum]} to unlock it.",
            feature=feature.value,
            plan=plan.id.value,
            minimum_plan=minimum.value,
            upgrade_required=True,
        )
    )
