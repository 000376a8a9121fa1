"""
Core services for the application.

This package contains the computations the patient application calls into:
clinical metrics, plan entitlements, unit conversion and dashboard composition.
"""

from .dashboard import (
    DashboardSnapshot,
    InMemoryPatientData,
    PatientDashboardService,
    ReadingsProvider,
    SettingsProvider,
    SubscriptionProvider,
)
from .entitlements import (
    PLAN_TABLE,
    can_add_resource,
    compute_usage_item,
    has_feature,
    minimum_plan_for_feature,
    requires_upgrade,
)

__all__ = [
    "DashboardSnapshot",
    "InMemoryPatientData",
    "PatientDashboardService",
    "ReadingsProvider",
    "SettingsProvider",
    "SubscriptionProvider",
    "PLAN_TABLE",
    "can_add_resource",
    "compute_usage_item",
    "has_feature",
    "minimum_plan_for_feature",
    "requires_upgrade",
]
