"""
Console summary of a sample dialysis patient.

This script walks the full pipeline:
1. Configuration loading and logging setup
2. Dashboard snapshot from in-memory readings, sessions and billing data
3. UF planning hints for the last session
4. Usage limits and locked features for the current plan

Run with: uv run python patient_summary.py
"""

from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dialysis_core.config import configure_logging, get_config, validate_config
from dialysis_core.domain.models import BloodPressureReading, BPSource, DialysisSession
from dialysis_core.domain.subscription import PlanId, ResourceKey, Subscription
from dialysis_core.services import entitlements, units
from dialysis_core.services.dashboard import (
    DashboardSnapshot,
    InMemoryPatientData,
    PatientDashboardService,
)

console = Console()

_SAFETY_STYLES = {"safe": "green", "caution": "yellow", "risk": "red"}


def sample_patient(now: datetime) -> InMemoryPatientData:
    """Two weeks of thrice-weekly sessions plus home readings on off days."""
    config = get_config()
    sessions = []
    readings = []

    for i in range(6):
        started = now - timedelta(days=2 * (6 - i))
        sessions.append(
            DialysisSession(
                started_at=started,
                duration_minutes=240,
                pre_weight_kg=72.4 + 0.2 * i,
                post_weight_kg=70.1 + 0.1 * i,
                uf_removed_ml=2300 + 150 * i,
                target_uf_ml=2800,
                pre_bp=BloodPressureReading(
                    systolic=134 + 3 * i, diastolic=82 + i, taken_at=started
                ),
                post_bp=BloodPressureReading(
                    systolic=118 + 2 * i,
                    diastolic=74,
                    taken_at=started + timedelta(minutes=250),
                ),
            )
        )
        readings.append(
            BloodPressureReading(
                systolic=128 + 2 * i,
                diastolic=80,
                taken_at=started + timedelta(days=1),
                source=BPSource.HOME,
            )
        )

    return InMemoryPatientData(
        readings=readings,
        sessions=sessions,
        subscription=Subscription(plan=PlanId.FREE),
        usage_counters={
            ResourceKey.SESSIONS: len(sessions) + 2,
            ResourceKey.MEDICATIONS: 5,
            ResourceKey.REPORTS: 0,
        },
        bp_thresholds=config.clinical.bp_thresholds,
        uf_thresholds=config.clinical.uf_thresholds,
        dry_weight_kg=70.5,
    )


def print_vitals(snapshot: DashboardSnapshot) -> None:
    console.print(Panel("Blood Pressure", style="blue"))

    table = Table(title="Latest Reading")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    if snapshot.latest_bp is None:
        table.add_row("Reading", "--/--")
    else:
        bp = snapshot.latest_bp
        table.add_row("Reading", f"{bp.systolic:.0f}/{bp.diastolic:.0f} mmHg")
        table.add_row("Source", bp.source.value)
    if snapshot.bp_classification is not None:
        table.add_row("Classification", snapshot.bp_classification.label)
    map_value = snapshot.mean_arterial_pressure
    table.add_row("MAP", f"{map_value} mmHg" if map_value is not None else "--")
    table.add_row("Trend", snapshot.bp_trend.label if snapshot.bp_trend else "Not enough readings")
    console.print(table)

    averages = Table(title="Averages by Source")
    averages.add_column("Source", style="cyan")
    averages.add_column("Average", style="white")
    averages.add_column("Readings", justify="right")
    for source, average in snapshot.bp_averages.items():
        name = source.value if isinstance(source, BPSource) else source
        if average is None:
            averages.add_row(name, "--", "0")
        else:
            averages.add_row(name, f"{average.systolic}/{average.diastolic}", str(average.count))
    console.print(averages)


def print_session(snapshot: DashboardSnapshot) -> None:
    console.print(Panel("Last Session", style="blue"))
    uf = snapshot.uf_assessment
    if uf is None:
        console.print("No sessions logged yet", style="yellow")
        return

    style = _SAFETY_STYLES[uf.safety_level.value]
    console.print(f"UF rate: {uf.rate:.1f} ml/kg/hr ({uf.safety_level.value})", style=style)
    if uf.percent_of_target is not None:
        console.print(f"Target progress: {uf.percent_of_target}% achieved")

    if uf.alternatives:
        table = Table(title="Rate at different durations")
        table.add_column("Duration", style="cyan")
        table.add_column("ml/kg/hr", justify="right")
        for alt in uf.alternatives:
            minutes = int(alt.duration_minutes)
            table.add_row(
                f"{minutes // 60}h {minutes % 60}m",
                f"[{_SAFETY_STYLES[alt.safety_level.value]}]{alt.rate:.1f}[/]",
            )
        console.print(table)

    if snapshot.dry_weight is not None:
        unit = get_config().units.weight_unit
        diff = units.weight_from_kg(snapshot.dry_weight.difference_kg, unit)
        console.print(
            f"Dry weight: {diff:+.1f} {unit.value} ({snapshot.dry_weight.status.value}, "
            f"{snapshot.dry_weight.direction.value})"
        )


def print_plan(snapshot: DashboardSnapshot, subscription: Subscription) -> None:
    plan = entitlements.get_plan(snapshot.plan)
    price = plan.price_for(subscription.interval)
    console.print(
        Panel(
            f"Plan: {entitlements.PLAN_DISPLAY_NAMES[plan.id]} "
            f"(${price:.2f}/{subscription.interval.value})",
            style="blue",
        )
    )

    table = Table(title="Usage")
    table.add_column("Resource", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Status", style="white")
    for resource, item in snapshot.usage.usage.items():
        name = entitlements.RESOURCE_DISPLAY_NAMES[resource]
        if item.unlimited:
            table.add_row(name, str(item.current), "Unlimited")
            continue
        if entitlements.is_at_limit(item):
            status = "[red]At limit[/]"
        elif entitlements.is_near_limit(item):
            status = "[yellow]Near limit[/]"
        else:
            status = f"{item.remaining} left"
        table.add_row(name, f"{item.current}/{item.limit} ({item.percent_used}%)", status)
    console.print(table)

    gate = entitlements.check_can_add(snapshot.usage, ResourceKey.MEDICATIONS)
    if gate.is_err():
        console.print(gate.unwrap_err().message, style="yellow")

    for feature in snapshot.locked_features:
        minimum = entitlements.minimum_plan_for_feature(feature)
        console.print(
            f"Locked: {entitlements.FEATURE_DISPLAY_NAMES[feature]} "
            f"(needs {entitlements.PLAN_DISPLAY_NAMES[minimum]})",
            style="dim",
        )


def main() -> None:
    configure_logging(get_config().logging)
    validate_config()

    now = datetime.now(UTC)
    patient = sample_patient(now)
    service = PatientDashboardService(readings=patient, settings=patient, billing=patient)
    snapshot = service.build_snapshot(now)

    console.print(Panel("Dialysis Patient Summary", style="bold blue"))
    print_vitals(snapshot)
    print_session(snapshot)
    print_plan(snapshot, patient.subscription())


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\nStopped by user", style="yellow")
