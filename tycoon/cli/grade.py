"""CLI commands for grading, review and publication."""

from __future__ import annotations

import tycoon.lib.cli as click
from tycoon.core import di
from tycoon.core.config import EngineSettings
from tycoon.engine import grading, interest, report, review
from tycoon.model import AssignmentID, Grade, GradeID, Tier, UserID
from tycoon.notification import Notifier
from tycoon.storage import grade as grade_storage
from tycoon.storage import Session
from tycoon.storage import team as team_storage

TIER_COLORS = {
    Tier.High: "green",
    Tier.Median: "cyan",
    Tier.Low: "yellow",
    Tier.Incomplete: "red",
}


def echo_grade(g: Grade) -> None:
    status = "*" if g.is_published else " "
    override = " (override)" if g.manual_override else ""
    click.echo(
        f"{status} {g.grade_id}  {g.team_id}  {g.trimmed_mean:>6}  "
        + click.style(f"{g.tier.value:<10}", fg=TIER_COLORS[g.tier])
        + f" {g.percentage:>3}%  {g.total_investments} investments{override}"
    )


@click.group("grade")
def grade():
    """Compute, review and publish grades."""
    ...


@grade.command("run")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
def grade_run(assignment_id: AssignmentID) -> None:
    """Grade every submitted team and recompute interest."""
    for g in grading.grade_assignment(assignment_id):
        echo_grade(g)


@grade.command("list")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.option("--published-only", is_flag=True, default=False)
@di.inject
def grade_list(
    assignment_id: AssignmentID,
    published_only: bool,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    with session.begin():
        grades = grade_storage.find(assignment_id=assignment_id, published_only=published_only, session=session)
    for g in grades:
        echo_grade(g)


@grade.command("stats")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
def grade_stats(assignment_id: AssignmentID) -> None:
    stats = report.grade_statistics(assignment_id)
    click.echo(f"Teams: {stats.total_teams}")
    click.echo(f"  high {stats.high}  median {stats.median}  low {stats.low}  incomplete {stats.incomplete}")
    click.echo(f"Mean investment: {stats.mean_investment}")
    click.echo(f"Investments: {stats.total_investments}")


@grade.command("publish")
@click.argument("grade_ids", nargs=-1, required=True, type=click.KeyParamType(GradeID))
@click.option("--reviewer", required=True, type=click.KeyParamType(UserID))
@di.inject
def grade_publish(
    grade_ids: tuple[GradeID, ...],
    reviewer: UserID,
    session: Session = di.Provide["storage.persistent.session"],
    notifier: Notifier = di.Provide["notifier"],
) -> None:
    """Publish grades and let the affected students know."""
    published = review.publish(grade_ids, reviewed_by=reviewer)
    with session.begin():
        teams = {tm.team_id: tm for tm in team_storage.find(team_ids=[g.team_id for g in published], session=session)}
    notifier.grades_published(published, teams)
    click.echo(f"Published {len(published)} grades")


@grade.command("unpublish")
@click.argument("grade_ids", nargs=-1, required=True, type=click.KeyParamType(GradeID))
def grade_unpublish(grade_ids: tuple[GradeID, ...]) -> None:
    review.unpublish(grade_ids)
    click.echo(f"Returned {len(grade_ids)} grades to draft")


@grade.command("override")
@click.argument("grade_id", type=click.KeyParamType(GradeID))
@click.argument("tier", type=click.EnumType(Tier))
@click.option("--percentage", type=int, default=None, help="defaults to the tier's configured percentage")
@click.option("--reviewer", required=True, type=click.KeyParamType(UserID))
@click.option("--notes", default=None)
@di.inject
def grade_override(
    grade_id: GradeID,
    tier: Tier,
    percentage: int | None,
    reviewer: UserID,
    notes: str | None,
    config: EngineSettings = di.Provide["config.engine", di.as_(EngineSettings)],
) -> None:
    """Set a grade's tier by hand."""
    if percentage is None:
        percentage = config.grading.percentages[tier]
    echo_grade(review.override(grade_id, tier=tier, percentage=percentage, reviewed_by=reviewer, notes=notes))


@grade.command("reset")
@click.argument("grade_id", type=click.KeyParamType(GradeID))
def grade_reset(grade_id: GradeID) -> None:
    echo_grade(review.reset(grade_id))


@grade.command("interest")
@click.argument("student_id", type=click.KeyParamType(UserID))
def grade_interest(student_id: UserID) -> None:
    """Show a student's interest and the bonus it earns."""
    summary = interest.total_student_interest(student_id)
    click.echo(f"Total interest: {summary.total_interest}")
    click.echo(f"Bonus: {summary.bonus_fraction:.2%} (max {summary.max_bonus_percent}%)")
