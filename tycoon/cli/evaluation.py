"""CLI commands driving an evaluation round."""

from __future__ import annotations

import datetime
import random

import tycoon.lib.cli as click
from tycoon.engine import distribution, ledger, report
from tycoon.model import AssignmentID, DistributionMode, TeamID, UserID


@click.group("evaluation")
def evaluation():
    """Distribute evaluations and record investments."""
    ...


@evaluation.command("distribute")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.option("-k", "--evaluations", "k", type=int, default=None, help="submissions per evaluator")
@click.option("--mode", type=click.EnumType(DistributionMode), default=None)
@click.option("--seed", type=int, default=None, help="seed the shuffle for a reproducible distribution")
@click.option("--start", type=click.DateTimeParamType(), default=None)
@click.option("--due", type=click.DateTimeParamType(), default=None)
@click.option("--force", is_flag=True, default=False, help="redistribute even though the phase is active")
def evaluation_distribute(
    assignment_id: AssignmentID,
    k: int | None,
    mode: DistributionMode | None,
    seed: int | None,
    start: datetime.datetime | None,
    due: datetime.datetime | None,
    force: bool,
) -> None:
    """Assign every evaluator a random set of other teams' submissions."""
    result = distribution.distribute_assignment(
        assignment_id,
        k=k,
        mode=mode,
        rng=random.Random(seed),
        evaluation_start_at=start,
        evaluation_due_at=due,
        force=force,
    )
    summary = result.summary
    click.echo(
        f"Distributed {summary.created} evaluations "
        f"({summary.mode.value} mode, k={summary.evaluations_per_evaluator})"
    )
    click.echo(f"  Evaluators: {summary.processed}")
    for skipped in summary.skipped:
        click.echo(click.style(f"  Skipped: {skipped.key}", fg="yellow"))


@evaluation.command("close")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.option("--unlock-teams", is_flag=True, default=False)
def evaluation_close(assignment_id: AssignmentID, unlock_teams: bool) -> None:
    """End the evaluation phase."""
    distribution.close_evaluation(assignment_id, unlock_teams=unlock_teams)
    click.echo("Evaluation phase closed")


@evaluation.command("invest")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.argument("investor_id", type=click.KeyParamType(UserID))
@click.argument("team_id", type=click.KeyParamType(TeamID))
@click.argument("tokens", type=int, default=0)
@click.option("--incomplete", is_flag=True, default=False)
@click.option("--comment", "-m", default="")
def evaluation_invest(
    assignment_id: AssignmentID,
    investor_id: UserID,
    team_id: TeamID,
    tokens: int,
    incomplete: bool,
    comment: str,
) -> None:
    """Record an investment of TOKENS in a team."""
    investment = ledger.record_investment(
        investor_id, team_id, assignment_id, tokens, incomplete=incomplete, comment=comment
    )
    click.echo(f"Invested {investment.tokens} tokens (#{investment.rank})")
    click.echo(f"  ID: {investment.investment_id}")


@evaluation.command("mark-missed")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
def evaluation_mark_missed(assignment_id: AssignmentID) -> None:
    """Flag overdue evaluations as missed."""
    n = distribution.mark_missed(assignment_id)
    click.echo(f"Marked {n} evaluations missed")


@evaluation.command("audit")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
@click.option("--remove", is_flag=True, default=False, help="delete the self-evaluations found")
def evaluation_audit(assignment_id: AssignmentID, remove: bool) -> None:
    """List evaluators assigned to review their own team."""
    if remove:
        found = distribution.remove_self_evaluations(assignment_id)
    else:
        found = distribution.find_self_evaluations(assignment_id)
    for ev in found:
        click.echo(f"{ev.evaluator.key} -> {ev.evaluated_team_id}  {ev.status.value}")
    click.echo(f"{'Removed' if remove else 'Found'} {len(found)} self-evaluations")


@evaluation.command("progress")
@click.argument("assignment_id", type=click.KeyParamType(AssignmentID))
def evaluation_progress(assignment_id: AssignmentID) -> None:
    """Show each student's progress through the round."""
    for row in report.evaluation_progress(assignment_id):
        mark = click.style("done", fg="green") if row.is_done else click.style("open", fg="yellow")
        click.echo(
            f"{row.student_id}  {mark}  {row.completed}/{row.assigned} evaluated  "
            f"{row.investments} investments  {row.tokens_spent} spent  {row.tokens_remaining} left"
        )
