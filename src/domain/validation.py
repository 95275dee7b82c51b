"""Rule checks over a proposed match and its roster."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from domain.common import PERFORMANCE_FIELDS, GameLength, Match, MatchParticipation, Team
from domain.errors import ValidationIssue


@dataclass(frozen=True)
class ValidationLimits:
    quick_kill_ceiling: int = 10
    long_kill_ceiling: int = 20
    death_ceiling: int = 15
    min_level: int = 1
    max_level: int = 10
    min_ranked_team_size: int = 2
    max_team_size_difference: int = 0
    stale_after_years: int = 1

    def kill_ceiling(self, game_length: GameLength) -> int:
        return self.quick_kill_ceiling if game_length is GameLength.QUICK else self.long_kill_ceiling


@dataclass(frozen=True)
class ValidationResult:
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _years_before(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


def validate_match(
    match: Match,
    participations: Sequence[MatchParticipation],
    *,
    now: datetime | None = None,
    limits: ValidationLimits | None = None,
) -> ValidationResult:
    """Check a match and its full roster; the same rules apply to new and edited matches."""
    limits = limits or ValidationLimits()
    now = now or datetime.now(UTC).replace(tzinfo=None)
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    rosters: dict[Team, list[MatchParticipation]] = {Team.TITANS: [], Team.ATLANTEANS: []}
    for participation in participations:
        if participation.team not in rosters:
            errors.append(
                ValidationIssue(
                    field="team",
                    message=f"Unknown team {participation.team!r}",
                    player_id=participation.player_id,
                )
            )
            continue
        rosters[participation.team].append(participation)

    if match.winning_team not in rosters:
        errors.append(ValidationIssue(field="winningTeam", message=f"Unknown winning team {match.winning_team!r}"))

    titans = len(rosters[Team.TITANS])
    atlanteans = len(rosters[Team.ATLANTEANS])
    if titans == 0:
        errors.append(ValidationIssue(field="teams", message="Titans team cannot be empty"))
    if atlanteans == 0:
        errors.append(ValidationIssue(field="teams", message="Atlanteans team cannot be empty"))
    if abs(titans - atlanteans) > limits.max_team_size_difference:
        warnings.append(
            ValidationIssue(
                field="teams",
                message=f"Team sizes are unbalanced (Titans: {titans}, Atlanteans: {atlanteans})",
                severity="warning",
            )
        )

    hero_usage: dict[int, list[str]] = {}
    for participation in participations:
        hero_usage.setdefault(participation.hero_id, []).append(participation.player_id)
    for hero_id, player_ids in hero_usage.items():
        if len(player_ids) > 1:
            errors.append(
                ValidationIssue(
                    field="hero",
                    message=f"Hero ID {hero_id} is assigned to multiple players: {', '.join(player_ids)}",
                )
            )

    kill_ceiling = limits.kill_ceiling(match.game_length)
    for participation in participations:
        if participation.kills is not None and participation.kills > kill_ceiling:
            warnings.append(
                ValidationIssue(
                    field="kills",
                    message=f"{participation.kills} kills seems high for {match.game_length.value} match",
                    severity="warning",
                    player_id=participation.player_id,
                )
            )
        if participation.deaths is not None and participation.deaths > limits.death_ceiling:
            warnings.append(
                ValidationIssue(
                    field="deaths",
                    message=f"{participation.deaths} deaths seems very high",
                    severity="warning",
                    player_id=participation.player_id,
                )
            )
        for field_name in PERFORMANCE_FIELDS:
            value = getattr(participation, field_name)
            if value is not None and value < 0:
                errors.append(
                    ValidationIssue(
                        field=field_name,
                        message=f"{field_name} cannot be negative",
                        player_id=participation.player_id,
                    )
                )
        if participation.level is not None and not limits.min_level <= participation.level <= limits.max_level:
            errors.append(
                ValidationIssue(
                    field="level",
                    message=f"Level must be between {limits.min_level} and {limits.max_level}",
                    player_id=participation.player_id,
                )
            )

    if match.date > now:
        warnings.append(ValidationIssue(field="date", message="Match date is in the future", severity="warning"))
    if match.date < _years_before(now, limits.stale_after_years):
        warnings.append(
            ValidationIssue(field="date", message="Match date is more than a year old", severity="warning")
        )

    return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))


def check_ranked_team_sizes(
    participations: Sequence[MatchParticipation],
    *,
    limits: ValidationLimits | None = None,
) -> list[ValidationIssue]:
    """Minimum roster size required before a new match may be recorded."""
    limits = limits or ValidationLimits()
    issues: list[ValidationIssue] = []
    for team in Team:
        size = sum(1 for participation in participations if participation.team is team)
        if 0 < size < limits.min_ranked_team_size:
            issues.append(
                ValidationIssue(
                    field="teams",
                    message=(
                        f"{team.value.capitalize()} team must have at least "
                        f"{limits.min_ranked_team_size} players"
                    ),
                )
            )
    return issues


__all__ = ["ValidationLimits", "ValidationResult", "check_ranked_team_sizes", "validate_match"]
