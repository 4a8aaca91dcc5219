from __future__ import annotations


class LeagueError(ValueError):
    """Base class for rejected league operations."""


class SeasonNotFoundError(LeagueError, LookupError):
    def __init__(self, season_id: str) -> None:
        super().__init__(f"Unknown season id '{season_id}'")
        self.season_id = season_id


class MatchupConflictError(LeagueError):
    """Matchups already exist for the week and overwrite was not requested."""

    def __init__(self, season_id: str, week: int) -> None:
        super().__init__(
            f"Matchups already exist for week {week} of season '{season_id}'. Use overwrite to regenerate."
        )
        self.season_id = season_id
        self.week = week


class InvalidRosterError(LeagueError):
    """The active roster cannot be paired (odd size or too few competitors)."""


class WeekOutOfRangeError(LeagueError):
    def __init__(self, week: int, total_weeks: int) -> None:
        super().__init__(f"Week {week} is outside the season (weeks 1-{total_weeks}).")
        self.week = week
        self.total_weeks = total_weeks


class CoachUnavailableError(RuntimeError):
    """The text-generation collaborator failed or returned nothing usable."""


class UnknownStrategyError(LeagueError):
    def __init__(self, name: str, known: str) -> None:
        super().__init__(f"Unknown scoring strategy '{name}'. Known strategies: {known}")
        self.name = name
