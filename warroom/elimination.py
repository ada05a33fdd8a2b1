"""
Elimination and survival math for battle-royale leagues, where the lowest
score each week is knocked out.

Everything here is a pure function of its inputs except EliminationTracker,
which keeps one league's elimination history in memory.
"""

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional

import polars as pl

from .constants import SAFETY_CEILING, SAFETY_FLOOR
from .models import EliminationRecord, EliminationStatus, TeamRanking
from .schemas import EliminationSettings
from .utils import clamp

CHAMPION_SAFETY = 0.8
CRITICAL_SAFETY = 0.15
DANGER_SAFETY = 0.30
WARNING_SAFETY = 0.60


@dataclass(frozen=True)
class TeamWeekScore:
    """One team's input to the weekly ranking."""

    team_id: str
    raw_score: float
    projected_score: float = 0.0
    variance_history: tuple[float, ...] = ()


def elimination_count(team_count: int, settings: Optional[EliminationSettings] = None) -> int:
    """Teams eliminated per week: two for very large leagues, otherwise one."""
    settings = settings or EliminationSettings()
    return 2 if team_count >= settings.double_elimination_threshold else 1


def score_std_dev(history: Sequence[float], default: float) -> float:
    """Sample standard deviation of past weekly scores, or ``default`` with under two weeks."""
    if len(history) < 2:
        return default
    return float(pl.Series('score', list(history), dtype=pl.Float64).std())


def consistency_score(history: Sequence[float], default_std: float) -> float:
    """
    0..1 where 1 means perfectly steady scoring.

    Uses the coefficient of variation of past scores; neutral (0.5) without
    enough history to judge.
    """
    if len(history) < 2:
        return 0.5
    mean = abs(float(pl.Series('score', list(history), dtype=pl.Float64).mean()))
    if mean == 0:
        return 0.5
    return 1.0 / (1.0 + score_std_dev(history, default_std) / mean)


def rank_percentile(rank: int, total: int) -> float:
    """1.0 for first place down to 0.0 for last."""
    if total <= 1:
        return 1.0
    return (total - rank) / (total - 1)


def weeks_remaining(week: int, settings: EliminationSettings) -> int:
    return max(0, settings.season_weeks + 1 - week)


def safety_percentage(
    rank: int,
    total: int,
    projected: float,
    average_projected: float,
    history: Sequence[float],
    week: int,
    settings: Optional[EliminationSettings] = None,
) -> float:
    """
    Weighted estimate of a team surviving the week, clamped to [0.01, 0.99].

    Current rank percentile is the base. On top of it: how the team's
    projection compares with the league average, how consistent its past
    scores are, and a pull toward the middle that is strongest early in the
    season when many weeks remain.
    """
    settings = settings or EliminationSettings()
    base = rank_percentile(rank, total)

    projection_ratio = projected / average_projected if average_projected > 0 else 1.0
    projection = clamp(projection_ratio - 1.0, -1.0, 1.0)
    consistency = consistency_score(history, settings.default_std_dev) - 0.5
    remaining = weeks_remaining(week, settings) / settings.season_weeks
    regression = remaining * (0.5 - base)

    safety = (
        base
        + settings.projection_weight * projection
        + settings.consistency_weight * consistency
        + settings.weeks_remaining_weight * regression
    )
    return clamp(safety, SAFETY_FLOOR, SAFETY_CEILING)


def classify(
    rank: int, total: int, safety: float, settings: Optional[EliminationSettings] = None
) -> EliminationStatus:
    """Elimination status for an alive team from its rank and safety percentage."""
    settings = settings or EliminationSettings()
    top_decile = max(1, math.ceil(total * 0.1))
    zone = min(elimination_count(total, settings), max(total - 1, 0))

    if rank == 1 or (rank <= top_decile and safety > CHAMPION_SAFETY):
        return EliminationStatus.CHAMPION
    if (zone and rank > total - zone) or safety < CRITICAL_SAFETY:
        return EliminationStatus.CRITICAL
    if rank > total * 0.75 or safety < DANGER_SAFETY:
        return EliminationStatus.DANGER
    if safety < WARNING_SAFETY:
        return EliminationStatus.WARNING
    return EliminationStatus.SAFE


def _ranked_frame(scores: Sequence[TeamWeekScore]) -> pl.DataFrame:
    """Scores ranked by raw score descending, ties broken by team id."""
    frame = pl.DataFrame(
        {
            'team_id': [s.team_id for s in scores],
            'raw_score': [float(s.raw_score) for s in scores],
            'projected_score': [float(s.projected_score) for s in scores],
        },
        schema={'team_id': pl.Utf8, 'raw_score': pl.Float64, 'projected_score': pl.Float64},
    )
    return frame.sort(
        ['raw_score', 'team_id'], descending=[True, False], maintain_order=True
    ).with_row_index('rank', offset=1)


def compute_rankings(
    scores: Iterable[TeamWeekScore],
    week: int,
    previously_eliminated: Iterable[str] = (),
    settings: Optional[EliminationSettings] = None,
) -> list[TeamRanking]:
    """
    Rank a league's week and assign each team a status and survival probability.

    Teams already eliminated in an earlier week are listed after every alive
    team with status ELIMINATED and zero survival, whatever they scored.

    Args:
        scores: One TeamWeekScore per team
        week: Week being ranked
        previously_eliminated: Team ids knocked out before this week
        settings: Weights and thresholds (defaults if omitted)

    Returns:
        TeamRanking list ordered by rank
    """
    settings = settings or EliminationSettings()
    scores = list(scores)
    out = set(previously_eliminated)
    alive = [s for s in scores if s.team_id not in out]
    eliminated = [s for s in scores if s.team_id in out]

    rankings: list[TeamRanking] = []
    if alive:
        frame = _ranked_frame(alive)
        total = frame.height
        average_projected = float(frame['projected_score'].mean())
        last_projected = float(frame['projected_score'][-1])
        histories = {s.team_id: s.variance_history for s in alive}
        pre_kickoff = not (frame['raw_score'] != 0).any()

        for row in frame.iter_rows(named=True):
            rank = int(row['rank'])
            if pre_kickoff:
                safety = SAFETY_CEILING
                status = EliminationStatus.SAFE
            else:
                safety = safety_percentage(
                    rank,
                    total,
                    row['projected_score'],
                    average_projected,
                    histories[row['team_id']],
                    week,
                    settings,
                )
                status = classify(rank, total, safety, settings)

            rankings.append(
                TeamRanking(
                    team_id=row['team_id'],
                    week=week,
                    raw_score=row['raw_score'],
                    rank=rank,
                    status=status,
                    survival_probability=safety,
                    projected_score=row['projected_score'],
                    safety_margin=row['projected_score'] - last_projected,
                )
            )

    if eliminated:
        offset = len(rankings)
        for row in _ranked_frame(eliminated).iter_rows(named=True):
            rankings.append(
                TeamRanking(
                    team_id=row['team_id'],
                    week=week,
                    raw_score=row['raw_score'],
                    rank=offset + int(row['rank']),
                    status=EliminationStatus.ELIMINATED,
                    survival_probability=0.0,
                    projected_score=row['projected_score'],
                )
            )

    return rankings


def weekly_eliminated(
    rankings: Sequence[TeamRanking], settings: Optional[EliminationSettings] = None
) -> list[str]:
    """Team ids in this week's elimination zone, lowest score first."""
    alive = sorted((r for r in rankings if r.is_alive), key=lambda r: r.rank)
    if len(alive) <= 1:
        return []
    zone = min(elimination_count(len(alive), settings), len(alive) - 1)
    return [r.team_id for r in reversed(alive[-zone:])]


class EliminationTracker:
    """
    Elimination history for one league.

    Once a team is recorded as eliminated it stays eliminated for every
    later week; recording a week twice does nothing the second time.
    """

    def __init__(self, settings: Optional[EliminationSettings] = None):
        self.settings = settings or EliminationSettings()
        self._eliminated_in: dict[str, int] = {}
        self._records: dict[int, list[EliminationRecord]] = {}
        self._scores: defaultdict[str, dict[int, float]] = defaultdict(dict)

    def record_scores(self, week: int, rankings: Iterable[TeamRanking]) -> None:
        """Remember alive teams' scores for the week (the variance history input)."""
        for ranking in rankings:
            if ranking.is_alive:
                self._scores[ranking.team_id][week] = ranking.raw_score

    def record_week(self, week: int, rankings: Sequence[TeamRanking]) -> list[EliminationRecord]:
        """
        Close out a finished week: store scores and eliminate the bottom team(s).

        Returns:
            The week's EliminationRecords
        """
        if week in self._records:
            return list(self._records[week])

        self.record_scores(week, rankings)
        out_ids = weekly_eliminated(rankings, self.settings)
        by_id = {r.team_id: r for r in rankings}
        survivors = [r.raw_score for r in rankings if r.is_alive and r.team_id not in out_ids]
        lowest_survivor = min(survivors) if survivors else None

        records = []
        for team_id in out_ids:
            score = by_id[team_id].raw_score
            margin = lowest_survivor - score if lowest_survivor is not None else 0.0
            records.append(
                EliminationRecord(
                    team_id=team_id,
                    week=week,
                    score=score,
                    margin=margin,
                    was_tie=math.isclose(margin, 0.0, abs_tol=1e-9),
                )
            )
            self._eliminated_in.setdefault(team_id, week)

        self._records[week] = records
        return list(records)

    def eliminated_before(self, week: int) -> frozenset:
        """Teams knocked out in any week earlier than ``week``."""
        return frozenset(team for team, out_week in self._eliminated_in.items() if out_week < week)

    def is_eliminated(self, team_id: str, week: int) -> bool:
        return team_id in self.eliminated_before(week)

    def eliminated_week(self, team_id: str) -> Optional[int]:
        return self._eliminated_in.get(team_id)

    def history(self) -> list[EliminationRecord]:
        return [record for week in sorted(self._records) for record in self._records[week]]

    def score_history(self, team_id: str, before_week: Optional[int] = None) -> tuple[float, ...]:
        scores = self._scores.get(team_id, {})
        return tuple(
            scores[week] for week in sorted(scores) if before_week is None or week < before_week
        )

    def recorded_weeks(self) -> list[int]:
        return sorted(self._records)
