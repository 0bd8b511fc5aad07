from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from fractions import Fraction
from typing import Dict, Iterable, List

from .models import TIERS
from .records import SchoolRecord, CategoryRecord, ScoreRecord, JudgeRecord, MIN_SCORE, MAX_SCORE

TWO_PLACES = Decimal('0.01')


def round_half_up(value: Fraction) -> float:
    """Round an exact fraction to 2 decimal places, halves away from zero."""
    exact = Decimal(value.numerator) / Decimal(value.denominator)
    return float(exact.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


@dataclass
class LeaderboardEntry:
    school: SchoolRecord
    averages: Dict[str, float]
    total: float
    rank: int = 0
    raw_total: Fraction = field(default=Fraction(0), repr=False)
    
    def to_dict(self, categories: Iterable[CategoryRecord] = None) -> dict:
        data = {
            'rank': self.rank,
            'school': self.school.to_dict(),
            'averages': dict(self.averages),
            'total': self.total,
        }
        if categories is not None:
            data['category_names'] = {c.id: c.name for c in categories}
        return data


class ScoreAggregator:
    """
    Averages judge scores per school and category, then ranks schools per tier.
    Averages divide by the number of active judges; a school missing a score
    for a category contributes 0 for that category.
    """
    
    def __init__(self, tiers=TIERS):
        self.tiers = tuple(tiers)
    
    @staticmethod
    def _clamp(score: int) -> int:
        return min(max(score, MIN_SCORE), MAX_SCORE)
    
    def effective_judge_count(self, judge_count: int, judges_who_scored: int = 0) -> int:
        """
        Divisor used for averages.
        
        A judge count of zero is treated as 1, and it is never smaller than the
        number of judges actually present in the scores for the school.
        """
        return max(judge_count or 0, judges_who_scored, 1)
    
    def score_school(
        self,
        school: SchoolRecord,
        categories: List[CategoryRecord],
        scores: Iterable[ScoreRecord],
        judge_count: int
    ) -> LeaderboardEntry:
        """
        Compute one school's per-category averages and total.
        
        Each category average is rounded once for display. The total is the
        sum of the unrounded averages, rounded once at the end.
        """
        sums = defaultdict(int)
        judges = set()
        for s in scores:
            if s.school_id != school.id:
                continue
            sums[s.category_id] += self._clamp(s.score)
            judges.add(s.judge_id)
        
        divisor = self.effective_judge_count(judge_count, len(judges))
        
        averages = {}
        raw_total = Fraction(0)
        for category in categories:
            raw_average = Fraction(sums.get(category.id, 0), divisor)
            averages[category.id] = round_half_up(raw_average)
            raw_total += raw_average
        
        return LeaderboardEntry(
            school=school,
            averages=averages,
            total=round_half_up(raw_total),
            raw_total=raw_total
        )
    
    @staticmethod
    def _ranking_key(entry: LeaderboardEntry):
        # Highest total first; ties broken by school name, then id
        return (-entry.raw_total, entry.school.name.casefold(), entry.school.id)
    
    def build_leaderboard(
        self,
        schools: Iterable[SchoolRecord],
        categories: Iterable[CategoryRecord],
        scores: Iterable[ScoreRecord],
        judge_count: int
    ) -> "OrderedDict[str, List[LeaderboardEntry]]":
        """
        Rank schools within each tier.
        
        Returns:
            OrderedDict of tier -> entries sorted by total descending. Tiers with
            no schools are left out.
        """
        schools = list(schools)
        categories = list(categories)
        scores = list(scores)
        
        by_school = defaultdict(list)
        for s in scores:
            by_school[s.school_id].append(s)
        
        leaderboard = OrderedDict()
        for tier in self.tiers:
            tier_schools = [school for school in schools if school.tier == tier]
            if not tier_schools:
                continue
            
            entries = [
                self.score_school(school, categories, by_school.get(school.id, []), judge_count)
                for school in tier_schools
            ]
            entries.sort(key=self._ranking_key)
            for rank, entry in enumerate(entries, start=1):
                entry.rank = rank
            leaderboard[tier] = entries
        
        return leaderboard
    
    def judge_breakdown(
        self,
        school: SchoolRecord,
        judges: Iterable[JudgeRecord],
        categories: Iterable[CategoryRecord],
        scores: Iterable[ScoreRecord]
    ) -> List[dict]:
        """
        Per-judge category scores for one school.
        
        Returns:
            [{'judge_id', 'judge_name', 'scores': {category_id: score}, 'total'}]
            with 0 for anything a judge has not scored.
        """
        categories = list(categories)
        lookup = {
            (s.judge_id, s.category_id): self._clamp(s.score)
            for s in scores if s.school_id == school.id
        }
        
        rows = []
        for judge in judges:
            category_scores = {c.id: lookup.get((judge.id, c.id), 0) for c in categories}
            rows.append({
                'judge_id': judge.id,
                'judge_name': judge.name,
                'scores': category_scores,
                'total': sum(category_scores.values()),
            })
        return rows
