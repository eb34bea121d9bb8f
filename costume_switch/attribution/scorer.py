"""
Scoring and ranking of detections.

Winner selection turns each detection into a score:

    score = priority * priority_multiplier
            - distance_penalty_weight * (text_length - match_index)
            + detection_bias            (active-tier matches only)
            + roster bonus              (names in the scene roster)

Active-tier matches (priority >= ACTIVE_PRIORITY_THRESHOLD) get an
attenuated roster bonus: ``bonus * max(0, 1 - dropoff * (priority - threshold + 1))``,
so roster presence helps weak signals without overriding strong fresh ones.

Ties are broken by higher priority, then by the later (fresher) position,
then by detection order.

Scene ranking aggregates detections per character instead and is used for
the "top characters" projection.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from config import settings
from ..models import Match, ScoredMatch, SceneRanking


@dataclass
class ScoringOptions:
    """Tuning knobs for one scoring pass."""
    priority_multiplier: float = settings.PRIORITY_MULTIPLIER
    distance_penalty_weight: float = settings.DEFAULT_DISTANCE_PENALTY_WEIGHT
    detection_bias: float = settings.DEFAULT_DETECTION_BIAS
    roster_bonus: float = settings.DEFAULT_ROSTER_BONUS
    roster_priority_dropoff: float = settings.DEFAULT_ROSTER_PRIORITY_DROPOFF
    active_threshold: int = settings.ACTIVE_PRIORITY_THRESHOLD
    roster: FrozenSet[str] = field(default_factory=frozenset)
    min_index: Optional[int] = None

    @classmethod
    def from_profile(cls, profile, roster: Optional[Iterable[str]] = None,
                     min_index: Optional[int] = None) -> "ScoringOptions":
        return cls(
            distance_penalty_weight=profile.distance_penalty_weight,
            detection_bias=profile.detection_bias,
            roster_bonus=profile.roster_bonus,
            roster_priority_dropoff=profile.roster_priority_dropoff,
            roster=frozenset(n.lower() for n in roster or ()),
            min_index=min_index,
        )


def roster_bonus_for(priority: int, options: ScoringOptions) -> float:
    """Roster bonus after active-tier attenuation (never negative)."""
    bonus = options.roster_bonus
    if priority >= options.active_threshold:
        dropoff = max(0.0, options.roster_priority_dropoff)
        steps = priority - options.active_threshold + 1
        bonus *= max(0.0, 1.0 - dropoff * steps)
    return max(0.0, bonus)


def score_match(match: Match, text_length: int, options: ScoringOptions) -> ScoredMatch:
    score = match.priority * options.priority_multiplier
    score -= options.distance_penalty_weight * (text_length - match.match_index)
    if match.priority >= options.active_threshold:
        score += options.detection_bias
    if match.name.lower() in options.roster:
        score += roster_bonus_for(match.priority, options)
    return ScoredMatch(
        name=match.name,
        match_kind=match.match_kind,
        match_index=match.match_index,
        priority=match.priority,
        score=score,
    )


def rank_matches(matches: Iterable[Match], text_length: int,
                 options: Optional[ScoringOptions] = None) -> List[ScoredMatch]:
    """Score every eligible detection and return them best first."""
    options = options or ScoringOptions()
    scored = []
    for order, match in enumerate(matches):
        if not match.name:
            continue
        if options.min_index is not None and match.match_index <= options.min_index:
            continue
        scored.append((order, score_match(match, text_length, options)))

    scored.sort(key=lambda item: (-item[1].score, -item[1].priority, -item[1].match_index, item[0]))
    return [entry for _, entry in scored]


def pick_winner(matches: Iterable[Match], text_length: int,
                options: Optional[ScoringOptions] = None) -> Optional[ScoredMatch]:
    ranked = rank_matches(matches, text_length, options)
    return ranked[0] if ranked else None


def rank_scene_characters(matches: Iterable[Match],
                          options: Optional[ScoringOptions] = None) -> List[SceneRanking]:
    """
    Aggregate detections per character for the "who is active in this scene" list.

    score = count * 1000 + best_priority * 100 + roster_bonus (roster members)
            - earliest_index * distance_penalty_weight

    Sorted by score, then count, best priority, earliest index (all
    descending except the index) and finally the name, case-insensitively.
    """
    options = options or ScoringOptions()
    groups: Dict[str, Dict] = {}
    for match in matches:
        if not match.name:
            continue
        key = match.name.lower()
        group = groups.get(key)
        if group is None:
            groups[key] = {
                'name': match.name,
                'count': 1,
                'best_priority': match.priority,
                'earliest': match.match_index,
                'latest': match.match_index,
            }
            continue
        group['count'] += 1
        group['best_priority'] = max(group['best_priority'], match.priority)
        group['earliest'] = min(group['earliest'], match.match_index)
        group['latest'] = max(group['latest'], match.match_index)

    rankings = []
    for key, group in groups.items():
        in_roster = key in options.roster
        score = group['count'] * 1000 + group['best_priority'] * 100
        if in_roster:
            score += options.roster_bonus
        score -= group['earliest'] * options.distance_penalty_weight
        rankings.append(SceneRanking(
            name=group['name'],
            normalized=key,
            count=group['count'],
            best_priority=group['best_priority'],
            earliest_index=group['earliest'],
            latest_index=group['latest'],
            in_roster=in_roster,
            score=score,
        ))

    rankings.sort(key=lambda r: (-r.score, -r.count, -r.best_priority, r.earliest_index, r.normalized))
    return rankings
