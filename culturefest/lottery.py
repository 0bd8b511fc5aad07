import logging
import random
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from shared.events import lottery_committed_event
from shared.pubsub import EventPublisher

from .document_store import DocumentStore
from .errors import ValidationError
from .models import TIERS
from .records import SchoolRecord, parse_tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LotteryDraw:
    """A drawn (not yet saved) performance order for one tier."""
    tier: str
    schools: tuple
    changed: tuple
    
    @property
    def tier_schools(self) -> List[SchoolRecord]:
        drawn = [s for s in self.schools if s.tier == self.tier]
        return sorted(drawn, key=lambda s: s.serial_number)
    
    def to_dict(self) -> dict:
        return {
            'tier': self.tier,
            'order': [s.to_dict() for s in self.tier_schools],
            'changed_count': len(self.changed),
        }


class LotterySequencer:
    """
    Draws a random performance order within a tier.
    Drawing is pure; nothing is stored until commit() is called with the draw.
    """
    
    def __init__(
        self,
        store: DocumentStore = None,
        events: EventPublisher = None,
        rng: random.Random = None
    ):
        self.store = store or DocumentStore()
        self.events = events or EventPublisher()
        self.rng = rng or random.SystemRandom()
    
    def shuffle(self, items: Sequence) -> list:
        """Durstenfeld shuffle; returns a new list and leaves the input alone."""
        shuffled = list(items)
        for i in range(len(shuffled) - 1, 0, -1):
            j = self.rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled
    
    def run(self, schools: Sequence[SchoolRecord], tier: str) -> LotteryDraw:
        """
        Assign serial numbers 1..N to the schools of one tier in a fresh random order.
        
        Schools of other tiers are returned as the same objects in the same
        positions of the sequence.
        """
        tier = parse_tier(tier)
        schools = list(schools)
        
        targets = [s for s in schools if s.tier == tier]
        order = self.shuffle(targets)
        assigned = {school.id: index for index, school in enumerate(order, start=1)}
        
        result = []
        changed = []
        for school in schools:
            if school.tier != tier:
                result.append(school)
                continue
            drawn = replace(school, serial_number=assigned[school.id])
            if drawn.serial_number != school.serial_number:
                changed.append(drawn)
            result.append(drawn)
        
        logger.debug(f"Lottery drawn for {tier}: {len(targets)} schools")
        return LotteryDraw(tier=tier, schools=tuple(result), changed=tuple(changed))
    
    def restore(self, schools: Sequence[SchoolRecord], tier: str, serials: dict) -> LotteryDraw:
        """
        Rebuild a previewed draw from its {school_id: serial_number} map.
        
        Raises:
            ValidationError if the tier's schools changed since the preview.
        """
        tier = parse_tier(tier)
        schools = list(schools)
        targets = {s.id for s in schools if s.tier == tier}
        if targets != set(serials):
            raise ValidationError(
                'lottery', 'stalePreview',
                'The school list changed since this draw. Please run the lottery again.'
            )
        
        result = []
        changed = []
        for school in schools:
            if school.tier != tier:
                result.append(school)
                continue
            drawn = replace(school, serial_number=int(serials[school.id]))
            if drawn.serial_number != school.serial_number:
                changed.append(drawn)
            result.append(drawn)
        return LotteryDraw(tier=tier, schools=tuple(result), changed=tuple(changed))
    
    def commit(self, draw: LotteryDraw) -> int:
        """
        Save every serial number of the drawn tier as one batch.
        
        Raises:
            PersistenceError if the batch fails; nothing is saved in that case.
        """
        writes = [
            ('schools', school.id, {'serial_number': school.serial_number})
            for school in draw.tier_schools
        ]
        written = self.store.batch_write(writes)
        
        logger.info(f"Performance order saved for {draw.tier} ({written} schools)")
        self.events.publish(lottery_committed_event(draw.tier, written))
        return written
    
    @staticmethod
    def performance_order(schools: Sequence[SchoolRecord]) -> "OrderedDict[str, List[SchoolRecord]]":
        """Schools per tier sorted by serial number; unnumbered schools go last by name."""
        order = OrderedDict()
        for tier in TIERS:
            tier_schools = [s for s in schools if s.tier == tier]
            if not tier_schools:
                continue
            order[tier] = sorted(
                tier_schools,
                key=lambda s: (s.serial_number is None, s.serial_number or 0, s.name.casefold())
            )
        return order
