"""
Unit tests for LotterySequencer.
Tests: shuffle, run, restore, commit, performance_order
"""
import random

import pytest

from culturefest.errors import ValidationError, PersistenceError
from culturefest.lottery import LotterySequencer
from culturefest.models import School
from culturefest.records import SchoolRecord


@pytest.fixture
def schools():
    return [
        SchoolRecord(id='s1', name='Greenwood High', tier='Senior', serial_number=4),
        SchoolRecord(id='j1', name='Aster', tier='Junior'),
        SchoolRecord(id='j2', name='Banyan', tier='Junior', serial_number=7),
        SchoolRecord(id='k1', name='Rainbow Kids', tier='Sub-Junior', serial_number=1),
        SchoolRecord(id='j3', name='Cedar', tier='Junior'),
        SchoolRecord(id='j4', name='Deodar', tier='Junior'),
    ]


@pytest.fixture
def sequencer():
    return LotterySequencer(rng=random.Random(42))


class TestShuffle:
    
    def test_is_permutation(self, sequencer):
        items = list(range(20))
        shuffled = sequencer.shuffle(items)
        assert sorted(shuffled) == items
    
    def test_input_untouched(self, sequencer):
        items = [1, 2, 3, 4]
        sequencer.shuffle(items)
        assert items == [1, 2, 3, 4]
    
    def test_empty_and_single(self, sequencer):
        assert sequencer.shuffle([]) == []
        assert sequencer.shuffle(['only']) == ['only']
    
    def test_uses_injected_rng(self, mocker):
        """Always picking j=0 walks the Durstenfeld swaps deterministically."""
        rng = mocker.MagicMock()
        rng.randint.return_value = 0
        sequencer = LotterySequencer(rng=rng)
        
        assert sequencer.shuffle(['a', 'b', 'c']) == ['b', 'c', 'a']
        assert rng.randint.call_count == 2


class TestRun:
    """Tests for run method."""
    
    def test_serials_are_one_to_n(self, sequencer, schools):
        draw = sequencer.run(schools, 'Junior')
        
        serials = sorted(s.serial_number for s in draw.schools if s.tier == 'Junior')
        assert serials == [1, 2, 3, 4]
    
    def test_other_tiers_untouched(self, sequencer, schools):
        """Schools outside the tier keep identity and position."""
        draw = sequencer.run(schools, 'Junior')
        
        assert len(draw.schools) == len(schools)
        for before, after in zip(schools, draw.schools):
            assert before.id == after.id
            if before.tier != 'Junior':
                assert after is before
    
    def test_input_not_mutated(self, sequencer, schools):
        sequencer.run(schools, 'Junior')
        assert schools[1].serial_number is None
        assert schools[2].serial_number == 7
    
    def test_changed_lists_new_serials_only(self, sequencer):
        schools = [SchoolRecord(id='only', name='Only', tier='Senior', serial_number=1)]
        draw = sequencer.run(schools, 'Senior')
        
        assert draw.schools[0].serial_number == 1
        assert draw.changed == ()
    
    def test_empty_tier(self, sequencer, schools):
        draw = sequencer.run(schools, 'Senior')
        assert [s.serial_number for s in draw.tier_schools] == [1]
        
        draw = sequencer.run([s for s in schools if s.tier != 'Senior'], 'Senior')
        assert draw.tier_schools == []
    
    def test_invalid_tier(self, sequencer, schools):
        with pytest.raises(ValidationError) as exc:
            sequencer.run(schools, 'Primary')
        assert exc.value.code == 'invalidTier'
    
    def test_to_dict_in_serial_order(self, sequencer, schools):
        data = sequencer.run(schools, 'Junior').to_dict()
        
        assert data['tier'] == 'Junior'
        assert [s['serial_number'] for s in data['order']] == [1, 2, 3, 4]


class TestRestore:
    
    def test_rebuilds_preview(self, sequencer, schools):
        serials = {'j1': 2, 'j2': 1, 'j3': 4, 'j4': 3}
        draw = sequencer.restore(schools, 'Junior', serials)
        
        assert [s.id for s in draw.tier_schools] == ['j2', 'j1', 'j4', 'j3']
        assert {s.id for s in draw.changed} == {'j1', 'j2', 'j3', 'j4'}
    
    def test_stale_preview_rejected(self, sequencer, schools):
        with pytest.raises(ValidationError) as exc:
            sequencer.restore(schools, 'Junior', {'j1': 1, 'j2': 2})
        assert exc.value.code == 'stalePreview'


class TestCommit:
    """Tests for commit method."""
    
    def test_writes_tier_serials(self, app, db_session, store):
        db_session.add_all([
            School(id='j1', name='Aster', tier='Junior'),
            School(id='j2', name='Banyan', tier='Junior', serial_number=5),
            School(id='s1', name='Greenwood', tier='Senior', serial_number=9),
        ])
        db_session.commit()
        
        sequencer = LotterySequencer(store=store, rng=random.Random(7))
        draw = sequencer.run(store.read_all('schools'), 'Junior')
        written = sequencer.commit(draw)
        
        assert written == 2
        saved = {s.id: s.serial_number for s in store.read_all('schools')}
        assert sorted([saved['j1'], saved['j2']]) == [1, 2]
        assert saved['s1'] == 9
    
    def test_failed_batch_propagates(self, mocker, schools):
        store = mocker.MagicMock()
        store.batch_write.side_effect = PersistenceError('batch write')
        events = mocker.MagicMock()
        sequencer = LotterySequencer(store=store, events=events, rng=random.Random(1))
        
        with pytest.raises(PersistenceError):
            sequencer.commit(sequencer.run(schools, 'Junior'))
        events.publish.assert_not_called()
    
    def test_publishes_event(self, mocker, schools):
        store = mocker.MagicMock()
        store.batch_write.return_value = 4
        events = mocker.MagicMock()
        sequencer = LotterySequencer(store=store, events=events, rng=random.Random(1))
        
        sequencer.commit(sequencer.run(schools, 'Junior'))
        
        event = events.publish.call_args[0][0]
        assert event.subject_id == 'Junior'
        assert event.data['schools_count'] == 4


class TestPerformanceOrder:
    
    def test_groups_and_sorts(self, schools):
        order = LotterySequencer.performance_order(schools)
        
        assert list(order.keys()) == ['Senior', 'Junior', 'Sub-Junior']
        # Numbered first, then unnumbered by name
        assert [s.id for s in order['Junior']] == ['j2', 'j1', 'j3', 'j4']
