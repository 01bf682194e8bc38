"""
Tests for the match mutation handlers: state transitions, validation and
the publish-after-persist rule.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from livematch.broadcast import ROOM_CHANNEL
from livematch.errors import BadRequest, Conflict, NotFound, Unavailable


@pytest.fixture
def spy(router):
    """A connection that joined room m1, used to observe broadcasts."""
    connection = router.connect()
    router.join(connection, 'm1')
    return connection


def _room_messages(connection):
    return [m for m in connection.drain() if m.channel == ROOM_CHANNEL]


class TestScore:

    def test_scenario_alpha_scores_twice_gamma_rejected(self, handlers, store, m1, spy):
        handlers.update_score('m1', {'teamName': 'Alpha'})
        record = handlers.update_score('m1', {'teamName': 'Alpha'})
        assert record.team1_score == 2
        assert record.team2_score == 0

        spy.drain()
        with pytest.raises(BadRequest):
            handlers.update_score('m1', {'teamName': 'Gamma'})
        stored = store.get('m1')
        assert (stored.team1_score, stored.team2_score) == (2, 0)
        assert spy.drain() == []

    def test_second_team(self, handlers, m1):
        record = handlers.update_score('m1', {'teamName': 'Beta'})
        assert (record.team1_score, record.team2_score) == (0, 1)

    def test_broadcast_payload(self, handlers, m1, spy):
        handlers.update_score('m1', {'teamName': 'Beta'})
        [message] = _room_messages(spy)
        assert message.event == 'scoreUpdated'
        assert message.payload == {
            'match_id': 'm1', 'team1_name': 'Alpha', 'team2_name': 'Beta',
            'team1_score': 0, 'team2_score': 1,
        }

    @pytest.mark.parametrize('body', [None, {}, {'teamName': ''}, {'teamName': 5}, ['Alpha']])
    def test_missing_team_name(self, handlers, m1, spy, body):
        with pytest.raises(BadRequest):
            handlers.update_score('m1', body)
        assert spy.drain() == []

    def test_team_name_is_exact_match(self, handlers, store, m1):
        with pytest.raises(BadRequest):
            handlers.update_score('m1', {'teamName': 'alpha'})
        assert store.get('m1').team1_score == 0

    def test_event_does_not_change_score(self, handlers, m1, sample_event):
        record = handlers.add_event('m1', {'event': sample_event})
        assert (record.team1_score, record.team2_score) == (0, 0)


class TestTimer:

    def test_scenario_timer_reaches_room(self, handlers, store, m1, spy):
        handlers.update_timer('m1', {'totalSeconds': 600, 'isPaused': False})
        stored = store.get('m1')
        assert stored.total_seconds == 600
        assert stored.is_paused is False
        [message] = _room_messages(spy)
        assert message.event == 'timerUpdated'
        assert message.payload == {'match_id': 'm1', 'total_seconds': 600, 'is_paused': False}

    def test_overwrites_unconditionally(self, handlers, m1):
        handlers.update_timer('m1', {'totalSeconds': 600, 'isPaused': False})
        record = handlers.update_timer('m1', {'totalSeconds': 900, 'isPaused': True})
        assert (record.total_seconds, record.is_paused) == (900, True)

    def test_zero_is_allowed(self, handlers, m1):
        assert handlers.update_timer('m1', {'totalSeconds': 0, 'isPaused': True}).total_seconds == 0

    @pytest.mark.parametrize('body', [
        {'isPaused': True},
        {'totalSeconds': 600},
        {'totalSeconds': -1, 'isPaused': True},
        {'totalSeconds': '600', 'isPaused': True},
        {'totalSeconds': 12.5, 'isPaused': True},
        {'totalSeconds': True, 'isPaused': True},
        {'totalSeconds': 600, 'isPaused': 'no'},
    ])
    def test_invalid_body(self, handlers, store, m1, spy, body):
        with pytest.raises(BadRequest):
            handlers.update_timer('m1', body)
        assert store.get('m1').total_seconds == 0
        assert spy.drain() == []


class TestEvents:

    def test_appends_in_order(self, handlers, store, m1, sample_event):
        for k in range(7):
            handlers.add_event('m1', {'event': dict(sample_event, time=f'{k:02d}:30')})
        events = store.get('m1').match_events
        assert len(events) == 7
        assert [e.time for e in events] == [f'{k:02d}:30' for k in range(7)]

    def test_existing_events_untouched(self, handlers, store, m1, sample_event):
        first = handlers.add_event('m1', {'event': sample_event}).match_events[0].to_dict()
        handlers.add_event('m1', {'event': dict(sample_event, type='Green Card', time='20:00')})
        events = store.get('m1').match_events
        assert events[0].to_dict() == first
        assert events[1].type == 'Green Card'

    def test_broadcast_payload(self, handlers, m1, spy, sample_event):
        handlers.add_event('m1', {'event': sample_event})
        [message] = _room_messages(spy)
        assert message.event == 'eventAdded'
        assert message.payload == {'match_id': 'm1', 'event': sample_event, 'event_count': 1}

    def test_missing_event(self, handlers, m1):
        with pytest.raises(BadRequest):
            handlers.add_event('m1', {})

    def test_incomplete_event(self, handlers, store, m1, sample_event):
        del sample_event['player_id']
        with pytest.raises(BadRequest):
            handlers.add_event('m1', {'event': sample_event})
        assert store.get('m1').match_events == []


class TestQuarterAndStatus:

    def test_change_quarter(self, handlers, m1, spy):
        record = handlers.change_quarter('m1', {'currentQuarter': 'Q3'})
        assert record.current_quarter == 'Q3'
        [message] = _room_messages(spy)
        assert message.event == 'quarterChanged'
        assert message.payload == {'match_id': 'm1', 'current_quarter': 'Q3'}

    def test_quarter_may_go_backwards(self, handlers, m1):
        handlers.change_quarter('m1', {'currentQuarter': 'Q4'})
        assert handlers.change_quarter('m1', {'currentQuarter': 'Q2'}).current_quarter == 'Q2'

    def test_unknown_quarter(self, handlers, store, m1, spy):
        with pytest.raises(BadRequest):
            handlers.change_quarter('m1', {'currentQuarter': 'Q7'})
        assert store.get('m1').current_quarter == 'Q1'
        assert spy.drain() == []

    def test_change_status(self, handlers, m1, spy):
        record = handlers.change_status('m1', {'status': 'Live'})
        assert record.status == 'Live'
        [message] = _room_messages(spy)
        assert message.event == 'matchStatusChanged'
        assert message.payload == {'match_id': 'm1', 'status': 'Live'}

    def test_finished_match_is_kept(self, handlers, store, m1):
        handlers.change_status('m1', {'status': 'Finished'})
        assert store.get('m1').status == 'Finished'

    @pytest.mark.parametrize('body', [{}, {'status': 'Paused'}, {'status': None}])
    def test_invalid_status(self, handlers, store, m1, body):
        with pytest.raises(BadRequest):
            handlers.change_status('m1', body)
        assert store.get('m1').status == 'Upcoming'


class TestMissingMatch:
    """Every mutation on a missing match is NotFound and publishes nothing."""

    @pytest.mark.parametrize('call', [
        lambda h: h.update_score('ghost', {'teamName': 'Alpha'}),
        lambda h: h.update_timer('ghost', {'totalSeconds': 10, 'isPaused': True}),
        lambda h: h.add_event('ghost', {'event': {
            'time': '01:00', 'team': 'Alpha', 'player_id': 'al01',
            'player_name': 'Alex Lane', 'type': 'Goal', 'quarter': 'Q1'}}),
        lambda h: h.change_quarter('ghost', {'currentQuarter': 'Q2'}),
        lambda h: h.change_status('ghost', {'status': 'Live'}),
        lambda h: h.delete_match('ghost'),
    ])
    def test_not_found_without_broadcast(self, handlers, router, call):
        spy = router.connect()
        router.join(spy, 'ghost')
        with pytest.raises(NotFound):
            call(handlers)
        assert spy.drain() == []


class TestDelete:

    def test_scenario_delete_then_score(self, handlers, store, m1, spy):
        assert handlers.delete_match('m1') == 'm1'
        [message] = _room_messages(spy)
        assert message.event == 'matchDeleted'
        assert message.payload == {'match_id': 'm1'}

        with pytest.raises(NotFound):
            store.get('m1')
        with pytest.raises(NotFound):
            handlers.update_score('m1', {'teamName': 'Alpha'})
        assert spy.drain() == []

    def test_delete_twice(self, handlers, m1):
        handlers.delete_match('m1')
        with pytest.raises(NotFound):
            handlers.delete_match('m1')


class TestCreate:

    def test_create_publishes(self, handlers, router):
        dashboard = router.connect()
        record = handlers.create_match({'match_id': 'm5', 'team1_id': 'T100', 'team2_id': 'T200'})
        assert record.match_id == 'm5'
        [message] = dashboard.drain()
        assert message.event == 'matchCreated'
        assert message.payload['team1_name'] == 'Alpha'

    def test_duplicate(self, handlers, m1):
        with pytest.raises(Conflict):
            handlers.create_match({'match_id': 'm1', 'team1_id': 'T100', 'team2_id': 'T200'})


class TestBroadcastIsFireAndForget:

    def test_router_failure_does_not_fail_mutation(self, lookup, store, m1):
        from livematch.handlers import MatchHandlers

        class ExplodingRouter:
            def publish(self, event, match_id, payload):
                raise RuntimeError('transport down')

        handlers = MatchHandlers(lookup, store, ExplodingRouter())
        record = handlers.update_score('m1', {'teamName': 'Alpha'})
        assert record.team1_score == 1
        assert store.get('m1').team1_score == 1


class TestStorageUnavailable:

    def test_unavailable_is_surfaced_without_broadcast(self, handlers, store, m1, spy, monkeypatch):
        def broken_update(match_id, partial):
            raise Unavailable('Match storage is unavailable.')

        monkeypatch.setattr(store, 'update', broken_update)
        with pytest.raises(Unavailable):
            handlers.update_timer('m1', {'totalSeconds': 60, 'isPaused': True})
        assert spy.drain() == []
