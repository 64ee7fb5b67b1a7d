"""Tests for blow gesture debouncing."""

from processing.debounce import GestureDebouncer, GestureEvent


def _feed(debouncer, signals):
    return [debouncer.observe(s) for s in signals]


class TestConfirmation:
    def test_confirms_on_threshold_frame(self):
        d = GestureDebouncer(threshold=15)
        events = _feed(d, [True] * 15)
        assert events[:14] == [GestureEvent.STILL_BLOWING] * 14
        assert events[14] == GestureEvent.CONFIRMED
        assert d.confirmed

    def test_confirms_exactly_once(self):
        d = GestureDebouncer(threshold=15)
        events = _feed(d, [True] * 40)
        assert events.count(GestureEvent.CONFIRMED) == 1
        assert events.index(GestureEvent.CONFIRMED) == 14
        assert all(e == GestureEvent.NONE for e in events[15:])

    def test_no_second_confirmation_after_dropout(self):
        d = GestureDebouncer(threshold=3)
        _feed(d, [True] * 3)
        events = _feed(d, [False] * 5 + [True] * 10)
        assert GestureEvent.CONFIRMED not in events

    def test_default_threshold_from_config(self):
        d = GestureDebouncer()
        assert d.state.threshold == 15
        assert d.decay == 2


class TestDecay:
    def test_false_frames_decay_by_two(self):
        d = GestureDebouncer(threshold=15)
        _feed(d, [True] * 10)
        assert d.observe(False) == GestureEvent.NONE
        assert d.state.consecutive_blow_frames == 8

    def test_counter_floors_at_zero(self):
        d = GestureDebouncer(threshold=15)
        _feed(d, [True, False, False, False])
        assert d.state.consecutive_blow_frames == 0

    def test_alternating_signal_never_confirms(self):
        d = GestureDebouncer(threshold=15)
        events = _feed(d, [True, False] * 50)
        assert GestureEvent.CONFIRMED not in events
        assert d.state.consecutive_blow_frames <= 1

    def test_counter_hovering_below_threshold_never_confirms(self):
        d = GestureDebouncer(threshold=15)
        # 14, then 12 -> 13 -> 14 forever
        signals = [True] * 14 + [False, True, True] * 20
        events = _feed(d, signals)
        assert GestureEvent.CONFIRMED not in events
        assert not d.confirmed

    def test_brief_dropout_only_delays_confirmation(self):
        d = GestureDebouncer(threshold=15)
        events = _feed(d, [True] * 10 + [False] + [True] * 7)
        # 10 - 2 = 8, then seven more frames reach 15
        assert events[-1] == GestureEvent.CONFIRMED

    def test_custom_decay(self):
        d = GestureDebouncer(threshold=15, decay=5)
        _feed(d, [True] * 7 + [False])
        assert d.state.consecutive_blow_frames == 2
