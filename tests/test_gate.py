"""Tests for the per-requester concurrency gate."""

from figurine.core.gate import ConcurrencyGate


def test_try_acquire_marks_busy_once():
    gate = ConcurrencyGate()

    assert gate.try_acquire("alice") is True
    assert gate.is_busy("alice")
    assert gate.try_acquire("alice") is False
    assert len(gate) == 1


def test_requesters_are_independent():
    gate = ConcurrencyGate()

    assert gate.try_acquire("alice")
    assert gate.try_acquire("bob")
    gate.release("alice")

    assert not gate.is_busy("alice")
    assert gate.is_busy("bob")


def test_release_is_idempotent():
    gate = ConcurrencyGate()
    gate.try_acquire("alice")

    assert gate.release("alice") is True
    assert gate.release("alice") is False
    assert gate.release("never-seen") is False
    assert gate.try_acquire("alice") is True


def test_clear_frees_everyone():
    gate = ConcurrencyGate()
    gate.try_acquire("alice")
    gate.try_acquire("bob")

    gate.clear()

    assert len(gate) == 0
    assert gate.try_acquire("bob")


def test_each_acquisition_gets_a_new_token():
    gate = ConcurrencyGate()
    gate.try_acquire("alice")
    first = gate.token("alice")

    gate.release("alice")
    gate.try_acquire("alice")

    assert first is not None
    assert gate.token("alice") != first
    assert gate.holds("alice", gate.token("alice"))
    assert not gate.holds("alice", first)
    assert gate.token("bob") is None


def test_release_with_stale_token_keeps_new_holder():
    gate = ConcurrencyGate()
    gate.try_acquire("alice")
    stale = gate.token("alice")
    gate.release("alice")
    gate.try_acquire("alice")

    assert gate.release("alice", stale) is False
    assert gate.is_busy("alice")
    assert gate.release("alice", gate.token("alice")) is True


def test_tokens_are_not_reused_after_clear():
    gate = ConcurrencyGate()
    gate.try_acquire("alice")
    before = gate.token("alice")

    gate.clear()
    gate.try_acquire("alice")

    assert gate.token("alice") != before
