import time

from babonus.engine.registry import RollRegistry

def test_entry_lives_until_ttl(clock):
    reg = RollRegistry(ttl=300, clock=clock)
    rid = reg.register({"type": "attackRoll"})
    assert len(rid) == 16
    assert reg.get(rid) == {"type": "attackRoll"}
    clock.advance(1)
    assert reg.get(rid) == {"type": "attackRoll"}
    assert rid in reg
    clock.advance(300)
    assert reg.get(rid) is None
    assert rid not in reg

def test_deadline_is_exclusive(clock):
    reg = RollRegistry(ttl=10, clock=clock)
    rid = reg.register("x")
    clock.advance(9.5)
    assert reg.get(rid) == "x"
    clock.advance(0.5)
    assert reg.get(rid) is None

def test_missing_ids(clock):
    reg = RollRegistry(clock=clock)
    assert reg.get(None) is None
    assert reg.get("") is None
    assert reg.get("nope") is None

def test_purge_expired(clock):
    reg = RollRegistry(ttl=300, clock=clock)
    old = reg.register("old")
    clock.advance(200)
    new = reg.register("new")
    clock.advance(101)
    assert len(reg) == 2
    assert reg.purge_expired() == 1
    assert len(reg) == 1
    assert reg.get(old) is None
    assert reg.get(new) == "new"

def test_cleanup_thread(clock):
    reg = RollRegistry(ttl=5, clock=clock)
    reg.register("a")
    reg.register("b")
    reg.start_cleanup(interval=0.01)
    try:
        assert reg.cleanup_running
        clock.advance(6)
        deadline = time.monotonic() + 5
        while len(reg) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(reg) == 0
    finally:
        reg.shutdown(timeout=1)
    assert not reg.cleanup_running

def test_register_drops_expired_entries(clock):
    reg = RollRegistry(ttl=300, clock=clock)
    for i in range(50):
        reg.register(i)
    assert len(reg) == 50
    clock.advance(301)
    rid = reg.register("fresh")
    assert len(reg) == 1
    assert reg.get(rid) == "fresh"
