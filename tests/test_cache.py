from cache import TTLCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_set_then_get_returns_value():
    cache = TTLCache(clock=FakeClock())
    cache.set("trending:rust", ["a", "b"], ttl=60)
    assert cache.get("trending:rust") == ["a", "b"]


def test_missing_key_is_none():
    assert TTLCache(clock=FakeClock()).get("nope") is None


def test_entry_expires_once_ttl_has_elapsed():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("feed:abc", [1], ttl=30 * 60)

    clock.advance(30 * 60 - 1)
    assert cache.get("feed:abc") == [1]

    clock.advance(1)
    assert cache.get("feed:abc") is None
    # Expired entries are evicted on read
    assert len(cache) == 0


def test_set_overwrites_and_restarts_lifetime():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("k", "old", ttl=10)
    clock.advance(8)
    cache.set("k", "new", ttl=10)
    clock.advance(8)
    assert cache.get("k") == "new"


def test_empty_list_is_a_hit():
    cache = TTLCache(clock=FakeClock())
    cache.set("trending:nothing", [], ttl=10)
    assert cache.get("trending:nothing") == []
    assert cache.contains("trending:nothing")


def test_keys_have_independent_ttls():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("trending:go", "t", ttl=1800)
    cache.set("feed:chan", "f", ttl=4 * 3600)
    clock.advance(3600)
    assert cache.get("trending:go") is None
    assert cache.get("feed:chan") == "f"


def test_clear():
    cache = TTLCache(clock=FakeClock())
    cache.set("a", 1, ttl=10)
    cache.clear()
    assert cache.get("a") is None
