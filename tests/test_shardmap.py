import threading
from dataclasses import dataclass

import pytest

from zinxtools.shardmap import Item, ShardLockMap


@dataclass(frozen=True)
class User:
    name: str


class _ZeroHash:
    def sum(self, key):
        return 0


def _filled(n=100):
    slm = ShardLockMap()
    for i in range(n):
        slm.set(str(i), User(str(i)))
    return slm


def test_create_map_is_empty():
    slm = ShardLockMap()
    assert slm.count() == 0
    assert slm.shard_count == 32


def test_invalid_shard_count():
    with pytest.raises(ValueError):
        ShardLockMap(shard_count=0)


def test_set_mset_set_nx():
    slm = ShardLockMap()
    slm.set("user", "14March")
    slm.mset({"aaa": 111, "bbb": "222"})
    assert slm.set_nx("user", "other") is False
    assert slm.set_nx("bo", User("bo")) is True
    assert slm.count() == 4
    assert slm.get("user") == "14March"


def test_get():
    slm = ShardLockMap()
    assert slm.get("user") is None
    assert slm.get("user", "fallback") == "fallback"
    slm.set("tony", User("tony"))
    assert slm.get("tony") == User("tony")


def test_has_and_contains():
    slm = ShardLockMap()
    assert slm.has("Money") is False
    slm.set("user", "14March")
    assert slm.has("user") is True
    assert "user" in slm
    assert "Money" not in slm


def test_count_and_len():
    slm = _filled()
    assert slm.count() == 100
    assert len(slm) == 100


def test_remove():
    slm = ShardLockMap()
    slm.set("david", User("David"))
    slm.remove("david")
    assert slm.count() == 0
    assert slm.has("david") is False
    assert slm.get("david") is None
    slm.remove("user")
    assert slm.is_empty() is True


def test_remove_cb():
    slm = ShardLockMap()
    tony, david = User("tony"), User("david")
    slm.set("tony", tony)
    slm.set("david", david)
    seen = {}

    def cb(key, val, exists):
        seen.update(key=key, val=val, exists=exists)
        return isinstance(val, User) and val.name == "tony"

    assert slm.remove_cb("tony", cb) is True
    assert seen == {"key": "tony", "val": tony, "exists": True}
    assert not slm.has("tony")

    assert slm.remove_cb("david", cb) is False
    assert seen == {"key": "david", "val": david, "exists": True}
    assert slm.has("david")

    assert slm.remove_cb("danny", cb) is False
    assert seen == {"key": "danny", "val": None, "exists": False}
    assert not slm.has("danny")


def test_remove_cb_true_on_missing_key_returns_true():
    slm = ShardLockMap()
    assert slm.remove_cb("ghost", lambda k, v, e: True) is True
    assert slm.count() == 0


def test_pop():
    slm = ShardLockMap()
    assert slm.pop("user") == (None, False)
    slm.set("user", "14March")
    assert slm.pop("user") == ("14March", True)
    assert not slm.has("user")


def test_buffered_iterator():
    slm = _filled()
    items = list(slm.iter_buffered())
    assert len(items) == 100
    assert all(isinstance(item, Item) and item.value is not None for item in items)
    assert {item.key for item in items} == {str(i) for i in range(100)}


def test_clear():
    slm = _filled()
    slm.clear()
    assert slm.count() == 0


def test_iter_cb():
    slm = _filled()
    seen = []
    slm.iter_cb(lambda key, value: seen.append((key, value)))
    assert len(seen) == 100
    assert all(isinstance(v, User) and v.name == k for k, v in seen)


def test_items():
    slm = _filled()
    items = slm.items()
    assert len(items) == 100
    assert items["42"] == User("42")


def test_json_marshal():
    slm = ShardLockMap(shard_count=2)
    slm.set("a", 1)
    slm.set("b", 2)
    assert slm.to_json() == '{"a":1,"b":2}'


def test_unmarshal_json():
    slm = ShardLockMap()
    slm.load_json(b'{"ccc":1,"ddd":2}')
    assert slm.count() == 2
    assert slm.get("ccc") == 1
    assert slm.get("ddd") == 2


def test_unmarshal_json_rejects_non_object():
    slm = ShardLockMap()
    with pytest.raises(ValueError):
        slm.load_json("[1, 2]")
    with pytest.raises(ValueError):
        slm.load_json("{not json")


def test_keys():
    slm = _filled()
    keys = slm.keys()
    assert len(keys) == 100
    assert sorted(keys, key=int) == [str(i) for i in range(100)]


def test_keys_when_removing():
    slm = _filled()
    threads = [threading.Thread(target=slm.remove, args=(str(i),)) for i in range(10)]
    for t in threads:
        t.start()
    keys = slm.keys()
    for t in threads:
        t.join()
    assert all(k != "" for k in keys)
    assert 90 <= len(keys) <= 100
    assert slm.count() == 90


def test_undrained_iter_buffered():
    slm = _filled()
    it = slm.iter_buffered()
    counter = 0
    for item in it:
        assert item.value is not None
        counter += 1
        if counter == 42:
            break
    for i in range(100, 200):
        slm.set(str(i), User(str(i)))
    for item in it:
        assert item.value is not None
        counter += 1
    assert counter == 100
    assert sum(1 for _ in slm.iter_buffered()) == 200


def test_custom_hasher_single_shard_still_works():
    slm = ShardLockMap(hasher=_ZeroHash(), shard_count=4)
    for i in range(20):
        slm.set(str(i), i)
    assert slm.count() == 20
    assert slm.get("7") == 7


def test_concurrent():
    slm = ShardLockMap()
    iterations = 1000
    results = []
    lock = threading.Lock()

    def worker(start, stop):
        for i in range(start, stop):
            slm.set(str(i), i)
            val = slm.get(str(i))
            with lock:
                results.append(val)

    threads = [
        threading.Thread(target=worker, args=(0, iterations // 2)),
        threading.Thread(target=worker, args=(iterations // 2, iterations)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert slm.count() == iterations
    assert sorted(results) == list(range(iterations))