# zinxtools

Small building blocks for long-running network services:

- `zinxtools.hashing` has the 32-bit FNV-1 hash: `Fnv32Hash` and `default_hash()`.
- `zinxtools.shardmap` has `ShardLockMap`, a thread-safe map with string keys. It spreads its keys over several shards, and each shard has its own lock.
- `zinxtools.snowflake` has `IDWorker`, which makes 64-bit, time-ordered unique IDs. If the clock goes backwards, it raises `ClockMovedBackwardsError`.
- `zinxtools.rotating_writer` has `RotatingWriter`, a log file writer that:
  - rotates the file each day and when it reaches a size limit;
  - zips the rotated files;
  - deletes archives older than a set number of days.

  The module also has the helpers `zip_to_file` and `zip_path`.
- `zinxtools.delayfunc`, `zinxtools.timer`, `zinxtools.timewheel` and `zinxtools.scheduler` provide deferred callbacks, one-shot timers and an hour/minute/second timing-wheel scheduler.

The package has no dependencies outside the standard library.

## Install

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Sharded map

```python
from zinxtools.shardmap import ShardLockMap

m = ShardLockMap()             # 32 shards by default; ShardLockMap(shard_count=4) also works
m.set("user", "alice")
m.set_nx("user", "bob")        # returns False: the key already exists
m.mset({"a": 1, "b": 2})
print(len(m), "a" in m, m.get("a"))
value, existed = m.pop("a")
print(m.to_json())             # JSON object with sorted keys
m.load_json('{"c": 3}')
```

`remove_cb(key, callback)` calls `callback(key, value, exists)` while it holds the shard's lock. It removes the key when the callback returns true.

`iter_buffered()` iterates over a snapshot of the map taken at the moment of the call. `items()`, `keys()` and `iter_cb(fn)` also read every element.

## Snowflake IDs

```python
from zinxtools.snowflake import IDWorker

worker = IDWorker(1)           # worker IDs 0..1023; other values raise ValueError
print(worker.next_id())
```

## Timers

```python
from zinxtools.delayfunc import DelayFunc
from zinxtools.scheduler import new_auto_exec_timer_scheduler

def hello(*args):
    print("fired with", args)

scheduler = new_auto_exec_timer_scheduler()
timer_id = scheduler.create_timer_after(DelayFunc(hello, ["hello", "world"]), 2.0)
# scheduler.cancel_timer(timer_id) removes the timer before it fires
# scheduler.stop() shuts the scheduler and its wheels down
```

`DelayFunc.call()` logs any exception the callback raises instead of propagating it.

A `TimerScheduler` that you create yourself and start with `start()` only puts due callbacks on `trigger_queue`. Your code takes them from that queue and calls them.

A `Timer` made with `timer_at` or `timer_after` can also run by itself: `Timer.run()` waits in a background thread and then fires the callback.

## Rotating log writer

```python
from zinxtools.rotating_writer import RotatingWriter

with RotatingWriter("logs/app.log") as writer:
    writer.max_size = 8 * 1024 * 1024   # bytes; defaults to 64 MiB
    writer.max_age = 7                  # days to keep archives; defaults to 31
    writer.write(b"service started\n")
```

When the writer rotates `app.log`, the old file becomes `app.<timestamp>.zip` in the same directory. A background thread flushes buffered data every few seconds. If `console` is set to true, everything written is echoed to standard error as well.

## What this package does not do

This package has no network server, connection handling or message routing of its own. It also has no command-line program. It is a library of utilities for building such services.