from stat_sampler import (
    FileSink,
    FileSinkConfig,
    PollDispatcher,
    RingBufferSink,
    RingBufferSinkConfig,
    SessionConfig,
    SessionRegistry,
    SourceOps,
    SystemStatsSource,
)

# A custom source: three queue counters that grow on every read
counters = {"queue_rx": 0, "queue_tx": 0, "queue_drops": 0}
names = list(counters)


def names_get(source_id, out_names, out_ids, user_data):
    if out_names is not None:
        for i, name in enumerate(names[: len(out_names)]):
            out_names[i] = name
            out_ids[i] = i
    return len(names)


def values_get(source_id, ids, values, user_data):
    for name in counters:
        counters[name] += 10
    for i, stat_id in enumerate(ids):
        values[i] = counters[names[int(stat_id)]]
    return len(ids)


registry = SessionRegistry()

# Periodic session: every 100ms for one second
session = registry.create(SessionConfig.periodic(100, duration_ms=1000, name="demo"))
session.register_source("queues", 1, SourceOps(names_get=names_get, values_get=values_get))
system = SystemStatsSource.register(session)
session.set_filter(system, ["cpu_*", "net_*_bytes"])

# Write CSV and keep the last five samples in memory
FileSink.create(session, FileSinkConfig("demo_stats.csv"))
ring = RingBufferSink.create(session, RingBufferSinkConfig(max_entries=5))

session.start()
PollDispatcher(registry).run()

for entry in ring.read():
    print(entry.source_name, dict(zip(entry.ids.tolist(), entry.values.tolist())))

# Query values directly
for stat in session.xstats_get("queues"):
    print(f"{stat.name:<15} {stat.value}")

# Freeing the sessions also closes their sinks
registry.close()
