class RedisKeys:
    """Centralised Redis key pattern definitions for mirrored snapshots"""

    # Snapshot data patterns
    SNAPSHOT_BLOCKS_HASH = "snapshot:{window_key}:blocks"
    SNAPSHOT_META_HASH = "snapshot:{window_key}:meta"

    # Index of mirrored windows, scored by generation time
    SNAPSHOT_INDEX = "snapshot:windows"

    # PubSub patterns
    PUBSUB_CHANNEL_UPDATES = "snapshot:updates"

    @classmethod
    def blocks_key(cls, window_key: str) -> str:
        return cls.SNAPSHOT_BLOCKS_HASH.format(window_key=window_key)

    @classmethod
    def meta_key(cls, window_key: str) -> str:
        return cls.SNAPSHOT_META_HASH.format(window_key=window_key)
