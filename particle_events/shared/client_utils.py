from datetime import datetime, timezone

def make_stream_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every EventStream calls this once in __init__.
    Keys: events_received, reconnect_count, bytes_received,
          last_event_at, connected_at.
    """
    return {
        "events_received": 0,
        "reconnect_count": 0,
        "bytes_received": 0,
        "last_event_at": None,
        "connected_at": None,
    }

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
