"""Singleton metaclass for process-wide configuration objects"""

import threading


class SingletonMeta(type):
    """Thread-safe metaclass implementing the singleton pattern.

    Only configuration uses this; the peer registry itself is constructed
    explicitly and handed to the app so tests can build a fresh one each time.
    Each class gets its own creation lock, so one singleton's ``__init__``
    may construct another without deadlocking.
    """

    _instances: dict[type, object] = {}
    _locks: dict[type, threading.Lock] = {}
    _locks_lock: threading.Lock = threading.Lock()

    def __call__(cls, *args, **kwargs):
        if cls in cls._instances:
            return cls._instances[cls]

        with cls._locks_lock:
            lock = cls._locks.setdefault(cls, threading.Lock())

        with lock:
            # Another thread may have won the race while we waited
            if cls not in cls._instances:
                cls._instances[cls] = super().__call__(*args, **kwargs)
            return cls._instances[cls]

    @classmethod
    def reset_instance(mcs, cls):
        """Drop the cached instance of ``cls`` (tests only)."""
        with mcs._locks_lock:
            lock = mcs._locks.setdefault(cls, threading.Lock())
        with lock:
            mcs._instances.pop(cls, None)
