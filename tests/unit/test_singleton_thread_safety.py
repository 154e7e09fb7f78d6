"""Tests for singleton thread safety."""

import threading

from src.common.singleton_meta import SingletonMeta


class SampleSingleton(metaclass=SingletonMeta):
    """Class using the singleton pattern."""

    def __init__(self):
        """Initialize with a unique identifier."""
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self.id = id(self)


def test_singleton_thread_safety():
    """Test that singleton is thread-safe under concurrent access."""
    SingletonMeta.reset_instance(SampleSingleton)
    instances = []
    barrier = threading.Barrier(50)

    def create_instance():
        barrier.wait()
        instances.append(SampleSingleton())

    threads = [threading.Thread(target=create_instance) for _ in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(instances) == 50
    assert all(instance is instances[0] for instance in instances)


def test_singleton_reset_for_testing():
    """Test that reset_instance yields a fresh instance."""
    instance1 = SampleSingleton()

    SingletonMeta.reset_instance(SampleSingleton)

    instance2 = SampleSingleton()
    assert instance1 is not instance2
    assert SampleSingleton() is instance2


def test_reset_unknown_class_is_noop():
    """Resetting a class that was never instantiated does nothing."""

    class NeverBuilt(metaclass=SingletonMeta):
        pass

    SingletonMeta.reset_instance(NeverBuilt)
    assert NeverBuilt() is NeverBuilt()
