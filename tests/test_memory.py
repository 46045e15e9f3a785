import threading

import pytest

from splashsurf.memory import AllocationCounter, peak_allocated_memory


def test_new_counter_starts_empty():
    counter = AllocationCounter()
    assert counter.current() == 0
    assert counter.peak() == 0


def test_allocate_and_deallocate_tracks_peak():
    counter = AllocationCounter()
    counter.allocate(100)
    counter.allocate(50)
    counter.deallocate(120)
    counter.allocate(10)
    assert counter.current() == 40
    assert counter.peak() == 150


def test_peak_never_below_current():
    counter = AllocationCounter()
    for size in (5, 17, 3, 40):
        counter.allocate(size)
        assert counter.peak() >= counter.current()
    counter.deallocate(20)
    assert counter.peak() >= counter.current()


def test_deallocate_more_than_allocated_raises():
    counter = AllocationCounter()
    counter.allocate(10)
    with pytest.raises(ValueError):
        counter.deallocate(11)
    assert counter.current() == 10


def test_negative_sizes_raise():
    counter = AllocationCounter()
    with pytest.raises(ValueError):
        counter.allocate(-1)
    with pytest.raises(ValueError):
        counter.deallocate(-1)


def test_concurrent_allocations_balance():
    counter = AllocationCounter()

    def work():
        for _ in range(1000):
            counter.allocate(8)
            counter.deallocate(8)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter.current() == 0
    assert 8 <= counter.peak() <= 32


def test_peak_allocated_memory_with_counter():
    counter = AllocationCounter()
    counter.allocate(64)
    counter.deallocate(64)
    assert peak_allocated_memory(counter) == counter.peak()
    assert peak_allocated_memory(counter) == 64


def test_peak_allocated_memory_without_counter():
    assert peak_allocated_memory(None) is None