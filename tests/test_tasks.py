import types

from port_scanner.models import ScanTask
from port_scanner.tasks import count_tasks, iter_tasks


def test_order_range_then_list_per_target():
    tasks = list(iter_tasks(["a", "b"], (1, 2), [80]))
    assert tasks == [
        ScanTask("a", 1), ScanTask("a", 2), ScanTask("a", 80),
        ScanTask("b", 1), ScanTask("b", 2), ScanTask("b", 80),
    ]


def test_is_lazy_and_single_use():
    gen = iter_tasks(["a"], (0, 65535))
    assert isinstance(gen, types.GeneratorType)
    assert next(gen) == ScanTask("a", 0)
    assert sum(1 for _ in gen) == 65535
    assert list(gen) == []


def test_count_matches_enumeration():
    args = (["x", "y", "z"], (100, 149), [22, 443])
    assert count_tasks(*args) == len(list(iter_tasks(*args))) == 156


def test_port_zero_passes_through():
    assert list(iter_tasks(["h"], (0, 0))) == [ScanTask("h", 0)]


def test_task_address():
    assert ScanTask("10.0.0.1", 80).address == "10.0.0.1:80"
    assert ScanTask("::1", 22).address == "[::1]:22"
