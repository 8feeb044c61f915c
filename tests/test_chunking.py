from __future__ import annotations

import pytest
from conftest import make_file

from tourgen.chunking import partition


def test_partition_covers_input_in_order() -> None:
    files = [make_file(f"src/file_{index:02d}.ts") for index in range(12)]

    chunks = partition(files, 5)

    assert [len(chunk) for chunk in chunks] == [5, 5, 2]
    assert [record for chunk in chunks for record in chunk.files] == files
    assert [chunk.index for chunk in chunks] == [0, 1, 2]
    assert [chunk.number for chunk in chunks] == [1, 2, 3]


def test_partition_omits_empty_remainder() -> None:
    files = [make_file(f"file_{index}.ts") for index in range(10)]

    chunks = partition(files, 5)

    assert [len(chunk) for chunk in chunks] == [5, 5]


def test_partition_of_empty_list_is_empty() -> None:
    assert partition([], 5) == []


def test_partition_with_capacity_larger_than_input() -> None:
    files = [make_file("a.ts"), make_file("b.ts")]

    chunks = partition(files, 50)

    assert len(chunks) == 1
    assert chunks[0].paths == ["a.ts", "b.ts"]


@pytest.mark.parametrize("capacity", [0, -1, 2.5, True])
def test_partition_rejects_invalid_capacity(capacity: object) -> None:
    with pytest.raises(ValueError):
        partition([make_file("a.ts")], capacity)  # type: ignore[arg-type]
