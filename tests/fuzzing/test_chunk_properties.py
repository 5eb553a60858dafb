"""
Hypothesis properties of the chunk loop.

For any input length, chunk size, filter pattern and worker count:
- one write_all per chunk that still holds a record after filtering
- each write is exactly the surviving records of its input slice
- output is the stable, in-order subsequence of kept records
- read = filtered + written; commits = ceil(read / chunk size)
"""

import math
from pathlib import Path
from typing import Any, Sequence

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from chunkflow_batch.domain.types import InputRecord, parameters_key
from chunkflow_batch.jobs.person_export import PERSON_FIELDS
from chunkflow_batch.processors.person import PersonName, TitleFilterProcessor
from chunkflow_batch.services.chunk_runner import ChunkRunner


class ListReader:
    def __init__(self, records: Sequence[InputRecord]) -> None:
        self._records = iter(records)

    def open(self) -> None:
        pass

    def read(self) -> InputRecord | None:
        return next(self._records, None)

    def close(self) -> None:
        pass


class RecordingWriter:
    def __init__(self) -> None:
        self.calls: list[list[Any]] = []

    def open(self, resource: Path) -> None:
        pass

    def write_all(self, records: Sequence[Any]) -> None:
        self.calls.append(list(records))

    def close(self) -> None:
        pass


def _person(index: int, is_professor: bool) -> InputRecord:
    title = "Professor" if is_professor else "Engineer"
    first, last = f"F{index}", f"L{index}"
    return InputRecord(
        names=PERSON_FIELDS,
        values=(str(index), f"{first} {last}", first, last, "", "", "", "", title),
        line_number=index + 2,
    )


def _run(flags: list[bool], chunk_size: int, max_workers: int):
    records = [_person(i, flag) for i, flag in enumerate(flags)]
    writer = RecordingWriter()
    runner = ChunkRunner(
        reader=ListReader(records),
        processor=TitleFilterProcessor(),
        writer=writer,
        resource=Path("unused.csv"),
        chunk_size=chunk_size,
        max_workers=max_workers,
    )
    return records, writer, runner.run()


class TestChunkLoopProperties:
    @given(
        flags=st.lists(st.booleans(), max_size=40),
        chunk_size=st.integers(min_value=1, max_value=10),
        max_workers=st.sampled_from([1, 3]),
    )
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_writes_follow_chunk_boundaries(self, flags, chunk_size, max_workers):
        records, writer, _ = _run(flags, chunk_size, max_workers)

        expected_calls = []
        for start in range(0, len(records), chunk_size):
            kept = [
                PersonName(first=r["first"], last=r["last"])
                for r, flag in zip(
                    records[start:start + chunk_size], flags[start:start + chunk_size],
                )
                if not flag
            ]
            if kept:
                expected_calls.append(kept)

        assert writer.calls == expected_calls
        assert all(0 < len(call) <= chunk_size for call in writer.calls)

    @given(
        flags=st.lists(st.booleans(), max_size=40),
        chunk_size=st.integers(min_value=1, max_value=10),
        max_workers=st.sampled_from([1, 2, 4]),
    )
    @settings(max_examples=150, suppress_health_check=[HealthCheck.too_slow])
    def test_output_is_ordered_subsequence(self, flags, chunk_size, max_workers):
        _, writer, _ = _run(flags, chunk_size, max_workers)

        written = [name.first for call in writer.calls for name in call]
        assert written == [f"F{i}" for i, flag in enumerate(flags) if not flag]

    @given(
        flags=st.lists(st.booleans(), max_size=40),
        chunk_size=st.integers(min_value=1, max_value=10),
    )
    @settings(max_examples=150)
    def test_counters_add_up(self, flags, chunk_size):
        _, writer, result = _run(flags, chunk_size, 1)

        assert result.read_count == len(flags)
        assert result.filter_count == sum(flags)
        assert result.read_count == result.filter_count + result.write_count
        assert result.write_count == sum(len(call) for call in writer.calls)
        assert result.commit_count == math.ceil(len(flags) / chunk_size)
        assert result.skip_count == 0
        assert not result.stopped


class TestParametersKeyProperties:
    @given(st.dictionaries(st.text(max_size=8), st.integers() | st.text(max_size=8)))
    @settings(max_examples=200)
    def test_insertion_order_irrelevant(self, parameters):
        reordered = dict(reversed(list(parameters.items())))
        assert parameters_key(parameters) == parameters_key(reordered)

    @given(st.dictionaries(st.text(max_size=8), st.integers(), min_size=1))
    @settings(max_examples=200)
    def test_changed_value_changes_key(self, parameters):
        key = next(iter(parameters))
        changed = {**parameters, key: parameters[key] + 1}
        assert parameters_key(changed) != parameters_key(parameters)
