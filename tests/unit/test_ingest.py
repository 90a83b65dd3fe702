#
# tests/unit/test_ingest.py
#
"""
Tests for splitting raw output chunks into records.
"""

from resultbridge.pipeline.ingest import RecordBuffer


def _records(*chunks, **kwargs) -> list[str]:
    buffer = RecordBuffer(**kwargs)
    records = []
    for chunk in chunks:
        records.extend(buffer.feed(chunk))
    records.extend(buffer.flush())
    return records


class TestLineRecords:
    def test_line_split_across_chunks_is_not_released_early(self) -> None:
        buffer = RecordBuffer()
        assert list(buffer.feed("✓ auth > log")) == []
        assert list(buffer.feed("in works\n")) == ["✓ auth > login works"]

    def test_crlf_split_across_chunks(self) -> None:
        assert _records("first\r", "\nsecond\r\n") == ["first", "second"]

    def test_multibyte_character_split_across_byte_chunks(self) -> None:
        data = "✓ café\n".encode()
        assert _records(data[:1], data[1:3], data[3:]) == ["✓ café"]

    def test_trailing_partial_line_released_on_flush(self) -> None:
        buffer = RecordBuffer()
        assert list(buffer.feed("done\ntail")) == ["done"]
        assert list(buffer.flush()) == ["tail"]


class TestObjectRecords:
    def test_pretty_printed_object_is_one_record(self) -> None:
        text = '{\n  "test": "a",\n  "verdict": "pass"\n}\n'
        records = [r for r in _records(text) if r.strip()]
        assert records == ['{\n  "test": "a",\n  "verdict": "pass"\n}']

    def test_concatenated_objects_without_newlines(self) -> None:
        assert _records('{"a": 1}{"b": {"c": 2}}') == ['{"a": 1}', '{"b": {"c": 2}}']

    def test_braces_inside_strings_do_not_close_object(self) -> None:
        text = '{"message": "expected } got {", "escaped": "\\"}"}\n'
        records = [r for r in _records(text) if r.strip()]
        assert records == ['{"message": "expected } got {", "escaped": "\\"}"}']

    def test_text_starting_with_brace_falls_back_to_lines(self) -> None:
        assert _records("{not json\nsecond line\n") == ["{not json", "second line"]

    def test_unbalanced_object_released_on_flush(self) -> None:
        assert _records('{"test": "a"') == ['{"test": "a"']

    def test_oversized_object_released_as_text(self) -> None:
        records = _records('{"message": "aaaaaaaaaaaaaaaa"}\nnext\n', max_record_size=10)
        assert records == ['{"message": "aaaaaaaaaaaaaaaa"}', "next"]

    def test_lines_only_disables_object_boundaries(self) -> None:
        buffer = RecordBuffer()
        buffer.lines_only()
        records = list(buffer.feed('{"a":\n"b"}\n'))
        assert records == ['{"a":', '"b"}']
        assert buffer.objects is False

    def test_lines_only_while_inside_object_keeps_collected_lines(self) -> None:
        buffer = RecordBuffer()
        assert list(buffer.feed('{"a":\n  "b"')) == []
        buffer.lines_only()
        records = list(buffer.feed("\nafter\n"))
        assert records == ['{"a":', '  "b"', "after"]


class TestChunkBoundaries:
    def test_every_split_point_yields_identical_records(self) -> None:
        data = (
            "noise line\r\n"
            '{"test": "a", "verdict": "fail",\n "message": "x≠y"}\n'
            "✓ auth - login works 12ms\n"
            '{"test": "b"}{"test": "c", "verdict": "pass"}'
        ).encode()
        expected = _records(data)
        for cut in range(1, len(data)):
            assert _records(data[:cut], data[cut:]) == expected, f"split at byte {cut}"

    def test_single_byte_chunks(self) -> None:
        data = '✓ one\n{"test": "two",\n "verdict": "pass"}\n  → detail\n'.encode()
        expected = _records(data)
        assert _records(*(data[i : i + 1] for i in range(len(data)))) == expected
