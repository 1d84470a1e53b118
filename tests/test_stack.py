import inspect
from pathlib import Path

import pytest

from wbkit.errors.stack import Frame, StackTrace, callers


def _capture_skipping_self():
    return callers(1)


def _recurse(n):
    if n == 0:
        return callers()
    return _recurse(n - 1)


def _sample_frame():
    return Frame(file="/srv/app/main.py", line=12, function="run", module="app.main")


def test_callers_starts_at_caller():
    line = inspect.currentframe().f_lineno + 1
    trace = callers()
    first = trace[0]
    assert first.function == "test_callers_starts_at_caller"
    assert first.line == line
    assert Path(first.file).resolve() == Path(__file__).resolve()
    assert first.module == __name__
    assert isinstance(trace, StackTrace)


def test_callers_skip_moves_outward():
    trace = _capture_skipping_self()
    assert trace[0].function == "test_callers_skip_moves_outward"


def test_callers_negative_skip_rejected():
    with pytest.raises(ValueError):
        callers(-1)


def test_callers_skip_beyond_stack_is_empty():
    assert len(callers(100000)) == 0


def test_callers_depth_is_limited():
    trace = _recurse(50)
    assert len(trace) == 32
    assert all(frame.function == "_recurse" for frame in trace)


def test_marshal_text():
    frame = _sample_frame()
    assert frame.marshal_text() == "app.main.run /srv/app/main.py:12"


def test_unknown_frame_marshal_text():
    frame = Frame()
    assert frame.marshal_text() == "unknown"
    assert frame.name == "unknown"
    assert frame.short_name() == "unknown"


def test_short_name_drops_module():
    frame = _sample_frame()
    assert frame.short_name() == frame.function
    assert format(frame, "n") == frame.function


def test_frame_format_verbs():
    frame = _sample_frame()
    assert format(frame, "s") == "main.py"
    assert format(frame, "d") == str(frame.line)
    assert format(frame, "v") == format(frame, "s") + ":" + format(frame, "d")
    assert str(frame) == format(frame, "v")
    detailed = format(frame, "+s")
    assert detailed.startswith(frame.name)
    assert detailed.endswith(frame.file)
    assert "\n\t" in detailed
    assert format(frame, "+v") == format(frame, "+s") + ":" + format(frame, "d")


def test_frame_format_rejects_unknown_spec():
    with pytest.raises(ValueError):
        format(_sample_frame(), "x")


def test_stack_trace_short_format():
    first = _sample_frame()
    second = Frame(file="/srv/app/other.py", line=7, function="go", module="app.other")
    trace = StackTrace([first, second])
    text = trace.format(False)
    assert text.startswith("[")
    assert text.endswith("]")
    assert text[1:-1].split(" ") == [format(first, "v"), format(second, "v")]
    assert str(trace) == text


def test_stack_trace_verbose_format():
    first = _sample_frame()
    second = Frame(file="/srv/app/other.py", line=7, function="go", module="app.other")
    text = StackTrace([first, second]).format(True)
    assert text.startswith("\n" + format(first, "+v"))
    assert text.endswith("\n" + format(second, "+v"))
    assert text.count("\n\t") == 2


def test_empty_stack_trace_formats():
    assert StackTrace().format() == "[]"
    assert StackTrace().format(True) == ""