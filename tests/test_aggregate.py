import threading

from wbkit.errors.aggregate import (
    Aggregate,
    PreconditionViolatedError,
    aggregate_parallel,
    create_aggregate_from_message_count_map,
    filter_out,
    flatten,
    new_aggregate,
    reduce,
)


def test_new_aggregate_empty_and_all_none():
    assert new_aggregate([]) is None
    assert new_aggregate([None, None]) is None
    assert new_aggregate(None) is None


def test_new_aggregate_drops_none_entries():
    first = ValueError("first")
    agg = new_aggregate([None, first, None])
    assert agg.errors() == [first]


def test_single_error_message():
    agg = new_aggregate([ValueError("only one")])
    assert str(agg) == "only one"


def test_multiple_messages_are_bracketed():
    agg = new_aggregate([ValueError("a"), KeyError("b")])
    assert str(agg) == "[a, 'b']"


def test_duplicate_messages_collapse():
    agg = new_aggregate([ValueError("x"), RuntimeError("x")])
    assert str(agg) == "x"


def test_nested_messages_are_visited_and_deduplicated():
    inner = new_aggregate([ValueError("b"), ValueError("a")])
    agg = new_aggregate([ValueError("a"), inner])
    assert str(agg) == "[a, b]"


def test_empty_aggregate_message():
    assert str(Aggregate([])) == ""


def test_matches_instance_in_nested_aggregate():
    target = ValueError("target")
    agg = new_aggregate([RuntimeError("other"), new_aggregate([KeyError("k"), target])])
    assert agg.matches(target)
    assert not agg.matches(ValueError("target"))


def test_matches_class_and_cause_chain():
    root = OSError("disk")
    wrapper = RuntimeError("wrapped")
    wrapper.__cause__ = root
    agg = new_aggregate([wrapper])
    assert agg.matches(OSError)
    assert agg.matches(root)
    assert not agg.matches(KeyError)


def test_filter_out_single_error():
    err = ValueError("keep")
    assert filter_out(err, lambda e: isinstance(e, KeyError)) is err
    assert filter_out(err, lambda e: isinstance(e, ValueError)) is None
    assert filter_out(None, lambda e: True) is None


def test_filter_out_aggregate_recursively():
    keep = ValueError("keep")
    drop = KeyError("drop")
    nested = new_aggregate([drop, keep])
    result = filter_out(new_aggregate([nested, KeyError("drop2")]), lambda e: isinstance(e, KeyError))
    assert isinstance(result, Aggregate)
    assert flatten(result).errors() == [keep]


def test_filter_out_everything_gives_none():
    agg = new_aggregate([KeyError("a"), KeyError("b")])
    assert filter_out(agg, lambda e: True) is None


def test_flatten_nested():
    a, b, c = ValueError("a"), ValueError("b"), ValueError("c")
    agg = new_aggregate([a, new_aggregate([b, new_aggregate([c])])])
    flat = flatten(agg)
    assert flat.errors() == [a, b, c]
    assert not any(isinstance(e, Aggregate) for e in flat.errors())
    assert flatten(None) is None


def test_message_count_map():
    agg = create_aggregate_from_message_count_map({"boom": 3})
    assert str(agg) == "boom (repeated 3 times)"
    single = create_aggregate_from_message_count_map({"once": 1})
    assert str(single) == "once"
    assert create_aggregate_from_message_count_map(None) is None
    assert create_aggregate_from_message_count_map({}) is None


def test_reduce():
    err = ValueError("one")
    assert reduce(new_aggregate([err])) is err
    assert reduce(Aggregate([])) is None
    pair = new_aggregate([ValueError("a"), ValueError("b")])
    assert reduce(pair) is pair
    assert reduce(err) is err
    assert reduce(None) is None


def test_aggregate_parallel_collects_raised_errors():
    calls = []
    lock = threading.Lock()

    def ok():
        with lock:
            calls.append("ok")

    def bad():
        raise ValueError("bad")

    result = aggregate_parallel(ok, bad, bad)
    assert calls == ["ok"]
    assert len(result.errors()) == 2
    assert all(isinstance(e, ValueError) for e in result.errors())


def test_aggregate_parallel_all_succeed():
    assert aggregate_parallel(lambda: None, lambda: 1) is None
    assert aggregate_parallel() is None


def test_precondition_violated_message():
    err = PreconditionViolatedError()
    assert str(err) == "precondition is violated"
    agg = new_aggregate([err])
    assert str(agg) == "precondition is violated"
    assert agg.matches(PreconditionViolatedError)