import pytest

from crawler.exceptions import PipeError
from crawler.pipeline import CallbackPipe, JSONPipe, Pipe, Pipeline


class Explode(Pipe):
    def transform(self, value):
        raise RuntimeError("boom")


class Abort(Pipe):
    def transform(self, value):
        raise PipeError("abort")


def test_pipes_fold_left_to_right():
    pipeline = Pipeline(JSONPipe(), CallbackPipe(lambda value: value["items"]), CallbackPipe(len))

    assert pipeline.perform('{"items": [1, 2, 3]}') == 3


def test_json_pipe_yields_none_on_malformed_input():
    assert JSONPipe().transform("{nope") is None
    assert JSONPipe().transform(None) is None
    assert JSONPipe().transform(b'{"a": 1}') == {"a": 1}


def test_callback_pipe_without_callback():
    assert CallbackPipe().transform("x") is None


def test_failing_pipe_degrades_to_none():
    pipeline = Pipeline(CallbackPipe(str.upper), Explode(), CallbackPipe(str.lower))

    assert pipeline.perform("value") is None


def test_pipe_error_propagates():
    with pytest.raises(PipeError):
        Pipeline(Abort()).perform("value")


def test_only_pipes_can_be_added():
    with pytest.raises(TypeError):
        Pipeline().add(lambda value: value)


def test_removal():
    upper = CallbackPipe(str.upper)
    strip = CallbackPipe(str.strip)
    pipeline = Pipeline(upper, strip, JSONPipe())

    pipeline.remove_last()
    assert pipeline.pipes == [upper, strip]

    pipeline.remove(upper)
    assert pipeline.pipes == [strip]

    pipeline.remove_at(10)
    pipeline.remove_at(0)
    assert len(pipeline) == 0
    assert pipeline.perform(" x ") == " x "
