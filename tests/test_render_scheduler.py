"""
Tests for the latest-wins render scheduler.
"""

import pytest

from CS_Libs.LayerLib.layer_models import RasterBuffer
from CS_Libs.SessionLib.render_scheduler import RenderScheduler


class RecordingRenderer:
    """Render callable that remembers every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, view, **params):
        self.calls.append((view, params))
        return RasterBuffer.filled(1, 1, (len(self.calls), 0, 0, 255))


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def scheduler(renderer):
    return RenderScheduler(renderer)


def test_rejects_non_callable():
    with pytest.raises(ValueError):
        RenderScheduler("render")


def test_newer_request_supersedes(scheduler, renderer):
    assert scheduler.request("whole", step=1) is False
    assert scheduler.request("whole", step=2) is True
    frames = scheduler.flush()

    assert list(frames) == ["whole"]
    assert renderer.calls == [("whole", {"step": 2})]
    assert scheduler.superseded == 1
    assert scheduler.rendered == 1


def test_one_render_per_view(scheduler, renderer):
    scheduler.request("whole")
    scheduler.request("isolate")
    scheduler.request("whole")
    scheduler.flush()
    assert sorted(view for view, _ in renderer.calls) == ["isolate", "whole"]


def test_flush_single_view(scheduler, renderer):
    scheduler.request("whole")
    scheduler.request("isolate")
    frames = scheduler.flush("isolate")
    assert list(frames) == ["isolate"]
    assert scheduler.is_pending("whole")
    assert not scheduler.is_pending("isolate")
    assert scheduler.flush("reconstruct") == {}


def test_flush_without_requests(scheduler, renderer):
    assert scheduler.flush() == {}
    assert renderer.calls == []


def test_reset_drops_pending(scheduler, renderer):
    scheduler.request("whole")
    scheduler.reset()
    assert not scheduler.is_pending("whole")
    assert scheduler.flush() == {}
    assert renderer.calls == []
