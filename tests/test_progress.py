import io

from rich.console import Console

from intellislice import PipelineState, convert
from intellislice.progress import NullProgressReporter, RichProgressReporter


def make_reporter():
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=100)
    return RichProgressReporter(console), buffer


def test_rich_reporter_done_line(single_triangle_stl):
    reporter, buffer = make_reporter()
    convert(single_triangle_stl, {"layerHeight": 0.2}, "cube.stl", reporter=reporter)

    output = buffer.getvalue()
    assert "done cube_IntelliSlice.3mf (1 triangles, 1 settings)" in output


def test_rich_reporter_failed_line():
    reporter, buffer = make_reporter()
    reporter.stage("decoding", 1, 4)
    reporter.finish(PipelineState.FAILED, "decoding: bad mesh")

    assert "failed decoding: bad mesh" in buffer.getvalue()


def test_rich_reporter_can_run_twice():
    reporter, buffer = make_reporter()
    for _ in range(2):
        for n, name in enumerate(["decoding", "serializing", "mapping", "assembling"], 1):
            reporter.stage(name, n, 4)
        reporter.finish(PipelineState.DONE, "out.3mf")
    assert buffer.getvalue().count("done out.3mf") == 2


def test_rich_transfer():
    reporter, _ = make_reporter()
    transfer = reporter.begin_download("https://example.com/files/cube.stl", 100)
    transfer.advance(60)
    transfer.advance(40)
    transfer.close()


def test_null_reporter_accepts_everything():
    reporter = NullProgressReporter()
    reporter.update_status("hello")
    reporter.stage("decoding", 1, 4)
    transfer = reporter.begin_download("https://example.com/cube.stl", 0)
    transfer.advance(10)
    transfer.close()
    reporter.finish(PipelineState.DONE, "ok")
