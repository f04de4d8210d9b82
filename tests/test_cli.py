import json

import requests

from intellislice.__main__ import main
from intellislice.package import read_package


def test_convert_writes_project(tmp_path, capsys, single_triangle_stl):
    mesh = tmp_path / "Cube.stl"
    mesh.write_bytes(single_triangle_stl)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"layerHeight": 0.2, "infillDensity": 15}))
    out_dir = tmp_path / "out"

    code = main(["convert", str(mesh), "--settings", str(settings), "-o", str(out_dir), "--json"])

    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    output = out_dir / "Cube_IntelliSlice.3mf"
    assert summary["output"] == str(output)
    assert summary["triangles"] == 1
    assert summary["mapped_keys"] == ["layer_height", "sparse_infill_density"]
    assert "3D/3dmodel.model" in read_package(output.read_bytes())


def test_convert_to_explicit_file(tmp_path, capsys, single_triangle_stl):
    mesh = tmp_path / "Cube.stl"
    mesh.write_bytes(single_triangle_stl)
    target = tmp_path / "nested" / "custom.3mf"

    code = main(["convert", str(mesh), "-o", str(target), "--profile-name", "Draft", "--json"])

    assert code == 0
    parts = read_package(target.read_bytes())
    assert parts["Metadata/Slicer_settings.config"].startswith(b"[print:Draft]\n")


def test_convert_uses_output_dir_from_environment(tmp_path, monkeypatch, single_triangle_stl):
    mesh = tmp_path / "Cube.stl"
    mesh.write_bytes(single_triangle_stl)
    monkeypatch.setenv("INTELLISLICE_OUTPUT_DIR", str(tmp_path / "env-out"))

    assert main(["--quiet", "convert", str(mesh)]) == 0
    assert (tmp_path / "env-out" / "Cube_IntelliSlice.3mf").is_file()


def test_convert_missing_mesh_fails(tmp_path, capsys):
    assert main(["convert", str(tmp_path / "absent.stl"), "--json"]) == 1
    assert capsys.readouterr().out == ""


def test_convert_bad_settings_fails(tmp_path, single_triangle_stl):
    mesh = tmp_path / "Cube.stl"
    mesh.write_bytes(single_triangle_stl)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"layerHeight": -1}))

    assert main(["convert", str(mesh), "--settings", str(settings), "-o", str(tmp_path), "--json"]) == 1
    assert not (tmp_path / "Cube_IntelliSlice.3mf").exists()


def test_map_prints_settings_text(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("INTELLISLICE_PROFILE_NAME", raising=False)
    monkeypatch.delenv("INTELLISLICE_INHERITS", raising=False)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"layerHeight": 0.2, "enableSupports": True, "aiNote": "x"}))

    assert main(["map", str(settings)]) == 0
    assert capsys.readouterr().out == (
        "[print:IntelliSlice AI Profile]\n"
        'inherits = "0.20mm Standard @MyGenericPrinter"\n'
        "layer_height = 0.2\n"
        "support_enable = 1\n"
    )


def test_map_json(tmp_path, capsys):
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"seamPosition": "Aligned"}))

    assert main(["map", str(settings), "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == [{"key": "seam_position", "value": "aligned"}]


def test_inspect_json(tmp_path, capsys, tetrahedron_stl):
    mesh = tmp_path / "tetra.stl"
    mesh.write_bytes(tetrahedron_stl)

    assert main(["inspect", str(mesh), "--json"]) == 0
    info = json.loads(capsys.readouterr().out)
    assert info["triangles"] == 4
    assert info["vertices"] == 12
    assert info["min"] == [0.0, 0.0, 0.0]
    assert info["max"] == [10.0, 10.0, 10.0]
    assert info["size"] == [10.0, 10.0, 10.0]


def test_convert_unwritable_output_fails(tmp_path, single_triangle_stl):
    mesh = tmp_path / "Cube.stl"
    mesh.write_bytes(single_triangle_stl)
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    assert main(["--quiet", "convert", str(mesh), "-o", str(blocker / "out")]) == 1


def test_convert_broken_download_fails(monkeypatch, capsys):
    class BrokenResponse:
        status_code = 200
        headers = {}

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            pass

        def raise_for_status(self):
            pass

        def iter_content(self, chunk_size=1):
            raise requests.exceptions.ChunkedEncodingError("broken")

    monkeypatch.setattr("intellislice.sources.requests.get", lambda url, stream, timeout: BrokenResponse())

    assert main(["convert", "https://example.com/cube.stl", "--json"]) == 1
    assert capsys.readouterr().out == ""
