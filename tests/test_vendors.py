import pytest

from nova.errors import PipelineError
from nova.vendors import copy_vendors


def test_copy_vendors_copies_allow_list(tmp_path, capsys):
    nm = tmp_path / "node_modules"
    (nm / "jquery" / "dist").mkdir(parents=True)
    (nm / "jquery" / "dist" / "jquery.min.js").write_text("jq", encoding="utf-8")
    (nm / "jquery" / "LICENSE").write_text("MIT", encoding="utf-8")
    (nm / "@yaireo" / "tagify" / "dist").mkdir(parents=True)
    (nm / "@yaireo" / "tagify" / "dist" / "tagify.js").write_text("tg", encoding="utf-8")
    (nm / "@yaireo" / "tagify" / "LICENSE").write_text("MIT", encoding="utf-8")
    (nm / "left-pad").mkdir()
    (nm / "left-pad" / "index.js").write_text("lp", encoding="utf-8")

    copied = copy_vendors(tmp_path)

    vendor = tmp_path / "dist" / "assets" / "vendor"
    assert (vendor / "jquery" / "dist" / "jquery.min.js").read_text() == "jq"
    # jquery copies everything, tagify only files with an extension
    assert (vendor / "jquery" / "LICENSE").exists()
    assert (vendor / "tagify" / "dist" / "tagify.js").exists()
    assert not (vendor / "tagify" / "LICENSE").exists()
    assert not (vendor / "@yaireo").exists()
    assert not (vendor / "left-pad").exists()
    assert len(copied) == 3

    out = capsys.readouterr().out
    assert "skipping: chartist" in out


def test_copy_vendors_custom_packages(tmp_path):
    (tmp_path / "node_modules" / "flatpickr").mkdir(parents=True)
    (tmp_path / "node_modules" / "flatpickr" / "flatpickr.css").write_text("x", encoding="utf-8")
    copied = copy_vendors(tmp_path, packages=[("flatpickr", "**/*.css")])
    assert copied == [tmp_path / "dist/assets/vendor/flatpickr/flatpickr.css"]


def test_copy_vendors_without_node_modules(tmp_path):
    with pytest.raises(PipelineError) as exc_info:
        copy_vendors(tmp_path)
    assert exc_info.value.pipeline == "copyVendors"
    assert "npm install" in exc_info.value.message


def test_copy_vendors_skips_hidden_files(tmp_path):
    pkg = tmp_path / "node_modules" / "jquery"
    (pkg / "dist").mkdir(parents=True)
    (pkg / "dist" / "jquery.js").write_text("jq", encoding="utf-8")
    (pkg / ".npmignore").write_text("src", encoding="utf-8")
    (pkg / "dist" / ".DS_Store").write_bytes(b"\x00")

    copied = copy_vendors(tmp_path, packages=[("jquery", "**/*")])

    assert copied == [tmp_path / "dist/assets/vendor/jquery/dist/jquery.js"]
