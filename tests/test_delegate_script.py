# tests/test_delegate_script.py
"""Tests for the delegated registration batch script."""

import importlib.util
import tempfile
from pathlib import Path

import pytest

SCRIPT = Path(__file__).parent.parent / "scripts" / "delegate_tag_registration.py"


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("delegate_tag_registration", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def run(script, temp_dir: Path, batch: str) -> int:
    batch_path = temp_dir / "batch.yaml"
    batch_path.write_text(batch)
    return script.main([str(batch_path), "--data-dir", str(temp_dir / "data")])


class TestDelegateScript:
    """Tests for delegate_tag_registration.main()."""

    def test_registers_batch(self, script, temp_dir, capsys):
        code = run(script, temp_dir, """
caller: minter
tags:
  - beneficiary: alice
    metadata_pointer: ipfs://a
  - beneficiary: bob
    metadata_pointer: ipfs://b
""")
        out = capsys.readouterr().out
        assert code == 0
        assert "[DONE] tag 1 -> alice" in out
        assert "[DONE] tag 2 -> bob" in out

    def test_failed_entry_is_reported(self, script, temp_dir, capsys):
        code = run(script, temp_dir, """
caller: minter
tags:
  - beneficiary: ""
    metadata_pointer: ipfs://a
  - beneficiary: bob
    metadata_pointer: ipfs://b
""")
        out = capsys.readouterr().out
        assert code == 1
        assert "[FAILED]" in out
        assert "[DONE] tag 1 -> bob" in out

    @pytest.mark.parametrize("batch", [
        "caller: minter\ntags:\n  - just-a-string\n",
        "caller: minter\ntags: ipfs://a\n",
        "- a\n- b\n",
        "tags: []\n",
        "caller: [minter\n",
    ])
    def test_malformed_batch_is_one_line_error(self, script, temp_dir, capsys, batch):
        assert run(script, temp_dir, batch) == 1
        err = capsys.readouterr().err
        assert err.startswith("error: ")
        assert "Traceback" not in err
