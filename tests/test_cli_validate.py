"""Tests for the validate CLI command."""

import argparse
from pathlib import Path

import pytest

from releasegate.cli.validate import (
    handle_validate_command,
    register_validate_parser,
    validate_command,
    validate_file,
)

VALID_GATE = """
apiVersion: gate.sh/v1alpha1
kind: Gate
metadata:
  name: release
spec:
  targets:
    - name: Api
      selector:
        apiVersion: apps/v1
        kind: Deployment
        labelSelector:
          matchLabels: {app: api}
      validators:
        - matchCondition: {type: Available}
"""

INVALID_GATE = """
apiVersion: gate.sh/v1alpha1
kind: Gate
metadata:
  name: broken
spec:
  targets:
    - name: bad-name
      selector: {apiVersion: apps/v1, kind: Deployment}
"""


@pytest.fixture
def gates_dir(tmp_path):
    (tmp_path / "valid.yaml").write_text(VALID_GATE)
    (tmp_path / "configmap.yml").write_text("apiVersion: v1\nkind: ConfigMap\nmetadata: {name: x}\n")
    return tmp_path


class TestValidateFile:
    def test_valid(self, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text(VALID_GATE)

        assert validate_file(path) == (1, 0)

    def test_invalid(self, tmp_path, capsys):
        path = tmp_path / "gate.yaml"
        path.write_text(INVALID_GATE)

        assert validate_file(path) == (0, 1)
        out = capsys.readouterr().out
        assert "target name must be PascalCase: bad-name" in out
        assert "exactly one of selector.name and selector.labelSelector" in out

    def test_unparseable(self, tmp_path, capsys):
        path = tmp_path / "gate.yaml"
        path.write_text("kind: Gate\nmetadata: {name: x}\nspec: {operation: {operator: XOR}}\n")

        assert validate_file(path) == (0, 1)
        assert "Unknown operator" in capsys.readouterr().out

    def test_skip_empty(self, tmp_path):
        path = tmp_path / "cm.yaml"
        path.write_text("apiVersion: v1\nkind: ConfigMap\nmetadata: {name: x}\n")

        assert validate_file(path, skip_empty=True) == (0, 0)
        assert validate_file(path) == (0, 1)


class TestValidateCommand:
    def test_valid_file(self, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text(VALID_GATE)

        assert validate_command(str(path)) == 0

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text(INVALID_GATE)

        assert validate_command(str(path)) == 12

    def test_directory_skips_files_without_gates(self, gates_dir):
        assert validate_command(str(gates_dir)) == 0

    def test_directory_with_invalid_gate(self, gates_dir):
        (gates_dir / "nested").mkdir()
        (gates_dir / "nested" / "broken.yaml").write_text(INVALID_GATE)

        assert validate_command(str(gates_dir)) == 12

    def test_missing_path(self, tmp_path):
        assert validate_command(str(tmp_path / "missing.yaml")) == 12

    def test_empty_directory(self, tmp_path):
        assert validate_command(str(tmp_path)) == 0

    def test_verbose_lists_targets(self, tmp_path, capsys):
        path = Path(tmp_path / "gate.yaml")
        path.write_text(VALID_GATE)

        validate_command(str(path), verbose=True)

        assert "targets: Api" in capsys.readouterr().out


class TestValidateParser:
    def test_register_and_handle(self, tmp_path):
        path = tmp_path / "gate.yaml"
        path.write_text(VALID_GATE)
        parser = argparse.ArgumentParser()
        subparsers = parser.add_subparsers(dest="command")
        register_validate_parser(subparsers)

        args = parser.parse_args(["validate", str(path), "-v"])

        assert args.verbose is True
        assert handle_validate_command(args) == 0
