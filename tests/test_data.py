"""Tests for dataset loading and column validation."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from causalab.data import (
    check_formula,
    formula_variables,
    is_discrete,
    load_csv,
    prepare,
    require_columns,
    resolve_path,
    save_csv,
)
from causalab.errors import ColumnMismatchError


@pytest.fixture
def frame() -> pd.DataFrame:
    return pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [2.0, 4.1, 5.9], "group": ["a", "b", "a"]})


class TestPaths:
    def test_bare_name_resolves_to_data_dir(self, tmp_path):
        assert resolve_path("sprinkler") == tmp_path / "data" / "sprinkler.csv"

    def test_explicit_data_dir(self, tmp_path):
        assert resolve_path("lalonde.csv", data_dir=tmp_path) == tmp_path / "lalonde.csv"

    def test_path_with_directory_kept(self):
        assert resolve_path("some/where/file.csv") == Path("some/where/file.csv")

    def test_roundtrip_through_data_dir(self, frame, tmp_path):
        save_csv(frame, tmp_path / "data" / "toy.csv")
        loaded = load_csv("toy")
        pd.testing.assert_frame_equal(loaded, frame)

    def test_header_whitespace_stripped(self, tmp_path):
        path = tmp_path / "padded.csv"
        path.write_text(" a , b\n1,2\n")
        assert list(load_csv(path).columns) == ["a", "b"]

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Dataset not found"):
            load_csv("nope")


class TestRequireColumns:
    def test_passes(self, frame):
        require_columns(frame, ["x", "y"])

    def test_lists_every_missing_name(self, frame):
        with pytest.raises(ColumnMismatchError) as exc:
            require_columns(frame, ["x", "z", "w"])
        assert exc.value.missing == ["w", "z"]
        assert "available: group, x, y" in str(exc.value)

    def test_is_a_value_error(self, frame):
        with pytest.raises(ValueError):
            require_columns(frame, ["nope"])


class TestFormulas:
    @pytest.mark.parametrize(
        ("formula", "expected"),
        [
            ("y ~ x", {"y", "x"}),
            ("y ~ x + C(group)", {"y", "x", "group"}),
            ("np.log(y) ~ I(x ** 2)", {"y", "x"}),
            ('Q("odd name") ~ x + 1', {"odd name", "x"}),
            ("y ~ x * group - 1", {"y", "x", "group"}),
        ],
    )
    def test_variables(self, formula, expected):
        assert formula_variables(formula) == frozenset(expected)

    def test_check_formula_rejects_unknown(self, frame):
        with pytest.raises(ColumnMismatchError, match="treatment"):
            check_formula(frame, "y ~ treatment + x")

    def test_check_formula_returns_names(self, frame):
        assert check_formula(frame, "y ~ x") == frozenset({"x", "y"})


class TestPrepare:
    def test_rename_and_drop(self, frame):
        out = prepare(frame, rename={"x": "dose"}, drop=["group"])
        assert list(out.columns) == ["dose", "y"]
        assert "x" in frame.columns

    def test_rename_unknown(self, frame):
        with pytest.raises(ColumnMismatchError):
            prepare(frame, rename={"nope": "z"})


class TestIsDiscrete:
    def test_float_is_continuous(self, frame):
        assert not is_discrete(frame[["x"]])

    def test_strings_and_small_ints(self):
        assert is_discrete(pd.DataFrame({"a": [0, 1, 1], "b": ["u", "v", "u"]}))

    def test_many_integer_levels(self):
        assert not is_discrete(pd.DataFrame({"a": range(50)}))
