import math
import warnings

import pytest

pl = pytest.importorskip("polars", reason="polars is required for diagnostics tests")

from tabprep.diagnostics import (
    bin_labels,
    cross_information_value,
    information_value,
    quantile_edges,
    woe_table,
)
from tabprep.errors import DegenerateColumnError, SchemaMismatchError

EPS = 1e-6


def test_information_value_matches_manual_computation():
    df = pl.DataFrame(
        {
            "grade": ["a", "a", "a", "b", "b", "b", "c", "c"],
            "bad": [1, 1, 0, 0, 0, 1, 0, 0],
        }
    )
    # pos: a=2, b=1, c=0 (total 3); neg: a=1, b=2, c=2 (total 5)
    expected = 0.0
    for pos, neg in [(2, 1), (1, 2), (0, 2)]:
        dp = pos / (3 + EPS)
        dn = neg / (5 + EPS)
        expected += (dp - dn) * math.log((dp + EPS) / (dn + EPS))

    result = information_value(df, "grade", "bad", eps=EPS)

    assert result == pytest.approx(expected, rel=1e-9)
    assert result >= 0.0


def test_information_value_is_zero_for_independent_feature():
    df = pl.DataFrame({"f": ["a", "a", "b", "b"], "y": [1, 0, 1, 0]})
    assert information_value(df, "f", "y") == pytest.approx(0.0, abs=1e-12)


def test_missing_values_form_their_own_bin():
    s = pl.Series("x", [1.0, None, 3.0, float("nan"), 5.0])
    labels = bin_labels(s, [2.0, 4.0])

    assert labels.to_list()[1] == "__missing__"
    assert labels.to_list()[3] == "__missing__"
    assert labels.null_count() == 0
    assert len(set(labels.to_list())) == 4


def test_numeric_information_value_with_bins():
    df = pl.DataFrame({"x": [1.0, 2.0, 3.0, 4.0, None, None], "y": [0, 0, 1, 1, 1, 0]})
    iv = information_value(df, "x", "y", bins=[2.5])
    table = woe_table(bin_labels(df.get_column("x"), [2.5]), df.get_column("y") == 1)

    assert set(table.get_column("bin").to_list()) >= {"__missing__"}
    assert iv == pytest.approx(float(table.get_column("iv_part").sum()))


def test_quantile_edges_are_deduplicated_and_below_max():
    s = pl.Series("x", [1.0, 1.0, 1.0, 1.0, 2.0, 3.0, None])
    edges = quantile_edges(s, 4)

    assert edges == sorted(set(edges))
    assert all(e < 3.0 for e in edges)
    assert quantile_edges(pl.Series("x", [None, None], dtype=pl.Float64), 4) == []


def test_empty_edges_put_all_values_in_one_bin():
    labels = bin_labels(pl.Series("x", [1.0, 1.0, None]), [])
    assert labels.to_list() == ["all", "all", "__missing__"]


def test_cross_information_value_ignores_unseen_bins():
    fit = woe_table(pl.Series(["a", "a", "b", "b"]), pl.Series([True, False, True, False]))
    valid = woe_table(pl.Series(["a", "z", "z", "b"]), pl.Series([True, True, False, False]))

    # Every fit-time WoE is zero, so nothing carries over
    assert cross_information_value(fit, valid) == pytest.approx(0.0, abs=1e-12)


def test_information_value_validates_inputs():
    df = pl.DataFrame({"f": ["a", "b", "c"], "y": [0, 1, 2]})
    with pytest.raises(SchemaMismatchError):
        information_value(df, "missing", "y")
    with pytest.raises(DegenerateColumnError):
        information_value(df, "f", "y")


def test_numeric_binning_raises_no_deprecation_warning():
    s = pl.Series("x", [0.5, 1.5, 2.5, None, 3.5])
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        labels = bin_labels(s, quantile_edges(s, 2))
    assert labels.null_count() == 0
