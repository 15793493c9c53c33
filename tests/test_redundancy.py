import numpy as np
import pytest

pl = pytest.importorskip("polars", reason="polars is required for tabprep tests")

from tabprep.errors import SchemaMismatchError
from tabprep.redundancy import (
    CorrelationPruner,
    _greedy_removal,
    association_matrix,
    find_redundant,
)


@pytest.fixture()
def numeric_df() -> pl.DataFrame:
    rng = np.random.default_rng(3)
    a = rng.normal(size=300)
    return pl.DataFrame(
        {
            "a": a.tolist(),
            "b": (np.exp(a) * 2.0).tolist(),  # monotone in a: identical ranks
            "c": rng.normal(size=300).tolist(),
            "flat": [1.0] * 300,
        }
    )


def test_monotone_duplicate_is_removed_with_lexical_tie_break(numeric_df):
    pruner = CorrelationPruner(cutoff=0.9).fit(numeric_df)

    assert pruner.removed_features_ == ["a"]
    assert pruner.get_support() == [False, True, True, True]
    assert pruner.transform(numeric_df).columns == ["b", "c", "flat"]


def test_remaining_pairs_respect_cutoff(numeric_df):
    pruner = CorrelationPruner(cutoff=0.9).fit(numeric_df)
    kept = pruner.selected_features_
    assoc = association_matrix(numeric_df, kept)

    assert assoc.max() <= 0.9
    for dropped in kept:
        rest = [c for c in kept if c != dropped]
        assert association_matrix(numeric_df, rest).max() <= assoc.max()


def test_constant_column_has_no_association(numeric_df):
    assoc = association_matrix(numeric_df, ["a", "flat"])
    assert assoc[0, 1] == 0.0
    assert "flat" not in find_redundant(numeric_df, cutoff=0.5)


def test_greedy_removal_prefers_the_hub_column():
    assoc = np.array(
        [
            [0.0, 0.95, 0.5],
            [0.95, 0.0, 0.95],
            [0.5, 0.95, 0.0],
        ]
    )
    assert _greedy_removal(assoc, ["a", "b", "c"], 0.9) == ["b"]
    assert _greedy_removal(assoc, ["a", "b", "c"], 0.99) == []


def test_input_is_not_mutated(numeric_df):
    before = numeric_df.clone()
    CorrelationPruner(cutoff=0.9).fit_transform(numeric_df)
    assert numeric_df.equals(before)


def test_pearson_method_and_exclusions(numeric_df):
    df = numeric_df.with_columns(pl.col("a").alias("label"))
    pruner = CorrelationPruner(cutoff=0.9, method="pearson", exclude=["label"]).fit(df)

    assert "label" not in pruner.feature_names_in_
    assert "label" in pruner.transform(df).columns


def test_non_numeric_columns_are_rejected(numeric_df):
    with pytest.raises(SchemaMismatchError):
        CorrelationPruner().fit(numeric_df.with_columns(pl.lit("z").alias("s")))


def test_invalid_parameters():
    with pytest.raises(ValueError):
        CorrelationPruner(cutoff=1.5)
    with pytest.raises(ValueError):
        CorrelationPruner(method="kendall")
