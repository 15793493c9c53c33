import pytest

pl = pytest.importorskip("polars", reason="polars is required for tabprep tests")
pytest.importorskip("sklearn", reason="scikit-learn is required for stratified splitting")

from tabprep.diagnostics import cross_information_value, woe_table
from tabprep.errors import DegenerateColumnError, SchemaMismatchError
from tabprep.relevance import ColumnRelevance, InformationValueFilter, RelevanceReport


def test_filter_keeps_informative_columns(credit_df):
    selector = InformationValueFilter(target="default", threshold=0.02, random_state=0)
    result = selector.fit(credit_df).transform(credit_df)

    selected = selector.get_selected_features()
    assert "income" in selected
    assert "region" in selected
    assert result.columns == [*selected, "default"]
    support = dict(zip(selector.feature_names_in_, selector.get_support()))
    assert support["income"] and not support["constant"]
    assert selector.report_.scores["income"].adjusted > 0.1


def test_filter_flags_identifier_and_constant_columns(credit_df):
    selector = InformationValueFilter(target="default", max_cardinality=1000).fit(credit_df)
    report = selector.report_

    assert report.excluded["customer_id"] == "cardinality"
    assert report.excluded["constant"] == "constant"
    assert "customer_id" not in report.scores
    assert "customer_id" in selector.dropped_features_


def test_adjusted_score_never_exceeds_raw(credit_df):
    report = InformationValueFilter(target="default").fit(credit_df).report_
    for name, score in report.scores.items():
        assert score.penalty >= 0.0, name
        assert score.adjusted <= score.raw, name
        assert score.raw >= 0.0, name


def test_zero_raw_score_yields_non_positive_adjusted_score():
    fit = woe_table(pl.Series(["a", "a", "b", "b"]), pl.Series([True, False, True, False]))
    valid = woe_table(pl.Series(["a", "a", "a", "b"]), pl.Series([True, True, False, False]))
    raw = float(fit.get_column("iv_part").sum())
    cross = cross_information_value(fit, valid)
    score = ColumnRelevance(raw=raw, penalty=max(0.0, raw - cross))

    assert raw == pytest.approx(0.0, abs=1e-12)
    assert score.adjusted <= 0.0


def test_missing_values_are_scored_not_imputed():
    n = 400
    # Missingness itself carries the signal
    x = [None if i % 4 == 0 else float(i % 7) for i in range(n)]
    y = [1 if i % 4 == 0 else 0 for i in range(n)]
    df = pl.DataFrame({"x": x, "y": y})

    selector = InformationValueFilter(target="y", threshold=0.5).fit(df)

    assert selector.get_selected_features() == ["x"]
    assert selector.report_.scores["x"].adjusted > 0.5


def test_top_n_fallback_when_nothing_passes(credit_df):
    selector = InformationValueFilter(target="default", threshold=1e9, top_n=2).fit(credit_df)
    report = selector.report_

    assert len(selector.get_selected_features()) == 2
    assert set(selector.get_selected_features()) == set(report.ranked()[:2])


def test_no_fallback_selects_nothing(credit_df):
    selector = InformationValueFilter(target="default", threshold=1e9).fit(credit_df)
    assert selector.get_selected_features() == []
    assert selector.transform(credit_df).columns == ["default"]


def test_report_frame_is_ranked():
    report = RelevanceReport(
        scores={
            "b": ColumnRelevance(raw=0.5, penalty=0.25),
            "a": ColumnRelevance(raw=0.75, penalty=0.0),
            "c": ColumnRelevance(raw=0.25, penalty=0.0),
        }
    )
    frame = report.to_frame()

    assert frame.get_column("column").to_list() == ["a", "b", "c"]
    assert frame.get_column("adjusted").to_list() == [0.75, 0.25, 0.25]
    assert report.select(0.2) == ["b", "a", "c"]
    assert report.select(0.5) == ["a"]


def test_filter_requires_binary_label():
    df = pl.DataFrame({"x": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0], "y": [0, 1, 2, 0, 1, 2]})
    with pytest.raises(DegenerateColumnError):
        InformationValueFilter(target="y").fit(df)


def test_filter_requires_target_column(credit_df):
    with pytest.raises(SchemaMismatchError):
        InformationValueFilter(target="nope").fit(credit_df)


def test_transform_before_fit():
    with pytest.raises(RuntimeError):
        InformationValueFilter(target="y").transform(pl.DataFrame({"y": [0, 1]}))
