import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

pl = pytest.importorskip("polars", reason="polars is required for tabprep tests")
np = pytest.importorskip("numpy", reason="numpy is required for tabprep tests")
pytest.importorskip("sklearn", reason="scikit-learn is required for stratified splitting")


@pytest.fixture(scope="session")
def credit_df() -> pl.DataFrame:
    """Synthetic loan book: income and region drive the default label."""
    rng = np.random.default_rng(7)
    n = 2000
    income = rng.lognormal(mean=10.0, sigma=0.5, size=n)
    region = rng.choice(["north", "south", "east", "west"], size=n, p=[0.4, 0.3, 0.2, 0.1]).astype(object)
    region[:12] = "isle"
    age = rng.integers(18, 80, size=n)
    noise = rng.normal(size=n)

    z = (np.log(income) - 10.0) / 0.5
    logit = -1.0 + 1.2 * z + 1.0 * (region == "south") - 1.0 * (region == "east")
    prob = 1.0 / (1.0 + np.exp(-logit))
    default = (rng.random(n) < prob).astype(int)

    income_missing = rng.random(n) < 0.05
    income_list = [None if m else float(v) for v, m in zip(income, income_missing)]
    region_list = [None if i % 97 == 0 else str(r) for i, r in enumerate(region)]

    return pl.DataFrame(
        {
            "customer_id": [f"c{i:05d}" for i in range(n)],
            "income": income_list,
            "income_copy": [None if v is None else 2.0 * v + 1.0 for v in income_list],
            "age": age.tolist(),
            "region": region_list,
            "noise": noise.tolist(),
            "constant": ["x"] * n,
            "default": default.tolist(),
        },
        schema={
            "customer_id": pl.String,
            "income": pl.Float64,
            "income_copy": pl.Float64,
            "age": pl.Int64,
            "region": pl.String,
            "noise": pl.Float64,
            "constant": pl.String,
            "default": pl.Int64,
        },
    )


@pytest.fixture()
def small_df() -> pl.DataFrame:
    """Ten rows, one categorical column with level counts 5/4/1."""
    return pl.DataFrame(
        {
            "color": ["a", "a", "a", "a", "a", "b", "b", "b", "b", "c"],
            "x": [1.0, 2.0, 3.0, None, 5.0, 6.0, 7.0, 8.0, 9.0, 100.0],
            "y": [1, 0, 1, 0, 1, 1, 0, 0, 1, 0],
        }
    )
