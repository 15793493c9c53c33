import logging
import tempfile
from pathlib import Path

import numpy as np
import polars as pl

import tabprep


def make_loans(n: int = 3000, seed: int = 0) -> pl.DataFrame:
    rng = np.random.default_rng(seed)
    income = rng.lognormal(mean=10.0, sigma=0.6, size=n)
    region = rng.choice(["north", "south", "east", "west", "isle"], size=n, p=[0.4, 0.3, 0.2, 0.09, 0.01])
    tenure = rng.integers(0, 30, size=n)
    z = (np.log(income) - 10.0) / 0.6
    logit = -1.2 + 1.1 * z + 0.8 * (region == "south") - 0.5 * np.log1p(tenure)
    default = (rng.random(n) < 1.0 / (1.0 + np.exp(-logit))).astype(int)
    missing = rng.random(n) < 0.04
    return pl.DataFrame(
        {
            "loan_id": [f"L{i:06d}" for i in range(n)],
            "income": [None if m else float(v) for v, m in zip(income, missing)],
            "income_monthly": [None if m else float(v) / 12.0 for v, m in zip(income, missing)],
            "region": region.tolist(),
            "tenure": tenure.tolist(),
            "noise": rng.normal(size=n).tolist(),
            "default": default.tolist(),
        }
    )


def main():
    tabprep.configure_logging(logging.INFO)
    df = make_loans()

    cfg = tabprep.PipelineConfig(target="default", max_cardinality=200, cross_frame=True, seed=3)
    pipeline = tabprep.PreprocessingPipeline(cfg)
    result = pipeline.run(df)

    print("Relevance report:")
    print(result.report.to_frame())
    print("Selected:", result.selected_features)
    print("Removed as redundant:", result.removed_features)
    print("Train shape:", result.train.shape, "Test shape:", result.test.shape)
    print(result.train.head())

    with tempfile.TemporaryDirectory() as tmp:
        path = result.plan.save(Path(tmp) / "plan.json")
        restored = tabprep.EncodingPlan.load(path)
        fresh = make_loans(n=5, seed=99)
        print("New rows encoded with the saved plan:")
        print(restored.transform(fresh, include_target=False))
        print("Pipeline.apply on the same rows:")
        print(pipeline.apply(fresh, include_target=False))


if __name__ == "__main__":
    main()
