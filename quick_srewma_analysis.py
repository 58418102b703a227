import logging

import pandas as pd

from srewma import MonitorConfig, create_srewma_chart, format_srewma_summary

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")

# Load product-stream measurements: first rows are the in-control reference
df = pd.read_csv("product_stream.csv")
variables = ["fixed_acidity", "volatile_acidity", "citric_acid", "ph", "sulphates", "alcohol"]
n_reference = 100

config = MonitorConfig(
    config_name="Line 2 physicochemical",
    lambda_param=0.025,
    control_limit=13.5,  # from the run-length table for the required ARL0
    columns=variables,
)

result = create_srewma_chart(df.iloc[:n_reference], df.iloc[n_reference:], config)

print(format_srewma_summary(result, title=config.config_name))

if not result.completed:
    print(f"Monitoring stopped early: {result.failure}")
