"""
Setup file for the loadcast package.
Allows installation in editable mode: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="loadcast",
    version="0.1.0",
    description="Weather-Driven Electricity Load Analysis & Forecasting",
    packages=find_packages(include=["loadcast", "loadcast.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "numpy",
        "pyyaml",
        "python-dotenv",
        "scikit-learn",
        "joblib",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
