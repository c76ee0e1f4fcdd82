"""
Setup script for the MMET Predictor.
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="mmet-predictor",
    version="0.2.0",
    description="COA parsing, baseline effect scoring and personalized calibration for cannabis products",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["mmet", "mmet.*"]),
    package_data={"mmet": ["configs/*.yml"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "numpy>=1.24.0",
        "pandas>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "mmet-score=mmet.entrypoints.score_coa:main",
            "mmet-calibrate=mmet.entrypoints.fit_calibration:main",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering",
    ],
)
