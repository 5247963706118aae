# setup.py
from setuptools import setup, find_packages

setup(
    name="finance-tracker",
    version="0.1.0",
    description="Extract transactions from pasted bank-statement text and track them per organization",
    packages=find_packages(include=["finance_tracker", "finance_tracker.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "bcrypt>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "finance-tracker=finance_tracker.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
