# setup.py
from setuptools import setup, find_packages

setup(
    name="money-manager",
    version="0.1.0",
    description="Turn bank and UPI SMS alerts into a categorized personal ledger",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "pandas>=1.3",
        "openpyxl>=3.0",
        "xlsxwriter>=3.0",
        "python-dotenv>=0.19",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "money-manager=money_manager.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
