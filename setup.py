# setup.py
from setuptools import setup, find_packages

setup(
    name="caixafacil",
    version="0.1.0",
    description="Cash-flow tracking for small businesses: bank statement import, LLM categorization and projections",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "pandas>=1.1",
        "xlsxwriter>=3.0",
        "python-dotenv>=1.0",
        "huggingface_hub>=0.20",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "openpyxl>=3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "caixafacil=caixafacil.cli:main",
            "caixafacil-web=caixafacil.web:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
