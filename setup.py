from setuptools import setup


setup(
    name="cert-tracker",
    version="0.1.0",
    description="Sales certification tracker: import sales exports, score cycles, simulate goals",
    packages=["cert_tracker"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cert-tracker=cert_tracker.cli:main",
        ]
    },
)
