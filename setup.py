from setuptools import setup, find_packages

setup(
    name="opticalmarket",
    version="1.0.0",
    packages=find_packages(include=["opticalmarket", "opticalmarket.*"]),
    install_requires=[
        "django>=4.0",
        "djangorestframework",
        "drf-spectacular",
        "psycopg2-binary",
        "python-decouple",
        "requests",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-django",
        ],
    },
    python_requires=">=3.11",
)
