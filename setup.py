import pathlib

from setuptools import find_packages, setup

here = pathlib.Path(__file__).parent

with (here / "README.rst").open("r", encoding="utf-8") as fo:
    long_description = fo.read()

metadatas = dict(
    name="pgcollect",
    description="Collect PostgreSQL plans, autovacuums and deadlocks from logs",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    license="PostgreSQL",
    keywords="postgresql log_line_prefix auto_explain autovacuum deadlock metrics",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: PostgreSQL License",
        "Programming Language :: Python :: 3",
        "Topic :: Database",
        "Topic :: System :: Monitoring",
    ],
    use_scm_version={"fallback_version": "0.1.0"},
    setup_requires=["setuptools_scm"],
    install_requires=[
        "typing_extensions",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
    },
)


if __name__ == "__main__":
    setup(
        packages=find_packages(".", exclude=["tests"]),
        python_requires=">=3.7",
        **metadatas
    )
