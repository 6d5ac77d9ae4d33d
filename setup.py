from setuptools import find_packages, setup

from src.bddrun.constants import VERSION

DESCRIPTION = """Event-driven execution core for behavior-driven test suites (bddrun)
Runs Gherkin features parsed by behave through a synchronous event pipeline:
steps, scenarios, outline rows and features are executed in order, hooks and
listeners observe every lifecycle transition, and outcomes are aggregated by
severity into the process exit code.
"""

setup(
    name="bddrun",
    version=VERSION,
    packages=find_packages(where="src", exclude=[
                           "__pycache__", "*.__pycache__*"]),
    package_dir={"": "src"},
    include_package_data=True,
    entry_points={
        "console_scripts": ["bddrun=bddrun.__main__:main"],
    },
    install_requires=[
        "behave<2.0,>=1.3.3",
        "python-dotenv<2.0,>=0.9.9",
        "packaging>=25.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.3,<9.0",
            "pytest-mock>=3.14,<4.0",
        ],
    },
    description=DESCRIPTION,
    long_description=DESCRIPTION,
    license="MIT License",
    classifiers=["Programming Language :: Python :: 3.8"],
)
