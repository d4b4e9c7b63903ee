import os

import nox

PYTHON_VERSIONS = ["3.10", "3.11", "3.12"]
DEFAULT_PYTHON = PYTHON_VERSIONS[0]


def _remove(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@nox.session(python=DEFAULT_PYTHON)
def lint(session):
    print("🛠️ Running linter")
    _remove(".flake8-report")

    session.install("-e", ".[dev]")
    session.run(
        "flake8", "pysqsmock", "tests", "noxfile.py",
        "--count",
        "--statistics",
        "--output-file=.flake8-report",
        "--tee"
    )


@nox.session(python=PYTHON_VERSIONS)
def test(session):
    print(f"🧪 Running tests on Python {session.python}")
    report = f".pytest-results-{session.python}.html"
    _remove(report)

    session.install("-e", ".[test]")
    session.run(
        "pytest", *(session.posargs or ["tests"]),
        "-vv", "-rEPW",
        "--cache-clear",
        "--color=yes",
        f"--html={report}", "--self-contained-html"
    )


@nox.session(python=DEFAULT_PYTHON)
def build(session):
    print("🏗️ Building pysqsmock")
    session.install("build")
    session.run("python", "-m", "build")

    print("📦 Installing built wheel")
    session.run(
        "python", "-m", "pip", "install", ".", external=True
    )


@nox.session(python=DEFAULT_PYTHON)
def release_check(session):
    print("📤 Twine Release Check")
    session.install("twine")
    session.run("twine", "check", "dist/*")
