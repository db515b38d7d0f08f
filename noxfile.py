import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install the project with test extras into the nox virtualenv."""
    session.install("-e", ".[test]")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the test suite across Python versions."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def coverage(session: nox.Session) -> None:
    """Run the test suite with coverage of the `covenant` package."""
    _install(session)
    session.run(
        "pytest", "--cov=covenant", "--cov-report=term-missing", *session.posargs
    )

