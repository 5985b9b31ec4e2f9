import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install postledger with its test extras into the nox virtualenv."""
    session.install("-e", ".[test]")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the test suite across Python versions, skipping slow tests."""
    _install(session)
    session.run("pytest", "--cov=postledger", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def full(session: nox.Session) -> None:
    """Run the full test suite, slow tests included."""
    _install(session)
    session.run("pytest", "--slow", *session.posargs)
