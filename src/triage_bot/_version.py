"""Version information for Triage Bot."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path


def get_version_from_pyproject() -> str:
    """Installed package version, or the one in pyproject.toml for a source checkout.

    Raises:
        RuntimeError: If neither is available
    """
    try:
        return get_version("triage-bot")
    except PackageNotFoundError:
        import tomllib

        pyproject_path = Path(__file__).parents[2] / "pyproject.toml"
        if pyproject_path.exists():
            with pyproject_path.open("rb") as f:
                return str(tomllib.load(f)["project"]["version"])

        raise RuntimeError("Could not determine package version") from None


__version__ = get_version_from_pyproject()

__all__ = ["__version__"]
