"""Version information for provgraph."""
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version


def get_version() -> str:
    """Version from installed package metadata, or a dev marker."""
    try:
        return version('provgraph')
    except PackageNotFoundError:
        return '0.0.0-dev'


__version__ = get_version()
