"""
Utility functions for Django settings configuration.

Environment-specific configuration is loaded with python-decouple from a
``.env.<environment>`` file at the repository root, falling back to the
process environment.
"""

from pathlib import Path

from decouple import Config, RepositoryEnv
from decouple import config as default_config

ENV_FILES = {
    "development": ".env.dev",
    "production": ".env.production",
}


def load_environment_config(environment):
    """
    Return a decouple ``config`` callable for ``environment``.

    Uses the matching ``.env`` file when it exists, otherwise the default
    decouple lookup (environment variables, then ``.env`` / ``settings.ini``).
    """
    env_file_name = ENV_FILES.get(environment, ".env")
    env_file_path = Path(__file__).resolve().parent.parent.parent.parent / env_file_name

    if env_file_path.exists():
        print(f"Loading environment: {environment} from {env_file_name}")
        return Config(RepositoryEnv(env_file_path))

    print(f"Warning: {env_file_name} not found, using default config")
    return default_config
