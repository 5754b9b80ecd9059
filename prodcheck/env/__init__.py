"""Environment resolution — process env, Netlify CLI, fallback file, aliases."""

from .dotenv_file import load_env_file
from .netlify import NetlifyCLI, NetlifyError
from .resolver import EnvResolver, EnvSource, ResolvedEnv, apply_aliases
