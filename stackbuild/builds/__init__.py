"""Build orchestration module.

This module handles:
- Build planning (pull vs. build)
- Content hashing of build inputs
- Dockerfile build arg discovery
- The persistent build cache store
- Running the container tool
"""

__all__: list[str] = []

# Submodules are imported directly (stackbuild.builds.service, etc.) since
# the manifest schema depends on stackbuild.builds.cache_key.
