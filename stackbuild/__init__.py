"""stackbuild - Build and tag container images for multi-service manifests.

This package turns a compose-style application manifest into tagged images,
pulling external images and building local contexts with build reuse and a
persistent build-cache directory.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
