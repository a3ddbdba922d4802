"""
Models for the settings of a bundling run.
"""
from pydantic import BaseModel

DEFAULT_OUTPUT = "bundle.tar.gz"

# Historical cleanup prefix. Built images are tagged bundles/<name>/<service>:<version>,
# so with this default they are left in the engine.
DEFAULT_BUILT_IMAGE_PREFIX = "bundled-"


class BundlerConfig(BaseModel):
    """
    Options of one bundling run, as given on the command line.
    """
    output_path: str = DEFAULT_OUTPUT
    cleanup: bool = True
    built_image_prefix: str = DEFAULT_BUILT_IMAGE_PREFIX
    verbose: bool = False
