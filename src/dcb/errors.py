"""
Exceptions raised while producing a bundle.
"""


class BundlerError(Exception):
    """
    Base class for every fatal error of a bundling run.
    """


class ParseError(BundlerError):
    """
    The compose file could not be read or is not a valid compose document.
    """


class ValidationError(BundlerError):
    """
    The x-bundle metadata is missing or invalid.
    """


class EngineError(BundlerError):
    """
    The container engine could not be reached.
    """


class BuildError(BundlerError):
    """
    The engine failed to build an image.
    """


class PullError(BundlerError):
    """
    The engine failed to pull an image.
    """


class SaveError(BundlerError):
    """
    An image could not be exported to a tar file.
    """


class FilesystemError(BundlerError):
    """
    The working directory or the output archive could not be written.
    """


class RemoveError(BundlerError):
    """
    An image could not be removed. Only raised during cleanup, where it is never fatal.
    """
