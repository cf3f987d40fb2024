"""Exception types raised by the extension handler."""


class ExtensionError(Exception):
    """Base class for every error the handler raises on purpose."""

    default_message = "extension error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ArgCannotBeNullError(ExtensionError, ValueError):
    default_message = "argument cannot be null"


class ArgCannotBeNullOrEmptyError(ExtensionError, ValueError):
    default_message = "argument cannot be null or empty"


class InvalidOperationNameError(ExtensionError, ValueError):
    default_message = "invalid operation name"


class SequenceNumberNotFoundError(ExtensionError):
    default_message = "sequence number not found"


class NoSettingsFilesError(ExtensionError):
    default_message = "no settings files were found"


class NoMrseqFileError(ExtensionError):
    default_message = "no mrseq file was found"


class InvalidSettingsFileNameError(ExtensionError):
    default_message = "invalid settings file name"


class InvalidSettingsFileError(ExtensionError):
    default_message = "invalid settings file"


class InvalidSettingsRuntimeSettingsCountError(ExtensionError):
    default_message = "invalid runtime settings count in settings file"


class NoCertificateThumbprintError(ExtensionError):
    default_message = "no certificate thumbprint for protected settings"


class InvalidProtectedSettingsDataError(ExtensionError):
    default_message = "invalid protected settings data"