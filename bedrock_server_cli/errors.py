"""Fatal error taxonomy for the server management workflows."""


class BedrockServerError(Exception):
    """Base class for errors that abort a workflow run."""

    phase = "unknown"


class EnvironmentCheckError(BedrockServerError):
    """Missing tool, insufficient privilege or missing install directory."""

    phase = "environment"


class VersionDetectionError(BedrockServerError):
    phase = "version detection"


class TransferError(BedrockServerError):
    phase = "transfer"


class DownloadError(TransferError):
    phase = "download"


class ExtractionError(TransferError):
    phase = "extraction"


class SupervisionError(BedrockServerError):
    """The server could not be brought to the requested state."""

    phase = "server stop/start"


class BackupError(BedrockServerError):
    phase = "backup"


class InstallError(BedrockServerError):
    phase = "install"
