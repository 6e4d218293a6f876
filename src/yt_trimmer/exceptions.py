"""
Exception base shared by the pipeline services.
"""


class PipelineError(Exception):
    """Raised for pipeline-related errors."""
    pass


class EngineFailure(PipelineError):
    """
    The transcoding engine exited unsuccessfully.

    ``diagnostics`` holds at most a bounded prefix of the engine's stderr;
    the exception message never includes it.
    """

    def __init__(self, message: str, returncode: int = -1, diagnostics: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.diagnostics = diagnostics
