class SlideGenError(Exception):
    """Base class for errors raised by the slide generation service."""


class InvalidSubmissionError(SlideGenError):
    """The submitted theme, settings or files were rejected."""


class SystemBusyError(SlideGenError):
    """Admission control rejected the job; the caller may retry later."""


class SchedulingError(SlideGenError):
    """The job was recorded but could not be handed to a worker."""


class JobNotFoundError(SlideGenError):
    pass


class GenerationError(SlideGenError):
    """Raised by the artifact generator; recorded as a failed job."""


class InputTooLargeError(GenerationError):
    pass


class UpstreamModelError(GenerationError):
    pass


class RenderError(GenerationError):
    pass
