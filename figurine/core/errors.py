"""Error taxonomy for the orchestration engine.

Every error carries a `user_message` that front-ends can relay verbatim.
Validation errors (`InvalidStyle`, `InvalidCount`, `InvalidPrompt`,
`AlreadyBusy`) are raised before any state change. Resolution, submission and
polling errors are raised or reported only after the gate has been released.
"""


class ConfigError(ValueError):
    """Raised when runtime configuration is missing or out of range."""


class FigurineError(Exception):
    """Base class for requester-visible failures."""

    user_message = "Processing failed, please try again later"

    def __init__(self, message: str | None = None):
        self.user_message = message or self.user_message
        super().__init__(self.user_message)


class InvalidStyle(FigurineError):
    def __init__(self, style_count: int):
        self.style_count = style_count
        super().__init__(f"Style must be between 1 and {style_count}")


class InvalidCount(FigurineError):
    def __init__(self, low: int = 1, high: int = 4):
        super().__init__(f"Image count must be between {low} and {high}")


class InvalidPrompt(FigurineError):
    user_message = "Please enter an image description (at least 2 characters)"


class AlreadyBusy(FigurineError):
    user_message = "A task is already being processed, please wait for it to finish"


class NoImageFound(FigurineError):
    user_message = "No image found in the message"


class UnsupportedImageFormat(FigurineError):
    user_message = "Unsupported image reference, please send a regular image"


class ImageTooLarge(FigurineError):
    def __init__(self, limit_mb: int):
        self.limit_mb = limit_mb
        super().__init__(f"Image is larger than the {limit_mb} MB limit")


class SubmissionFailed(FigurineError):
    user_message = "Task submission failed, please try again later"


class PollTimeout(FigurineError):
    user_message = "Generation timed out, please try again later"


class PollError(FigurineError):
    user_message = "An error occurred during generation, please try again later"


class EmptyResult(PollError):
    user_message = "Generation finished without any image, please try a different picture"


class WaitExpired(FigurineError):
    user_message = "Timed out waiting for an image, please send the command again"
