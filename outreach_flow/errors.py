"""Error taxonomy shared by the workflow engine, dispatchers and scheduler.

ConfigurationError and its subclasses are fatal to a lead's run and are never
retried. ProviderError covers failed channel calls; TransientProviderError is
the network/timeout flavour, retried once inside the same pass.
"""


class OutreachError(Exception):
    """Base class for all errors raised by outreach_flow."""


class ConfigurationError(OutreachError):
    """The campaign graph or a step config is invalid."""

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or [message]


class StepValidationError(ConfigurationError):
    """A step config is missing required fields or has bad values."""

    def __init__(self, step_type: str, message: str):
        super().__init__(f"Invalid {step_type} step: {message}")
        self.step_type = step_type


class NoStartStep(ConfigurationError):
    """The workflow has no start step, or more than one."""


class DanglingStep(ConfigurationError):
    """A step id or edge points at nothing."""

    def __init__(self, message: str, step_id: str | None = None):
        super().__init__(message)
        self.step_id = step_id


class RunawayWorkflow(ConfigurationError):
    """The iteration ceiling was hit while traversing a lead's workflow."""

    def __init__(self, last_step_id: str | None, iterations: int):
        super().__init__(
            f"Workflow exceeded {iterations} iterations (last step: {last_step_id})"
        )
        self.last_step_id = last_step_id
        self.iterations = iterations


class ProviderError(OutreachError):
    """A channel or lead-generation provider rejected the call."""


class TransientProviderError(ProviderError):
    """Network failure or timeout talking to a provider."""


class BestEffortError(OutreachError):
    """Failure in a best-effort side task; logged, never fails the step."""


class NotFoundError(OutreachError):
    """A campaign, lead, sequence or slot does not exist for this tenant."""
