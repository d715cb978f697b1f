class SimulationError(Exception):
    """Base class for every error raised by the simulator"""


class InvariantViolation(SimulationError):
    """Raised when the simulated chain reaches a state the consensus rules make impossible.
    These point at a logic error and are never caught inside a trial
    """


class ConfigError(SimulationError, ValueError):
    """Raised for an invalid experiment configuration, before any trial starts"""


class TrialFailed(SimulationError):
    """Raised by the trial collector once every trial has finished and at least one of them failed

    Args:
        trial_idx (int): Index of the first failed trial
        cause (BaseException): The exception raised inside that trial
        failed (int): Total number of failed trials

    """

    def __init__(self, trial_idx, cause, failed=1):
        super().__init__("Trial {} failed ({} failed in total): {}".format(trial_idx, failed, cause))
        self.trial_idx = trial_idx
        self.cause = cause
        self.failed = failed
