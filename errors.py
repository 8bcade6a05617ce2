"""Error taxonomy shared by the service master modules."""


class ServiceMasterError(Exception):
    """Base class for all service master errors."""


class ValidationError(ServiceMasterError, ValueError):
    """Input rejected before any write (missing name, bad hours, ...)."""


class StoreError(ServiceMasterError):
    """The data store reported a failure. The operation was aborted."""


class AuthorizationError(ServiceMasterError):
    """A completed record was edited without a valid one-shot grant."""
