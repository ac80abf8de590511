"""Error taxonomy shared by the physics, timeline, report and provider layers."""


class ImpactSimError(Exception):
    """Base class for every error raised by impact_api."""


class InputValidationError(ImpactSimError, ValueError):
    """Impactor/location/config values rejected at the boundary."""


class ProviderError(ImpactSimError):
    """An external data or text provider failed (network, HTTP status, payload shape)."""


class AsteroidNotFoundError(ProviderError):
    """The asteroid provider does not know the requested id."""


class TimelineMisuseError(ImpactSimError):
    """start() was called while a run is still in progress."""
