"""Exception hierarchy for address_resolution."""


class AddressResolutionError(Exception):
    """Base exception for all address_resolution errors."""


class ConfigurationError(AddressResolutionError):
    """A threshold, weight or radius is outside its allowed range."""

    def __init__(self, field_name: str, detail: str):
        self.field_name = field_name
        super().__init__(f"Invalid configuration for '{field_name}': {detail}")


class CollaboratorError(AddressResolutionError):
    """An injected store or finder failed while handling one item."""

    def __init__(self, item_id: str, stage: str, cause: BaseException):
        self.item_id = item_id
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed for '{item_id}': {cause}")


class SynthesisSkipped(AddressResolutionError):
    """A cluster could not be turned into a new address."""

    def __init__(self, reason: str, member_ids: tuple = ()):
        self.reason = reason
        self.member_ids = member_ids
        super().__init__(f"Cluster synthesis skipped: {reason}")
