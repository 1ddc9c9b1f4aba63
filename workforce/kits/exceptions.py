class KitError(Exception):
    """Base class for kit workflow errors."""


class KitTemplateNotApprovedError(KitError):
    """Instances can only be built from approved, active templates."""


class KitTemplateStateError(KitError):
    pass


class KitValidationError(KitError):
    pass
