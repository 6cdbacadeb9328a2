class AssetNumberError(ValueError):
    """Base class for asset number encode/decode failures."""


class ValidationError(AssetNumberError):
    """A field supplied to the encoder violates its width or character class."""

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class FormatError(AssetNumberError):
    """An asset number string failed a length or segment check."""

    def __init__(self, segment: str, value: str, reason: str):
        self.segment = segment
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid asset number format: {reason}")
