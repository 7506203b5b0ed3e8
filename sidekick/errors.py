"""
Exception types raised by the Sidekick rules engine.

Validation failures are typed so callers can surface a rejected operation
to the player. Resource spends and restores never raise; they clamp.
Storage errors are not wrapped and reach the caller unchanged.
"""

from typing import Optional


class SidekickError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(SidekickError):
    """Raised when an operation is rejected because its input is invalid."""
    pass


class ChoiceCapacityError(ValidationError):
    """Raised when adding a selection would exceed the allowed number."""

    def __init__(self, trait_id: str, allowed: int):
        super().__init__(
            f"Trait '{trait_id}' allows at most {allowed} selection(s)"
        )
        self.trait_id = trait_id
        self.allowed = allowed


class InvalidOptionError(ValidationError):
    """Raised when a choice option id is not one of the trait's options."""
    pass


class SelectionNotFoundError(ValidationError):
    """Raised when an operation needs a selection that has not been made."""
    pass


class TraitNotFoundError(ValidationError):
    """Raised when a trait id is not granted to the character."""
    pass


class AbilityUnavailableError(ValidationError):
    """Raised when an ability has no uses left."""
    pass


class InsufficientResourceError(ValidationError):
    """Raised when an ability's resource cost cannot be paid."""
    pass


class MaxLevelError(ValidationError):
    """Raised when levelling up past the configured maximum level."""
    pass


class DicePoolError(ValidationError):
    """Raised for invalid dice pool operations."""
    pass


class DicePoolFullError(DicePoolError):
    """Raised when a die is added to a pool that is already full."""
    pass


class ContentValidationError(ValidationError):
    """Raised when reference content fails validation at load time."""
    pass


class FormulaError(ValidationError):
    """Raised when a resource bound expression is malformed."""
    pass


class DiceFormulaError(ValidationError):
    """
    Raised when a dice formula cannot be parsed.

    Attributes:
        token: The offending token text
        position: Character offset of the token in the formula
    """

    def __init__(self, message: str, token: str = "", position: Optional[int] = None):
        if token:
            message = f"{message} (token '{token}' at position {position})"
        super().__init__(message)
        self.token = token
        self.position = position


class CharacterNotFoundError(SidekickError):
    """Raised when a character id is not present in storage."""
    pass


class NoCharacterLoadedError(SidekickError):
    """Raised when a service operation needs a current character."""
    pass
