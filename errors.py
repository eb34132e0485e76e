"""
errors.py
Exception types shared by the workflows and the UI.
"""

from __future__ import annotations


class DriveTrackError(Exception):
    """Base class for errors the UI reports back to the form."""


class ValidationError(DriveTrackError):
    """
    Missing or invalid user input. Raised before any write happens.
    Holds every problem found so the form can show them together.
    """

    def __init__(self, messages: str | list[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class InvalidSelection(ValidationError):
    """A course / session time / plan combination outside the pricing table."""


class RepositoryError(DriveTrackError):
    """The store rejected a read or write. The message is the store's own."""


class StaleDataWarning(UserWarning):
    """A balance shown to the user no longer matches the stored records."""
