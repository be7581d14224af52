"""
Exceptions for the event publishing system.
"""


class PublisherUnavailableError(Exception):
    """Raised when an event reaches a publisher that is closed or not ready.

    Attributes:
        publisher (str): Name of the publisher that refused the event
    """

    def __init__(self, publisher: str, reason: str = "not available"):
        self.publisher = publisher
        super().__init__(f"{publisher} publisher is {reason}")
