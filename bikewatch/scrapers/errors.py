# bikewatch/scrapers/errors.py

"""Errors raised while fetching a snapshot from the vendor."""


class BikewatchError(Exception):
    """Base class for conditions surfaced to the user."""


class MissingAuthContextError(BikewatchError):
    """No captured request headers are available yet."""


class FetchError(BikewatchError):
    """The API call failed or its body could not be decoded."""
