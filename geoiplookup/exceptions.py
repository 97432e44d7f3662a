class GeoIPError(Exception):
    pass


class StoreError(GeoIPError):
    pass


class FetchError(GeoIPError):

    def __init__(self, url: str, message: str, status_code: int = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class PopulateError(GeoIPError):
    """Raised when a population run aborts. ``stage`` names the failing stage."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class MissingPartitionError(StoreError):
    pass
