class LankaSafeError(Exception):
    """Base class for errors raised by the dashboard services."""


class NoDistrictMatch(LankaSafeError):
    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(f"No district matches coordinates ({latitude}, {longitude})")


class MalformedSerializedField(LankaSafeError):
    """A list-shaped field could not be decoded. Always recovered as an empty list."""


class RecordNotFound(LankaSafeError):
    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}/{record_id} not found")


class WriteThroughFailure(LankaSafeError):
    def __init__(self, collection: str, record_id: str, reason: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Failed to update {collection}/{record_id}: {reason}")


class NotificationSendFailure(LankaSafeError):
    pass


class SubscriptionFailure(LankaSafeError):
    pass


class OccupancyOutOfRange(LankaSafeError):
    def __init__(self, value: int, capacity: int):
        self.value = value
        self.capacity = capacity
        super().__init__(f"Occupancy must be between 0 and {capacity}")


class InvalidCredentials(LankaSafeError):
    pass


class InvalidSession(LankaSafeError):
    pass
