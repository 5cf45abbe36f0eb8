# Every error raised by the queue core. Handlers at the Discord boundary catch
# QueueError and show str(e) to the user who triggered it.

class QueueError(Exception):
    pass;

class TimeWindowError(QueueError):
    pass;

class InvalidFormat(TimeWindowError):
    pass;

class InvalidTimeValue(TimeWindowError):
    pass;

class WindowExpired(TimeWindowError):
    def __init__(self, end : str):
        self.end = end;
        super().__init__(f"The time range you provided (until {end}) has already expired. Please provide a future time.");

class UnknownQueue(QueueError):
    def __init__(self, sizeClass : str):
        self.sizeClass = sizeClass;
        super().__init__(f"Queue type {sizeClass} not found.");

class AlreadyQueued(QueueError):
    def __init__(self, sizeClass : str):
        self.sizeClass = sizeClass;
        super().__init__(f"You are already in the {sizeClass} queue in this server.");

class NotQueued(QueueError):
    def __init__(self, sizeClass : str = None):
        self.sizeClass = sizeClass;
        if sizeClass == None or sizeClass == "all":
            super().__init__("You are not currently in any queue in this server.");
        else:
            super().__init__(f"You are not currently in the {sizeClass} queue.");

class PoolFull(QueueError):
    def __init__(self, sizeClass : str):
        self.sizeClass = sizeClass;
        super().__init__(f"The {sizeClass} queue is full and waiting on game confirmations. Try again in a couple of minutes.");

# Raised by a notification sink when a participant cannot be reached.
class DeliveryFailure(QueueError):
    pass;

class MissingRoundContext(QueueError):
    def __init__(self, key):
        self.key = key;
        super().__init__(f"No active confirmation round for {key}.");
