import asyncio

import pytest

import lib.shared.errors as errors
import lib.shared.participant as participant
import lib.shared.queuestore as queuestore
import queueinterface


class RecordingSink(queueinterface.INotificationSink):
    """Keeps everything the core asked it to deliver. Ids in `unreachable` fail like a closed DM."""

    def __init__(self, unreachable=()):
        super().__init__()
        self.sent = []
        self.requests = []
        self.removals = []
        self.unreachable = set(unreachable)

    async def SendToChannel(self, destination, content):
        self.sent.append((destination, content))
        return content

    async def RequestConfirmation(self, cl, communityId, communityLabel, sizeClass):
        if cl.GetId() in self.unreachable:
            raise errors.DeliveryFailure(f"cannot reach {cl.GetId()}")
        self.requests.append((cl.GetId(), communityId, sizeClass))

    async def NotifyRemoval(self, cl, communityLabel, sizeClass, reason):
        self.removals.append((cl.GetId(), sizeClass, reason))

    def events(self, eventType: int) -> list:
        return [event for _, event in self.sent if event.type == eventType]


class ManualSleeper:
    """
    Fake sleep that only returns once the test calls fire(), so round
    timeouts happen exactly when the test wants them to.
    """

    def __init__(self):
        self.requested = []
        self._event = asyncio.Event()

    async def sleep(self, seconds: float) -> None:
        self.requested.append(seconds)
        await self._event.wait()

    def fire(self) -> None:
        self._event.set()


def make_players(count: int, destination="chan", start: int = 1) -> list[participant.Participant]:
    return [participant.Participant(str(i), f"Player{i}", destination) for i in range(start, start + count)]


@pytest.fixture
def store():
    return queuestore.QueueStore([5, 6])


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def sleeper():
    return ManualSleeper()
