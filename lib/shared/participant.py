import logging
from datetime import datetime, timezone

from lib.shared.timewindow import AvailabilityWindow

log = logging.getLogger(__name__)

SYNTHETIC_ID_PREFIX = "debug-bot-"

class Participant(object):
    def __init__(self, id : str, name : str, destination = None, window : AvailabilityWindow = None,
                 joinedAt : datetime = None, synthetic : bool = False):
        self._id = str(id)
        self._name = name
        # Opaque to the core, the notification sink knows what it is.
        self._destination = destination
        self._window = window
        self._joinedAt = joinedAt if joinedAt != None else datetime.now(timezone.utc)
        self._synthetic = synthetic

    def GetId(self) -> str:
        return self._id

    def GetName(self) -> str:
        return self._name

    def GetDestination(self):
        return self._destination

    def GetWindow(self) -> AvailabilityWindow:
        return self._window

    def HasWindow(self) -> bool:
        return self._window != None

    def IsSynthetic(self) -> bool:
        return self._synthetic

    def __repr__(self):
        s = f"{self._name} (ID : {self._id}) (Joined : {self._joinedAt:%H:%M:%S})"
        if self._window != None:
            s += f" (Window : {self._window.start}-{self._window.end} {self._window.timezone})"
        return s


def CreateSyntheticParticipants(count : int, destination = None) -> list[Participant]:
    ''' Always-confirming stand-ins used by the admin debug fill. '''
    result = []
    for i in range(count):
        result.append(Participant(f"{SYNTHETIC_ID_PREFIX}{i}", f"DebugBot{i + 1}", destination, synthetic=True))
    log.debug(f"Created {count} synthetic participants")
    return result
