import logging
from typing import Any, Callable

import lib.shared.errors as errors
import lib.shared.participant as participant
import queueEvent

Log = logging.getLogger(__name__)

class INotificationSink():
    ''' What the queue core needs from whatever talks to the players. '''
    def __init__(self):
        pass

    # Returns a handle for the sent message, or None.
    async def SendToChannel(self, destination, content : queueEvent.Event) -> Any:
        Log.warning(f"SendToChannel not implemented, dropping {content}")
        return None

    # Raises DeliveryFailure when the participant cannot be reached. The answer
    # arrives later through ConfirmationCoordinator.RecordResponse.
    async def RequestConfirmation(self, cl : participant.Participant, communityId : str, communityLabel : str, sizeClass : str):
        raise errors.DeliveryFailure(f"Confirmation requests not implemented, cannot reach {cl}")

    async def NotifyRemoval(self, cl : participant.Participant, communityLabel : str, sizeClass : str, reason : int):
        Log.warning(f"NotifyRemoval not implemented, {cl} not notified")


class DestinationChain():
    '''
    Ordered destination candidates, each a zero argument callable returning a
    destination or None. The first non-None one wins; running out is fine.
    '''
    def __init__(self, resolvers : list[Callable[[], Any]] = None):
        self._resolvers = list(resolvers) if resolvers != None else []

    def Resolve(self) -> Any:
        for resolver in self._resolvers:
            try:
                destination = resolver()
            except Exception as e:
                Log.warning(f"Destination resolver failed, trying the next one : {e}")
                continue
            if destination != None:
                return destination
        return None
