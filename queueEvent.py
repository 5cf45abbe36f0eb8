import lib.shared.participant as participant

QUEUE_EVENT_TYPE_PLAYER_JOINED          = 1 # PlayerJoinedEvent : participant joined a pool, current/required counts taken after the join
QUEUE_EVENT_TYPE_PLAYER_LEFT            = 2 # PlayerLeftEvent : participant left a pool, by command or as a side effect of confirming elsewhere
QUEUE_EVENT_TYPE_PLAYER_EXPIRED         = 3 # PlayerExpiredEvent : participant removed by the sweeper, availability window elapsed
QUEUE_EVENT_TYPE_ROUND_OPENED           = 4 # RoundOpenedEvent : pool filled, confirmation requested from every snapshot member
QUEUE_EVENT_TYPE_SESSION_READY          = 5 # SessionReadyEvent : every snapshot member confirmed
QUEUE_EVENT_TYPE_SESSION_CANCELLED      = 6 # SessionCancelledEvent : round resolved without quorum, data holds the counts

REMOVAL_REASON_NO_RESPONSE  = 0

class Event():
    def __init__(self, type : int, communityId : str, sizeClass : str, data : dict = None):
        self.type = type
        self.communityId = communityId
        self.sizeClass = sizeClass
        self.data = data if data != None else {}

    def __repr__(self):
        return f"{type(self).__name__}({self.communityId}, {self.sizeClass})"

class PlayerJoinedEvent(Event):
    def __init__(self, cl : participant.Participant, communityId : str, sizeClass : str, current : int, required : int):
        self.participant = cl
        self.current = current
        self.required = required
        super().__init__(QUEUE_EVENT_TYPE_PLAYER_JOINED, communityId, sizeClass)

class PlayerLeftEvent(Event):
    def __init__(self, cl : participant.Participant, communityId : str, sizeClass : str, current : int, required : int):
        self.participant = cl
        self.current = current
        self.required = required
        super().__init__(QUEUE_EVENT_TYPE_PLAYER_LEFT, communityId, sizeClass)

class PlayerExpiredEvent(Event):
    def __init__(self, cl : participant.Participant, communityId : str, sizeClass : str, current : int, required : int):
        self.participant = cl
        self.current = current
        self.required = required
        super().__init__(QUEUE_EVENT_TYPE_PLAYER_EXPIRED, communityId, sizeClass)

class RoundOpenedEvent(Event):
    def __init__(self, participants : list[participant.Participant], communityId : str, sizeClass : str, timeoutSeconds : float):
        self.participants = participants
        self.timeoutSeconds = timeoutSeconds
        super().__init__(QUEUE_EVENT_TYPE_ROUND_OPENED, communityId, sizeClass)

class SessionReadyEvent(Event):
    def __init__(self, participants : list[participant.Participant], communityId : str, sizeClass : str):
        self.participants = participants
        super().__init__(QUEUE_EVENT_TYPE_SESSION_READY, communityId, sizeClass)

class SessionCancelledEvent(Event):
    def __init__(self, communityId : str, sizeClass : str, confirmed : int, declined : int, nonResponding : int):
        self.confirmed = confirmed
        self.declined = declined
        self.nonResponding = nonResponding
        super().__init__(QUEUE_EVENT_TYPE_SESSION_CANCELLED, communityId, sizeClass,
                         {"confirmed": confirmed, "declined": declined, "nonResponding": nonResponding})
