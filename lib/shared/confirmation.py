"""
Readiness confirmation rounds.

Once a pool fills, its first requiredSize members are snapshotted into a
round and asked to confirm. The round resolves when everyone answered or
when the timeout fires, whichever comes first; the loser of that race finds
the round already resolved and does nothing.

Per (community, size class) the states are:
    Idle -> Open -> Resolving -> Idle
"""

import asyncio;
import logging;
import time;

import lib.shared.errors as errors;
import lib.shared.participant as participant;
import lib.shared.queuestore as queuestore;
from lib.shared.timeout import Timeout;
import queueEvent;
import queueinterface;

Log = logging.getLogger(__name__);

DEFAULT_CONFIRMATION_TIMEOUT = 120;

ROUND_STATE_OPEN        = 1;
ROUND_STATE_RESOLVING   = 2;
ROUND_STATE_RESOLVED    = 3;


class RoundMember(object):
    def __init__(self, cl : participant.Participant):
        self.participant = cl;
        self.responded = False;
        self.confirmed = False;

    def GetId(self) -> str:
        return self.participant.GetId();

    def __repr__(self):
        return f"{self.participant} responded={self.responded} confirmed={self.confirmed}";


class ConfirmationRound(object):
    def __init__(self, communityId : str, sizeClass : str, requiredSize : int, members : list[participant.Participant],
                 destination, communityLabel : str, timeoutSeconds : float, clock = time.time):
        self.communityId = communityId;
        self.sizeClass = sizeClass;
        self.requiredSize = requiredSize;
        self.destination = destination;
        self.communityLabel = communityLabel;
        self.createdAt = clock();
        self.deadline = Timeout(clock);
        self.deadline.Set(timeoutSeconds);
        self.state = ROUND_STATE_OPEN;
        self.timeoutTask = None;
        self._members = [RoundMember(m) for m in members];

    def GetKey(self) -> tuple[str, str]:
        return queuestore.QueueStore.RoundKey(self.communityId, self.sizeClass);

    def GetMembers(self) -> list[RoundMember]:
        return list(self._members);

    def GetMember(self, participantId : str) -> RoundMember:
        for member in self._members:
            if member.GetId() == participantId:
                return member;
        return None;

    def IsOpen(self) -> bool:
        return self.state == ROUND_STATE_OPEN;

    def MarkResponse(self, participantId : str, confirmed : bool) -> bool:
        member = self.GetMember(participantId);
        if member == None or member.responded:
            return False;
        member.responded = True;
        member.confirmed = confirmed;
        return True;

    def AllResponded(self) -> bool:
        return all(m.responded for m in self._members);

    def RespondedCount(self) -> int:
        return len([m for m in self._members if m.responded]);

    def Confirmed(self) -> list[RoundMember]:
        return [m for m in self._members if m.responded and m.confirmed];

    def Declined(self) -> list[RoundMember]:
        return [m for m in self._members if m.responded and not m.confirmed];

    def NonResponding(self) -> list[RoundMember]:
        return [m for m in self._members if not m.responded];

    def __repr__(self):
        return f"Round {self.communityId}-{self.sizeClass} ({self.RespondedCount()}/{len(self._members)} responded)";


class ConfirmationCoordinator(object):
    def __init__(self, store : queuestore.QueueStore, sink : queueinterface.INotificationSink,
                 timeoutSeconds : float = DEFAULT_CONFIRMATION_TIMEOUT, sleep = asyncio.sleep, clock = time.time):
        self._store = store;
        self._sink = sink;
        self._timeoutSeconds = timeoutSeconds;
        self._sleep = sleep;
        self._clock = clock;

    def GetTimeoutSeconds(self) -> float:
        return self._timeoutSeconds;

    def GetRound(self, communityId, sizeClass : str) -> ConfirmationRound:
        return self._store.GetRound(communityId, sizeClass);

    def FindRoundFor(self, participantId : str, sizeClass : str = None) -> ConfirmationRound:
        for r in self._store.FindRoundsWith(participantId):
            if sizeClass == None or r.sizeClass == sizeClass:
                return r;
        return None;

    async def _Send(self, destination, event : queueEvent.Event):
        if destination == None:
            Log.info(f"No destination to announce {event}, skipping");
            return None;
        try:
            return await self._sink.SendToChannel(destination, event);
        except Exception as e:
            Log.error(f"Failed to deliver {event} : {e}", exc_info=True);
            return None;

    async def CheckQueueStatus(self, communityId, sizeClass : str, destination = None, communityLabel : str = "") -> ConfirmationRound:
        ''' Opens a round when the pool is full and none is pending for it. '''
        communityId = str(communityId);
        if self._store.GetRound(communityId, sizeClass) != None:
            Log.debug(f"Community {communityId} - {sizeClass} already has a pending round");
            return None;
        snapshot = self._store.SnapshotFull(communityId, sizeClass);
        if snapshot == None:
            return None;

        pool = self._store.GetPool(communityId, sizeClass);
        round = ConfirmationRound(communityId, sizeClass, pool.GetRequiredSize(), snapshot, destination,
                                  communityLabel, self._timeoutSeconds, self._clock);
        self._store.SetRound(communityId, sizeClass, round);
        round.timeoutTask = asyncio.create_task(self._RoundTimeout(round));
        Log.info(f"Community {communityId} - {sizeClass} queue is full, opened confirmation round for {snapshot}");

        await self._Send(destination, queueEvent.RoundOpenedEvent(snapshot, communityId, sizeClass, self._timeoutSeconds));
        await asyncio.gather(*(self._RequestConfirmation(round, member) for member in snapshot));

        if round.IsOpen() and round.AllResponded():
            await self._Resolve(round);
        return round;

    async def _RequestConfirmation(self, round : ConfirmationRound, member : participant.Participant):
        try:
            await self._sink.RequestConfirmation(member, round.communityId, round.communityLabel, round.sizeClass);
        except Exception as e:
            # Unreachable counts as a decline, the round carries on.
            Log.warning(f"Community {round.communityId} - could not reach {member} for {round.sizeClass} confirmation : {e}");
            if round.IsOpen() and round.MarkResponse(member.GetId(), False):
                self._store.Remove(round.communityId, round.sizeClass, member.GetId());

    async def RecordResponse(self, communityId, sizeClass : str, participantId : str, confirmed : bool, fallbackDestination = None) -> bool:
        communityId = str(communityId);
        participantId = str(participantId);
        round = self._store.GetRound(communityId, sizeClass);
        if round == None or not round.IsOpen():
            Log.warning(f"{errors.MissingRoundContext((communityId, sizeClass))} Response from {participantId} discarded.");
            return False;
        member = round.GetMember(participantId);
        if member == None:
            Log.warning(f"Player {participantId} is not part of {round}, response discarded");
            return False;
        if not round.MarkResponse(participantId, confirmed):
            Log.info(f"Player {participantId} already responded in {round}");
            return False;
        Log.info(f"Player {participantId} marked as {'confirmed' if confirmed else 'declined'} for {communityId}-{sizeClass}");

        if confirmed:
            announcements = self._LeaveOtherPools(round, member.participant, fallbackDestination);
        else:
            self._store.Remove(communityId, sizeClass, participantId);
            announcements = [];

        for destination, event in announcements:
            await self._Send(destination, event);

        if round.IsOpen() and round.AllResponded():
            Log.info(f"All players have responded, resolving {round}");
            await self._Resolve(round);
        return True;

    def _LeaveOtherPools(self, round : ConfirmationRound, cl : participant.Participant, fallbackDestination) -> list:
        ''' A confirmed player stops waiting in every other pool of the community. '''
        announcements = [];
        for pool in self._store.GetOrCreatePools(round.communityId).GetPools():
            if pool.GetSizeClass() == round.sizeClass:
                continue;
            queued = pool.GetMember(cl.GetId());
            if queued == None:
                continue;
            chain = queueinterface.DestinationChain([
                lambda: round.destination,
                lambda: queued.GetDestination(),
                lambda: next((m.GetDestination() for m in pool.GetMembers()
                              if m.GetId() != cl.GetId() and m.GetDestination() != None), None),
                lambda: fallbackDestination,
            ]);
            destination = chain.Resolve();
            pool.Remove(cl.GetId());
            Log.info(f"Player {cl.GetId()} removed from queue {pool.GetSizeClass()} after confirming {round.sizeClass}");
            announcements.append((destination, queueEvent.PlayerLeftEvent(queued, round.communityId, pool.GetSizeClass(),
                                                                          pool.GetMemberCount(), pool.GetRequiredSize())));
        return announcements;

    async def _RoundTimeout(self, round : ConfirmationRound):
        await self._sleep(self._timeoutSeconds);
        if self._store.GetRound(round.communityId, round.sizeClass) is not round or not round.IsOpen():
            Log.debug(f"Timeout fired for {round.communityId}-{round.sizeClass} but the round is already resolved");
            return;
        Log.info(f"Confirmation time is up for {round}");
        try:
            await self._Resolve(round);
        except Exception as e:
            Log.error(f"Error resolving {round} on timeout : {e}", exc_info=True);

    async def Resolve(self, communityId, sizeClass : str) -> queueEvent.Event:
        round = self._store.GetRound(communityId, sizeClass);
        if round == None:
            return None;
        return await self._Resolve(round);

    async def _Resolve(self, round : ConfirmationRound) -> queueEvent.Event:
        if not round.IsOpen() or self._store.GetRound(round.communityId, round.sizeClass) is not round:
            return None;
        round.state = ROUND_STATE_RESOLVING;

        # Every store mutation happens before the first await.
        confirmed = round.Confirmed();
        declined = round.Declined();
        nonResponding = round.NonResponding();
        Log.info(f"Confirmed: {len(confirmed)}, Declined: {len(declined)}, No response: {len(nonResponding)} for {round.communityId}-{round.sizeClass}");

        for member in declined + nonResponding:
            if self._store.Remove(round.communityId, round.sizeClass, member.GetId()):
                Log.info(f"Removed player {member.participant.GetName()} from queue {round.sizeClass}");

        ready = len(confirmed) == round.requiredSize;
        # Confirmed players leave the pool even when quorum failed.
        for member in confirmed:
            self._store.Remove(round.communityId, round.sizeClass, member.GetId());

        self._store.DeleteRound(round.communityId, round.sizeClass);
        round.state = ROUND_STATE_RESOLVED;
        round.deadline.Finish();
        if round.timeoutTask != None and round.timeoutTask is not asyncio.current_task():
            round.timeoutTask.cancel();
        round.timeoutTask = None;

        for member in nonResponding:
            try:
                await self._sink.NotifyRemoval(member.participant, round.communityLabel, round.sizeClass, queueEvent.REMOVAL_REASON_NO_RESPONSE);
            except Exception as e:
                Log.warning(f"Failed to notify {member.participant} about removal : {e}");

        if ready:
            Log.info(f"All players confirmed! Starting {round.sizeClass} game in {round.communityId}");
            event = queueEvent.SessionReadyEvent([m.participant for m in confirmed], round.communityId, round.sizeClass);
        else:
            Log.info(f"Not enough players confirmed for {round.sizeClass} game in {round.communityId}");
            event = queueEvent.SessionCancelledEvent(round.communityId, round.sizeClass, len(confirmed), len(declined), len(nonResponding));
        await self._Send(round.destination, event);

        # Joins kept coming while the round ran, the pool may be full again.
        await self.CheckQueueStatus(round.communityId, round.sizeClass, round.destination, round.communityLabel);
        return event;

    def Shutdown(self):
        for round in self._store.GetRounds():
            if round.timeoutTask != None:
                round.timeoutTask.cancel();
                round.timeoutTask = None;
