import logging;
from datetime import datetime;

import lib.shared.participant as participant;
import lib.shared.queuestore as queuestore;
import lib.shared.timewindow as timewindow;
import queueEvent;
import queueinterface;

Log = logging.getLogger(__name__);

DEFAULT_SWEEP_INTERVAL = 30;

class Eviction(object):
    def __init__(self, communityId : str, sizeClass : str, cl : participant.Participant):
        self.communityId = communityId;
        self.sizeClass = sizeClass;
        self.participant = cl;

    def __repr__(self):
        return f"Eviction({self.communityId}, {self.sizeClass}, {self.participant})";


class ExpirySweeper(object):
    '''
    Drops players whose availability window has elapsed. Players without a
    window never expire. Active confirmation rounds are left alone, they
    finish on their own snapshot.
    '''
    def __init__(self, store : queuestore.QueueStore, parser : timewindow.TimeWindowParser,
                 sink : queueinterface.INotificationSink, interval : float = DEFAULT_SWEEP_INTERVAL):
        self._store = store;
        self._parser = parser;
        self._sink = sink;
        self._interval = interval;

    def GetInterval(self) -> float:
        return self._interval;

    def Sweep(self, now : datetime = None) -> list[Eviction]:
        if now == None:
            now = self._parser.Now();

        expired = [];
        for queueSet in self._store.GetCommunities():
            for pool in queueSet.GetPools():
                for member in pool.GetMembers():
                    if not member.HasWindow():
                        continue;
                    if self._parser.IsExpired(member.GetWindow().end, now):
                        expired.append(Eviction(queueSet.GetCommunityId(), pool.GetSizeClass(), member));

        # Removal only starts once every pool has been scanned.
        for eviction in expired:
            self._store.Remove(eviction.communityId, eviction.sizeClass, eviction.participant.GetId());
            Log.info(f"Community {eviction.communityId} - Player {eviction.participant.GetName()} removed from {eviction.sizeClass} queue due to expired time window");
        return expired;

    def _ResolveDestination(self, eviction : Eviction):
        return queueinterface.DestinationChain([
            lambda: eviction.participant.GetDestination(),
            lambda: next((r.destination for r in self._store.GetRounds(eviction.communityId) if r.destination != None), None),
        ]).Resolve();

    async def Tick(self, now : datetime = None) -> list[Eviction]:
        Log.debug(f"Checking for expired time windows at {self._parser.GetCurrentDateTimeWithTZ(now)}");
        try:
            evictions = self.Sweep(now);
        except Exception as e:
            Log.error(f"Error in expiry sweep : {e}", exc_info=True);
            return [];

        for eviction in evictions:
            destination = self._ResolveDestination(eviction);
            if destination == None:
                Log.info(f"Community {eviction.communityId} - Player {eviction.participant.GetName()} expired from {eviction.sizeClass} but no channel found to announce");
                continue;
            pool = self._store.GetPool(eviction.communityId, eviction.sizeClass);
            event = queueEvent.PlayerExpiredEvent(eviction.participant, eviction.communityId, eviction.sizeClass,
                                                  pool.GetMemberCount(), pool.GetRequiredSize());
            try:
                await self._sink.SendToChannel(destination, event);
            except Exception as e:
                Log.error(f"Error announcing expired player {eviction.participant.GetName()} : {e}");
        return evictions;
