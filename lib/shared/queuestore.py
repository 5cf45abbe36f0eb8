import logging;
import lib.shared.errors as errors;
import lib.shared.participant as participant;

Log = logging.getLogger(__name__);

DEFAULT_SIZE_CLASSES = [10, 9, 8, 7, 6, 5];
LEAVE_ALL = "all";

def SizeClassKey(size : int) -> str:
    return f"{size}p";

class Pool():
    def __init__(self, sizeClass : str, requiredSize : int):
        self._sizeClass = sizeClass;
        self._requiredSize = requiredSize;
        self._members = [];

    def GetSizeClass(self) -> str:
        return self._sizeClass;

    def GetRequiredSize(self) -> int:
        return self._requiredSize;

    def GetMemberCount(self) -> int:
        return len(self._members);

    def GetMembers(self) -> list[participant.Participant]:
        return self._members.copy();

    def IsFull(self) -> bool:
        return len(self._members) >= self._requiredSize;

    def GetMember(self, participantId : str) -> participant.Participant:
        for member in self._members:
            if member.GetId() == participantId:
                return member;
        return None;

    def Contains(self, participantId : str) -> bool:
        return self.GetMember(participantId) != None;

    def Add(self, member : participant.Participant):
        if self.Contains(member.GetId()):
            raise errors.AlreadyQueued(self._sizeClass);
        if self.IsFull():
            raise errors.PoolFull(self._sizeClass);
        self._members.append(member);

    def Remove(self, participantId : str) -> participant.Participant:
        member = self.GetMember(participantId);
        if member != None:
            self._members.remove(member);
        return member;

    def Clear(self):
        self._members.clear();

    def __repr__(self):
        return f"Pool {self._sizeClass} ({len(self._members)}/{self._requiredSize})";


class CommunityQueueSet():
    def __init__(self, communityId : str, sizes : list[int]):
        self._communityId = communityId;
        self._pools = {};
        for size in sizes:
            key = SizeClassKey(size);
            self._pools[key] = Pool(key, size);

    def GetCommunityId(self) -> str:
        return self._communityId;

    def GetSizeClasses(self) -> list[str]:
        return list(self._pools.keys());

    def HasPool(self, sizeClass : str) -> bool:
        return sizeClass in self._pools;

    def GetPool(self, sizeClass : str) -> Pool:
        if sizeClass not in self._pools:
            raise errors.UnknownQueue(sizeClass);
        return self._pools[sizeClass];

    def GetPools(self) -> list[Pool]:
        return list(self._pools.values());


class QueueStore():
    '''
    Owns every community's pools and every active confirmation round.
    Built once at startup and handed to whoever needs it.
    '''
    def __init__(self, sizes : list[int] = None):
        if sizes == None:
            sizes = DEFAULT_SIZE_CLASSES;
        self._sizes = list(sizes);
        self._communities = {};
        self._rounds = {};

    def GetSizeClasses(self) -> list[str]:
        return [SizeClassKey(size) for size in self._sizes];

    def GetOrCreatePools(self, communityId) -> CommunityQueueSet:
        communityId = str(communityId);
        if communityId not in self._communities:
            Log.debug(f"Creating queues for community {communityId}");
            self._communities[communityId] = CommunityQueueSet(communityId, self._sizes);
        return self._communities[communityId];

    def GetCommunities(self) -> list[CommunityQueueSet]:
        return list(self._communities.values());

    def GetPool(self, communityId, sizeClass : str) -> Pool:
        return self.GetOrCreatePools(communityId).GetPool(sizeClass);

    def Join(self, communityId, sizeClass : str, member : participant.Participant):
        pool = self.GetPool(communityId, sizeClass);
        pool.Add(member);
        Log.info(f"Community {communityId} - {member} joined {sizeClass} queue ({pool.GetMemberCount()}/{pool.GetRequiredSize()})");

    def Leave(self, communityId, sizeClass : str, participantId : str) -> list[str]:
        participantId = str(participantId);
        queueSet = self.GetOrCreatePools(communityId);
        if sizeClass == None or sizeClass == LEAVE_ALL:
            pools = queueSet.GetPools();
        else:
            pools = [queueSet.GetPool(sizeClass)];

        removed = [];
        for pool in pools:
            if pool.Remove(participantId) != None:
                removed.append(pool.GetSizeClass());
        if len(removed) == 0:
            raise errors.NotQueued(sizeClass);
        Log.info(f"Community {communityId} - Player {participantId} left {', '.join(removed)}");
        return removed;

    def SnapshotFull(self, communityId, sizeClass : str) -> list[participant.Participant]:
        pool = self.GetPool(communityId, sizeClass);
        if not pool.IsFull():
            return None;
        return pool.GetMembers()[:pool.GetRequiredSize()];

    def Remove(self, communityId, sizeClass : str, participantId : str) -> bool:
        return self.GetPool(communityId, sizeClass).Remove(str(participantId)) != None;

    def FindPoolsWith(self, communityId, participantId : str) -> list[str]:
        participantId = str(participantId);
        return [pool.GetSizeClass() for pool in self.GetOrCreatePools(communityId).GetPools() if pool.Contains(participantId)];

    def Fill(self, communityId, sizeClass : str, members : list[participant.Participant]):
        pool = self.GetPool(communityId, sizeClass);
        pool.Clear();
        for member in members:
            pool.Add(member);
        Log.info(f"Community {communityId} - {sizeClass} queue filled with {pool.GetMemberCount()} players");

    def Status(self, communityId) -> list[Pool]:
        return self.GetOrCreatePools(communityId).GetPools();

    # Confirmation rounds, one per (community, size class)
    @staticmethod
    def RoundKey(communityId, sizeClass : str) -> tuple[str, str]:
        return (str(communityId), sizeClass);

    def GetRound(self, communityId, sizeClass : str):
        return self._rounds.get(QueueStore.RoundKey(communityId, sizeClass), None);

    def SetRound(self, communityId, sizeClass : str, round):
        self._rounds[QueueStore.RoundKey(communityId, sizeClass)] = round;

    def DeleteRound(self, communityId, sizeClass : str):
        self._rounds.pop(QueueStore.RoundKey(communityId, sizeClass), None);

    def GetRounds(self, communityId = None) -> list:
        if communityId == None:
            return list(self._rounds.values());
        communityId = str(communityId);
        return [r for key, r in self._rounds.items() if key[0] == communityId];

    def FindRoundsWith(self, participantId : str) -> list:
        participantId = str(participantId);
        return [r for r in self._rounds.values() if r.GetMember(participantId) != None];
