import asyncio;
import logging;
import time;
from collections import OrderedDict;

Log = logging.getLogger(__name__);

DEFAULT_KEEP = 3;
DEFAULT_MIN_AGE = 20;
DEFAULT_MAX_KEYS = 500;

class MessageTracker(object):
    '''
    Keeps the newest `keep` message handles per key. Older ones are handed to
    a cleanup action (delete, blank out...) once they are at least `minAge`
    seconds old. Only the `maxKeys` most recently used keys are remembered.
    '''
    def __init__(self, keep : int = DEFAULT_KEEP, minAge : float = DEFAULT_MIN_AGE, clock = time.time, sleep = asyncio.sleep,
                 maxKeys : int = DEFAULT_MAX_KEYS):
        self._keep = keep;
        self._minAge = minAge;
        self._clock = clock;
        self._sleep = sleep;
        self._maxKeys = maxKeys;
        self._tracked = OrderedDict();
        self._pending = set();

    def GetTracked(self, key) -> list:
        return [handle for handle, _ in self._tracked.get(key, [])];

    def GetKeyCount(self) -> int:
        return len(self._tracked);

    def Push(self, key, handle) -> list[tuple[object, float]]:
        ''' Records a handle, returns (handle, delay) pairs that are due for cleanup. '''
        now = self._clock();
        entries = self._tracked.setdefault(key, []);
        self._tracked.move_to_end(key);
        entries.append((handle, now));
        while len(self._tracked) > self._maxKeys:
            dropped, _ = self._tracked.popitem(last=False);
            Log.debug(f"No longer tracking messages for {dropped}");
        if len(entries) <= self._keep:
            return [];
        old = entries[:-self._keep];
        self._tracked[key] = entries[-self._keep:];
        return [(h, max(0.0, self._minAge - (now - ts))) for h, ts in old];

    async def Track(self, key, handle, action):
        if handle == None:
            return;
        for old, delay in self.Push(key, handle):
            if delay <= 0:
                await self._Run(action, old);
            else:
                task = asyncio.create_task(self._RunLater(delay, action, old));
                self._pending.add(task);
                task.add_done_callback(self._pending.discard);

    async def _RunLater(self, delay : float, action, handle):
        await self._sleep(delay);
        await self._Run(action, handle);

    async def _Run(self, action, handle):
        try:
            await action(handle);
        except Exception as e:
            Log.debug(f"Failed to clean up old message : {e}");

    def Cancel(self):
        for task in list(self._pending):
            task.cancel();
        self._pending.clear();
