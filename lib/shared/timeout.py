import time;

class Timeout:
    ''' Wall clock countdown, only read for display. The actual expiry is an asyncio task. '''
    def __init__(self, clock = time.time):
        self._clock = clock;
        self._endS = 0;

    def Set(self, seconds : float):
        self._endS = self._clock() + seconds;

    def Finish(self):
        self._endS = 0;

    def Left(self) -> float:
        if self._endS == 0:
            return 0;
        return max(0, self._endS - self._clock());

    def LeftMS(self) -> str:
        minutes, seconds = divmod(int(self.Left()), 60);
        return f"{minutes:02d}:{seconds:02d}";
