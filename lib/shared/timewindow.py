import logging;
import re;
from datetime import datetime, timedelta;

import pytz;

import lib.shared.errors as errors;

Log = logging.getLogger(__name__);

DEFAULT_TIMEZONE = "UTC";

COMMON_TIMEZONES = [
    "UTC",
    "America/New_York",     # Eastern
    "America/Chicago",      # Central
    "America/Denver",       # Mountain
    "America/Los_Angeles",  # Pacific
    "Europe/London",
    "Europe/Paris",
    "Asia/Tokyo",
];

TIMEZONE_ABBREVIATIONS = {
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "GMT": "UTC",
    "UTC": "UTC",
};

# A window end this far in the past is read as "the same time tomorrow".
EXPIRY_LOOKBACK = timedelta(hours=3);
# A parsed time this far in the past is rolled to the next day.
ROLL_FORWARD_AFTER = timedelta(hours=1);

FORMAT_HINT = 'Please use format like "now-8:30", "6:00-9:30", or "now-1:04pm EST"';

CLOCK_PATTERN = re.compile(r"^(\d{1,2})(?::(\d{1,2}))?(am|pm)?$");


def FormatTime(date : datetime) -> str:
    return f"{date.hour:02d}:{date.minute:02d}";


class AvailabilityWindow(object):
    def __init__(self, start : str, end : str, timezone : str = DEFAULT_TIMEZONE, endAt : datetime = None):
        self.start = start;
        self.end = end;
        self.timezone = timezone;
        # Resolved end instant in the server frame, informational only.
        self.endAt = endAt;

    def Describe(self, defaultTimezone : str = DEFAULT_TIMEZONE) -> str:
        s = f"{self.start} to {self.end}";
        if self.timezone and self.timezone != defaultTimezone:
            s += f" ({self.timezone})";
        return s;

    def __eq__(self, other):
        if not isinstance(other, AvailabilityWindow):
            return NotImplemented;
        return (self.start, self.end, self.timezone) == (other.start, other.end, other.timezone);

    def __repr__(self):
        return f"AvailabilityWindow({self.start}-{self.end} {self.timezone})";


class TimeWindowParser(object):
    '''
    Turns "<start>-<end>[ <tz>]" availability strings into AvailabilityWindow
    objects expressed in the server frame, and answers whether a window end
    has elapsed.
    '''
    def __init__(self, defaultTimezone : str = DEFAULT_TIMEZONE, serverTimezone : str = DEFAULT_TIMEZONE,
                 abbreviations : dict = None, recognizedTimezones : list = None):
        self._defaultTimezone = defaultTimezone;
        self._serverZone = pytz.timezone(serverTimezone);
        self._abbreviations = dict(TIMEZONE_ABBREVIATIONS);
        if abbreviations != None:
            self._abbreviations.update({k.upper(): v for k, v in abbreviations.items()});
        self._recognized = list(COMMON_TIMEZONES);
        if recognizedTimezones != None:
            for zone in recognizedTimezones:
                if zone not in self._recognized:
                    self._recognized.append(zone);

    @classmethod
    def FromConfig(cls, cfg):
        return cls(cfg.GetValue("defaultTimezone", DEFAULT_TIMEZONE),
                   cfg.GetValue("serverTimezone", DEFAULT_TIMEZONE),
                   cfg.GetValue("timezoneAbbreviations", None),
                   cfg.GetValue("recognizedTimezones", None));

    def GetDefaultTimezone(self) -> str:
        return self._defaultTimezone;

    def GetRecognizedTimezones(self) -> list[str]:
        return list(self._recognized);

    def Now(self) -> datetime:
        return datetime.now(self._serverZone);

    def _ToServerFrame(self, reference : datetime) -> datetime:
        if reference.tzinfo == None:
            return self._serverZone.localize(reference);
        return reference.astimezone(self._serverZone);

    def _ExtractTimezone(self, text : str) -> tuple[str, str]:
        zone = self._defaultTimezone;
        remaining = [];
        found = False;
        tokens = text.split();
        for i, token in enumerate(tokens):
            if not found and token.upper() in self._abbreviations:
                zone = self._abbreviations[token.upper()];
                found = True;
            elif not found and (token in self._recognized or token in pytz.all_timezones_set):
                zone = token;
                found = True;
            elif not found and i > 0 and i == len(tokens) - 1 and self._LooksLikeZone(token):
                Log.warning(f"Unrecognized time zone {token}, using {self._defaultTimezone}");
            else:
                remaining.append(token);
        return zone, "".join(remaining);

    @staticmethod
    def _LooksLikeZone(token : str) -> bool:
        ''' A trailing word that cannot be part of the range itself. '''
        return "-" not in token and token.lower() != "now" and CLOCK_PATTERN.match(token.lower()) == None;

    @staticmethod
    def _ParseClock(token : str) -> tuple[int, int, bool]:
        match = CLOCK_PATTERN.match(token.lower());
        if match == None:
            raise errors.InvalidFormat(f'Invalid time format: "{token}". {FORMAT_HINT}');
        hours = int(match.group(1));
        minutes = int(match.group(2)) if match.group(2) != None else 0;
        meridiem = match.group(3);
        if meridiem == "pm" and hours < 12:
            hours += 12;
        elif meridiem == "am" and hours == 12:
            hours = 0;
        if hours < 0 or hours > 23:
            raise errors.InvalidTimeValue(f"Invalid hour: {hours}. Hours must be between 0 and 23");
        if minutes < 0 or minutes > 59:
            raise errors.InvalidTimeValue(f"Invalid minutes: {minutes}. Minutes must be between 0 and 59");
        return hours, minutes, meridiem != None;

    def _Resolve(self, token : str, zoneName : str, serverRef : datetime) -> datetime:
        hours, minutes, hasMeridiem = self._ParseClock(token);
        # Default zone input is already in the server frame.
        if zoneName == self._defaultTimezone:
            zone = self._serverZone;
        else:
            zone = pytz.timezone(zoneName);
        userRef = serverRef.astimezone(zone);

        # "1:30" typed after 1pm means 13:30, not 01:30
        if not hasMeridiem and hours < 12:
            currentHour = userRef.hour;
            if abs(hours + 12 - currentHour) < abs(hours - currentHour):
                hours += 12;

        wall = zone.localize(datetime(userRef.year, userRef.month, userRef.day, hours, minutes));
        resolved = wall.astimezone(self._serverZone);

        if resolved < serverRef and (serverRef - resolved) > ROLL_FORWARD_AFTER:
            resolved = self._serverZone.normalize(resolved + timedelta(days=1));
        return resolved;

    def Parse(self, text : str, reference : datetime = None) -> AvailabilityWindow:
        if reference == None:
            reference = self.Now();
        if text == None or text.strip() == "":
            raise errors.InvalidFormat(f"Invalid time range format. {FORMAT_HINT}");

        zoneName, cleaned = self._ExtractTimezone(text.strip());
        if "-" not in cleaned:
            # A lone clock token with a bad value reports the value problem.
            self._ParseClock(cleaned);
            raise errors.InvalidFormat(f"Invalid time range format. {FORMAT_HINT}");

        parts = cleaned.split("-");
        if len(parts) != 2 or parts[0] == "" or parts[1] == "":
            raise errors.InvalidFormat(f"Invalid time range format. {FORMAT_HINT}");
        startStr, endStr = parts;

        serverRef = self._ToServerFrame(reference);
        if startStr.lower() == "now":
            start = FormatTime(serverRef);
        else:
            start = FormatTime(self._Resolve(startStr, zoneName, serverRef));
        endAt = self._Resolve(endStr, zoneName, serverRef);

        window = AvailabilityWindow(start, FormatTime(endAt), zoneName, endAt);
        Log.debug(f"Time range parsed: {window.start} to {window.end} (Timezone: {zoneName})");
        return window;

    def IsExpired(self, end : str, reference : datetime = None) -> bool:
        if reference == None:
            reference = self.Now();
        hours, minutes = [int(x) for x in end.split(":")];
        endTime = reference.replace(hour=hours, minute=minutes, second=0, microsecond=0);

        if endTime <= reference:
            if reference - endTime <= EXPIRY_LOOKBACK:
                return True;
            # Too far in the past to be today's window, so it means tomorrow.
            endTime = endTime + timedelta(days=1);

        expired = reference >= endTime;
        Log.debug(f"Comparing current time {FormatTime(reference)} with end time {FormatTime(endTime)}, expired : {expired}");
        return expired;

    def GetCurrentDateTimeWithTZ(self, now : datetime = None) -> str:
        if now == None:
            now = self.Now();
        now = self._ToServerFrame(now);
        offset = now.utcoffset().total_seconds() / 3600;
        offsetString = f"+{offset:g}" if offset >= 0 else f"{offset:g}";
        return f"{now.strftime('%Y-%m-%d')} {FormatTime(now)} (UTC{offsetString})";

    def GetTimeZonesList(self, now : datetime = None) -> str:
        if now == None:
            now = self.Now();
        now = self._ToServerFrame(now);
        result = [];
        for zone in self._recognized:
            try:
                result.append(f"{zone}: {FormatTime(now.astimezone(pytz.timezone(zone)))}");
            except pytz.UnknownTimeZoneError:
                Log.warning(f"Unknown time zone in recognized list : {zone}");
        return "\n".join(result);


_defaultParser = TimeWindowParser();

def ParseAvailability(text : str, reference : datetime = None) -> AvailabilityWindow:
    return _defaultParser.Parse(text, reference);

def IsExpired(end : str, reference : datetime = None) -> bool:
    return _defaultParser.IsExpired(end, reference);
