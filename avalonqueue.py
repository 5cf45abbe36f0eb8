# platform imports
import os
import sys
import time
import logging
import argparse
import signal
import traceback

import pytz

Bot = None

def Sighandler(signum, frame):
    # SIGTERM takes the same shutdown path as Ctrl+C inside Client.run
    if signum == signal.SIGTERM:
        raise KeyboardInterrupt()

Argparser = argparse.ArgumentParser(prog="AvalonQueue", description="Discord queue and readiness confirmation bot for ProAvalon games")
Argparser.add_argument("-d", "--debug", action="store_true")
Argparser.add_argument("-lf", "--logfile")
Argparser.add_argument("-c", "--config", default="avalonqueueCfg.json")
Argparser.add_argument("-env", "--envfile", default=".env")

Log = logging.getLogger(__name__)

# custom imports
import lib.shared.config as config
import lib.shared.queuestore as queuestore
import plugins.shared.avalon.avalonBot as avalonBot

CONFIG_FALLBACK = \
"""{
    "gameName":"ProAvalon",
    "sizeClasses":[10, 9, 8, 7, 6, 5],
    "sweepInterval":30,
    "confirmationTimeout":120,
    "defaultTimezone":"UTC",
    "serverTimezone":"UTC",
    "timezoneAbbreviations":{},
    "recognizedTimezones":[],
    "channelMessageLimit":3,
    "ephemeralMessageLimit":2,
    "messageCleanupDelay":20
}
"""

def ValidateConfig(cfg : config.Config) -> bool:
    if cfg == None:
        return False
    sizes = cfg.GetValue("sizeClasses", queuestore.DEFAULT_SIZE_CLASSES)
    if not isinstance(sizes, list) or len(sizes) == 0:
        Log.error("sizeClasses must be a non empty list of player counts")
        return False
    for size in sizes:
        if not isinstance(size, int) or size < 1:
            Log.error(f"Invalid size class {size}")
            return False
    if len(set(sizes)) != len(sizes):
        Log.error("sizeClasses contains duplicates")
        return False
    for key in ["sweepInterval", "confirmationTimeout"]:
        curVar = cfg.GetValue(key, 1)
        if not isinstance(curVar, (int, float)) or curVar <= 0:
            Log.error(f"{key} must be a positive number")
            return False
    for key in ["channelMessageLimit", "ephemeralMessageLimit"]:
        curVar = cfg.GetValue(key, 1)
        if not isinstance(curVar, int) or curVar < 1:
            Log.error(f"{key} must be a positive integer")
            return False
    curVar = cfg.GetValue("messageCleanupDelay", 0)
    if not isinstance(curVar, (int, float)) or curVar < 0:
        Log.error("messageCleanupDelay must not be negative")
        return False
    zones = [cfg.GetValue("defaultTimezone", "UTC"), cfg.GetValue("serverTimezone", "UTC")]
    zones += list((cfg.GetValue("timezoneAbbreviations", None) or {}).values())
    zones += cfg.GetValue("recognizedTimezones", None) or []
    for zone in zones:
        try:
            pytz.timezone(zone)
        except pytz.UnknownTimeZoneError:
            Log.error(f"Unknown time zone in config : {zone}")
            return False
    return True

def InitLogger(args):
    loggingMode = logging.INFO
    loggingFile = ""

    if args.debug:
        print("DEBUGGING MODE.")
        loggingMode = logging.DEBUG
    if args.logfile:
        # Add timestamp to log file so they don't get overwritten
        if os.path.exists(args.logfile):
            newLogfile = args.logfile + '-' + time.strftime("%m%d%Y_%H%M%S", time.localtime(time.time()))
            args.logfile = newLogfile
        else:
            newLogfile = args.logfile
        print(f"Logging into file {newLogfile}")
        loggingFile = newLogfile

    if loggingFile != "":
        logging.basicConfig(
        filename = loggingFile,
        level = loggingMode,
        filemode = 'a',
        format='%(asctime)s %(levelname)08s %(name)s %(message)s',
        )
    else:
        logging.basicConfig(
        level = loggingMode,
        format='%(asctime)s %(levelname)08s %(name)s %(message)s',
        )
    # discord.py is chatty on DEBUG
    logging.getLogger("discord").setLevel(logging.INFO)

def main(argv = None):
    args = Argparser.parse_args(argv)
    InitLogger(args)
    Log.info("AvalonQueue entry point.")

    cfg = config.Config.from_file(args.config, CONFIG_FALLBACK)
    if not ValidateConfig(cfg):
        Log.error(f"Invalid configuration in {args.config}, abort init.")
        return 1

    avalonBot.check_and_create_env(args.envfile)
    try:
        token, clientId, guildId = avalonBot.read_env()
    except ValueError as e:
        Log.error(f"Error loading environment variables: {e}. Please check your {args.envfile} file.")
        return 1
    if not token:
        Log.error(f"DISCORD_TOKEN is not set, fill it in {args.envfile} and restart.")
        return 1

    signal.signal(signal.SIGTERM, Sighandler)

    global Bot
    Bot = avalonBot.AvalonBot(cfg, clientId, guildId)
    try:
        # log_handler=None keeps the logging set up by InitLogger
        Bot.run(token, log_handler=None)
    except Exception as e:
        Log.error(f"ERROR occurred: Type: {type(e)}; Reason: {e}; Traceback: {traceback.format_exc()}")
        print("\n\nCRASH DETECTED, CHECK LOGS")
        return 1
    finally:
        Bot = None
    Log.info("AvalonQueue stopped.")
    return 0

if __name__ == "__main__":
    sys.exit(main())
