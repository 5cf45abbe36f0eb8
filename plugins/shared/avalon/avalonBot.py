import logging
import asyncio
import random
import os

import discord
from discord.ext import commands, tasks
from discord import app_commands # Import app_commands for slash commands
from dotenv import load_dotenv

import lib.shared.config as config
import lib.shared.confirmation as confirmation
import lib.shared.errors as errors
import lib.shared.participant as participant
import lib.shared.queuestore as queuestore
import lib.shared.sweeper as sweeper
import lib.shared.timewindow as timewindow
from lib.shared.messagetracker import MessageTracker
import queueEvent
import queueinterface

Log = logging.getLogger(__name__)

DEFAULT_GAME_NAME = "ProAvalon"
DEFAULT_CHANNEL_MESSAGE_LIMIT = 3
DEFAULT_EPHEMERAL_MESSAGE_LIMIT = 2
DEFAULT_CLEANUP_DELAY = 20

GENERIC_ERROR = "There was an error processing your request. Please try again."
# Hangul filler, Discord refuses fully empty content
BLANK_MESSAGE = "ㅤ"

ENV_TEMPLATE = """
# Discord Configuration
DISCORD_TOKEN=
CLIENT_ID=          # Application id, used when registering slash commands
GUILD_ID=           # Optional, syncs slash commands to this server only (faster while testing)
"""

# --- Announcement wording, one is picked at random per message ---
JOIN_MESSAGES = [
    "{player} has joined the {queue} queue! {current}/{required} players - {remaining} more needed! 🎮",
    "Welcome, {player}, to the {queue} resistance! {current}/{required} assembled - Need {remaining} more brave souls! 🕵️",
    "Agent {player} has infiltrated the {queue} queue! {current}/{required} operatives ready - {remaining} more required! 🔍",
    "{player} stands with the resistance in the {queue} queue! {current}/{required} members - Recruiting {remaining} more! ✊",
    "The {queue} mission has a new recruit: {player}! {current}/{required} agents - {remaining} positions open! 🚀",
    "A new challenger, {player}, enters the {queue} arena! {current}/{required} contestants - Just {remaining} more! 🏆",
    "Spy hunter {player} joins the {queue} lobby! {current}/{required} detectives - Need {remaining} more sleuths! 🔎",
    "{player} sneaks into the {queue} shadows! {current}/{required} agents in position - {remaining} more needed! 🥷",
    "A wild {player} appears in the {queue} queue! {current}/{required} players caught - {remaining} more to catch! 🎯",
    "{player} has boarded the {queue} mission! {current}/{required} crew members - {remaining} seats remain! 🚀",
]

EXPIRED_MESSAGES = [
    "{player} had to dash! Their available time window closed. Removed from {queue} queue. {current}/{required} players remaining. 🏃",
    "Agent {player} has been recalled from the {queue} mission - time availability expired! {current}/{required} operatives remain. 🕒",
    "{player}'s time window has closed. They've been whisked away from the {queue} queue! Down to {current}/{required} agents. ⌛",
    "Time's up for {player}! Their availability period ended, so they've left the {queue} queue. {current}/{required} revolutionaries remain. ⏱️",
    "The clock strikes the hour, and {player} must depart the {queue} queue! {current}/{required} players now. 🕰️",
    "The {queue} mission will continue without {player} - their available time has expired. {current}/{required} members stand ready. 🚶",
]

LEAVE_MESSAGES = [
    "{player} has left the {queue} queue. Currently {current}/{required} players. 👋",
    "{player} bids farewell to the {queue} resistance. {current}/{required} remain. 🚶",
    "Agent {player} has been extracted from the {queue} mission! {current}/{required} operatives remain. 🪂",
    "The {queue} team will have to continue without {player}. Currently at {current}/{required} members. 🏳️",
    "{player} vanishes from the {queue} queue! {current}/{required} players remain. 💨",
    "Agent {player} has gone dark. Removed from queue {queue}. {current}/{required} agents active. 🌑",
]

COMPONENT_PREFIXES = ["join-now", "specify-time", "leave-queue", "join-queue", "confirm-game", "decline-game"]
PLAYER_COUNT_ID = "player-count"


def check_and_create_env(env_file):
    """Creates the .env file with empty values if it is missing, then loads it."""
    if not os.path.exists(env_file):
        Log.warning(f"{env_file} not found. Creating a new one, fill in DISCORD_TOKEN and CLIENT_ID.")
        with open(env_file, 'w') as f:
            f.write(ENV_TEMPLATE)
    load_dotenv(dotenv_path=env_file)
    Log.info(f"Environment variables loaded from {env_file}")

def read_env():
    """Returns (token, clientId, guildId). Raises ValueError on malformed ids."""
    token = os.getenv("DISCORD_TOKEN") or None
    clientId = os.getenv("CLIENT_ID")
    guildId = os.getenv("GUILD_ID")
    clientId = int(clientId) if clientId else None
    guildId = int(guildId) if guildId else None
    return token, clientId, guildId


def render_template(templates : list[str], **values) -> str:
    return random.choice(templates).format(**values)

def mention(cl : participant.Participant) -> str:
    if cl.IsSynthetic():
        return f"{cl.GetName()} (Bot)"
    return f"<@{cl.GetId()}>"

def format_duration(seconds : float) -> str:
    seconds = int(seconds)
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds} seconds"

def parse_component_id(customId : str) -> tuple[str, str, str]:
    ''' "confirm-game-7p-1234" -> ("confirm-game", "7p", "1234"), missing parts are None. '''
    if customId == PLAYER_COUNT_ID:
        return PLAYER_COUNT_ID, None, None
    for prefix in COMPONENT_PREFIXES:
        if customId.startswith(prefix + "-"):
            rest = customId[len(prefix) + 1:].split("-")
            sizeClass = rest[0] if rest[0] != "" else None
            guildId = rest[1] if len(rest) > 1 and rest[1] != "" else None
            return prefix, sizeClass, guildId
    return None, None, None


# --- Component builders ---
def player_count_view(sizes : list[int]) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Select(
        custom_id=PLAYER_COUNT_ID,
        placeholder="Select player count",
        options=[discord.SelectOption(label=f"{size} Players", value=queuestore.SizeClassKey(size),
                                      description=f"Queue for a {size}-player game") for size in sizes]))
    return view

def join_choice_view(sizeClass : str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.primary, label="Join Now", custom_id=f"join-now-{sizeClass}"))
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.secondary, label="Specify Available Time", custom_id=f"specify-time-{sizeClass}"))
    return view

def leave_queue_view(sizeClass : str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.danger, label="Leave Queue", custom_id=f"leave-queue-{sizeClass}"))
    return view

def join_queue_view(sizeClass : str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.primary, label=f"Join {sizeClass} Queue", custom_id=f"join-queue-{sizeClass}"))
    return view

def confirm_view(sizeClass : str, communityId : str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.success, label="Confirm", custom_id=f"confirm-game-{sizeClass}-{communityId}"))
    view.add_item(discord.ui.Button(style=discord.ButtonStyle.danger, label="Decline", custom_id=f"decline-game-{sizeClass}-{communityId}"))
    return view


def render_event(event : queueEvent.Event, gameName : str = DEFAULT_GAME_NAME) -> dict:
    """Turns a queue event into keyword arguments for Messageable.send."""
    if event.type == queueEvent.QUEUE_EVENT_TYPE_PLAYER_JOINED:
        content = render_template(JOIN_MESSAGES, player=event.participant.GetName(), queue=event.sizeClass,
                                  current=event.current, required=event.required,
                                  remaining=max(0, event.required - event.current))
        return {"content": content, "view": join_queue_view(event.sizeClass)}

    elif event.type == queueEvent.QUEUE_EVENT_TYPE_PLAYER_LEFT:
        return {"content": render_template(LEAVE_MESSAGES, player=event.participant.GetName(), queue=event.sizeClass,
                                           current=event.current, required=event.required)}

    elif event.type == queueEvent.QUEUE_EVENT_TYPE_PLAYER_EXPIRED:
        return {"content": render_template(EXPIRED_MESSAGES, player=event.participant.GetName(), queue=event.sizeClass,
                                           current=event.current, required=event.required)}

    elif event.type == queueEvent.QUEUE_EVENT_TYPE_ROUND_OPENED:
        players = " ".join(mention(p) for p in event.participants)
        embed = discord.Embed(
            title=f"Game Ready: {event.sizeClass} {gameName}",
            description=f"A game is ready to start! Please confirm if you're still available.\n\nPlayers: {players}",
            color=discord.Color.green()
        )
        embed.set_footer(text=f"You have {format_duration(event.timeoutSeconds)} to confirm")
        pings = " ".join(mention(p) for p in event.participants if not p.IsSynthetic())
        return {"content": pings if pings != "" else None, "embed": embed}

    elif event.type == queueEvent.QUEUE_EVENT_TYPE_SESSION_READY:
        players = " ".join(mention(p) for p in event.participants)
        embed = discord.Embed(
            title=f"{event.sizeClass} {gameName} Game Confirmed!",
            description=f"All players have confirmed! Please join the {gameName} lobby now.\n\nPlayers: {players}",
            color=discord.Color.green()
        )
        embed.set_footer(text="Good luck and have fun!")
        pings = " ".join(mention(p) for p in event.participants if not p.IsSynthetic())
        return {"content": pings if pings != "" else None, "embed": embed}

    elif event.type == queueEvent.QUEUE_EVENT_TYPE_SESSION_CANCELLED:
        embed = discord.Embed(
            title=f"{event.sizeClass} {gameName} Game Cancelled",
            description=f"Not all players confirmed. {event.confirmed} confirmed, {event.declined} declined, {event.nonResponding} did not respond.",
            color=discord.Color.red()
        )
        embed.set_footer(text="Everyone from this round has left the queue, use /avalon to queue again")
        return {"content": None, "embed": embed}

    Log.warning(f"No renderer for {event}, sending it as text")
    return {"content": str(event)}


def build_status_embed(store : queuestore.QueueStore, parser : timewindow.TimeWindowParser, communityId, gameName : str = DEFAULT_GAME_NAME) -> discord.Embed:
    embed = discord.Embed(
        title=f"{gameName} Queue Status",
        description=f"Current status of all {gameName} queues in this server (Server time: {parser.GetCurrentDateTimeWithTZ()}):",
        color=discord.Color.blue(),
        timestamp=discord.utils.utcnow()
    )
    for pool in store.Status(communityId):
        names = []
        for member in pool.GetMembers():
            info = member.GetName()
            window = member.GetWindow()
            if window != None:
                info += f" (Available until {window.end}"
                if window.timezone and window.timezone != parser.GetDefaultTimezone():
                    info += f" {window.timezone}"
                info += ")"
            names.append(info)
        value = ", ".join(names) if len(names) > 0 else "No players"
        round = store.GetRound(communityId, pool.GetSizeClass())
        if round != None:
            value += f"\nWaiting for confirmations: {round.RespondedCount()}/{len(round.GetMembers())} responded, {round.deadline.LeftMS()} left"
        embed.add_field(name=f"{pool.GetSizeClass()} ({pool.GetMemberCount()}/{pool.GetRequiredSize()})",
                        value=value, inline=False)
    return embed


async def delete_message(message):
    await message.delete()

async def blank_ephemeral(handle):
    await handle.Blank()


class EphemeralHandle(object):
    ''' An ephemeral reply can only be edited through the interaction that produced it. '''
    def __init__(self, interaction : discord.Interaction, message = None):
        self.interaction = interaction
        self.message = message

    async def Blank(self):
        if self.message != None:
            await self.message.edit(content=BLANK_MESSAGE, embeds=[], view=None)
        else:
            await self.interaction.edit_original_response(content=BLANK_MESSAGE, embeds=[], view=None)


class DiscordNotificationSink(queueinterface.INotificationSink):
    def __init__(self, bot):
        super().__init__()
        self._bot = bot
        self._autoConfirms = set()

    async def SendToChannel(self, destination, content : queueEvent.Event):
        message = await destination.send(**render_event(content, self._bot.gameName))
        await self._bot.channelMessages.Track((destination.id, content.sizeClass), message, delete_message)
        return message

    async def _FetchUser(self, cl : participant.Participant):
        userId = int(cl.GetId())
        user = self._bot.get_user(userId)
        if user == None:
            user = await self._bot.fetch_user(userId)
        return user

    async def RequestConfirmation(self, cl : participant.Participant, communityId : str, communityLabel : str, sizeClass : str):
        if cl.IsSynthetic():
            # Debug stand-ins answer yes as soon as the round is listening.
            task = asyncio.create_task(self._bot.coordinator.RecordResponse(communityId, sizeClass, cl.GetId(), True))
            self._autoConfirms.add(task)
            task.add_done_callback(self._autoConfirms.discard)
            return
        try:
            user = await self._FetchUser(cl)
            await user.send(
                content=f'A {sizeClass} {self._bot.gameName} game is ready to start in server "{communityLabel}"! Are you still available to play?',
                view=confirm_view(sizeClass, communityId))
        except (discord.HTTPException, ValueError) as e:
            raise errors.DeliveryFailure(f"Could not DM {cl.GetName()} : {e}") from e

    async def NotifyRemoval(self, cl : participant.Participant, communityLabel : str, sizeClass : str, reason : int):
        if cl.IsSynthetic():
            return
        if reason != queueEvent.REMOVAL_REASON_NO_RESPONSE:
            Log.warning(f"No removal notice for reason {reason}, {cl} not notified")
            return
        game = self._bot.gameName
        text = f"You did not respond to the {sizeClass} {game} game confirmation in time. You have been removed from the queue."
        try:
            user = await self._FetchUser(cl)
            await user.send(text)
        except (discord.HTTPException, ValueError) as e:
            Log.warning(f"Failed to send DM to {cl.GetName()}: {e}")


class TimeRangeModal(discord.ui.Modal):
    def __init__(self, sizeClass : str):
        super().__init__(title="Specify Your Available Time", custom_id=f"time-modal-{sizeClass}")
        self.sizeClass = sizeClass
        self.timeRange = discord.ui.TextInput(
            label="Time Range",
            custom_id="time-range",
            placeholder="Examples: now-8:30pm, 6:00-9:30 PST, now-1:04 EST",
            style=discord.TextStyle.short,
            required=True
        )
        self.add_item(self.timeRange)

    async def on_submit(self, interaction: discord.Interaction):
        await interaction.client.JoinQueue(interaction, self.sizeClass, self.timeRange.value)

    async def on_error(self, interaction: discord.Interaction, error: Exception):
        await interaction.client.ReportError(interaction, error, "time range modal")


class AvalonCommandTree(app_commands.CommandTree):
    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        name = interaction.command.name if interaction.command != None else "unknown"
        if isinstance(error, app_commands.CommandInvokeError):
            error = error.original
        if isinstance(error, app_commands.MissingPermissions):
            await self.client.SendTrackedEphemeral(interaction, "You need administrator permissions to use this command.")
        elif isinstance(error, app_commands.NoPrivateMessage):
            await self.client.SendTrackedEphemeral(interaction, "This command can only be used inside a server.")
        else:
            await self.client.ReportError(interaction, error, f"/{name}")


class AvalonBot(commands.Bot):
    def __init__(self, cfg : config.Config, clientId : int = None, guildId : int = None):
        intents = discord.Intents.default()
        # Set command_prefix to something irrelevant, only slash commands are used
        super().__init__(command_prefix='!', intents=intents, application_id=clientId, tree_cls=AvalonCommandTree)
        self.guildId = guildId
        self.debugMode = False
        self.gameName = cfg.GetValue("gameName", DEFAULT_GAME_NAME)
        self.sizes = cfg.GetValue("sizeClasses", queuestore.DEFAULT_SIZE_CLASSES)

        self.store = queuestore.QueueStore(self.sizes)
        self.parser = timewindow.TimeWindowParser.FromConfig(cfg)
        self.sink = DiscordNotificationSink(self)
        self.coordinator = confirmation.ConfirmationCoordinator(self.store, self.sink,
                                                                cfg.GetValue("confirmationTimeout", confirmation.DEFAULT_CONFIRMATION_TIMEOUT))
        self.sweeper = sweeper.ExpirySweeper(self.store, self.parser, self.sink,
                                             cfg.GetValue("sweepInterval", sweeper.DEFAULT_SWEEP_INTERVAL))

        cleanupDelay = cfg.GetValue("messageCleanupDelay", DEFAULT_CLEANUP_DELAY)
        self.channelMessages = MessageTracker(cfg.GetValue("channelMessageLimit", DEFAULT_CHANNEL_MESSAGE_LIMIT), cleanupDelay)
        self.ephemeralMessages = MessageTracker(cfg.GetValue("ephemeralMessageLimit", DEFAULT_EPHEMERAL_MESSAGE_LIMIT), cleanupDelay)

    async def setup_hook(self):
        for command in COMMANDS:
            self.tree.add_command(command)

    async def on_ready(self):
        Log.info(f"Bot connected as {self.user}")
        try:
            # Guild-specific sync for faster development
            if self.guildId:
                guild = discord.Object(id=self.guildId)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                Log.info(f"Slash commands synced to guild ID: {self.guildId}")
            else:
                await self.tree.sync()
                Log.info("Slash commands synced globally.")
        except Exception as e:
            Log.error(f"Failed to sync slash commands: {e}", exc_info=True)

        if not self.expiry_task.is_running():
            self.expiry_task.change_interval(seconds=self.sweeper.GetInterval())
            self.expiry_task.start()

    @tasks.loop(seconds=sweeper.DEFAULT_SWEEP_INTERVAL)
    async def expiry_task(self):
        await self.sweeper.Tick()

    async def close(self):
        Log.info("Shutting down, dropping pending confirmation rounds.")
        if self.expiry_task.is_running():
            self.expiry_task.cancel()
        self.coordinator.Shutdown()
        self.channelMessages.Cancel()
        self.ephemeralMessages.Cancel()
        await super().close()

    # --- Replies ---
    async def SendTrackedEphemeral(self, interaction : discord.Interaction, content : str, view : discord.ui.View = None, embed : discord.Embed = None) -> EphemeralHandle:
        kwargs = {"content": content, "ephemeral": True}
        if view != None:
            kwargs["view"] = view
        if embed != None:
            kwargs["embed"] = embed
        try:
            if interaction.response.is_done():
                message = await interaction.followup.send(wait=True, **kwargs)
                handle = EphemeralHandle(interaction, message)
            else:
                await interaction.response.send_message(**kwargs)
                handle = EphemeralHandle(interaction)
        except discord.HTTPException as e:
            Log.error(f"Error sending ephemeral message to {interaction.user}: {e}")
            return None
        await self.ephemeralMessages.Track(interaction.user.id, handle, blank_ephemeral)
        return handle

    async def ReportError(self, interaction : discord.Interaction, error : Exception, where : str):
        if isinstance(error, errors.QueueError):
            Log.info(f"{where} rejected for {interaction.user}: {error}")
            await self.SendTrackedEphemeral(interaction, str(error))
        else:
            Log.error(f"Error in {where}: {error}", exc_info=error)
            await self.SendTrackedEphemeral(interaction, GENERIC_ERROR)

    async def Announce(self, destination, event : queueEvent.Event):
        try:
            await self.sink.SendToChannel(destination, event)
        except Exception as e:
            Log.error(f"Error announcing {event}: {e}", exc_info=True)

    # --- Queue flows ---
    async def JoinQueue(self, interaction : discord.Interaction, sizeClass : str, timeRange : str = None):
        communityId = str(interaction.guild_id)
        window = None
        if timeRange != None:
            window = self.parser.Parse(timeRange)
            if self.parser.IsExpired(window.end):
                raise errors.WindowExpired(window.end)

        member = participant.Participant(interaction.user.id, interaction.user.name, interaction.channel, window)
        self.store.Join(communityId, sizeClass, member)
        pool = self.store.GetPool(communityId, sizeClass)

        reply = f"You have joined the {sizeClass} queue"
        if window != None:
            reply += f" with availability {window.Describe(self.parser.GetDefaultTimezone())}"
        reply += f"! (Server time is {self.parser.GetCurrentDateTimeWithTZ()})"
        await self.SendTrackedEphemeral(interaction, reply, view=leave_queue_view(sizeClass))

        await self.Announce(interaction.channel, queueEvent.PlayerJoinedEvent(member, communityId, sizeClass,
                                                                              pool.GetMemberCount(), pool.GetRequiredSize()))
        await self.coordinator.CheckQueueStatus(communityId, sizeClass, interaction.channel, interaction.guild.name)

    async def LeaveQueue(self, interaction : discord.Interaction, sizeClass : str = None):
        communityId = str(interaction.guild_id)
        removed = self.store.Leave(communityId, sizeClass, interaction.user.id)
        if sizeClass == None or sizeClass == queuestore.LEAVE_ALL:
            await self.SendTrackedEphemeral(interaction, "You have left all queues in this server.")
        else:
            await self.SendTrackedEphemeral(interaction, f"You have left the {sizeClass} queue.")
        await self._AnnounceLeft(interaction, communityId, removed)

    async def _AnnounceLeft(self, interaction : discord.Interaction, communityId : str, sizeClasses : list[str]):
        cl = participant.Participant(interaction.user.id, interaction.user.name, interaction.channel)
        for sizeClass in sizeClasses:
            pool = self.store.GetPool(communityId, sizeClass)
            await self.Announce(interaction.channel, queueEvent.PlayerLeftEvent(cl, communityId, sizeClass,
                                                                                pool.GetMemberCount(), pool.GetRequiredSize()))

    async def DebugFill(self, interaction : discord.Interaction, sizeClass : str):
        communityId = str(interaction.guild_id)
        if not self.debugMode:
            await self.SendTrackedEphemeral(interaction, "Debug mode is not active. Use /debug-mode on to enable it first.")
            return
        if self.store.GetRound(communityId, sizeClass) != None:
            await self.SendTrackedEphemeral(interaction, f"A confirmation round is already running for the {sizeClass} queue.")
            return

        pool = self.store.GetPool(communityId, sizeClass)
        caller = participant.Participant(interaction.user.id, interaction.user.name, interaction.channel)
        bots = participant.CreateSyntheticParticipants(pool.GetRequiredSize() - 1, interaction.channel)
        self.store.Fill(communityId, sizeClass, [caller] + bots)
        await self.SendTrackedEphemeral(interaction, f"Debug: Filled {sizeClass} queue with {len(bots)} bots plus you. "
                                                     f"Total: {pool.GetMemberCount()}/{pool.GetRequiredSize()} players.")

        await self.Announce(interaction.channel, queueEvent.PlayerJoinedEvent(caller, communityId, sizeClass,
                                                                              pool.GetMemberCount(), pool.GetRequiredSize()))
        await self.coordinator.CheckQueueStatus(communityId, sizeClass, interaction.channel, interaction.guild.name)

    # --- Components ---
    async def on_interaction(self, interaction : discord.Interaction):
        if interaction.type != discord.InteractionType.component:
            return
        customId = interaction.data.get("custom_id", "")
        Log.debug(f"Button interaction: {customId}")
        try:
            await self.RouteComponent(interaction, customId)
        except Exception as e:
            await self.ReportError(interaction, e, f"component {customId}")

    async def RouteComponent(self, interaction : discord.Interaction, customId : str):
        kind, sizeClass, guildId = parse_component_id(customId)
        if kind == None:
            return
        if kind == "confirm-game" or kind == "decline-game":
            await self.HandleConfirmation(interaction, sizeClass, kind == "confirm-game", guildId)
            return

        if interaction.guild_id == None:
            await self.SendTrackedEphemeral(interaction, "This button only works inside a server.")
            return
        communityId = str(interaction.guild_id)

        if kind == PLAYER_COUNT_ID:
            selected = interaction.data.get("values", [None])[0]
            self.store.GetPool(communityId, selected)
            await interaction.response.edit_message(
                content=f"You selected: {selected} queue. Would you like to join now or specify your available time range?",
                embed=None, view=join_choice_view(selected))
            await self.ephemeralMessages.Track(interaction.user.id, EphemeralHandle(interaction), blank_ephemeral)

        elif kind == "join-now":
            await self.JoinQueue(interaction, sizeClass)

        elif kind == "specify-time":
            self.store.GetPool(communityId, sizeClass)
            await interaction.response.send_modal(TimeRangeModal(sizeClass))

        elif kind == "leave-queue":
            try:
                removed = self.store.Leave(communityId, sizeClass, interaction.user.id)
            except errors.NotQueued:
                await interaction.response.edit_message(content=f"You are no longer in the {sizeClass} queue.", view=None)
                return
            await interaction.response.edit_message(content=f"You have left the {sizeClass} queue.", view=None)
            await self._AnnounceLeft(interaction, communityId, removed)

        elif kind == "join-queue":
            if self.store.GetPool(communityId, sizeClass).Contains(str(interaction.user.id)):
                await self.SendTrackedEphemeral(interaction, f"You are already in the {sizeClass} queue.")
                return
            await self.SendTrackedEphemeral(interaction,
                f"Would you like to join the {sizeClass} queue now or specify your available time range?",
                view=join_choice_view(sizeClass))

    async def HandleConfirmation(self, interaction : discord.Interaction, sizeClass : str, confirmed : bool, guildId : str = None):
        # The button id carries the server, DMs have no guild of their own.
        communityId = guildId
        if communityId == None and interaction.guild_id != None:
            communityId = str(interaction.guild_id)
        if communityId == None:
            round = self.coordinator.FindRoundFor(str(interaction.user.id), sizeClass)
            if round != None:
                communityId = round.communityId
        if communityId == None:
            Log.error(f"Could not determine guild ID for confirmation from {interaction.user}")
            await interaction.response.edit_message(
                content="Error: Could not determine which server this confirmation is for. Please try again.", view=None)
            return

        await interaction.response.defer()
        recorded = await self.coordinator.RecordResponse(communityId, sizeClass, interaction.user.id, confirmed, interaction.channel)
        if not recorded:
            content = f"This {sizeClass} {self.gameName} game confirmation is no longer active."
        elif confirmed:
            content = (f"You have confirmed for the {sizeClass} {self.gameName} game! Please wait for all players to confirm. "
                       f"You have been removed from all other queues.")
        else:
            content = f"You have declined the {sizeClass} {self.gameName} game. You have been removed from the queue."
        await interaction.edit_original_response(content=content, view=None)


# === Slash commands ===
async def size_class_autocomplete(interaction: discord.Interaction, current: str) -> list[app_commands.Choice[str]]:
    return [app_commands.Choice(name=f"{size} Players", value=queuestore.SizeClassKey(size))
            for size in interaction.client.sizes if current.lower() in queuestore.SizeClassKey(size)]

async def leave_queue_autocomplete(interaction: discord.Interaction, current: str) -> list[app_commands.Choice[str]]:
    choices = await size_class_autocomplete(interaction, current)
    choices.append(app_commands.Choice(name="All Queues", value=queuestore.LEAVE_ALL))
    return choices


@app_commands.command(name='avalon', description="Join a game queue.")
@app_commands.guild_only()
async def avalon_slash(interaction: discord.Interaction):
    bot = interaction.client
    embed = discord.Embed(
        title=f"{bot.gameName}: The Resistance",
        description="Select the number of players for your game:",
        color=discord.Color.blue()
    )
    embed.set_footer(text="Join the resistance and overthrow the spies!")
    await bot.SendTrackedEphemeral(interaction, None, view=player_count_view(bot.sizes), embed=embed)
    await bot.SendTrackedEphemeral(interaction,
        f"**Current server time:** {bot.parser.GetCurrentDateTimeWithTZ()}\n\n"
        f'When specifying time, you can add time zone (e.g., "now-8:30pm EST" or "now-1:04 PST")')

@app_commands.command(name='leave-queue', description="Leave a queue, or every queue when none is given.")
@app_commands.describe(queue="Queue to leave")
@app_commands.autocomplete(queue=leave_queue_autocomplete)
@app_commands.guild_only()
async def leave_queue_slash(interaction: discord.Interaction, queue: str = None):
    await interaction.client.LeaveQueue(interaction, queue)

@app_commands.command(name='queue-status', description="Check the status of every queue in this server.")
@app_commands.guild_only()
async def queue_status_slash(interaction: discord.Interaction):
    bot = interaction.client
    await interaction.response.send_message(embed=build_status_embed(bot.store, bot.parser, interaction.guild_id, bot.gameName))

@app_commands.command(name='debug-mode', description="Admin: Toggle debug mode.")
@app_commands.describe(mode="Turn debug mode on or off")
@app_commands.choices(mode=[
    app_commands.Choice(name="On", value="on"),
    app_commands.Choice(name="Off", value="off"),
])
@app_commands.checks.has_permissions(administrator=True) # Admin permission check
@app_commands.guild_only()
async def debug_mode_slash(interaction: discord.Interaction, mode: app_commands.Choice[str]):
    bot = interaction.client
    bot.debugMode = mode.value == "on"
    Log.info(f"Debug mode turned {'ON' if bot.debugMode else 'OFF'} by {interaction.user}")
    await bot.SendTrackedEphemeral(interaction, f"Debug mode has been turned {'ON' if bot.debugMode else 'OFF'}.")

@app_commands.command(name='debug-fill', description="Debug: Fill a queue with bots plus you.")
@app_commands.describe(queue="Queue to fill")
@app_commands.autocomplete(queue=size_class_autocomplete)
@app_commands.guild_only()
async def debug_fill_slash(interaction: discord.Interaction, queue: str):
    await interaction.client.DebugFill(interaction, queue)


COMMANDS = [avalon_slash, leave_queue_slash, queue_status_slash, debug_mode_slash, debug_fill_slash]
