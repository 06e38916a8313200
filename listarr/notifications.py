"""
Discord webhook notifications for new entries and failures.

Sending is best effort: webhook errors are logged and never raised.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
import traceback

from config.settings import (
    DISCORD_AVATAR_URL,
    DISCORD_COLOR_ANIME,
    DISCORD_COLOR_DEFAULT,
    DISCORD_COLOR_ERROR,
    DISCORD_USERNAME,
)
from listarr.http_client import FetchError, HttpClient
from listarr.models import MediaEntry

logger = logging.getLogger(__name__)


def _field(name: str, value: str, inline: bool) -> Dict[str, Any]:
    return {"name": name, "value": value, "inline": inline}


def type_label(entry: MediaEntry) -> str:
    if entry.type == "movie":
        return "Anime Movie" if entry.anime else "Movie"
    return "Anime Shows" if entry.anime else "Shows"


def source_link(entry: MediaEntry) -> str:
    if entry.source == "myanimelist":
        return f"[MAL [{entry.username}]](https://myanimelist.net/animelist/{entry.username}?status=6)"
    return f"[Letterboxd [{entry.username}]](https://letterboxd.com/{entry.username}/watchlist/)"


def id_links(entry: MediaEntry) -> List[str]:
    links = []
    if entry.source == "letterboxd" and entry.letterboxd_slug:
        links.append(f"[Letterboxd](https://letterboxd.com/film/{entry.letterboxd_slug}/)")
    mal_id = entry.root_mal_id or entry.mal_id
    if mal_id:
        links.append(f"[MAL](https://myanimelist.net/anime/{mal_id})")
    if entry.tvdb:
        tvdb_type = "series" if entry.type == "tv" else "movies"
        links.append(f"[TVDB](https://www.thetvdb.com/{tvdb_type}/{entry.tvdb})")
    if entry.tmdb:
        links.append(f"[TMDB](https://www.themoviedb.org/{entry.type}/{entry.tmdb})")
    return links


def entry_embed(entry: MediaEntry) -> Dict[str, Any]:
    """Embed announcing a newly published entry."""
    fields = [
        _field("Type", type_label(entry), True),
        _field("Year", str(entry.year), True),
    ]
    if entry.type == "tv" and entry.episodes:
        fields.append(_field("Episodes", str(entry.episodes), True))
    fields.append(_field("Source", source_link(entry), False))

    links = id_links(entry)
    if links:
        fields.append(_field("Links", " - ".join(links), False))

    embed = {
        "title": entry.title,
        "color": DISCORD_COLOR_ANIME if entry.anime else DISCORD_COLOR_DEFAULT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "fields": fields,
    }
    if entry.image_url:
        embed["image"] = {"url": entry.image_url}
    else:
        logger.debug(f"No image URL for entry: {entry.title} (source: {entry.source})")
    return embed


def error_embed(title: str, description: str, error: Optional[BaseException] = None) -> Dict[str, Any]:
    """Red embed describing a failure, with message and traceback excerpts."""
    embed = {
        "title": f"⚠️ {title}",
        "description": description,
        "color": DISCORD_COLOR_ERROR,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if error is not None:
        fields = [_field("Error Details", f"```{str(error)[:1000]}```", False)]
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        if error.__traceback__ is not None and stack:
            fields.append(_field("Stack Trace", f"```{stack[-500:]}```", False))
        embed["fields"] = fields
    return embed


class DiscordNotifier:
    """Posts embeds to a Discord webhook. A notifier without a URL does nothing."""

    def __init__(self, webhook_url: Optional[str], client: Optional[HttpClient] = None):
        self.webhook_url = webhook_url
        self.client = client or HttpClient(max_retries=1)

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def send(self, embed: Dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        payload = {"username": DISCORD_USERNAME, "avatar_url": DISCORD_AVATAR_URL, "embeds": [embed]}
        try:
            response = self.client.post_json(self.webhook_url, payload)
        except FetchError as e:
            logger.warning(f"Failed to send Discord webhook: {e}")
            return False

        remaining = response.headers.get("X-RateLimit-Remaining")
        limit = response.headers.get("X-RateLimit-Limit")
        if remaining and limit and remaining.isdigit() and limit.isdigit() and int(limit) > 0:
            percent = int(remaining) / int(limit) * 100
            if percent < 20:
                logger.info(f"Discord webhook: {remaining}/{limit} requests remaining ({percent:.1f}%)")
        return True

    def notify_entry(self, entry: MediaEntry) -> bool:
        return self.send(entry_embed(entry))

    def notify_error(self, title: str, description: str, error: Optional[BaseException] = None) -> bool:
        return self.send(error_embed(title, description, error))
