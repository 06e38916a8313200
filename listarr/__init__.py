"""
Listarr: Letterboxd and MyAnimeList watchlists as Radarr/Sonarr import lists.
"""

__version__ = "1.0.0"
