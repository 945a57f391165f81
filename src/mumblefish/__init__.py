"""
MumbleFish - dictate, polish, keep.

Records short voice notes, sends them to the mumble.fish polishing
service with a selectable tone, and keeps a local history of
raw/polished pairs that can be continued or re-polished.
"""

__version__ = "0.1.0"
__app_name__ = "MumbleFish"
