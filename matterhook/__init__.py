"""matterhook - relay Matterbridge chat messages to a webhook."""

__version__ = "1.0.0"
