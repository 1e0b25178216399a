"""QQ group moderation bot backed by a remote text censor."""

__version__ = "0.1.0"
