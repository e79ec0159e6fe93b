"""Process supervision building blocks: configuration, events, syslog, checkers and a pid proxy."""

__version__ = "0.1.0"