"""Theme submission bot: validates theme bundles and publishes them to git."""

__version__ = "0.1.0"
