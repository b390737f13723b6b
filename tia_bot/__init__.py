"""tia-bot: LLM-backed chat agents for XMPP group chat rooms."""

__version__ = "0.1.0"
