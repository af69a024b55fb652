"""Session command handlers."""

from app.commands.sessions.provision_session_command import ProvisionSessionCommand

__all__ = ["ProvisionSessionCommand"]
