"""Outbound command handlers."""

from app.commands.outbound.send_message_command import SendMessageCommand

__all__ = ["SendMessageCommand"]
